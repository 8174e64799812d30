from __future__ import annotations

from datetime import datetime
from typing import Any, Literal, Optional, Union

from fastapi import APIRouter, Depends, Header, HTTPException, Query, status
from pydantic import BaseModel, Field, field_validator

from ess_sync.core.config import PAGE_SIZE_DEFAULT, PAGE_SIZE_MAX, PAGE_SIZE_MIN
from ess_sync.models.run_config import CustomFilter, RunConfiguration
from ess_sync.models.sync_job import SyncJob
from ess_sync.models.sync_log import SyncLogEntry
from ess_sync.services import sync_errors
from ess_sync.services.job_manager import JobManager, get_job_manager

router = APIRouter(prefix="/api/sync", tags=["sync"])


# -------------------------
# API models
# -------------------------

class CustomFilterModel(BaseModel):
    column: str
    operator: Literal["eq", "ne", "in"] = "eq"
    value: Union[str, int, float, bool, None, list[Union[str, int, float, bool]]] = None


class SyncConfigRequest(BaseModel):
    pageSize: int = Field(default=PAGE_SIZE_DEFAULT, ge=PAGE_SIZE_MIN, le=PAGE_SIZE_MAX)
    backupBeforeSync: bool = True
    validateData: bool = True
    syncEmployees: bool = True
    syncEmployments: bool = True
    excludeDeleted: bool = True
    customFilters: list[CustomFilterModel] = Field(default_factory=list)

    @field_validator("customFilters", mode="before")
    @classmethod
    def accept_filter_map(cls, v: Any) -> Any:
        """Accept the legacy {column: value} form as equality filters."""
        if v is None:
            return []
        if isinstance(v, dict):
            return [{"column": k, "operator": "eq", "value": val} for k, val in v.items()]
        return v

    def to_run_configuration(self) -> RunConfiguration:
        return RunConfiguration(
            page_size=self.pageSize,
            backup_before_sync=self.backupBeforeSync,
            validate_data=self.validateData,
            sync_employees=self.syncEmployees,
            sync_employments=self.syncEmployments,
            exclude_deleted=self.excludeDeleted,
            custom_filters=tuple(
                CustomFilter(
                    column=f.column,
                    operator=f.operator,
                    value=tuple(f.value) if isinstance(f.value, list) else f.value,
                )
                for f in self.customFilters
            ),
        )


class SyncJobResponse(BaseModel):
    jobId: int
    success: bool
    recordsProcessed: int
    recordsSuccess: int
    recordsFailed: int
    errors: list[str]
    duration: int


class TriggerSyncResponse(BaseModel):
    success: bool
    message: str
    data: SyncJobResponse


class SyncJobModel(BaseModel):
    id: int
    jobName: str
    type: str
    status: str
    startedBy: Optional[str] = None
    startedAt: Optional[datetime] = None
    completedAt: Optional[datetime] = None
    recordsProcessed: int = 0
    recordsSuccess: int = 0
    recordsFailed: int = 0
    errorMessage: Optional[str] = None
    syncConfig: dict[str, Any] = Field(default_factory=dict)
    createdAt: datetime
    updatedAt: datetime

    @classmethod
    def from_job(cls, job: SyncJob) -> SyncJobModel:
        return cls(
            id=job.id,
            jobName=job.job_name,
            type=job.type.value,
            status=job.status.value,
            startedBy=job.started_by,
            startedAt=job.started_at,
            completedAt=job.completed_at,
            recordsProcessed=job.records_processed,
            recordsSuccess=job.records_success,
            recordsFailed=job.records_failed,
            errorMessage=job.error_message,
            syncConfig=job.sync_config,
            createdAt=job.created_at,
            updatedAt=job.updated_at,
        )


class SyncLogModel(BaseModel):
    id: int
    level: str
    message: str
    employeeErpCode: Optional[str] = None
    metadata: Optional[dict[str, Any]] = None
    createdAt: datetime

    @classmethod
    def from_entry(cls, entry: SyncLogEntry) -> SyncLogModel:
        return cls(
            id=entry.id,
            level=entry.level.value,
            message=entry.message,
            employeeErpCode=entry.employee_erp_code,
            metadata=entry.metadata,
            createdAt=entry.created_at,
        )


# -------------------------
# Error translation
# -------------------------

def _http_error(exc: sync_errors.SyncError) -> HTTPException:
    if isinstance(exc, sync_errors.JobNotFound):
        return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc))
    if isinstance(exc, sync_errors.InvalidRunConfiguration):
        return HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(exc))
    if isinstance(exc, sync_errors.InvalidTransition):
        return HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc))
    return HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(exc))


# -------------------------
# Routes
# -------------------------

# Plain def: the trigger blocks for the whole run, FastAPI runs it in a worker thread.
@router.post("/manual", response_model=TriggerSyncResponse, status_code=status.HTTP_201_CREATED)
def trigger_manual_sync(
    payload: SyncConfigRequest,
    x_user_id: str = Header(default="anonymous"),
    manager: JobManager = Depends(get_job_manager),
) -> TriggerSyncResponse:
    try:
        result = manager.trigger_sync(payload.to_run_configuration(), x_user_id)
    except sync_errors.SyncError as exc:
        raise _http_error(exc) from exc

    return TriggerSyncResponse(
        success=True,
        message="Manual sync triggered successfully",
        data=SyncJobResponse(**result.to_dict()),
    )


@router.get("/jobs", response_model=list[SyncJobModel])
def list_sync_jobs(
    limit: int = Query(default=50, ge=1, le=500),
    offset: int = Query(default=0, ge=0),
    manager: JobManager = Depends(get_job_manager),
) -> list[SyncJobModel]:
    return [SyncJobModel.from_job(j) for j in manager.list_jobs(limit, offset)]


@router.get("/jobs/{job_id}", response_model=SyncJobModel)
def get_sync_job(job_id: int, manager: JobManager = Depends(get_job_manager)) -> SyncJobModel:
    try:
        return SyncJobModel.from_job(manager.get_job(job_id))
    except sync_errors.SyncError as exc:
        raise _http_error(exc) from exc


@router.get("/jobs/{job_id}/logs", response_model=list[SyncLogModel])
def list_sync_logs(
    job_id: int,
    limit: int = Query(default=100, ge=1, le=1000),
    offset: int = Query(default=0, ge=0),
    manager: JobManager = Depends(get_job_manager),
) -> list[SyncLogModel]:
    try:
        entries = manager.list_logs(job_id, limit, offset)
    except sync_errors.SyncError as exc:
        raise _http_error(exc) from exc
    return [SyncLogModel.from_entry(e) for e in entries]


@router.put("/jobs/{job_id}/cancel", response_model=dict)
def cancel_sync_job(
    job_id: int,
    x_user_id: str = Header(default="anonymous"),
    manager: JobManager = Depends(get_job_manager),
) -> dict:
    try:
        manager.cancel_job(job_id, x_user_id)
    except sync_errors.SyncError as exc:
        raise _http_error(exc) from exc
    return {"success": True, "message": "Sync job cancelled successfully"}
