"""
Data movement for one sync job.

Employees are synced first, then employments. Both phases run inside a single
ESS transaction: per-record problems (validation, rejected writes) are counted
and logged while the run continues; anything else propagates, which rolls the
whole transaction back.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Callable, Iterator, Protocol

from ess_sync.models.run_config import RunConfiguration
from ess_sync.services.edm_store import EntityKind, ExtractionPredicate, SourceRecord, build_predicate
from ess_sync.services.job_repository import JobRepository
from ess_sync.services.progress_tracker import ProgressTracker
from ess_sync.services.record_validator import validate_employee, validate_employment
from ess_sync.services.sync_errors import RecordError, RecordWriteError, SyncCancelled, ValidationError
from ess_sync.services.sync_log_sink import SyncLogSink
from ess_sync.services.upsert_mapper import MappedRow, map_employee, map_employment


class SourceSession(Protocol):
    def count_matching(self, predicate: ExtractionPredicate) -> int: ...

    def fetch_page(self, predicate: ExtractionPredicate, offset: int, limit: int) -> list[Any]: ...


class DestinationWriter(Protocol):
    def upsert_destination_row(self, row: MappedRow) -> None: ...


@dataclass(frozen=True)
class Batch:
    index: int
    offset: int
    size: int


def iter_batches(total: int, page_size: int) -> Iterator[Batch]:
    """Cover [0, total) once, in page_size slices; the last one may be shorter."""
    if page_size <= 0:
        raise ValueError("page_size must be positive")
    for index, offset in enumerate(range(0, total, page_size)):
        yield Batch(index=index, offset=offset, size=min(page_size, total - offset))


@dataclass(frozen=True)
class _Phase:
    entity: EntityKind
    label: str
    validate: Callable[[Any], None]
    map: Callable[[Any], MappedRow]


_EMPLOYEE_PHASE = _Phase(EntityKind.EMPLOYEE, "employee", validate_employee, map_employee)
_EMPLOYMENT_PHASE = _Phase(EntityKind.EMPLOYMENT, "employment", validate_employment, map_employment)


class SyncEngine:
    def __init__(self, edm_store, ess_store, repository: JobRepository, logger: logging.Logger | None = None) -> None:
        self._edm = edm_store
        self._ess = ess_store
        self._repository = repository
        self._logger = logger or logging.getLogger(__name__)

    def run(
        self,
        job_id: int,
        config: RunConfiguration,
        cancel_requested: Callable[[], bool] | None = None,
    ) -> ProgressTracker:
        tracker = ProgressTracker(job_id, self._repository, self._logger)
        sink = SyncLogSink(job_id, self._repository, self._logger)

        phases = []
        if config.sync_employees:
            phases.append(_EMPLOYEE_PHASE)
        if config.sync_employments:
            phases.append(_EMPLOYMENT_PHASE)

        with self._edm.session() as source, self._ess.transaction() as writer:
            for phase in phases:
                self._sync_phase(phase, job_id, config, source, writer, tracker, sink, cancel_requested)

        return tracker

    def _sync_phase(
        self,
        phase: _Phase,
        job_id: int,
        config: RunConfiguration,
        source: SourceSession,
        writer: DestinationWriter,
        tracker: ProgressTracker,
        sink: SyncLogSink,
        cancel_requested: Callable[[], bool] | None,
    ) -> None:
        predicate = build_predicate(phase.entity, config)
        self._logger.info("Starting %s sync (job %s, page size %s)", phase.label, job_id, config.page_size)

        total = source.count_matching(predicate)
        self._logger.info("Found %s %ss to sync", total, phase.label)

        for batch in iter_batches(total, config.page_size):
            records = source.fetch_page(predicate, batch.offset, config.page_size)
            for record in records:
                self._sync_record(phase, record, config, writer, tracker, sink)

            tracker.checkpoint()
            self._logger.info(
                "Processed batch %s: %s/%s %ss",
                batch.index + 1,
                batch.offset + len(records),
                total,
                phase.label,
            )

            if cancel_requested is not None and cancel_requested():
                self._logger.warning("Cancellation requested for job %s; rolling back", job_id)
                raise SyncCancelled(job_id)

    def _sync_record(
        self,
        phase: _Phase,
        record: SourceRecord,
        config: RunConfiguration,
        writer: DestinationWriter,
        tracker: ProgressTracker,
        sink: SyncLogSink,
    ) -> None:
        erp_code = record.erp_code
        try:
            if config.validate_data:
                phase.validate(record)
            writer.upsert_destination_row(phase.map(record))
        except RecordError as exc:
            message = f"Failed to sync {phase.label} {erp_code}: {exc}"
            tracker.record_failure(message)
            sink.error(message, erp_code, _error_metadata(exc))
        else:
            tracker.record_success()
            sink.info(f"{phase.label.capitalize()} {erp_code} synced successfully", erp_code)


def _error_metadata(exc: RecordError) -> dict[str, Any]:
    metadata: dict[str, Any] = {}
    if isinstance(exc, RecordWriteError):
        metadata.update(exc.detail)
    if isinstance(exc, ValidationError):
        metadata["field"] = exc.field
    metadata["error"] = str(exc)
    metadata["type"] = type(exc).__name__
    return metadata
