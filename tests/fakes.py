"""In-memory stand-ins for the EDM/ESS databases and the notification webhook."""

from __future__ import annotations

import copy
from contextlib import contextmanager
from datetime import date, datetime, timezone
from typing import Any, Iterator

from ess_sync.models.run_config import CustomFilter
from ess_sync.models.source_records import SourceEmployeeRecord, SourceEmploymentRecord
from ess_sync.models.sync_job import SyncResult
from ess_sync.services.edm_store import EntityKind, ExtractionPredicate
from ess_sync.services.sync_errors import DestinationStoreError, RecordWriteError, SourceStoreError
from ess_sync.services.upsert_mapper import MappedRow

CREATED = datetime(2024, 1, 1, tzinfo=timezone.utc)


def employee(id: int, erp_code: str | None = "", **fields: Any) -> SourceEmployeeRecord:
    values: dict[str, Any] = {
        "firstname": f"First{id}",
        "lastname": f"Last{id}",
        "email": f"user{id}@example.mn",
        "company_enrolled_date": date(2020, 1, id % 28 + 1),
        "created_at": CREATED,
        "updated_at": CREATED,
    }
    values.update(fields)
    return SourceEmployeeRecord(id=id, erp_code=f"E{id:04d}" if erp_code == "" else erp_code, **values)


def employment(id: int, employee_id: int, erp_code: str | None = "", **fields: Any) -> SourceEmploymentRecord:
    values: dict[str, Any] = {
        "department": "IT",
        "position": "Engineer",
        "employee_status": "active",
        "created_at": CREATED,
        "updated_at": CREATED,
    }
    values.update(fields)
    return SourceEmploymentRecord(
        id=id,
        erp_code=f"E{employee_id:04d}" if erp_code == "" else erp_code,
        employee_id=employee_id,
        **values,
    )


def _matches(record: Any, f: CustomFilter) -> bool:
    value = getattr(record, f.column)
    if f.operator == "in":
        return value in f.value
    if f.operator == "ne":
        return value != f.value
    return value == f.value


class FakeEdmStore:
    def __init__(
        self,
        employees: list[SourceEmployeeRecord] = (),
        employments: list[SourceEmploymentRecord] = (),
        fail_on_fetch: int | None = None,
    ) -> None:
        self.employees = list(employees)
        self.employments = list(employments)
        self.fail_on_fetch = fail_on_fetch
        self.fetch_calls: list[tuple[EntityKind, int, int]] = []
        self.count_calls: list[EntityKind] = []

    @contextmanager
    def session(self) -> Iterator[FakeEdmStore]:
        yield self

    def _matching(self, predicate: ExtractionPredicate) -> list[Any]:
        owners = {e.id: e for e in self.employees}
        rows = self.employees if predicate.entity is EntityKind.EMPLOYEE else self.employments
        out = []
        for record in sorted(rows, key=lambda r: r.id):
            if predicate.exclude_deleted:
                if record.deleted_at is not None:
                    continue
                if predicate.entity is EntityKind.EMPLOYMENT:
                    owner = owners.get(record.employee_id)
                    if owner is not None and owner.deleted_at is not None:
                        continue
            if all(_matches(record, f) for f in predicate.filters):
                out.append(record)
        return out

    def count_matching(self, predicate: ExtractionPredicate) -> int:
        self.count_calls.append(predicate.entity)
        return len(self._matching(predicate))

    def fetch_page(self, predicate: ExtractionPredicate, offset: int, limit: int) -> list[Any]:
        if self.fail_on_fetch is not None and len(self.fetch_calls) == self.fail_on_fetch:
            raise SourceStoreError("connection to EDM lost")
        self.fetch_calls.append((predicate.entity, offset, limit))
        return self._matching(predicate)[offset : offset + limit]


class _FakeWriter:
    def __init__(self, store: FakeEssStore, staged: dict[str, dict[str, Any]]) -> None:
        self._store = store
        self._staged = staged

    def upsert_destination_row(self, row: MappedRow) -> None:
        if row.erp_code in self._store.reject:
            raise RecordWriteError(
                "value too long for type character varying(20)",
                row.erp_code,
                detail={"pgError": "StringDataRightTruncation", "sqlstate": "22001"},
            )
        existing = self._staged.get(row.erp_code)
        if existing is None:
            self._staged[row.erp_code] = dict(row.values)
        else:
            for column in row.mapping.update_columns:
                existing[column] = row.values[column]
        self._store.writes += 1


class FakeEssStore:
    """Rows keyed by erpCode; a transaction stages a copy and swaps it in on commit."""

    def __init__(self, reject: set[str] | None = None) -> None:
        self.rows: dict[str, dict[str, Any]] = {}
        self.reject = reject or set()
        self.writes = 0
        self.commits = 0
        self.rollbacks = 0

    @contextmanager
    def transaction(self) -> Iterator[_FakeWriter]:
        staged = copy.deepcopy(self.rows)
        try:
            yield _FakeWriter(self, staged)
        except BaseException:
            self.rollbacks += 1
            raise
        self.rows = staged
        self.commits += 1

    def export_rows(self) -> list[dict[str, Any]]:
        return [dict(self.rows[k]) for k in sorted(self.rows)]


class BrokenEssStore(FakeEssStore):
    def export_rows(self) -> list[dict[str, Any]]:
        raise DestinationStoreError("Unable to read ESS employees: connection refused")


class RecordingNotifications:
    def __init__(self) -> None:
        self.completed: list[SyncResult] = []
        self.failed: list[tuple[int | None, str]] = []

    def notify_sync_completed(self, result: SyncResult) -> bool:
        self.completed.append(result)
        return True

    def notify_sync_failed(self, job_id: int | None, message: str) -> bool:
        self.failed.append((job_id, message))
        return True
