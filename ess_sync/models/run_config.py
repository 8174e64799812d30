from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from ess_sync.core.config import PAGE_SIZE_DEFAULT, PAGE_SIZE_MAX, PAGE_SIZE_MIN
from ess_sync.models.source_records import EMPLOYEE_COLUMNS, EMPLOYMENT_COLUMNS
from ess_sync.services.sync_errors import InvalidRunConfiguration

FILTER_OPERATORS = ("eq", "ne", "in")

# Source columns a custom filter may reference. Surrogate ids are not syncable.
FILTERABLE_COLUMNS: frozenset[str] = frozenset(
    c for c in (*EMPLOYEE_COLUMNS, *EMPLOYMENT_COLUMNS) if c != "id"
)

_SCALAR_TYPES = (str, int, float, bool)


@dataclass(frozen=True)
class CustomFilter:
    column: str
    operator: str
    value: Any

    def validate(self) -> None:
        if self.column not in FILTERABLE_COLUMNS:
            raise InvalidRunConfiguration(f"Unknown filter column '{self.column}'")
        if self.operator not in FILTER_OPERATORS:
            raise InvalidRunConfiguration(
                f"Unsupported filter operator '{self.operator}' "
                f"(expected one of: {', '.join(FILTER_OPERATORS)})"
            )
        if self.operator == "in":
            if not isinstance(self.value, (list, tuple)) or not self.value:
                raise InvalidRunConfiguration(
                    f"Filter on '{self.column}' with operator 'in' needs a non-empty list"
                )
            if not all(isinstance(v, _SCALAR_TYPES) for v in self.value):
                raise InvalidRunConfiguration(f"Filter on '{self.column}' has non-scalar values")
        elif self.value is not None and not isinstance(self.value, _SCALAR_TYPES):
            raise InvalidRunConfiguration(f"Filter on '{self.column}' has a non-scalar value")

    def to_dict(self) -> dict[str, Any]:
        value = list(self.value) if isinstance(self.value, tuple) else self.value
        return {"column": self.column, "operator": self.operator, "value": value}


@dataclass(frozen=True)
class RunConfiguration:
    page_size: int = PAGE_SIZE_DEFAULT
    backup_before_sync: bool = True
    validate_data: bool = True
    sync_employees: bool = True
    sync_employments: bool = True
    exclude_deleted: bool = True
    custom_filters: tuple[CustomFilter, ...] = field(default_factory=tuple)

    def validate(self) -> None:
        if isinstance(self.page_size, bool) or not isinstance(self.page_size, int):
            raise InvalidRunConfiguration("pageSize must be an integer")
        if not PAGE_SIZE_MIN <= self.page_size <= PAGE_SIZE_MAX:
            raise InvalidRunConfiguration(
                f"pageSize must be between {PAGE_SIZE_MIN} and {PAGE_SIZE_MAX}, got {self.page_size}"
            )
        for f in self.custom_filters:
            f.validate()

    def filters_for(self, columns: tuple[str, ...]) -> list[CustomFilter]:
        """Filters whose column exists on the given entity."""
        return [f for f in self.custom_filters if f.column in columns]

    def to_dict(self) -> dict[str, Any]:
        return {
            "pageSize": self.page_size,
            "backupBeforeSync": self.backup_before_sync,
            "validateData": self.validate_data,
            "syncEmployees": self.sync_employees,
            "syncEmployments": self.sync_employments,
            "excludeDeleted": self.exclude_deleted,
            "customFilters": [f.to_dict() for f in self.custom_filters],
        }
