"""
Translation of EDM source records into rows of the ESS ``public.employee`` table.

The destination flattens employee and employment data into one row keyed by
``"erpCode"``. Each sync phase owns a disjoint set of columns; the ON CONFLICT
update of a phase only touches the columns it owns, so the employee phase and
the employment phase never overwrite each other's data.
"""

from __future__ import annotations

from dataclasses import dataclass
from functools import lru_cache
from typing import Any

from psycopg import sql

from ess_sync.models.source_records import SourceEmployeeRecord, SourceEmploymentRecord
from ess_sync.services.sync_errors import RecordWriteError

DESTINATION_SCHEMA = "public"
DESTINATION_TABLE = "employee"
NATURAL_KEY = "erpCode"

_ROW_TIMESTAMPS = frozenset({"createdAt", "updatedAt", "deletedAt"})


@dataclass(frozen=True)
class PhaseMapping:
    name: str
    # (destination column, source attribute) in statement order
    columns: tuple[tuple[str, str], ...]
    # written on insert, left alone on conflict
    insert_only: frozenset[str] = frozenset()

    @property
    def destination_columns(self) -> tuple[str, ...]:
        return tuple(dest for dest, _ in self.columns)

    @property
    def update_columns(self) -> tuple[str, ...]:
        return tuple(
            dest
            for dest in self.destination_columns
            if dest != NATURAL_KEY and dest not in self.insert_only
        )


@dataclass(frozen=True)
class MappedRow:
    mapping: PhaseMapping
    values: dict[str, Any]

    @property
    def erp_code(self) -> str:
        return self.values[NATURAL_KEY]

    def params(self) -> list[Any]:
        return [self.values[c] for c in self.mapping.destination_columns]


EMPLOYEE_MAPPING = PhaseMapping(
    name="employee",
    columns=(
        ("erpCode", "erp_code"),
        ("registrationNumber", "registration_number"),
        ("firstName", "firstname"),
        ("lastName", "lastname"),
        ("phoneNumber", "employee_phone_1"),
        ("phoneNumber2", "employee_phone_2"),
        ("workEmail", "email"),
        ("gender", "gender"),
        ("startWorkingDate", "company_enrolled_date"),
        ("firstStartWorkingDate", "mmc_first_enrolled_date"),
        ("emergencyContactName", "emergency_contact_name"),
        ("emergencyContactPhone", "emergency_contact_phone"),
        ("portraitImage", "portrait_image"),
        ("portraitImageFallback", "portrait_image_fallback"),
        ("createdAt", "created_at"),
        ("updatedAt", "updated_at"),
        ("deletedAt", "deleted_at"),
    ),
    insert_only=frozenset({"createdAt"}),
)

# Row timestamps belong to the employee phase.
EMPLOYMENT_MAPPING = PhaseMapping(
    name="employment",
    columns=(
        ("erpCode", "erp_code"),
        ("grade", "grade"),
        ("commuteFrom", "commute_from"),
        ("vehicleType", "vehicle_type"),
        ("workLocation", "work_location"),
        ("rosterSchedule", "roster_schedule"),
        ("rosterType", "roster_type"),
        ("company", "company"),
        ("unit", "unit"),
        ("unitAbbr", "unit_abbr"),
        ("unitAbbr2", "unit_abbr2"),
        ("code", "code"),
        ("section", "subsection"),
        ("sectionAbbr", "subsection_abbr"),
        ("office", "section"),
        ("officeAbbr", "section_abbr"),
        ("officeMn", "section_mn"),
        ("department", "department"),
        ("departmentAbbr", "department_abbr"),
        ("division", "division"),
        ("position", "position"),
        ("positionType", "position_type"),
        ("isRoster", "is_roster"),
        ("workingCondition", "working_condition"),
        ("status", "employee_status"),
        ("employmentCondition", "employment_condition"),
        ("isUHGCampResident", "is_uhg_camp_resident"),
        ("isTKHCampResident", "is_tkh_camp_resident"),
        ("createdAt", "created_at"),
        ("updatedAt", "updated_at"),
        ("deletedAt", "deleted_at"),
    ),
    insert_only=_ROW_TIMESTAMPS,
)


def _map(mapping: PhaseMapping, record: Any) -> MappedRow:
    erp_code = getattr(record, "erp_code", None)
    if erp_code is None or (isinstance(erp_code, str) and not erp_code.strip()):
        raise RecordWriteError(f"Cannot upsert {mapping.name} record {record.id} without an ERP code")
    try:
        values = {dest: getattr(record, src) for dest, src in mapping.columns}
    except AttributeError as exc:
        raise RecordWriteError(f"Unmappable {mapping.name} record: {exc}", erp_code) from exc
    return MappedRow(mapping=mapping, values=values)


def map_employee(employee: SourceEmployeeRecord) -> MappedRow:
    return _map(EMPLOYEE_MAPPING, employee)


def map_employment(employment: SourceEmploymentRecord) -> MappedRow:
    return _map(EMPLOYMENT_MAPPING, employment)


@lru_cache(maxsize=None)
def build_upsert_statement(mapping: PhaseMapping) -> sql.Composed:
    cols = mapping.destination_columns
    update_cols = mapping.update_columns

    stmt = sql.SQL("INSERT INTO {}.{} ({}) VALUES ({})").format(
        sql.Identifier(DESTINATION_SCHEMA),
        sql.Identifier(DESTINATION_TABLE),
        sql.SQL(", ").join(sql.Identifier(c) for c in cols),
        sql.SQL(", ").join(sql.Placeholder() for _ in cols),
    )

    if update_cols:
        set_clause = sql.SQL(", ").join(
            sql.SQL("{} = EXCLUDED.{}").format(sql.Identifier(c), sql.Identifier(c)) for c in update_cols
        )
        return stmt + sql.SQL(" ON CONFLICT ({}) DO UPDATE SET {}").format(
            sql.Identifier(NATURAL_KEY),
            set_clause,
        )
    return stmt + sql.SQL(" ON CONFLICT ({}) DO NOTHING").format(sql.Identifier(NATURAL_KEY))
