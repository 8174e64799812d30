from __future__ import annotations

from datetime import date

import pytest
from psycopg import sql

from ess_sync.services.sync_errors import RecordWriteError
from ess_sync.services.upsert_mapper import (
    EMPLOYEE_MAPPING,
    EMPLOYMENT_MAPPING,
    NATURAL_KEY,
    build_upsert_statement,
    map_employee,
    map_employment,
)

from fakes import employee, employment


def test_employee_fields_are_renamed_to_destination_columns() -> None:
    row = map_employee(
        employee(3, employee_phone_1="99112233", email="bold@example.mn", mmc_first_enrolled_date=date(2010, 5, 1))
    )

    assert row.erp_code == "E0003"
    assert row.values["firstName"] == "First3"
    assert row.values["lastName"] == "Last3"
    assert row.values["phoneNumber"] == "99112233"
    assert row.values["workEmail"] == "bold@example.mn"
    assert row.values["firstStartWorkingDate"] == date(2010, 5, 1)
    assert list(row.values) == list(EMPLOYEE_MAPPING.destination_columns)


def test_employment_section_hierarchy_is_shifted() -> None:
    row = map_employment(
        employment(
            1,
            employee_id=3,
            subsection="Backend",
            subsection_abbr="BE",
            section="Software",
            section_abbr="SW",
            section_mn="Программ",
            employee_status="active",
            is_uhg_camp_resident=True,
        )
    )

    assert row.values["section"] == "Backend"
    assert row.values["sectionAbbr"] == "BE"
    assert row.values["office"] == "Software"
    assert row.values["officeAbbr"] == "SW"
    assert row.values["officeMn"] == "Программ"
    assert row.values["status"] == "active"
    assert row.values["isUHGCampResident"] is True


def test_params_follow_column_order() -> None:
    row = map_employee(employee(1))
    assert row.params()[0] == "E0001"
    assert len(row.params()) == len(EMPLOYEE_MAPPING.destination_columns)


def test_phases_update_disjoint_columns() -> None:
    employee_cols = set(EMPLOYEE_MAPPING.update_columns)
    employment_cols = set(EMPLOYMENT_MAPPING.update_columns)

    assert employee_cols.isdisjoint(employment_cols)
    assert NATURAL_KEY not in employee_cols | employment_cols


def test_row_timestamps_belong_to_employee_phase() -> None:
    assert {"updatedAt", "deletedAt"} <= set(EMPLOYEE_MAPPING.update_columns)
    assert "createdAt" not in EMPLOYEE_MAPPING.update_columns
    for column in ("createdAt", "updatedAt", "deletedAt"):
        assert column in EMPLOYMENT_MAPPING.destination_columns
        assert column not in EMPLOYMENT_MAPPING.update_columns


def test_record_without_erp_code_cannot_be_mapped() -> None:
    with pytest.raises(RecordWriteError):
        map_employee(employee(1, erp_code=None))
    with pytest.raises(RecordWriteError):
        map_employment(employment(1, employee_id=1, erp_code=""))


def test_upsert_statement_is_cached_per_phase() -> None:
    stmt = build_upsert_statement(EMPLOYEE_MAPPING)

    assert isinstance(stmt, sql.Composed)
    assert build_upsert_statement(EMPLOYEE_MAPPING) is stmt
    assert build_upsert_statement(EMPLOYMENT_MAPPING) is not stmt
