from __future__ import annotations

from dataclasses import dataclass, fields
from datetime import date, datetime


@dataclass
class SourceEmployeeRecord:
    """Row of the EDM ``employee`` table."""

    id: int
    erp_code: str | None
    firstname: str | None
    lastname: str | None
    registration_number: str | None = None
    employee_phone_1: str | None = None
    employee_phone_2: str | None = None
    email: str | None = None
    gender: str | None = None
    company_enrolled_date: date | None = None
    mmc_first_enrolled_date: date | None = None
    emergency_contact_name: str | None = None
    emergency_contact_phone: str | None = None
    portrait_image: str | None = None
    portrait_image_fallback: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None
    deleted_at: datetime | None = None


@dataclass
class SourceEmploymentRecord:
    """Row of the EDM ``employee_employment`` table.

    The owning employee is referenced by ``employee_id`` only.
    """

    id: int
    erp_code: str | None
    employee_id: int | None
    grade: str | None = None
    commute_from: str | None = None
    vehicle_type: str | None = None
    work_location: str | None = None
    roster_schedule: str | None = None
    roster_type: str | None = None
    company: str | None = None
    unit: str | None = None
    unit_abbr: str | None = None
    unit_abbr2: str | None = None
    code: str | None = None
    subsection: str | None = None
    subsection_abbr: str | None = None
    section: str | None = None
    section_abbr: str | None = None
    section_mn: str | None = None
    department: str | None = None
    department_abbr: str | None = None
    division: str | None = None
    position: str | None = None
    position_type: str | None = None
    is_roster: bool = False
    working_condition: str | None = None
    employee_status: str | None = None
    employment_condition: str | None = None
    is_uhg_camp_resident: bool = False
    is_tkh_camp_resident: bool = False
    created_at: datetime | None = None
    updated_at: datetime | None = None
    deleted_at: datetime | None = None


EMPLOYEE_COLUMNS: tuple[str, ...] = tuple(f.name for f in fields(SourceEmployeeRecord))
EMPLOYMENT_COLUMNS: tuple[str, ...] = tuple(f.name for f in fields(SourceEmploymentRecord))
