from __future__ import annotations

from ess_sync.models.source_records import SourceEmployeeRecord, SourceEmploymentRecord
from ess_sync.services.sync_errors import ValidationError


def _is_blank(value: object) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


def validate_employee(employee: SourceEmployeeRecord) -> None:
    if _is_blank(employee.erp_code):
        raise ValidationError("erp_code", "ERP Code is required")
    if _is_blank(employee.firstname):
        raise ValidationError("firstname", "First name is required", employee.erp_code)
    if _is_blank(employee.lastname):
        raise ValidationError("lastname", "Last name is required", employee.erp_code)


def validate_employment(employment: SourceEmploymentRecord) -> None:
    if _is_blank(employment.erp_code):
        raise ValidationError("erp_code", "ERP Code is required")
