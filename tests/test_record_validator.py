from __future__ import annotations

import pytest

from ess_sync.services.record_validator import validate_employee, validate_employment
from ess_sync.services.sync_errors import ValidationError

from fakes import employee, employment


def test_valid_employee_passes() -> None:
    validate_employee(employee(1))


@pytest.mark.parametrize(
    ("overrides", "field"),
    [
        ({"erp_code": None}, "erp_code"),
        ({"erp_code": "   "}, "erp_code"),
        ({"firstname": None}, "firstname"),
        ({"firstname": ""}, "firstname"),
        ({"lastname": None}, "lastname"),
    ],
)
def test_employee_missing_required_field(overrides, field) -> None:
    with pytest.raises(ValidationError) as info:
        validate_employee(employee(1, **overrides))
    assert info.value.field == field


def test_employee_error_carries_natural_key() -> None:
    with pytest.raises(ValidationError) as info:
        validate_employee(employee(7, firstname=None))
    assert info.value.erp_code == "E0007"
    assert "First name is required" in str(info.value)


def test_employment_only_requires_erp_code() -> None:
    validate_employment(employment(1, employee_id=1, department=None, position=None))

    with pytest.raises(ValidationError) as info:
        validate_employment(employment(1, employee_id=1, erp_code=None))
    assert info.value.field == "erp_code"
