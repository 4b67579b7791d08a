from __future__ import annotations

from datetime import date
from decimal import Decimal
from typing import Any

import pytest

from propsync.exceptions import FormValidationError
from propsync.models.forms import InviteForm, LeaseForm, PropertyForm, TenantForm, UnitForm, validate_form


def _lease(**overrides: Any) -> dict[str, Any]:
    values: dict[str, Any] = {
        "propertyId": 3,
        "tenantId": 9,
        "unitId": 10,
        "startDate": "2026-01-01",
        "endDate": "2026-12-31",
        "rentAmount": "1200",
        "depositAmount": "2400",
        "paymentDueDay": 5,
    }
    values.update(overrides)
    return values


def test_valid_lease_dumps_camel_case_body() -> None:
    form = validate_form(LeaseForm, _lease())

    assert form.start_date == date(2026, 1, 1)
    assert form.rent_amount == Decimal("1200")
    body = form.to_body()
    assert body["propertyId"] == 3
    assert body["tenantId"] == 9
    assert body["startDate"] == "2026-01-01"
    assert body["rentFrequency"] == "MONTHLY"
    assert "terms" not in body


def test_lease_requires_property_and_tenant() -> None:
    with pytest.raises(FormValidationError) as exc_info:
        validate_form(LeaseForm, _lease(propertyId=0, tenantId=0))

    assert exc_info.value.field_errors["propertyId"] == ["Property is required"]
    assert exc_info.value.field_errors["tenantId"] == ["Tenant is required"]


def test_lease_end_before_start_is_rejected() -> None:
    with pytest.raises(FormValidationError) as exc_info:
        validate_form(LeaseForm, _lease(startDate="2026-06-01", endDate="2026-05-31"))

    assert exc_info.value.field_errors["__root__"] == ["End date must be on or after the start date"]


@pytest.mark.parametrize(
    ("overrides", "field", "message"),
    [
        ({"rentAmount": "0"}, "rentAmount", "Rent amount is required"),
        ({"depositAmount": "-1"}, "depositAmount", "Deposit cannot be negative"),
        ({"paymentDueDay": 32}, "paymentDueDay", "Payment due day must be between 1 and 31"),
    ],
)
def test_lease_field_messages(overrides: dict[str, Any], field: str, message: str) -> None:
    with pytest.raises(FormValidationError) as exc_info:
        validate_form(LeaseForm, _lease(**overrides))
    assert exc_info.value.field_errors[field] == [message]


def test_unknown_form_field_is_rejected() -> None:
    with pytest.raises(FormValidationError) as exc_info:
        validate_form(LeaseForm, _lease(discount="10"))
    assert "discount" in exc_info.value.field_errors


def test_property_form_min_lengths() -> None:
    with pytest.raises(FormValidationError) as exc_info:
        validate_form(
            PropertyForm,
            {
                "name": "H",
                "propertyType": "VILLA",
                "addressLine1": "12",
                "city": "D",
                "state": "Dubai",
                "country": "UAE",
                "pincode": "12",
            },
        )
    errors = exc_info.value.field_errors
    assert errors["name"] == ["Property name must be at least 2 characters"]
    assert errors["addressLine1"] == ["Address must be at least 5 characters"]
    assert errors["city"] == ["City must be at least 2 characters"]
    assert errors["pincode"] == ["Pincode must be at least 4 characters"]
    assert "state" not in errors


def test_unit_form_requires_name() -> None:
    with pytest.raises(FormValidationError) as exc_info:
        validate_form(UnitForm, {"unitName": "   "})
    assert exc_info.value.field_errors["unitName"] == ["Unit name is required"]


def test_tenant_empty_email_is_dropped() -> None:
    form = validate_form(TenantForm, {"legalName": "Jane Doe", "phone": "555-0100", "email": ""})
    assert form.email is None
    assert "email" not in form.to_body()


def test_tenant_invalid_email() -> None:
    with pytest.raises(FormValidationError) as exc_info:
        validate_form(TenantForm, {"legalName": "Jane Doe", "phone": "555-0100", "email": "jane@"})
    assert exc_info.value.field_errors["email"] == ["Valid email required"]


def test_invite_form_defaults_to_viewer() -> None:
    form = validate_form(InviteForm, {"email": "new@example.com"})
    assert form.to_body() == {"email": "new@example.com", "role": "VIEWER"}


def test_form_instance_passes_through() -> None:
    form = InviteForm(email="new@example.com", role="ADMIN")
    assert validate_form(InviteForm, form) is form
