"""Client-side form schemas.

A form must validate before any request is sent. Validation failures
become :class:`propsync.exceptions.FormValidationError` with per-field
messages keyed by wire (camelCase) name, so a view can show them next to
the offending inputs.
"""

from __future__ import annotations

import re
from datetime import date
from decimal import Decimal
from typing import Any, Literal, TypeVar

from pydantic import BaseModel, ConfigDict, ValidationError, field_validator, model_validator
from pydantic.alias_generators import to_camel

from propsync.exceptions import FormValidationError

F = TypeVar("F", bound="FormModel")

_EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")


def _min_length(value: str, length: int, message: str) -> str:
    if len(value) < length:
        raise ValueError(message)
    return value


class FormModel(BaseModel):
    """Base for request-body schemas."""

    model_config = ConfigDict(
        extra="forbid",
        populate_by_name=True,
        alias_generator=to_camel,
        str_strip_whitespace=True,
    )

    def to_body(self) -> dict[str, Any]:
        """JSON request body with camelCase keys; unset optionals omitted."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


def _wire_name(form_cls: type[FormModel], loc: tuple[Any, ...]) -> str:
    if not loc:
        return "__root__"
    name = str(loc[0])
    field = form_cls.model_fields.get(name)
    if field is not None and field.alias:
        return field.alias
    return name


def validate_form(form_cls: type[F], data: F | dict[str, Any]) -> F:
    """Validate *data* against *form_cls* or raise :class:`FormValidationError`."""
    if isinstance(data, form_cls):
        return data
    try:
        return form_cls.model_validate(data)
    except ValidationError as exc:
        field_errors: dict[str, list[str]] = {}
        for err in exc.errors():
            field = _wire_name(form_cls, tuple(err.get("loc") or ()))
            ctx_error = (err.get("ctx") or {}).get("error")
            message = str(ctx_error) if ctx_error is not None else err["msg"]
            field_errors.setdefault(field, []).append(message)
        raise FormValidationError(
            f"{form_cls.__name__} is invalid: {', '.join(sorted(field_errors))}",
            field_errors=field_errors,
        ) from exc


class LeaseForm(FormModel):
    property_id: int
    tenant_id: int
    unit_id: int | None = None
    rent_frequency: Literal["WEEKLY", "BIWEEKLY", "MONTHLY", "QUARTERLY", "YEARLY"] = "MONTHLY"
    start_date: date
    end_date: date
    rent_amount: Decimal
    deposit_amount: Decimal | None = None
    payment_due_day: int = 1
    status: Literal["DRAFT", "ACTIVE", "EXPIRED", "TERMINATED"] = "DRAFT"
    terms: str | None = None

    @field_validator("property_id")
    @classmethod
    def _property_required(cls, value: int) -> int:
        if value < 1:
            raise ValueError("Property is required")
        return value

    @field_validator("tenant_id")
    @classmethod
    def _tenant_required(cls, value: int) -> int:
        if value < 1:
            raise ValueError("Tenant is required")
        return value

    @field_validator("rent_amount")
    @classmethod
    def _positive_rent(cls, value: Decimal) -> Decimal:
        if value <= 0:
            raise ValueError("Rent amount is required")
        return value

    @field_validator("deposit_amount")
    @classmethod
    def _non_negative_deposit(cls, value: Decimal | None) -> Decimal | None:
        if value is not None and value < 0:
            raise ValueError("Deposit cannot be negative")
        return value

    @field_validator("payment_due_day")
    @classmethod
    def _due_day_in_month(cls, value: int) -> int:
        if not 1 <= value <= 31:
            raise ValueError("Payment due day must be between 1 and 31")
        return value

    @model_validator(mode="after")
    def _end_after_start(self) -> LeaseForm:
        if self.end_date < self.start_date:
            raise ValueError("End date must be on or after the start date")
        return self


class PropertyForm(FormModel):
    name: str
    property_type: Literal[
        "APARTMENT",
        "VILLA",
        "PLOT",
        "OFFICE",
        "SHOP",
        "HOUSE",
        "TOWNHOUSE",
        "WAREHOUSE",
        "INDUSTRIAL",
        "MIXED_USE",
        "LAND",
    ]
    usage_type: Literal["LONG_TERM_RENTAL", "SHORT_TERM_RENTAL", "OWNER_OCCUPIED"] = "LONG_TERM_RENTAL"
    currency_code: str | None = None
    address_line1: str
    address_line2: str | None = None
    city: str
    state: str
    country: str
    pincode: str
    portfolio_tag: str | None = None

    @field_validator("name")
    @classmethod
    def _name(cls, value: str) -> str:
        return _min_length(value, 2, "Property name must be at least 2 characters")

    @field_validator("address_line1")
    @classmethod
    def _address(cls, value: str) -> str:
        return _min_length(value, 5, "Address must be at least 5 characters")

    @field_validator("city", "state", "country")
    @classmethod
    def _region(cls, value: str, info: Any) -> str:
        label = info.field_name.capitalize()
        return _min_length(value, 2, f"{label} must be at least 2 characters")

    @field_validator("pincode")
    @classmethod
    def _pincode(cls, value: str) -> str:
        return _min_length(value, 4, "Pincode must be at least 4 characters")


class UnitForm(FormModel):
    unit_name: str
    floor: str | None = None
    area_sq_ft: Decimal | None = None
    status: Literal["VACANT", "OCCUPIED"] = "VACANT"

    @field_validator("unit_name")
    @classmethod
    def _unit_name(cls, value: str) -> str:
        return _min_length(value, 1, "Unit name is required")


class TenantForm(FormModel):
    tenant_type: Literal["INDIVIDUAL", "COMPANY"] = "INDIVIDUAL"
    legal_name: str
    email: str | None = None
    phone: str
    registration_number: str | None = None
    id_number: str | None = None
    address_line1: str | None = None
    address_line2: str | None = None
    city: str | None = None
    country: str | None = None
    emergency_contact_name: str | None = None
    emergency_contact_phone: str | None = None
    notes: str | None = None

    @field_validator("legal_name")
    @classmethod
    def _legal_name(cls, value: str) -> str:
        return _min_length(value, 1, "Name is required")

    @field_validator("phone")
    @classmethod
    def _phone(cls, value: str) -> str:
        return _min_length(value, 1, "Phone is required")

    @field_validator("email")
    @classmethod
    def _email(cls, value: str | None) -> str | None:
        # An empty string means "no email", same as omitting it.
        if not value:
            return None
        if not _EMAIL_RE.match(value):
            raise ValueError("Valid email required")
        return value


class InviteForm(FormModel):
    email: str
    role: Literal["ADMIN", "ACCOUNTANT", "MAINTENANCE_MANAGER", "MAINTENANCE_STAFF", "VIEWER"] = "VIEWER"

    @field_validator("email")
    @classmethod
    def _email(cls, value: str) -> str:
        if not _EMAIL_RE.match(value):
            raise ValueError("Valid email required")
        return value
