"""Tenant model, mapped from ``GET /api/tenants`` and ``GET /api/tenants/{id}``."""

from __future__ import annotations

from datetime import datetime

from propsync.models._base import ApiEnum, ApiModel


class TenantType(ApiEnum):
    UNKNOWN = "UNKNOWN"
    INDIVIDUAL = "INDIVIDUAL"
    COMPANY = "COMPANY"


class VerificationStatus(ApiEnum):
    UNKNOWN = "UNKNOWN"
    PENDING = "PENDING"
    IN_PROGRESS = "IN_PROGRESS"
    VERIFIED = "VERIFIED"
    REJECTED = "REJECTED"


class Tenant(ApiModel):
    id: int
    tenant_type: TenantType = TenantType.INDIVIDUAL
    legal_name: str
    email: str | None = None
    phone: str = ""
    address_line1: str | None = None
    city: str | None = None
    country: str | None = None
    emergency_contact_name: str | None = None
    emergency_contact_phone: str | None = None
    notes: str | None = None
    verification_status: VerificationStatus = VerificationStatus.PENDING
    created_at: datetime | None = None
    updated_at: datetime | None = None
