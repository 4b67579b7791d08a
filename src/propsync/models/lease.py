"""Lease model, mapped from ``GET /api/leases`` and ``GET /api/leases/{id}``."""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal

from propsync.models._base import ApiEnum, ApiModel


class LeaseStatus(ApiEnum):
    UNKNOWN = "UNKNOWN"
    DRAFT = "DRAFT"
    ACTIVE = "ACTIVE"
    EXPIRED = "EXPIRED"
    TERMINATED = "TERMINATED"


class RentFrequency(ApiEnum):
    UNKNOWN = "UNKNOWN"
    WEEKLY = "WEEKLY"
    BIWEEKLY = "BIWEEKLY"
    MONTHLY = "MONTHLY"
    QUARTERLY = "QUARTERLY"
    YEARLY = "YEARLY"


class Lease(ApiModel):
    """A lease binding a tenant to a property (and optionally a unit)."""

    id: int
    property_id: int
    unit_id: int | None = None
    tenant_id: int
    status: LeaseStatus = LeaseStatus.DRAFT
    start_date: datetime
    end_date: datetime
    rent_amount: Decimal
    rent_frequency: RentFrequency = RentFrequency.MONTHLY
    deposit_amount: Decimal | None = None
    payment_due_day: int | None = 1
    late_fee_grace_days: int | None = None
    terms: str | None = None
    next_invoice_date: datetime | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @property
    def is_active(self) -> bool:
        return self.status == LeaseStatus.ACTIVE
