"""Property and unit models.

Mapped from ``GET /api/properties``, ``GET /api/properties/{id}`` and
``GET /api/properties/deleted``; list endpoints embed each property's
units.
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Any

from pydantic import Field

from propsync.models._base import ApiEnum, ApiModel


class PropertyType(ApiEnum):
    UNKNOWN = "UNKNOWN"
    APARTMENT = "APARTMENT"
    VILLA = "VILLA"
    PLOT = "PLOT"
    OFFICE = "OFFICE"
    SHOP = "SHOP"
    HOUSE = "HOUSE"
    TOWNHOUSE = "TOWNHOUSE"
    WAREHOUSE = "WAREHOUSE"
    INDUSTRIAL = "INDUSTRIAL"
    MIXED_USE = "MIXED_USE"
    LAND = "LAND"


class UsageType(ApiEnum):
    UNKNOWN = "UNKNOWN"
    LONG_TERM_RENTAL = "LONG_TERM_RENTAL"
    SHORT_TERM_RENTAL = "SHORT_TERM_RENTAL"
    OWNER_OCCUPIED = "OWNER_OCCUPIED"


class UnitStatus(ApiEnum):
    UNKNOWN = "UNKNOWN"
    VACANT = "VACANT"
    OCCUPIED = "OCCUPIED"


class Unit(ApiModel):
    """A rentable unit inside a property."""

    id: int
    property_id: int
    unit_name: str
    floor: str | None = None
    area_sq_ft: Decimal | None = None
    status: UnitStatus = UnitStatus.VACANT
    created_at: datetime | None = None
    updated_at: datetime | None = None


class Property(ApiModel):
    """A property record."""

    id: int
    owner_user_id: int | None = None
    name: str
    property_type: PropertyType = PropertyType.UNKNOWN
    usage_type: UsageType = UsageType.LONG_TERM_RENTAL
    currency_code: str | None = "USD"
    address_line1: str = ""
    address_line2: str | None = None
    city: str = ""
    state: str = ""
    country: str = ""
    pincode: str = ""
    images: list[str] = Field(default_factory=list)
    is_deleted: int = 0
    portfolio_tag: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @property
    def deleted(self) -> bool:
        """Soft-deleted properties live in the deleted list until restored."""
        return bool(self.is_deleted)


class PropertyWithUnits(Property):
    """List-endpoint shape: a property plus its units."""

    units: list[Unit] = Field(default_factory=list)

    @property
    def vacant_units(self) -> list[Unit]:
        return [unit for unit in self.units if unit.status == UnitStatus.VACANT]


class PropertyTreeNode(ApiModel):
    """One node of ``GET /api/properties/{id}/tree``."""

    id: int
    property_id: int
    parent_id: int | None = None
    label: str
    node_type: str = ""
    sort_order: int = 0
    metadata: dict[str, Any] = Field(default_factory=dict)
    children: list[PropertyTreeNode] = Field(default_factory=list)
