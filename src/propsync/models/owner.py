"""Owner, owner-team and invitation models.

Mapped from ``GET /api/owners``, ``GET /api/owners/{id}/team`` and
``GET /api/owners/{id}/invitations``.
"""

from __future__ import annotations

from datetime import datetime

from propsync.models._base import ApiEnum, ApiModel


class OwnerType(ApiEnum):
    UNKNOWN = "UNKNOWN"
    INDIVIDUAL = "INDIVIDUAL"
    COMPANY = "COMPANY"


class OwnerTeamRole(ApiEnum):
    UNKNOWN = "UNKNOWN"
    OWNER = "OWNER"
    ADMIN = "ADMIN"
    ACCOUNTANT = "ACCOUNTANT"
    MAINTENANCE_MANAGER = "MAINTENANCE_MANAGER"
    MAINTENANCE_STAFF = "MAINTENANCE_STAFF"
    VIEWER = "VIEWER"


class InvitationStatus(ApiEnum):
    UNKNOWN = "UNKNOWN"
    PENDING = "PENDING"
    ACCEPTED = "ACCEPTED"
    DECLINED = "DECLINED"
    EXPIRED = "EXPIRED"


class Owner(ApiModel):
    id: int
    owner_type: OwnerType = OwnerType.INDIVIDUAL
    legal_name: str
    trading_name: str | None = None
    email: str | None = None
    phone: str | None = None
    country: str | None = None
    is_default: int = 0
    created_at: datetime | None = None


class TeamUser(ApiModel):
    """The user record embedded in a team-member row."""

    id: int
    email: str | None = None
    full_name: str | None = None


class TeamMember(ApiModel):
    id: int
    owner_id: int
    user_id: int
    role: OwnerTeamRole = OwnerTeamRole.VIEWER
    is_active: int = 1
    user: TeamUser | None = None
    created_at: datetime | None = None


class OwnerInvitation(ApiModel):
    id: int
    owner_id: int
    email: str
    role: OwnerTeamRole = OwnerTeamRole.VIEWER
    status: InvitationStatus = InvitationStatus.PENDING
    invite_token: str | None = None
    expires_at: datetime | None = None
    created_at: datetime | None = None

    @property
    def is_pending(self) -> bool:
        return self.status == InvitationStatus.PENDING
