"""Data models for API responses and request forms."""

from propsync.models._base import ApiEnum, ApiModel, parse_list, parse_one
from propsync.models.forms import (
    FormModel,
    InviteForm,
    LeaseForm,
    PropertyForm,
    TenantForm,
    UnitForm,
    validate_form,
)
from propsync.models.lease import Lease, LeaseStatus, RentFrequency
from propsync.models.owner import (
    InvitationStatus,
    Owner,
    OwnerInvitation,
    OwnerTeamRole,
    OwnerType,
    TeamMember,
    TeamUser,
)
from propsync.models.property import (
    Property,
    PropertyTreeNode,
    PropertyType,
    PropertyWithUnits,
    Unit,
    UnitStatus,
    UsageType,
)
from propsync.models.tenant import Tenant, TenantType, VerificationStatus

__all__ = [
    "ApiEnum",
    "ApiModel",
    "FormModel",
    "InvitationStatus",
    "InviteForm",
    "Lease",
    "LeaseForm",
    "LeaseStatus",
    "Owner",
    "OwnerInvitation",
    "OwnerTeamRole",
    "OwnerType",
    "Property",
    "PropertyForm",
    "PropertyTreeNode",
    "PropertyType",
    "PropertyWithUnits",
    "RentFrequency",
    "TeamMember",
    "TeamUser",
    "Tenant",
    "TenantForm",
    "TenantType",
    "Unit",
    "UnitForm",
    "UnitStatus",
    "UsageType",
    "VerificationStatus",
    "parse_list",
    "parse_one",
    "validate_form",
]
