"""propsync - Async client and query cache for a property-management API."""

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("propsync")
except PackageNotFoundError:
    __version__ = "0+local"
from propsync import keys
from propsync.cache.entry import CacheEntry, CacheStatus
from propsync.cache.store import QueryCache, Subscription
from propsync.client import PropSyncClient
from propsync.config import SyncConfig
from propsync.exceptions import (
    ApiError,
    AuthenticationError,
    ConfigError,
    FormValidationError,
    PropSyncError,
    TransportError,
)
from propsync.models import (
    InviteForm,
    Lease,
    LeaseForm,
    Owner,
    OwnerInvitation,
    Property,
    PropertyForm,
    PropertyWithUnits,
    TeamMember,
    Tenant,
    TenantForm,
    Unit,
    UnitForm,
)
from propsync.mutation import MutationRequest, MutationResult, MutationRunner
from propsync.query_key import QueryKey, is_prefix, normalize_key
from propsync.views import CollectionView, ViewState

__all__ = [
    "__version__",
    "ApiError",
    "AuthenticationError",
    "CacheEntry",
    "CacheStatus",
    "CollectionView",
    "ConfigError",
    "FormValidationError",
    "InviteForm",
    "Lease",
    "LeaseForm",
    "MutationRequest",
    "MutationResult",
    "MutationRunner",
    "Owner",
    "OwnerInvitation",
    "Property",
    "PropertyForm",
    "PropertyWithUnits",
    "PropSyncClient",
    "PropSyncError",
    "QueryCache",
    "QueryKey",
    "Subscription",
    "SyncConfig",
    "TeamMember",
    "Tenant",
    "TenantForm",
    "TransportError",
    "Unit",
    "UnitForm",
    "ViewState",
    "is_prefix",
    "keys",
    "normalize_key",
]
