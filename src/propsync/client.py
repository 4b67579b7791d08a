"""High-level async client for the property-management API."""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable
from datetime import datetime
from typing import Any, Literal, TypeVar, overload

import aiohttp
from pydantic import BaseModel

from propsync import keys as _keys
from propsync._constants import UNAUTHORIZED_RETURN_NULL
from propsync._transport import HttpTransport, Transport
from propsync.cache.entry import CacheEntry, CacheStatus
from propsync.cache.store import FetchFn, KeyLike, Listener, QueryCache, Subscription
from propsync.config import SyncConfig
from propsync.exceptions import AuthenticationError, PropSyncError
from propsync.models._base import parse_list, parse_one
from propsync.models.forms import (
    FormModel,
    InviteForm,
    LeaseForm,
    PropertyForm,
    TenantForm,
    UnitForm,
    validate_form,
)
from propsync.models.lease import Lease
from propsync.models.owner import Owner, OwnerInvitation, TeamMember
from propsync.models.property import PropertyTreeNode, PropertyWithUnits, Unit
from propsync.models.tenant import Tenant
from propsync.mutation import ErrorCallback, MutationRequest, MutationResult, MutationRunner, SuccessCallback
from propsync.query_key import QueryKey, key_to_path, normalize_key
from propsync.views import CollectionView

_logger = logging.getLogger(__name__)

T = TypeVar("T")
M = TypeVar("M", bound=BaseModel)


class PropSyncClient:
    """Async client with a query cache in front of the REST API.

    Usage::

        async with PropSyncClient(config) as client:
            leases = await client.get_leases()
            await client.create_lease(LeaseForm(...))

    Every client owns its own :class:`QueryCache`; nothing is shared at
    module level, so each test (or each user session) gets an isolated
    cache.
    """

    def __init__(
        self,
        config: SyncConfig | None = None,
        *,
        session: aiohttp.ClientSession | None = None,
        transport: Transport | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._config = config or SyncConfig()
        self._external_session = session is not None
        self._http_session = session
        self._transport: Transport | None = transport
        self._injected_transport = transport is not None
        cache_kwargs: dict[str, Any] = {
            "default_fetch_fn": self.query,
            "stale_time": self._config.stale_time,
            "gc_time": self._config.gc_time,
        }
        if clock is not None:
            cache_kwargs["clock"] = clock
        self._cache = QueryCache(**cache_kwargs)

    # ------------------------------------------------------------------
    # Context manager lifecycle
    # ------------------------------------------------------------------

    async def __aenter__(self) -> PropSyncClient:
        if not self._injected_transport:
            if self._http_session is None:
                self._http_session = aiohttp.ClientSession()
            self._transport = HttpTransport(self._config, self._http_session)
        return self

    async def __aexit__(self, *exc: Any) -> None:
        await self._cache.close()
        if not self._external_session and self._http_session is not None:
            await self._http_session.close()
            self._http_session = None
        if not self._injected_transport:
            self._transport = None

    @property
    def config(self) -> SyncConfig:
        return self._config

    @property
    def cache(self) -> QueryCache:
        return self._cache

    def _require_transport(self) -> Transport:
        if self._transport is None:
            raise PropSyncError("Client not initialized. Use 'async with PropSyncClient(...) as client:'")
        return self._transport

    # ------------------------------------------------------------------
    # Generic request / query / mutation
    # ------------------------------------------------------------------

    async def api_request(self, method: str, url: str, data: FormModel | Any = None) -> Any:
        """Send one request; form models are serialized to camelCase JSON."""
        body = data.to_body() if isinstance(data, FormModel) else data
        return await self._require_transport().request(method.upper(), url, json_body=body)

    async def query(self, key: QueryKey) -> Any:
        """Default fetcher: ``GET`` the path spelled by the key's segments."""
        try:
            return await self._require_transport().request("GET", key_to_path(key))
        except AuthenticationError:
            if self._config.unauthorized_behavior == UNAUTHORIZED_RETURN_NULL:
                _logger.debug("401 on %s resolved to None", key)
                return None
            raise

    async def read_entry(self, key: KeyLike, fetch_fn: FetchFn | None = None) -> CacheEntry:
        """Cache entry for *key*; fetch failures stay on ``entry.error``."""
        return await self._cache.read(key, fetch_fn)

    @overload
    async def read(self, key: KeyLike, model: type[M], *, many: Literal[False] = ...) -> M: ...

    @overload
    async def read(self, key: KeyLike, model: type[M], *, many: Literal[True]) -> list[M]: ...

    async def read(self, key: KeyLike, model: type[M], *, many: bool = False) -> M | list[M]:
        """Read *key* through the cache and parse it into *model*.

        Unlike the cache itself this raises: the stored fetch error if the
        last fetch failed, or :class:`ApiError` if the payload does not fit
        *model*.
        """
        qk = normalize_key(key)
        entry = await self._cache.read(qk)
        if entry.status == CacheStatus.ERROR and entry.error is not None:
            raise entry.error
        endpoint = key_to_path(qk)
        if many:
            return parse_list(model, entry.data or [], endpoint=endpoint)
        return parse_one(model, entry.data, endpoint=endpoint)

    def invalidate(self, key: KeyLike, *, exact: bool = False, refetch: bool = True) -> list[QueryKey]:
        return self._cache.invalidate(key, exact=exact, refetch=refetch)

    def subscribe(
        self,
        key: KeyLike,
        callback: Listener,
        fetch_fn: FetchFn | None = None,
        *,
        enabled: bool = True,
    ) -> Subscription:
        return self._cache.subscribe(key, callback, fetch_fn, enabled=enabled)

    def view(self, key: KeyLike, **kwargs: Any) -> CollectionView[Any]:
        """A :class:`CollectionView` on this client's cache."""
        kwargs.setdefault("keep_previous_data", self._config.keep_previous_data)
        return CollectionView(self._cache, key, **kwargs)

    def mutation(self) -> MutationRunner:
        """A runner for one call site (tracks its own ``is_pending``)."""
        return MutationRunner(self._cache)

    async def mutate(
        self,
        method: str,
        url: str,
        data: FormModel | Any = None,
        *,
        invalidates: Iterable[KeyLike] = (),
        on_success: SuccessCallback | None = None,
        on_error: ErrorCallback | None = None,
        parse: Callable[[Any], T] | None = None,
        runner: MutationRunner | None = None,
    ) -> MutationResult[Any]:
        """Send a write through a mutation runner and invalidate on success."""
        body = data.to_body() if isinstance(data, FormModel) else data
        request = MutationRequest(method, url, body, tuple(normalize_key(k) for k in invalidates))
        return await self.execute(request, on_success=on_success, on_error=on_error, parse=parse, runner=runner)

    async def execute(
        self,
        request: MutationRequest,
        *,
        on_success: SuccessCallback | None = None,
        on_error: ErrorCallback | None = None,
        parse: Callable[[Any], T] | None = None,
        runner: MutationRunner | None = None,
    ) -> MutationResult[Any]:
        """Run a prepared :class:`MutationRequest`."""

        async def _call() -> Any:
            return await self.api_request(request.method, request.url, request.body)

        return await (runner or self.mutation()).run(
            _call,
            on_success=on_success,
            on_error=on_error,
            invalidates=request.invalidates,
            parse=parse,
        )

    # ------------------------------------------------------------------
    # Properties & units
    # ------------------------------------------------------------------

    async def get_properties(self) -> list[PropertyWithUnits]:
        return await self.read(_keys.PROPERTIES.all(), PropertyWithUnits, many=True)

    async def get_property(self, property_id: int) -> PropertyWithUnits:
        return await self.read(_keys.PROPERTIES.detail(property_id), PropertyWithUnits)

    async def get_property_tree(self, property_id: int) -> list[PropertyTreeNode]:
        return await self.read(_keys.property_tree(property_id), PropertyTreeNode, many=True)

    async def get_deleted_properties(self) -> list[PropertyWithUnits]:
        return await self.read(_keys.DELETED_PROPERTIES.all(), PropertyWithUnits, many=True)

    async def create_property(
        self,
        form: PropertyForm | dict[str, Any],
        *,
        on_success: SuccessCallback | None = None,
        on_error: ErrorCallback | None = None,
    ) -> MutationResult[PropertyWithUnits]:
        valid = validate_form(PropertyForm, form)
        return await self.mutate(
            "POST",
            _keys.PROPERTIES.url(),
            valid,
            invalidates=_keys.PROPERTIES.on_create(),
            parse=lambda d: parse_one(PropertyWithUnits, d, endpoint=_keys.PROPERTIES.path),
            on_success=on_success,
            on_error=on_error,
        )

    async def update_property(
        self,
        property_id: int,
        form: PropertyForm | dict[str, Any],
        *,
        on_success: SuccessCallback | None = None,
        on_error: ErrorCallback | None = None,
    ) -> MutationResult[PropertyWithUnits]:
        valid = validate_form(PropertyForm, form)
        url = _keys.PROPERTIES.url(property_id)
        return await self.mutate(
            "PUT",
            url,
            valid,
            invalidates=_keys.PROPERTIES.on_update(property_id),
            parse=lambda d: parse_one(PropertyWithUnits, d, endpoint=url),
            on_success=on_success,
            on_error=on_error,
        )

    async def delete_property(
        self,
        property_id: int,
        *,
        on_success: SuccessCallback | None = None,
        on_error: ErrorCallback | None = None,
    ) -> MutationResult[Any]:
        """Soft delete; the property shows up in the deleted list afterwards."""
        return await self.mutate(
            "DELETE",
            _keys.PROPERTIES.url(property_id),
            invalidates=_keys.property_delete(property_id),
            on_success=on_success,
            on_error=on_error,
        )

    async def restore_property(
        self,
        property_id: int,
        *,
        on_success: SuccessCallback | None = None,
        on_error: ErrorCallback | None = None,
    ) -> MutationResult[Any]:
        return await self.mutate(
            "POST",
            _keys.PROPERTIES.url(property_id, "restore"),
            invalidates=_keys.property_restore(property_id),
            on_success=on_success,
            on_error=on_error,
        )

    async def purge_property(
        self,
        property_id: int,
        *,
        on_success: SuccessCallback | None = None,
        on_error: ErrorCallback | None = None,
    ) -> MutationResult[Any]:
        """Permanently delete a soft-deleted property and its units."""
        return await self.mutate(
            "DELETE",
            _keys.PROPERTIES.url(property_id, "permanent"),
            invalidates=_keys.property_purge(property_id),
            on_success=on_success,
            on_error=on_error,
        )

    async def create_unit(
        self,
        property_id: int,
        form: UnitForm | dict[str, Any],
        *,
        on_success: SuccessCallback | None = None,
        on_error: ErrorCallback | None = None,
    ) -> MutationResult[Unit]:
        valid = validate_form(UnitForm, form)
        url = _keys.PROPERTIES.url(property_id, "units")
        return await self.mutate(
            "POST",
            url,
            valid,
            invalidates=_keys.unit_write(property_id),
            parse=lambda d: parse_one(Unit, d, endpoint=url),
            on_success=on_success,
            on_error=on_error,
        )

    async def update_unit(
        self,
        unit_id: int,
        property_id: int,
        form: UnitForm | dict[str, Any],
        *,
        on_success: SuccessCallback | None = None,
        on_error: ErrorCallback | None = None,
    ) -> MutationResult[Unit]:
        valid = validate_form(UnitForm, form)
        url = _keys.UNITS.url(unit_id)
        return await self.mutate(
            "PUT",
            url,
            valid,
            invalidates=_keys.unit_write(property_id),
            parse=lambda d: parse_one(Unit, d, endpoint=url),
            on_success=on_success,
            on_error=on_error,
        )

    async def delete_unit(
        self,
        unit_id: int,
        property_id: int,
        *,
        on_success: SuccessCallback | None = None,
        on_error: ErrorCallback | None = None,
    ) -> MutationResult[Any]:
        return await self.mutate(
            "DELETE",
            _keys.UNITS.url(unit_id),
            invalidates=_keys.unit_write(property_id),
            on_success=on_success,
            on_error=on_error,
        )

    # ------------------------------------------------------------------
    # Leases
    # ------------------------------------------------------------------

    async def get_leases(self) -> list[Lease]:
        return await self.read(_keys.LEASES.all(), Lease, many=True)

    async def get_lease(self, lease_id: int) -> Lease:
        return await self.read(_keys.LEASES.detail(lease_id), Lease)

    async def create_lease(
        self,
        form: LeaseForm | dict[str, Any],
        *,
        on_success: SuccessCallback | None = None,
        on_error: ErrorCallback | None = None,
    ) -> MutationResult[Lease]:
        valid = validate_form(LeaseForm, form)
        return await self.mutate(
            "POST",
            _keys.LEASES.url(),
            valid,
            invalidates=_keys.lease_write(property_id=valid.property_id, tenant_id=valid.tenant_id),
            parse=lambda d: parse_one(Lease, d, endpoint=_keys.LEASES.path),
            on_success=on_success,
            on_error=on_error,
        )

    async def update_lease(
        self,
        lease_id: int,
        form: LeaseForm | dict[str, Any],
        *,
        on_success: SuccessCallback | None = None,
        on_error: ErrorCallback | None = None,
    ) -> MutationResult[Lease]:
        valid = validate_form(LeaseForm, form)
        url = _keys.LEASES.url(lease_id)
        return await self.mutate(
            "PUT",
            url,
            valid,
            invalidates=_keys.lease_write(lease_id, property_id=valid.property_id, tenant_id=valid.tenant_id),
            parse=lambda d: parse_one(Lease, d, endpoint=url),
            on_success=on_success,
            on_error=on_error,
        )

    async def delete_lease(
        self,
        lease_id: int,
        *,
        property_id: int | None = None,
        tenant_id: int | None = None,
        on_success: SuccessCallback | None = None,
        on_error: ErrorCallback | None = None,
    ) -> MutationResult[Any]:
        return await self.mutate(
            "DELETE",
            _keys.LEASES.url(lease_id),
            invalidates=_keys.lease_write(lease_id, property_id=property_id, tenant_id=tenant_id),
            on_success=on_success,
            on_error=on_error,
        )

    # ------------------------------------------------------------------
    # Tenants
    # ------------------------------------------------------------------

    async def get_tenants(self) -> list[Tenant]:
        return await self.read(_keys.TENANTS.all(), Tenant, many=True)

    async def get_tenant(self, tenant_id: int) -> Tenant:
        return await self.read(_keys.TENANTS.detail(tenant_id), Tenant)

    async def create_tenant(
        self,
        form: TenantForm | dict[str, Any],
        *,
        on_success: SuccessCallback | None = None,
        on_error: ErrorCallback | None = None,
    ) -> MutationResult[Tenant]:
        valid = validate_form(TenantForm, form)
        return await self.mutate(
            "POST",
            _keys.TENANTS.url(),
            valid,
            invalidates=_keys.TENANTS.on_create(),
            parse=lambda d: parse_one(Tenant, d, endpoint=_keys.TENANTS.path),
            on_success=on_success,
            on_error=on_error,
        )

    async def update_tenant(
        self,
        tenant_id: int,
        form: TenantForm | dict[str, Any],
        *,
        on_success: SuccessCallback | None = None,
        on_error: ErrorCallback | None = None,
    ) -> MutationResult[Tenant]:
        valid = validate_form(TenantForm, form)
        url = _keys.TENANTS.url(tenant_id)
        return await self.mutate(
            "PUT",
            url,
            valid,
            invalidates=_keys.TENANTS.on_update(tenant_id),
            parse=lambda d: parse_one(Tenant, d, endpoint=url),
            on_success=on_success,
            on_error=on_error,
        )

    async def delete_tenant(
        self,
        tenant_id: int,
        *,
        on_success: SuccessCallback | None = None,
        on_error: ErrorCallback | None = None,
    ) -> MutationResult[Any]:
        # Tenant deletion cascades to its leases server-side.
        return await self.mutate(
            "DELETE",
            _keys.TENANTS.url(tenant_id),
            invalidates=_keys.tenant_delete(tenant_id),
            on_success=on_success,
            on_error=on_error,
        )

    # ------------------------------------------------------------------
    # Owners, teams & invitations
    # ------------------------------------------------------------------

    async def get_owners(self) -> list[Owner]:
        return await self.read(_keys.OWNERS.all(), Owner, many=True)

    async def get_owner_team(self, owner_id: int) -> list[TeamMember]:
        return await self.read(_keys.owner_team(owner_id), TeamMember, many=True)

    async def get_owner_invitations(self, owner_id: int) -> list[OwnerInvitation]:
        return await self.read(_keys.owner_invitations(owner_id), OwnerInvitation, many=True)

    async def invite_team_member(
        self,
        owner_id: int,
        form: InviteForm | dict[str, Any],
        *,
        on_success: SuccessCallback | None = None,
        on_error: ErrorCallback | None = None,
    ) -> MutationResult[OwnerInvitation]:
        valid = validate_form(InviteForm, form)
        url = _keys.OWNERS.url(owner_id, "invitations")
        return await self.mutate(
            "POST",
            url,
            valid,
            invalidates=_keys.invitation_write(owner_id),
            parse=lambda d: parse_one(OwnerInvitation, d, endpoint=url),
            on_success=on_success,
            on_error=on_error,
        )

    async def remove_team_member(
        self,
        owner_id: int,
        member_id: int,
        *,
        on_success: SuccessCallback | None = None,
        on_error: ErrorCallback | None = None,
    ) -> MutationResult[Any]:
        return await self.mutate(
            "DELETE",
            _keys.OWNER_TEAM.url(member_id),
            invalidates=_keys.team_member_write(owner_id),
            on_success=on_success,
            on_error=on_error,
        )

    async def cancel_invitation(
        self,
        owner_id: int,
        invitation_id: int,
        *,
        on_success: SuccessCallback | None = None,
        on_error: ErrorCallback | None = None,
    ) -> MutationResult[Any]:
        return await self.mutate(
            "DELETE",
            _keys.INVITATIONS.url(invitation_id),
            invalidates=_keys.invitation_write(owner_id),
            on_success=on_success,
            on_error=on_error,
        )
