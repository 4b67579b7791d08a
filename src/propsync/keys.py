"""Typed query-key builders and derived invalidation sets.

Call sites never hand-type keys. Reads use the builders, and writes take
their invalidation set from the same builders, so a read and the write
that changes it cannot drift apart.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass

from propsync.query_key import QueryKey, Segment


def merge_keys(*groups: Iterable[QueryKey]) -> tuple[QueryKey, ...]:
    """Concatenate key groups, dropping duplicates but keeping order."""
    merged: dict[QueryKey, None] = {}
    for group in groups:
        for key in group:
            merged.setdefault(key, None)
    return tuple(merged)


@dataclass(frozen=True)
class ResourceKeys:
    """Keys and URLs for one REST collection.

    ``related`` lists keys outside this collection that every write to it
    also makes stale (e.g. dashboard aggregates).
    """

    path: str
    related: tuple[QueryKey, ...] = ()

    def all(self) -> QueryKey:
        return (self.path,)

    def detail(self, item_id: int) -> QueryKey:
        return (self.path, item_id)

    def child(self, item_id: int, segment: Segment) -> QueryKey:
        return (self.path, item_id, segment)

    def url(self, item_id: int | None = None, *suffix: Segment) -> str:
        parts: list[Segment] = [self.path]
        if item_id is not None:
            parts.append(item_id)
        parts.extend(suffix)
        return "/".join(str(part) for part in parts)

    # Invalidating the collection key prefix-covers every detail and child key.
    def on_create(self) -> tuple[QueryKey, ...]:
        return merge_keys([self.all()], self.related)

    def on_update(self, item_id: int) -> tuple[QueryKey, ...]:
        return merge_keys([self.all()], self.related)

    def on_delete(self, item_id: int) -> tuple[QueryKey, ...]:
        return merge_keys([self.all()], self.related)


DASHBOARD_SUMMARY: QueryKey = ("/api/dashboard/summary",)

PROPERTIES = ResourceKeys("/api/properties", related=(DASHBOARD_SUMMARY,))
DELETED_PROPERTIES = ResourceKeys("/api/properties/deleted")
UNITS = ResourceKeys("/api/units")
LEASES = ResourceKeys("/api/leases", related=(DASHBOARD_SUMMARY,))
TENANTS = ResourceKeys("/api/tenants")
OWNERS = ResourceKeys("/api/owners")
OWNER_TEAM = ResourceKeys("/api/owner-team")
INVITATIONS = ResourceKeys("/api/invitations")


def property_tree(property_id: int) -> QueryKey:
    return PROPERTIES.child(property_id, "tree")


def owner_team(owner_id: int) -> QueryKey:
    return OWNERS.child(owner_id, "team")


def owner_invitations(owner_id: int) -> QueryKey:
    return OWNERS.child(owner_id, "invitations")


def lease_write(
    lease_id: int | None = None,
    *,
    property_id: int | None = None,
    tenant_id: int | None = None,
) -> tuple[QueryKey, ...]:
    """Keys a lease create/update/delete makes stale.

    Besides the lease list, the per-tenant and per-property lease lists
    for the affected parents go stale too.
    """
    base = LEASES.on_create() if lease_id is None else LEASES.on_update(lease_id)
    extra: list[QueryKey] = []
    if tenant_id is not None:
        extra.append(TENANTS.child(tenant_id, "leases"))
    if property_id is not None:
        extra.append(PROPERTIES.child(property_id, "leases"))
    return merge_keys(base, extra)


def property_delete(property_id: int) -> tuple[QueryKey, ...]:
    """Soft delete: the property moves from the live list to the deleted list."""
    return merge_keys(PROPERTIES.on_delete(property_id), DELETED_PROPERTIES.on_create())


def property_restore(property_id: int) -> tuple[QueryKey, ...]:
    return merge_keys(PROPERTIES.on_create(), DELETED_PROPERTIES.on_delete(property_id))


def property_purge(property_id: int) -> tuple[QueryKey, ...]:
    """Permanent delete only touches the deleted list."""
    return DELETED_PROPERTIES.on_delete(property_id)


def unit_write(property_id: int) -> tuple[QueryKey, ...]:
    """Units are embedded in property reads, so the property keys go stale."""
    return merge_keys(UNITS.on_create(), PROPERTIES.on_update(property_id))


def invitation_write(owner_id: int) -> tuple[QueryKey, ...]:
    return (owner_invitations(owner_id),)


def team_member_write(owner_id: int) -> tuple[QueryKey, ...]:
    return (owner_team(owner_id),)


def tenant_delete(tenant_id: int) -> tuple[QueryKey, ...]:
    """The server drops a deleted tenant's leases along with it."""
    return merge_keys(TENANTS.on_delete(tenant_id), LEASES.on_create())
