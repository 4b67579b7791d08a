"""Shared fixtures: an in-memory REST backend implementing ``Transport``."""

from __future__ import annotations

import asyncio
import copy
import json
from collections.abc import AsyncIterator
from dataclasses import dataclass, field
from typing import Any

import pytest
import pytest_asyncio

from propsync._transport import error_from_response
from propsync.client import PropSyncClient
from propsync.config import SyncConfig


def _iso(day: str) -> str:
    return day if "T" in day else f"{day}T00:00:00.000Z"


@dataclass
class FakeRestBackend:
    properties: dict[int, dict[str, Any]] = field(default_factory=dict)
    units: dict[int, dict[str, Any]] = field(default_factory=dict)
    leases: dict[int, dict[str, Any]] = field(default_factory=dict)
    tenants: dict[int, dict[str, Any]] = field(default_factory=dict)
    owners: dict[int, dict[str, Any]] = field(default_factory=dict)
    team: dict[int, dict[str, Any]] = field(default_factory=dict)
    invitations: dict[int, dict[str, Any]] = field(default_factory=dict)
    calls: dict[str, int] = field(default_factory=dict)
    failures: dict[str, tuple[int, str]] = field(default_factory=dict)
    unauthorized: bool = False
    next_id: int = 100

    @classmethod
    def seeded(cls) -> FakeRestBackend:
        backend = cls()
        backend.properties = {
            3: {"id": 3, "name": "Harbour View", "propertyType": "APARTMENT", "isDeleted": 0},
            4: {"id": 4, "name": "Palm Villa", "propertyType": "VILLA", "isDeleted": 0},
        }
        backend.units = {10: {"id": 10, "propertyId": 3, "unitName": "A-101", "status": "VACANT"}}
        backend.tenants = {9: {"id": 9, "legalName": "Jane Doe", "phone": "555-0100"}}
        backend.leases = {
            7: {
                "id": 7,
                "propertyId": 4,
                "tenantId": 9,
                "status": "ACTIVE",
                "startDate": "2025-01-01T00:00:00.000Z",
                "endDate": "2025-12-31T00:00:00.000Z",
                "rentAmount": "900.00",
                "rentFrequency": "MONTHLY",
            }
        }
        backend.owners = {
            5: {"id": 5, "legalName": "Acme Holdings", "ownerType": "COMPANY"},
            6: {"id": 6, "legalName": "John Owner"},
        }
        backend.team = {1: {"id": 1, "ownerId": 5, "userId": 21, "role": "ADMIN"}}
        backend.invitations = {
            2: {"id": 2, "ownerId": 5, "email": "old@example.com", "role": "VIEWER", "status": "PENDING"},
            3: {"id": 3, "ownerId": 6, "email": "other@example.com", "role": "VIEWER", "status": "PENDING"},
        }
        return backend

    def count(self, method: str, path: str) -> int:
        return self.calls.get(f"{method} {path}", 0)

    def fail(self, method: str, path: str, status: int, message: str) -> None:
        """Make the next ``method path`` call fail with the given server message."""
        self.failures[f"{method} {path}"] = (status, message)

    def _new_id(self) -> int:
        self.next_id += 1
        return self.next_id

    async def request(self, method: str, path: str, *, json_body: Any = None) -> Any:
        route = f"{method} {path}"
        self.calls[route] = self.calls.get(route, 0) + 1
        await asyncio.sleep(0)

        if self.unauthorized:
            raise error_from_response(401, json.dumps({"message": "Unauthorized"}), endpoint=path)
        failure = self.failures.pop(route, None)
        if failure is not None:
            status, message = failure
            raise error_from_response(status, json.dumps({"message": message}), endpoint=path)

        parts = path.strip("/").split("/")[1:]
        handler = getattr(self, f"_{parts[0].replace('-', '_')}", None)
        if handler is None:
            raise AssertionError(f"Unexpected endpoint in fake backend: {route}")
        result = handler(method, parts[1:], json_body or {})
        return copy.deepcopy(result)

    # -- routes ---------------------------------------------------------

    def _with_units(self, prop: dict[str, Any]) -> dict[str, Any]:
        return {**prop, "units": [u for u in self.units.values() if u["propertyId"] == prop["id"]]}

    def _properties(self, method: str, rest: list[str], body: dict[str, Any]) -> Any:
        if rest == [] and method == "GET":
            return [self._with_units(p) for p in self.properties.values() if not p["isDeleted"]]
        if rest == [] and method == "POST":
            prop = {**body, "id": self._new_id(), "isDeleted": 0}
            self.properties[prop["id"]] = prop
            return self._with_units(prop)
        if rest == ["deleted"] and method == "GET":
            return [self._with_units(p) for p in self.properties.values() if p["isDeleted"]]
        prop_id = int(rest[0])
        tail = rest[1:]
        if tail == [] and method == "GET":
            return self._with_units(self.properties[prop_id])
        if tail == [] and method == "PUT":
            self.properties[prop_id].update(body)
            return self._with_units(self.properties[prop_id])
        if tail == [] and method == "DELETE":
            self.properties[prop_id]["isDeleted"] = 1
            return {"message": "Property moved to trash"}
        if tail == ["restore"] and method == "POST":
            self.properties[prop_id]["isDeleted"] = 0
            return {"message": "Property restored"}
        if tail == ["permanent"] and method == "DELETE":
            del self.properties[prop_id]
            return None
        if tail == ["units"] and method == "POST":
            unit = {**body, "id": self._new_id(), "propertyId": prop_id}
            self.units[unit["id"]] = unit
            return unit
        if tail == ["leases"] and method == "GET":
            return [lease for lease in self.leases.values() if lease["propertyId"] == prop_id]
        raise AssertionError(f"Unexpected property route: {method} {rest}")

    def _units(self, method: str, rest: list[str], body: dict[str, Any]) -> Any:
        unit_id = int(rest[0])
        if method == "PUT":
            self.units[unit_id].update(body)
            return self.units[unit_id]
        if method == "DELETE":
            del self.units[unit_id]
            return None
        raise AssertionError(f"Unexpected unit route: {method} {rest}")

    def _leases(self, method: str, rest: list[str], body: dict[str, Any]) -> Any:
        if rest == [] and method == "GET":
            return list(self.leases.values())
        if rest == [] and method == "POST":
            lease = {
                "status": "DRAFT",
                **body,
                "id": self._new_id(),
                "startDate": _iso(body["startDate"]),
                "endDate": _iso(body["endDate"]),
            }
            self.leases[lease["id"]] = lease
            return lease
        lease_id = int(rest[0])
        if method == "GET":
            return self.leases[lease_id]
        if method == "PUT":
            self.leases[lease_id].update(body)
            return self.leases[lease_id]
        if method == "DELETE":
            del self.leases[lease_id]
            return None
        raise AssertionError(f"Unexpected lease route: {method} {rest}")

    def _tenants(self, method: str, rest: list[str], body: dict[str, Any]) -> Any:
        if rest == [] and method == "GET":
            return list(self.tenants.values())
        if rest == [] and method == "POST":
            tenant = {**body, "id": self._new_id()}
            self.tenants[tenant["id"]] = tenant
            return tenant
        tenant_id = int(rest[0])
        if rest[1:] == ["leases"]:
            return [lease for lease in self.leases.values() if lease["tenantId"] == tenant_id]
        if method == "GET":
            return self.tenants[tenant_id]
        if method == "PUT":
            self.tenants[tenant_id].update(body)
            return self.tenants[tenant_id]
        if method == "DELETE":
            del self.tenants[tenant_id]
            self.leases = {k: v for k, v in self.leases.items() if v["tenantId"] != tenant_id}
            return None
        raise AssertionError(f"Unexpected tenant route: {method} {rest}")

    def _owners(self, method: str, rest: list[str], body: dict[str, Any]) -> Any:
        if rest == []:
            return list(self.owners.values())
        owner_id = int(rest[0])
        tail = rest[1:]
        if tail == ["team"]:
            return [m for m in self.team.values() if m["ownerId"] == owner_id]
        if tail == ["invitations"] and method == "GET":
            return [i for i in self.invitations.values() if i["ownerId"] == owner_id]
        if tail == ["invitations"] and method == "POST":
            invite = {**body, "id": self._new_id(), "ownerId": owner_id, "status": "PENDING"}
            self.invitations[invite["id"]] = invite
            return invite
        raise AssertionError(f"Unexpected owner route: {method} {rest}")

    def _owner_team(self, method: str, rest: list[str], body: dict[str, Any]) -> Any:
        del self.team[int(rest[0])]
        return None

    def _invitations(self, method: str, rest: list[str], body: dict[str, Any]) -> Any:
        del self.invitations[int(rest[0])]
        return None

    def _dashboard(self, method: str, rest: list[str], body: dict[str, Any]) -> Any:
        return {"activeLeases": sum(1 for lease in self.leases.values() if lease.get("status") == "ACTIVE")}


@pytest.fixture
def backend() -> FakeRestBackend:
    return FakeRestBackend.seeded()


@pytest_asyncio.fixture
async def client(backend: FakeRestBackend) -> AsyncIterator[PropSyncClient]:
    async with PropSyncClient(SyncConfig(), transport=backend) as sync_client:
        yield sync_client

