"""Shared helpers for tests (in-memory engine collaborators, seeding, fake Redis)."""

from __future__ import annotations

import uuid
from types import SimpleNamespace
from typing import Any, Dict, Iterable

from rest_framework.test import APIClient

from accounts.services import TokenService
from visibility.filters import MATCH_NOTHING
from visibility.types import Grant, Operation, Principal, ResourceType, RoleRef


class FakeRedis:
    """Minimal Redis stub supporting the commands used by TokenService."""

    def __init__(self):
        self._store: Dict[str, str] = {}

    def setex(self, key: str, ttl_seconds: int, value: str) -> None:
        """Mimic Redis SETEX; TTL is ignored in tests, value stored in-memory."""
        self._store[key] = value

    def exists(self, *keys: str) -> int:
        return sum(1 for key in keys if key in self._store)


def _resolve(entity: Any, path: str) -> Any:
    value = entity
    for part in path.split("__"):
        value = getattr(value, part, None)
        if value is None:
            return None
    return value


def _field_matches(value: Any, condition: Any) -> bool:
    if isinstance(condition, dict):
        for op, operand in condition.items():
            if op == "$in" and value not in operand:
                return False
            if op == "$eq" and value != operand:
                return False
            if op == "$ne" and value == operand:
                return False
            if op in ("$lt", "$lte", "$gt", "$gte"):
                if value is None:
                    return False
                if op == "$lt" and not value < operand:
                    return False
                if op == "$lte" and not value <= operand:
                    return False
                if op == "$gt" and not value > operand:
                    return False
                if op == "$gte" and not value >= operand:
                    return False
            if op == "$containsi" and str(operand).lower() not in str(value or "").lower():
                return False
            if op == "$null" and (value is None) != bool(operand):
                return False
            if op == "$notNull" and (value is not None) != bool(operand):
                return False
        return True
    if condition is None:
        return value is None
    return value == condition


def matches(entity: Any, predicate: dict | None) -> bool:
    """Evaluate a storage predicate against one in-memory entity."""
    for key, condition in (predicate or {}).items():
        if key == "$or":
            if not any(matches(entity, part) for part in condition):
                return False
        elif key == "$and":
            if not all(matches(entity, part) for part in condition):
                return False
        elif not _field_matches(_resolve(entity, key), condition):
            return False
    return True


class FakeRepository:
    """In-memory ``Repository`` that records every call it receives."""

    def __init__(self, data: dict[ResourceType, Iterable[dict]] | None = None):
        self.data: dict[ResourceType, list[SimpleNamespace]] = {
            resource_type: [SimpleNamespace(**row) for row in rows]
            for resource_type, rows in (data or {}).items()
        }
        self.calls: list[tuple] = []
        self.fail_on: set[str] = set()

    def _record(self, method: str, resource_type: ResourceType, filters: Any = None) -> None:
        if filters is MATCH_NOTHING:
            raise AssertionError(f"{method} called with MATCH_NOTHING")
        if method in self.fail_on:
            raise RuntimeError(f"{method} unavailable")
        self.calls.append((method, resource_type, filters))

    def _rows(self, resource_type: ResourceType, filters: Any) -> list[SimpleNamespace]:
        return [row for row in self.data.get(resource_type, []) if matches(row, filters)]

    def calls_for(self, method: str) -> list[tuple]:
        return [call for call in self.calls if call[0] == method]

    async def find_many(self, resource_type, filters=None, *, fields=None, sort=None, offset=0, limit=None):
        self._record("find_many", resource_type, filters)
        rows = self._rows(resource_type, filters)
        for key in reversed(list(sort or [])):
            name = key.lstrip("-")
            rows.sort(key=lambda row: getattr(row, name), reverse=key.startswith("-"))
        end = None if limit is None else offset + limit
        return rows[offset:end]

    async def find_one(self, resource_type, entity_id):
        self._record("find_one", resource_type, {"id": entity_id})
        rows = self._rows(resource_type, {"id": entity_id})
        return rows[0] if rows else None

    async def find_values(self, resource_type, field, filters=None):
        self._record("find_values", resource_type, filters)
        values = []
        for row in self._rows(resource_type, filters):
            value = getattr(row, field, None)
            if value not in values:
                values.append(value)
        return values

    async def count(self, resource_type, filters=None):
        self._record("count", resource_type, filters)
        return len(self._rows(resource_type, filters))

    async def create(self, resource_type, data):
        self._record("create", resource_type)
        rows = self.data.setdefault(resource_type, [])
        row = SimpleNamespace(id=max((r.id for r in rows), default=0) + 1, **data)
        rows.append(row)
        return row

    async def update(self, resource_type, entity_id, data):
        self._record("update", resource_type, {"id": entity_id})
        for row in self._rows(resource_type, {"id": entity_id}):
            for key, value in data.items():
                setattr(row, key, value)
            return row
        return None

    async def delete(self, resource_type, entity_id):
        self._record("delete", resource_type, {"id": entity_id})
        self.data[resource_type] = [
            row for row in self.data.get(resource_type, []) if row.id != entity_id
        ]


class FakePermissionStore:
    """``PermissionStore`` over a fixed list of grants."""

    def __init__(self, grants: Iterable[Grant] = (), *, fail: bool = False):
        self.grants = list(grants)
        self.fail = fail
        self.calls = 0

    async def find_grants(self, role_ids, resource_type, operation):
        self.calls += 1
        if self.fail:
            raise RuntimeError("grant table unavailable")
        role_ids = set(role_ids)
        return [
            grant
            for grant in self.grants
            if grant.role_id in role_ids
            and grant.resource_type == resource_type
            and grant.operation == operation
        ]


def grant(role_id: int, resource_type: ResourceType, operation: Operation, *conditions: str) -> Grant:
    return Grant(role_id, resource_type, operation, frozenset(conditions))


def make_principal(*roles: RoleRef, principal_id: uuid.UUID | None = None) -> Principal:
    return Principal(id=principal_id or uuid.uuid4(), roles=frozenset(roles))


MERCHANT_ROLE = RoleRef(id=1, name="Merchant")
SUPER_ROLE = RoleRef(id=99, name="Super Admin", is_super_admin=True)


def marketplace_data(merchant_a: uuid.UUID, merchant_b: uuid.UUID) -> dict:
    """Two merchants, their products and the order chain hanging off them.

    Merchant A owns products 1 and 2, merchant B owns product 3. Order 10
    holds products 1 and 3, order 11 holds product 2 only, order 12 holds
    product 3 only.
    """
    return {
        ResourceType.PRODUCT: [
            {"id": 1, "name": "Mug", "sku": "A-1", "created_by_id": merchant_a, "stock": 3, "published_at": "x"},
            {"id": 2, "name": "Plate", "sku": "A-2", "created_by_id": merchant_a, "stock": 40, "published_at": None},
            {"id": 3, "name": "Bowl", "sku": "B-1", "created_by_id": merchant_b, "stock": 0, "published_at": "x"},
        ],
        ResourceType.ORDER_ITEM: [
            {"id": 100, "order_id": 10, "product_id": 1},
            {"id": 101, "order_id": 10, "product_id": 3},
            {"id": 102, "order_id": 11, "product_id": 2},
            {"id": 103, "order_id": 12, "product_id": 3},
        ],
        ResourceType.ORDER: [
            {"id": 10, "customer_id": 500, "status": "pending", "total_amount": 30, "created_at": 1},
            {"id": 11, "customer_id": 501, "status": "shipped", "total_amount": 20, "created_at": 2},
            {"id": 12, "customer_id": 502, "status": "pending", "total_amount": 15, "created_at": 3},
        ],
        ResourceType.CUSTOMER: [
            {"id": 500, "username": "alice", "email": "alice@example.com"},
            {"id": 501, "username": "bob", "email": "bob@example.com"},
            {"id": 502, "username": "carol", "email": "carol@example.com"},
        ],
        ResourceType.BANNER: [
            {"id": 7, "title": "Sale", "created_by_id": merchant_a, "is_active": True},
            {"id": 8, "title": "Other", "created_by_id": merchant_b, "is_active": True},
        ],
    }


def auth_client(user) -> APIClient:
    """Return an APIClient authenticated with a fresh access token."""
    token = TokenService.issue_pair(user).access
    client = APIClient()
    client.credentials(HTTP_AUTHORIZATION=f"Bearer {token}")
    return client
