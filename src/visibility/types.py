"""Value types shared across the visibility engine."""

from __future__ import annotations

import enum
import uuid
from dataclasses import dataclass

from .errors import InvalidInput


class ResourceType(str, enum.Enum):
    """Closed set of collections the back office scopes."""

    PRODUCT = "product"
    ORDER = "order"
    ORDER_ITEM = "order_item"
    CUSTOMER = "customer"
    CATEGORY = "category"
    BANNER = "banner"

    @property
    def is_owned(self) -> bool:
        """Owned collections carry ``created_by`` and are scope roots."""
        return self in OWNED_RESOURCE_TYPES


OWNED_RESOURCE_TYPES = frozenset(
    {ResourceType.PRODUCT, ResourceType.CATEGORY, ResourceType.BANNER}
)


class Operation(str, enum.Enum):
    """Canonical operation names stored on grants."""

    READ = "read"
    CREATE = "create"
    UPDATE = "update"
    DELETE = "delete"
    PUBLISH = "publish"


_OPERATION_ALIASES = {
    "find": Operation.READ,
    "findOne": Operation.READ,
    "find_one": Operation.READ,
    "list": Operation.READ,
    "retrieve": Operation.READ,
}


def normalize_operation(operation: Operation | str) -> Operation:
    """Map controller-level operation names onto the canonical grant names."""

    if isinstance(operation, Operation):
        return operation
    if operation in _OPERATION_ALIASES:
        return _OPERATION_ALIASES[operation]
    try:
        return Operation(operation)
    except ValueError as exc:
        raise InvalidInput(f"Unknown operation: {operation}") from exc


@dataclass(frozen=True)
class RoleRef:
    """A role as seen by the engine: identity plus the super-admin marker."""

    id: int
    name: str = ""
    is_super_admin: bool = False


@dataclass(frozen=True)
class Principal:
    """Authenticated actor, validated once at the boundary and passed by value."""

    id: uuid.UUID
    roles: frozenset[RoleRef] = frozenset()

    @property
    def is_super_admin(self) -> bool:
        return any(role.is_super_admin for role in self.roles)

    @property
    def role_ids(self) -> frozenset[int]:
        return frozenset(role.id for role in self.roles)


@dataclass(frozen=True)
class Grant:
    """One configured rule: a role may perform an operation on a resource type."""

    role_id: int
    resource_type: ResourceType
    operation: Operation
    conditions: frozenset[str] = frozenset()


@dataclass(frozen=True)
class Decision:
    """Merged outcome of every grant that applies to a principal."""

    granted: bool
    conditions: frozenset[str] = frozenset()

    @classmethod
    def denied(cls) -> "Decision":
        return cls(granted=False)

    @classmethod
    def unconditional(cls) -> "Decision":
        return cls(granted=True)


__all__ = [
    "Decision",
    "Grant",
    "OWNED_RESOURCE_TYPES",
    "Operation",
    "Principal",
    "ResourceType",
    "RoleRef",
    "normalize_operation",
]
