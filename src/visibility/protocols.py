"""Collaborator contracts consumed by the engine.

Concrete implementations live outside this package (the Django ORM repository,
the grant table store, the request session provider); tests supply in-memory
fakes. Every component receives its collaborators through its constructor.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Iterable, Mapping, Protocol, Sequence

from .types import Grant, Operation, Principal, ResourceType

if TYPE_CHECKING:
    from .filters import Predicate


class PermissionStore(Protocol):
    async def find_grants(
        self,
        role_ids: Iterable[int],
        resource_type: ResourceType,
        operation: Operation,
    ) -> list[Grant]:
        ...


class Repository(Protocol):
    """Generic asynchronous CRUD over one collection per resource type.

    Entities are returned as objects exposing their fields as attributes
    (``id``, ``created_by_id``, ``order_id`` ...).
    """

    async def find_many(
        self,
        resource_type: ResourceType,
        filters: "Predicate | None" = None,
        *,
        fields: Sequence[str] | None = None,
        sort: Sequence[str] | None = None,
        offset: int = 0,
        limit: int | None = None,
    ) -> list[Any]:
        ...

    async def find_one(self, resource_type: ResourceType, entity_id: int) -> Any | None:
        ...

    async def find_values(
        self,
        resource_type: ResourceType,
        field: str,
        filters: "Predicate | None" = None,
    ) -> list[Any]:
        """Return the distinct values of ``field`` over matching entities."""
        ...

    async def count(self, resource_type: ResourceType, filters: "Predicate | None" = None) -> int:
        ...

    async def create(self, resource_type: ResourceType, data: Mapping[str, Any]) -> Any:
        ...

    async def update(
        self, resource_type: ResourceType, entity_id: int, data: Mapping[str, Any]
    ) -> Any:
        ...

    async def delete(self, resource_type: ResourceType, entity_id: int) -> None:
        ...


class SessionProvider(Protocol):
    def current_principal(self, request: Any) -> Principal:
        """Return the request's principal or raise ``AuthenticationRequired``."""
        ...


__all__ = ["PermissionStore", "Repository", "SessionProvider"]
