"""Per-entity mutation checks and the sequential bulk executor."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Sequence

from .conditions import ConditionRegistry, default_registry
from .errors import InvalidInput
from .protocols import Repository
from .resolver import PermissionResolver
from .scope import VisibilityScopeBuilder
from .types import Operation, Principal, ResourceType, normalize_operation

logger = logging.getLogger(__name__)

MAX_BULK_ITEMS = 100
PERMISSION_DENIED = "Permission denied"
NOT_FOUND = "Not found"


def _as_positive_int(raw: Any) -> int | None:
    if isinstance(raw, bool):
        return None
    if isinstance(raw, int):
        value = raw
    elif isinstance(raw, float):
        if not raw.is_integer():
            return None
        value = int(raw)
    elif isinstance(raw, str):
        try:
            value = int(raw.strip())
        except ValueError:
            return None
    else:
        return None
    return value if value > 0 else None


def validate_ids(ids: Any, max_items: int = MAX_BULK_ITEMS) -> list[int]:
    """Validate a bulk id array and return it deduplicated, order preserved.

    Pure and synchronous: runs before any storage access.
    """
    if not isinstance(ids, (list, tuple)):
        raise InvalidInput("IDs must be an array")
    if not ids:
        raise InvalidInput("IDs array cannot be empty")
    if len(ids) > max_items:
        raise InvalidInput(f"Cannot process more than {max_items} items at once")

    parsed = [_as_positive_int(raw) for raw in ids]
    if any(value is None for value in parsed):
        raise InvalidInput("All IDs must be positive integers")
    return list(dict.fromkeys(parsed))


@dataclass(frozen=True)
class BulkFailure:
    id: int
    error: str

    def as_dict(self) -> dict:
        return {"id": self.id, "error": self.error}


@dataclass(frozen=True)
class BulkResult:
    """Immutable accumulator of a bulk run.

    ``outcomes`` pairs each succeeded id with whatever ``apply`` returned for
    it, when that was not ``None``.
    """

    success: tuple[int, ...] = ()
    failed: tuple[BulkFailure, ...] = ()
    outcomes: tuple[tuple[int, Any], ...] = ()

    def with_success(self, entity_id: int, outcome: Any = None) -> "BulkResult":
        outcomes = self.outcomes if outcome is None else self.outcomes + ((entity_id, outcome),)
        return BulkResult(self.success + (entity_id,), self.failed, outcomes)

    def with_failure(self, entity_id: int, error: str) -> "BulkResult":
        return BulkResult(
            self.success, self.failed + (BulkFailure(entity_id, error),), self.outcomes
        )

    def as_dict(self) -> dict:
        return {
            "success": list(self.success),
            "failed": [failure.as_dict() for failure in self.failed],
        }


ApplyFn = Callable[[Any], Awaitable[Any]]


class EntityAccessGuard:
    """Check an already-fetched entity against the principal's grant.

    Owned entities are tested against the grant's conditions directly (for
    ``is-creator``, ``entity.created_by_id == principal.id``). Shared entities
    have no owner of their own, so a conditional grant on them is satisfied by
    membership in the request-cached chain scope.
    """

    def __init__(
        self,
        resolver: PermissionResolver,
        repository: Repository,
        scopes: VisibilityScopeBuilder,
        conditions: ConditionRegistry | None = None,
        max_bulk_items: int = MAX_BULK_ITEMS,
    ) -> None:
        self._resolver = resolver
        self._repository = repository
        self._scopes = scopes
        self._conditions = conditions or default_registry()
        self._max_bulk_items = max_bulk_items

    async def can_mutate(
        self,
        principal: Principal,
        resource_type: ResourceType,
        entity: Any,
        operation: Operation | str,
    ) -> bool:
        decision = await self._resolver.resolve(principal, resource_type, operation)
        if not decision.granted:
            return False
        if not decision.conditions:
            return True

        if not resource_type.is_owned:
            scope = await self._scopes.scope_for(principal, resource_type)
            return scope.contains(getattr(entity, "id", None))

        for tag in decision.conditions:
            condition = self._conditions.lookup(tag)
            if condition is None:
                logger.warning("Unknown condition tag %r; denying %s", tag, resource_type.value)
                return False
            if not condition.permits(principal, entity):
                return False
        return True

    async def run_bulk(
        self,
        principal: Principal,
        resource_type: ResourceType,
        ids: Sequence[Any],
        operation: Operation | str,
        apply: ApplyFn,
    ) -> BulkResult:
        """Apply ``apply`` to every permitted entity, one at a time.

        Structural input errors raise ``InvalidInput`` before any storage
        access; per-item failures are recorded and never abort the batch.
        """
        entity_ids = validate_ids(ids, self._max_bulk_items)
        operation = normalize_operation(operation)

        result = BulkResult()
        for entity_id in entity_ids:
            result = await self._step(result, principal, resource_type, entity_id, operation, apply)
        return result

    async def _step(
        self,
        acc: BulkResult,
        principal: Principal,
        resource_type: ResourceType,
        entity_id: int,
        operation: Operation | str,
        apply: ApplyFn,
    ) -> BulkResult:
        try:
            entity = await self._repository.find_one(resource_type, entity_id)
            if entity is None:
                return acc.with_failure(entity_id, NOT_FOUND)
            if not await self.can_mutate(principal, resource_type, entity, operation):
                return acc.with_failure(entity_id, PERMISSION_DENIED)
            outcome = await apply(entity)
        except Exception as exc:
            logger.warning(
                "Bulk %s on %s %s failed: %s",
                operation.value,
                resource_type.value,
                entity_id,
                exc,
            )
            return acc.with_failure(entity_id, str(exc) or exc.__class__.__name__)
        return acc.with_success(entity_id, outcome)


__all__ = [
    "BulkFailure",
    "BulkResult",
    "EntityAccessGuard",
    "MAX_BULK_ITEMS",
    "NOT_FOUND",
    "PERMISSION_DENIED",
    "validate_ids",
]
