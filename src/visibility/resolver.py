"""Grant lookup and merge for a (principal, resource type, operation) triple."""

import logging

from .protocols import PermissionStore
from .types import Decision, Operation, Principal, ResourceType, normalize_operation

logger = logging.getLogger(__name__)


class PermissionResolver:
    """Resolve a principal's grants into a single ``Decision``.

    - Super admins always resolve to granted with no conditions.
    - Otherwise every grant matching the role set, resource type and canonical
      operation is fetched; any match grants access and the condition sets are
      unioned.
    - A failing permission store is logged and treated as not granted.

    Decisions are memoized for the lifetime of the resolver, which is created
    per request.
    """

    def __init__(self, store: PermissionStore) -> None:
        self._store = store
        self._memo: dict[tuple, Decision] = {}

    async def resolve(
        self,
        principal: Principal,
        resource_type: ResourceType,
        operation: Operation | str,
    ) -> Decision:
        if principal.is_super_admin:
            return Decision.unconditional()

        canonical = normalize_operation(operation)
        key = (principal.id, resource_type, canonical)
        if key not in self._memo:
            self._memo[key] = await self._lookup(principal, resource_type, canonical)
        return self._memo[key]

    async def _lookup(
        self, principal: Principal, resource_type: ResourceType, operation: Operation
    ) -> Decision:
        role_ids = principal.role_ids
        if not role_ids:
            return Decision.denied()

        try:
            grants = await self._store.find_grants(role_ids, resource_type, operation)
        except Exception:
            logger.exception(
                "Permission lookup failed for principal %s on %s.%s; denying access",
                principal.id,
                resource_type.value,
                operation.value,
            )
            return Decision.denied()

        if not grants:
            return Decision.denied()

        conditions = frozenset().union(*(grant.conditions for grant in grants))
        return Decision(granted=True, conditions=conditions)


__all__ = ["PermissionResolver"]
