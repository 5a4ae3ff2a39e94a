"""Request-scoped facade wiring the engine components together.

Controllers build one ``VisibilityService`` per request; its resolver and
scope builder memoize grants and scopes for exactly that lifetime.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import Any, Mapping, Sequence

from .aggregation import AggregateSpec, ScopedAggregator
from .conditions import ConditionRegistry, default_registry
from .errors import PermissionDenied
from .filters import MATCH_NOTHING, FilterCompiler, FilterSpec, Pagination, Predicate, QueryFilters
from .guard import MAX_BULK_ITEMS, ApplyFn, BulkResult, EntityAccessGuard
from .protocols import PermissionStore, Repository
from .resolver import PermissionResolver
from .scope import VisibilityScope, VisibilityScopeBuilder
from .types import Operation, Principal, ResourceType

_CHAIN_TYPES = frozenset({ResourceType.ORDER_ITEM, ResourceType.ORDER, ResourceType.CUSTOMER})


@dataclass(frozen=True)
class ScopedPage:
    items: list[Any]
    total: int
    pagination: Pagination

    @property
    def page_count(self) -> int:
        return self.pagination.page_count(self.total)


class VisibilityService:
    def __init__(
        self,
        repository: Repository,
        permission_store: PermissionStore,
        *,
        conditions: ConditionRegistry | None = None,
        max_bulk_items: int = MAX_BULK_ITEMS,
    ) -> None:
        conditions = conditions or default_registry()
        self.repository = repository
        self.resolver = PermissionResolver(permission_store)
        self.scopes = VisibilityScopeBuilder(self.resolver, repository, conditions)
        self.compiler = FilterCompiler()
        self.aggregator = ScopedAggregator(repository, self.compiler)
        self.guard = EntityAccessGuard(
            self.resolver, repository, self.scopes, conditions, max_bulk_items=max_bulk_items
        )

    async def scope_for(self, principal: Principal, resource_type: ResourceType) -> VisibilityScope:
        return await self.scopes.scope_for(principal, resource_type)

    async def scoped_predicate(
        self,
        principal: Principal,
        resource_type: ResourceType,
        filters: Mapping[str, Any] | None = None,
    ) -> Predicate:
        scope = await self.scopes.scope_for(principal, resource_type)
        return self.compiler.compile(scope, filters)

    async def list_scoped(
        self,
        resource_type: ResourceType,
        principal: Principal,
        query: QueryFilters,
        pagination: Pagination,
        *,
        filter_spec: FilterSpec,
        extra_filters: Mapping[str, Any] | None = None,
        sort: Sequence[str] | None = None,
    ) -> ScopedPage:
        """One page of the entities the principal may see, plus the scoped total.

        A principal without a grant gets an empty page, not an error.
        """
        user_filters = self.compiler.translate(query, filter_spec)
        if extra_filters:
            user_filters = {**user_filters, **extra_filters}
        predicate = await self.scoped_predicate(principal, resource_type, user_filters)
        if predicate is MATCH_NOTHING:
            return ScopedPage(items=[], total=0, pagination=pagination)

        items, total = await asyncio.gather(
            self.repository.find_many(
                resource_type,
                predicate,
                sort=sort,
                offset=pagination.offset,
                limit=pagination.page_size,
            ),
            self.repository.count(resource_type, predicate),
        )
        return ScopedPage(items=items, total=total, pagination=pagination)

    async def find_scoped(
        self,
        resource_type: ResourceType,
        principal: Principal,
        filters: Mapping[str, Any] | None = None,
        *,
        sort: Sequence[str] | None = None,
        limit: int | None = None,
    ) -> list[Any]:
        predicate = await self.scoped_predicate(principal, resource_type, filters)
        if predicate is MATCH_NOTHING:
            return []
        return await self.repository.find_many(resource_type, predicate, sort=sort, limit=limit)

    async def get_scoped_stats(
        self,
        principal: Principal,
        aggregates: Mapping[ResourceType, AggregateSpec],
    ) -> dict[ResourceType, dict[str, Any]]:
        """Aggregate several resource types against one scope snapshot.

        The product/order/customer chain is derived once and sequentially;
        independent roots are derived concurrently with it, and all metrics
        are issued only after every scope is fixed.
        """
        requested = list(aggregates)
        derivations = []
        roots = {resource_type for resource_type in requested if resource_type.is_owned}
        if any(resource_type in _CHAIN_TYPES for resource_type in requested):
            derivations.append(self.scopes.scope_chain(principal))
            roots.discard(ResourceType.PRODUCT)
        for resource_type in sorted(roots, key=lambda rt: rt.value):
            derivations.append(self.scopes.scope_for(principal, resource_type))
        await asyncio.gather(*derivations)

        scopes = [await self.scopes.scope_for(principal, resource_type) for resource_type in requested]
        results = await asyncio.gather(
            *(
                self.aggregator.aggregate(scope, resource_type, aggregates[resource_type])
                for scope, resource_type in zip(scopes, requested)
            )
        )
        return dict(zip(requested, results))

    async def check_mutate_access(
        self,
        principal: Principal,
        resource_type: ResourceType,
        entity: Any,
        operation: Operation | str,
    ) -> bool:
        return await self.guard.can_mutate(principal, resource_type, entity, operation)

    async def require_mutate_access(
        self,
        principal: Principal,
        resource_type: ResourceType,
        entity: Any,
        operation: Operation | str,
    ) -> None:
        if not await self.guard.can_mutate(principal, resource_type, entity, operation):
            raise PermissionDenied()

    async def require_grant(
        self, principal: Principal, resource_type: ResourceType, operation: Operation | str
    ) -> None:
        """Type-level check for operations that have no entity yet, such as create."""
        decision = await self.resolver.resolve(principal, resource_type, operation)
        if not decision.granted:
            raise PermissionDenied()

    async def require_visible(
        self, principal: Principal, resource_type: ResourceType, entity: Any
    ) -> None:
        scope = await self.scopes.scope_for(principal, resource_type)
        if not scope.contains(getattr(entity, "id", None)):
            raise PermissionDenied()

    async def run_bulk(
        self,
        principal: Principal,
        resource_type: ResourceType,
        ids: Sequence[Any],
        operation: Operation | str,
        apply: ApplyFn,
    ) -> BulkResult:
        return await self.guard.run_bulk(principal, resource_type, ids, operation, apply)


__all__ = ["ScopedPage", "VisibilityService"]
