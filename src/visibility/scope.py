"""Tri-state visibility scopes and their derivation across the order chain.

A scope is exactly one of:

- ``Unrestricted``: every entity of the type is visible;
- ``Restricted(ids)``: only the listed ids, never an empty set;
- ``Empty``: nothing is visible and no downstream query may be issued.

Owned collections (products, categories, banners) are scope roots derived
from their read grant. Shared collections are reached from the product scope
one hop at a time::

    Product --(order_item.product_id)--> OrderItem --(order_id)--> Order
    Order --(customer_id)--> Customer

Each hop is a separate round trip because the storage layer cannot filter one
collection by a predicate on a transitively related one.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Iterable

from .conditions import ConditionRegistry, default_registry
from .protocols import Repository
from .resolver import PermissionResolver
from .types import Operation, Principal, ResourceType

logger = logging.getLogger(__name__)


class VisibilityScope(ABC):
    is_empty = False
    is_unrestricted = False

    @abstractmethod
    def contains(self, entity_id: Any) -> bool:
        ...


@dataclass(frozen=True)
class Unrestricted(VisibilityScope):
    is_unrestricted = True

    def contains(self, entity_id: Any) -> bool:
        return True

    def __repr__(self) -> str:
        return "Unrestricted"


@dataclass(frozen=True)
class Restricted(VisibilityScope):
    ids: frozenset

    def __post_init__(self) -> None:
        object.__setattr__(self, "ids", frozenset(self.ids))
        if not self.ids:
            raise ValueError("Restricted scope needs at least one id; use EMPTY instead")

    def contains(self, entity_id: Any) -> bool:
        return entity_id in self.ids

    def sorted_ids(self) -> list[Any]:
        return sorted(self.ids)


@dataclass(frozen=True)
class Empty(VisibilityScope):
    is_empty = True

    def contains(self, entity_id: Any) -> bool:
        return False

    def __repr__(self) -> str:
        return "Empty"


UNRESTRICTED = Unrestricted()
EMPTY = Empty()


def scope_from_ids(ids: Iterable[Any]) -> VisibilityScope:
    """Build ``Restricted`` from ids, collapsing an empty result to ``EMPTY``."""
    id_set = frozenset(value for value in ids if value is not None)
    return Restricted(id_set) if id_set else EMPTY


@dataclass(frozen=True)
class ScopeChain:
    product: VisibilityScope
    order: VisibilityScope
    customer: VisibilityScope


# (downstream type) -> (upstream type, collection queried, value collected, filter field)
_HOPS = {
    ResourceType.ORDER_ITEM: (ResourceType.PRODUCT, ResourceType.ORDER_ITEM, "id", "product_id"),
    ResourceType.ORDER: (ResourceType.PRODUCT, ResourceType.ORDER_ITEM, "order_id", "product_id"),
    ResourceType.CUSTOMER: (ResourceType.ORDER, ResourceType.ORDER, "customer_id", "id"),
}


class VisibilityScopeBuilder:
    """Materialize scopes for one principal and memoize them per request.

    The builder is created per request; repeated calls for the same resource
    type (a list and its statistics, say) cost a single derivation.
    """

    def __init__(
        self,
        resolver: PermissionResolver,
        repository: Repository,
        conditions: ConditionRegistry | None = None,
    ) -> None:
        self._resolver = resolver
        self._repository = repository
        self._conditions = conditions or default_registry()
        self._memo: dict[tuple, VisibilityScope] = {}

    async def scope_for(self, principal: Principal, resource_type: ResourceType) -> VisibilityScope:
        key = (principal.id, resource_type)
        if key not in self._memo:
            self._memo[key] = await self._derive(principal, resource_type)
        return self._memo[key]

    async def scope_chain(self, principal: Principal) -> ScopeChain:
        """Product, order and customer scopes, computed sequentially."""
        product = await self.scope_for(principal, ResourceType.PRODUCT)
        order = await self.scope_for(principal, ResourceType.ORDER)
        customer = await self.scope_for(principal, ResourceType.CUSTOMER)
        return ScopeChain(product=product, order=order, customer=customer)

    async def _derive(self, principal: Principal, resource_type: ResourceType) -> VisibilityScope:
        if principal.is_super_admin:
            return UNRESTRICTED
        if resource_type.is_owned:
            return await self._root_scope(principal, resource_type)

        upstream_type, collection, value_field, filter_field = _HOPS[resource_type]
        upstream = await self.scope_for(principal, upstream_type)
        return await self._hop(upstream, collection, value_field, filter_field)

    async def _root_scope(self, principal: Principal, resource_type: ResourceType) -> VisibilityScope:
        decision = await self._resolver.resolve(principal, resource_type, Operation.READ)
        if not decision.granted:
            return EMPTY
        if not decision.conditions:
            return UNRESTRICTED

        # Every active condition must hold, so their id sets intersect.
        visible: set[Any] | None = None
        for tag in sorted(decision.conditions):
            condition = self._conditions.lookup(tag)
            if condition is None:
                logger.warning(
                    "Unknown condition tag %r on %s grant for principal %s; denying",
                    tag,
                    resource_type.value,
                    principal.id,
                )
                return EMPTY
            ids = await condition.restrict(principal, resource_type, self._repository)
            visible = ids if visible is None else visible & ids
            if not visible:
                return EMPTY
        return scope_from_ids(visible or ())

    async def _hop(
        self,
        upstream: VisibilityScope,
        collection: ResourceType,
        value_field: str,
        filter_field: str,
    ) -> VisibilityScope:
        if upstream.is_unrestricted:
            return UNRESTRICTED
        if upstream.is_empty:
            return EMPTY
        values = await self._repository.find_values(
            collection, value_field, {filter_field: {"$in": upstream.sorted_ids()}}
        )
        return scope_from_ids(values)


__all__ = [
    "EMPTY",
    "Empty",
    "Restricted",
    "ScopeChain",
    "UNRESTRICTED",
    "Unrestricted",
    "VisibilityScope",
    "VisibilityScopeBuilder",
    "scope_from_ids",
]
