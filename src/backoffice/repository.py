"""``Repository`` over the Django ORM.

Predicates arrive in the engine's filter dialect and are translated into
``Q`` objects here; no other module builds ORM lookups from them.
"""

from __future__ import annotations

import logging
from functools import reduce
from operator import and_, or_
from typing import Any, Mapping, Sequence

from django.db import DatabaseError, models
from django.db.models import Q
from django.utils import timezone

from catalog.models import Banner, Category, Product
from sales.models import Customer, Order, OrderItem
from visibility.errors import InternalQueryFailure
from visibility.filters import MATCH_NOTHING, Predicate
from visibility.types import ResourceType

logger = logging.getLogger(__name__)

MODELS: dict[ResourceType, type[models.Model]] = {
    ResourceType.PRODUCT: Product,
    ResourceType.CATEGORY: Category,
    ResourceType.BANNER: Banner,
    ResourceType.ORDER: Order,
    ResourceType.ORDER_ITEM: OrderItem,
    ResourceType.CUSTOMER: Customer,
}

_COMPARISONS = {
    "$lt": "lt",
    "$lte": "lte",
    "$gt": "gt",
    "$gte": "gte",
    "$in": "in",
    "$containsi": "icontains",
}


def _field_q(field: str, condition: Any) -> Q:
    if not isinstance(condition, Mapping):
        if condition is None:
            return Q(**{f"{field}__isnull": True})
        return Q(**{field: condition})

    clauses = []
    for operator, value in condition.items():
        if operator == "$eq":
            clauses.append(_field_q(field, value))
        elif operator == "$ne":
            clauses.append(~_field_q(field, value))
        elif operator == "$null":
            clauses.append(Q(**{f"{field}__isnull": bool(value)}))
        elif operator == "$notNull":
            clauses.append(Q(**{f"{field}__isnull": not value}))
        elif operator in _COMPARISONS:
            if operator == "$in":
                value = list(value)
            clauses.append(Q(**{f"{field}__{_COMPARISONS[operator]}": value}))
        else:
            raise ValueError(f"Unsupported filter operator {operator!r} on {field}")
    return reduce(and_, clauses, Q())


def predicate_to_q(predicate: Mapping[str, Any]) -> Q:
    """Translate a filter mapping into a ``Q``; top-level keys are ANDed."""
    clauses = []
    for key, value in predicate.items():
        if key == "$or":
            parts = [predicate_to_q(part) for part in value]
            clauses.append(reduce(or_, parts) if parts else Q(pk__in=[]))
        elif key == "$and":
            clauses.append(reduce(and_, (predicate_to_q(part) for part in value), Q()))
        elif key.startswith("$"):
            raise ValueError(f"Unsupported logical operator {key!r}")
        else:
            clauses.append(_field_q(key, value))
    return reduce(and_, clauses, Q())


def _with_auto_now(model: type[models.Model], data: Mapping[str, Any]) -> dict:
    """Queryset updates skip ``auto_now``; stamp those fields explicitly."""
    stamped = dict(data)
    for field in model._meta.concrete_fields:
        if getattr(field, "auto_now", False) and field.name not in stamped:
            stamped[field.name] = timezone.now()
    return stamped


class DjangoRepository:
    """Async CRUD over the back-office models, one model per resource type."""

    def __init__(self, model_map: Mapping[ResourceType, type[models.Model]] | None = None) -> None:
        self._models = dict(model_map or MODELS)

    def queryset(self, resource_type: ResourceType, filters: Predicate | None = None):
        queryset = self._models[resource_type].objects.all()
        if filters is MATCH_NOTHING:
            return queryset.none()
        if filters:
            queryset = queryset.filter(predicate_to_q(filters))
        return queryset

    async def find_many(
        self,
        resource_type: ResourceType,
        filters: Predicate | None = None,
        *,
        fields: Sequence[str] | None = None,
        sort: Sequence[str] | None = None,
        offset: int = 0,
        limit: int | None = None,
    ) -> list[Any]:
        if filters is MATCH_NOTHING:
            return []
        queryset = self.queryset(resource_type, filters)
        if fields:
            queryset = queryset.only(*fields)
        if sort:
            queryset = queryset.order_by(*sort)
        elif offset or limit is not None:
            queryset = queryset.order_by("-pk")
        if limit is not None:
            queryset = queryset[offset : offset + limit]
        elif offset:
            queryset = queryset[offset:]
        return await self._run(resource_type, "find_many", self._collect(queryset))

    async def find_one(self, resource_type: ResourceType, entity_id: Any) -> Any | None:
        queryset = self._models[resource_type].objects.filter(pk=entity_id)
        return await self._run(resource_type, "find_one", queryset.afirst())

    async def find_values(
        self,
        resource_type: ResourceType,
        field: str,
        filters: Predicate | None = None,
    ) -> list[Any]:
        if filters is MATCH_NOTHING:
            return []
        queryset = (
            self.queryset(resource_type, filters).order_by().values_list(field, flat=True).distinct()
        )
        return await self._run(resource_type, "find_values", self._collect(queryset))

    async def count(self, resource_type: ResourceType, filters: Predicate | None = None) -> int:
        if filters is MATCH_NOTHING:
            return 0
        return await self._run(resource_type, "count", self.queryset(resource_type, filters).acount())

    async def create(self, resource_type: ResourceType, data: Mapping[str, Any]) -> Any:
        manager = self._models[resource_type].objects
        return await self._run(resource_type, "create", manager.acreate(**data))

    async def update(
        self, resource_type: ResourceType, entity_id: Any, data: Mapping[str, Any]
    ) -> Any:
        model = self._models[resource_type]
        queryset = model.objects.filter(pk=entity_id)
        await self._run(resource_type, "update", queryset.aupdate(**_with_auto_now(model, data)))
        return await self.find_one(resource_type, entity_id)

    async def delete(self, resource_type: ResourceType, entity_id: Any) -> None:
        queryset = self._models[resource_type].objects.filter(pk=entity_id)
        await self._run(resource_type, "delete", queryset.adelete())

    @staticmethod
    async def _collect(queryset) -> list[Any]:
        return [row async for row in queryset]

    @staticmethod
    async def _run(resource_type: ResourceType, action: str, awaitable):
        try:
            return await awaitable
        except DatabaseError as exc:
            logger.error("%s on %s failed: %s", action, resource_type.value, exc)
            raise InternalQueryFailure() from exc


__all__ = ["DjangoRepository", "MODELS", "predicate_to_q"]
