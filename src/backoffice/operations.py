"""Per-product and per-banner mutations applied by the bulk executor."""

from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Awaitable, Callable

from django.utils import timezone

from visibility.protocols import Repository
from visibility.types import ResourceType

PRICE_FLOOR = Decimal("0")
PRICE_CEILING = Decimal("999999.99")
CENT = Decimal("0.01")

Apply = Callable[[Any], Awaitable[Any]]


def adjust_price(current: Decimal, operation: str, value: Decimal) -> Decimal:
    """New price after ``operation``, clamped to the catalog range and rounded to cents."""
    current = Decimal(current)
    value = Decimal(value)
    if operation == "set":
        price = value
    elif operation == "increase":
        price = current + value
    elif operation == "decrease":
        price = current - value
    elif operation == "percentage":
        price = current * (1 + value / 100)
    else:
        raise ValueError(f"Unknown price operation: {operation}")
    price = min(max(price, PRICE_FLOOR), PRICE_CEILING)
    return price.quantize(CENT, rounding=ROUND_HALF_UP)


def adjust_stock(current: int, operation: str, value: int) -> int:
    if operation == "set":
        return value
    if operation == "increase":
        return current + value
    if operation == "decrease":
        return max(0, current - value)
    raise ValueError(f"Unknown stock operation: {operation}")


def set_published(repository: Repository, publish: bool) -> Apply:
    async def apply(product):
        published_at = (product.published_at or timezone.now()) if publish else None
        await repository.update(ResourceType.PRODUCT, product.id, {"published_at": published_at})

    return apply


def set_category(repository: Repository, category_id: int | None) -> Apply:
    async def apply(product):
        await repository.update(ResourceType.PRODUCT, product.id, {"category_id": category_id})

    return apply


def change_price(repository: Repository, operation: str, value: Decimal) -> Apply:
    async def apply(product):
        price = adjust_price(product.price, operation, value)
        await repository.update(ResourceType.PRODUCT, product.id, {"price": price})

    return apply


def change_stock(repository: Repository, operation: str, value: int) -> Apply:
    async def apply(product):
        stock = adjust_stock(product.stock, operation, value)
        await repository.update(ResourceType.PRODUCT, product.id, {"stock": stock})

    return apply


def delete_entity(repository: Repository, resource_type: ResourceType) -> Apply:
    async def apply(entity):
        await repository.delete(resource_type, entity.id)

    return apply


def set_banner_active(repository: Repository, is_active: bool) -> Apply:
    async def apply(banner):
        await repository.update(ResourceType.BANNER, banner.id, {"is_active": is_active})

    return apply



def set_sort_order(
    repository: Repository, resource_type: ResourceType, positions: dict[int, int]
) -> Apply:
    """Move each entity to the position ``positions`` assigns to its id."""

    async def apply(entity):
        await repository.update(resource_type, entity.id, {"sort_order": positions[entity.id]})

    return apply


__all__ = [
    "PRICE_CEILING",
    "adjust_price",
    "adjust_stock",
    "change_price",
    "change_stock",
    "delete_entity",
    "set_banner_active",
    "set_category",
    "set_published",
    "set_sort_order",
]
