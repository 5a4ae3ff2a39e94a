"""Condition tags that narrow a grant.

A condition knows two things: how to restrict an owned collection to the ids a
principal may see, and whether an already-fetched entity satisfies it. New
tags are added by registering another ``Condition``; call sites only ever pass
tag names around.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any

from .protocols import Repository
from .types import Principal, ResourceType

IS_CREATOR = "is-creator"


class Condition(ABC):
    tag: str

    @abstractmethod
    async def restrict(
        self, principal: Principal, resource_type: ResourceType, repository: Repository
    ) -> set[Any]:
        """Return the ids of ``resource_type`` that satisfy the condition."""

    @abstractmethod
    def permits(self, principal: Principal, entity: Any) -> bool:
        """Check a single materialized entity."""


class IsCreator(Condition):
    """Only entities whose ``created_by`` is the principal."""

    tag = IS_CREATOR
    owner_field = "created_by_id"

    async def restrict(self, principal, resource_type, repository) -> set[Any]:
        ids = await repository.find_values(
            resource_type, "id", {self.owner_field: {"$eq": principal.id}}
        )
        return set(ids)

    def permits(self, principal, entity) -> bool:
        owner = getattr(entity, self.owner_field, None)
        return owner is not None and owner == principal.id


class ConditionRegistry:
    """Tag name -> Condition lookup, with optional legacy aliases."""

    def __init__(self) -> None:
        self._by_tag: dict[str, Condition] = {}

    def register(self, condition: Condition, *aliases: str) -> None:
        for tag in (condition.tag, *aliases):
            self._by_tag[tag] = condition

    def lookup(self, tag: str) -> Condition | None:
        return self._by_tag.get(tag)

    def __contains__(self, tag: str) -> bool:
        return tag in self._by_tag


def default_registry() -> ConditionRegistry:
    registry = ConditionRegistry()
    registry.register(IsCreator(), "admin::is-creator")
    return registry


__all__ = ["Condition", "ConditionRegistry", "IS_CREATOR", "IsCreator", "default_registry"]
