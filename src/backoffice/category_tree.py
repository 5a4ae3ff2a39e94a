"""Category hierarchy: nesting a flat list and guarding re-parenting."""

from __future__ import annotations

from collections import defaultdict
from typing import Any, Iterable, Mapping

from visibility.errors import InvalidInput
from visibility.protocols import Repository
from visibility.types import ResourceType

CIRCULAR_MOVE_MESSAGE = "Cannot move category: circular reference detected"


def _sort_key(category) -> tuple:
    return (category.sort_order or 0, category.name, category.id)


def build_category_tree(
    categories: Iterable[Any], product_counts: Mapping[int, int] | None = None
) -> list[dict]:
    """Nest ``categories`` under their parents, siblings ordered by ``sort_order``.

    A category whose parent is not in ``categories`` becomes a root, so a
    partial list still renders every node exactly once.
    """
    product_counts = product_counts or {}
    by_id = {category.id: category for category in categories}
    children = defaultdict(list)
    roots = []
    for category in by_id.values():
        if category.parent_id in by_id and category.parent_id != category.id:
            children[category.parent_id].append(category)
        else:
            roots.append(category)

    placed: set[int] = set()

    def node(category) -> dict:
        placed.add(category.id)
        parent = by_id.get(category.parent_id)
        return {
            "id": category.id,
            "name": category.name,
            "sortOrder": category.sort_order or 0,
            "productCount": product_counts.get(category.id, 0),
            "parent": {"id": parent.id, "name": parent.name} if parent is not None else None,
            "children": [
                node(child)
                for child in sorted(children[category.id], key=_sort_key)
                if child.id not in placed
            ],
        }

    return [node(category) for category in sorted(roots, key=_sort_key)]


def tree_depth(tree: list[dict]) -> int:
    if not tree:
        return 0
    return 1 + max(tree_depth(item["children"]) for item in tree)


async def ensure_acyclic_move(
    repository: Repository, category_id: int, new_parent_id: int | None
) -> None:
    """Raise ``InvalidInput`` if ``category_id`` is ``new_parent_id`` or one of its ancestors."""
    current = new_parent_id
    visited: set[int] = set()
    while current is not None:
        if current == category_id or current in visited:
            raise InvalidInput(CIRCULAR_MOVE_MESSAGE)
        visited.add(current)
        parent = await repository.find_one(ResourceType.CATEGORY, current)
        current = getattr(parent, "parent_id", None)


__all__ = ["CIRCULAR_MOVE_MESSAGE", "build_category_tree", "ensure_acyclic_move", "tree_depth"]
