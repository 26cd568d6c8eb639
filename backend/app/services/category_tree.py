"""Pure helpers for the materialized-path category tree.

Nothing in this module touches the database: it builds path encodings
from a parent's fields and assembles nested trees from an in-memory
snapshot of categories.
"""

import uuid
from collections import defaultdict
from typing import Iterable, Optional, Sequence

from app.core.exceptions import DepthExceededError
from app.schemas.category import CategoryTreeResponse


def build_category_path(slug: str, parent_path: Optional[str]) -> str:
    """Build the slug path of a category.

    Args:
        slug: Category slug
        parent_path: Parent's path, None or "" for roots

    Returns:
        Full path (e.g., "/electronics/computers/laptops")
    """
    if not parent_path:
        return f"/{slug}"
    return f"{parent_path}/{slug}"


def build_path_ids(category_id: uuid.UUID, parent_path_ids: Optional[Sequence[uuid.UUID]]) -> list[uuid.UUID]:
    """Append a category id to its parent's ancestor ids."""
    if not parent_path_ids:
        return [category_id]
    return [*parent_path_ids, category_id]


def path_from_slugs(slugs: Iterable[str]) -> str:
    """Join slugs from the root down into a path."""
    return "".join(f"/{slug}" for slug in slugs)


def validate_depth_limit(level: int, max_depth: int = 10) -> None:
    """Raise DepthExceededError if a category at ``level`` is too deep.

    Levels start at 0, so ``max_depth`` levels means ``level < max_depth``.
    """
    if level >= max_depth:
        raise DepthExceededError(max_depth)


def build_category_tree(
    categories: Iterable,
    parent_id: Optional[uuid.UUID] = None,
    max_depth: Optional[int] = None,
) -> list[CategoryTreeResponse]:
    """Build a nested tree from a flat list of categories.

    Siblings are sorted by display_order. Nodes at the depth cutoff get
    an empty ``children`` list even when they have children in the input.

    Args:
        categories: Flat snapshot of categories (ORM objects or any object
            with the CategoryResponse attributes)
        parent_id: Parent whose subtree to build, None for the whole forest
        max_depth: Number of levels to include, None for unlimited

    Returns:
        List of top-level tree nodes
    """
    by_parent: dict[Optional[uuid.UUID], list] = defaultdict(list)
    for category in categories:
        by_parent[category.parent_id].append(category)

    def _build(current_parent: Optional[uuid.UUID], depth: int) -> list[CategoryTreeResponse]:
        if max_depth is not None and depth >= max_depth:
            return []

        nodes = []
        for category in sorted(by_parent.get(current_parent, []), key=lambda c: c.display_order or 0):
            node = CategoryTreeResponse.model_validate(category)
            node.children = _build(category.id, depth + 1)
            nodes.append(node)
        return nodes

    return _build(parent_id, 0)


def flatten_category_tree(nodes: Iterable[CategoryTreeResponse]) -> list[CategoryTreeResponse]:
    """Linearize a nested tree depth-first, parents before children."""
    flat: list[CategoryTreeResponse] = []
    for node in nodes:
        flat.append(node)
        flat.extend(flatten_category_tree(node.children))
    return flat


def sort_by_level(categories: Iterable) -> list:
    """Order categories by (level, display_order)."""
    return sorted(categories, key=lambda c: (c.level, c.display_order or 0))
