"""Category service for the hierarchical product catalog.

Categories form a forest stored as materialized paths (``path``,
``path_ids``, ``level``). Every structural change rewrites the moved
node and then its whole subtree, which is found with a single
containment query on ``path_ids``. Writes are committed in batches of at
most ``CATEGORY_BATCH_SIZE`` rows; a large subtree is therefore visible
half-rewritten between batches, and a failure after the first batch is
reported as PropagationFailureError.

Concurrent structural changes to overlapping subtrees are not serialized
here and must be serialized by the caller.
"""

import uuid
from collections import defaultdict, deque
from typing import Any, Awaitable, Callable, Iterable, Optional, Sequence, Tuple
from uuid import UUID

import structlog
from sqlalchemy import delete, func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import settings
from app.core.exceptions import (
    CircularReferenceError,
    DuplicateSlugError,
    HasAssociatedProductsError,
    HasChildrenError,
    NotFoundError,
    PropagationFailureError,
)
from app.models.category import Category
from app.schemas.category import (
    CategoryAncestorsResponse,
    CategoryResponse,
    CategoryTreeResponse,
    DeleteResult,
    RebuildResult,
)
from app.services.category_tree import (
    build_category_path,
    build_category_tree,
    build_path_ids,
    path_from_slugs,
    sort_by_level,
    validate_depth_limit,
)
from app.services.product_service import ProductService

logger = structlog.get_logger(__name__)

# (category, {field: value}) pairs applied batch by batch
Write = Tuple[Category, dict[str, Any]]

COSMETIC_FIELDS = ("name", "description", "image_url", "display_order", "is_active")

# Cosmetic fields that may be set back to None
NULLABLE_FIELDS = ("image_url",)


class CategoryService:
    """Service for reading and mutating the category tree.

    Reads work on the redundant path fields: one bulk fetch plus in-memory
    assembly. Mutations keep ``path``, ``path_ids``, ``level`` and the
    cached counters consistent across the whole affected subtree.
    """

    def __init__(
        self,
        db: AsyncSession,
        max_depth: Optional[int] = None,
        batch_size: Optional[int] = None,
    ):
        """Initialize category service.

        Args:
            db: Async database session
            max_depth: Nesting limit, defaults to settings.CATEGORY_MAX_DEPTH
            batch_size: Rows per committed batch, defaults to
                settings.CATEGORY_BATCH_SIZE
        """
        self.db = db
        self.max_depth = max_depth or settings.CATEGORY_MAX_DEPTH
        self.batch_size = batch_size or settings.CATEGORY_BATCH_SIZE
        self.products = ProductService(db)
        self.logger = logger.bind(service="category_service")

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def get_category(self, category_id: UUID) -> Category:
        """Fetch a category by id.

        Raises:
            NotFoundError: If the category does not exist
        """
        category = await self.db.get(Category, category_id)
        if category is None:
            raise NotFoundError("Category", str(category_id))
        return category

    async def get_category_by_slug(self, slug: str, parent_id: Optional[UUID] = None) -> Category:
        """Fetch a category by slug among the children of ``parent_id``."""
        category = await self._find_sibling_by_slug(slug, parent_id)
        if category is None:
            raise NotFoundError("Category", slug)
        return category

    async def list_categories(
        self,
        include_inactive: bool = False,
        parent_id: Optional[UUID] = None,
        level: Optional[int] = None,
        page: int = 1,
        limit: int = 100,
    ) -> Tuple[list[Category], int]:
        """List categories flat, ordered by (level, display_order).

        Returns:
            Tuple of (categories for the page, total matching count)
        """
        query = select(Category)
        count_query = select(func.count(Category.id))

        filters = []
        if not include_inactive:
            filters.append(Category.is_active.is_(True))
        if parent_id is not None:
            filters.append(Category.parent_id == parent_id)
        if level is not None:
            filters.append(Category.level == level)

        for condition in filters:
            query = query.where(condition)
            count_query = count_query.where(condition)

        total = (await self.db.execute(count_query)).scalar() or 0

        query = (
            query.order_by(Category.level, Category.display_order, Category.name)
            .offset((page - 1) * limit)
            .limit(limit)
        )
        result = await self.db.execute(query)
        return list(result.scalars().all()), total

    async def get_tree(
        self,
        parent_id: Optional[UUID] = None,
        max_depth: Optional[int] = None,
        include_inactive: bool = False,
    ) -> list[CategoryTreeResponse]:
        """Build the nested category tree below ``parent_id`` (or the forest).

        Inactive categories are left out together with everything below
        them unless ``include_inactive`` is set.
        """
        if parent_id is not None:
            await self.get_category(parent_id)
            categories = await self._find_subtree(parent_id)
        else:
            categories = await self._find_all()

        if not include_inactive:
            categories = [c for c in categories if c.is_active]

        return build_category_tree(categories, parent_id=parent_id, max_depth=max_depth)

    async def get_children(self, category_id: UUID) -> list[Category]:
        """Direct children of a category, ordered by display_order."""
        await self.get_category(category_id)
        return await self._find_children(category_id)

    async def get_descendants(self, category_id: UUID) -> list[Category]:
        """All descendants of a category ordered by (level, display_order)."""
        await self.get_category(category_id)
        subtree = await self._find_subtree(category_id)
        return sort_by_level(c for c in subtree if c.id != category_id)

    async def get_with_ancestors(self, category_id: UUID) -> CategoryAncestorsResponse:
        """Resolve a category together with its ancestors and breadcrumb."""
        category = await self.get_category(category_id)
        ancestor_ids = category.path_ids[:-1]

        ancestors: list[Category] = []
        if ancestor_ids:
            result = await self.db.execute(select(Category).where(Category.id.in_(ancestor_ids)))
            by_id = {c.id: c for c in result.scalars().all()}
            ancestors = [by_id[a] for a in ancestor_ids if a in by_id]

        category_data = CategoryResponse.model_validate(category)
        ancestor_data = [CategoryResponse.model_validate(a) for a in ancestors]
        return CategoryAncestorsResponse(
            category=category_data,
            ancestors=ancestor_data,
            breadcrumb=[*ancestor_data, category_data],
        )

    async def count_children(self, category_id: UUID) -> int:
        """Count categories whose parent is ``category_id``."""
        result = await self.db.execute(
            select(func.count(Category.id)).where(Category.parent_id == category_id)
        )
        return result.scalar() or 0

    async def count_descendants(self, category_id: UUID) -> int:
        """Count all categories below ``category_id``."""
        result = await self.db.execute(
            select(func.count(Category.id)).where(Category.path_ids_key.contains(str(category_id)))
        )
        return max(0, (result.scalar() or 0) - 1)

    # ------------------------------------------------------------------
    # Validation
    # ------------------------------------------------------------------

    async def validate_move(self, category_id: UUID, new_parent_id: Optional[UUID]) -> Optional[Category]:
        """Check that re-parenting ``category_id`` under ``new_parent_id`` keeps the tree acyclic.

        Returns:
            The new parent, or None when moving to the root

        Raises:
            CircularReferenceError: If the new parent is the category itself
                or one of its descendants
            NotFoundError: If the new parent does not exist
        """
        if new_parent_id is None:
            return None

        if new_parent_id == category_id:
            raise CircularReferenceError("Cannot set category as its own parent")

        parent = await self.db.get(Category, new_parent_id)
        if parent is None:
            raise NotFoundError("Parent category", str(new_parent_id))

        if category_id in parent.path_ids:
            raise CircularReferenceError("Cannot move category to its own descendant")

        return parent

    async def _ensure_unique_slug(
        self,
        slug: str,
        parent_id: Optional[UUID],
        exclude_id: Optional[UUID] = None,
    ) -> None:
        existing = await self._find_sibling_by_slug(slug, parent_id)
        if existing is not None and existing.id != exclude_id:
            scope = f"under parent '{parent_id}'" if parent_id else "among root categories"
            raise DuplicateSlugError(slug, scope)

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    async def create_category(
        self,
        name: str,
        slug: str,
        parent_id: Optional[UUID] = None,
        display_order: int = 0,
        is_active: bool = True,
        description: str = "",
        image_url: Optional[str] = None,
    ) -> Category:
        """Create a root category or a child of ``parent_id``.

        Raises:
            NotFoundError: If the parent does not exist
            DepthExceededError: If the new category would be too deep
            DuplicateSlugError: If a sibling already uses the slug
        """
        parent = None
        level = 0
        if parent_id is not None:
            parent = await self.db.get(Category, parent_id)
            if parent is None:
                raise NotFoundError("Parent category", str(parent_id))
            level = parent.level + 1

        validate_depth_limit(level, self.max_depth)
        await self._ensure_unique_slug(slug, parent_id)

        category_id = uuid.uuid4()
        category = Category(
            id=category_id,
            name=name,
            slug=slug,
            description=description or "",
            image_url=image_url,
            parent_id=parent_id,
            path=build_category_path(slug, parent.path if parent else None),
            level=level,
            display_order=display_order,
            is_active=is_active,
            children_count=0,
            descendants_count=0,
            is_leaf=True,
            product_count=0,
            has_products=False,
        )
        category.path_ids = build_path_ids(category_id, parent.path_ids if parent else None)
        self.db.add(category)

        ancestor_ids = parent.path_ids if parent else []
        await self._commit_in_batches(
            category_id,
            [],
            finalize=lambda: self._refresh_counters(ancestor_ids),
        )

        self.logger.info(
            "category_created",
            category_id=str(category_id),
            path=category.path,
            level=level,
        )
        return category

    async def update_category(self, category_id: UUID, **fields: Any) -> Category:
        """Update cosmetic fields and/or the slug of a category.

        A slug change rewrites the path of every descendant.

        Raises:
            NotFoundError: If the category does not exist
            DuplicateSlugError: If a sibling already uses the new slug
        """
        category = await self.get_category(category_id)

        changes = {
            f: fields[f]
            for f in COSMETIC_FIELDS
            if f in fields and (fields[f] is not None or f in NULLABLE_FIELDS)
        }

        writes: list[Write] = []
        new_slug = fields.get("slug")
        if new_slug is not None and new_slug != category.slug:
            await self._ensure_unique_slug(new_slug, category.parent_id, exclude_id=category.id)

            parent_path = None
            if category.parent_id is not None:
                parent_path = (await self.get_category(category.parent_id)).path
            new_path = build_category_path(new_slug, parent_path)
            changes.update(slug=new_slug, path=new_path)

            subtree = await self._find_subtree(category.id)
            slugs = {c.id: c.slug for c in subtree}
            slugs[category.id] = new_slug
            writes = self._plan_descendant_rewrites(category.id, new_path, category.path_ids, subtree, slugs)

        await self._commit_in_batches(category.id, [(category, changes), *writes])

        self.logger.info(
            "category_updated",
            category_id=str(category_id),
            fields=sorted(changes),
            descendants_updated=len(writes),
        )
        return category

    async def move_category(
        self,
        category_id: UUID,
        new_parent_id: Optional[UUID],
        display_order: Optional[int] = None,
    ) -> Category:
        """Re-parent a category (None moves it to the root) with its subtree.

        Raises:
            NotFoundError: If the category or the new parent does not exist
            CircularReferenceError: If the new parent is inside the subtree
            DuplicateSlugError: If the new siblings already use the slug
            DepthExceededError: If the deepest moved node would be too deep
        """
        category = await self.get_category(category_id)
        new_parent = await self.validate_move(category_id, new_parent_id)

        if new_parent_id != category.parent_id:
            await self._ensure_unique_slug(category.slug, new_parent_id, exclude_id=category.id)

        subtree = await self._find_subtree(category_id)
        new_level = new_parent.level + 1 if new_parent else 0
        deepest = max((c.level for c in subtree), default=category.level)
        validate_depth_limit(new_level + deepest - category.level, self.max_depth)

        old_path_ids = category.path_ids
        new_path = build_category_path(category.slug, new_parent.path if new_parent else None)
        new_path_ids = build_path_ids(category_id, new_parent.path_ids if new_parent else None)

        changes: dict[str, Any] = {
            "parent_id": new_parent_id,
            "path": new_path,
            "path_ids": new_path_ids,
            "level": new_level,
        }
        if display_order is not None:
            changes["display_order"] = display_order

        slugs = {c.id: c.slug for c in subtree}
        writes = self._plan_descendant_rewrites(category_id, new_path, new_path_ids, subtree, slugs)

        # Old and new ancestors both need fresh counters
        affected = list(dict.fromkeys([*old_path_ids[:-1], *new_path_ids[:-1]]))
        await self._commit_in_batches(
            category_id,
            [(category, changes), *writes],
            finalize=lambda: self._refresh_counters(affected),
        )

        self.logger.info(
            "category_moved",
            category_id=str(category_id),
            new_parent_id=str(new_parent_id) if new_parent_id else None,
            path=new_path,
            descendants_updated=len(writes),
        )
        return category

    async def delete_category(
        self,
        category_id: UUID,
        permanent: bool = False,
        cascade: bool = False,
    ) -> DeleteResult:
        """Soft-delete (deactivate) or permanently delete a category.

        With ``cascade`` the whole subtree is deleted; without it a category
        that still has children is rejected.

        Raises:
            NotFoundError: If the category does not exist
            HasChildrenError: If it has children and cascade is not set
            HasAssociatedProductsError: If products reference any deleted category
        """
        category = await self.get_category(category_id)

        children = await self.count_children(category_id)
        if children > 0 and not cascade:
            raise HasChildrenError(str(category_id), children)

        targets = await self._find_subtree(category_id) if cascade else [category]
        target_ids = [c.id for c in targets]

        if await self.products.has_associated_products(target_ids):
            raise HasAssociatedProductsError(str(category_id))

        ancestor_ids = category.path_ids[:-1]

        async def refresh() -> None:
            await self._refresh_counters(ancestor_ids)

        if permanent:
            # Deepest rows first so no batch removes a parent before its children
            ordered = [c.id for c in sorted(targets, key=lambda c: c.level, reverse=True)]
            await self._run_in_batches(category_id, ordered, self._delete_rows, finalize=refresh)
        else:
            writes = [(c, {"is_active": False}) for c in targets]
            await self._commit_in_batches(category_id, writes, finalize=refresh)

        self.logger.info(
            "category_deleted",
            category_id=str(category_id),
            permanent=permanent,
            cascade=cascade,
            deleted_count=len(target_ids),
        )
        return DeleteResult(deleted_count=len(target_ids), permanent=permanent)

    async def reorder(self, updates: Sequence[Tuple[UUID, int]]) -> int:
        """Apply (id, display_order) pairs as independent field updates.

        Raises:
            NotFoundError: If any id does not resolve; nothing is written
        """
        orders = dict(updates)
        if not orders:
            return 0

        result = await self.db.execute(select(Category).where(Category.id.in_(list(orders))))
        by_id = {c.id: c for c in result.scalars().all()}

        for category_id in orders:
            if category_id not in by_id:
                raise NotFoundError("Category", str(category_id))

        writes = [(by_id[cid], {"display_order": order}) for cid, order in orders.items()]
        await self._commit_in_batches(next(iter(orders)), writes)

        self.logger.info("categories_reordered", updated_count=len(writes))
        return len(writes)

    async def refresh_product_stats(self, category_id: UUID) -> Category:
        """Recompute product_count / has_products from the product catalog."""
        category = await self.get_category(category_id)
        count = await self.products.count_for_category(category_id)
        category.product_count = count
        category.has_products = count > 0
        await self.db.commit()
        return category

    async def rebuild_hierarchy(self, root_id: Optional[UUID] = None) -> RebuildResult:
        """Recompute path fields and counters from parent_id links alone.

        Repairs the forest (or the subtree under ``root_id``) after a
        PropagationFailureError. Categories whose parent chain never reaches
        a root (dangling parent or a cycle) are reported as orphaned and
        left untouched.

        Raises:
            NotFoundError: If root_id does not exist
        """
        categories = await self._find_all()
        by_id = {c.id: c for c in categories}
        if root_id is not None and root_id not in by_id:
            raise NotFoundError("Category", str(root_id))

        children: dict[Optional[UUID], list[Category]] = defaultdict(list)
        for category in categories:
            children[category.parent_id].append(category)

        # Breadth-first from real roots; unreachable nodes are orphans
        resolved: dict[UUID, Tuple[list[UUID], list[str]]] = {}
        order: list[Category] = []
        queue = deque((c, [], []) for c in children[None])
        while queue:
            node, parent_ids, parent_slugs = queue.popleft()
            if node.id in resolved:
                continue
            ids = [*parent_ids, node.id]
            slugs = [*parent_slugs, node.slug]
            resolved[node.id] = (ids, slugs)
            order.append(node)
            queue.extend((child, ids, slugs) for child in children[node.id])

        descendants: dict[UUID, int] = defaultdict(int)
        for node in reversed(order):
            for ancestor_id in resolved[node.id][0][:-1]:
                descendants[ancestor_id] += 1

        orphaned = [c.id for c in categories if c.id not in resolved]
        if root_id is not None:
            if root_id not in resolved:
                self.logger.warning("rebuild_root_orphaned", root_id=str(root_id))
                return RebuildResult(updated=0, orphaned=[root_id])
            scope = {
                cid for cid, (ids, _) in resolved.items() if root_id in ids
            } | set(resolved[root_id][0])
            orphaned = []
        else:
            scope = set(resolved)

        writes: list[Write] = []
        for node in order:
            if node.id not in scope:
                continue
            ids, slugs = resolved[node.id]
            if len(ids) > self.max_depth:
                self.logger.warning("rebuild_depth_exceeded", category_id=str(node.id), level=len(ids) - 1)
            child_count = len(children[node.id])
            expected = {
                "path": path_from_slugs(slugs),
                "path_ids_key": "/".join(str(i) for i in ids),
                "level": len(ids) - 1,
                "children_count": child_count,
                "descendants_count": descendants[node.id],
                "is_leaf": child_count == 0,
            }
            changes = {k: v for k, v in expected.items() if getattr(node, k) != v}
            if changes:
                writes.append((node, changes))

        await self._commit_in_batches(root_id, writes)

        if orphaned:
            self.logger.warning("rebuild_found_orphans", orphaned=[str(o) for o in orphaned])
        self.logger.info(
            "hierarchy_rebuilt",
            root_id=str(root_id) if root_id else None,
            updated=len(writes),
        )
        return RebuildResult(updated=len(writes), orphaned=orphaned)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _plan_descendant_rewrites(
        self,
        category_id: UUID,
        new_path: str,
        new_path_ids: list[UUID],
        subtree: Iterable[Category],
        slugs: dict[UUID, str],
    ) -> list[Write]:
        """Compute new path fields for every descendant of ``category_id``.

        Each descendant keeps its own ids below ``category_id`` and gets
        ``new_path_ids`` spliced in above them; its path is rebuilt from
        the slugs of those ids.
        """
        writes: list[Write] = []
        for descendant in subtree:
            if descendant.id == category_id:
                continue

            old_ids = descendant.path_ids
            if category_id not in old_ids:
                continue
            tail = old_ids[old_ids.index(category_id) + 1:]

            missing = [t for t in tail if t not in slugs]
            if missing:
                self.logger.warning(
                    "descendant_ancestor_missing",
                    category_id=str(descendant.id),
                    missing=[str(m) for m in missing],
                )
                continue

            ids = [*new_path_ids, *tail]
            writes.append((
                descendant,
                {
                    "path": new_path + path_from_slugs(slugs[t] for t in tail),
                    "path_ids": ids,
                    "level": len(ids) - 1,
                },
            ))

        writes.sort(key=lambda w: w[1]["level"])
        return writes

    async def _refresh_counters(self, category_ids: Iterable[UUID]) -> None:
        """Recompute children/descendant counters of the given categories."""
        for category_id in category_ids:
            category = await self.db.get(Category, category_id)
            if category is None:
                continue
            category.children_count = await self.count_children(category_id)
            category.descendants_count = await self.count_descendants(category_id)
            category.is_leaf = category.children_count == 0

    async def _apply_writes(self, batch: Sequence[Write]) -> None:
        for category, changes in batch:
            for field, value in changes.items():
                setattr(category, field, value)

    async def _delete_rows(self, batch: Sequence[UUID]) -> None:
        await self.db.execute(delete(Category).where(Category.id.in_(list(batch))))

    async def _commit_in_batches(
        self,
        category_id: Optional[UUID],
        writes: Sequence[Write],
        finalize: Optional[Callable[[], Awaitable[None]]] = None,
    ) -> int:
        return await self._run_in_batches(category_id, writes, self._apply_writes, finalize)

    async def _run_in_batches(
        self,
        category_id: Optional[UUID],
        items: Sequence,
        apply: Callable[[Sequence], Awaitable[None]],
        finalize: Optional[Callable[[], Awaitable[None]]] = None,
    ) -> int:
        """Apply ``items`` in committed batches of at most ``batch_size``.

        ``finalize`` runs inside the last batch, after its items are applied.

        Returns:
            Number of committed batches

        Raises:
            PropagationFailureError: If a batch fails after earlier batches
                were committed
            SQLAlchemyError: If the first batch fails; it is rolled back
        """
        batches = [items[i:i + self.batch_size] for i in range(0, len(items), self.batch_size)] or [[]]
        scope = str(category_id) if category_id else "all categories"
        committed = 0
        try:
            for index, batch in enumerate(batches):
                await apply(batch)
                if finalize is not None and index == len(batches) - 1:
                    await finalize()
                await self.db.commit()
                committed += 1
        except SQLAlchemyError as e:
            await self.db.rollback()
            if committed == 0:
                # Nothing was applied; the tree is unchanged
                self.logger.error("tree_update_rolled_back", category_id=scope, error=str(e))
                raise
            self.logger.error(
                "tree_propagation_failed",
                category_id=scope,
                committed_batches=committed,
                total_batches=len(batches),
                error=str(e),
                exc_info=True,
            )
            raise PropagationFailureError(scope, committed, str(e)) from e

        if len(batches) > 1:
            self.logger.info(
                "tree_batches_committed",
                category_id=scope,
                batches=committed,
                rows=len(items),
            )
        return committed

    async def _find_all(self) -> list[Category]:
        result = await self.db.execute(
            select(Category).order_by(Category.level, Category.display_order, Category.name)
        )
        return list(result.scalars().all())

    async def _find_children(self, category_id: UUID) -> list[Category]:
        result = await self.db.execute(
            select(Category)
            .where(Category.parent_id == category_id)
            .order_by(Category.display_order, Category.name)
        )
        return list(result.scalars().all())

    async def _find_subtree(self, category_id: UUID) -> list[Category]:
        """The category and every descendant, via containment on path_ids."""
        result = await self.db.execute(
            select(Category)
            .where(Category.path_ids_key.contains(str(category_id)))
            .order_by(Category.level, Category.display_order, Category.name)
        )
        return list(result.scalars().all())

    async def _find_sibling_by_slug(self, slug: str, parent_id: Optional[UUID]) -> Optional[Category]:
        query = select(Category).where(Category.slug == slug)
        if parent_id is None:
            query = query.where(Category.parent_id.is_(None))
        else:
            query = query.where(Category.parent_id == parent_id)
        result = await self.db.execute(query.limit(1))
        return result.scalar_one_or_none()
