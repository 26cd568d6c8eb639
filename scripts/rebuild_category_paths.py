#!/usr/bin/env python3
"""Rebuild category path fields and counters from parent links.

Operator recovery after a failed tree update (PropagationFailureError):
recomputes path, path_ids, level, children_count, descendants_count and
is_leaf for the whole forest or a single subtree.
"""

import argparse
import asyncio
import os
import sys
import uuid
from typing import Optional

# Add backend to path so we can import app modules
sys.path.insert(0, os.path.join(os.path.dirname(__file__), "..", "backend"))

from app.db.session import async_session_factory
from app.services.category_service import CategoryService


async def rebuild(root_id: Optional[uuid.UUID], batch_size: Optional[int]) -> int:
    """Run the rebuild and print a summary.

    Returns:
        Process exit code (1 when orphaned categories were found)
    """
    async with async_session_factory() as session:
        service = CategoryService(session, batch_size=batch_size)
        result = await service.rebuild_hierarchy(root_id)

    scope = f"subtree {root_id}" if root_id else "all categories"
    print(f"Rebuilt {scope}: {result.updated} categories updated")

    if result.orphaned:
        print(f"{len(result.orphaned)} orphaned categories (parent missing or cyclic):")
        for orphan_id in result.orphaned:
            print(f"  - {orphan_id}")
        return 1
    return 0


def main():
    """Parse arguments and run the rebuild."""
    parser = argparse.ArgumentParser(
        description="Rebuild materialized category paths from parent links",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python scripts/rebuild_category_paths.py
  python scripts/rebuild_category_paths.py --root 0b6f3c8e-4d1a-4c55-9b0e-2f7a1d3c9e10
  python scripts/rebuild_category_paths.py --batch-size 100
        """,
    )

    parser.add_argument(
        "--root",
        type=uuid.UUID,
        help="Only rebuild the subtree under this category id",
    )

    parser.add_argument(
        "--batch-size",
        type=int,
        help="Rows per committed batch (default: CATEGORY_BATCH_SIZE)",
    )

    args = parser.parse_args()

    sys.exit(asyncio.run(rebuild(args.root, args.batch_size)))


if __name__ == "__main__":
    main()
