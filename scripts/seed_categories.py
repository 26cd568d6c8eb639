"""Seed the categories table with a sample category tree.

Idempotent: nothing is created when categories already exist.
"""

import asyncio
import os
import sys

# Add backend to path so we can import app modules
sys.path.insert(0, os.path.join(os.path.dirname(__file__), "..", "backend"))

from app.db.seed import seed_categories
from app.db.session import async_session_factory, engine
from app.models import Base


async def main():
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    async with async_session_factory() as session:
        created = await seed_categories(session)

    if created:
        print(f"Added {created} categories")
    else:
        print("Categories already seeded. Skipping...")


if __name__ == "__main__":
    asyncio.run(main())
