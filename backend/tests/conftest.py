"""Pytest configuration and shared fixtures."""

import fnmatch
import os

# Settings are read at import time; configure before importing the app
os.environ.setdefault("ENVIRONMENT", "test")
os.environ.setdefault("DEBUG", "false")
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("ADMIN_API_KEY", "test-admin-key")

from typing import Optional
from uuid import UUID

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from app.dependencies import get_db
from app.main import app
from app.models import Base, Category
from app.services.cache_service import get_cache
from app.services.category_service import CategoryService


class FakeCache:
    """In-memory stand-in for CacheService."""

    def __init__(self):
        self.store: dict[str, str] = {}
        self.invalidations = 0

    async def get(self, key: str) -> Optional[str]:
        return self.store.get(key)

    async def set(self, key: str, value: str, ttl: int = 300) -> bool:
        self.store[key] = value
        return True

    async def delete_pattern(self, pattern: str) -> int:
        self.invalidations += 1
        keys = [k for k in self.store if fnmatch.fnmatch(k, pattern)]
        for key in keys:
            del self.store[key]
        return len(keys)

    async def health_check(self) -> bool:
        return True

    async def close(self) -> None:
        pass


@pytest_asyncio.fixture
async def session_factory():
    """In-memory SQLite database shared by every session of one test."""
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        poolclass=StaticPool,
        echo=False,
    )

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

    await engine.dispose()


@pytest_asyncio.fixture
async def test_db(session_factory) -> AsyncSession:
    async with session_factory() as session:
        yield session


@pytest.fixture
def service(test_db: AsyncSession) -> CategoryService:
    return CategoryService(test_db)


@pytest.fixture
def admin_headers() -> dict[str, str]:
    return {"X-Admin-Key": os.environ["ADMIN_API_KEY"]}


@pytest.fixture
def fake_cache() -> FakeCache:
    return FakeCache()


@pytest_asyncio.fixture
async def client(session_factory, fake_cache):
    """HTTP client bound to the app with test database and cache."""

    async def override_get_db():
        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    async def override_get_cache():
        return fake_cache

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_cache] = override_get_cache

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()


@pytest.fixture
def check_tree():
    """Return a coroutine function validating the whole stored forest."""
    return _assert_tree_consistent


async def _assert_tree_consistent(db: AsyncSession) -> list[Category]:
    """Check every stored category against the materialized-path invariants.

    - path is the slash-join of the slugs along path_ids
    - level == len(path_ids) - 1
    - path_ids follows parent_id links and ends at a root
    - no two siblings share a slug
    - cached counters match the stored rows
    """
    result = await db.execute(select(Category))
    categories = list(result.scalars().all())
    by_id: dict[UUID, Category] = {c.id: c for c in categories}

    siblings: set[tuple] = set()
    for category in categories:
        ids = category.path_ids
        assert ids[-1] == category.id
        assert category.level == len(ids) - 1
        assert category.path == "".join(f"/{by_id[i].slug}" for i in ids)

        # parent chain terminates at a root within the depth bound
        chain = []
        node = category
        while node.parent_id is not None:
            chain.append(node.id)
            assert len(chain) <= 11
            node = by_id[node.parent_id]
        chain.append(node.id)
        assert list(reversed(chain)) == ids

        key = (category.parent_id, category.slug)
        assert key not in siblings
        siblings.add(key)

        children = [c for c in categories if c.parent_id == category.id]
        descendants = [c for c in categories if c.id != category.id and category.id in c.path_ids]
        assert category.children_count == len(children)
        assert category.descendants_count == len(descendants)
        assert category.is_leaf == (len(children) == 0)

    return categories
