"""HTTP tests for the categories, products and health endpoints."""

from uuid import uuid4

import pytest_asyncio
from httpx import AsyncClient

BASE = "/api/v1/categories"


async def create(client: AsyncClient, headers, **payload) -> dict:
    response = await client.post(BASE, json=payload, headers=headers)
    assert response.status_code == 201, response.text
    return response.json()["data"]


@pytest_asyncio.fixture
async def catalog(client: AsyncClient, admin_headers) -> dict[str, dict]:
    """electronics > laptops > gaming, plus fashion."""
    electronics = await create(client, admin_headers, name="Electronics", slug="electronics", display_order=1)
    fashion = await create(client, admin_headers, name="Fashion", slug="fashion", display_order=2)
    laptops = await create(client, admin_headers, name="Laptops", slug="laptops", parent_id=electronics["id"])
    gaming = await create(client, admin_headers, name="Gaming", slug="gaming", parent_id=laptops["id"])
    return {"electronics": electronics, "fashion": fashion, "laptops": laptops, "gaming": gaming}


class TestAdminGuard:
    """Write endpoints require the X-Admin-Key header."""

    async def test_create_without_key(self, client: AsyncClient):
        response = await client.post(BASE, json={"name": "Electronics", "slug": "electronics"})

        assert response.status_code == 403

    async def test_create_with_wrong_key(self, client: AsyncClient):
        response = await client.post(
            BASE,
            json={"name": "Electronics", "slug": "electronics"},
            headers={"X-Admin-Key": "nope"},
        )

        assert response.status_code == 403

    async def test_reads_are_public(self, client: AsyncClient):
        response = await client.get(f"{BASE}/tree")

        assert response.status_code == 200
        assert response.json() == {"status": "success", "data": [], "meta": None}


class TestCategoryWrites:
    """Create / update / move / delete over HTTP."""

    async def test_create_child(self, client: AsyncClient, catalog):
        laptops = catalog["laptops"]

        assert laptops["path"] == "/electronics/laptops"
        assert laptops["level"] == 1
        assert laptops["path_ids"] == [catalog["electronics"]["id"], laptops["id"]]

    async def test_invalid_slug_rejected(self, client: AsyncClient, admin_headers):
        response = await client.post(BASE, json={"name": "Bad", "slug": "Bad Slug"}, headers=admin_headers)

        assert response.status_code == 422

    async def test_duplicate_slug(self, client: AsyncClient, admin_headers, catalog):
        response = await client.post(
            BASE, json={"name": "Electronics", "slug": "electronics"}, headers=admin_headers
        )

        assert response.status_code == 409
        body = response.json()
        assert body["status"] == "error"
        assert body["error"]["code"] == "duplicate_slug"

    async def test_circular_move(self, client: AsyncClient, admin_headers, catalog):
        response = await client.post(
            f"{BASE}/{catalog['electronics']['id']}/move",
            json={"new_parent_id": catalog["gaming"]["id"]},
            headers=admin_headers,
        )

        assert response.status_code == 400
        assert response.json()["error"]["code"] == "circular_reference"

    async def test_move_to_root(self, client: AsyncClient, admin_headers, catalog):
        response = await client.post(
            f"{BASE}/{catalog['laptops']['id']}/move",
            json={"new_parent_id": None},
            headers=admin_headers,
        )

        assert response.status_code == 200
        assert response.json()["data"]["path"] == "/laptops"

        gaming = (await client.get(f"{BASE}/{catalog['gaming']['id']}")).json()["data"]
        assert gaming["path"] == "/laptops/gaming"
        assert gaming["level"] == 1

        electronics = (await client.get(f"{BASE}/{catalog['electronics']['id']}")).json()["data"]
        assert electronics["children_count"] == 0
        assert electronics["is_leaf"] is True

    async def test_update_slug(self, client: AsyncClient, admin_headers, catalog):
        response = await client.patch(
            f"{BASE}/{catalog['laptops']['id']}",
            json={"slug": "notebooks", "name": "Notebooks"},
            headers=admin_headers,
        )

        assert response.status_code == 200
        assert response.json()["data"]["path"] == "/electronics/notebooks"
        gaming = (await client.get(f"{BASE}/{catalog['gaming']['id']}")).json()["data"]
        assert gaming["path"] == "/electronics/notebooks/gaming"

    async def test_clear_image_url(self, client: AsyncClient, admin_headers):
        created = await create(
            client, admin_headers, name="Toys", slug="toys", image_url="https://cdn.example.com/toys.png"
        )

        response = await client.patch(f"{BASE}/{created['id']}", json={"image_url": None}, headers=admin_headers)

        assert response.status_code == 200
        assert response.json()["data"]["image_url"] is None
        assert response.json()["data"]["name"] == "Toys"

    async def test_delete_needs_cascade(self, client: AsyncClient, admin_headers, catalog):
        response = await client.delete(f"{BASE}/{catalog['electronics']['id']}", headers=admin_headers)

        assert response.status_code == 409
        assert response.json()["error"]["code"] == "has_children"

    async def test_hard_delete_cascade(self, client: AsyncClient, admin_headers, catalog):
        response = await client.delete(
            f"{BASE}/{catalog['electronics']['id']}",
            params={"permanent": "true", "cascade": "true"},
            headers=admin_headers,
        )

        assert response.status_code == 200
        assert response.json()["data"] == {"deleted_count": 3, "permanent": True}
        missing = await client.get(f"{BASE}/{catalog['gaming']['id']}")
        assert missing.status_code == 404

    async def test_reorder(self, client: AsyncClient, admin_headers, catalog):
        response = await client.post(
            f"{BASE}/reorder",
            json={
                "updates": [
                    {"id": catalog["fashion"]["id"], "display_order": 0},
                    {"id": catalog["electronics"]["id"], "display_order": 5},
                ]
            },
            headers=admin_headers,
        )

        assert response.status_code == 200
        assert response.json()["data"] == {"updated_count": 2}
        tree = (await client.get(f"{BASE}/tree")).json()["data"]
        assert [n["slug"] for n in tree] == ["fashion", "electronics"]

    async def test_rebuild(self, client: AsyncClient, admin_headers, catalog):
        response = await client.post(f"{BASE}/rebuild", headers=admin_headers)

        assert response.status_code == 200
        assert response.json()["data"] == {"updated": 0, "orphaned": []}


class TestCategoryReads:
    """Tree, listing and navigation endpoints."""

    async def test_by_slug(self, client: AsyncClient, catalog):
        root = await client.get(f"{BASE}/by-slug/electronics")
        child = await client.get(
            f"{BASE}/by-slug/laptops", params={"parent_id": catalog["electronics"]["id"]}
        )
        misplaced = await client.get(f"{BASE}/by-slug/laptops")

        assert root.json()["data"]["id"] == catalog["electronics"]["id"]
        assert child.json()["data"]["id"] == catalog["laptops"]["id"]
        assert misplaced.status_code == 404

    async def test_not_found(self, client: AsyncClient):
        response = await client.get(f"{BASE}/{uuid4()}")

        assert response.status_code == 404
        assert response.json()["error"]["code"] == "not_found"

    async def test_tree(self, client: AsyncClient, catalog):
        tree = (await client.get(f"{BASE}/tree")).json()["data"]

        assert [n["slug"] for n in tree] == ["electronics", "fashion"]
        laptops = tree[0]["children"][0]
        assert laptops["slug"] == "laptops"
        assert [n["slug"] for n in laptops["children"]] == ["gaming"]

    async def test_tree_max_depth(self, client: AsyncClient, catalog):
        tree = (await client.get(f"{BASE}/tree", params={"max_depth": 1})).json()["data"]

        assert all(n["children"] == [] for n in tree)

    async def test_tree_is_cached_and_invalidated(self, client: AsyncClient, admin_headers, catalog, fake_cache):
        await client.get(f"{BASE}/tree")
        assert "categories:tree:root:d*:active" in fake_cache.store

        invalidations = fake_cache.invalidations
        await create(client, admin_headers, name="Toys", slug="toys")

        assert fake_cache.invalidations == invalidations + 1
        assert fake_cache.store == {}
        tree = (await client.get(f"{BASE}/tree")).json()["data"]
        assert "toys" in [n["slug"] for n in tree]

    async def test_list_paginated(self, client: AsyncClient, catalog):
        body = (await client.get(BASE, params={"limit": 2})).json()

        assert [c["slug"] for c in body["data"]] == ["electronics", "fashion"]
        assert body["meta"] == {"page": 1, "limit": 2, "total": 4, "total_pages": 2}

    async def test_children_and_descendants(self, client: AsyncClient, catalog):
        electronics_id = catalog["electronics"]["id"]

        children = (await client.get(f"{BASE}/{electronics_id}/children")).json()["data"]
        descendants = (await client.get(f"{BASE}/{electronics_id}/descendants")).json()["data"]

        assert [c["slug"] for c in children] == ["laptops"]
        assert [c["slug"] for c in descendants] == ["laptops", "gaming"]

    async def test_ancestors(self, client: AsyncClient, catalog):
        data = (await client.get(f"{BASE}/{catalog['gaming']['id']}/ancestors")).json()["data"]

        assert data["category"]["slug"] == "gaming"
        assert [a["slug"] for a in data["ancestors"]] == ["electronics", "laptops"]
        assert [b["slug"] for b in data["breadcrumb"]] == ["electronics", "laptops", "gaming"]


class TestProducts:
    """Products endpoints and their effect on category deletion."""

    async def test_product_blocks_delete(self, client: AsyncClient, admin_headers, catalog):
        response = await client.post(
            "/api/v1/products",
            json={"name": "Gaming Laptop", "slug": "gaming-laptop", "category_id": catalog["gaming"]["id"]},
            headers=admin_headers,
        )
        assert response.status_code == 201

        gaming = (await client.get(f"{BASE}/{catalog['gaming']['id']}")).json()["data"]
        assert gaming["product_count"] == 1
        assert gaming["has_products"] is True

        response = await client.delete(
            f"{BASE}/{catalog['laptops']['id']}",
            params={"cascade": "true"},
            headers=admin_headers,
        )
        assert response.status_code == 409
        assert response.json()["error"]["code"] == "has_associated_products"

    async def test_list_products_in_subtree(self, client: AsyncClient, admin_headers, catalog):
        for slug, category in (("ultrabook", "laptops"), ("rig", "gaming"), ("scarf", "fashion")):
            await client.post(
                "/api/v1/products",
                json={"name": slug.title(), "slug": slug, "category_id": catalog[category]["id"]},
                headers=admin_headers,
            )

        response = await client.get(
            "/api/v1/products",
            params={"category_id": catalog["electronics"]["id"], "include_descendants": "true"},
        )

        assert sorted(p["slug"] for p in response.json()["data"]) == ["rig", "ultrabook"]


async def test_health(client: AsyncClient, catalog):
    response = await client.get("/api/v1/health")

    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "ok"
    assert data["environment"] == "test"
    assert data["category_count"] == 4
