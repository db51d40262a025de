"""
Product and store master-data tests.

Verifies:
- Product create / update validation (allowlist, types, safety_stock)
- Global SKU uniqueness
- Soft delete hides a product until it is restored
- Store create / update, duplicate names and missing stores
- Store reads are limited to ADMIN and SUPERADMIN
"""

import pytest

from zyre.models import Product


# =============================================================================
# PRODUCTS
# =============================================================================


class TestProducts:

    def test_create_and_fetch(self, admin_client, db_session):
        client, headers = admin_client
        resp = client.post("/api/v1/products", json={
            "sku": "AMOX-250", "name": "Amoxicillin 250mg", "generic_name": "Amoxicillin", "safety_stock": "15",
        }, headers=headers)
        assert resp.status_code == 201
        created = resp.get_json()["data"]
        assert created["safety_stock"] == 15
        assert created["is_active"] is True

        fetched = client.get(f"/api/v1/products/{created['id']}").get_json()["data"]
        assert fetched["sku"] == "AMOX-250"

    @pytest.mark.parametrize("payload, message", [
        ({"name": "No SKU"}, "Missing required fields: sku"),
        ({"sku": "X-1", "name": "Bad", "price": 10}, "Field not allowed: price"),
        ({"sku": "X-1", "name": "Bad", "safety_stock": 1.5}, "safety_stock must be an integer, not a decimal"),
        ({"sku": "X-1", "name": "Bad", "safety_stock": -1}, "safety_stock must be >= 0"),
        ({"sku": "X-1", "name": "   "}, "name cannot be blank"),
    ])
    def test_create_rejects_bad_payload(self, admin_client, payload, message):
        client, headers = admin_client
        resp = client.post("/api/v1/products", json=payload, headers=headers)
        assert resp.status_code == 400
        assert resp.get_json()["message"] == message

    def test_sku_is_globally_unique(self, admin_client, product):
        client, headers = admin_client
        resp = client.post("/api/v1/products", json={"sku": product.sku, "name": "Copy"}, headers=headers)
        assert resp.status_code == 409

        other = client.post("/api/v1/products", json={"sku": "IBU-200", "name": "Ibuprofen"}, headers=headers)
        other_id = other.get_json()["data"]["id"]
        resp = client.put(f"/api/v1/products/{other_id}", json={"sku": product.sku}, headers=headers)
        assert resp.status_code == 409

    def test_partial_update(self, admin_client, product):
        client, headers = admin_client
        resp = client.put(f"/api/v1/products/{product.id}", json={"brand": "Biogesic"}, headers=headers)
        assert resp.status_code == 200
        data = resp.get_json()["data"]
        assert data["brand"] == "Biogesic"
        assert data["name"] == "Paracetamol 500mg"

    def test_soft_delete_and_restore(self, admin_client, product, db_session):
        client, headers = admin_client
        assert client.delete(f"/api/v1/products/{product.id}", headers=headers).status_code == 200
        assert db_session.get(Product, product.id) is not None

        listing = client.get("/api/v1/products").get_json()["data"]
        assert listing["items"] == []
        with_inactive = client.get("/api/v1/products?include_inactive=true").get_json()["data"]
        assert [p["id"] for p in with_inactive["items"]] == [product.id]

        restored = client.post(f"/api/v1/products/{product.id}/restore", headers=headers)
        assert restored.get_json()["data"]["is_active"] is True

    def test_search_and_pagination(self, admin_client, db_session):
        client, _ = admin_client
        for i in range(3):
            db_session.add(Product(sku=f"VIT-{i}", name=f"Vitamin C {i}", brand="Acme"))
        db_session.add(Product(sku="ZINC-1", name="Zinc"))
        db_session.commit()

        data = client.get("/api/v1/products?search=Vitamin&per_page=2&page=2").get_json()["data"]
        assert data["count"] == 1
        assert data["pagination"] == {
            "page": 2, "per_page": 2, "total": 3, "total_pages": 2, "has_next": False, "has_prev": True,
        }

    def test_missing_product_is_404(self, admin_client):
        client, headers = admin_client
        assert client.get("/api/v1/products/424242").status_code == 404
        assert client.delete("/api/v1/products/424242", headers=headers).status_code == 404

    def test_regular_user_reads_only(self, client, regular_user, product):
        from conftest import csrf_headers, login

        headers = csrf_headers(login(client, regular_user.email))
        assert client.get("/api/v1/products").status_code == 200
        assert client.post("/api/v1/products", json={"sku": "N-1", "name": "N"}, headers=headers).status_code == 403


# =============================================================================
# STORES
# =============================================================================


class TestStores:

    def test_create_list_update(self, admin_client):
        client, headers = admin_client
        resp = client.post("/api/v1/stores", json={"name": "Cebu Branch", "code": "CEB"}, headers=headers)
        assert resp.status_code == 201
        store = resp.get_json()["data"]

        resp = client.put(f"/api/v1/stores/{store['id']}", json={"is_active": False}, headers=headers)
        assert resp.status_code == 200
        assert resp.get_json()["data"]["is_active"] is False

        assert client.get("/api/v1/stores").get_json()["data"] == []
        inactive = client.get("/api/v1/stores?include_inactive=1").get_json()["data"]
        assert [s["code"] for s in inactive] == ["CEB"]

    def test_duplicate_and_missing_name(self, admin_client):
        client, headers = admin_client
        client.post("/api/v1/stores", json={"name": "Main"}, headers=headers)

        dup = client.post("/api/v1/stores", json={"name": "Main"}, headers=headers)
        assert dup.status_code == 400
        assert dup.get_json()["message"] == "Store name already exists"

        assert client.post("/api/v1/stores", json={}, headers=headers).status_code == 400

    def test_missing_store(self, admin_client):
        client, headers = admin_client
        assert client.get("/api/v1/stores/999").status_code == 404
        assert client.put("/api/v1/stores/999", json={"name": "X"}, headers=headers).status_code == 404

    def test_regular_user_cannot_read(self, client, regular_user):
        from conftest import login

        login(client, regular_user.email)
        assert client.get("/api/v1/stores").status_code == 403
        assert client.get("/api/v1/stores/1").status_code == 403


class TestUserAssignment:

    def test_assign_stores(self, admin_client, regular_user, db_session):
        client, headers = admin_client
        store = client.post("/api/v1/stores", json={"name": "Davao"}, headers=headers).get_json()["data"]

        resp = client.put(
            f"/api/v1/users/{regular_user.id}/assign", json={"storeIds": [store["id"]]}, headers=headers,
        )
        assert resp.status_code == 200
        db_session.refresh(regular_user)
        assert [s.id for s in regular_user.stores] == [store["id"]]

    def test_assign_unknown_store(self, admin_client, regular_user):
        client, headers = admin_client
        resp = client.put(f"/api/v1/users/{regular_user.id}/assign", json={"storeIds": [999]}, headers=headers)
        assert resp.status_code == 400
