"""
Inventory tests.

Verifies:
- Batch creation posts one INBOUND movement per item
- Movement posting sign rules, negative-stock and expired-item guards
- Expiry sweep zeroes stock with a compensating EXPIRED movement
- Replaying movements always equals current_quantity
- Low-stock and expired listings
- Batch update books quantity edits as ADJUSTMENT movements
- Soft delete and restore
- Movements grouped by batch
- Inventory reads are limited to ADMIN and SUPERADMIN
"""

from datetime import date, timedelta

import pytest
from conftest import batch_payload, csrf_headers, login
from sqlalchemy.exc import IntegrityError

from zyre.models import ActivityLog, InventoryBatch, InventoryItem, InventoryMovement
from zyre.services import expiry_service, inventory_service, movement_service


def create_batch(client, headers, payload):
    resp = client.post("/api/v1/inventory", json={"batches": [payload]}, headers=headers)
    assert resp.status_code == 201, resp.get_json()
    return resp.get_json()["data"][0]


def final_balance(item_id: int) -> int:
    result = movement_service.list_movements_with_running_balance(inventory_item_id=item_id, page=1, limit=100)
    return result["summary"]["final_balance"]


# =============================================================================
# BATCH CREATION
# =============================================================================


class TestBatchCreation:

    def test_creates_batch_items_and_inbound_movement(self, admin_client, product, db_session):
        client, headers = admin_client
        batch = create_batch(client, headers, batch_payload(product.id, quantity=100))

        assert batch["reference_number"].startswith("INV-")
        assert batch["status"] == "ACTIVE"
        assert batch["items_count"] == 1
        assert batch["total_cost_value_cents"] == 125000

        item_id = batch["items"][0]["id"]
        movements = db_session.query(InventoryMovement).filter_by(inventory_item_id=item_id).all()
        assert len(movements) == 1
        assert movements[0].movement_type == "INBOUND"
        assert movements[0].quantity == 100
        assert movements[0].reference_id == batch["reference_number"]

    def test_batch_number_unique_per_supplier(self, admin_client, product):
        client, headers = admin_client
        create_batch(client, headers, batch_payload(product.id, batch_number="DUP-1"))

        resp = client.post(
            "/api/v1/inventory",
            json={"batches": [batch_payload(product.id, batch_number="DUP-1")]},
            headers=headers,
        )
        assert resp.status_code == 409

        # Same batch number from another supplier is fine
        create_batch(client, headers, batch_payload(product.id, batch_number="DUP-1", supplier="Other Labs"))

    def test_rejects_unknown_product(self, admin_client, product):
        client, headers = admin_client
        resp = client.post(
            "/api/v1/inventory",
            json={"batches": [batch_payload(product.id + 999)]},
            headers=headers,
        )
        assert resp.status_code == 400

    def test_rejects_empty_request(self, admin_client):
        client, headers = admin_client
        resp = client.post("/api/v1/inventory", json={"batches": []}, headers=headers)
        assert resp.status_code == 400

    def test_requires_csrf_header(self, admin_client, product):
        client, _ = admin_client
        resp = client.post("/api/v1/inventory", json={"batches": [batch_payload(product.id)]})
        assert resp.status_code == 403

    def test_list_and_get(self, admin_client, product):
        client, headers = admin_client
        batch = create_batch(client, headers, batch_payload(product.id))

        listing = client.get("/api/v1/inventory").get_json()["data"]
        assert listing["pagination"]["total_items"] == 1
        assert listing["batches"][0]["id"] == batch["id"]

        detail = client.get(f"/api/v1/inventory/{batch['id']}")
        assert detail.status_code == 200
        assert detail.get_json()["data"]["batch_number"] == "B-001"

        assert client.get("/api/v1/inventory/99999").status_code == 404

    def test_other_integrity_errors_propagate(self, admin_client, product, db_session, monkeypatch):
        client, headers = admin_client
        first = create_batch(client, headers, batch_payload(product.id, batch_number="REF-1"))
        monkeypatch.setattr(inventory_service, "generate_reference_number", lambda: first["reference_number"])

        with pytest.raises(IntegrityError):
            inventory_service.create_batches([batch_payload(product.id, batch_number="REF-2")], user_id=None)
        assert db_session.query(InventoryBatch).count() == 1

    def test_only_supplier_batch_constraint_counts_as_conflict(self, db_session):
        def flush_error(**overrides):
            fields = dict(
                reference_number="INV-20260101-000001", batch_number="C-1",
                supplier_name="Acme Pharma", expiry_date=date.today(),
            )
            db_session.add(InventoryBatch(**fields))
            db_session.flush()
            fields.update(overrides)
            db_session.add(InventoryBatch(**fields))
            with pytest.raises(IntegrityError) as excinfo:
                db_session.flush()
            db_session.rollback()
            return excinfo.value

        assert inventory_service._is_batch_number_conflict(flush_error(reference_number="INV-20260101-000002"))
        assert not inventory_service._is_batch_number_conflict(flush_error(batch_number="C-2"))


# =============================================================================
# MOVEMENTS
# =============================================================================


class TestMovements:

    def test_outbound_and_adjustment(self, admin_client, product, db_session):
        client, headers = admin_client
        batch = create_batch(client, headers, batch_payload(product.id, quantity=100))
        item_id = batch["items"][0]["id"]

        resp = client.post(
            f"/api/v1/inventory/items/{item_id}/movements",
            json={"movementType": "OUTBOUND", "quantity": 30, "reason": "Dispatched"},
            headers=headers,
        )
        assert resp.status_code == 201
        assert resp.get_json()["data"]["new_quantity"] == 70

        resp = client.post(
            f"/api/v1/inventory/items/{item_id}/movements",
            json={"movementType": "ADJUSTMENT", "quantity": -5, "reason": "Count correction"},
            headers=headers,
        )
        assert resp.status_code == 201

        item = db_session.get(InventoryItem, item_id)
        assert item.current_quantity == 65
        assert final_balance(item_id) == 65

    def test_cannot_go_negative(self, admin_client, product, db_session):
        client, headers = admin_client
        batch = create_batch(client, headers, batch_payload(product.id, quantity=10))
        item_id = batch["items"][0]["id"]

        resp = client.post(
            f"/api/v1/inventory/items/{item_id}/movements",
            json={"movementType": "OUTBOUND", "quantity": 11},
            headers=headers,
        )
        assert resp.status_code == 409
        assert db_session.get(InventoryItem, item_id).current_quantity == 10

    def test_rejects_bad_type_and_quantity(self, admin_client, product):
        client, headers = admin_client
        batch = create_batch(client, headers, batch_payload(product.id))
        item_id = batch["items"][0]["id"]

        for body in (
            {"movementType": "INBOUND", "quantity": 5},
            {"movementType": "OUTBOUND", "quantity": -5},
            {"movementType": "ADJUSTMENT", "quantity": 0},
            {"movementType": "OUTBOUND", "quantity": 1.5},
        ):
            resp = client.post(f"/api/v1/inventory/items/{item_id}/movements", json=body, headers=headers)
            assert resp.status_code == 400, body

    def test_regular_user_forbidden(self, client, regular_user, product):
        headers = csrf_headers(login(client, regular_user.email))
        resp = client.post("/api/v1/inventory", json={"batches": [batch_payload(product.id)]}, headers=headers)
        assert resp.status_code == 403


# =============================================================================
# EXPIRY SWEEP
# =============================================================================


class TestExpirySweep:

    def _expire(self, db_session, batch_id: int):
        batch = db_session.get(InventoryBatch, batch_id)
        batch.expiry_date = date.today() - timedelta(days=2)
        db_session.commit()

    def test_sweep_zeroes_stock_and_keeps_invariant(self, admin_client, product, db_session):
        client, headers = admin_client
        batch = create_batch(client, headers, batch_payload(product.id, quantity=50))
        item_id = batch["items"][0]["id"]
        client.post(
            f"/api/v1/inventory/items/{item_id}/movements",
            json={"movementType": "OUTBOUND", "quantity": 20},
            headers=headers,
        )

        self._expire(db_session, batch["id"])
        result = expiry_service.expire_batches()

        assert result.ok
        assert result.batches_expired == 1
        assert result.items_expired == 1
        assert result.movements_created == 1

        item = db_session.get(InventoryItem, item_id)
        assert item.status == "EXPIRED"
        assert item.batch.status == "EXPIRED"
        assert item.current_quantity == 0
        assert final_balance(item_id) == item.current_quantity

        expired = db_session.query(InventoryMovement).filter_by(
            inventory_item_id=item_id, movement_type="EXPIRED"
        ).one()
        assert expired.quantity == -30

    def test_sweep_is_idempotent(self, admin_client, product, db_session):
        client, headers = admin_client
        batch = create_batch(client, headers, batch_payload(product.id))
        self._expire(db_session, batch["id"])

        expiry_service.expire_batches()
        second = expiry_service.expire_batches()
        assert second.batches_expired == 0
        assert second.movements_created == 0

    def test_expired_item_cannot_move(self, admin_client, product, db_session):
        client, headers = admin_client
        batch = create_batch(client, headers, batch_payload(product.id))
        item_id = batch["items"][0]["id"]
        self._expire(db_session, batch["id"])
        expiry_service.expire_batches()

        resp = client.post(
            f"/api/v1/inventory/items/{item_id}/movements",
            json={"movementType": "RETURN", "quantity": 1},
            headers=headers,
        )
        assert resp.status_code == 409

    def test_listing_runs_sweep(self, admin_client, product, db_session):
        client, headers = admin_client
        batch = create_batch(client, headers, batch_payload(product.id))
        self._expire(db_session, batch["id"])

        listing = client.get("/api/v1/inventory").get_json()["data"]
        assert listing["batches"][0]["status"] == "EXPIRED"

        expired = client.get("/api/v1/inventory/expired").get_json()["data"]
        assert [i["batch_id"] for i in expired["items"]] == [batch["id"]]


# =============================================================================
# LOW STOCK
# =============================================================================


class TestLowStock:

    def test_items_at_or_below_safety_stock(self, admin_client, product):
        client, headers = admin_client
        low = create_batch(client, headers, batch_payload(product.id, quantity=20, batch_number="LOW"))
        create_batch(client, headers, batch_payload(product.id, quantity=500, batch_number="HIGH"))

        data = client.get("/api/v1/inventory/low-stock").get_json()["data"]
        assert [i["batch_id"] for i in data["items"]] == [low["id"]]
        assert data["items"][0]["safety_stock"] == 20


# =============================================================================
# BATCH UPDATE, DELETE AND RESTORE
# =============================================================================


class TestBatchUpdate:

    def test_quantity_edit_books_adjustment(self, admin_client, product, db_session):
        client, headers = admin_client
        batch = create_batch(client, headers, batch_payload(product.id, quantity=100))
        item_id = batch["items"][0]["id"]

        resp = client.put(f"/api/v1/inventory/{batch['id']}", json={
            "invoiceNumber": "INV-9000",
            "items": [{"id": item_id, "currentQuantity": 80, "retailPriceCents": 2000, "reason": "Recount"}],
        }, headers=headers)
        assert resp.status_code == 200, resp.get_json()
        data = resp.get_json()["data"]
        assert data["invoice_number"] == "INV-9000"
        assert data["items"][0]["current_quantity"] == 80
        assert data["items"][0]["retail_price_cents"] == 2000

        adjustment = db_session.query(InventoryMovement).filter_by(
            inventory_item_id=item_id, movement_type="ADJUSTMENT"
        ).one()
        assert adjustment.quantity == -20
        assert (adjustment.previous_quantity, adjustment.new_quantity) == (100, 80)
        assert adjustment.reason == "Recount"
        assert final_balance(item_id) == 80

        log = db_session.query(ActivityLog).filter_by(model="InventoryBatch", action="UPDATE").one()
        assert log.record_id == batch["id"]

    def test_unchanged_quantity_writes_no_movement(self, admin_client, product, db_session):
        client, headers = admin_client
        batch = create_batch(client, headers, batch_payload(product.id, quantity=100))
        item_id = batch["items"][0]["id"]

        resp = client.put(f"/api/v1/inventory/{batch['id']}", json={
            "items": [{"id": item_id, "currentQuantity": 100}],
        }, headers=headers)
        assert resp.status_code == 200
        assert db_session.query(InventoryMovement).filter_by(inventory_item_id=item_id).count() == 1

    @pytest.mark.parametrize("item_change", [
        {"currentQuantity": 101},
        {"currentQuantity": -1},
        {"retailPriceCents": 1000},
        {"costPriceCents": -5},
    ])
    def test_rejects_invalid_item_changes(self, admin_client, product, db_session, item_change):
        client, headers = admin_client
        batch = create_batch(client, headers, batch_payload(product.id, quantity=100))
        item_id = batch["items"][0]["id"]

        resp = client.put(f"/api/v1/inventory/{batch['id']}", json={
            "items": [{"id": item_id, **item_change}],
        }, headers=headers)
        assert resp.status_code == 400, item_change

        item = db_session.get(InventoryItem, item_id)
        db_session.refresh(item)
        assert item.current_quantity == 100
        assert item.retail_price_cents == 1800

    def test_rejects_item_from_another_batch(self, admin_client, product):
        client, headers = admin_client
        first = create_batch(client, headers, batch_payload(product.id, batch_number="A"))
        second = create_batch(client, headers, batch_payload(product.id, batch_number="B"))

        resp = client.put(f"/api/v1/inventory/{first['id']}", json={
            "items": [{"id": second["items"][0]["id"], "currentQuantity": 1}],
        }, headers=headers)
        assert resp.status_code == 400

    def test_batch_number_stays_unique_per_supplier(self, admin_client, product):
        client, headers = admin_client
        create_batch(client, headers, batch_payload(product.id, batch_number="TAKEN"))
        batch = create_batch(client, headers, batch_payload(product.id, batch_number="FREE"))

        resp = client.put(f"/api/v1/inventory/{batch['id']}", json={"batchNumber": "TAKEN"}, headers=headers)
        assert resp.status_code == 409

        resp = client.put(f"/api/v1/inventory/{batch['id']}", json={"batchNumber": "RENAMED"}, headers=headers)
        assert resp.status_code == 200
        assert resp.get_json()["data"]["batch_number"] == "RENAMED"

    def test_rejects_manufacturing_after_expiry(self, admin_client, product):
        client, headers = admin_client
        batch = create_batch(client, headers, batch_payload(product.id))
        later = (date.today() + timedelta(days=400)).isoformat()
        resp = client.put(f"/api/v1/inventory/{batch['id']}", json={"manufacturingDate": later}, headers=headers)
        assert resp.status_code == 400

    def test_unknown_batch(self, admin_client):
        client, headers = admin_client
        resp = client.put("/api/v1/inventory/99999", json={"invoiceNumber": "X"}, headers=headers)
        assert resp.status_code == 404


class TestBatchDeleteRestore:

    def test_soft_delete_and_restore(self, admin_client, product, db_session):
        client, headers = admin_client
        batch = create_batch(client, headers, batch_payload(product.id, quantity=5))
        item_id = batch["items"][0]["id"]

        resp = client.delete(f"/api/v1/inventory/{batch['id']}", headers=headers)
        assert resp.status_code == 200
        assert resp.get_json()["data"]["is_active"] is False
        assert db_session.get(InventoryBatch, batch["id"]) is not None

        assert client.get("/api/v1/inventory").get_json()["data"]["batches"] == []
        everything = client.get("/api/v1/inventory?includeInactive=true").get_json()["data"]
        assert [b["id"] for b in everything["batches"]] == [batch["id"]]
        assert client.get("/api/v1/inventory/low-stock").get_json()["data"]["items"] == []

        resp = client.post(
            f"/api/v1/inventory/items/{item_id}/movements",
            json={"movementType": "OUTBOUND", "quantity": 1},
            headers=headers,
        )
        assert resp.status_code == 409
        assert client.put(
            f"/api/v1/inventory/{batch['id']}", json={"invoiceNumber": "X"}, headers=headers
        ).status_code == 409
        assert client.delete(f"/api/v1/inventory/{batch['id']}", headers=headers).status_code == 409

        resp = client.post(f"/api/v1/inventory/{batch['id']}", headers=headers)
        assert resp.status_code == 200
        assert resp.get_json()["data"]["is_active"] is True
        assert [b["id"] for b in client.get("/api/v1/inventory").get_json()["data"]["batches"]] == [batch["id"]]
        assert client.post(f"/api/v1/inventory/{batch['id']}", headers=headers).status_code == 409

        actions = [log.action for log in db_session.query(ActivityLog).filter_by(model="InventoryBatch")]
        assert "DELETE" in actions
        assert "RESTORE" in actions

    def test_requires_csrf_header(self, admin_client, product):
        client, headers = admin_client
        batch = create_batch(client, headers, batch_payload(product.id))
        assert client.delete(f"/api/v1/inventory/{batch['id']}").status_code == 403

    def test_unknown_batch(self, admin_client):
        client, headers = admin_client
        assert client.delete("/api/v1/inventory/99999", headers=headers).status_code == 404
        assert client.post("/api/v1/inventory/99999", headers=headers).status_code == 404


# =============================================================================
# MOVEMENTS GROUPED BY BATCH
# =============================================================================


@pytest.fixture
def two_batches(admin_client, product):
    client, headers = admin_client
    first = create_batch(client, headers, batch_payload(product.id, quantity=100, batch_number="G-001"))
    second = create_batch(client, headers, batch_payload(product.id, quantity=50, batch_number="G-002"))
    item_id = first["items"][0]["id"]
    for body in (
        {"movementType": "OUTBOUND", "quantity": 30},
        {"movementType": "ADJUSTMENT", "quantity": -5},
    ):
        resp = client.post(f"/api/v1/inventory/items/{item_id}/movements", json=body, headers=headers)
        assert resp.status_code == 201
    return client, first, second


def grouped(client, query: str = "") -> dict:
    resp = client.get(f"/api/v1/inventory/inventory-movement-grouped-by-batch{query}")
    assert resp.status_code == 200, resp.get_json()
    return resp.get_json()["data"]


class TestGroupedByBatch:

    def test_groups_with_running_balance(self, two_batches, admin_user):
        client, first, second = two_batches
        data = grouped(client)

        assert data["total_batches"] == 2
        assert data["total_movements"] == 4
        assert [g["reference_number"] for g in data["batches"]] == sorted(
            [first["reference_number"], second["reference_number"]]
        )

        group = next(g for g in data["batches"] if g["batch_id"] == first["id"])
        assert [m["movement_type"] for m in group["movements"]] == ["ADJUSTMENT", "OUTBOUND", "INBOUND"]
        assert [m["balance"] for m in group["movements"]] == [65, 70, 100]
        assert group["movements"][0]["created_by"] == admin_user.fullname
        assert group["movements"][0]["batch_number"] == "G-001"

        summary = group["summary"]
        assert summary["total_movements"] == 3
        assert summary["movement_type_counts"] == {
            "INBOUND": 1, "OUTBOUND": 1, "RETURN": 0, "TRANSFER": 0, "ADJUSTMENT": 1, "EXPIRED": 0,
        }
        assert summary["beginning_inventory"] == 100
        assert summary["remaining_inventory"] == 65
        assert summary["balance"] == -35
        assert summary["unique_products"] == 1
        assert summary["products"][0]["movement_count"] == 3
        assert summary["date_range"]["earliest"] == group["movements"][-1]["created_at"]

    def test_filters(self, two_batches):
        client, first, second = two_batches

        only_second = grouped(client, "?batchNumber=G-002")
        assert [g["batch_id"] for g in only_second["batches"]] == [second["id"]]

        by_reference = grouped(client, f"?referenceNumber={first['reference_number']}")
        assert [g["batch_id"] for g in by_reference["batches"]] == [first["id"]]
        assert by_reference["total_movements"] == 3

        outbound = grouped(client, "?movementType=outbound")
        assert outbound["total_movements"] == 1
        assert outbound["batches"][0]["summary"]["movement_type_counts"]["OUTBOUND"] == 1

        either = grouped(client, "?batchAndReference=G-002")
        assert [g["batch_id"] for g in either["batches"]] == [second["id"]]

        assert grouped(client, "?batchNumber=NOPE")["batches"] == []

    def test_pages_count_batches(self, two_batches):
        client, _, _ = two_batches
        data = grouped(client, "?limit=1&page=2")
        assert len(data["batches"]) == 1
        assert data["pagination"]["total_pages"] == 2
        assert data["pagination"]["has_previous_page"] is True

    @pytest.mark.parametrize("query", ["?movementType=SOLD", "?dateFrom=yesterday", "?page=0"])
    def test_rejects_bad_input(self, admin_client, query):
        client, _ = admin_client
        resp = client.get(f"/api/v1/inventory/inventory-movement-grouped-by-batch{query}")
        assert resp.status_code == 400


# =============================================================================
# ACCESS CONTROL
# =============================================================================


@pytest.mark.parametrize("path", [
    "/api/v1/inventory",
    "/api/v1/inventory/items",
    "/api/v1/inventory/expired",
    "/api/v1/inventory/low-stock",
    "/api/v1/inventory/inventory-movement-with-running-balance",
    "/api/v1/inventory/inventory-movement-grouped-by-batch",
    "/api/v1/inventory/1",
])
def test_reads_forbidden_for_regular_user(client, regular_user, path):
    login(client, regular_user.email)
    resp = client.get(path)
    assert resp.status_code == 403
    assert resp.get_json()["message"] == "Access forbidden: Insufficient rights"


def test_superadmin_can_read(client, superadmin_user):
    login(client, superadmin_user.email)
    assert client.get("/api/v1/inventory/low-stock").status_code == 200
