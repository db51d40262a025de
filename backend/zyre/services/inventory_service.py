# Overview: Service-layer operations for inventory batches, items and stock movements.

"""
Inventory Service

Batches are received lots; each batch holds one InventoryItem per product.
Stock only changes through InventoryMovement rows:

- create_batches(): one INBOUND movement per item, referenced by the batch's
  reference number
- record_movement(): OUTBOUND / RETURN / TRANSFER / ADJUSTMENT, using the
  same sign rules as the running-balance report
- update_batch(): an ADJUSTMENT for each edited currentQuantity
- the expiry sweep writes EXPIRED movements (see expiry_service)

INVARIANT: replaying an item's movements from zero equals current_quantity.
"""

from __future__ import annotations

import secrets

from sqlalchemy import or_
from sqlalchemy.exc import IntegrityError

from ..errors import ConflictError, NotFoundError, ValidationError
from ..extensions import db
from ..models import InventoryBatch, InventoryItem, InventoryMovement, Product
from ..validation import coerce_date, coerce_int, enforce_price_cents
from .concurrency import lock_for_update, run_with_retry
from .movement_service import balance_change
from zyre.time_utils import utcnow


POSTABLE_MOVEMENT_TYPES = ("OUTBOUND", "RETURN", "TRANSFER", "ADJUSTMENT")

REFERENCE_PREFIX = "INV"
REFERENCE_RANDOM_LENGTH = 6


def generate_reference_number(prefix: str = REFERENCE_PREFIX, random_length: int = REFERENCE_RANDOM_LENGTH) -> str:
    """PREFIX-YYYYMMDD-NNNNNN, retried until unused."""
    date_part = utcnow().strftime("%Y%m%d")
    while True:
        digits = str(secrets.randbelow(10 ** random_length)).zfill(random_length)
        candidate = f"{prefix}-{date_part}-{digits}"
        exists = db.session.query(InventoryBatch.id).filter_by(reference_number=candidate).first()
        if not exists:
            return candidate


def _paginate(query, page: int, limit: int) -> tuple[list, dict]:
    page = max(page, 1)
    limit = min(max(limit, 1), 100)
    total = query.count()
    total_pages = (total + limit - 1) // limit
    rows = query.offset((page - 1) * limit).limit(limit).all()
    return rows, {
        "current_page": page,
        "total_pages": total_pages,
        "total_items": total,
        "items_per_page": limit,
        "has_next_page": page < total_pages,
        "has_previous_page": page > 1,
    }


BATCH_NUMBER_CONSTRAINT = "uq_inventory_batches_supplier_batch"


def _is_batch_number_conflict(exc: IntegrityError) -> bool:
    """MySQL names the constraint; SQLite lists its columns."""
    message = str(exc.orig)
    return (
        BATCH_NUMBER_CONSTRAINT in message
        or "inventory_batches.supplier_name, inventory_batches.batch_number" in message
    )


def _required_text(data: dict, key: str, label: str) -> str:
    value = data.get(key)
    if value is None or not str(value).strip():
        raise ValidationError(f"{label} is required")
    return str(value).strip()


def _parse_item(raw: dict, index: int) -> dict:
    if not isinstance(raw, dict):
        raise ValidationError(f"Item #{index + 1} must be an object")

    product_id = raw.get("productId", raw.get("product_id"))
    quantity = raw.get("initialQuantity", raw.get("initial_quantity"))
    cost = raw.get("costPriceCents", raw.get("cost_price_cents"))
    retail = raw.get("retailPriceCents", raw.get("retail_price_cents"))

    if product_id is None or quantity is None or cost is None or retail is None:
        raise ValidationError(
            f"Item #{index + 1}: productId, initialQuantity, costPriceCents and retailPriceCents are required"
        )

    item = {
        "product_id": coerce_int("productId", product_id),
        "initial_quantity": coerce_int("initialQuantity", quantity),
        "cost_price_cents": coerce_int("costPriceCents", cost),
        "retail_price_cents": coerce_int("retailPriceCents", retail),
    }
    if item["initial_quantity"] <= 0:
        raise ValidationError(f"Item #{index + 1}: initialQuantity must be > 0")
    enforce_price_cents("costPriceCents", item["cost_price_cents"])
    enforce_price_cents("retailPriceCents", item["retail_price_cents"])
    return item


def _parse_batch(raw: dict, index: int) -> dict:
    if not isinstance(raw, dict):
        raise ValidationError(f"Batch #{index + 1} must be an object")

    batch = {
        "batch_number": _required_text(raw, "batchNumber", f"Batch #{index + 1}: batchNumber"),
        "supplier_name": _required_text(raw, "supplierName", f"Batch #{index + 1}: supplierName"),
        "invoice_number": raw.get("invoiceNumber"),
        "invoice_date": coerce_date("invoiceDate", raw["invoiceDate"]) if raw.get("invoiceDate") else None,
        "manufacturing_date": (
            coerce_date("manufacturingDate", raw["manufacturingDate"]) if raw.get("manufacturingDate") else None
        ),
    }
    if not raw.get("expiryDate"):
        raise ValidationError(f"Batch #{index + 1}: expiryDate is required")
    batch["expiry_date"] = coerce_date("expiryDate", raw["expiryDate"])

    if batch["manufacturing_date"] and batch["manufacturing_date"] > batch["expiry_date"]:
        raise ValidationError(f"Batch #{index + 1}: manufacturingDate must be before expiryDate")

    items = raw.get("items")
    if not isinstance(items, list) or not items:
        raise ValidationError(f"Batch #{index + 1}: at least one item is required")
    batch["items"] = [_parse_item(item, i) for i, item in enumerate(items)]
    return batch


def create_batches(batches, *, user_id: int | None) -> list[InventoryBatch]:
    """
    Create one or more batches with their items in a single transaction.

    Each item starts with current_quantity == initial_quantity and an INBOUND
    movement of the same size.

    Raises:
        ValidationError: malformed input, unknown or inactive product
        ConflictError: batch number already used by the same supplier
    """
    if not isinstance(batches, list) or not batches:
        raise ValidationError("At least one batch is required")

    parsed = [_parse_batch(raw, i) for i, raw in enumerate(batches)]

    seen = set()
    for batch in parsed:
        key = (batch["supplier_name"], batch["batch_number"])
        if key in seen:
            raise ConflictError(
                f"Batch with number {batch['batch_number']} is repeated for supplier {batch['supplier_name']}."
            )
        seen.add(key)
        exists = db.session.query(InventoryBatch.id).filter_by(
            supplier_name=batch["supplier_name"], batch_number=batch["batch_number"]
        ).first()
        if exists:
            raise ConflictError(
                f"Batch with number {batch['batch_number']} already exists for supplier {batch['supplier_name']}."
            )

    product_ids = {item["product_id"] for batch in parsed for item in batch["items"]}
    products = {
        p.id: p for p in db.session.query(Product).filter(Product.id.in_(product_ids)).all()
    }
    for product_id in sorted(product_ids):
        product = products.get(product_id)
        if product is None:
            raise ValidationError(f"Product {product_id} not found")
        if not product.is_active:
            raise ValidationError(f"Product {product_id} is inactive")

    created: list[InventoryBatch] = []
    try:
        for data in parsed:
            batch = InventoryBatch(
                reference_number=generate_reference_number(),
                batch_number=data["batch_number"],
                supplier_name=data["supplier_name"],
                invoice_number=data["invoice_number"],
                invoice_date=data["invoice_date"],
                manufacturing_date=data["manufacturing_date"],
                expiry_date=data["expiry_date"],
                status="ACTIVE",
                created_by_id=user_id,
            )
            db.session.add(batch)
            db.session.flush()

            for item_data in data["items"]:
                item = InventoryItem(
                    batch_id=batch.id,
                    product_id=item_data["product_id"],
                    initial_quantity=item_data["initial_quantity"],
                    current_quantity=item_data["initial_quantity"],
                    cost_price_cents=item_data["cost_price_cents"],
                    retail_price_cents=item_data["retail_price_cents"],
                    status="ACTIVE",
                    created_by_id=user_id,
                )
                db.session.add(item)
                db.session.flush()

                db.session.add(InventoryMovement(
                    inventory_item_id=item.id,
                    movement_type="INBOUND",
                    quantity=item_data["initial_quantity"],
                    reference_id=batch.reference_number,
                    reason=f"Initial stock from batch {batch.batch_number}",
                    previous_quantity=0,
                    new_quantity=item_data["initial_quantity"],
                    created_by_id=user_id,
                ))

            created.append(batch)

        db.session.commit()
    except IntegrityError as exc:
        db.session.rollback()
        if _is_batch_number_conflict(exc):
            raise ConflictError("Batch number already exists for this supplier.")
        raise

    return created


def list_batches(
    *,
    page: int = 1,
    limit: int = 10,
    search: str | None = None,
    status: str | None = None,
    include_inactive: bool = False,
) -> dict:
    query = db.session.query(InventoryBatch)
    if not include_inactive:
        query = query.filter(InventoryBatch.is_active.is_(True))
    if status:
        query = query.filter(InventoryBatch.status == status.upper())
    if search:
        pattern = f"%{search}%"
        query = query.filter(or_(
            InventoryBatch.batch_number.like(pattern),
            InventoryBatch.reference_number.like(pattern),
            InventoryBatch.supplier_name.like(pattern),
            InventoryBatch.invoice_number.like(pattern),
        ))
    query = query.order_by(InventoryBatch.created_at.desc(), InventoryBatch.id.desc())

    batches, pagination = _paginate(query, page, limit)
    return {
        "batches": [batch.to_dict(include_items=True) for batch in batches],
        "pagination": pagination,
    }


def get_batch(batch_id: int) -> InventoryBatch:
    batch = db.session.get(InventoryBatch, batch_id)
    if batch is None:
        raise NotFoundError("Inventory batch not found")
    return batch


BATCH_HEADER_FIELDS = {
    "batchNumber": "batch_number",
    "invoiceNumber": "invoice_number",
    "invoiceDate": "invoice_date",
    "manufacturingDate": "manufacturing_date",
    "expiryDate": "expiry_date",
}

ADJUSTMENT_REASON = "Stock adjustment via batch update"


def _parse_batch_changes(data: dict) -> dict:
    changes = {}
    for key, attr in BATCH_HEADER_FIELDS.items():
        if key not in data:
            continue
        value = data[key]
        if attr == "batch_number":
            value = _required_text(data, key, "batchNumber")
        elif attr == "expiry_date":
            if not value:
                raise ValidationError("expiryDate cannot be empty")
            value = coerce_date(key, value)
        elif attr in ("invoice_date", "manufacturing_date"):
            value = coerce_date(key, value) if value else None
        changes[attr] = value
    return changes


def _parse_item_changes(raw, index: int) -> dict:
    if not isinstance(raw, dict) or raw.get("id") is None:
        raise ValidationError(f"Item #{index + 1}: id is required")

    changes = {"id": coerce_int("id", raw["id"])}
    for key, attr in (
        ("currentQuantity", "current_quantity"),
        ("costPriceCents", "cost_price_cents"),
        ("retailPriceCents", "retail_price_cents"),
    ):
        if raw.get(key) is not None:
            changes[attr] = coerce_int(key, raw[key])
    if "cost_price_cents" in changes:
        enforce_price_cents("costPriceCents", changes["cost_price_cents"])
    if "retail_price_cents" in changes:
        enforce_price_cents("retailPriceCents", changes["retail_price_cents"])
    changes["reason"] = raw.get("reason")
    return changes


def _apply_item_changes(item: InventoryItem, changes: dict, *, reference_id: str, user_id: int | None) -> None:
    if "cost_price_cents" in changes or "retail_price_cents" in changes:
        cost = changes.get("cost_price_cents", item.cost_price_cents)
        retail = changes.get("retail_price_cents", item.retail_price_cents)
        if retail < cost:
            raise ValidationError(f"Item {item.id}: retailPriceCents cannot be lower than costPriceCents")
        item.cost_price_cents = cost
        item.retail_price_cents = retail

    new = changes.get("current_quantity")
    if new is None or new == item.current_quantity:
        return
    if new < 0 or new > item.initial_quantity:
        raise ValidationError(
            f"Item {item.id}: currentQuantity must be between 0 and {item.initial_quantity}"
        )
    if item.status == "EXPIRED":
        raise ConflictError("Cannot move stock of an expired item")

    reason = changes.get("reason") or ADJUSTMENT_REASON
    previous = item.current_quantity
    db.session.add(InventoryMovement(
        inventory_item_id=item.id,
        movement_type="ADJUSTMENT",
        quantity=new - previous,
        reason=reason,
        reference_id=reference_id,
        previous_quantity=previous,
        new_quantity=new,
        created_by_id=user_id,
    ))
    item.current_quantity = new
    item.last_update_reason = reason


def update_batch(batch_id: int, data, *, user_id: int | None) -> InventoryBatch:
    """
    Update batch header fields and, optionally, its items.

    A changed currentQuantity is booked as an ADJUSTMENT movement for the
    signed difference, so the ledger still replays to the stored quantity.

    Raises:
        ValidationError: malformed input, item not in this batch, bad prices
        NotFoundError: unknown batch
        ConflictError: deleted batch, batch number taken, expired item
    """
    if not isinstance(data, dict) or not data:
        raise ValidationError("Nothing to update")

    changes = _parse_batch_changes(data)
    raw_items = data.get("items") or []
    if not isinstance(raw_items, list):
        raise ValidationError("items must be a list")
    item_changes = [_parse_item_changes(raw, i) for i, raw in enumerate(raw_items)]

    def _op():
        batch = lock_for_update(db.session.query(InventoryBatch).filter_by(id=batch_id)).first()
        if batch is None:
            raise NotFoundError("Inventory batch not found")
        if not batch.is_active:
            raise ConflictError("Cannot update a deleted batch")

        batch_number = changes.get("batch_number")
        if batch_number and batch_number != batch.batch_number:
            taken = db.session.query(InventoryBatch.id).filter(
                InventoryBatch.supplier_name == batch.supplier_name,
                InventoryBatch.batch_number == batch_number,
                InventoryBatch.id != batch.id,
            ).first()
            if taken:
                raise ConflictError(
                    f"Batch with number {batch_number} already exists for supplier {batch.supplier_name}."
                )

        manufacturing = changes.get("manufacturing_date", batch.manufacturing_date)
        expiry = changes.get("expiry_date", batch.expiry_date)
        if manufacturing and manufacturing > expiry:
            raise ValidationError("manufacturingDate must be before expiryDate")

        for attr, value in changes.items():
            setattr(batch, attr, value)

        items = {item.id: item for item in batch.items}
        for item_data in item_changes:
            item = items.get(item_data["id"])
            if item is None:
                raise ValidationError(f"Item {item_data['id']} does not belong to this batch")
            _apply_item_changes(item, item_data, reference_id=batch.reference_number, user_id=user_id)

        try:
            db.session.commit()
        except IntegrityError as exc:
            db.session.rollback()
            if _is_batch_number_conflict(exc):
                raise ConflictError("Batch number already exists for this supplier.")
            raise
        return batch

    try:
        return run_with_retry(_op)
    except (ValidationError, ConflictError, NotFoundError):
        db.session.rollback()
        raise


def _set_batch_active(batch_id: int, active: bool) -> InventoryBatch:
    batch = get_batch(batch_id)
    if batch.is_active == active:
        state = "active" if active else "deleted"
        raise ConflictError(f"Inventory batch is already {state}")
    batch.is_active = active
    db.session.commit()
    return batch


def delete_batch(batch_id: int) -> InventoryBatch:
    """Soft delete: the batch drops out of listings and its stock is frozen."""
    return _set_batch_active(batch_id, False)


def restore_batch(batch_id: int) -> InventoryBatch:
    return _set_batch_active(batch_id, True)


def get_item(item_id: int) -> InventoryItem:
    item = db.session.get(InventoryItem, item_id)
    if item is None:
        raise NotFoundError("Inventory item not found")
    return item


def item_row(item: InventoryItem) -> dict:
    """Item with the batch fields listings need."""
    row = item.to_dict()
    row.update({
        "batch_number": item.batch.batch_number,
        "reference_number": item.batch.reference_number,
        "supplier_name": item.batch.supplier_name,
        "expiry_date": item.batch.expiry_date.isoformat(),
        "safety_stock": item.product.safety_stock if item.product else None,
    })
    return row


def list_items(
    *,
    batch_id: int | None = None,
    product_id: int | None = None,
    status: str | None = None,
    page: int = 1,
    limit: int = 10,
) -> dict:
    query = db.session.query(InventoryItem)
    if batch_id is not None:
        query = query.filter(InventoryItem.batch_id == batch_id)
    if product_id is not None:
        query = query.filter(InventoryItem.product_id == product_id)
    if status:
        query = query.filter(InventoryItem.status == status.upper())
    query = query.order_by(InventoryItem.id.asc())

    items, pagination = _paginate(query, page, limit)
    return {"items": [item_row(item) for item in items], "pagination": pagination}


def list_expired_items(*, page: int = 1, limit: int = 10) -> dict:
    """Items marked EXPIRED, or sitting in a batch whose expiry date has passed."""
    today = utcnow().date()
    query = (
        db.session.query(InventoryItem)
        .join(InventoryBatch, InventoryItem.batch_id == InventoryBatch.id)
        .filter(
            InventoryBatch.is_active.is_(True),
            or_(InventoryItem.status == "EXPIRED", InventoryBatch.expiry_date < today),
        )
        .order_by(InventoryBatch.expiry_date.asc(), InventoryItem.id.asc())
    )
    items, pagination = _paginate(query, page, limit)
    return {"items": [item_row(item) for item in items], "pagination": pagination}


def list_low_stock_items(*, page: int = 1, limit: int = 10) -> dict:
    """Active items at or below their product's safety stock, lowest first."""
    query = (
        db.session.query(InventoryItem)
        .join(Product, InventoryItem.product_id == Product.id)
        .join(InventoryBatch, InventoryItem.batch_id == InventoryBatch.id)
        .filter(
            InventoryBatch.is_active.is_(True),
            InventoryItem.status == "ACTIVE",
            InventoryItem.current_quantity <= Product.safety_stock,
        )
        .order_by(InventoryItem.current_quantity.asc(), InventoryItem.id.asc())
    )
    items, pagination = _paginate(query, page, limit)
    return {"items": [item_row(item) for item in items], "pagination": pagination}


def record_movement(
    item_id: int,
    *,
    movement_type: str | None,
    quantity,
    reason: str | None = None,
    reference_id: str | None = None,
    user_id: int | None = None,
) -> InventoryMovement:
    """
    Post a stock movement against one item.

    OUTBOUND/RETURN/TRANSFER take a positive quantity; ADJUSTMENT takes a
    signed, non-zero one.

    Raises:
        ValidationError: unknown type, bad quantity
        NotFoundError: unknown item
        ConflictError: expired item, or stock would go negative
    """
    movement_type = (movement_type or "").upper()
    if movement_type not in POSTABLE_MOVEMENT_TYPES:
        raise ValidationError(f"movementType must be one of: {', '.join(POSTABLE_MOVEMENT_TYPES)}")

    if quantity is None:
        raise ValidationError("quantity is required")
    quantity = coerce_int("quantity", quantity)
    if movement_type == "ADJUSTMENT":
        if quantity == 0:
            raise ValidationError("quantity must be non-zero for ADJUSTMENT")
    elif quantity <= 0:
        raise ValidationError(f"quantity must be > 0 for {movement_type}")

    def _op():
        item = lock_for_update(db.session.query(InventoryItem).filter_by(id=item_id)).first()
        if not item:
            raise NotFoundError("Inventory item not found")
        if item.status == "EXPIRED":
            raise ConflictError("Cannot move stock of an expired item")
        if not item.batch.is_active:
            raise ConflictError("Cannot move stock of a deleted batch")

        change, _ = balance_change(movement_type, quantity)
        previous = item.current_quantity
        new = previous + change
        if new < 0:
            raise ConflictError(f"Insufficient stock: {previous} on hand, {abs(change)} requested")

        movement = InventoryMovement(
            inventory_item_id=item.id,
            movement_type=movement_type,
            quantity=quantity,
            reason=reason,
            reference_id=reference_id or item.batch.reference_number,
            previous_quantity=previous,
            new_quantity=new,
            created_by_id=user_id,
        )
        db.session.add(movement)
        item.current_quantity = new
        if reason:
            item.last_update_reason = reason
        db.session.commit()
        return movement

    return run_with_retry(_op)
