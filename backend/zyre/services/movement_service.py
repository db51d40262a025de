# Overview: Running-balance movement history for inventory items, flat and grouped per batch.

"""
Inventory movement history with running balances.

The balance after each movement depends on every earlier movement, so the
whole filtered set is loaded (no DB-side pagination), annotated oldest-first,
and only then sliced into the requested page. Summary figures always cover
the full filtered set, never just the page.

Sign rules (stored sign is not trusted except for ADJUSTMENT):
- INBOUND, RETURN, TRANSFER  -> +abs(quantity), direction "IN"
- OUTBOUND, EXPIRED          -> -abs(quantity), direction "OUT"
- ADJUSTMENT                 -> +quantity (signed), direction "ADJUSTMENT"
- anything else              -> 0, direction "UNKNOWN"
"""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import or_

from ..extensions import db
from ..models import MOVEMENT_TYPES, InventoryBatch, InventoryItem, InventoryMovement
from zyre.time_utils import to_utc_z

INBOUND_TYPES = frozenset({"INBOUND", "RETURN", "TRANSFER"})
OUTBOUND_TYPES = frozenset({"OUTBOUND", "EXPIRED"})

DIRECTION_IN = "IN"
DIRECTION_OUT = "OUT"
DIRECTION_ADJUSTMENT = "ADJUSTMENT"
DIRECTION_UNKNOWN = "UNKNOWN"


def balance_change(movement_type: str, quantity: int) -> tuple[int, str]:
    """Return (signed change to on-hand, direction label) for one movement."""
    if movement_type in INBOUND_TYPES:
        return abs(quantity), DIRECTION_IN
    if movement_type in OUTBOUND_TYPES:
        return -abs(quantity), DIRECTION_OUT
    if movement_type == "ADJUSTMENT":
        return quantity, DIRECTION_ADJUSTMENT
    return 0, DIRECTION_UNKNOWN


def annotate_running_balance(movements_newest_first: list) -> list[dict]:
    """
    Annotate movements with running_balance, balance_change and
    movement_direction.

    Input and output are both newest-first; the accumulation itself runs
    oldest-first. Each input needs movement_type, quantity and to_dict().
    """
    running_balance = 0
    annotated = []
    for movement in reversed(movements_newest_first):
        change, direction = balance_change(movement.movement_type, movement.quantity)
        running_balance += change
        row = movement.to_dict()
        row["running_balance"] = running_balance
        row["balance_change"] = change
        row["movement_direction"] = direction
        annotated.append(row)
    annotated.reverse()
    return annotated


def summarize(annotated_newest_first: list[dict]) -> dict:
    total_inbound = 0
    total_outbound = 0
    total_adjustments = 0
    for row in annotated_newest_first:
        direction = row["movement_direction"]
        if direction == DIRECTION_IN:
            total_inbound += abs(row["balance_change"])
        elif direction == DIRECTION_OUT:
            total_outbound += abs(row["balance_change"])
        elif direction == DIRECTION_ADJUSTMENT:
            total_adjustments += row["balance_change"]

    return {
        "total_movements": len(annotated_newest_first),
        "final_balance": annotated_newest_first[0]["running_balance"] if annotated_newest_first else 0,
        "total_inbound": total_inbound,
        "total_outbound": total_outbound,
        "total_adjustments": total_adjustments,
        "oldest_movement": annotated_newest_first[-1]["created_at"] if annotated_newest_first else None,
        "newest_movement": annotated_newest_first[0]["created_at"] if annotated_newest_first else None,
    }


def paginate(rows: list, page: int, limit: int) -> tuple[list, dict]:
    total_items = len(rows)
    total_pages = (total_items + limit - 1) // limit
    skip = (page - 1) * limit
    return rows[skip:skip + limit], {
        "current_page": page,
        "total_pages": total_pages,
        "total_items": total_items,
        "items_per_page": limit,
        "has_next_page": page < total_pages,
        "has_previous_page": page > 1,
    }


def list_movements_with_running_balance(
    *,
    inventory_item_id: int | None = None,
    date_from: datetime | None = None,
    date_to: datetime | None = None,
    page: int = 1,
    limit: int = 10,
) -> dict:
    """
    Page of movements annotated with running balances, plus a summary over
    the entire filtered set.

    date_from / date_to must already be parsed; the route rejects malformed
    input before calling this.
    """
    query = db.session.query(InventoryMovement)
    if inventory_item_id is not None:
        query = query.filter(InventoryMovement.inventory_item_id == inventory_item_id)
    if date_from is not None:
        query = query.filter(InventoryMovement.created_at >= date_from)
    if date_to is not None:
        query = query.filter(InventoryMovement.created_at <= date_to)

    movements = query.order_by(
        InventoryMovement.created_at.desc(),
        InventoryMovement.id.desc(),
    ).all()

    annotated = annotate_running_balance(movements)
    page_rows, pagination = paginate(annotated, page, limit)

    return {
        "movements": page_rows,
        "pagination": pagination,
        "summary": summarize(annotated),
        "filters": {
            "inventory_item_id": inventory_item_id,
            "date_from": to_utc_z(date_from),
            "date_to": to_utc_z(date_to),
        },
    }


def _grouped_row(movement: InventoryMovement, balance: int) -> dict:
    item = movement.inventory_item
    product = item.product
    return {
        "movement_id": movement.id,
        "reference_number": movement.reference_id,
        "movement_type": movement.movement_type,
        "inventory_item_id": movement.inventory_item_id,
        "product_id": item.product_id,
        "product_name": product.name if product else None,
        "generic_name": product.generic_name if product else None,
        "batch_number": item.batch.batch_number,
        "quantity": movement.quantity,
        "previous_quantity": movement.previous_quantity,
        "new_quantity": movement.new_quantity,
        "balance": balance,
        "reason": movement.reason,
        "created_by": movement.created_by.fullname if movement.created_by else None,
        "created_at": to_utc_z(movement.created_at),
    }


def _batch_group(batch: InventoryBatch, movements_oldest_first: list) -> dict:
    type_counts = dict.fromkeys(MOVEMENT_TYPES, 0)
    movement_counts: dict[int, int] = {}
    balance = 0
    rows = []
    for movement in movements_oldest_first:
        change, _ = balance_change(movement.movement_type, movement.quantity)
        balance += change
        if movement.movement_type in type_counts:
            type_counts[movement.movement_type] += 1
        movement_counts[movement.inventory_item_id] = movement_counts.get(movement.inventory_item_id, 0) + 1
        rows.append(_grouped_row(movement, balance))
    rows.reverse()

    remaining = sum(item.current_quantity for item in batch.items)
    beginning = sum(item.initial_quantity for item in batch.items)
    products = [
        {
            "inventory_item_id": item.id,
            "product_id": item.product_id,
            "product_name": item.product.name if item.product else None,
            "generic_name": item.product.generic_name if item.product else None,
            "initial_quantity": item.initial_quantity,
            "current_quantity": item.current_quantity,
            "cost_price_cents": item.cost_price_cents,
            "retail_price_cents": item.retail_price_cents,
            "status": item.status,
            "movement_count": movement_counts[item.id],
        }
        for item in batch.items
        if item.id in movement_counts
    ]

    return {
        "batch_id": batch.id,
        "reference_number": batch.reference_number,
        "batch_number": batch.batch_number,
        "supplier_name": batch.supplier_name,
        "movements": rows,
        "summary": {
            "total_movements": len(rows),
            "movement_type_counts": type_counts,
            "beginning_inventory": beginning,
            "remaining_inventory": remaining,
            "balance": remaining - beginning,
            "unique_products": len({p["product_id"] for p in products}),
            "date_range": {
                "earliest": rows[-1]["created_at"] if rows else None,
                "latest": rows[0]["created_at"] if rows else None,
            },
            "products": products,
        },
    }


def list_movements_grouped_by_batch(
    *,
    batch_number: str | None = None,
    reference_number: str | None = None,
    batch_and_reference: str | None = None,
    movement_type: str | None = None,
    date_from: datetime | None = None,
    date_to: datetime | None = None,
    page: int = 1,
    limit: int = 10,
) -> dict:
    """
    Movements grouped per batch, ordered by batch reference number.

    Pages are counted in batches, not movements, so a batch's running balance
    is never split across pages. batch_and_reference matches either the batch
    number or the movement's reference; it overrides the two separate filters.
    """
    query = (
        db.session.query(InventoryMovement)
        .join(InventoryItem, InventoryMovement.inventory_item_id == InventoryItem.id)
        .join(InventoryBatch, InventoryItem.batch_id == InventoryBatch.id)
    )
    if batch_and_reference:
        query = query.filter(or_(
            InventoryBatch.batch_number == batch_and_reference,
            InventoryMovement.reference_id == batch_and_reference,
        ))
    else:
        if batch_number:
            query = query.filter(InventoryBatch.batch_number == batch_number)
        if reference_number:
            query = query.filter(InventoryMovement.reference_id == reference_number)
    if movement_type:
        query = query.filter(InventoryMovement.movement_type == movement_type)
    if date_from is not None:
        query = query.filter(InventoryMovement.created_at >= date_from)
    if date_to is not None:
        query = query.filter(InventoryMovement.created_at <= date_to)

    movements = query.order_by(
        InventoryBatch.reference_number.asc(),
        InventoryMovement.created_at.asc(),
        InventoryMovement.id.asc(),
    ).all()

    by_batch: dict[int, list] = {}
    for movement in movements:
        by_batch.setdefault(movement.inventory_item.batch_id, []).append(movement)

    batch_ids, pagination = paginate(list(by_batch), page, limit)
    groups = [_batch_group(db.session.get(InventoryBatch, batch_id), by_batch[batch_id]) for batch_id in batch_ids]

    return {
        "batches": groups,
        "total_movements": len(movements),
        "total_batches": len(by_batch),
        "pagination": pagination,
        "filters": {
            "batch_number": batch_number,
            "reference_number": reference_number,
            "batch_and_reference": batch_and_reference,
            "movement_type": movement_type,
            "date_from": to_utc_z(date_from),
            "date_to": to_utc_z(date_to),
        },
    }
