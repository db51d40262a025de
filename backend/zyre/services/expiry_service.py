# Overview: Service-layer operations for the expiry sweep.

"""
Expiry Sweep

Marks ACTIVE batches whose expiry_date has passed as EXPIRED, expires their
ACTIVE items, and writes an EXPIRED movement for any stock still on hand.

The movement quantity is the remaining stock and current_quantity drops to
zero, so replaying an item's movements still equals its current_quantity.

Errors are logged and swallowed: the sweep also runs in front of the batch
listing, and a failed sweep must not fail that read.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date

from flask import current_app

from ..extensions import db
from ..models import InventoryBatch, InventoryItem, InventoryMovement
from zyre.time_utils import utcnow


@dataclass
class ExpirySweepResult:
    batches_expired: int = 0
    items_expired: int = 0
    movements_created: int = 0
    ok: bool = True


def expire_batches(today: date | None = None) -> ExpirySweepResult:
    result = ExpirySweepResult()
    today = today or utcnow().date()
    actor_id = current_app.config.get("SYSTEM_USER_ID")

    try:
        batches = (
            db.session.query(InventoryBatch)
            .filter(InventoryBatch.status == "ACTIVE", InventoryBatch.expiry_date < today)
            .all()
        )

        for batch in batches:
            batch.status = "EXPIRED"
            result.batches_expired += 1

            items = (
                db.session.query(InventoryItem)
                .filter(InventoryItem.batch_id == batch.id, InventoryItem.status == "ACTIVE")
                .all()
            )
            for item in items:
                remaining = item.current_quantity
                item.status = "EXPIRED"
                item.last_update_reason = f"Batch {batch.batch_number} expired on {batch.expiry_date.isoformat()}"
                result.items_expired += 1

                if remaining == 0:
                    continue

                db.session.add(InventoryMovement(
                    inventory_item_id=item.id,
                    movement_type="EXPIRED",
                    quantity=-remaining,
                    reason=f"Expired batch {batch.batch_number}",
                    reference_id=batch.reference_number,
                    previous_quantity=remaining,
                    new_quantity=0,
                    created_by_id=actor_id,
                ))
                item.current_quantity = 0
                result.movements_created += 1

        db.session.commit()
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Expiry sweep failed")
        return ExpirySweepResult(ok=False)

    if result.batches_expired:
        current_app.logger.info(
            "Expiry sweep: %s batches, %s items, %s movements",
            result.batches_expired, result.items_expired, result.movements_created,
        )
    return result
