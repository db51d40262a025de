# Overview: Flask API routes for inventory batches, items, movements and running balances.

from flask import Blueprint, g, request

from ..decorators import require_auth, require_csrf, require_roles
from ..errors import ValidationError
from ..models import MOVEMENT_TYPES
from ..extensions import db
from ..responses import success
from ..services import activity_service, expiry_service, inventory_service, movement_service
from ..time_utils import parse_date_bound
from ..validation import coerce_int


inventory_bp = Blueprint("inventory", __name__, url_prefix="/api/v1/inventory")


def _positive_int_arg(name: str, default: int) -> int:
    raw = request.args.get(name)
    if raw is None or raw == "":
        return default
    value = coerce_int(name, raw)
    if value < 1:
        raise ValidationError(f"{name} must be >= 1")
    return value


def _flag_arg(name: str) -> bool:
    return request.args.get(name, "").lower() in ("1", "true", "yes")


def _date_arg(name: str, *, end_of_day: bool = False):
    raw = request.args.get(name)
    try:
        return parse_date_bound(raw, end_of_day=end_of_day)
    except ValueError:
        raise ValidationError(f"Invalid {name}: expected an ISO-8601 date or datetime")


@inventory_bp.post("")
@require_auth
@require_csrf
@require_roles("SUPERADMIN", "ADMIN")
def create_inventory():
    data = request.get_json(silent=True) or {}
    batches = inventory_service.create_batches(data.get("batches"), user_id=g.current_user.id)

    for batch in batches:
        activity_service.record_activity(
            user_id=g.current_user.id,
            model="InventoryBatch",
            record_id=batch.id,
            action="CREATE",
            description=f"Created batch {batch.batch_number} ({batch.reference_number})",
            ip_address=request.remote_addr,
            user_agent=request.headers.get("User-Agent"),
            commit=False,
        )
    db.session.commit()

    return success(
        [batch.to_dict(include_items=True) for batch in batches],
        "POST",
        f"Created {len(batches)} inventory batch(es)",
        201,
    )


@inventory_bp.get("")
@require_auth
@require_roles("SUPERADMIN", "ADMIN")
def list_inventory():
    # Listings must never show stale ACTIVE status
    expiry_service.expire_batches()
    result = inventory_service.list_batches(
        page=_positive_int_arg("page", 1),
        limit=_positive_int_arg("limit", 10),
        search=request.args.get("search"),
        status=request.args.get("status"),
        include_inactive=_flag_arg("includeInactive"),
    )
    return success(result, "GET", "Inventory batches fetched")


@inventory_bp.get("/items")
@require_auth
@require_roles("SUPERADMIN", "ADMIN")
def list_inventory_items():
    result = inventory_service.list_items(
        batch_id=request.args.get("batchId", type=int),
        product_id=request.args.get("productId", type=int),
        status=request.args.get("status"),
        page=_positive_int_arg("page", 1),
        limit=_positive_int_arg("limit", 10),
    )
    return success(result, "GET", "Inventory items fetched")


@inventory_bp.get("/expired")
@require_auth
@require_roles("SUPERADMIN", "ADMIN")
def list_expired():
    result = inventory_service.list_expired_items(
        page=_positive_int_arg("page", 1),
        limit=_positive_int_arg("limit", 10),
    )
    return success(result, "GET", "Expired inventory items fetched")


@inventory_bp.get("/low-stock")
@require_auth
@require_roles("SUPERADMIN", "ADMIN")
def list_low_stock():
    result = inventory_service.list_low_stock_items(
        page=_positive_int_arg("page", 1),
        limit=_positive_int_arg("limit", 10),
    )
    return success(result, "GET", "Low stock inventory items fetched")


@inventory_bp.get("/inventory-movement-with-running-balance")
@require_auth
@require_roles("SUPERADMIN", "ADMIN")
def movements_with_running_balance():
    """
    Query params: inventoryItemId, dateFrom, dateTo, page, limit.

    Bare dates cover whole days (dateTo includes the entire day).
    Malformed dates or an inverted range are rejected with 400.
    """
    item_raw = request.args.get("inventoryItemId")
    inventory_item_id = coerce_int("inventoryItemId", item_raw) if item_raw else None

    date_from = _date_arg("dateFrom")
    date_to = _date_arg("dateTo", end_of_day=True)
    if date_from and date_to and date_from > date_to:
        raise ValidationError("dateFrom must be before dateTo")

    result = movement_service.list_movements_with_running_balance(
        inventory_item_id=inventory_item_id,
        date_from=date_from,
        date_to=date_to,
        page=_positive_int_arg("page", 1),
        limit=_positive_int_arg("limit", 10),
    )
    return success(result, "GET", "Inventory movements with running balance fetched")


@inventory_bp.post("/items/<int:item_id>/movements")
@require_auth
@require_csrf
@require_roles("SUPERADMIN", "ADMIN")
def post_movement(item_id: int):
    data = request.get_json(silent=True) or {}
    movement = inventory_service.record_movement(
        item_id,
        movement_type=data.get("movementType", data.get("movement_type")),
        quantity=data.get("quantity"),
        reason=data.get("reason"),
        reference_id=data.get("referenceId", data.get("reference_id")),
        user_id=g.current_user.id,
    )
    activity_service.record_activity(
        user_id=g.current_user.id,
        model="InventoryMovement",
        record_id=movement.id,
        action="CREATE",
        description=f"{movement.movement_type} {movement.quantity} on item {item_id}",
        ip_address=request.remote_addr,
        user_agent=request.headers.get("User-Agent"),
    )
    return success(movement.to_dict(), "POST", "Inventory movement recorded", 201)


@inventory_bp.get("/<int:batch_id>")
@require_auth
@require_roles("SUPERADMIN", "ADMIN")
def get_inventory(batch_id: int):
    batch = inventory_service.get_batch(batch_id)
    return success(batch.to_dict(include_items=True), "GET", "Inventory batch fetched")


@inventory_bp.get("/inventory-movement-grouped-by-batch")
@require_auth
@require_roles("SUPERADMIN", "ADMIN")
def movements_grouped_by_batch():
    """
    Query params: batchNumber, referenceNumber, batchAndReference,
    movementType, dateFrom, dateTo, page, limit.
    """
    movement_type = (request.args.get("movementType") or "").upper() or None
    if movement_type and movement_type not in MOVEMENT_TYPES:
        raise ValidationError(f"movementType must be one of: {', '.join(MOVEMENT_TYPES)}")

    date_from = _date_arg("dateFrom")
    date_to = _date_arg("dateTo", end_of_day=True)
    if date_from and date_to and date_from > date_to:
        raise ValidationError("dateFrom must be before dateTo")

    result = movement_service.list_movements_grouped_by_batch(
        batch_number=request.args.get("batchNumber") or None,
        reference_number=request.args.get("referenceNumber") or None,
        batch_and_reference=request.args.get("batchAndReference") or None,
        movement_type=movement_type,
        date_from=date_from,
        date_to=date_to,
        page=_positive_int_arg("page", 1),
        limit=_positive_int_arg("limit", 10),
    )
    return success(result, "GET", "Inventory movements grouped by batch fetched")


def _record_batch_activity(batch, action: str, description: str) -> None:
    activity_service.record_activity(
        user_id=g.current_user.id,
        model="InventoryBatch",
        record_id=batch.id,
        action=action,
        description=description,
        ip_address=request.remote_addr,
        user_agent=request.headers.get("User-Agent"),
    )


@inventory_bp.put("/<int:batch_id>")
@require_auth
@require_csrf
@require_roles("SUPERADMIN", "ADMIN")
def update_inventory(batch_id: int):
    data = request.get_json(silent=True) or {}
    batch = inventory_service.update_batch(batch_id, data, user_id=g.current_user.id)
    _record_batch_activity(batch, "UPDATE", f"Updated batch {batch.batch_number} ({batch.reference_number})")
    return success(batch.to_dict(include_items=True), "PUT", "Inventory batch updated")


@inventory_bp.delete("/<int:batch_id>")
@require_auth
@require_csrf
@require_roles("SUPERADMIN", "ADMIN")
def delete_inventory(batch_id: int):
    batch = inventory_service.delete_batch(batch_id)
    _record_batch_activity(batch, "DELETE", f"Deactivated batch {batch.batch_number} ({batch.reference_number})")
    return success(batch.to_dict(), "DELETE", "Inventory batch deactivated")


@inventory_bp.post("/<int:batch_id>")
@require_auth
@require_csrf
@require_roles("SUPERADMIN", "ADMIN")
def restore_inventory(batch_id: int):
    batch = inventory_service.restore_batch(batch_id)
    _record_batch_activity(batch, "RESTORE", f"Restored batch {batch.batch_number} ({batch.reference_number})")
    return success(batch.to_dict(), "POST", "Inventory batch restored")
