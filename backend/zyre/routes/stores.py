# Overview: Flask API routes for stores operations; parses input and returns JSON responses.

from flask import Blueprint, request

from ..decorators import require_auth, require_csrf, require_roles
from ..errors import NotFoundError, ValidationError
from ..responses import success
from ..services import store_service


stores_bp = Blueprint("stores", __name__, url_prefix="/api/v1/stores")


@stores_bp.get("")
@require_auth
@require_roles("SUPERADMIN", "ADMIN")
def list_stores():
    include_inactive = request.args.get("include_inactive", "").lower() in ("1", "true", "yes")
    stores = store_service.list_stores(include_inactive=include_inactive)
    return success([store.to_dict() for store in stores], "GET", "Stores fetched")


@stores_bp.post("")
@require_auth
@require_csrf
@require_roles("SUPERADMIN", "ADMIN")
def create_store():
    data = request.get_json(silent=True) or {}
    try:
        store = store_service.create_store(data.get("name"), code=data.get("code"))
    except store_service.StoreError as exc:
        raise ValidationError(str(exc))
    return success(store.to_dict(), "POST", "Store created", 201)


@stores_bp.get("/<int:store_id>")
@require_auth
@require_roles("SUPERADMIN", "ADMIN")
def get_store(store_id: int):
    store = store_service.get_store(store_id)
    if not store:
        raise NotFoundError("Store not found")
    return success(store.to_dict(), "GET", "Store fetched")


@stores_bp.put("/<int:store_id>")
@require_auth
@require_csrf
@require_roles("SUPERADMIN", "ADMIN")
def update_store(store_id: int):
    data = request.get_json(silent=True) or {}
    try:
        store = store_service.update_store(
            store_id,
            name=data.get("name"),
            code=data.get("code"),
            is_active=data.get("is_active"),
        )
    except store_service.StoreError as exc:
        if str(exc) == "Store not found":
            raise NotFoundError(str(exc))
        raise ValidationError(str(exc))
    return success(store.to_dict(), "PUT", "Store updated")
