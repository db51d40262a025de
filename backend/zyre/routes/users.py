# Overview: Flask API routes for users; profile, listing and store/position assignment.

from flask import Blueprint, g, request

from ..decorators import require_auth, require_csrf, require_roles
from ..responses import success
from ..services import activity_service, user_service


users_bp = Blueprint("users", __name__, url_prefix="/api/v1/users")


@users_bp.get("/me")
@require_auth
def current_user_route():
    return success(user_service.current_user_summary(g.current_user), "GET", "Current user")


@users_bp.get("")
@require_auth
@require_roles("SUPERADMIN", "ADMIN")
def list_users_route():
    users = user_service.list_users()
    return success([user.to_dict() for user in users], "GET", "Successfully fetched all the users")


@users_bp.put("/<int:user_id>/assign")
@require_auth
@require_csrf
@require_roles("SUPERADMIN", "ADMIN")
def assign_user_route(user_id: int):
    data = request.get_json(silent=True) or {}
    user = user_service.assign_stores_and_position(
        user_id,
        store_ids=data.get("storeIds", data.get("store_ids")),
        position_id=data.get("positionId", data.get("position_id")),
    )
    activity_service.record_activity(
        user_id=g.current_user.id,
        model="User",
        record_id=user.id,
        action="UPDATE",
        description="Assigned stores and position",
        ip_address=request.remote_addr,
        user_agent=request.headers.get("User-Agent"),
    )
    return success(user.to_dict(), "PUT", "User stores and position updated successfully")
