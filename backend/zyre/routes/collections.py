# Overview: Placeholder routes for collections; wired for auth/CSRF/roles, no persistence yet.

from flask import Blueprint

from ..decorators import require_auth, require_csrf, require_roles
from ..responses import success


collections_bp = Blueprint("collections", __name__, url_prefix="/api/v1/collections")


@collections_bp.post("")
@require_auth
@require_csrf
@require_roles("SUPERADMIN", "ADMIN")
def create_collection():
    return success("result", "POST", "Collections created successfully")


@collections_bp.get("")
@require_auth
@require_roles("SUPERADMIN", "ADMIN")
def list_collections():
    return success("responseData", "GET", "Collections fetched successfully")
