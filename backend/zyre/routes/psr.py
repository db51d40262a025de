# Overview: Flask API routes for PSRs; local listing, raw HRMS view and sync.

from flask import Blueprint, g, request

from ..decorators import require_auth, require_csrf, require_roles
from ..responses import success
from ..services import activity_service, psr_service


psr_bp = Blueprint("psr", __name__, url_prefix="/api/v1/psr")


@psr_bp.get("")
@require_auth
@require_roles("SUPERADMIN", "ADMIN")
def list_psr():
    search = request.args.get("search")
    area_code = request.args.get("areaCode")
    psrs = psr_service.list_psrs(search=search, area_code=area_code)
    scope = "filtered" if search or area_code else "all"
    return success([psr.to_dict() for psr in psrs], "GET", f"Getting {scope} PSR values")


@psr_bp.get("/hrms")
@require_auth
@require_roles("SUPERADMIN", "ADMIN")
def read_psr_from_hrms():
    return success(psr_service.read_hrms_psrs(), "GET", "Success")


@psr_bp.post("/sync")
@require_auth
@require_csrf
@require_roles("SUPERADMIN", "ADMIN")
def sync_psr():
    result = psr_service.sync_psrs(g.current_user.id)
    activity_service.record_activity(
        user_id=g.current_user.id,
        model="PSR",
        action="SYNC",
        description=f"PSR sync: {result.created} created, {result.updated} updated, {result.unchanged} unchanged",
        ip_address=request.remote_addr,
        user_agent=request.headers.get("User-Agent"),
    )
    return success(result.to_dict(), "POST", "PSRs synced (only new or changed ones updated)")
