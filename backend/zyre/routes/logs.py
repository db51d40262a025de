# Overview: Flask API routes for the activity log.

from flask import Blueprint, request

from ..decorators import require_auth, require_roles
from ..responses import success
from ..services import activity_service
from ..time_utils import parse_date_bound


logs_bp = Blueprint("logs", __name__, url_prefix="/api/v1/logs")

SORT_ALIASES = {"createdAt": "created_at", "userId": "user_id"}


def _lenient_date(name: str, *, end_of_day: bool = False):
    # Unparseable bounds are dropped rather than rejected
    try:
        return parse_date_bound(request.args.get(name), end_of_day=end_of_day)
    except ValueError:
        return None


@logs_bp.get("")
@require_auth
@require_roles("SUPERADMIN", "ADMIN")
def list_logs():
    page = max(request.args.get("page", 1, type=int), 1)
    limit = min(max(request.args.get("limit", 10, type=int), 1), 100)
    sort_by = request.args.get("sortBy", "createdAt")
    sort_order = "asc" if request.args.get("sortOrder", "desc").lower() == "asc" else "desc"

    result = activity_service.list_activity_logs(
        page=page,
        limit=limit,
        sort_by=SORT_ALIASES.get(sort_by, sort_by),
        sort_order=sort_order,
        model=request.args.get("model"),
        action=request.args.get("action"),
        user_id=request.args.get("userId", type=int),
        from_date=_lenient_date("fromDate"),
        to_date=_lenient_date("toDate", end_of_day=True),
    )
    return success(result, "GET", "Activity logs fetched successfully")
