# Overview: Service-layer operations for the activity log.

from __future__ import annotations

from datetime import datetime

from ..extensions import db
from ..models import ActivityLog

SORTABLE_FIELDS = {"created_at", "action", "model", "user_id", "id"}


def record_activity(
    *,
    user_id: int | None,
    model: str,
    action: str,
    record_id: int | None = None,
    description: str | None = None,
    ip_address: str | None = None,
    user_agent: str | None = None,
    commit: bool = True,
) -> ActivityLog:
    entry = ActivityLog(
        user_id=user_id,
        model=model,
        record_id=record_id,
        action=action,
        description=description,
        ip_address=ip_address,
        user_agent=user_agent,
    )
    db.session.add(entry)
    if commit:
        db.session.commit()
    else:
        db.session.flush()
    return entry


def list_activity_logs(
    *,
    page: int = 1,
    limit: int = 10,
    sort_by: str = "created_at",
    sort_order: str = "desc",
    model: str | None = None,
    action: str | None = None,
    user_id: int | None = None,
    from_date: datetime | None = None,
    to_date: datetime | None = None,
) -> dict:
    query = db.session.query(ActivityLog)
    if model:
        query = query.filter(ActivityLog.model == model)
    if action:
        query = query.filter(ActivityLog.action == action.upper())
    if user_id is not None:
        query = query.filter(ActivityLog.user_id == user_id)
    if from_date is not None:
        query = query.filter(ActivityLog.created_at >= from_date)
    if to_date is not None:
        query = query.filter(ActivityLog.created_at <= to_date)

    column = getattr(ActivityLog, sort_by if sort_by in SORTABLE_FIELDS else "created_at")
    query = query.order_by(column.asc() if sort_order == "asc" else column.desc(), ActivityLog.id.desc())

    total = query.count()
    logs = query.offset((page - 1) * limit).limit(limit).all()

    return {
        "meta": {
            "total": total,
            "page": page,
            "limit": limit,
            "total_pages": (total + limit - 1) // limit,
        },
        "logs": [entry.to_dict() for entry in logs],
    }
