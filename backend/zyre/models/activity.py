from __future__ import annotations

from ..extensions import db
from zyre.time_utils import to_utc_z, utcnow


class ActivityLog(db.Model):
    """
    Who did what to which record.

    IMMUTABLE: Never update or delete. Append-only for audit integrity.
    """
    __tablename__ = "activity_logs"
    __table_args__ = (
        db.Index("ix_activity_logs_model_record", "model", "record_id"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True, index=True)

    model = db.Column(db.String(64), nullable=False)      # e.g. "Session", "InventoryBatch"
    record_id = db.Column(db.Integer, nullable=True)
    action = db.Column(db.String(32), nullable=False, index=True)  # LOGIN, LOGOUT, CREATE, UPDATE, DELETE, RESTORE, SYNC
    description = db.Column(db.Text, nullable=True)

    ip_address = db.Column(db.String(45), nullable=True)
    user_agent = db.Column(db.String(512), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, index=True)

    user = db.relationship("User")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "user_id": self.user_id,
            "user_name": self.user.fullname if self.user else None,
            "model": self.model,
            "record_id": self.record_id,
            "action": self.action,
            "description": self.description,
            "ip_address": self.ip_address,
            "user_agent": self.user_agent,
            "created_at": to_utc_z(self.created_at),
        }
