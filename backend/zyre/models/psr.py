from __future__ import annotations

from ..extensions import db
from zyre.time_utils import to_utc_z, utcnow


class PSR(db.Model):
    """
    Local cache of a Personnel Sales Representative row from the legacy HRMS.

    Written only by the sync service. psr_code is the natural key;
    source_hash fingerprints the HRMS row so unchanged rows are never rewritten.
    """
    __tablename__ = "psrs"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    psr_code = db.Column(db.String(64), nullable=False, unique=True, index=True)
    full_name = db.Column(db.String(255), nullable=False, index=True)
    area_code = db.Column(db.String(255), nullable=True, index=True)
    source_hash = db.Column(db.String(64), nullable=False)

    created_by_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    updated_by_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "psr_code": self.psr_code,
            "full_name": self.full_name,
            "area_code": self.area_code,
            "source_hash": self.source_hash,
            "created_by_id": self.created_by_id,
            "updated_by_id": self.updated_by_id,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }
