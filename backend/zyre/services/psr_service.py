# Overview: Service-layer operations for PSRs; legacy HRMS pull and fingerprinted upsert.

"""
PSR Sync Service

PSRs (Personnel Sales Representatives) are owned by the legacy HRMS. This
service pulls them, fingerprints each row and writes only what changed.

RULES:
- fingerprint = sha256("usercode|name|district_name"), district "" when missing
- UPDATE is conditional on the stored fingerprint differing, so an unchanged
  row is never rewritten even if two syncs overlap
- a concurrent INSERT of the same psr_code is rolled back to a savepoint and
  retried as the conditional UPDATE
- an INSERT failing for any other reason rolls back and propagates
- each row commits on its own; a failure mid-sync keeps earlier rows
- HRMS failures abort the sync and propagate unchanged
"""

from __future__ import annotations

import hashlib
from dataclasses import dataclass, field

from sqlalchemy import or_, text, update
from sqlalchemy.exc import IntegrityError

from .. import hrms
from ..extensions import db
from ..models import PSR
from zyre.time_utils import utcnow


HRMS_PSR_QUERY = text(
    """
    SELECT
        u.id,
        u.usercode,
        u.name,
        u.district_id,
        d.name AS district_name
    FROM users u
    LEFT JOIN districts d ON u.district_id = d.id
    WHERE u.position = 'PSR'
    """
)

CREATED = "created"
UPDATED = "updated"
UNCHANGED = "unchanged"


@dataclass
class SyncResult:
    psrs: list[PSR] = field(default_factory=list)
    created: int = 0
    updated: int = 0
    unchanged: int = 0

    def to_dict(self) -> dict:
        return {
            "created": self.created,
            "updated": self.updated,
            "unchanged": self.unchanged,
            "psrs": [psr.to_dict() for psr in self.psrs],
        }


def fingerprint(usercode, name, district_name) -> str:
    payload = f"{usercode}|{name}|{district_name or ''}"
    return hashlib.sha256(payload.encode("utf-8")).hexdigest()


def fetch_hrms_psrs() -> list[dict]:
    """All PSR rows from the HRMS, as plain dicts."""
    def _query(connection):
        return [dict(row) for row in connection.execute(HRMS_PSR_QUERY).mappings()]

    return hrms.with_connection(_query)


def read_hrms_psrs() -> list[dict]:
    """HRMS rows shaped for display, without touching the local table."""
    return [
        {
            "id": row["id"],
            "name": row["name"],
            "user_code": row["usercode"],
            "district": row["district_name"],
        }
        for row in fetch_hrms_psrs()
    ]


def _conditional_update(psr_code: str, values: dict) -> bool:
    stmt = (
        update(PSR)
        .where(PSR.psr_code == psr_code, PSR.source_hash != values["source_hash"])
        .values(**values)
        .execution_options(synchronize_session=False)
    )
    return db.session.execute(stmt).rowcount > 0


def _local_psr_id(psr_code: str) -> int | None:
    row = db.session.query(PSR.id).filter(PSR.psr_code == psr_code).first()
    return row.id if row else None


def _sync_row(row: dict, actor_user_id: int | None) -> str:
    psr_code = str(row["usercode"])
    now = utcnow()
    values = {
        "full_name": row["name"],
        "area_code": row.get("district_name"),
        "source_hash": fingerprint(row["usercode"], row["name"], row.get("district_name")),
        "updated_by_id": actor_user_id,
        "updated_at": now,
    }

    if _conditional_update(psr_code, values):
        db.session.commit()
        return UPDATED

    if _local_psr_id(psr_code) is not None:
        db.session.commit()
        return UNCHANGED

    try:
        with db.session.begin_nested():
            db.session.add(PSR(
                psr_code=psr_code,
                created_by_id=actor_user_id,
                created_at=now,
                **values,
            ))
        db.session.commit()
        return CREATED
    except IntegrityError:
        # Lost an insert race for this psr_code; anything else is a real error
        if _local_psr_id(psr_code) is None:
            db.session.rollback()
            raise
        changed = _conditional_update(psr_code, values)
        db.session.commit()
        return UPDATED if changed else UNCHANGED


def sync_psrs(actor_user_id: int | None, rows: list[dict] | None = None) -> SyncResult:
    """
    Pull PSRs from the HRMS (or use rows, if given) and upsert new/changed ones.

    Returns the full local table ordered by full name, plus per-outcome counts.
    """
    if rows is None:
        rows = fetch_hrms_psrs()

    result = SyncResult()
    for row in rows:
        outcome = _sync_row(row, actor_user_id)
        setattr(result, outcome, getattr(result, outcome) + 1)

    result.psrs = list_psrs()
    return result


def list_psrs(search: str | None = None, area_code: str | None = None) -> list[PSR]:
    """Substring search over name/area/code, AND an exact area code."""
    query = db.session.query(PSR)
    if search:
        pattern = f"%{search}%"
        query = query.filter(or_(
            PSR.full_name.like(pattern),
            PSR.area_code.like(pattern),
            PSR.psr_code.like(pattern),
        ))
    if area_code:
        query = query.filter(PSR.area_code == area_code)
    return query.order_by(PSR.full_name.asc(), PSR.id.asc()).all()
