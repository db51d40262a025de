from __future__ import annotations

from ..extensions import db
from zyre.time_utils import to_utc_z, utcnow


user_stores = db.Table(
    "user_stores",
    db.Column("user_id", db.Integer, db.ForeignKey("users.id"), primary_key=True),
    db.Column("store_id", db.Integer, db.ForeignKey("stores.id"), primary_key=True),
)


class Role(db.Model):
    """
    Named role used for route authorization.

    SUPERADMIN passes every role check; ADMIN is the usual back-office role.
    """
    __tablename__ = "roles"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(64), nullable=False, unique=True)
    description = db.Column(db.Text, nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
        }


class Position(db.Model):
    """Job position (e.g. PHARMACY_ASSISTANT); optional on a user."""
    __tablename__ = "positions"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(64), nullable=False, unique=True)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name.lower().replace("_", "-"),
        }


class User(db.Model):
    """
    User accounts for authentication and attribution.

    Every user has exactly one role and may be assigned to any number of stores.
    """
    __tablename__ = "users"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    fullname = db.Column(db.String(255), nullable=False)
    email = db.Column(db.String(255), nullable=False, unique=True, index=True)

    # Bcrypt hashed password
    password_hash = db.Column(db.String(255), nullable=False)

    role_id = db.Column(db.Integer, db.ForeignKey("roles.id"), nullable=False, index=True)
    position_id = db.Column(db.Integer, db.ForeignKey("positions.id"), nullable=True)

    is_active = db.Column(db.Boolean, nullable=False, default=True)
    is_email_verified = db.Column(db.Boolean, nullable=False, default=False)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)
    last_login_at = db.Column(db.DateTime(timezone=True), nullable=True)

    role = db.relationship("Role", backref=db.backref("users", lazy=True))
    position = db.relationship("Position")
    stores = db.relationship("Store", secondary=user_stores, backref=db.backref("users", lazy=True))

    @property
    def role_name(self) -> str | None:
        return self.role.name if self.role else None

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.fullname,
            "email": self.email,
            "role": self.role_name.lower() if self.role_name else None,
            "store": [{"id": s.id, "name": s.name.lower()} for s in self.stores],
            "position": self.position.to_dict() if self.position else None,
            "is_active": self.is_active,
            "created_at": to_utc_z(self.created_at),
            "last_login_at": to_utc_z(self.last_login_at) if self.last_login_at else None,
        }


class Session(db.Model):
    """
    Server-side login session.

    The auth cookie is a signed JWT that carries `token`; the record holds the
    expiry and the current CSRF token. Deleted on logout.
    """
    __tablename__ = "sessions"
    __table_args__ = (
        db.Index("ix_sessions_csrf_expiry", "csrf_token_expires_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    token = db.Column(db.String(64), nullable=False, unique=True, index=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)

    expires_at = db.Column(db.DateTime(timezone=True), nullable=False)

    csrf_token = db.Column(db.String(64), nullable=True)
    csrf_token_expires_at = db.Column(db.DateTime(timezone=True), nullable=True)

    user_agent = db.Column(db.String(512), nullable=True)
    ip_address = db.Column(db.String(45), nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)

    user = db.relationship(
        "User",
        backref=db.backref("sessions", lazy=True, cascade="all, delete-orphan"),
    )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "user_id": self.user_id,
            "expires_at": to_utc_z(self.expires_at),
            "created_at": to_utc_z(self.created_at),
        }
