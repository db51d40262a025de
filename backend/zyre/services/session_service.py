# Overview: Service-layer operations for sessions and CSRF tokens.

"""
Session and CSRF Token Management

Sessions are server-side rows keyed by a random token. The browser holds a
signed JWT (HTTP-only `auth_token` cookie) whose `sid` claim is that token,
so a forged or tampered cookie never reaches the database lookup.

CSRF tokens live on the session row with their own, shorter expiry. They are
rotated on login and on explicit refresh, and cleared by the cleanup sweep.
"""

import secrets
from datetime import timedelta

from flask import current_app

from ..extensions import db
from ..models import Session
from zyre.time_utils import utcnow


def generate_token() -> str:
    """64-character hex string (32 bytes of entropy) from a CSPRNG."""
    return secrets.token_hex(32)


def _session_lifetime() -> timedelta:
    return timedelta(days=current_app.config["SESSION_EXPIRATION_DAYS"])


def create_session(
    user_id: int,
    user_agent: str | None = None,
    ip_address: str | None = None,
) -> Session:
    now = utcnow()
    session = Session(
        token=generate_token(),
        user_id=user_id,
        created_at=now,
        expires_at=now + _session_lifetime(),
        user_agent=user_agent,
        ip_address=ip_address,
    )
    db.session.add(session)
    db.session.commit()
    return session


def get_active_session(token: str | None) -> Session | None:
    """Return the session for token, or None if it is missing or expired."""
    if not token:
        return None

    session = db.session.query(Session).filter_by(token=token).first()
    if not session:
        return None

    if session.expires_at < utcnow():
        return None

    return session


def delete_session(session_id: int) -> bool:
    deleted = db.session.query(Session).filter_by(id=session_id).delete()
    db.session.commit()
    return bool(deleted)


def create_or_refresh_csrf_token(session_id: int) -> str:
    """Issue a new CSRF token for the session, replacing any previous one."""
    session = db.session.get(Session, session_id)
    if session is None:
        raise ValueError("Session not found")

    token = generate_token()
    session.csrf_token = token
    session.csrf_token_expires_at = utcnow() + current_app.config["CSRF_TOKEN_EXPIRY"]
    db.session.commit()
    return token


def is_csrf_token_valid(session_id: int, client_token: str | None) -> bool:
    if not client_token:
        return False

    session = db.session.get(Session, session_id)
    if not session or not session.csrf_token or not session.csrf_token_expires_at:
        return False

    if utcnow() >= session.csrf_token_expires_at:
        return False

    return secrets.compare_digest(session.csrf_token, client_token)


def cleanup_expired_csrf_tokens() -> int:
    """
    Clear CSRF tokens whose expiry has passed.

    Returns count of sessions touched. Run periodically
    (see `flask maintenance cleanup-csrf`).
    """
    updated = db.session.query(Session).filter(
        Session.csrf_token_expires_at < utcnow()
    ).update(
        {Session.csrf_token: None, Session.csrf_token_expires_at: None},
        synchronize_session=False,
    )
    db.session.commit()
    return updated
