# Overview: Service-layer operations for auth; registration, credential checks, and role bootstrap.

"""
Authentication Service

Uses bcrypt for password hashing and validates password strength at
registration time.

SECURITY NOTES:
- Passwords hashed with bcrypt (cost factor 12)
- Minimum 8 characters, with uppercase, lowercase, digit and one of @$!%*?&
- Login failures never reveal whether the email exists beyond the
  "register first" hint the frontend relies on
"""

import re

import bcrypt

from ..errors import AuthenticationError, ConflictError, ValidationError
from ..extensions import db
from ..models import Role, User
from zyre.time_utils import utcnow


EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")

DEFAULT_ROLES = [
    ("SUPERADMIN", "Full system access"),
    ("ADMIN", "Back-office management"),
    ("USER", "Standard access"),
]


class PasswordValidationError(ValidationError):
    """Raised when password doesn't meet strength requirements."""


def is_valid_email(email: str | None) -> bool:
    return bool(email) and EMAIL_PATTERN.match(email) is not None


def validate_password_strength(password: str) -> None:
    """
    Validate password meets strength requirements.

    Raises PasswordValidationError if requirements not met.
    """
    if len(password) < 8:
        raise PasswordValidationError("Password must be at least 8 characters long")

    if not re.search(r'[A-Z]', password):
        raise PasswordValidationError("Password must contain at least one uppercase letter")

    if not re.search(r'[a-z]', password):
        raise PasswordValidationError("Password must contain at least one lowercase letter")

    if not re.search(r'\d', password):
        raise PasswordValidationError("Password must contain at least one digit")

    if not re.search(r"[@$!%*?&]", password):
        raise PasswordValidationError("Password must contain at least one symbol (@$!%*?&)")


def hash_password(password: str) -> str:
    """Hash password using bcrypt with cost factor 12 (validates strength first)."""
    validate_password_strength(password)
    salt = bcrypt.gensalt(rounds=12)
    hashed = bcrypt.hashpw(password.encode('utf-8'), salt)
    return hashed.decode('utf-8')


def verify_password(password: str, password_hash: str) -> bool:
    """Timing-safe bcrypt comparison. Malformed hashes never match."""
    try:
        return bcrypt.checkpw(password.encode('utf-8'), password_hash.encode('utf-8'))
    except ValueError:
        return False


def register_user(*, fullname: str | None, email: str | None, password: str | None, role_id) -> User:
    """
    Create a new user account.

    Raises:
        ValidationError: missing fields, bad email, unknown role
        PasswordValidationError: weak password
        ConflictError: email already registered
    """
    if not fullname or not email or not password or not role_id:
        raise ValidationError("All fields are required.")

    if not is_valid_email(email):
        raise ValidationError("Invalid email format.")

    validate_password_strength(password)

    role = db.session.get(Role, role_id)
    if not role:
        raise ValidationError("Invalid role ID.")

    existing = db.session.query(User).filter_by(email=email).first()
    if existing:
        raise ConflictError("User with this email already exists.")

    user = User(
        fullname=fullname,
        email=email,
        password_hash=hash_password(password),
        role_id=role.id,
        is_email_verified=False,
    )
    db.session.add(user)
    db.session.commit()
    return user


def authenticate(email: str | None, password: str | None) -> User:
    """
    Check credentials and stamp last_login_at.

    Raises AuthenticationError (401) or ValidationError (400) on failure.
    """
    if not email:
        raise ValidationError("Empty email field")

    if not is_valid_email(email):
        raise ValidationError("Invalid email format.")

    user = db.session.query(User).filter_by(email=email).first()
    if not user:
        raise AuthenticationError("Please register first.")

    if not user.is_active:
        raise AuthenticationError("Account is deactivated")

    if not password or not verify_password(password, user.password_hash):
        raise AuthenticationError("Invalid credentials: Wrong Password")

    user.last_login_at = utcnow()
    # Email is considered verified once the owner logs in successfully
    user.is_email_verified = True
    db.session.commit()
    return user


def create_default_roles() -> list[Role]:
    """Create the standard roles if they don't exist."""
    roles = []
    for name, desc in DEFAULT_ROLES:
        role = db.session.query(Role).filter_by(name=name).first()
        if not role:
            role = Role(name=name, description=desc)
            db.session.add(role)
        roles.append(role)

    db.session.commit()
    return roles
