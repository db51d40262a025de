# Overview: Request decorators for API routes; session auth, CSRF and role checks.

from functools import wraps

from flask import current_app, g, request
from flask_jwt_extended import get_jwt, verify_jwt_in_request

from .cookies import unauthorized
from .errors import error_response
from .services import session_service

SAFE_METHODS = ("GET", "HEAD", "OPTIONS")


def _is_authenticated() -> bool:
    return hasattr(g, 'current_user') and hasattr(g, 'session_id')


def require_auth(f):
    """
    Require a valid session cookie.

    Sets the following Flask g attributes:
    - g.current_user: The authenticated User object
    - g.session: The Session row behind the cookie
    - g.session_id: Its id (used by the CSRF check)

    Returns 401 and clears the auth cookies if:
    - No cookie, or the JWT is tampered with or expired
    - The session it names is gone or past expires_at
    - The user account is deactivated
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        verify_jwt_in_request()

        session = session_service.get_active_session(get_jwt().get("sid"))
        if session is None:
            return unauthorized("Session expired or invalid")

        user = session.user
        if user is None or not user.is_active:
            return unauthorized("Account is deactivated")

        g.current_user = user
        g.session = session
        g.session_id = session.id

        return f(*args, **kwargs)

    return decorated_function


def require_csrf(f):
    """
    Require the session's CSRF token in the X-CSRF-Token header.

    GET/HEAD/OPTIONS pass through. Must run after @require_auth.
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        if request.method in SAFE_METHODS:
            return f(*args, **kwargs)

        client_token = request.headers.get(current_app.config["CSRF_HEADER_NAME"])
        if not client_token:
            return error_response("CSRF token required for this operation", 403)

        if not _is_authenticated():
            return error_response("Valid session required", 401)

        if not session_service.is_csrf_token_valid(g.session_id, client_token):
            return error_response("Invalid or expired CSRF token", 403)

        return f(*args, **kwargs)

    return decorated_function


def require_roles(*roles: str):
    """
    Require one of the named roles. SUPERADMIN always passes.
    """
    allowed = {role.upper() for role in roles}

    def decorator(f):
        @wraps(f)
        def decorated_function(*args, **kwargs):
            if not _is_authenticated():
                return error_response("Authentication required", 401)

            role_name = (g.current_user.role_name or "").upper()
            if role_name == "SUPERADMIN" or role_name in allowed:
                return f(*args, **kwargs)

            return error_response("Access forbidden: Insufficient rights", 403)

        return decorated_function
    return decorator
