# Overview: Flask API routes for auth operations; registration, cookie login, CSRF refresh and logout.

"""
Authentication API routes

- POST /register      open self-registration (validated, bcrypt-hashed)
- POST /login         sets the auth_token (JWT) and csrf_token cookies
- POST /refresh-csrf  rotates the session's CSRF token
- POST /logout        deletes the session and clears both cookies

The CSRF token is also returned in the login/refresh body; clients echo it
back in the X-CSRF-Token header on mutating requests.
"""

from flask import Blueprint, g, request

from ..cookies import clear_auth_cookies, set_auth_cookie, set_csrf_cookie
from ..decorators import require_auth
from ..responses import success
from ..services import activity_service, auth_service, session_service


auth_bp = Blueprint("auth", __name__, url_prefix="/api/v1/auth")


@auth_bp.post("/register")
def register_route():
    data = request.get_json(silent=True) or {}
    user = auth_service.register_user(
        fullname=data.get("fullname"),
        email=data.get("email"),
        password=data.get("password"),
        role_id=data.get("role_id", data.get("roleId")),
    )
    return success(user.to_dict(), "POST", "User Created Successfully", 201)


@auth_bp.post("/login")
def login_route():
    data = request.get_json(silent=True) or {}
    user = auth_service.authenticate(data.get("email"), data.get("password"))

    user_agent = request.headers.get("User-Agent")
    ip_address = request.remote_addr

    session = session_service.create_session(user.id, user_agent=user_agent, ip_address=ip_address)
    csrf_token = session_service.create_or_refresh_csrf_token(session.id)

    activity_service.record_activity(
        user_id=user.id,
        model="Session",
        record_id=session.id,
        action="LOGIN",
        description=f"User logged in via {ip_address}",
        ip_address=ip_address,
        user_agent=user_agent,
    )

    response, status = success(
        {"message": "Welcome to the system!", "user": user.to_dict(), "csrf_token": csrf_token},
        "POST",
        "Login successful",
    )
    set_auth_cookie(response, user, session)
    set_csrf_cookie(response, csrf_token)
    return response, status


@auth_bp.post("/refresh-csrf")
@require_auth
def refresh_csrf_route():
    csrf_token = session_service.create_or_refresh_csrf_token(g.session_id)
    response, status = success({"csrf_token": csrf_token}, "POST", "CSRF token refreshed")
    set_csrf_cookie(response, csrf_token)
    return response, status


@auth_bp.post("/logout")
@require_auth
def logout_route():
    session_service.delete_session(g.session_id)
    activity_service.record_activity(
        user_id=g.current_user.id,
        model="Session",
        record_id=g.session_id,
        action="LOGOUT",
        description="User logged out",
        ip_address=request.remote_addr,
        user_agent=request.headers.get("User-Agent"),
    )
    response, status = success(None, "POST", "Logout successful")
    clear_auth_cookies(response)
    return response, status
