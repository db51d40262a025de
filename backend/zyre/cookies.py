# Overview: Auth/CSRF cookie helpers and JWT failure responses.

from __future__ import annotations

from flask import current_app
from flask_jwt_extended import create_access_token, set_access_cookies, unset_jwt_cookies

from .errors import error_response
from .extensions import jwt


def _cookie_options() -> dict:
    production = current_app.config.get("APP_ENV") == "production"
    return {
        "httponly": True,
        "secure": production,
        "samesite": "None" if production else "Lax",
        "path": "/",
    }


def set_auth_cookie(response, user, session) -> str:
    """Sign a JWT carrying the session token and store it in the auth cookie."""
    token = create_access_token(identity=str(user.id), additional_claims={"sid": session.token})
    set_access_cookies(response, token)
    return token


def set_csrf_cookie(response, csrf_token: str) -> None:
    max_age = int(current_app.config["CSRF_TOKEN_EXPIRY"].total_seconds())
    response.set_cookie(current_app.config["CSRF_COOKIE_NAME"], csrf_token, max_age=max_age, **_cookie_options())


def clear_auth_cookies(response):
    unset_jwt_cookies(response)
    options = _cookie_options()
    response.delete_cookie(
        current_app.config["CSRF_COOKIE_NAME"],
        path=options["path"],
        secure=options["secure"],
        httponly=options["httponly"],
        samesite=options["samesite"],
    )
    return response


def unauthorized(message: str):
    response, status = error_response(message, 401)
    return clear_auth_cookies(response), status


def register_jwt_callbacks() -> None:
    @jwt.unauthorized_loader
    def _missing_token(reason):
        return unauthorized("Authentication failed: No token provided")

    @jwt.invalid_token_loader
    def _invalid_token(reason):
        return unauthorized("Invalid authentication token")

    @jwt.expired_token_loader
    def _expired_token(jwt_header, jwt_payload):
        return unauthorized("Session expired or invalid")
