# Overview: API error types and the JSON error envelope handlers.

from __future__ import annotations

import traceback

from flask import current_app, jsonify, request
from werkzeug.exceptions import HTTPException


class ApiError(Exception):
    """An error with an explicit HTTP status; anything else maps to 500."""
    status_code = 500

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code


class ValidationError(ApiError, ValueError):
    """400-level input problem."""
    status_code = 400


class AuthenticationError(ApiError):
    status_code = 401


class ForbiddenError(ApiError):
    status_code = 403


class NotFoundError(ApiError):
    status_code = 404


class ConflictError(ApiError, ValueError):
    """409-level business rule conflict (e.g., duplicate batch number)."""
    status_code = 409


class RateLimitError(ApiError):
    status_code = 429


def error_response(message: str, status: int, exc: BaseException | None = None):
    show_stack = current_app.config.get("APP_ENV") == "development" and exc is not None
    body = {
        "message": message,
        "status": status,
        "stack": "".join(traceback.format_exception(exc)) if show_stack else None,
    }
    return jsonify(body), status


def register_error_handlers(app) -> None:
    @app.errorhandler(ApiError)
    def handle_api_error(exc: ApiError):
        return error_response(exc.message, exc.status_code, exc)

    @app.errorhandler(404)
    def handle_not_found(exc):
        return error_response(f"Not found: {request.full_path.rstrip('?')}", 404, None)

    @app.errorhandler(HTTPException)
    def handle_http_exception(exc: HTTPException):
        return error_response(exc.description or exc.name, exc.code or 500, None)

    @app.errorhandler(Exception)
    def handle_unexpected(exc: Exception):
        current_app.logger.exception("Unhandled error on %s %s", request.method, request.path)
        return error_response(str(exc) or "Internal server error", 500, exc)
