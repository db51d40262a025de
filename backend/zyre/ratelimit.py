# Overview: Fixed-window, per-client-IP request limiting.

"""
Fixed-window rate limiting.

Counts are kept in process memory, keyed by (scope, client IP). A window
starts with the first request from a key and resets once it has elapsed.
Keys whose window has elapsed are evicted at most once per window.

- /api/v1/auth/login always counts against the login budget
- every request also counts against the general budget, unless it carries an
  auth cookie naming a live session
"""

from __future__ import annotations

import threading
import time
from datetime import timedelta

from flask import current_app, request
from flask_jwt_extended import decode_token
from flask_jwt_extended.exceptions import JWTExtendedException
from jwt.exceptions import PyJWTError

from .errors import RateLimitError
from .services import session_service


class FixedWindowRateLimiter:
    def __init__(self, window: timedelta, max_requests: int, *, clock=time.monotonic):
        self.window_seconds = window.total_seconds()
        self.max_requests = max_requests
        self._clock = clock
        self._lock = threading.Lock()
        self._hits: dict[str, tuple[float, int]] = {}
        self._last_sweep = clock()

    def __len__(self) -> int:
        return len(self._hits)

    def _evict_expired(self, now: float) -> None:
        expired = [key for key, (started, _) in self._hits.items() if now - started >= self.window_seconds]
        for key in expired:
            del self._hits[key]
        self._last_sweep = now

    def hit(self, key: str) -> tuple[bool, int]:
        """
        Count one request for key.

        Returns (allowed, seconds until the window resets).
        """
        now = self._clock()
        with self._lock:
            if now - self._last_sweep >= self.window_seconds:
                self._evict_expired(now)

            started, count = self._hits.get(key, (now, 0))
            if now - started >= self.window_seconds:
                started, count = now, 0
            count += 1
            self._hits[key] = (started, count)
            retry_after = max(int(self.window_seconds - (now - started)), 0)
            return count <= self.max_requests, retry_after

    def reset(self) -> None:
        with self._lock:
            self._hits.clear()
            self._last_sweep = self._clock()


EXTENSION_KEY = "zyre.rate_limiters"

LOGIN_PATH = "/api/v1/auth/login"


def has_live_session() -> bool:
    """True only when the auth cookie verifies and names an unexpired session."""
    token = request.cookies.get(current_app.config["JWT_ACCESS_COOKIE_NAME"])
    if not token:
        return False
    try:
        claims = decode_token(token)
    except (PyJWTError, JWTExtendedException):
        return False
    return session_service.get_active_session(claims.get("sid")) is not None


def init_rate_limiting(app) -> None:
    app.extensions[EXTENSION_KEY] = {
        "general": FixedWindowRateLimiter(app.config["RATE_LIMIT_WINDOW"], app.config["RATE_LIMIT_MAX"]),
        "login": FixedWindowRateLimiter(app.config["LOGIN_RATE_LIMIT_WINDOW"], app.config["LOGIN_RATE_LIMIT_MAX"]),
    }

    @app.before_request
    def enforce_rate_limit():
        if not current_app.config.get("RATE_LIMIT_ENABLED", True):
            return None
        if request.method == "OPTIONS":
            return None

        limiters = current_app.extensions[EXTENSION_KEY]
        ip = request.remote_addr or "unknown"

        if request.path == LOGIN_PATH:
            allowed, retry_after = limiters["login"].hit(f"login:{ip}")
            if not allowed:
                current_app.logger.warning("Login rate limit exceeded for %s", ip)
                raise RateLimitError(
                    f"Too many login attempts from this IP, please try again later. Retry in {retry_after}s."
                )

        if has_live_session():
            return None

        allowed, retry_after = limiters["general"].hit(f"general:{ip}")
        if not allowed:
            current_app.logger.warning("Rate limit exceeded for %s on %s", ip, request.path)
            raise RateLimitError(
                f"Too many requests from this IP, please try again later. Retry in {retry_after}s."
            )
        return None
