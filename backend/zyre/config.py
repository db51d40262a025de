# backend/zyre/config.py
from __future__ import annotations
import os
from datetime import timedelta

from dotenv import load_dotenv

load_dotenv()


class Config:
    # Optional "SECRET_KEY", with default dev key
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key-change-me")

    # "development" exposes stack traces in error responses
    APP_ENV = os.environ.get("APP_ENV", "development")

    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL",
        "sqlite:///zyre.sqlite3",
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # Browser origins allowed to send credentialed requests
    FRONTEND_URL = os.environ.get("FRONTEND_URL")
    CORS_ALLOWED_ORIGINS = [
        "http://localhost:3000",
        "http://127.0.0.1:3000",
        "http://localhost:5173",
    ]

    # Session cookie (signed JWT carrying the session token)
    SESSION_EXPIRATION_DAYS = 14
    JWT_SECRET_KEY = os.environ.get("JWT_SECRET", SECRET_KEY)
    JWT_TOKEN_LOCATION = ["cookies"]
    JWT_ACCESS_COOKIE_NAME = "auth_token"
    JWT_ACCESS_COOKIE_PATH = "/"
    JWT_ACCESS_TOKEN_EXPIRES = timedelta(days=SESSION_EXPIRATION_DAYS)
    # CSRF is enforced against the session record, not the JWT double-submit scheme
    JWT_COOKIE_CSRF_PROTECT = False
    JWT_COOKIE_SECURE = APP_ENV == "production"
    JWT_COOKIE_SAMESITE = "None" if APP_ENV == "production" else "Lax"

    CSRF_COOKIE_NAME = "csrf_token"
    CSRF_HEADER_NAME = "X-CSRF-Token"
    CSRF_TOKEN_EXPIRY = timedelta(hours=2)

    # Fixed-window rate limits per client IP
    RATE_LIMIT_ENABLED = True
    RATE_LIMIT_WINDOW = timedelta(minutes=5)
    RATE_LIMIT_MAX = 100
    LOGIN_RATE_LIMIT_WINDOW = timedelta(minutes=15)
    LOGIN_RATE_LIMIT_MAX = 50

    # Legacy HRMS (MySQL). HRMS_DATABASE_URL overrides the individual parts.
    HRMS_DATABASE_URL = os.environ.get("HRMS_DATABASE_URL")
    HRMS_HOST = os.environ.get("DB_HOST")
    HRMS_PORT = int(os.environ.get("DB_PORT", "3306"))
    HRMS_USER = os.environ.get("DB_USER")
    HRMS_PASSWORD = os.environ.get("DB_PASSWORD")
    HRMS_DATABASE = os.environ.get("DB_NAME")
    HRMS_POOL_SIZE = int(os.environ.get("DB_CONNECTION_LIMIT", "10"))

    # Actor recorded on movements written by the expiry sweep (None = system)
    SYSTEM_USER_ID = int(os.environ["SYSTEM_USER_ID"]) if os.environ.get("SYSTEM_USER_ID") else None
