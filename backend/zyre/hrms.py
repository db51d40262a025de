# Overview: Pooled, read-only access to the legacy HRMS MySQL database.

"""
Legacy HRMS source adapter.

One SQLAlchemy engine per application, created lazily on first use:
- bounded QueuePool (HRMS_POOL_SIZE, default 10, no overflow)
- pool_pre_ping validates each checked-out connection before use
- with_connection() checks a connection out for exactly one unit of work and
  always returns it to the pool
- with_transaction() wraps the unit of work in begin/commit, rolling back
  before the error propagates

No retries: failures are logged and re-raised unchanged.
"""

from __future__ import annotations

from typing import Callable, TypeVar

from flask import current_app
from sqlalchemy import create_engine
from sqlalchemy.engine import Connection, Engine, URL

T = TypeVar("T")

REQUIRED_SETTINGS = ("HRMS_HOST", "HRMS_USER", "HRMS_PASSWORD", "HRMS_DATABASE")

EXTENSION_KEY = "zyre.hrms_engine"


class HRMSConfigError(RuntimeError):
    """Raised when the HRMS connection settings are incomplete."""


def build_url(config) -> URL | str:
    if config.get("HRMS_DATABASE_URL"):
        return config["HRMS_DATABASE_URL"]

    missing = [key for key in REQUIRED_SETTINGS if not config.get(key)]
    if missing:
        raise HRMSConfigError(
            "Missing required database environment variables: " + ", ".join(missing)
        )

    return URL.create(
        "mysql+mysqlconnector",
        username=config["HRMS_USER"],
        password=config["HRMS_PASSWORD"],
        host=config["HRMS_HOST"],
        port=config.get("HRMS_PORT", 3306),
        database=config["HRMS_DATABASE"],
        query={"charset": "utf8mb4"},
    )


def create_hrms_engine(config) -> Engine:
    url = build_url(config)
    return create_engine(
        url,
        pool_size=config.get("HRMS_POOL_SIZE", 10),
        max_overflow=0,
        pool_pre_ping=True,
    )


def get_engine() -> Engine:
    """Return the application's HRMS engine, creating it on first use."""
    engine = current_app.extensions.get(EXTENSION_KEY)
    if engine is None:
        engine = create_hrms_engine(current_app.config)
        current_app.extensions[EXTENSION_KEY] = engine
        current_app.logger.info(
            "HRMS connection pool created (size=%s)", current_app.config.get("HRMS_POOL_SIZE", 10)
        )
    return engine


def close_engine(app) -> None:
    """Dispose of the pool; safe to call when no engine was ever created."""
    engine = app.extensions.pop(EXTENSION_KEY, None)
    if engine is not None:
        engine.dispose()


def with_connection(fn: Callable[[Connection], T]) -> T:
    engine = get_engine()
    connection = None
    try:
        connection = engine.connect()
        return fn(connection)
    except Exception:
        current_app.logger.exception("HRMS database operation failed")
        raise
    finally:
        if connection is not None:
            connection.close()


def with_transaction(fn: Callable[[Connection], T]) -> T:
    def _unit(connection: Connection) -> T:
        transaction = connection.begin()
        try:
            result = fn(connection)
            transaction.commit()
            return result
        except Exception:
            transaction.rollback()
            raise

    return with_connection(_unit)
