# Overview: Welcome and health endpoints.

import time

from flask import Blueprint, current_app
from sqlalchemy import text

from ..extensions import db
from ..responses import success

system_bp = Blueprint("system", __name__)


def check_database_health() -> dict:
    """Round-trip the primary database and report latency."""
    start_time = time.time()
    try:
        db.session.execute(text("SELECT 1"))
        elapsed_ms = (time.time() - start_time) * 1000
        return {"status": "healthy", "latency_ms": round(elapsed_ms, 2)}
    except Exception:
        elapsed_ms = (time.time() - start_time) * 1000
        current_app.logger.exception("Database health check failed")
        return {
            "status": "unhealthy",
            "latency_ms": round(elapsed_ms, 2),
            "error": "Database error",
        }


@system_bp.get("/")
def welcome():
    return success("Welcome to the Zyre API", "GET", "Server is running")


@system_bp.get("/api/v1/health")
def health():
    database = check_database_health()
    status = 200 if database["status"] == "healthy" else 503
    return success(
        {"status": database["status"], "environment": current_app.config.get("APP_ENV"), "database": database},
        "GET",
        "Health check",
        status,
    )
