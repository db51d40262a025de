# backend/zyre/__init__.py
import atexit

from flask import Flask, request

from .config import Config
from .extensions import db, jwt, migrate
from .hrms import close_engine


def create_app(config_object=Config) -> Flask:
    app = Flask(__name__, instance_relative_config=True)
    app.config.from_object(config_object)

    # Initialize extensions
    db.init_app(app)
    migrate.init_app(app, db)
    jwt.init_app(app)

    # Import models so Alembic can discover metadata reliably
    from . import models  # noqa: F401

    from .cookies import register_jwt_callbacks
    from .errors import register_error_handlers
    from .ratelimit import init_rate_limiting

    register_jwt_callbacks()
    register_error_handlers(app)
    init_rate_limiting(app)

    # Register blueprints
    from .routes.system import system_bp
    from .routes.auth import auth_bp
    from .routes.users import users_bp
    from .routes.stores import stores_bp
    from .routes.products import products_bp
    from .routes.inventory import inventory_bp
    from .routes.psr import psr_bp
    from .routes.collections import collections_bp
    from .routes.logs import logs_bp

    app.register_blueprint(system_bp)
    app.register_blueprint(auth_bp)
    app.register_blueprint(users_bp)
    app.register_blueprint(stores_bp)
    app.register_blueprint(products_bp)
    app.register_blueprint(inventory_bp)
    app.register_blueprint(psr_bp)
    app.register_blueprint(collections_bp)
    app.register_blueprint(logs_bp)

    @app.after_request
    def add_cors_headers(response):
        allowed_origins = set(app.config["CORS_ALLOWED_ORIGINS"])
        if app.config.get("FRONTEND_URL"):
            allowed_origins.add(app.config["FRONTEND_URL"].rstrip("/"))

        origin = request.headers.get("Origin")
        if origin in allowed_origins:
            response.headers["Access-Control-Allow-Origin"] = origin
            response.headers["Access-Control-Allow-Credentials"] = "true"
            response.headers["Vary"] = "Origin"
            response.headers["Access-Control-Allow-Headers"] = (
                f"Content-Type, {app.config['CSRF_HEADER_NAME']}"
            )
            response.headers["Access-Control-Allow-Methods"] = "GET,POST,PUT,DELETE,PATCH,OPTIONS"
        return response

    # HRMS pool lives for the process; dispose it on interpreter exit
    atexit.register(close_engine, app)

    # Register CLI commands
    from .cli import register_commands
    register_commands(app)

    return app
