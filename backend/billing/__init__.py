# backend/billing/__init__.py
import atexit
import logging

from flask import Flask, request

from .config import Config
from .extensions import db, migrate



def create_app(overrides: dict | None = None) -> Flask:
    app = Flask(__name__, instance_relative_config=True)
    app.config.from_object(Config)

    # Overrides must land before extensions read the config (engine URI)
    if overrides:
        app.config.update(overrides)

    # Initialize extensions
    db.init_app(app)
    migrate.init_app(app, db)

    # Import models so Alembic can discover metadata reliably
    from . import models  # noqa: F401

    level = logging.getLevelName(str(app.config.get("LOG_LEVEL", "INFO")).upper())
    if isinstance(level, int):
        app.logger.setLevel(level)
        logging.getLogger("billing").setLevel(level)

    # Storage adapter: built once per app, closed at interpreter exit
    from .storage import build_store
    store = build_store(app, db)
    store.open()
    app.extensions["billing_store"] = store
    atexit.register(store.close)

    # Register blueprints
    from .routes.system import system_bp
    from .routes.customers import customers_bp
    from .routes.sales_bills import sales_bills_bp
    from .routes.collection_bills import collection_bills_bp

    app.register_blueprint(system_bp)
    app.register_blueprint(customers_bp)
    app.register_blueprint(sales_bills_bp)
    app.register_blueprint(collection_bills_bp)

    allowed_origins = set(app.config.get("ALLOWED_ORIGINS") or ())

    @app.after_request
    def add_cors_headers(response):
        origin = request.headers.get("Origin")
        if origin in allowed_origins:
            response.headers["Access-Control-Allow-Origin"] = origin
            response.headers["Vary"] = "Origin"
            response.headers["Access-Control-Allow-Headers"] = "Content-Type"
            response.headers["Access-Control-Allow-Methods"] = "GET,POST,PUT,DELETE,OPTIONS"
        return response

    # Register CLI commands
    from .cli import register_commands
    register_commands(app)

    return app
