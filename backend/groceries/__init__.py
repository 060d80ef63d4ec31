# backend/groceries/__init__.py
from flask import Flask

from .config import Config, engine_options_for
from .extensions import db, migrate


def create_app(config_overrides: dict | None = None) -> Flask:
    app = Flask(__name__, instance_relative_config=True)
    app.config.from_object(Config)
    if config_overrides:
        app.config.update(config_overrides)

    # Bound every store operation by STORE_TIMEOUT_SECONDS
    engine_options = engine_options_for(
        app.config["SQLALCHEMY_DATABASE_URI"],
        app.config["STORE_TIMEOUT_SECONDS"],
    )
    engine_options.update(app.config.get("SQLALCHEMY_ENGINE_OPTIONS") or {})
    app.config["SQLALCHEMY_ENGINE_OPTIONS"] = engine_options

    app.logger.setLevel(app.config["LOG_LEVEL"])

    # Initialize extensions
    db.init_app(app)
    migrate.init_app(app, db)

    # Import models so Alembic can discover metadata reliably
    from . import models  # noqa: F401

    # Register blueprints
    from .routes.system import system_bp
    from .routes.products import products_bp
    from .routes.orders import orders_bp
    from .routes.auth import auth_bp
    from .routes.admin import admin_bp

    app.register_blueprint(system_bp)
    app.register_blueprint(products_bp)
    app.register_blueprint(orders_bp)
    app.register_blueprint(auth_bp)
    app.register_blueprint(admin_bp)

    # Register CLI commands
    from .cli import register_commands
    register_commands(app)

    if app.config.get("SESSION_SWEEP_ENABLED") and not app.config.get("TESTING"):
        from .services.maintenance_service import start_session_sweeper
        start_session_sweeper(app)

    return app
