# backend/cashdrawer/__init__.py
import logging

from flask import Flask

from .config import Config
from .extensions import db, migrate


def create_app(overrides: dict | None = None, gateway=None) -> Flask:
    app = Flask(__name__, instance_relative_config=True)
    app.config.from_object(Config)
    if overrides:
        app.config.update(overrides)

    logging.getLogger("cashdrawer").setLevel(app.config["LOG_LEVEL"])

    # Initialize extensions
    db.init_app(app)
    migrate.init_app(app, db)

    # Import models so Alembic can discover metadata reliably
    from . import models  # noqa: F401

    from .services.concurrency import ShiftLockRegistry
    from .services.gateway import SqlShiftGateway
    from .services.shift_manager import ShiftManager

    app.extensions["shift_manager"] = ShiftManager(
        gateway or SqlShiftGateway(),
        locks=ShiftLockRegistry(timeout=app.config["SHIFT_LOCK_TIMEOUT_SECONDS"]),
    )

    # Register blueprints
    from .routes.system import system_bp
    from .routes.shifts import shifts_bp

    app.register_blueprint(system_bp)
    app.register_blueprint(shifts_bp)

    # Register CLI commands
    from .cli import register_commands
    register_commands(app)

    return app
