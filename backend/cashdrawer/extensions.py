# Overview: Flask extension instances for database and migrations, plus the shift manager accessor.

from flask import current_app
from flask_sqlalchemy import SQLAlchemy
from flask_migrate import Migrate

db = SQLAlchemy()
migrate = Migrate()


def get_shift_manager():
    """ShiftManager bound to the current app (created in create_app)."""
    return current_app.extensions["shift_manager"]
