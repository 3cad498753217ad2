# backend/cashdrawer/config.py
from __future__ import annotations
import os


class Config:
    # Optional "SECRET_KEY", with default dev key
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key-change-me")

    # SQLite DB stored in backend/instance/cashdrawer.sqlite3
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL", #optional alternative location
        "sqlite:///cashdrawer.sqlite3", #default local location
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # Seconds a shift operation waits for the per-shift lock before failing with LockTimeout
    SHIFT_LOCK_TIMEOUT_SECONDS = float(os.environ.get("SHIFT_LOCK_TIMEOUT_SECONDS", "5"))

    # Register/session context used when a request does not name one
    DEFAULT_SHIFT_CONTEXT = os.environ.get("DEFAULT_SHIFT_CONTEXT", "default")

    CURRENCY_SYMBOL = os.environ.get("CURRENCY_SYMBOL", "$")

    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")
