# backend/tablepos/config.py
from __future__ import annotations
import os


def _env_flag(name: str, default: str = "0") -> bool:
    return os.environ.get(name, default).strip().lower() in {"1", "true", "yes", "on"}


class Config:
    # Optional "SECRET_KEY", with default dev key
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key-change-me")

    # SQLite DB stored in backend/instance/tablepos.sqlite3
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL", #optional alternative location
        "sqlite:///tablepos.sqlite3", #default local location
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO").upper()

    # Remaining due at or below this many cents counts as fully paid (0.01 currency unit)
    SETTLEMENT_EPSILON_CENTS = int(os.environ.get("SETTLEMENT_EPSILON_CENTS", "1"))

    # Status assigned to freshly placed orders
    ORDER_INITIAL_STATUS = os.environ.get("ORDER_INITIAL_STATUS", "pending").strip().lower()

    # When enabled, order edits report quantities removed since the previous snapshot
    KITCHEN_NOTIFY_REMOVALS = _env_flag("KITCHEN_NOTIFY_REMOVALS")

    CORS_ALLOWED_ORIGINS = [
        origin.strip()
        for origin in os.environ.get(
            "CORS_ALLOWED_ORIGINS",
            "http://localhost:3000,http://127.0.0.1:3000,http://localhost:5173,http://127.0.0.1:5173",
        ).split(",")
        if origin.strip()
    ]
