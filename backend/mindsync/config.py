# backend/mindsync/config.py
from __future__ import annotations
import os


def _env_flag(name: str, default: str = "false") -> bool:
    return os.environ.get(name, default).strip().lower() in {"1", "true", "yes", "on"}


class Config:
    # Optional "SECRET_KEY", with default dev key
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key-change-me")

    # SQLite DB stored in backend/instance/mindsync.sqlite3
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL", #optional alternative location
        "sqlite:///mindsync.sqlite3", #default local location
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO").upper()

    # Comma-separated list of browser origins allowed to call the API
    CORS_ALLOWED_ORIGINS = os.environ.get(
        "CORS_ALLOWED_ORIGINS",
        "http://localhost:5173,http://127.0.0.1:5173,http://localhost:8080",
    )

    # Products created without a reorder level fall back to this threshold
    LOW_STOCK_DEFAULT_REORDER_LEVEL = int(os.environ.get("LOW_STOCK_DEFAULT_REORDER_LEVEL", "0"))

    # When enabled, invoice creation also writes an income transaction
    # referencing the invoice number. Reports never count it as revenue.
    RECORD_INVOICE_INCOME_TRANSACTION = _env_flag("RECORD_INVOICE_INCOME_TRANSACTION")
