# backend/billing/config.py
from __future__ import annotations
import os


class Config:
    # Optional "SECRET_KEY", with default dev key
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key-change-me")

    # SQLite DB stored in backend/instance/billing.sqlite3
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL", #optional alternative location
        "sqlite:///billing.sqlite3", #default local location
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # "sql" (SQLAlchemy tables) or "document" (in-process document store)
    BILLING_STORAGE = os.environ.get("BILLING_STORAGE", "sql")

    # Human-readable number prefixes
    BILL_NUMBER_PREFIX = os.environ.get("BILL_NUMBER_PREFIX", "INV")
    COLLECTION_NUMBER_PREFIX = os.environ.get("COLLECTION_NUMBER_PREFIX", "COL")
    CUSTOMER_CODE_PREFIX = os.environ.get("CUSTOMER_CODE_PREFIX", "CUST")

    DEFAULT_PAGE_LIMIT = int(os.environ.get("DEFAULT_PAGE_LIMIT", "10"))
    MAX_PAGE_LIMIT = int(os.environ.get("MAX_PAGE_LIMIT", "100"))

    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")

    ALLOWED_ORIGINS = [
        origin.strip()
        for origin in os.environ.get(
            "ALLOWED_ORIGINS",
            "http://localhost:3000,http://127.0.0.1:3000,http://localhost:19006",
        ).split(",")
        if origin.strip()
    ]
