# Overview: Storage adapters behind the billing storage contract.

from __future__ import annotations

from .base import (
    BillingStore,
    ListQuery,
    Page,
    KINDS,
    KIND_CUSTOMERS,
    KIND_SALES_BILLS,
    KIND_SALES_BILL_ITEMS,
    KIND_COLLECTION_BILLS,
    identifier_order,
)
from .document import DocumentStore
from .sql import SqlAlchemyStore


STORAGE_BACKENDS = ("sql", "document")


def build_store(app, db) -> BillingStore:
    """Construct the store named by BILLING_STORAGE for this app."""
    backend = (app.config.get("BILLING_STORAGE") or "sql").lower()
    if backend == "sql":
        return SqlAlchemyStore(db, app)
    if backend == "document":
        from ..models import RECORD_FIELDS
        return DocumentStore(fields=RECORD_FIELDS)
    raise ValueError(f"Unknown BILLING_STORAGE '{backend}'. Must be one of {STORAGE_BACKENDS}")


__all__ = [
    "BillingStore", "ListQuery", "Page", "KINDS",
    "KIND_CUSTOMERS", "KIND_SALES_BILLS", "KIND_SALES_BILL_ITEMS", "KIND_COLLECTION_BILLS",
    "identifier_order", "DocumentStore", "SqlAlchemyStore", "build_store", "STORAGE_BACKENDS",
]
