# Overview: Error taxonomy shared by services, storage adapters and routes.

"""
Billing error taxonomy.

Every error carries the HTTP status class the API layer should render:
- 400: malformed or missing input (ValidationError)
- 404: referenced customer/bill/collection absent (NotFoundError)
- 409: business-rule conflicts (balance, uniqueness, dependencies, stale rows)

Anything outside this hierarchy is an unexpected failure (500).
"""

from __future__ import annotations


class BillingError(Exception):
    """Base class for classified billing failures."""

    status_code = 500
    code = "billing_error"

    def __init__(self, message: str, *, details: list[str] | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or []

    def to_dict(self) -> dict:
        payload = {
            "success": False,
            "error": self.code,
            "message": self.message,
        }
        if self.details:
            payload["errors"] = list(self.details)
        return payload


class ValidationError(BillingError, ValueError):
    """400-level input problem."""

    status_code = 400
    code = "validation_error"


class NotFoundError(BillingError, LookupError):
    """404-level missing entity."""

    status_code = 404
    code = "not_found"

    def __init__(self, kind: str, entity_id, message: str | None = None):
        self.kind = kind
        self.entity_id = entity_id
        super().__init__(message or f"{_label(kind)} {entity_id} not found")


class ConflictError(BillingError):
    """409-level business rule conflict."""

    status_code = 409
    code = "conflict"


class ExceedsBalanceError(ConflictError):
    """Collection amount is larger than the bill's outstanding balance."""

    code = "exceeds_balance"


class ExceedsTotalError(ConflictError):
    """Updated collection amount would push paid above the bill total."""

    code = "exceeds_total"


class OverpaymentError(ConflictError):
    """Ledger mutation would leave a negative balance or negative paid amount."""

    code = "overpayment"


class UniqueConstraintError(ConflictError):
    """Duplicate bill/collection number, customer code or email."""

    code = "duplicate"


class DependencyExistsError(ConflictError):
    """Delete/replace rejected because dependent records still exist."""

    code = "dependency_exists"


class ConcurrencyError(ConflictError):
    """Row changed underneath a read-check-write sequence."""

    code = "concurrent_update"


_LABELS = {
    "customers": "Customer",
    "sales_bills": "Sales bill",
    "sales_bill_items": "Sales bill item",
    "collection_bills": "Collection bill",
}


def _label(kind: str) -> str:
    return _LABELS.get(kind, kind)
