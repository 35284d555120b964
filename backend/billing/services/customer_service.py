# Overview: Service-layer operations for customers; encapsulates business logic and storage work.

"""
Customer Service

WHY: Customers are referenced by bills and collections but never own them.
Deletion is refused while anything still references the customer; cleanup is
the caller's explicit job.

OUTSTANDING BALANCE: customers.outstanding_balance is derived (sum of the
customer's bill balances). refresh_customer_outstanding() recomputes it and
is called inside the same transaction as every bill or collection write, so
the stored aggregate never lags a committed ledger change.
"""

from __future__ import annotations

from decimal import Decimal

from ..errors import DependencyExistsError, ValidationError
from ..money import ZERO, round2
from ..storage import (
    BillingStore,
    ListQuery,
    Page,
    KIND_CUSTOMERS,
    KIND_SALES_BILLS,
    KIND_COLLECTION_BILLS,
)
from ..time_utils import today
from ..validation import CUSTOMER_STATUSES, validate_customer
from .concurrency import run_with_retry, run_with_unique_retry
from .numbering import next_stored_number
from .query_params import page_params, setting


CUSTOMER_SEARCH_FIELDS = ("name", "customer_code", "email", "phone")
RECENT_ACTIVITY_LIMIT = 5
# Upper bound on related-id expansion when searching other kinds by customer name
SEARCH_EXPANSION_LIMIT = 500


# =============================================================================
# CUSTOMER CRUD
# =============================================================================

def create_customer(store: BillingStore, payload: dict) -> dict:
    """
    Create a customer.

    customer_code is generated (CUST0001, CUST0002, ...) when omitted.
    outstanding_balance always starts at zero.

    Raises:
        ValidationError: malformed payload
        UniqueConstraintError: customer_code or email already used
    """
    data = validate_customer(payload, partial=False)
    data.setdefault("status", "active")
    if data.get("credit_limit") is None:
        data["credit_limit"] = ZERO
    generate_code = not data.get("customer_code")

    def _op() -> int:
        record = dict(data, outstanding_balance=ZERO)
        if generate_code:
            record["customer_code"] = next_stored_number(
                store, KIND_CUSTOMERS, "customer_code", setting("CUSTOMER_CODE_PREFIX")
            )
        with store.transaction():
            return store.create(KIND_CUSTOMERS, record)

    customer_id = run_with_unique_retry(_op, attempts=3 if generate_code else 1)
    return store.get(KIND_CUSTOMERS, customer_id)


def get_customer(store: BillingStore, customer_id: int) -> dict:
    """Customer with the five most recent sales bills and collections."""
    customer = store.get(KIND_CUSTOMERS, customer_id)
    recent = ListQuery(page=1, limit=RECENT_ACTIVITY_LIMIT, equals={"customer_id": customer_id})
    customer["sales_bills"] = store.list(KIND_SALES_BILLS, recent).items
    customer["collection_bills"] = store.list(KIND_COLLECTION_BILLS, recent).items
    return customer


def list_customers(
    store: BillingStore,
    *,
    page=None,
    limit=None,
    search: str | None = None,
    status: str | None = None,
) -> Page:
    page, limit = page_params(page, limit)
    query = ListQuery(page=page, limit=limit)

    if status:
        if status not in CUSTOMER_STATUSES:
            raise ValidationError(f"status must be one of {', '.join(CUSTOMER_STATUSES)}")
        query.equals["status"] = status

    if search:
        query.search = search.strip()
        query.search_fields = CUSTOMER_SEARCH_FIELDS

    return store.list(KIND_CUSTOMERS, query)


def update_customer(store: BillingStore, customer_id: int, payload: dict) -> dict:
    data = validate_customer(payload, partial=True)
    if "credit_limit" in data and data["credit_limit"] is None:
        raise ValidationError("credit_limit cannot be null")
    if "customer_code" in data and not data["customer_code"]:
        raise ValidationError("customer_code cannot be blank")

    def _op() -> dict:
        with store.transaction():
            current = store.get(KIND_CUSTOMERS, customer_id, for_update=True)
            return store.update(KIND_CUSTOMERS, customer_id, data, expected_version=current["version_id"])

    return run_with_retry(_op)


def delete_customer(store: BillingStore, customer_id: int) -> None:
    """
    Delete a customer with no bills and no collections.

    Raises:
        NotFoundError: unknown customer
        DependencyExistsError: sales bills or collections still reference it
    """
    with store.transaction():
        store.get(KIND_CUSTOMERS, customer_id, for_update=True)

        if store.count(KIND_SALES_BILLS, customer_id=customer_id):
            raise DependencyExistsError("Cannot delete customer with existing sales bills")
        if store.count(KIND_COLLECTION_BILLS, customer_id=customer_id):
            raise DependencyExistsError("Cannot delete customer with existing collection bills")

        store.delete(KIND_CUSTOMERS, customer_id)


# =============================================================================
# OUTSTANDING BALANCES
# =============================================================================

def refresh_customer_outstanding(store: BillingStore, customer_id: int) -> Decimal:
    """Recompute customers.outstanding_balance from the customer's bills."""
    bills = store.find(KIND_SALES_BILLS, customer_id=customer_id)
    total = round2(sum((bill["balance_amount"] for bill in bills), ZERO))
    customer = store.get(KIND_CUSTOMERS, customer_id)
    if customer["outstanding_balance"] != total:
        store.update(KIND_CUSTOMERS, customer_id, {"outstanding_balance": total})
    return total


def get_customer_outstanding(store: BillingStore, customer_id: int, *, as_of=None) -> dict:
    """
    Unpaid bills for a customer, oldest first.

    overdue_amount counts bills whose due date is before as_of (default today).
    """
    customer = store.get(KIND_CUSTOMERS, customer_id)
    as_of = as_of or today()

    bills = [
        bill for bill in store.find(KIND_SALES_BILLS, customer_id=customer_id)
        if bill["balance_amount"] > 0
    ]
    bills.sort(key=lambda bill: (bill["bill_date"], bill["id"]))

    total_outstanding = round2(sum((bill["balance_amount"] for bill in bills), ZERO))
    overdue_amount = round2(sum(
        (bill["balance_amount"] for bill in bills if bill["due_date"] and bill["due_date"] < as_of),
        ZERO,
    ))
    credit_limit = customer["credit_limit"] or ZERO

    return {
        "customer_id": customer["id"],
        "customer_name": customer["name"],
        "customer_code": customer["customer_code"],
        "total_outstanding": total_outstanding,
        "overdue_amount": overdue_amount,
        "outstanding_bills_count": len(bills),
        "credit_limit": credit_limit,
        "available_credit": round2(credit_limit - total_outstanding),
        "outstanding_bills": bills,
    }


# =============================================================================
# HELPERS FOR OTHER SERVICES
# =============================================================================

def customer_brief(store: BillingStore, customer_id: int | None, cache: dict | None = None) -> dict | None:
    """{id, name, customer_code} for embedding in bill/collection responses."""
    if customer_id is None:
        return None
    if cache is not None and customer_id in cache:
        return cache[customer_id]

    matches = store.find(KIND_CUSTOMERS, id=customer_id)
    brief = None
    if matches:
        customer = matches[0]
        brief = {"id": customer["id"], "name": customer["name"], "customer_code": customer["customer_code"]}
    if cache is not None:
        cache[customer_id] = brief
    return brief


def customer_ids_matching(store: BillingStore, term: str) -> list[int]:
    """Ids of customers whose name contains term (case-insensitive)."""
    query = ListQuery(
        page=1,
        limit=SEARCH_EXPANSION_LIMIT,
        search=term,
        search_fields=("name",),
        sort_field="id",
        descending=False,
    )
    return [customer["id"] for customer in store.list(KIND_CUSTOMERS, query).items]
