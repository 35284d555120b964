# Overview: Service-layer operations for collection bills; couples collections to bill ledgers.

"""
Collection Reconciler

WHY: A collection linked to a sales bill moves money on that bill. Creating,
re-pricing, re-linking and deleting a collection must update the bill's
paid_amount / balance_amount / payment_status in the same transaction as the
collection row itself, or the two drift apart.

FLOW (every mutation):
1. Validate the payload outside the transaction
2. Open store.transaction()
3. Lock the bill (SELECT ... FOR UPDATE where supported)
4. Check the business rule against the locked state
5. Write collection + ledger (bill write carries the observed version_id)
6. Refresh the customer's outstanding balance
Any failure rolls all of it back. A stale bill version raises
ConcurrencyError and run_with_retry re-runs steps 2-6 on fresh state.

RULES:
- create:   collection_amount <= bill.balance_amount   (ExceedsBalanceError)
- update:   bill.paid_amount + delta <= bill.total      (ExceedsTotalError)
- relink:   old bill reversed by old amount, new bill charged new amount
            under the create rule
- delete:   bill reversed by the collection amount
"""

from __future__ import annotations

import logging

from ..errors import ExceedsBalanceError, ExceedsTotalError, ValidationError
from ..money import round2
from ..storage import (
    BillingStore,
    ListQuery,
    Page,
    KIND_CUSTOMERS,
    KIND_SALES_BILLS,
    KIND_COLLECTION_BILLS,
)
from ..validation import COLLECTION_STATUSES, PAYMENT_METHODS, validate_collection
from .concurrency import run_with_retry, run_with_unique_retry
from .customer_service import customer_brief, customer_ids_matching, get_customer_outstanding, refresh_customer_outstanding
from .ledger import BillLedger
from .numbering import next_stored_number
from .query_params import date_range, optional_id, page_params, setting


logger = logging.getLogger(__name__)


COLLECTION_SEARCH_FIELDS = ("collection_number", "reference_number")


def _lock_bill(store: BillingStore, bill_id: int) -> dict:
    return store.get(KIND_SALES_BILLS, bill_id, for_update=True)


def _write_ledger(store: BillingStore, bill: dict, ledger: BillLedger) -> dict:
    return store.update(
        KIND_SALES_BILLS,
        bill["id"],
        ledger.to_fields(),
        expected_version=bill["version_id"],
    )


def _charge_bill(store: BillingStore, bill: dict, customer_id: int, amount) -> None:
    """Apply a new collection amount to a locked bill (create rule)."""
    if bill["customer_id"] != customer_id:
        raise ValidationError("Sales bill does not belong to the selected customer")

    ledger = BillLedger.from_record(bill)
    if not ledger.can_accept(amount):
        raise ExceedsBalanceError(
            "Collection amount cannot exceed outstanding balance",
            details=[f"Outstanding balance is {ledger.balance_amount}"],
        )
    _write_ledger(store, bill, ledger.apply_payment(amount))


def _reverse_bill(store: BillingStore, bill: dict, amount) -> None:
    ledger = BillLedger.from_record(bill)
    _write_ledger(store, bill, ledger.reverse_payment(amount))


# =============================================================================
# COLLECTION CREATION
# =============================================================================

def create_collection(store: BillingStore, payload: dict) -> dict:
    """
    Record a collection and apply it to the linked bill.

    Returns:
        The stored collection with customer and bill embedded

    Raises:
        ValidationError: malformed payload, or bill belongs to another customer
        NotFoundError: customer or bill does not exist
        ExceedsBalanceError: amount larger than the bill's balance
        UniqueConstraintError: collection_number already used
        ConcurrencyError: bill kept changing underneath us
    """
    data = validate_collection(payload, partial=False)
    data.setdefault("payment_method", "cash")
    data.setdefault("collection_status", "pending")
    generate_number = not data.get("collection_number")

    def _op() -> int:
        record = dict(data)
        with store.transaction():
            store.get(KIND_CUSTOMERS, record["customer_id"])

            bill_id = record.get("sales_bill_id")
            if bill_id:
                bill = _lock_bill(store, bill_id)
                _charge_bill(store, bill, record["customer_id"], record["collection_amount"])

            if generate_number:
                record["collection_number"] = next_stored_number(
                    store, KIND_COLLECTION_BILLS, "collection_number", setting("COLLECTION_NUMBER_PREFIX")
                )
            collection_id = store.create(KIND_COLLECTION_BILLS, record)
            refresh_customer_outstanding(store, record["customer_id"])

        logger.info(
            "Recorded collection %s of %s against bill %s",
            record["collection_number"], record["collection_amount"], bill_id,
        )
        return collection_id

    collection_id = run_with_retry(
        lambda: run_with_unique_retry(_op, attempts=3 if generate_number else 1)
    )
    return get_collection(store, collection_id)


# =============================================================================
# COLLECTION QUERIES
# =============================================================================

def get_collection(store: BillingStore, collection_id: int) -> dict:
    collection = store.get(KIND_COLLECTION_BILLS, collection_id)
    collection["customer"] = customer_brief(store, collection["customer_id"])
    collection["sales_bill"] = _bill_brief(store, collection["sales_bill_id"])
    return collection


def _bill_brief(store: BillingStore, bill_id: int | None, cache: dict | None = None) -> dict | None:
    if bill_id is None:
        return None
    if cache is not None and bill_id in cache:
        return cache[bill_id]

    matches = store.find(KIND_SALES_BILLS, id=bill_id)
    brief = None
    if matches:
        bill = matches[0]
        brief = {
            "id": bill["id"],
            "bill_number": bill["bill_number"],
            "bill_date": bill["bill_date"],
            "total_amount": bill["total_amount"],
            "paid_amount": bill["paid_amount"],
            "balance_amount": bill["balance_amount"],
            "payment_status": bill["payment_status"],
        }
    if cache is not None:
        cache[bill_id] = brief
    return brief


def _bill_ids_matching(store: BillingStore, term: str) -> list[int]:
    query = ListQuery(
        page=1,
        limit=500,
        search=term,
        search_fields=("bill_number",),
        sort_field="id",
        descending=False,
    )
    return [bill["id"] for bill in store.list(KIND_SALES_BILLS, query).items]


def list_collections(
    store: BillingStore,
    *,
    page=None,
    limit=None,
    search: str | None = None,
    collection_status: str | None = None,
    payment_method: str | None = None,
    customer_id=None,
    sales_bill_id=None,
    start_date=None,
    end_date=None,
) -> Page:
    """
    Paginated collections, newest first.

    search matches collection_number, reference_number, customer name or
    bill number. Date range applies to collection_date.
    """
    page, limit = page_params(page, limit)
    query = ListQuery(page=page, limit=limit)

    if collection_status:
        if collection_status not in COLLECTION_STATUSES:
            raise ValidationError(f"status must be one of {', '.join(COLLECTION_STATUSES)}")
        query.equals["collection_status"] = collection_status
    if payment_method:
        if payment_method not in PAYMENT_METHODS:
            raise ValidationError(f"payment_method must be one of {', '.join(PAYMENT_METHODS)}")
        query.equals["payment_method"] = payment_method

    customer_id = optional_id(customer_id, "customer_id")
    if customer_id:
        query.equals["customer_id"] = customer_id
    sales_bill_id = optional_id(sales_bill_id, "sales_bill_id")
    if sales_bill_id:
        query.equals["sales_bill_id"] = sales_bill_id

    start, end = date_range(start_date, end_date)
    if start or end:
        query.date_field = "collection_date"
        query.date_from, query.date_to = start, end

    if search:
        term = search.strip()
        query.search = term
        query.search_fields = COLLECTION_SEARCH_FIELDS
        query.search_in = {
            "customer_id": customer_ids_matching(store, term),
            "sales_bill_id": _bill_ids_matching(store, term),
        }

    result = store.list(KIND_COLLECTION_BILLS, query)
    customers: dict = {}
    bills: dict = {}
    for collection in result.items:
        collection["customer"] = customer_brief(store, collection["customer_id"], customers)
        collection["sales_bill"] = _bill_brief(store, collection["sales_bill_id"], bills)
    return result


def outstanding_bills_for_collection(store: BillingStore, customer_id: int) -> dict:
    """Open bills a new collection for this customer can be applied to."""
    return get_customer_outstanding(store, customer_id)


def preview_next_collection_number(store: BillingStore) -> str:
    return next_stored_number(
        store, KIND_COLLECTION_BILLS, "collection_number", setting("COLLECTION_NUMBER_PREFIX")
    )


# =============================================================================
# COLLECTION UPDATES
# =============================================================================

def update_collection(store: BillingStore, collection_id: int, payload: dict) -> dict:
    """
    Patch a collection and move the ledger accordingly.

    Same bill:   delta = new - old is applied (ExceedsTotalError if paid would
                 pass the total).
    Other bill:  old bill reversed by the old amount, new bill charged the
                 new amount (ExceedsBalanceError if it does not fit).
    """
    data = validate_collection(payload, partial=True)
    for field in ("customer_id", "collection_date", "payment_method", "collection_status"):
        if field in data and data[field] is None:
            raise ValidationError(f"{field} cannot be null")
    if "collection_number" in data and not data["collection_number"]:
        raise ValidationError("collection_number cannot be blank")

    def _op() -> None:
        with store.transaction():
            current = store.get(KIND_COLLECTION_BILLS, collection_id, for_update=True)

            old_amount = current["collection_amount"]
            new_amount = data.get("collection_amount", old_amount)
            old_bill_id = current["sales_bill_id"]
            new_bill_id = data.get("sales_bill_id", old_bill_id)
            old_customer_id = current["customer_id"]
            new_customer_id = data.get("customer_id", old_customer_id)

            if new_customer_id != old_customer_id:
                store.get(KIND_CUSTOMERS, new_customer_id)

            if new_bill_id == old_bill_id:
                if new_bill_id:
                    bill = _lock_bill(store, new_bill_id)
                    if bill["customer_id"] != new_customer_id:
                        raise ValidationError("Sales bill does not belong to the selected customer")
                    delta = round2(new_amount - old_amount)
                    if delta != 0:
                        ledger = BillLedger.from_record(bill)
                        if ledger.total_amount - (ledger.paid_amount + delta) < 0:
                            raise ExceedsTotalError(
                                "Updated collection amount would exceed total bill amount"
                            )
                        _write_ledger(store, bill, ledger.apply_payment(delta))
            else:
                if old_bill_id:
                    _reverse_bill(store, _lock_bill(store, old_bill_id), old_amount)
                if new_bill_id:
                    _charge_bill(store, _lock_bill(store, new_bill_id), new_customer_id, new_amount)
                logger.info(
                    "Collection %s moved from bill %s to bill %s",
                    current["collection_number"], old_bill_id, new_bill_id,
                )

            store.update(KIND_COLLECTION_BILLS, collection_id, data, expected_version=current["version_id"])

            refresh_customer_outstanding(store, new_customer_id)
            if new_customer_id != old_customer_id:
                refresh_customer_outstanding(store, old_customer_id)

    run_with_retry(_op)
    return get_collection(store, collection_id)


def delete_collection(store: BillingStore, collection_id: int) -> None:
    """
    Delete a collection and reverse its effect on the linked bill.

    Raises:
        NotFoundError: unknown collection
    """
    def _op() -> dict:
        with store.transaction():
            collection = store.get(KIND_COLLECTION_BILLS, collection_id, for_update=True)

            bill_id = collection["sales_bill_id"]
            if bill_id:
                _reverse_bill(store, _lock_bill(store, bill_id), collection["collection_amount"])

            store.delete(KIND_COLLECTION_BILLS, collection_id)
            refresh_customer_outstanding(store, collection["customer_id"])
            return collection

    collection = run_with_retry(_op)
    logger.info(
        "Deleted collection %s (%s reversed on bill %s)",
        collection["collection_number"], collection["collection_amount"], collection["sales_bill_id"],
    )
