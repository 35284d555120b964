# Overview: Service-layer operations for sales bills; encapsulates business logic and storage work.

"""
Sales Bill Service

WHY: A bill and its line items are one document. They are priced together by
the line-item calculator and written together in one transaction; items are
only ever replaced as a whole.

RULES:
- A bill needs at least one item and an existing customer
- bill_number is generated (INV0001, ...) when omitted
- Items cannot be replaced, and the bill cannot be deleted or moved to another
  customer, while any collection references it (DependencyExistsError)
- Ledger fields (paid/balance/payment_status) are never client-writable
"""

from __future__ import annotations

import logging

from ..errors import DependencyExistsError, ValidationError
from ..storage import (
    BillingStore,
    ListQuery,
    Page,
    KIND_CUSTOMERS,
    KIND_SALES_BILLS,
    KIND_SALES_BILL_ITEMS,
    KIND_COLLECTION_BILLS,
)
from ..validation import BILL_STATUSES, PAYMENT_STATUSES, validate_sales_bill
from .concurrency import run_with_retry, run_with_unique_retry
from .customer_service import customer_brief, customer_ids_matching, refresh_customer_outstanding
from .ledger import BillLedger
from .line_items import BillTotals, calculate_bill_totals
from .numbering import next_stored_number
from .query_params import date_range, optional_id, page_params, setting


logger = logging.getLogger(__name__)


def _split_items(payload) -> tuple[dict, object, bool]:
    if payload is None:
        payload = {}
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")
    header = dict(payload)
    has_items = "items" in header
    items = header.pop("items", None)
    return header, items, has_items


def _check_dates(bill_date, due_date) -> None:
    if bill_date and due_date and due_date < bill_date:
        raise ValidationError("due_date cannot be before bill_date")


def _priced_fields(totals: BillTotals) -> dict:
    ledger = BillLedger.for_new_bill(totals.total_amount)
    fields = totals.ledger_fields()
    fields["payment_status"] = ledger.payment_status
    return fields


def _insert_items(store: BillingStore, bill_id: int, totals: BillTotals) -> None:
    for item in totals.items:
        store.create(KIND_SALES_BILL_ITEMS, dict(item.to_record(), sales_bill_id=bill_id))


# =============================================================================
# BILL CREATION
# =============================================================================

def create_sales_bill(store: BillingStore, payload: dict) -> dict:
    """
    Price the items and create the bill with them atomically.

    Returns:
        The stored bill with customer, items and collections embedded

    Raises:
        ValidationError: malformed header or items
        NotFoundError: customer does not exist
        UniqueConstraintError: bill_number already used
    """
    header_payload, items, _ = _split_items(payload)
    header = validate_sales_bill(header_payload, partial=False)
    totals = calculate_bill_totals(items)
    _check_dates(header.get("bill_date"), header.get("due_date"))

    header.setdefault("bill_status", "draft")
    generate_number = not header.get("bill_number")

    def _op() -> int:
        record = dict(header, **_priced_fields(totals))
        with store.transaction():
            store.get(KIND_CUSTOMERS, record["customer_id"])
            if generate_number:
                record["bill_number"] = next_stored_number(
                    store, KIND_SALES_BILLS, "bill_number", setting("BILL_NUMBER_PREFIX")
                )
            bill_id = store.create(KIND_SALES_BILLS, record)
            _insert_items(store, bill_id, totals)
            refresh_customer_outstanding(store, record["customer_id"])
        logger.info("Created sales bill %s (total %s)", record["bill_number"], record["total_amount"])
        return bill_id

    bill_id = run_with_unique_retry(_op, attempts=3 if generate_number else 1)
    return get_sales_bill(store, bill_id)


# =============================================================================
# BILL QUERIES
# =============================================================================

def get_sales_bill(store: BillingStore, bill_id: int) -> dict:
    bill = store.get(KIND_SALES_BILLS, bill_id)
    bill["customer"] = customer_brief(store, bill["customer_id"])
    bill["items"] = store.find(KIND_SALES_BILL_ITEMS, sales_bill_id=bill_id)
    bill["collections"] = store.find(KIND_COLLECTION_BILLS, sales_bill_id=bill_id)
    return bill


def list_sales_bills(
    store: BillingStore,
    *,
    page=None,
    limit=None,
    search: str | None = None,
    bill_status: str | None = None,
    payment_status: str | None = None,
    customer_id=None,
    start_date=None,
    end_date=None,
) -> Page:
    """
    Paginated bills, newest first.

    search matches bill_number or customer name. Date range applies to
    bill_date, inclusive on both ends.
    """
    page, limit = page_params(page, limit)
    query = ListQuery(page=page, limit=limit)

    if bill_status:
        if bill_status not in BILL_STATUSES:
            raise ValidationError(f"status must be one of {', '.join(BILL_STATUSES)}")
        query.equals["bill_status"] = bill_status
    if payment_status:
        if payment_status not in PAYMENT_STATUSES:
            raise ValidationError(f"payment_status must be one of {', '.join(PAYMENT_STATUSES)}")
        query.equals["payment_status"] = payment_status

    customer_id = optional_id(customer_id, "customer_id")
    if customer_id:
        query.equals["customer_id"] = customer_id

    start, end = date_range(start_date, end_date)
    if start or end:
        query.date_field = "bill_date"
        query.date_from, query.date_to = start, end

    if search:
        term = search.strip()
        query.search = term
        query.search_fields = ("bill_number",)
        query.search_in = {"customer_id": customer_ids_matching(store, term)}

    result = store.list(KIND_SALES_BILLS, query)
    cache: dict = {}
    for bill in result.items:
        bill["customer"] = customer_brief(store, bill["customer_id"], cache)
    return result


# =============================================================================
# BILL UPDATES
# =============================================================================

def update_sales_bill(store: BillingStore, bill_id: int, payload: dict) -> dict:
    """
    Patch header fields and optionally replace all items.

    Replacing items re-prices the bill and resets its ledger; it is only
    allowed while no collection references the bill (so paid_amount is 0).
    """
    header_payload, items, has_items = _split_items(payload)
    header = validate_sales_bill(header_payload, partial=True)
    for field in ("customer_id", "bill_date", "bill_number", "bill_status"):
        if field in header and header[field] is None:
            raise ValidationError(f"{field} cannot be null")
    totals = calculate_bill_totals(items) if has_items else None

    def _op() -> None:
        with store.transaction():
            bill = store.get(KIND_SALES_BILLS, bill_id, for_update=True)
            has_collections = store.count(KIND_COLLECTION_BILLS, sales_bill_id=bill_id) > 0

            old_customer_id = bill["customer_id"]
            new_customer_id = header.get("customer_id", old_customer_id)
            if new_customer_id != old_customer_id:
                store.get(KIND_CUSTOMERS, new_customer_id)
                if has_collections:
                    raise DependencyExistsError(
                        "Cannot move a sales bill with existing collections to another customer"
                    )

            _check_dates(header.get("bill_date", bill["bill_date"]), header.get("due_date", bill["due_date"]))

            patch = dict(header)
            if totals is not None:
                if has_collections:
                    raise DependencyExistsError("Cannot replace items of a sales bill with existing collections")
                patch.update(_priced_fields(totals))
                store.delete_where(KIND_SALES_BILL_ITEMS, sales_bill_id=bill_id)
                _insert_items(store, bill_id, totals)

            store.update(KIND_SALES_BILLS, bill_id, patch, expected_version=bill["version_id"])

            refresh_customer_outstanding(store, new_customer_id)
            if new_customer_id != old_customer_id:
                refresh_customer_outstanding(store, old_customer_id)

    run_with_retry(_op)
    return get_sales_bill(store, bill_id)


def delete_sales_bill(store: BillingStore, bill_id: int) -> None:
    """
    Delete a bill and its items.

    Raises:
        NotFoundError: unknown bill
        DependencyExistsError: collections still reference the bill
    """
    with store.transaction():
        bill = store.get(KIND_SALES_BILLS, bill_id, for_update=True)

        if store.count(KIND_COLLECTION_BILLS, sales_bill_id=bill_id):
            raise DependencyExistsError("Cannot delete sales bill with existing collections")

        store.delete_where(KIND_SALES_BILL_ITEMS, sales_bill_id=bill_id)
        store.delete(KIND_SALES_BILLS, bill_id)
        refresh_customer_outstanding(store, bill["customer_id"])

    logger.info("Deleted sales bill %s", bill["bill_number"])


def preview_next_bill_number(store: BillingStore) -> str:
    return next_stored_number(store, KIND_SALES_BILLS, "bill_number", setting("BILL_NUMBER_PREFIX"))
