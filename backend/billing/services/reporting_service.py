# Overview: Read-only sales and collection summaries over an optional date range.

"""
Reporting Service

Aggregates run through store.summarize(), so SQL does the grouping on the
relational backend and the document backend groups in Python. Both return
rounded Decimal sums; averages are computed here from sum / count.
"""

from __future__ import annotations

from decimal import Decimal

from ..money import ZERO, round2
from ..storage import BillingStore, KIND_SALES_BILLS, KIND_COLLECTION_BILLS
from .customer_service import customer_brief
from .query_params import date_range


TOP_CUSTOMER_LIMIT = 10


def _average(total: Decimal, count: int) -> Decimal:
    if not count:
        return ZERO
    return round2(total / count)


def _breakdown(rows: list[dict], key: str, amount_field: str) -> list[dict]:
    return [
        {key: row[key], "count": row["count"], "amount": row[amount_field]}
        for row in rows
    ]


def sales_summary(store: BillingStore, *, start_date=None, end_date=None) -> dict:
    """
    Bill totals for bill_date within [start_date, end_date].

    Returns:
        {
            "summary": {total_bills, total_sales, total_paid,
                        total_outstanding, average_bill_amount},
            "status_wise": [{payment_status, count, amount}, ...],
            "top_customers": [{customer, bill_count, total_amount}, ...],
        }
    """
    start, end = date_range(start_date, end_date)
    window = {"date_field": "bill_date", "date_from": start, "date_to": end}
    amounts = ("total_amount", "paid_amount", "balance_amount")

    totals = store.summarize(KIND_SALES_BILLS, sum_fields=amounts, **window)[0]
    status_rows = store.summarize(
        KIND_SALES_BILLS, sum_fields=("total_amount",), group_by="payment_status", **window
    )
    customer_rows = store.summarize(
        KIND_SALES_BILLS, sum_fields=("total_amount",), group_by="customer_id", **window
    )

    customer_rows.sort(key=lambda row: (-row["total_amount"], row["customer_id"]))
    cache: dict = {}
    top_customers = [
        {
            "customer": customer_brief(store, row["customer_id"], cache),
            "bill_count": row["count"],
            "total_amount": row["total_amount"],
        }
        for row in customer_rows[:TOP_CUSTOMER_LIMIT]
    ]

    return {
        "summary": {
            "total_bills": totals["count"],
            "total_sales": totals["total_amount"],
            "total_paid": totals["paid_amount"],
            "total_outstanding": totals["balance_amount"],
            "average_bill_amount": _average(totals["total_amount"], totals["count"]),
        },
        "status_wise": _breakdown(status_rows, "payment_status", "total_amount"),
        "top_customers": top_customers,
    }


def collection_summary(store: BillingStore, *, start_date=None, end_date=None) -> dict:
    """Collection totals for collection_date within [start_date, end_date]."""
    start, end = date_range(start_date, end_date)
    window = {"date_field": "collection_date", "date_from": start, "date_to": end}
    amounts = ("collection_amount",)

    totals = store.summarize(KIND_COLLECTION_BILLS, sum_fields=amounts, **window)[0]
    method_rows = store.summarize(
        KIND_COLLECTION_BILLS, sum_fields=amounts, group_by="payment_method", **window
    )
    status_rows = store.summarize(
        KIND_COLLECTION_BILLS, sum_fields=amounts, group_by="collection_status", **window
    )

    return {
        "summary": {
            "total_collections": totals["count"],
            "total_amount": totals["collection_amount"],
            "average_collection_amount": _average(totals["collection_amount"], totals["count"]),
        },
        "method_wise": _breakdown(method_rows, "payment_method", "collection_amount"),
        "status_wise": _breakdown(status_rows, "collection_status", "collection_amount"),
    }
