# Overview: Pytest coverage for sales and collection summaries.

from decimal import Decimal

import pytest

from billing.errors import ValidationError
from billing.services import collection_service, reporting_service


@pytest.fixture
def activity(store, customer, other_customer, make_bill):
    """Three bills (one paid, one partial, one pending) and two collections."""
    paid = make_bill(customer, "1000.00", bill_date="2024-01-05")
    partial = make_bill(customer, "3000.00", bill_date="2024-01-20")
    make_bill(other_customer, "500.00", bill_date="2024-02-10")

    collection_service.create_collection(store, {
        "customer_id": customer["id"],
        "sales_bill_id": paid["id"],
        "collection_date": "2024-01-06",
        "collection_amount": "1000.00",
        "payment_method": "cash",
        "collection_status": "cleared",
    })
    collection_service.create_collection(store, {
        "customer_id": customer["id"],
        "sales_bill_id": partial["id"],
        "collection_date": "2024-02-01",
        "collection_amount": "1200.00",
        "payment_method": "upi",
    })


class TestSalesSummary:
    def test_totals_and_breakdowns(self, store, customer, other_customer, activity):
        report = reporting_service.sales_summary(store)

        summary = report["summary"]
        assert summary["total_bills"] == 3
        assert summary["total_sales"] == Decimal("4500.00")
        assert summary["total_paid"] == Decimal("2200.00")
        assert summary["total_outstanding"] == Decimal("2300.00")
        assert summary["average_bill_amount"] == Decimal("1500.00")

        by_status = {row["payment_status"]: row for row in report["status_wise"]}
        assert by_status["paid"]["count"] == 1
        assert by_status["partial"]["amount"] == Decimal("3000.00")
        assert by_status["pending"]["amount"] == Decimal("500.00")

        top = report["top_customers"]
        assert [row["customer"]["id"] for row in top] == [customer["id"], other_customer["id"]]
        assert top[0]["bill_count"] == 2
        assert top[0]["total_amount"] == Decimal("4000.00")

    def test_date_window(self, store, activity):
        report = reporting_service.sales_summary(store, start_date="2024-01-01", end_date="2024-01-31")
        assert report["summary"]["total_bills"] == 2
        assert report["summary"]["total_sales"] == Decimal("4000.00")

    def test_empty_store(self, store):
        report = reporting_service.sales_summary(store)
        assert report["summary"]["total_bills"] == 0
        assert report["summary"]["total_sales"] == Decimal("0.00")
        assert report["summary"]["average_bill_amount"] == Decimal("0.00")
        assert report["status_wise"] == []
        assert report["top_customers"] == []

    def test_bad_range(self, store):
        with pytest.raises(ValidationError):
            reporting_service.sales_summary(store, start_date="2024-03-01", end_date="2024-01-01")


class TestCollectionSummary:
    def test_totals_and_breakdowns(self, store, activity):
        report = reporting_service.collection_summary(store)

        assert report["summary"]["total_collections"] == 2
        assert report["summary"]["total_amount"] == Decimal("2200.00")
        assert report["summary"]["average_collection_amount"] == Decimal("1100.00")

        by_method = {row["payment_method"]: row for row in report["method_wise"]}
        assert by_method["cash"]["amount"] == Decimal("1000.00")
        assert by_method["upi"]["count"] == 1

        by_status = {row["collection_status"]: row["count"] for row in report["status_wise"]}
        assert by_status == {"cleared": 1, "pending": 1}

    def test_date_window(self, store, activity):
        report = reporting_service.collection_summary(store, start_date="2024-02-01")
        assert report["summary"]["total_collections"] == 1
        assert report["summary"]["total_amount"] == Decimal("1200.00")
