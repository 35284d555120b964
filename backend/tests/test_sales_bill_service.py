# Overview: Pytest coverage for sales bill lifecycle (create, update, delete, queries).

from decimal import Decimal

import pytest

from billing.errors import DependencyExistsError, NotFoundError, UniqueConstraintError, ValidationError
from billing.services import collection_service, sales_bill_service
from billing.storage import KIND_SALES_BILL_ITEMS


TWO_LINES = [
    {"item_name": "Widget", "quantity": 2, "rate": 3000, "tax_rate": 18, "discount_rate": 5},
    {"item_name": "Gadget", "quantity": 1, "rate": 4000, "tax_rate": 18, "discount_rate": 5},
]


class TestCreateSalesBill:
    def test_create_prices_items_and_numbers_bill(self, store, customer):
        bill = sales_bill_service.create_sales_bill(store, {
            "customer_id": customer["id"],
            "bill_date": "2024-01-15",
            "due_date": "2024-02-14",
            "items": TWO_LINES,
        })

        assert bill["bill_number"] == "INV0001"
        assert bill["bill_status"] == "draft"
        assert bill["subtotal"] == Decimal("10000.00")
        assert bill["discount_amount"] == Decimal("500.00")
        assert bill["tax_amount"] == Decimal("1710.00")
        assert bill["total_amount"] == Decimal("11210.00")
        assert bill["paid_amount"] == Decimal("0.00")
        assert bill["balance_amount"] == Decimal("11210.00")
        assert bill["payment_status"] == "pending"
        assert [i["line_total"] for i in bill["items"]] == [Decimal("6726.00"), Decimal("4484.00")]
        assert bill["customer"]["name"] == "Acme Traders"
        assert bill["collections"] == []
        assert store.get("customers", customer["id"])["outstanding_balance"] == Decimal("11210.00")

    def test_ledger_fields_in_payload_rejected(self, store, customer):
        with pytest.raises(ValidationError) as exc:
            sales_bill_service.create_sales_bill(store, {
                "customer_id": customer["id"],
                "bill_date": "2024-01-15",
                "paid_amount": "100.00",
                "items": TWO_LINES,
            })
        assert "paid_amount" in exc.value.message

    def test_missing_customer(self, store):
        with pytest.raises(NotFoundError):
            sales_bill_service.create_sales_bill(store, {
                "customer_id": 4242,
                "bill_date": "2024-01-15",
                "items": TWO_LINES,
            })
        assert store.count(KIND_SALES_BILL_ITEMS) == 0

    def test_empty_items(self, store, customer):
        with pytest.raises(ValidationError):
            sales_bill_service.create_sales_bill(store, {
                "customer_id": customer["id"],
                "bill_date": "2024-01-15",
                "items": [],
            })

    def test_due_date_before_bill_date(self, store, customer):
        with pytest.raises(ValidationError):
            sales_bill_service.create_sales_bill(store, {
                "customer_id": customer["id"],
                "bill_date": "2024-01-15",
                "due_date": "2024-01-14",
                "items": TWO_LINES,
            })

    def test_duplicate_bill_number(self, store, customer, make_bill):
        make_bill(customer, "10.00", bill_number="INV0500")
        with pytest.raises(UniqueConstraintError):
            make_bill(customer, "10.00", bill_number="INV0500")
        assert make_bill(customer, "10.00")["bill_number"] == "INV0501"


class TestUpdateSalesBill:
    def test_header_patch_keeps_ledger(self, store, bill):
        updated = sales_bill_service.update_sales_bill(store, bill["id"], {
            "bill_status": "sent",
            "notes": "Net 30",
        })
        assert updated["bill_status"] == "sent"
        assert updated["notes"] == "Net 30"
        assert updated["total_amount"] == Decimal("11300.00")
        assert updated["version_id"] > bill["version_id"]

    def test_replace_items_reprices(self, store, customer, bill):
        updated = sales_bill_service.update_sales_bill(store, bill["id"], {"items": TWO_LINES})

        assert updated["total_amount"] == Decimal("11210.00")
        assert updated["balance_amount"] == Decimal("11210.00")
        assert len(updated["items"]) == 2
        assert store.count(KIND_SALES_BILL_ITEMS, sales_bill_id=bill["id"]) == 2
        assert store.get("customers", customer["id"])["outstanding_balance"] == Decimal("11210.00")

    def test_replace_items_blocked_after_collection(self, store, customer, bill):
        collection_service.create_collection(store, {
            "customer_id": customer["id"],
            "sales_bill_id": bill["id"],
            "collection_date": "2024-01-20",
            "collection_amount": "100.00",
        })

        with pytest.raises(DependencyExistsError):
            sales_bill_service.update_sales_bill(store, bill["id"], {"items": TWO_LINES})

        current = sales_bill_service.get_sales_bill(store, bill["id"])
        assert current["total_amount"] == Decimal("11300.00")
        assert current["paid_amount"] == Decimal("100.00")
        assert len(current["items"]) == 1
        assert len(current["collections"]) == 1

    def test_move_to_other_customer(self, store, customer, other_customer, bill):
        sales_bill_service.update_sales_bill(store, bill["id"], {"customer_id": other_customer["id"]})

        assert store.get("customers", customer["id"])["outstanding_balance"] == Decimal("0.00")
        assert store.get("customers", other_customer["id"])["outstanding_balance"] == Decimal("11300.00")

    def test_null_required_field_rejected(self, store, bill):
        with pytest.raises(ValidationError):
            sales_bill_service.update_sales_bill(store, bill["id"], {"bill_date": None})


class TestDeleteSalesBill:
    def test_delete_removes_items(self, store, customer, bill):
        sales_bill_service.delete_sales_bill(store, bill["id"])

        assert store.count(KIND_SALES_BILL_ITEMS) == 0
        with pytest.raises(NotFoundError):
            sales_bill_service.get_sales_bill(store, bill["id"])
        assert store.get("customers", customer["id"])["outstanding_balance"] == Decimal("0.00")

    def test_delete_blocked_by_collection(self, store, customer, bill):
        collection_service.create_collection(store, {
            "customer_id": customer["id"],
            "sales_bill_id": bill["id"],
            "collection_date": "2024-01-20",
            "collection_amount": "100.00",
        })

        with pytest.raises(DependencyExistsError) as exc:
            sales_bill_service.delete_sales_bill(store, bill["id"])

        assert exc.value.message == "Cannot delete sales bill with existing collections"
        assert store.count(KIND_SALES_BILL_ITEMS, sales_bill_id=bill["id"]) == 1


class TestSalesBillQueries:
    def test_filters(self, store, customer, other_customer, make_bill):
        first = make_bill(customer, "100.00", bill_date="2024-01-01")
        make_bill(customer, "200.00", bill_date="2024-02-01")
        make_bill(other_customer, "300.00", bill_date="2024-03-01")
        collection_service.create_collection(store, {
            "customer_id": customer["id"],
            "sales_bill_id": first["id"],
            "collection_date": "2024-01-05",
            "collection_amount": "100.00",
        })

        assert sales_bill_service.list_sales_bills(store).total == 3
        assert sales_bill_service.list_sales_bills(store, payment_status="paid").total == 1
        assert sales_bill_service.list_sales_bills(store, customer_id=customer["id"]).total == 2
        assert sales_bill_service.list_sales_bills(
            store, start_date="2024-01-01", end_date="2024-02-01"
        ).total == 2
        assert sales_bill_service.list_sales_bills(store, search="globex").total == 1
        assert sales_bill_service.list_sales_bills(store, search="inv0002").total == 1

    def test_invalid_filters(self, store):
        with pytest.raises(ValidationError):
            sales_bill_service.list_sales_bills(store, payment_status="lost")
        with pytest.raises(ValidationError):
            sales_bill_service.list_sales_bills(store, start_date="2024-02-01", end_date="2024-01-01")
        with pytest.raises(ValidationError):
            sales_bill_service.list_sales_bills(store, page="0")

    def test_limit_clamped(self, store, customer, make_bill):
        make_bill(customer, "1.00")
        page = sales_bill_service.list_sales_bills(store, limit=1000)
        assert page.limit == 100

    def test_next_number_preview(self, store, customer, make_bill):
        assert sales_bill_service.preview_next_bill_number(store) == "INV0001"
        make_bill(customer, "1.00")
        assert sales_bill_service.preview_next_bill_number(store) == "INV0002"

    def test_auto_numbers_continue_past_four_digits(self, store, customer, make_bill):
        make_bill(customer, "1.00", bill_number="INV9999")
        assert make_bill(customer, "1.00")["bill_number"] == "INV10000"
        assert make_bill(customer, "1.00")["bill_number"] == "INV10001"
        assert sales_bill_service.preview_next_bill_number(store) == "INV10002"
