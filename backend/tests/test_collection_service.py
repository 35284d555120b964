# Overview: Pytest coverage for collection reconciliation against bill ledgers.

"""
Collection Reconciler Tests

Runs against both storage backends. Each test checks the bill ledger and the
customer's outstanding balance after the collection mutation, since both must
move in the same transaction as the collection row.
"""

import threading
from decimal import Decimal

import pytest

from billing.errors import (
    ConcurrencyError,
    ExceedsBalanceError,
    ExceedsTotalError,
    NotFoundError,
    UniqueConstraintError,
    ValidationError,
)
from billing.services import collection_service, customer_service, sales_bill_service
from billing.storage import KIND_COLLECTION_BILLS, KIND_SALES_BILLS


def _collect(store, customer, bill, amount, **extra):
    payload = {
        "customer_id": customer["id"],
        "sales_bill_id": bill["id"] if bill else None,
        "collection_date": "2024-01-20",
        "collection_amount": amount,
    }
    payload.update(extra)
    return collection_service.create_collection(store, payload)


def _ledger(store, bill):
    current = store.get(KIND_SALES_BILLS, bill["id"])
    return current["paid_amount"], current["balance_amount"], current["payment_status"]


class TestCreateCollection:
    def test_partial_collection_then_delete_restores_bill(self, store, customer, bill):
        collection = _collect(store, customer, bill, "5000.00")

        assert collection["collection_number"] == "COL0001"
        assert collection["collection_amount"] == Decimal("5000.00")
        assert collection["payment_method"] == "cash"
        assert collection["sales_bill"]["bill_number"] == bill["bill_number"]
        assert _ledger(store, bill) == (Decimal("5000.00"), Decimal("6300.00"), "partial")
        assert store.get("customers", customer["id"])["outstanding_balance"] == Decimal("6300.00")

        collection_service.delete_collection(store, collection["id"])

        assert _ledger(store, bill) == (Decimal("0.00"), Decimal("11300.00"), "pending")
        assert store.count(KIND_COLLECTION_BILLS) == 0
        assert store.get("customers", customer["id"])["outstanding_balance"] == Decimal("11300.00")

    def test_exact_balance_marks_bill_paid(self, store, customer, bill):
        _collect(store, customer, bill, "11300.00")
        assert _ledger(store, bill) == (Decimal("11300.00"), Decimal("0.00"), "paid")

    def test_amount_above_balance_rejected_and_bill_untouched(self, store, customer, bill):
        with pytest.raises(ExceedsBalanceError) as exc:
            _collect(store, customer, bill, "12000.00")

        assert exc.value.message == "Collection amount cannot exceed outstanding balance"
        assert _ledger(store, bill) == (Decimal("0.00"), Decimal("11300.00"), "pending")
        assert store.count(KIND_COLLECTION_BILLS) == 0

    def test_second_collection_checks_remaining_balance(self, store, customer, bill):
        _collect(store, customer, bill, "10000.00")
        with pytest.raises(ExceedsBalanceError):
            _collect(store, customer, bill, "1300.01")
        _collect(store, customer, bill, "1300.00")
        assert _ledger(store, bill)[2] == "paid"

    def test_unlinked_collection_leaves_bills_alone(self, store, customer, bill):
        collection = _collect(store, customer, None, "250.00", payment_method="upi")
        assert collection["sales_bill"] is None
        assert _ledger(store, bill) == (Decimal("0.00"), Decimal("11300.00"), "pending")

    def test_bill_of_another_customer_rejected(self, store, customer, other_customer, bill):
        with pytest.raises(ValidationError):
            _collect(store, other_customer, bill, "100.00")
        assert _ledger(store, bill)[0] == Decimal("0.00")

    def test_missing_customer_or_bill(self, store, customer):
        with pytest.raises(NotFoundError):
            _collect(store, {"id": 999}, None, "100.00")
        with pytest.raises(NotFoundError):
            _collect(store, customer, {"id": 999}, "100.00")

    @pytest.mark.parametrize("amount", ["0", "0.00", "0.005", "-5", "abc", "1e40"])
    def test_invalid_amount(self, store, customer, bill, amount):
        with pytest.raises(ValidationError):
            _collect(store, customer, bill, amount)

    def test_duplicate_collection_number(self, store, customer, bill):
        _collect(store, customer, bill, "10.00", collection_number="COL0100")
        with pytest.raises(UniqueConstraintError):
            _collect(store, customer, bill, "10.00", collection_number="COL0100")
        assert _ledger(store, bill)[0] == Decimal("10.00")

    def test_generated_numbers_follow_highest(self, store, customer, bill):
        _collect(store, customer, bill, "10.00", collection_number="COL0007")
        second = _collect(store, customer, bill, "10.00")
        assert second["collection_number"] == "COL0008"
        assert collection_service.preview_next_collection_number(store) == "COL0009"


class TestUpdateCollection:
    def test_amount_change_moves_ledger_by_delta(self, store, customer, bill):
        collection = _collect(store, customer, bill, "5000.00")

        updated = collection_service.update_collection(
            store, collection["id"], {"collection_amount": "7000.00"}
        )

        assert updated["collection_amount"] == Decimal("7000.00")
        assert _ledger(store, bill) == (Decimal("7000.00"), Decimal("4300.00"), "partial")

    def test_amount_above_total_rejected(self, store, customer, bill):
        collection = _collect(store, customer, bill, "5000.00")

        with pytest.raises(ExceedsTotalError) as exc:
            collection_service.update_collection(store, collection["id"], {"collection_amount": "12000.00"})

        assert exc.value.message == "Updated collection amount would exceed total bill amount"
        assert _ledger(store, bill) == (Decimal("5000.00"), Decimal("6300.00"), "partial")
        assert store.get(KIND_COLLECTION_BILLS, collection["id"])["collection_amount"] == Decimal("5000.00")

    def test_lowering_amount_returns_balance(self, store, customer, bill):
        collection = _collect(store, customer, bill, "11300.00")
        collection_service.update_collection(store, collection["id"], {"collection_amount": "300.00"})
        assert _ledger(store, bill) == (Decimal("300.00"), Decimal("11000.00"), "partial")

    def test_non_amount_fields_do_not_touch_ledger(self, store, customer, bill):
        collection = _collect(store, customer, bill, "5000.00")
        updated = collection_service.update_collection(
            store, collection["id"], {"reference_number": "UTR-1", "collection_status": "cleared"}
        )
        assert updated["reference_number"] == "UTR-1"
        assert updated["collection_status"] == "cleared"
        assert _ledger(store, bill)[0] == Decimal("5000.00")

    def test_relink_reverses_old_bill_and_charges_new(self, store, customer, bill, make_bill):
        second = make_bill(customer, "1000.00")
        collection = _collect(store, customer, bill, "500.00")

        updated = collection_service.update_collection(store, collection["id"], {"sales_bill_id": second["id"]})

        assert updated["sales_bill_id"] == second["id"]
        assert _ledger(store, bill) == (Decimal("0.00"), Decimal("11300.00"), "pending")
        assert _ledger(store, second) == (Decimal("500.00"), Decimal("500.00"), "partial")

    def test_relink_checks_new_bill_balance(self, store, customer, bill, make_bill):
        small = make_bill(customer, "100.00")
        collection = _collect(store, customer, bill, "500.00")

        with pytest.raises(ExceedsBalanceError):
            collection_service.update_collection(store, collection["id"], {"sales_bill_id": small["id"]})

        assert _ledger(store, bill)[0] == Decimal("500.00")
        assert _ledger(store, small)[0] == Decimal("0.00")

    def test_unlink_reverses_bill(self, store, customer, bill):
        collection = _collect(store, customer, bill, "500.00")
        collection_service.update_collection(store, collection["id"], {"sales_bill_id": None})
        assert _ledger(store, bill) == (Decimal("0.00"), Decimal("11300.00"), "pending")

    def test_unknown_collection(self, store):
        with pytest.raises(NotFoundError):
            collection_service.update_collection(store, 404, {"notes": "x"})


class TestCollectionQueries:
    def test_list_filters_and_search(self, store, customer, other_customer, bill, make_bill):
        other_bill = make_bill(other_customer, "900.00")
        _collect(store, customer, bill, "100.00", payment_method="upi", reference_number="UPI-42")
        _collect(store, other_customer, other_bill, "200.00", payment_method="cheque")

        assert collection_service.list_collections(store).total == 2
        assert collection_service.list_collections(store, payment_method="upi").total == 1
        assert collection_service.list_collections(store, customer_id=str(other_customer["id"])).total == 1
        assert collection_service.list_collections(store, search="upi-4").total == 1
        assert collection_service.list_collections(store, search="globex").total == 1
        assert collection_service.list_collections(store, search=bill["bill_number"]).total == 1

        page = collection_service.list_collections(store, limit=1, page=2)
        assert len(page.items) == 1
        assert page.pages == 2
        assert page.items[0]["customer"]["id"] in (customer["id"], other_customer["id"])

    def test_date_range_is_inclusive(self, store, customer, bill):
        _collect(store, customer, bill, "10.00", collection_date="2024-01-01")
        _collect(store, customer, bill, "10.00", collection_date="2024-01-31")
        _collect(store, customer, bill, "10.00", collection_date="2024-02-01")

        result = collection_service.list_collections(store, start_date="2024-01-01", end_date="2024-01-31")
        assert result.total == 2

    def test_outstanding_bills_for_collection(self, store, customer, bill, make_bill):
        paid = make_bill(customer, "50.00")
        _collect(store, customer, paid, "50.00")

        outstanding = collection_service.outstanding_bills_for_collection(store, customer["id"])
        assert [b["id"] for b in outstanding["outstanding_bills"]] == [bill["id"]]
        assert outstanding["total_outstanding"] == Decimal("11300.00")


class TestConcurrentCollections:
    @pytest.fixture
    def document_only(self, store):
        if store.backend != "document":
            pytest.skip("threads share one in-memory SQLite connection")

    def test_racing_collections_never_overpay(self, document_only, store, customer, bill):
        outcomes = []

        def pay():
            try:
                _collect(store, customer, bill, "6000.00")
                outcomes.append("ok")
            except ExceedsBalanceError:
                outcomes.append("rejected")

        threads = [threading.Thread(target=pay) for _ in range(4)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert sorted(outcomes) == ["ok", "rejected", "rejected", "rejected"]
        paid, balance, status = _ledger(store, bill)
        assert paid == Decimal("6000.00")
        assert balance == Decimal("5300.00")
        assert status == "partial"


class TestStaleBillVersion:
    """A bill edited between the locked read and the ledger write."""

    @pytest.fixture
    def edit_bill_before_write(self, store, monkeypatch):
        """
        Wraps store.update so that a versioned bill write first sees another
        writer bump the bill. edits["remaining"] caps how many writes are
        interfered with.
        """
        original = store.update
        edits = {"remaining": 1, "made": 0}

        def update(kind, entity_id, patch, *, expected_version=None):
            if kind == KIND_SALES_BILLS and expected_version is not None and edits["remaining"]:
                edits["remaining"] -= 1
                edits["made"] += 1
                original(kind, entity_id, {"notes": "edited elsewhere"})
            return original(kind, entity_id, patch, expected_version=expected_version)

        monkeypatch.setattr(store, "update", update)
        return edits

    def test_retry_recomputes_on_fresh_state(self, store, customer, bill, edit_bill_before_write):
        collection = _collect(store, customer, bill, "5000.00")

        assert edit_bill_before_write["made"] == 1
        assert collection["sales_bill"]["balance_amount"] == Decimal("6300.00")
        assert _ledger(store, bill) == (Decimal("5000.00"), Decimal("6300.00"), "partial")
        assert store.count(KIND_COLLECTION_BILLS) == 1
        assert customer_service.get_customer(store, customer["id"])["outstanding_balance"] == Decimal("6300.00")

    def test_exhausted_attempts_surface_conflict(self, store, customer, bill, edit_bill_before_write):
        edit_bill_before_write["remaining"] = 10

        with pytest.raises(ConcurrencyError):
            _collect(store, customer, bill, "5000.00")

        assert edit_bill_before_write["made"] == 3
        assert _ledger(store, bill) == (Decimal("0.00"), Decimal("11300.00"), "pending")
        assert store.count(KIND_COLLECTION_BILLS) == 0
