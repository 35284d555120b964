# Overview: Flask API routes for sales bills; parses input and returns JSON responses.

# backend/billing/routes/sales_bills.py
"""
Sales Bill API Routes

WHY: A bill is created, priced and itemised in one request. Ledger fields
(paid_amount, balance_amount, payment_status) are read-only here; they only
move through collections.

DESIGN:
- POST creates bill + items atomically
- PUT patches the header; "items" replaces all lines (409 once collected)
- DELETE refused while collections reference the bill
- /reports/summary and /next-number are static paths registered before /<id>
"""

from flask import Blueprint, current_app, request

from ..errors import BillingError
from ..services import reporting_service, sales_bill_service
from .responses import current_store, error_response, internal_error, json_body, ok, ok_page


sales_bills_bp = Blueprint("sales_bills", __name__, url_prefix="/api/sales-bills")


# =============================================================================
# REPORTS & NUMBERING
# =============================================================================

@sales_bills_bp.get("/reports/summary")
def sales_summary_route():
    """
    Sales summary.

    Query params:
    - start_date, end_date: inclusive bill_date range (YYYY-MM-DD)

    Returns:
        200: summary, status_wise, top_customers
    """
    try:
        summary = reporting_service.sales_summary(
            current_store(),
            start_date=request.args.get("start_date"),
            end_date=request.args.get("end_date"),
        )
        return ok(summary)

    except BillingError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to build sales summary")
        return internal_error()


@sales_bills_bp.get("/next-number")
def next_bill_number_route():
    """Preview of the next generated bill number (not reserved)."""
    try:
        return ok({"bill_number": sales_bill_service.preview_next_bill_number(current_store())})

    except BillingError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to generate bill number")
        return internal_error()


# =============================================================================
# BILL QUERIES
# =============================================================================

@sales_bills_bp.get("/")
def list_sales_bills_route():
    """
    List sales bills, newest first.

    Query params:
    - page, limit (max 100)
    - status: bill_status filter
    - payment_status: pending | partial | paid | overdue
    - customer_id
    - start_date, end_date: inclusive bill_date range
    - search: bill number or customer name
    """
    try:
        result = sales_bill_service.list_sales_bills(
            current_store(),
            page=request.args.get("page"),
            limit=request.args.get("limit"),
            search=request.args.get("search"),
            bill_status=request.args.get("status"),
            payment_status=request.args.get("payment_status"),
            customer_id=request.args.get("customer_id"),
            start_date=request.args.get("start_date"),
            end_date=request.args.get("end_date"),
        )
        return ok_page(result)

    except BillingError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to list sales bills")
        return internal_error()


@sales_bills_bp.get("/<int:bill_id>")
def get_sales_bill_route(bill_id: int):
    """Bill with customer, items and collections."""
    try:
        return ok(sales_bill_service.get_sales_bill(current_store(), bill_id))

    except BillingError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to get sales bill")
        return internal_error()


# =============================================================================
# BILL MUTATIONS
# =============================================================================

@sales_bills_bp.post("/")
def create_sales_bill_route():
    """
    Create a sales bill with its items.

    Request body:
    {
        "customer_id": 1,
        "bill_date": "2024-01-15",
        "due_date": "2024-02-14",  (optional)
        "bill_number": "INV0042",  (optional, generated when omitted)
        "items": [
            {"item_name": "Widget", "quantity": 2, "rate": "3000.00",
             "tax_rate": 18, "discount_rate": 5}
        ]
    }

    Returns:
        201: Bill created (totals computed per line)
        400: Invalid input or empty items
        404: Customer not found
        409: bill_number already exists
    """
    try:
        bill = sales_bill_service.create_sales_bill(current_store(), json_body())
        return ok(bill, 201, message="Sales bill created successfully")

    except BillingError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to create sales bill")
        return internal_error()


@sales_bills_bp.put("/<int:bill_id>")
def update_sales_bill_route(bill_id: int):
    try:
        bill = sales_bill_service.update_sales_bill(current_store(), bill_id, json_body())
        return ok(bill, message="Sales bill updated successfully")

    except BillingError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to update sales bill")
        return internal_error()


@sales_bills_bp.delete("/<int:bill_id>")
def delete_sales_bill_route(bill_id: int):
    """
    Delete a sales bill and its items.

    Returns:
        200: Deleted
        404: Bill not found
        409: Bill has collections
    """
    try:
        sales_bill_service.delete_sales_bill(current_store(), bill_id)
        return ok(None, message="Sales bill deleted successfully")

    except BillingError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to delete sales bill")
        return internal_error()
