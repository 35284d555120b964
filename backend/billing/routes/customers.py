# Overview: Flask API routes for customers; parses input and returns JSON responses.

# backend/billing/routes/customers.py
"""
Customer API Routes

DESIGN:
- CRUD over customers with search + status filter
- Outstanding balance view (unpaid bills, overdue amount, available credit)
- Delete refused while bills or collections reference the customer
"""

from flask import Blueprint, current_app, request

from ..errors import BillingError
from ..services import customer_service
from .responses import current_store, error_response, internal_error, json_body, ok, ok_page


customers_bp = Blueprint("customers", __name__, url_prefix="/api/customers")


# =============================================================================
# CUSTOMER QUERIES
# =============================================================================

@customers_bp.get("/")
def list_customers_route():
    """
    List customers, newest first.

    Query params:
    - page, limit (max 100)
    - search: name, customer_code, email or phone (case-insensitive)
    - status: active | inactive | blocked

    Returns:
        200: {"success": true, "data": [...], "pagination": {...}}
        400: Invalid filter
    """
    try:
        result = customer_service.list_customers(
            current_store(),
            page=request.args.get("page"),
            limit=request.args.get("limit"),
            search=request.args.get("search"),
            status=request.args.get("status"),
        )
        return ok_page(result)

    except BillingError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to list customers")
        return internal_error()


@customers_bp.get("/<int:customer_id>")
def get_customer_route(customer_id: int):
    """Customer with the five most recent sales bills and collections."""
    try:
        return ok(customer_service.get_customer(current_store(), customer_id))

    except BillingError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to get customer")
        return internal_error()


@customers_bp.get("/<int:customer_id>/outstanding")
def get_customer_outstanding_route(customer_id: int):
    """
    Outstanding balance for a customer.

    Returns:
        200: total_outstanding, overdue_amount, outstanding_bills_count,
             credit_limit, available_credit, outstanding_bills
        404: Customer not found
    """
    try:
        return ok(customer_service.get_customer_outstanding(current_store(), customer_id))

    except BillingError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to get customer outstanding")
        return internal_error()


# =============================================================================
# CUSTOMER MUTATIONS
# =============================================================================

@customers_bp.post("/")
def create_customer_route():
    """
    Create a customer.

    Request body:
    {
        "name": "Acme Traders",
        "customer_code": "CUST0007",  (optional, generated when omitted)
        "email": "accounts@acme.example",  (optional)
        "phone": "9876543210",  (optional)
        "credit_limit": "50000.00"  (optional)
    }

    Returns:
        201: Customer created
        400: Invalid input
        409: customer_code or email already exists
    """
    try:
        customer = customer_service.create_customer(current_store(), json_body())
        return ok(customer, 201, message="Customer created successfully")

    except BillingError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to create customer")
        return internal_error()


@customers_bp.put("/<int:customer_id>")
def update_customer_route(customer_id: int):
    try:
        customer = customer_service.update_customer(current_store(), customer_id, json_body())
        return ok(customer, message="Customer updated successfully")

    except BillingError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to update customer")
        return internal_error()


@customers_bp.delete("/<int:customer_id>")
def delete_customer_route(customer_id: int):
    """
    Delete a customer.

    Returns:
        200: Deleted
        404: Customer not found
        409: Customer still has sales bills or collections
    """
    try:
        customer_service.delete_customer(current_store(), customer_id)
        return ok(None, message="Customer deleted successfully")

    except BillingError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to delete customer")
        return internal_error()
