# Overview: Flask API routes for collection bills; parses input and returns JSON responses.

# backend/billing/routes/collection_bills.py
"""
Collection Bill API Routes

WHY: A collection is money received from a customer, optionally applied to
one of their sales bills. Every mutation here moves the linked bill's ledger
in the same transaction.

ERRORS:
- 409 exceeds_balance: amount larger than the bill's outstanding balance
- 409 exceeds_total: update would push the bill's paid amount past its total
- 409 concurrent_update: bill kept changing, retries exhausted
"""

from flask import Blueprint, current_app, request

from ..errors import BillingError
from ..services import collection_service, reporting_service
from .responses import current_store, error_response, internal_error, json_body, ok, ok_page


collection_bills_bp = Blueprint("collection_bills", __name__, url_prefix="/api/collection-bills")


# =============================================================================
# REPORTS & LOOKUPS
# =============================================================================

@collection_bills_bp.get("/reports/summary")
def collection_summary_route():
    """
    Collection summary.

    Query params:
    - start_date, end_date: inclusive collection_date range (YYYY-MM-DD)

    Returns:
        200: summary, method_wise, status_wise
    """
    try:
        summary = reporting_service.collection_summary(
            current_store(),
            start_date=request.args.get("start_date"),
            end_date=request.args.get("end_date"),
        )
        return ok(summary)

    except BillingError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to build collection summary")
        return internal_error()


@collection_bills_bp.get("/customer/<int:customer_id>/outstanding")
def customer_outstanding_bills_route(customer_id: int):
    """Unpaid bills of a customer, oldest first, for collection entry."""
    try:
        return ok(collection_service.outstanding_bills_for_collection(current_store(), customer_id))

    except BillingError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to get outstanding bills")
        return internal_error()


@collection_bills_bp.get("/next-number")
def next_collection_number_route():
    try:
        number = collection_service.preview_next_collection_number(current_store())
        return ok({"collection_number": number})

    except BillingError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to generate collection number")
        return internal_error()


# =============================================================================
# COLLECTION QUERIES
# =============================================================================

@collection_bills_bp.get("/")
def list_collections_route():
    """
    List collections, newest first.

    Query params:
    - page, limit (max 100)
    - status: collection_status filter
    - payment_method
    - customer_id, sales_bill_id
    - start_date, end_date: inclusive collection_date range
    - search: collection number, reference number, customer name, bill number
    """
    try:
        result = collection_service.list_collections(
            current_store(),
            page=request.args.get("page"),
            limit=request.args.get("limit"),
            search=request.args.get("search"),
            collection_status=request.args.get("status"),
            payment_method=request.args.get("payment_method"),
            customer_id=request.args.get("customer_id"),
            sales_bill_id=request.args.get("sales_bill_id"),
            start_date=request.args.get("start_date"),
            end_date=request.args.get("end_date"),
        )
        return ok_page(result)

    except BillingError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to list collections")
        return internal_error()


@collection_bills_bp.get("/<int:collection_id>")
def get_collection_route(collection_id: int):
    try:
        return ok(collection_service.get_collection(current_store(), collection_id))

    except BillingError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to get collection")
        return internal_error()


# =============================================================================
# COLLECTION MUTATIONS
# =============================================================================

@collection_bills_bp.post("/")
def create_collection_route():
    """
    Record a collection.

    Request body:
    {
        "customer_id": 1,
        "sales_bill_id": 7,  (optional)
        "collection_date": "2024-01-20",
        "collection_amount": "5000.00",
        "payment_method": "upi",  (optional, default cash)
        "reference_number": "UPI-778812"  (optional)
    }

    Returns:
        201: Collection recorded, bill ledger updated
        400: Invalid input, or bill belongs to another customer
        404: Customer or bill not found
        409: Amount exceeds the bill's outstanding balance
    """
    try:
        collection = collection_service.create_collection(current_store(), json_body())
        return ok(collection, 201, message="Collection bill created successfully")

    except BillingError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to create collection")
        return internal_error()


@collection_bills_bp.put("/<int:collection_id>")
def update_collection_route(collection_id: int):
    """
    Update a collection.

    Changing collection_amount applies the difference to the bill.
    Changing sales_bill_id reverses the old bill and charges the new one.

    Returns:
        200: Updated
        409: exceeds_total / exceeds_balance
    """
    try:
        collection = collection_service.update_collection(current_store(), collection_id, json_body())
        return ok(collection, message="Collection bill updated successfully")

    except BillingError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to update collection")
        return internal_error()


@collection_bills_bp.delete("/<int:collection_id>")
def delete_collection_route(collection_id: int):
    try:
        collection_service.delete_collection(current_store(), collection_id)
        return ok(None, message="Collection bill deleted successfully")

    except BillingError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to delete collection")
        return internal_error()
