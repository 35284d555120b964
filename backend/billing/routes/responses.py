# Overview: Shared JSON envelope and record serialization for billing routes.

"""
Response helpers.

Every endpoint answers with the same envelope:

    {"success": true, "data": ..., "pagination": {...}}      (2xx)
    {"success": false, "error": code, "message": ...}        (4xx/5xx)

Records leave the service layer with Decimal money and date objects;
serialize() renders money as 2-place strings, quantities with 3 places,
dates as YYYY-MM-DD and timestamps as UTC ISO-8601 with a trailing Z.
"""

from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal, ROUND_HALF_UP

from flask import current_app, jsonify, request

from ..errors import BillingError
from ..money import format_money
from ..storage import BillingStore, Page
from ..time_utils import to_iso_date, to_utc_z


QUANTITY_FIELDS = frozenset({"quantity"})
_QUANTITY_STEP = Decimal("0.001")


def current_store() -> BillingStore:
    return current_app.extensions["billing_store"]


def serialize(value, key: str | None = None):
    if isinstance(value, dict):
        return {k: serialize(v, k) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [serialize(v, key) for v in value]
    if isinstance(value, Decimal):
        if key in QUANTITY_FIELDS:
            return f"{value.quantize(_QUANTITY_STEP, rounding=ROUND_HALF_UP):.3f}"
        return format_money(value)
    if isinstance(value, datetime):
        return to_utc_z(value)
    if isinstance(value, date):
        return to_iso_date(value)
    return value


def ok(data=None, status: int = 200, *, message: str | None = None):
    body = {"success": True, "data": serialize(data)}
    if message:
        body["message"] = message
    return jsonify(body), status


def ok_page(page: Page):
    return jsonify({
        "success": True,
        "data": serialize(page.items),
        "pagination": page.pagination(),
    }), 200


def error_response(exc: BillingError):
    return jsonify(exc.to_dict()), exc.status_code


def internal_error():
    return jsonify({
        "success": False,
        "error": "internal_error",
        "message": "Internal server error",
    }), 500


def json_body() -> dict:
    """Request JSON; a missing or non-object body is treated as {} and left to validation."""
    data = request.get_json(silent=True)
    return data if data is not None else {}
