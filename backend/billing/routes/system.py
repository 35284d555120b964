# backend/billing/routes/system.py
"""
System health and API index endpoints.
"""

import time

from flask import Blueprint, current_app

from .responses import current_store
from ..time_utils import utcnow, to_utc_z

system_bp = Blueprint("system", __name__)


API_VERSION = "1.0.0"


def check_storage_health() -> dict:
    """
    Round-trip to the configured storage backend.

    Returns dict with status and details.
    """
    start_time = time.time()
    store = current_store()
    try:
        customer_count = store.ping()
        elapsed_ms = (time.time() - start_time) * 1000

        return {
            "status": "healthy",
            "latency_ms": round(elapsed_ms, 2),
            "details": {
                "backend": store.backend,
                "customers": customer_count,
            }
        }
    except Exception:
        elapsed_ms = (time.time() - start_time) * 1000
        current_app.logger.exception("Storage health check failed")
        return {
            "status": "unhealthy",
            "latency_ms": round(elapsed_ms, 2),
            "error": "Storage error"
        }


@system_bp.get("/health")
def health():
    """
    Health check endpoint.

    Returns:
    - 200: Storage reachable
    - 503: Storage unreachable
    """
    storage_health = check_storage_health()
    http_status = 200 if storage_health["status"] == "healthy" else 503

    response = {
        "status": storage_health["status"],
        "timestamp": to_utc_z(utcnow()),
        "checks": {
            "storage": storage_health,
        }
    }

    return response, http_status


@system_bp.get("/api")
def api_index():
    """Discoverable list of resource roots."""
    return {
        "name": "Billing API",
        "api_version": API_VERSION,
        "endpoints": {
            "customers": "/api/customers",
            "sales_bills": "/api/sales-bills",
            "collection_bills": "/api/collection-bills",
            "health": "/health",
        },
    }
