# Overview: Pytest coverage for HTTP routes, envelopes and status codes.

"""
API Route Tests

Checks the JSON envelope, money/date serialization and the error taxonomy's
status mapping (400 / 404 / 409) through the Flask test client.
"""

import pytest


def _create_customer(client, **extra):
    payload = {"name": "Acme Traders", "email": "accounts@acme.example"}
    payload.update(extra)
    resp = client.post("/api/customers/", json=payload)
    assert resp.status_code == 201, resp.get_json()
    return resp.get_json()["data"]


def _create_bill(client, customer_id, rate="11300.00"):
    resp = client.post("/api/sales-bills/", json={
        "customer_id": customer_id,
        "bill_date": "2024-01-15",
        "due_date": "2024-02-14",
        "items": [{"item_name": "Consulting", "quantity": 1, "rate": rate}],
    })
    assert resp.status_code == 201, resp.get_json()
    return resp.get_json()["data"]


class TestSystemRoutes:
    def test_health(self, client, store):
        resp = client.get("/health")
        assert resp.status_code == 200
        body = resp.get_json()
        assert body["status"] == "healthy"
        assert body["checks"]["storage"]["details"]["backend"] == store.backend

    def test_api_index(self, client):
        resp = client.get("/api")
        assert resp.status_code == 200
        assert resp.get_json()["endpoints"]["sales_bills"] == "/api/sales-bills"

    def test_cors_allow_list(self, client):
        allowed = client.get("/api", headers={"Origin": "http://localhost:3000"})
        assert allowed.headers["Access-Control-Allow-Origin"] == "http://localhost:3000"

        denied = client.get("/api", headers={"Origin": "http://evil.example"})
        assert "Access-Control-Allow-Origin" not in denied.headers


class TestCustomerRoutes:
    def test_create_and_get(self, client):
        customer = _create_customer(client, credit_limit=1000)
        assert customer["customer_code"] == "CUST0001"
        assert customer["credit_limit"] == "1000.00"

        resp = client.get(f"/api/customers/{customer['id']}")
        assert resp.status_code == 200
        assert resp.get_json()["success"] is True

    def test_validation_error_envelope(self, client):
        resp = client.post("/api/customers/", json={"email": "x@example.com"})
        assert resp.status_code == 400
        body = resp.get_json()
        assert body["success"] is False
        assert body["error"] == "validation_error"
        assert "name" in body["message"]

    def test_non_object_body(self, client):
        resp = client.post("/api/customers/", json=["not", "an", "object"])
        assert resp.status_code == 400

    def test_not_found(self, client):
        resp = client.get("/api/customers/999")
        assert resp.status_code == 404
        assert resp.get_json()["error"] == "not_found"

    def test_duplicate_email_conflict(self, client):
        _create_customer(client)
        resp = client.post("/api/customers/", json={"name": "Copy", "email": "accounts@acme.example"})
        assert resp.status_code == 409
        assert resp.get_json()["error"] == "duplicate"

    def test_list_paginates(self, client):
        for n in range(3):
            _create_customer(client, name=f"Customer {n}", email=f"c{n}@example.com")

        resp = client.get("/api/customers/?limit=2&page=1")
        body = resp.get_json()
        assert resp.status_code == 200
        assert len(body["data"]) == 2
        assert body["pagination"] == {"total": 3, "page": 1, "pages": 2, "limit": 2}

    def test_delete_blocked_then_allowed(self, client):
        customer = _create_customer(client)
        bill = _create_bill(client, customer["id"])

        assert client.delete(f"/api/customers/{customer['id']}").status_code == 409
        assert client.delete(f"/api/sales-bills/{bill['id']}").status_code == 200
        assert client.delete(f"/api/customers/{customer['id']}").status_code == 200

    def test_outstanding(self, client):
        customer = _create_customer(client)
        _create_bill(client, customer["id"])

        resp = client.get(f"/api/customers/{customer['id']}/outstanding")
        data = resp.get_json()["data"]
        assert data["total_outstanding"] == "11300.00"
        assert data["outstanding_bills_count"] == 1


class TestSalesBillRoutes:
    def test_create_serializes_money_and_dates(self, client):
        customer = _create_customer(client)
        bill = _create_bill(client, customer["id"])

        assert bill["bill_number"] == "INV0001"
        assert bill["total_amount"] == "11300.00"
        assert bill["balance_amount"] == "11300.00"
        assert bill["bill_date"] == "2024-01-15"
        assert bill["items"][0]["quantity"] == "1.000"
        assert bill["created_at"].endswith("Z")

    def test_missing_customer_is_404(self, client):
        resp = client.post("/api/sales-bills/", json={
            "customer_id": 999,
            "bill_date": "2024-01-15",
            "items": [{"item_name": "x", "quantity": 1, "rate": 1}],
        })
        assert resp.status_code == 404

    def test_empty_items_is_400(self, client):
        customer = _create_customer(client)
        resp = client.post("/api/sales-bills/", json={
            "customer_id": customer["id"],
            "bill_date": "2024-01-15",
            "items": [],
        })
        assert resp.status_code == 400
        assert resp.get_json()["message"] == "Items array is required and cannot be empty"

    def test_oversized_quantity_is_400(self, client):
        customer = _create_customer(client)
        resp = client.post("/api/sales-bills/", json={
            "customer_id": customer["id"],
            "bill_date": "2024-01-15",
            "items": [{"item_name": "x", "quantity": "1e40", "rate": 1}],
        })
        assert resp.status_code == 400
        assert resp.get_json()["error"] == "validation_error"

    def test_static_paths(self, client):
        customer = _create_customer(client)
        _create_bill(client, customer["id"])

        assert client.get("/api/sales-bills/next-number").get_json()["data"] == {"bill_number": "INV0002"}

        summary = client.get("/api/sales-bills/reports/summary").get_json()["data"]
        assert summary["summary"]["total_sales"] == "11300.00"
        assert summary["top_customers"][0]["customer"]["id"] == customer["id"]

    def test_bad_query_param_is_400(self, client):
        assert client.get("/api/sales-bills/?payment_status=lost").status_code == 400
        assert client.get("/api/sales-bills/?start_date=yesterday").status_code == 400


class TestCollectionRoutes:
    def test_lifecycle(self, client):
        customer = _create_customer(client)
        bill = _create_bill(client, customer["id"])

        resp = client.post("/api/collection-bills/", json={
            "customer_id": customer["id"],
            "sales_bill_id": bill["id"],
            "collection_date": "2024-01-20",
            "collection_amount": "5000.00",
        })
        assert resp.status_code == 201
        collection = resp.get_json()["data"]
        assert collection["sales_bill"]["balance_amount"] == "6300.00"
        assert collection["sales_bill"]["payment_status"] == "partial"

        resp = client.put(f"/api/collection-bills/{collection['id']}", json={"collection_amount": "20000.00"})
        assert resp.status_code == 409
        assert resp.get_json()["error"] == "exceeds_total"

        assert client.delete(f"/api/collection-bills/{collection['id']}").status_code == 200
        bill_after = client.get(f"/api/sales-bills/{bill['id']}").get_json()["data"]
        assert bill_after["paid_amount"] == "0.00"
        assert bill_after["payment_status"] == "pending"

    def test_exceeds_balance_is_409(self, client):
        customer = _create_customer(client)
        bill = _create_bill(client, customer["id"])

        resp = client.post("/api/collection-bills/", json={
            "customer_id": customer["id"],
            "sales_bill_id": bill["id"],
            "collection_date": "2024-01-20",
            "collection_amount": "12000.00",
        })
        assert resp.status_code == 409
        body = resp.get_json()
        assert body["error"] == "exceeds_balance"
        assert body["message"] == "Collection amount cannot exceed outstanding balance"

    @pytest.mark.parametrize("path", [
        "/api/collection-bills/next-number",
        "/api/collection-bills/reports/summary",
    ])
    def test_static_paths(self, client, path):
        assert client.get(path).status_code == 200

    def test_customer_outstanding_lookup(self, client):
        customer = _create_customer(client)
        _create_bill(client, customer["id"])
        resp = client.get(f"/api/collection-bills/customer/{customer['id']}/outstanding")
        assert resp.status_code == 200
        assert len(resp.get_json()["data"]["outstanding_bills"]) == 1

        assert client.get("/api/collection-bills/customer/999/outstanding").status_code == 404

    def test_unexpected_failure_is_500(self, client, monkeypatch):
        from billing.services import collection_service

        def explode(*args, **kwargs):
            raise KeyError("boom")

        monkeypatch.setattr(collection_service, "list_collections", explode)
        resp = client.get("/api/collection-bills/")
        assert resp.status_code == 500
        assert resp.get_json() == {
            "success": False,
            "error": "internal_error",
            "message": "Internal server error",
        }
