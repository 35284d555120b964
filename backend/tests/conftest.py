"""
Pytest fixtures for billing backend tests.

Every app-level fixture runs once per storage backend (SQLAlchemy on an
in-memory SQLite database, and the in-process document store), so service
and route tests check both adapters against the same expectations.
"""

from decimal import Decimal

import pytest

from billing import create_app
from billing.extensions import db
from billing.services import customer_service, sales_bill_service


@pytest.fixture(params=["sql", "document"])
def app(request):
    """Create application for testing, backed by the parametrized store."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
        'BILLING_STORAGE': request.param,
        'LOG_LEVEL': 'WARNING',
    })

    with app.app_context():
        db.create_all()
        yield app
        db.session.remove()
        db.drop_all()

    app.extensions["billing_store"].close()


@pytest.fixture(scope='function')
def store(app):
    """Storage adapter attached to the app."""
    return app.extensions["billing_store"]


@pytest.fixture(scope='function')
def client(app):
    """Create test client."""
    return app.test_client()


@pytest.fixture(scope='function')
def customer(store):
    """Customer A with a 50000.00 credit limit."""
    return customer_service.create_customer(store, {
        "name": "Acme Traders",
        "email": "accounts@acme.example",
        "phone": "9876543210",
        "credit_limit": "50000.00",
    })


@pytest.fixture(scope='function')
def other_customer(store):
    """Customer B, used for cross-customer checks."""
    return customer_service.create_customer(store, {
        "name": "Globex Retail",
        "email": "billing@globex.example",
    })


@pytest.fixture(scope='function')
def make_bill(store):
    """
    Factory for single-line sales bills.

    make_bill(customer, "11300.00") creates a bill whose total is exactly
    that amount (quantity 1, no tax, no discount).
    """
    def _make(customer, total="11300.00", **header):
        payload = {
            "customer_id": customer["id"],
            "bill_date": "2024-01-15",
            "items": [{"item_name": "Consulting", "quantity": 1, "rate": total}],
        }
        payload.update(header)
        return sales_bill_service.create_sales_bill(store, payload)

    return _make


@pytest.fixture(scope='function')
def bill(customer, make_bill):
    """Unpaid bill with total 11300.00."""
    created = make_bill(customer)
    assert created["total_amount"] == Decimal("11300.00")
    return created
