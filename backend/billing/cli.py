# Overview: Flask CLI command group for schema bootstrap, demo data and numbering.

# backend/billing/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py (PowerShell: $env:FLASK_APP="wsgi.py").
# - Use: python -m flask billing <command> [options]
#
# Schema bootstrap/repair:
# - python -m flask billing init-db
#   Create all tables (idempotent). Use "flask db upgrade" for migrated deployments.
# - python -m flask billing reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
#
# Demo data:
# - python -m flask billing seed-demo
#   Create two customers, three sales bills and two collections.
#
# Numbering:
# - python -m flask billing next-number --kind bill
#   Print the next generated number (bill | collection | customer). Nothing is reserved.

from datetime import timedelta

import click
from flask import current_app
from flask.cli import with_appcontext

from .errors import BillingError
from .extensions import db
from .services import collection_service, customer_service, sales_bill_service
from .services.numbering import next_stored_number
from .services.query_params import setting
from .storage import KIND_CUSTOMERS, KIND_SALES_BILLS, KIND_COLLECTION_BILLS
from .time_utils import today


NUMBER_KINDS = {
    "bill": (KIND_SALES_BILLS, "bill_number", "BILL_NUMBER_PREFIX"),
    "collection": (KIND_COLLECTION_BILLS, "collection_number", "COLLECTION_NUMBER_PREFIX"),
    "customer": (KIND_CUSTOMERS, "customer_code", "CUSTOMER_CODE_PREFIX"),
}


def _store():
    return current_app.extensions["billing_store"]


@click.group('billing')
def billing_group():
    """Billing schema, demo data and numbering commands."""


@billing_group.command('init-db')
@with_appcontext
def init_db():
    """Create all tables that do not exist yet."""
    if _store().backend != "sql":
        click.echo(f"SKIP Storage backend '{_store().backend}' has no schema to create.")
        return

    click.echo("BUILD  Creating all tables...")
    db.create_all()
    click.echo("PASS Database ready.")


@billing_group.command('reset-db')
@click.option('--yes', is_flag=True, help='Skip confirmation')
@with_appcontext
def reset_db(yes):
    """
    DANGER: Drop all tables and recreate schema.

    This will DELETE ALL DATA!
    """
    if not yes:
        click.confirm("WARN This will DELETE ALL DATA. Are you sure?", abort=True)

    store = _store()
    if store.backend != "sql":
        store.close()
        store.open()
        click.echo("PASS Document store cleared.")
        return

    click.echo("DELETE  Dropping all tables...")
    db.drop_all()

    click.echo("BUILD  Creating all tables...")
    db.create_all()

    click.echo("PASS Database reset complete. Run 'python -m flask billing seed-demo' for sample data.")


@billing_group.command('seed-demo')
@with_appcontext
def seed_demo():
    """
    Create a small, consistent demo data set.

    Creates:
    - Customers: Acme Traders, Globex Retail
    - Sales bills: two for Acme, one for Globex
    - Collections: a partial payment and a full payment
    """
    store = _store()
    bill_date = today()

    try:
        acme = customer_service.create_customer(store, {
            "name": "Acme Traders",
            "email": "accounts@acme.example",
            "phone": "9876543210",
            "city": "Pune",
            "credit_limit": "50000.00",
        })
        globex = customer_service.create_customer(store, {
            "name": "Globex Retail",
            "email": "billing@globex.example",
            "phone": "9123456780",
            "city": "Mumbai",
            "credit_limit": "25000.00",
        })
        click.echo(f"PASS Created customers {acme['customer_code']}, {globex['customer_code']}")

        widget_bill = sales_bill_service.create_sales_bill(store, {
            "customer_id": acme["id"],
            "bill_date": bill_date,
            "due_date": bill_date + timedelta(days=30),
            "items": [
                {"item_name": "Widget", "quantity": 2, "rate": "3000.00", "tax_rate": 18, "discount_rate": 5},
                {"item_name": "Gadget", "quantity": 1, "rate": "4000.00", "tax_rate": 18, "discount_rate": 5},
            ],
        })
        service_bill = sales_bill_service.create_sales_bill(store, {
            "customer_id": acme["id"],
            "bill_date": bill_date,
            "due_date": bill_date + timedelta(days=15),
            "items": [{"item_name": "Installation", "quantity": 1, "unit": "job", "rate": "1500.00"}],
        })
        globex_bill = sales_bill_service.create_sales_bill(store, {
            "customer_id": globex["id"],
            "bill_date": bill_date,
            "items": [{"item_name": "Cable", "quantity": "12.5", "unit": "m", "rate": "80.00", "tax_rate": 12}],
        })
        for bill in (widget_bill, service_bill, globex_bill):
            click.echo(f"PASS Created sales bill {bill['bill_number']} total {bill['total_amount']}")

        partial = collection_service.create_collection(store, {
            "customer_id": acme["id"],
            "sales_bill_id": widget_bill["id"],
            "collection_date": bill_date,
            "collection_amount": "5000.00",
            "payment_method": "upi",
            "reference_number": "UPI-DEMO-0001",
        })
        full = collection_service.create_collection(store, {
            "customer_id": globex["id"],
            "sales_bill_id": globex_bill["id"],
            "collection_date": bill_date,
            "collection_amount": globex_bill["total_amount"],
            "payment_method": "cash",
        })
        for collection in (partial, full):
            click.echo(
                f"PASS Recorded collection {collection['collection_number']} "
                f"of {collection['collection_amount']}"
            )
    except BillingError as e:
        raise click.ClickException(f"Seeding failed: {e.message}")

    click.echo("PASS Demo data created.")


@billing_group.command('next-number')
@click.option('--kind', type=click.Choice(sorted(NUMBER_KINDS)), default='bill', show_default=True)
@with_appcontext
def next_number(kind):
    """Print the next generated number for a kind."""
    record_kind, field_name, prefix_key = NUMBER_KINDS[kind]
    click.echo(next_stored_number(_store(), record_kind, field_name, setting(prefix_key)))


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(billing_group)
