"""Initial billing schema: customers, sales bills, bill items, collections

Revision ID: 20261019_billing_initial
Revises:
Create Date: 2026-10-19
"""

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = "20261019_billing_initial"
down_revision = None
branch_labels = None
depends_on = None


def _audit_columns():
    return [
        sa.Column("created_at", sa.DateTime(), server_default=sa.text("(CURRENT_TIMESTAMP)"), nullable=False),
        sa.Column("updated_at", sa.DateTime(), server_default=sa.text("(CURRENT_TIMESTAMP)"), nullable=False),
        sa.Column("version_id", sa.Integer(), nullable=False, server_default=sa.text("1")),
    ]


def upgrade():
    op.create_table(
        "customers",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("customer_code", sa.String(20), nullable=False),
        sa.Column("name", sa.String(100), nullable=False),
        sa.Column("email", sa.String(100), nullable=True),
        sa.Column("phone", sa.String(15), nullable=True),
        sa.Column("address", sa.Text(), nullable=True),
        sa.Column("city", sa.String(50), nullable=True),
        sa.Column("state", sa.String(50), nullable=True),
        sa.Column("pincode", sa.String(10), nullable=True),
        sa.Column("gst_number", sa.String(15), nullable=True),
        sa.Column("credit_limit", sa.Numeric(15, 2), nullable=False, server_default=sa.text("0")),
        sa.Column("outstanding_balance", sa.Numeric(15, 2), nullable=False, server_default=sa.text("0")),
        sa.Column("status", sa.String(16), nullable=False, server_default="active"),
        *_audit_columns(),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("customer_code", name="uq_customers_customer_code"),
        sa.UniqueConstraint("email", name="uq_customers_email"),
        sqlite_autoincrement=True,
    )

    with op.batch_alter_table("customers", schema=None) as batch_op:
        batch_op.create_index("ix_customers_status", ["status"], unique=False)

    op.create_table(
        "sales_bills",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("bill_number", sa.String(20), nullable=False),
        sa.Column("customer_id", sa.Integer(), nullable=False),
        sa.Column("bill_date", sa.Date(), nullable=False),
        sa.Column("due_date", sa.Date(), nullable=True),
        sa.Column("subtotal", sa.Numeric(15, 2), nullable=False, server_default=sa.text("0")),
        sa.Column("tax_amount", sa.Numeric(15, 2), nullable=False, server_default=sa.text("0")),
        sa.Column("discount_amount", sa.Numeric(15, 2), nullable=False, server_default=sa.text("0")),
        sa.Column("total_amount", sa.Numeric(15, 2), nullable=False),
        sa.Column("paid_amount", sa.Numeric(15, 2), nullable=False, server_default=sa.text("0")),
        sa.Column("balance_amount", sa.Numeric(15, 2), nullable=False, server_default=sa.text("0")),
        sa.Column("payment_status", sa.String(16), nullable=False, server_default="pending"),
        sa.Column("bill_status", sa.String(16), nullable=False, server_default="draft"),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("terms_conditions", sa.Text(), nullable=True),
        *_audit_columns(),
        sa.ForeignKeyConstraint(["customer_id"], ["customers.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("bill_number", name="uq_sales_bills_bill_number"),
        sqlite_autoincrement=True,
    )

    with op.batch_alter_table("sales_bills", schema=None) as batch_op:
        batch_op.create_index("ix_sales_bills_customer_id", ["customer_id"], unique=False)
        batch_op.create_index("ix_sales_bills_bill_date", ["bill_date"], unique=False)
        batch_op.create_index("ix_sales_bills_payment_status", ["payment_status"], unique=False)
        batch_op.create_index("ix_sales_bills_bill_status", ["bill_status"], unique=False)

    op.create_table(
        "sales_bill_items",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("sales_bill_id", sa.Integer(), nullable=False),
        sa.Column("item_name", sa.String(100), nullable=False),
        sa.Column("item_code", sa.String(50), nullable=True),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("quantity", sa.Numeric(10, 3), nullable=False),
        sa.Column("unit", sa.String(20), nullable=False, server_default="pcs"),
        sa.Column("rate", sa.Numeric(15, 2), nullable=False),
        sa.Column("tax_rate", sa.Numeric(5, 2), nullable=False, server_default=sa.text("0")),
        sa.Column("discount_rate", sa.Numeric(5, 2), nullable=False, server_default=sa.text("0")),
        sa.Column("amount", sa.Numeric(15, 2), nullable=False),
        sa.Column("discount_amount", sa.Numeric(15, 2), nullable=False, server_default=sa.text("0")),
        sa.Column("taxable_amount", sa.Numeric(15, 2), nullable=False),
        sa.Column("tax_amount", sa.Numeric(15, 2), nullable=False, server_default=sa.text("0")),
        sa.Column("line_total", sa.Numeric(15, 2), nullable=False),
        *_audit_columns(),
        sa.ForeignKeyConstraint(["sales_bill_id"], ["sales_bills.id"]),
        sa.PrimaryKeyConstraint("id"),
        sqlite_autoincrement=True,
    )

    with op.batch_alter_table("sales_bill_items", schema=None) as batch_op:
        batch_op.create_index("ix_sales_bill_items_bill_id", ["sales_bill_id"], unique=False)

    op.create_table(
        "collection_bills",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("collection_number", sa.String(20), nullable=False),
        sa.Column("customer_id", sa.Integer(), nullable=False),
        sa.Column("sales_bill_id", sa.Integer(), nullable=True),
        sa.Column("collection_date", sa.Date(), nullable=False),
        sa.Column("collection_amount", sa.Numeric(15, 2), nullable=False),
        sa.Column("payment_method", sa.String(20), nullable=False, server_default="cash"),
        sa.Column("reference_number", sa.String(50), nullable=True),
        sa.Column("bank_name", sa.String(100), nullable=True),
        sa.Column("cheque_date", sa.Date(), nullable=True),
        sa.Column("collection_status", sa.String(16), nullable=False, server_default="pending"),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("collected_by", sa.String(100), nullable=True),
        *_audit_columns(),
        sa.ForeignKeyConstraint(["customer_id"], ["customers.id"]),
        sa.ForeignKeyConstraint(["sales_bill_id"], ["sales_bills.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("collection_number", name="uq_collection_bills_collection_number"),
        sqlite_autoincrement=True,
    )

    with op.batch_alter_table("collection_bills", schema=None) as batch_op:
        batch_op.create_index("ix_collection_bills_customer_id", ["customer_id"], unique=False)
        batch_op.create_index("ix_collection_bills_sales_bill_id", ["sales_bill_id"], unique=False)
        batch_op.create_index("ix_collection_bills_collection_date", ["collection_date"], unique=False)
        batch_op.create_index("ix_collection_bills_payment_method", ["payment_method"], unique=False)
        batch_op.create_index("ix_collection_bills_collection_status", ["collection_status"], unique=False)


def downgrade():
    for table, indexes in (
        ("collection_bills", (
            "ix_collection_bills_collection_status",
            "ix_collection_bills_payment_method",
            "ix_collection_bills_collection_date",
            "ix_collection_bills_sales_bill_id",
            "ix_collection_bills_customer_id",
        )),
        ("sales_bill_items", ("ix_sales_bill_items_bill_id",)),
        ("sales_bills", (
            "ix_sales_bills_bill_status",
            "ix_sales_bills_payment_status",
            "ix_sales_bills_bill_date",
            "ix_sales_bills_customer_id",
        )),
        ("customers", ("ix_customers_status",)),
    ):
        with op.batch_alter_table(table, schema=None) as batch_op:
            for index in indexes:
                batch_op.drop_index(index)
        op.drop_table(table)
