from __future__ import annotations

from ..extensions import db


class SalesBill(db.Model):
    """
    Sales bill: money owed by a customer.

    LEDGER: total_amount / paid_amount / balance_amount / payment_status are
    only ever written through the bill ledger so that
    balance_amount == max(0, total_amount - paid_amount) holds after every commit.

    CONCURRENCY: version_id is an optimistic lock; a write based on a stale
    read raises StaleDataError and the service retries with fresh state.
    """
    __tablename__ = "sales_bills"
    __table_args__ = (
        db.UniqueConstraint("bill_number", name="uq_sales_bills_bill_number"),
        db.Index("ix_sales_bills_customer_id", "customer_id"),
        db.Index("ix_sales_bills_bill_date", "bill_date"),
        db.Index("ix_sales_bills_payment_status", "payment_status"),
        db.Index("ix_sales_bills_bill_status", "bill_status"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    bill_number = db.Column(db.String(20), nullable=False)
    customer_id = db.Column(db.Integer, db.ForeignKey("customers.id"), nullable=False)

    bill_date = db.Column(db.Date, nullable=False)
    due_date = db.Column(db.Date, nullable=True)

    subtotal = db.Column(db.Numeric(15, 2), nullable=False, default=0)
    tax_amount = db.Column(db.Numeric(15, 2), nullable=False, default=0)
    discount_amount = db.Column(db.Numeric(15, 2), nullable=False, default=0)
    total_amount = db.Column(db.Numeric(15, 2), nullable=False)
    paid_amount = db.Column(db.Numeric(15, 2), nullable=False, default=0)
    balance_amount = db.Column(db.Numeric(15, 2), nullable=False, default=0)

    payment_status = db.Column(db.String(16), nullable=False, default="pending")  # pending, partial, paid, overdue
    bill_status = db.Column(db.String(16), nullable=False, default="draft")  # draft, sent, viewed, paid, cancelled

    notes = db.Column(db.Text, nullable=True)
    terms_conditions = db.Column(db.Text, nullable=True)

    created_at = db.Column(db.DateTime, nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime, nullable=False, server_default=db.func.now(), onupdate=db.func.now())
    version_id = db.Column(db.Integer, nullable=False, default=1)

    customer = db.relationship("Customer", backref=db.backref("sales_bills", lazy=True))
    __mapper_args__ = {"version_id_col": version_id}

    def to_record(self) -> dict:
        return {
            "id": self.id,
            "bill_number": self.bill_number,
            "customer_id": self.customer_id,
            "bill_date": self.bill_date,
            "due_date": self.due_date,
            "subtotal": self.subtotal,
            "tax_amount": self.tax_amount,
            "discount_amount": self.discount_amount,
            "total_amount": self.total_amount,
            "paid_amount": self.paid_amount,
            "balance_amount": self.balance_amount,
            "payment_status": self.payment_status,
            "bill_status": self.bill_status,
            "notes": self.notes,
            "terms_conditions": self.terms_conditions,
            "created_at": self.created_at,
            "updated_at": self.updated_at,
            "version_id": self.version_id,
        }


class SalesBillItem(db.Model):
    """Priced line on a sales bill. Replaced as a whole, never edited in place."""
    __tablename__ = "sales_bill_items"
    __table_args__ = (
        db.Index("ix_sales_bill_items_bill_id", "sales_bill_id"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    sales_bill_id = db.Column(db.Integer, db.ForeignKey("sales_bills.id"), nullable=False)

    item_name = db.Column(db.String(100), nullable=False)
    item_code = db.Column(db.String(50), nullable=True)
    description = db.Column(db.Text, nullable=True)

    quantity = db.Column(db.Numeric(10, 3), nullable=False)
    unit = db.Column(db.String(20), nullable=False, default="pcs")
    rate = db.Column(db.Numeric(15, 2), nullable=False)
    tax_rate = db.Column(db.Numeric(5, 2), nullable=False, default=0)
    discount_rate = db.Column(db.Numeric(5, 2), nullable=False, default=0)

    amount = db.Column(db.Numeric(15, 2), nullable=False)
    discount_amount = db.Column(db.Numeric(15, 2), nullable=False, default=0)
    taxable_amount = db.Column(db.Numeric(15, 2), nullable=False)
    tax_amount = db.Column(db.Numeric(15, 2), nullable=False, default=0)
    line_total = db.Column(db.Numeric(15, 2), nullable=False)

    created_at = db.Column(db.DateTime, nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime, nullable=False, server_default=db.func.now(), onupdate=db.func.now())
    version_id = db.Column(db.Integer, nullable=False, default=1)

    sales_bill = db.relationship("SalesBill", backref=db.backref("items", lazy=True))
    __mapper_args__ = {"version_id_col": version_id}

    def to_record(self) -> dict:
        return {
            "id": self.id,
            "sales_bill_id": self.sales_bill_id,
            "item_name": self.item_name,
            "item_code": self.item_code,
            "description": self.description,
            "quantity": self.quantity,
            "unit": self.unit,
            "rate": self.rate,
            "tax_rate": self.tax_rate,
            "discount_rate": self.discount_rate,
            "amount": self.amount,
            "discount_amount": self.discount_amount,
            "taxable_amount": self.taxable_amount,
            "tax_amount": self.tax_amount,
            "line_total": self.line_total,
            "created_at": self.created_at,
            "updated_at": self.updated_at,
            "version_id": self.version_id,
        }
