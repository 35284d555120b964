from __future__ import annotations

from ..extensions import db


class CollectionBill(db.Model):
    """
    Money received from a customer, optionally against one sales bill.

    INVARIANT: for every bill, the sum of collection_amount over its linked
    collections equals the bill's paid_amount. The collection service applies
    and reverses the amount on the bill ledger in the same transaction.

    PAYMENT METHODS: cash, cheque, bank_transfer, upi, card, other
    """
    __tablename__ = "collection_bills"
    __table_args__ = (
        db.UniqueConstraint("collection_number", name="uq_collection_bills_collection_number"),
        db.Index("ix_collection_bills_customer_id", "customer_id"),
        db.Index("ix_collection_bills_sales_bill_id", "sales_bill_id"),
        db.Index("ix_collection_bills_collection_date", "collection_date"),
        db.Index("ix_collection_bills_payment_method", "payment_method"),
        db.Index("ix_collection_bills_collection_status", "collection_status"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    collection_number = db.Column(db.String(20), nullable=False)
    customer_id = db.Column(db.Integer, db.ForeignKey("customers.id"), nullable=False)
    sales_bill_id = db.Column(db.Integer, db.ForeignKey("sales_bills.id"), nullable=True)

    collection_date = db.Column(db.Date, nullable=False)
    collection_amount = db.Column(db.Numeric(15, 2), nullable=False)
    payment_method = db.Column(db.String(20), nullable=False, default="cash")

    # Cheque number, transaction ID, etc.
    reference_number = db.Column(db.String(50), nullable=True)
    bank_name = db.Column(db.String(100), nullable=True)
    cheque_date = db.Column(db.Date, nullable=True)

    collection_status = db.Column(db.String(16), nullable=False, default="pending")  # pending, cleared, bounced, cancelled
    notes = db.Column(db.Text, nullable=True)
    collected_by = db.Column(db.String(100), nullable=True)

    created_at = db.Column(db.DateTime, nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime, nullable=False, server_default=db.func.now(), onupdate=db.func.now())
    version_id = db.Column(db.Integer, nullable=False, default=1)

    customer = db.relationship("Customer", backref=db.backref("collection_bills", lazy=True))
    sales_bill = db.relationship("SalesBill", backref=db.backref("collections", lazy=True))
    __mapper_args__ = {"version_id_col": version_id}

    def to_record(self) -> dict:
        return {
            "id": self.id,
            "collection_number": self.collection_number,
            "customer_id": self.customer_id,
            "sales_bill_id": self.sales_bill_id,
            "collection_date": self.collection_date,
            "collection_amount": self.collection_amount,
            "payment_method": self.payment_method,
            "reference_number": self.reference_number,
            "bank_name": self.bank_name,
            "cheque_date": self.cheque_date,
            "collection_status": self.collection_status,
            "notes": self.notes,
            "collected_by": self.collected_by,
            "created_at": self.created_at,
            "updated_at": self.updated_at,
            "version_id": self.version_id,
        }
