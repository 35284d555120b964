from __future__ import annotations

from ..extensions import db


class Customer(db.Model):
    """
    Customer master data.

    WHY: Bills and collections reference customers; customers never own them.
    outstanding_balance is a denormalized aggregate of the customer's bill
    balances, refreshed in the same transaction as every ledger mutation.
    """
    __tablename__ = "customers"
    __table_args__ = (
        db.UniqueConstraint("customer_code", name="uq_customers_customer_code"),
        db.UniqueConstraint("email", name="uq_customers_email"),
        db.Index("ix_customers_status", "status"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    customer_code = db.Column(db.String(20), nullable=False)
    name = db.Column(db.String(100), nullable=False)
    email = db.Column(db.String(100), nullable=True)
    phone = db.Column(db.String(15), nullable=True)
    address = db.Column(db.Text, nullable=True)
    city = db.Column(db.String(50), nullable=True)
    state = db.Column(db.String(50), nullable=True)
    pincode = db.Column(db.String(10), nullable=True)
    gst_number = db.Column(db.String(15), nullable=True)

    credit_limit = db.Column(db.Numeric(15, 2), nullable=False, default=0)
    outstanding_balance = db.Column(db.Numeric(15, 2), nullable=False, default=0)

    status = db.Column(db.String(16), nullable=False, default="active")  # active, inactive, blocked

    created_at = db.Column(db.DateTime, nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime, nullable=False, server_default=db.func.now(), onupdate=db.func.now())
    version_id = db.Column(db.Integer, nullable=False, default=1)

    __mapper_args__ = {"version_id_col": version_id}

    def to_record(self) -> dict:
        return {
            "id": self.id,
            "customer_code": self.customer_code,
            "name": self.name,
            "email": self.email,
            "phone": self.phone,
            "address": self.address,
            "city": self.city,
            "state": self.state,
            "pincode": self.pincode,
            "gst_number": self.gst_number,
            "credit_limit": self.credit_limit,
            "outstanding_balance": self.outstanding_balance,
            "status": self.status,
            "created_at": self.created_at,
            "updated_at": self.updated_at,
            "version_id": self.version_id,
        }
