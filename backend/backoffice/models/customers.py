from __future__ import annotations

from ..extensions import db
from backoffice.time_utils import to_utc_z


class Customer(db.Model):
    """
    Customer directory row.

    `balance` is a cached accelerator: it is adjusted in the same unit of work
    as every debt, debt collection and open-account sale, and can always be
    recomputed from those events (see reconciliation_service).
    """
    __tablename__ = "customers"
    __table_args__ = (
        db.Index("ix_customers_owner_name", "owner_id", "name"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    owner_id = db.Column(db.String(64), nullable=False, index=True)
    name = db.Column(db.String(255), nullable=False)

    balance = db.Column(db.Numeric(18, 2), nullable=False, default=0)
    # None means no limit on open-account sales
    open_account_limit = db.Column(db.Numeric(18, 2), nullable=True)

    version_id = db.Column(db.Integer, nullable=False, default=1)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    __mapper_args__ = {"version_id_col": version_id}

    def __repr__(self) -> str:
        return f"<Customer id={self.id} name={self.name!r} balance={self.balance}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "balance": self.balance,
            "open_account_limit": self.open_account_limit,
            "created_at": to_utc_z(self.created_at),
        }


class Debt(db.Model):
    """Direct charge to a customer account. Immutable once created."""
    __tablename__ = "debts"
    __table_args__ = (
        db.Index("ix_debts_customer_date", "customer_id", "debt_date"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    owner_id = db.Column(db.String(64), nullable=False, index=True)
    customer_id = db.Column(db.Integer, db.ForeignKey("customers.id"), nullable=False)

    amount = db.Column(db.Numeric(18, 2), nullable=False)
    debt_date = db.Column(db.DateTime(timezone=True), nullable=False)
    note = db.Column(db.String(255), nullable=True)

    customer = db.relationship("Customer", backref=db.backref("debts", lazy=True))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "customer_id": self.customer_id,
            "amount": self.amount,
            "debt_date": to_utc_z(self.debt_date),
            "note": self.note,
        }


class Payment(db.Model):
    """
    Money received.

    sale_id NULL: a debt collection against the customer's account.
    sale_id set: one portion of a split-settled sale (customer may be NULL).
    Immutable once created.
    """
    __tablename__ = "payments"
    __table_args__ = (
        db.Index("ix_payments_customer_date", "customer_id", "payment_date"),
        db.Index("ix_payments_owner_date", "owner_id", "payment_date"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    owner_id = db.Column(db.String(64), nullable=False, index=True)
    customer_id = db.Column(db.Integer, db.ForeignKey("customers.id"), nullable=True)
    sale_id = db.Column(db.Integer, db.ForeignKey("sales.id"), nullable=True, index=True)

    amount = db.Column(db.Numeric(18, 2), nullable=False)
    payment_date = db.Column(db.DateTime(timezone=True), nullable=False)

    payment_method = db.Column(db.String(64), nullable=False)
    settlement_bucket = db.Column(db.String(16), nullable=False)
    note = db.Column(db.String(255), nullable=True)

    customer = db.relationship("Customer", backref=db.backref("payments", lazy=True))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "customer_id": self.customer_id,
            "sale_id": self.sale_id,
            "amount": self.amount,
            "payment_date": to_utc_z(self.payment_date),
            "payment_method": self.payment_method,
            "settlement_bucket": self.settlement_bucket,
            "note": self.note,
        }
