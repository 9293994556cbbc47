from __future__ import annotations

from ..extensions import db
from backoffice.time_utils import to_utc_z


class _CashRegisterEntry:
    """Columns shared by incomes and expenses."""

    id = db.Column(db.Integer, primary_key=True)
    owner_id = db.Column(db.String(64), nullable=False, index=True)

    amount = db.Column(db.Numeric(18, 2), nullable=False)
    description = db.Column(db.String(255), nullable=True)
    category = db.Column(db.String(64), nullable=True)

    payment_method = db.Column(db.String(64), nullable=False)
    settlement_bucket = db.Column(db.String(16), nullable=False)

    occurred_at = db.Column(db.DateTime(timezone=True), nullable=False, index=True)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "amount": self.amount,
            "description": self.description,
            "category": self.category,
            "payment_method": self.payment_method,
            "settlement_bucket": self.settlement_bucket,
            "occurred_at": to_utc_z(self.occurred_at),
        }


class Income(_CashRegisterEntry, db.Model):
    __tablename__ = "incomes"
    __table_args__ = ({"sqlite_autoincrement": True},)


class Expense(_CashRegisterEntry, db.Model):
    __tablename__ = "expenses"
    __table_args__ = ({"sqlite_autoincrement": True},)
