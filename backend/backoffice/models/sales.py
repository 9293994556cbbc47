from __future__ import annotations

from ..extensions import db
from backoffice.time_utils import to_utc_z

DISCOUNT_PERCENTAGE = "PERCENTAGE"
DISCOUNT_AMOUNT = "AMOUNT"


class Sale(db.Model):
    """
    Sale document. Draft until finalized; Completed is terminal.

    total_amount = sub_total - discount_amount + miscellaneous_total
    """
    __tablename__ = "sales"
    __table_args__ = (
        db.Index("ix_sales_owner_completed", "owner_id", "is_completed", "completed_at"),
        db.Index("ix_sales_customer", "customer_id"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    owner_id = db.Column(db.String(64), nullable=False, index=True)
    sale_code = db.Column(db.String(64), nullable=False)
    customer_id = db.Column(db.Integer, db.ForeignKey("customers.id"), nullable=True)

    is_completed = db.Column(db.Boolean, nullable=False, default=False)
    is_split = db.Column(db.Boolean, nullable=False, default=False)

    # Assigned only at finalization; split sales keep their methods on Payment rows
    payment_method = db.Column(db.String(64), nullable=True)
    settlement_bucket = db.Column(db.String(16), nullable=True)

    sub_total = db.Column(db.Numeric(18, 2), nullable=False, default=0)
    discount_type = db.Column(db.String(16), nullable=True)  # PERCENTAGE | AMOUNT
    discount_value = db.Column(db.Numeric(18, 2), nullable=True)
    discount_amount = db.Column(db.Numeric(18, 2), nullable=False, default=0)
    miscellaneous_total = db.Column(db.Numeric(18, 2), nullable=False, default=0)
    total_amount = db.Column(db.Numeric(18, 2), nullable=False, default=0)
    total_quantity = db.Column(db.Integer, nullable=False, default=0)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False)
    completed_at = db.Column(db.DateTime(timezone=True), nullable=True, index=True)

    version_id = db.Column(db.Integer, nullable=False, default=1)

    customer = db.relationship("Customer", backref=db.backref("sales", lazy=True))
    lines = db.relationship(
        "SaleLine", backref="sale", cascade="all, delete-orphan", order_by="SaleLine.id"
    )
    miscellaneous = db.relationship(
        "SaleMiscellaneous", backref="sale", cascade="all, delete-orphan", order_by="SaleMiscellaneous.id"
    )
    payments = db.relationship("Payment", backref="sale", lazy=True, order_by="Payment.id")

    __mapper_args__ = {"version_id_col": version_id}

    def __repr__(self) -> str:
        return f"<Sale id={self.id} code={self.sale_code!r} completed={self.is_completed}>"

    def to_dict(self, include_lines: bool = False) -> dict:
        data = {
            "id": self.id,
            "sale_code": self.sale_code,
            "customer_id": self.customer_id,
            "is_completed": self.is_completed,
            "is_split": self.is_split,
            "payment_method": self.payment_method,
            "settlement_bucket": self.settlement_bucket,
            "sub_total": self.sub_total,
            "discount_type": self.discount_type,
            "discount_value": self.discount_value,
            "discount_amount": self.discount_amount,
            "miscellaneous_total": self.miscellaneous_total,
            "total_amount": self.total_amount,
            "total_quantity": self.total_quantity,
            "created_at": to_utc_z(self.created_at),
            "completed_at": to_utc_z(self.completed_at),
        }
        if include_lines:
            data["lines"] = [line.to_dict() for line in self.lines]
            data["miscellaneous"] = [item.to_dict() for item in self.miscellaneous]
            data["payments"] = [p.to_dict() for p in self.payments]
        return data


class SaleLine(db.Model):
    __tablename__ = "sale_lines"
    __table_args__ = (
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    sale_id = db.Column(db.Integer, db.ForeignKey("sales.id"), nullable=False, index=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)
    product_name = db.Column(db.String(255), nullable=True)

    quantity = db.Column(db.Integer, nullable=False)
    unit_price = db.Column(db.Numeric(18, 2), nullable=False)
    discount = db.Column(db.Numeric(18, 2), nullable=False, default=0)
    line_total = db.Column(db.Numeric(18, 2), nullable=False)

    # Product purchase price frozen at finalization; drives gross profit
    unit_cost = db.Column(db.Numeric(18, 2), nullable=True)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "sale_id": self.sale_id,
            "product_id": self.product_id,
            "product_name": self.product_name,
            "quantity": self.quantity,
            "unit_price": self.unit_price,
            "discount": self.discount,
            "line_total": self.line_total,
            "unit_cost": self.unit_cost,
        }


class SaleMiscellaneous(db.Model):
    """Free-form charge on a sale (delivery, packaging...), not tied to stock."""
    __tablename__ = "sale_miscellaneous"
    __table_args__ = (
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    sale_id = db.Column(db.Integer, db.ForeignKey("sales.id"), nullable=False, index=True)
    description = db.Column(db.String(255), nullable=False)
    amount = db.Column(db.Numeric(18, 2), nullable=False)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "description": self.description,
            "amount": self.amount,
        }
