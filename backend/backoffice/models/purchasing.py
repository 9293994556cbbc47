from __future__ import annotations

from ..extensions import db
from backoffice.time_utils import to_utc_z


class Company(db.Model):
    """Supplier directory row. Balance is never stored; it is derived from invoices and transactions."""
    __tablename__ = "companies"
    __table_args__ = (
        db.Index("ix_companies_owner_name", "owner_id", "name"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    owner_id = db.Column(db.String(64), nullable=False, index=True)
    name = db.Column(db.String(255), nullable=False)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "created_at": to_utc_z(self.created_at),
        }


class PurchaseInvoice(db.Model):
    """
    Supplier invoice. Header totals are always the sum of the current lines.
    """
    __tablename__ = "purchase_invoices"
    __table_args__ = (
        db.Index("ix_purchase_invoices_owner_date", "owner_id", "invoice_date"),
        db.Index("ix_purchase_invoices_company_date", "company_id", "invoice_date"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    owner_id = db.Column(db.String(64), nullable=False, index=True)
    company_id = db.Column(db.Integer, db.ForeignKey("companies.id"), nullable=False)

    invoice_number = db.Column(db.String(64), nullable=False)
    invoice_date = db.Column(db.DateTime(timezone=True), nullable=False)

    # Optional; a CASH invoice counts as a cash register outlay
    payment_method = db.Column(db.String(64), nullable=True)
    settlement_bucket = db.Column(db.String(16), nullable=True)

    total_amount = db.Column(db.Numeric(18, 2), nullable=False, default=0)
    total_discount = db.Column(db.Numeric(18, 2), nullable=False, default=0)
    total_tax = db.Column(db.Numeric(18, 2), nullable=False, default=0)
    grand_total = db.Column(db.Numeric(18, 2), nullable=False, default=0)

    version_id = db.Column(db.Integer, nullable=False, default=1)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    company = db.relationship("Company", backref=db.backref("purchase_invoices", lazy=True))
    lines = db.relationship(
        "PurchaseInvoiceLine",
        backref="invoice",
        cascade="all, delete-orphan",
        order_by="PurchaseInvoiceLine.id",
    )

    __mapper_args__ = {"version_id_col": version_id}

    def __repr__(self) -> str:
        return f"<PurchaseInvoice id={self.id} number={self.invoice_number!r} grand_total={self.grand_total}>"

    def to_dict(self, include_lines: bool = False) -> dict:
        data = {
            "id": self.id,
            "company_id": self.company_id,
            "invoice_number": self.invoice_number,
            "invoice_date": to_utc_z(self.invoice_date),
            "payment_method": self.payment_method,
            "settlement_bucket": self.settlement_bucket,
            "total_amount": self.total_amount,
            "total_discount": self.total_discount,
            "total_tax": self.total_tax,
            "grand_total": self.grand_total,
        }
        if include_lines:
            data["lines"] = [line.to_dict() for line in self.lines]
        return data


class PurchaseInvoiceLine(db.Model):
    __tablename__ = "purchase_invoice_lines"
    __table_args__ = (
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    invoice_id = db.Column(db.Integer, db.ForeignKey("purchase_invoices.id"), nullable=False, index=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)

    # Snapshots of the product at invoice time
    product_name = db.Column(db.String(255), nullable=True)
    barcode = db.Column(db.String(64), nullable=True)

    quantity = db.Column(db.Integer, nullable=False)
    unit_price = db.Column(db.Numeric(18, 2), nullable=False)
    discount_rate_1 = db.Column(db.Numeric(5, 2), nullable=False, default=0)
    discount_rate_2 = db.Column(db.Numeric(5, 2), nullable=False, default=0)
    tax_rate = db.Column(db.Numeric(5, 2), nullable=False, default=0)

    line_total = db.Column(db.Numeric(18, 2), nullable=False)
    discount_amount = db.Column(db.Numeric(18, 2), nullable=False)
    tax_amount = db.Column(db.Numeric(18, 2), nullable=False)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "invoice_id": self.invoice_id,
            "product_id": self.product_id,
            "product_name": self.product_name,
            "barcode": self.barcode,
            "quantity": self.quantity,
            "unit_price": self.unit_price,
            "discount_rate_1": self.discount_rate_1,
            "discount_rate_2": self.discount_rate_2,
            "tax_rate": self.tax_rate,
            "line_total": self.line_total,
            "discount_amount": self.discount_amount,
            "tax_amount": self.tax_amount,
        }


COMPANY_TX_DEBT = "DEBT"
COMPANY_TX_PAYMENT = "PAYMENT"


class CompanyTransaction(db.Model):
    """Manual supplier debt (DEBT, increases what we owe) or payment (PAYMENT, decreases it)."""
    __tablename__ = "company_transactions"
    __table_args__ = (
        db.Index("ix_company_transactions_company_date", "company_id", "transaction_date"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    owner_id = db.Column(db.String(64), nullable=False, index=True)
    company_id = db.Column(db.Integer, db.ForeignKey("companies.id"), nullable=False)

    type = db.Column(db.String(16), nullable=False)  # DEBT | PAYMENT
    amount = db.Column(db.Numeric(18, 2), nullable=False)
    transaction_date = db.Column(db.DateTime(timezone=True), nullable=False)
    description = db.Column(db.String(255), nullable=True)

    payment_method = db.Column(db.String(64), nullable=True)
    settlement_bucket = db.Column(db.String(16), nullable=True)

    company = db.relationship("Company", backref=db.backref("transactions", lazy=True))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "company_id": self.company_id,
            "type": self.type,
            "amount": self.amount,
            "transaction_date": to_utc_z(self.transaction_date),
            "description": self.description,
            "payment_method": self.payment_method,
            "settlement_bucket": self.settlement_bucket,
        }
