from __future__ import annotations

from ..extensions import db
from backoffice.time_utils import to_utc_z


class Product(db.Model):
    """
    Product directory row.

    Directory CRUD lives outside the engine; the engine only reads prices and
    writes `quantity`. `quantity` is never negative after a committed unit of
    work and always equals the balance_after of the product's latest
    StockTransaction.
    """
    __tablename__ = "products"
    __table_args__ = (
        db.Index("ix_products_owner_name", "owner_id", "name"),
        db.Index("ix_products_owner_barcode", "owner_id", "barcode"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    owner_id = db.Column(db.String(64), nullable=False, index=True)

    name = db.Column(db.String(255), nullable=False)
    barcode = db.Column(db.String(64), nullable=True)

    quantity = db.Column(db.Integer, nullable=False, default=0)

    # Unit cost used for gross profit; sale price used when a sale line is opened
    purchase_price = db.Column(db.Numeric(18, 2), nullable=False, default=0)
    sale_price = db.Column(db.Numeric(18, 2), nullable=False, default=0)

    version_id = db.Column(db.Integer, nullable=False, default=1)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    __mapper_args__ = {"version_id_col": version_id}

    def __repr__(self) -> str:
        return f"<Product id={self.id} name={self.name!r} quantity={self.quantity}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "owner_id": self.owner_id,
            "name": self.name,
            "barcode": self.barcode,
            "quantity": self.quantity,
            "purchase_price": self.purchase_price,
            "sale_price": self.sale_price,
            "version_id": self.version_id,
            "created_at": to_utc_z(self.created_at),
        }


DIRECTION_IN = "IN"
DIRECTION_OUT = "OUT"


class StockTransaction(db.Model):
    """
    Append-only stock ledger record. Rows are never updated or deleted;
    corrections are new records with the opposite sign.
    """
    __tablename__ = "stock_transactions"
    __table_args__ = (
        db.Index("ix_stock_transactions_product_occurred", "product_id", "occurred_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    owner_id = db.Column(db.String(64), nullable=False, index=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)

    quantity_change = db.Column(db.Integer, nullable=False)
    direction = db.Column(db.String(8), nullable=False)  # IN | OUT
    reason = db.Column(db.String(255), nullable=False)

    # Product quantity immediately after this record was applied
    balance_after = db.Column(db.Integer, nullable=False)

    occurred_at = db.Column(db.DateTime(timezone=True), nullable=False, index=True)

    product = db.relationship("Product", backref=db.backref("stock_transactions", lazy="dynamic"))

    def __repr__(self) -> str:
        return (
            f"<StockTransaction id={self.id} product_id={self.product_id} "
            f"change={self.quantity_change} balance_after={self.balance_after}>"
        )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "product_id": self.product_id,
            "quantity_change": self.quantity_change,
            "direction": self.direction,
            "reason": self.reason,
            "balance_after": self.balance_after,
            "occurred_at": to_utc_z(self.occurred_at),
        }
