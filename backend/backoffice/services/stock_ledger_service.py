# Overview: Stock ledger; the only writer of Product.quantity, appending one record per change.

"""
Stock ledger.

INVARIANTS:
- Product.quantity >= 0 after every committed unit of work.
- Every quantity change appends exactly one StockTransaction whose
  balance_after equals the product quantity right after it was applied.
- Records are never updated or deleted. Corrections (invoice update/delete)
  are new records with the opposite sign.

apply_adjustment() is the non-committing core used inside the invoice and
sale units of work; adjust_stock() is the standalone operation and commits.
"""

from __future__ import annotations

from datetime import datetime

from ..extensions import db
from ..models import Product, StockTransaction
from ..models.inventory import DIRECTION_IN, DIRECTION_OUT
from backoffice.time_utils import utcnow
from .concurrency import lock_for_update, run_with_retry
from .errors import InsufficientStockError, InvalidStateError, NotFoundError


def _get_product(owner_id: str, product_id: int, *, lock: bool = False) -> Product:
    query = db.session.query(Product).filter_by(id=product_id, owner_id=owner_id)
    if lock:
        query = lock_for_update(query)
    product = query.first()
    if not product:
        raise NotFoundError("Product not found", details={"product_id": product_id})
    return product


def lock_products(owner_id: str, product_ids) -> dict[int, Product]:
    """
    Lock every product touched by a multi-line unit of work.

    Rows are locked in ascending id order so two writers touching the same
    products cannot deadlock each other.
    """
    ids = sorted(set(product_ids))
    if not ids:
        return {}
    query = (
        db.session.query(Product)
        .filter(Product.owner_id == owner_id, Product.id.in_(ids))
        .order_by(Product.id.asc())
    )
    products = {p.id: p for p in lock_for_update(query).all()}
    missing = [pid for pid in ids if pid not in products]
    if missing:
        raise NotFoundError("Product not found", details={"product_ids": missing})
    return products


def apply_adjustment(
    owner_id: str,
    product_id: int,
    delta: int,
    reason: str,
    *,
    occurred_at: datetime | None = None,
    allow_negative: bool = False,
) -> StockTransaction:
    """
    Apply a signed quantity change and append its ledger record. Does not commit.

    allow_negative lets a caller that has already checked the final quantity
    of its whole unit of work pass through an intermediate step below zero.
    """
    if isinstance(delta, bool) or not isinstance(delta, int):
        raise InvalidStateError("quantity change must be an integer", details={"product_id": product_id})
    if delta == 0:
        raise InvalidStateError("quantity change must be non-zero", details={"product_id": product_id})

    product = _get_product(owner_id, product_id, lock=True)
    new_quantity = product.quantity + delta
    if new_quantity < 0 and not allow_negative:
        raise InsufficientStockError(
            "Cannot decrease stock below zero",
            details={
                "product_id": product_id,
                "on_hand": product.quantity,
                "requested_change": delta,
            },
        )

    product.quantity = new_quantity
    record = StockTransaction(
        owner_id=owner_id,
        product_id=product_id,
        quantity_change=delta,
        direction=DIRECTION_IN if delta > 0 else DIRECTION_OUT,
        reason=reason,
        balance_after=new_quantity,
        occurred_at=occurred_at or utcnow(),
    )
    db.session.add(record)
    return record


def adjust_stock(owner_id: str, product_id: int, delta: int, reason: str) -> StockTransaction:
    """
    Manually adjust a product's stock by a signed delta.

    Raises:
        NotFoundError: product does not exist for this owner
        InsufficientStockError: the change would make on-hand negative
        InvalidStateError: delta is zero or not an integer
        ConflictError: concurrent writers kept colliding
    """
    def _op():
        record = apply_adjustment(owner_id, product_id, delta, reason or "Manual adjustment")
        db.session.commit()
        return record

    return run_with_retry(_op)


def get_stock_history(owner_id: str, product_id: int, limit: int | None = None) -> list[StockTransaction]:
    """Ledger records for a product, newest first."""
    _get_product(owner_id, product_id)
    query = (
        db.session.query(StockTransaction)
        .filter_by(owner_id=owner_id, product_id=product_id)
        .order_by(StockTransaction.occurred_at.desc(), StockTransaction.id.desc())
    )
    if limit:
        query = query.limit(limit)
    return query.all()


def get_stock_level(owner_id: str, product_id: int) -> dict:
    """On-hand quantity next to the balance of the latest ledger record."""
    product = _get_product(owner_id, product_id)
    latest = (
        db.session.query(StockTransaction)
        .filter_by(owner_id=owner_id, product_id=product_id)
        .order_by(StockTransaction.occurred_at.desc(), StockTransaction.id.desc())
        .first()
    )
    ledger_balance = latest.balance_after if latest else None
    return {
        "product_id": product.id,
        "quantity": product.quantity,
        "ledger_balance": ledger_balance,
        "in_sync": ledger_balance is None or ledger_balance == product.quantity,
    }
