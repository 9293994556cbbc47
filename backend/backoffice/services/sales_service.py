"""
Sale settlement - Draft sales finalized against a payment method

Draft -> Completed is the only transition and Completed is terminal. Opening
a sale prices lines and checks stock but touches nothing; finalization
decrements stock through the ledger, snapshots unit cost for gross profit,
and charges open-account amounts to the customer, all in one unit of work.
"""

from __future__ import annotations

import uuid
from decimal import Decimal

from ..extensions import db
from ..models import Payment, Product, Sale, SaleLine, SaleMiscellaneous
from ..models.sales import DISCOUNT_AMOUNT, DISCOUNT_PERCENTAGE
from backoffice.time_utils import utcnow
from .account_service import adjust_customer_balance, get_customer
from .concurrency import lock_for_update, run_with_retry
from .errors import AlreadyCompletedError, InsufficientStockError, InvalidStateError, NotFoundError
from .money import HUNDRED, ZERO, money_sum, positive_amount, quantize_money, to_decimal
from .settlement import BUCKET_OPEN_ACCOUNT, resolve_bucket
from .stock_ledger_service import apply_adjustment, lock_products

REASON_SALE = "Sale:{id}"


def _get_sale(owner_id: str, sale_id: int, *, lock: bool = False) -> Sale:
    query = db.session.query(Sale).filter_by(id=sale_id, owner_id=owner_id)
    if lock:
        query = lock_for_update(query)
    sale = query.first()
    if not sale:
        raise NotFoundError("Sale not found", details={"sale_id": sale_id})
    return sale


def _parse_quantity(value, index: int | None = None) -> int:
    if isinstance(value, bool) or not isinstance(value, int) or value <= 0:
        details = {"line": index} if index is not None else {}
        raise InvalidStateError("quantity must be a positive integer", details=details)
    return value


def _validate_on_hand(owner_id: str, requested: dict[int, int]) -> dict[int, Product]:
    products = {
        p.id: p
        for p in db.session.query(Product)
        .filter(Product.owner_id == owner_id, Product.id.in_(list(requested)))
        .all()
    }
    missing = [pid for pid in requested if pid not in products]
    if missing:
        raise NotFoundError("Product not found", details={"product_ids": missing})

    insufficient = []
    for product_id, qty in requested.items():
        on_hand = products[product_id].quantity
        if on_hand < qty:
            insufficient.append({
                "product_id": product_id,
                "requested_quantity": qty,
                "on_hand": on_hand,
            })

    if insufficient:
        raise InsufficientStockError(
            "Insufficient stock for sale",
            details={"items": insufficient},
        )
    return products


def _discount_amount(discount_type: str | None, discount_value: Decimal | None, sub_total: Decimal) -> Decimal:
    if not discount_type:
        return ZERO
    if discount_type == DISCOUNT_PERCENTAGE:
        return quantize_money(sub_total * discount_value / HUNDRED)
    return quantize_money(discount_value)


def _validate_discount(discount_type, discount_value, sub_total: Decimal):
    if not discount_type:
        return None, None
    discount_type = str(discount_type).strip().upper()
    if discount_type not in (DISCOUNT_PERCENTAGE, DISCOUNT_AMOUNT):
        raise InvalidStateError("discount_type must be PERCENTAGE or AMOUNT", details={"discount_type": discount_type})
    value = to_decimal(discount_value, "discount_value")
    if value < 0:
        raise InvalidStateError("discount_value cannot be negative")
    if discount_type == DISCOUNT_PERCENTAGE and value > HUNDRED:
        raise InvalidStateError("Percentage discount cannot exceed 100", details={"discount_value": value})
    if discount_type == DISCOUNT_AMOUNT and value > sub_total:
        raise InvalidStateError(
            "Discount amount cannot exceed sale subtotal",
            details={"discount_value": value, "sub_total": sub_total},
        )
    return discount_type, value


def _recompute_totals(sale: Sale) -> None:
    sub_total = money_sum(line.line_total - (line.discount or ZERO) for line in sale.lines)
    sale.sub_total = sub_total
    sale.discount_amount = _discount_amount(sale.discount_type, sale.discount_value, sub_total)
    sale.miscellaneous_total = money_sum(item.amount for item in sale.miscellaneous)
    sale.total_amount = quantize_money(sub_total - sale.discount_amount + sale.miscellaneous_total)
    sale.total_quantity = sum(line.quantity for line in sale.lines)


def _build_line(product: Product, quantity: int, discount: Decimal) -> SaleLine:
    line_total = quantize_money(quantity * product.sale_price)
    if discount < 0 or discount > line_total:
        raise InvalidStateError(
            "Line discount must be between 0 and the line total",
            details={"product_id": product.id, "discount": discount},
        )
    return SaleLine(
        product_id=product.id,
        product_name=product.name,
        quantity=quantity,
        unit_price=product.sale_price,
        discount=discount,
        line_total=line_total,
    )


def open_sale(
    owner_id: str,
    lines,
    *,
    customer_id: int | None = None,
    discount_type: str | None = None,
    discount_value=None,
    miscellaneous=None,
) -> Sale:
    """
    Create a draft sale priced at current sale prices.

    Every product must exist and have enough stock for the quantity
    requested across all lines; otherwise nothing is written and the
    offending products are listed in the error details. Stock is not touched.
    """
    if not lines:
        raise InvalidStateError("Sale must have at least one line")

    parsed = []
    requested: dict[int, int] = {}
    for index, raw in enumerate(lines):
        product_id = raw.get("product_id") if isinstance(raw, dict) else None
        if isinstance(product_id, bool) or not isinstance(product_id, int):
            raise InvalidStateError("product_id must be an integer", details={"line": index})
        quantity = _parse_quantity(raw.get("quantity"), index)
        discount = quantize_money(to_decimal(raw.get("discount", 0), "discount", {"line": index}))
        parsed.append((product_id, quantity, discount))
        requested[product_id] = requested.get(product_id, 0) + quantity

    misc_items = []
    for index, item in enumerate(miscellaneous or []):
        if not isinstance(item, dict):
            raise InvalidStateError("Miscellaneous item must be an object", details={"item": index})
        description = (item.get("description") or "").strip()
        if not description:
            raise InvalidStateError("Miscellaneous item needs a description", details={"item": index})
        misc_items.append((description, positive_amount(item.get("amount"), "amount", {"item": index})))

    def _op():
        if customer_id is not None:
            get_customer(owner_id, customer_id)
        products = _validate_on_hand(owner_id, requested)

        sale = Sale(
            owner_id=owner_id,
            sale_code=f"S-{uuid.uuid4().hex[:10].upper()}",
            customer_id=customer_id,
            is_completed=False,
            created_at=utcnow(),
        )
        for product_id, quantity, discount in parsed:
            sale.lines.append(_build_line(products[product_id], quantity, discount))
        for description, amount in misc_items:
            sale.miscellaneous.append(SaleMiscellaneous(description=description, amount=amount))

        gross = money_sum(line.line_total - line.discount for line in sale.lines)
        sale.discount_type, sale.discount_value = _validate_discount(discount_type, discount_value, gross)
        _recompute_totals(sale)

        db.session.add(sale)
        db.session.commit()
        return sale

    return run_with_retry(_op)


def add_line(owner_id: str, sale_id: int, product_id: int, quantity: int, discount=0) -> SaleLine:
    """Add a line to a draft sale and recompute its totals."""
    quantity = _parse_quantity(quantity)
    discount = quantize_money(to_decimal(discount, "discount"))

    def _op():
        sale = _get_sale(owner_id, sale_id, lock=True)
        if sale.is_completed:
            raise AlreadyCompletedError("Sale is already completed", details={"sale_id": sale_id})

        already = sum(line.quantity for line in sale.lines if line.product_id == product_id)
        products = _validate_on_hand(owner_id, {product_id: already + quantity})

        line = _build_line(products[product_id], quantity, discount)
        sale.lines.append(line)
        _recompute_totals(sale)

        db.session.commit()
        return line

    return run_with_retry(_op)


def _complete_locked(owner_id: str, sale: Sale) -> None:
    """Decrement stock for every line, freeze unit costs, mark completed. Does not commit."""
    products = lock_products(owner_id, [line.product_id for line in sale.lines])
    reason = REASON_SALE.format(id=sale.id)
    for line in sale.lines:
        apply_adjustment(owner_id, line.product_id, -line.quantity, reason)
        line.unit_cost = products[line.product_id].purchase_price

    sale.is_completed = True
    sale.completed_at = utcnow()


def _lock_draft(owner_id: str, sale_id: int) -> Sale:
    sale = _get_sale(owner_id, sale_id, lock=True)
    if sale.is_completed:
        raise AlreadyCompletedError("Sale is already completed", details={"sale_id": sale_id})
    if not sale.lines:
        raise InvalidStateError("Cannot finalize a sale with no lines", details={"sale_id": sale_id})
    return sale


def _charge_open_account(owner_id: str, sale: Sale, amount: Decimal) -> None:
    if sale.customer_id is None:
        raise InvalidStateError(
            "Open account settlement requires a customer",
            details={"sale_id": sale.id},
        )
    adjust_customer_balance(owner_id, sale.customer_id, amount, enforce_limit=True)


def finalize_sale(owner_id: str, sale_id: int, payment_method: str) -> Sale:
    """
    Settle a draft sale with a single payment method.

    OPEN_ACCOUNT sales need a customer and are charged to their balance
    (subject to the open-account limit).

    Raises:
        NotFoundError, AlreadyCompletedError, InsufficientStockError,
        InvalidStateError
    """
    if not payment_method:
        raise InvalidStateError("payment_method is required")
    bucket = resolve_bucket(payment_method)

    def _op():
        sale = _lock_draft(owner_id, sale_id)

        if bucket == BUCKET_OPEN_ACCOUNT:
            _charge_open_account(owner_id, sale, sale.total_amount)

        sale.payment_method = payment_method
        sale.settlement_bucket = bucket
        sale.is_split = False
        _complete_locked(owner_id, sale)

        db.session.commit()
        return sale

    return run_with_retry(_op)


def finalize_split_sale(owner_id: str, sale_id: int, portions) -> Sale:
    """
    Settle a draft sale across several payment methods.

    portions: [{payment_method, amount}]; amounts must add up to the sale
    total exactly. Each portion becomes a Payment linked to the sale. An
    OPEN_ACCOUNT portion is charged to the customer's balance.
    """
    if not portions:
        raise InvalidStateError("Split settlement needs at least one portion")

    parsed = []
    for index, portion in enumerate(portions):
        method = portion.get("payment_method") if isinstance(portion, dict) else None
        if not method:
            raise InvalidStateError("payment_method is required", details={"portion": index})
        amount = positive_amount(portion.get("amount"), "amount", {"portion": index})
        parsed.append((method, resolve_bucket(method), amount))

    def _op():
        sale = _lock_draft(owner_id, sale_id)

        portion_total = money_sum(amount for _, _, amount in parsed)
        if portion_total != quantize_money(sale.total_amount):
            raise InvalidStateError(
                "Split payments must add up to the sale total",
                details={"sale_id": sale.id, "total_amount": sale.total_amount, "payments_total": portion_total},
            )

        open_account = money_sum(amount for _, bucket, amount in parsed if bucket == BUCKET_OPEN_ACCOUNT)
        if open_account > 0:
            _charge_open_account(owner_id, sale, open_account)

        now = utcnow()
        for method, bucket, amount in parsed:
            sale.payments.append(Payment(
                owner_id=owner_id,
                customer_id=sale.customer_id,
                amount=amount,
                payment_date=now,
                payment_method=method,
                settlement_bucket=bucket,
                note=method,
            ))

        sale.is_split = True
        sale.payment_method = None
        sale.settlement_bucket = None
        _complete_locked(owner_id, sale)

        db.session.commit()
        return sale

    return run_with_retry(_op)


def get_sale(owner_id: str, sale_id: int) -> Sale:
    return _get_sale(owner_id, sale_id)


def list_sales(owner_id: str, customer_id: int | None = None, completed: bool | None = None) -> list[Sale]:
    query = db.session.query(Sale).filter_by(owner_id=owner_id)
    if customer_id is not None:
        query = query.filter(Sale.customer_id == customer_id)
    if completed is not None:
        query = query.filter(Sale.is_completed.is_(completed))
    return query.order_by(Sale.created_at.desc(), Sale.id.desc()).all()
