# Overview: Purchase invoices; line amount math, and atomic create/update/delete against the stock ledger.

"""
Purchase invoice processing.

Line math (two compounding discounts, tax on the discounted amount):

    line_total = quantity * unit_price
    d1         = line_total * discount_rate_1 / 100
    d2         = (line_total - d1) * discount_rate_2 / 100
    net        = line_total - d1 - d2
    tax        = net * tax_rate / 100
    grand     += net + tax

Amounts are rounded half-up to cents per line; header totals are sums of
the rounded line values so they always agree with the stored lines.

Every unit of work here is all-or-nothing: a failure on any line (unknown
product, a reversal that would drive stock negative) rolls back the whole
invoice, including ledger records already appended for earlier lines.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal

from ..extensions import db
from ..models import PurchaseInvoice, PurchaseInvoiceLine
from backoffice.time_utils import utcnow
from .account_service import get_company
from .concurrency import lock_for_update, run_with_retry
from .errors import InsufficientStockError, InvalidStateError, NotFoundError
from .money import HUNDRED, ZERO, quantize_money, to_decimal
from .settlement import resolve_bucket
from .stock_ledger_service import apply_adjustment, lock_products

REASON_CREATE = "PurchaseInvoice:{id}"
REASON_UPDATE_REVERSAL = "InvoiceUpdateReversal:{id}"
REASON_UPDATE = "PurchaseInvoiceUpdate:{id}"
REASON_DELETE = "PurchaseInvoiceDelete:{id}"


@dataclass(frozen=True)
class LineAmounts:
    line_total: Decimal
    discount: Decimal
    net: Decimal
    tax: Decimal

    @property
    def grand_total(self) -> Decimal:
        return self.net + self.tax


@dataclass(frozen=True)
class InvoiceLineInput:
    product_id: int
    quantity: int
    unit_price: Decimal
    discount_rate_1: Decimal
    discount_rate_2: Decimal
    tax_rate: Decimal


def compute_line_amounts(
    quantity: int,
    unit_price,
    discount_rate_1=0,
    discount_rate_2=0,
    tax_rate=0,
) -> LineAmounts:
    unit_price = Decimal(unit_price)
    r1 = Decimal(discount_rate_1)
    r2 = Decimal(discount_rate_2)
    tr = Decimal(tax_rate)

    line_total = quantity * unit_price
    d1 = line_total * r1 / HUNDRED
    after_first = line_total - d1
    d2 = after_first * r2 / HUNDRED
    net = after_first - d2
    tax = net * tr / HUNDRED

    line_total = quantize_money(line_total)
    discount = quantize_money(d1 + d2)
    return LineAmounts(
        line_total=line_total,
        discount=discount,
        net=line_total - discount,
        tax=quantize_money(tax),
    )


def _parse_rate(value, field: str, index: int, *, upper_bound: bool = True) -> Decimal:
    details = {"line": index}
    if value is None:
        return Decimal("0")
    rate = to_decimal(value, field, details)
    if rate < 0 or (upper_bound and rate > HUNDRED):
        bounds = "between 0 and 100" if upper_bound else "zero or greater"
        raise InvalidStateError(f"{field} must be {bounds}", details=dict(details, field=field))
    return rate


def parse_invoice_lines(lines) -> list[InvoiceLineInput]:
    if not lines:
        raise InvalidStateError("Invoice must have at least one line")

    parsed = []
    for index, raw in enumerate(lines):
        if not isinstance(raw, dict):
            raise InvalidStateError("Invoice line must be an object", details={"line": index})

        product_id = raw.get("product_id")
        if isinstance(product_id, bool) or not isinstance(product_id, int):
            raise InvalidStateError("product_id must be an integer", details={"line": index})

        quantity = raw.get("quantity")
        if isinstance(quantity, bool) or not isinstance(quantity, int) or quantity <= 0:
            raise InvalidStateError(
                "quantity must be a positive integer",
                details={"line": index, "product_id": product_id},
            )

        unit_price = to_decimal(raw.get("unit_price"), "unit_price", {"line": index})
        if unit_price < 0:
            raise InvalidStateError("unit_price cannot be negative", details={"line": index})

        parsed.append(InvoiceLineInput(
            product_id=product_id,
            quantity=quantity,
            unit_price=unit_price,
            discount_rate_1=_parse_rate(raw.get("discount_rate_1"), "discount_rate_1", index),
            discount_rate_2=_parse_rate(raw.get("discount_rate_2"), "discount_rate_2", index),
            tax_rate=_parse_rate(raw.get("tax_rate"), "tax_rate", index, upper_bound=False),
        ))
    return parsed


def _get_invoice(owner_id: str, invoice_id: int, *, lock: bool = False) -> PurchaseInvoice:
    query = db.session.query(PurchaseInvoice).filter_by(id=invoice_id, owner_id=owner_id)
    if lock:
        query = lock_for_update(query)
    invoice = query.first()
    if not invoice:
        raise NotFoundError("Purchase invoice not found", details={"invoice_id": invoice_id})
    return invoice


def _apply_lines(
    owner_id: str,
    invoice: PurchaseInvoice,
    lines: list[InvoiceLineInput],
    products,
    reason: str,
    *,
    allow_negative: bool = False,
) -> None:
    total_amount = ZERO
    total_discount = ZERO
    total_tax = ZERO
    grand_total = ZERO

    for line in lines:
        product = products[line.product_id]
        amounts = compute_line_amounts(
            line.quantity,
            line.unit_price,
            line.discount_rate_1,
            line.discount_rate_2,
            line.tax_rate,
        )
        invoice.lines.append(PurchaseInvoiceLine(
            product_id=product.id,
            product_name=product.name,
            barcode=product.barcode,
            quantity=line.quantity,
            unit_price=line.unit_price,
            discount_rate_1=line.discount_rate_1,
            discount_rate_2=line.discount_rate_2,
            tax_rate=line.tax_rate,
            line_total=amounts.line_total,
            discount_amount=amounts.discount,
            tax_amount=amounts.tax,
        ))
        apply_adjustment(
            owner_id, product.id, line.quantity, reason.format(id=invoice.id), allow_negative=allow_negative
        )

        total_amount += amounts.line_total
        total_discount += amounts.discount
        total_tax += amounts.tax
        grand_total += amounts.grand_total

    invoice.total_amount = total_amount
    invoice.total_discount = total_discount
    invoice.total_tax = total_tax
    invoice.grand_total = grand_total


def _reverse_lines(owner_id: str, invoice: PurchaseInvoice, reason: str, *, allow_negative: bool = False) -> None:
    for line in invoice.lines:
        apply_adjustment(
            owner_id,
            line.product_id,
            -line.quantity,
            reason.format(id=invoice.id),
            allow_negative=allow_negative,
        )


def _check_final_quantities(invoice: PurchaseInvoice, lines: list[InvoiceLineInput], products) -> None:
    """Reject an update only when a product would end up below zero once reversal and reapply both land."""
    final = {product_id: product.quantity for product_id, product in products.items()}
    for line in invoice.lines:
        final[line.product_id] -= line.quantity
    for line in lines:
        final[line.product_id] += line.quantity

    short = [
        {
            "product_id": product_id,
            "on_hand": products[product_id].quantity,
            "final_quantity": quantity,
        }
        for product_id, quantity in sorted(final.items())
        if quantity < 0
    ]
    if short:
        raise InsufficientStockError(
            "Invoice update would drive stock below zero",
            details={"invoice_id": invoice.id, "items": short},
        )


def create_invoice(
    owner_id: str,
    *,
    invoice_number: str,
    company_id: int,
    lines,
    invoice_date: datetime | None = None,
    payment_method: str | None = None,
) -> PurchaseInvoice:
    """
    Record a supplier invoice and receive its quantities into stock.

    Args:
        owner_id: identity context every row is scoped to
        invoice_number: supplier's invoice number
        company_id: supplier
        lines: [{product_id, quantity, unit_price, discount_rate_1, discount_rate_2, tax_rate}]
        invoice_date: defaults to now
        payment_method: optional; CASH invoices count as cash register outlays

    Returns:
        The committed PurchaseInvoice with derived totals.

    Raises:
        InvalidStateError: empty or malformed lines
        NotFoundError: unknown company or product
    """
    if not invoice_number:
        raise InvalidStateError("invoice_number is required")
    parsed = parse_invoice_lines(lines)

    def _op():
        get_company(owner_id, company_id)
        products = lock_products(owner_id, [line.product_id for line in parsed])

        invoice = PurchaseInvoice(
            owner_id=owner_id,
            company_id=company_id,
            invoice_number=invoice_number,
            invoice_date=invoice_date or utcnow(),
            payment_method=payment_method,
            settlement_bucket=resolve_bucket(payment_method) if payment_method else None,
        )
        db.session.add(invoice)
        db.session.flush()

        _apply_lines(owner_id, invoice, parsed, products, REASON_CREATE)

        db.session.commit()
        return invoice

    return run_with_retry(_op)


def update_invoice(
    owner_id: str,
    invoice_id: int,
    *,
    invoice_number: str,
    company_id: int,
    lines,
    invoice_date: datetime | None = None,
    payment_method: str | None = None,
) -> PurchaseInvoice:
    """
    Replace an invoice's header and lines.

    Old quantities are taken back out of stock with compensating ledger
    records before the new lines are received, so the stock effect of an
    update that changes nothing is net zero. Stock is checked against each
    product's quantity after the whole update: goods already sold only block
    an update that would leave a product below zero, in which case nothing
    is changed and InsufficientStockError is raised.
    """
    if not invoice_number:
        raise InvalidStateError("invoice_number is required")
    parsed = parse_invoice_lines(lines)

    def _op():
        invoice = _get_invoice(owner_id, invoice_id, lock=True)
        get_company(owner_id, company_id)

        old_ids = [line.product_id for line in invoice.lines]
        products = lock_products(owner_id, old_ids + [line.product_id for line in parsed])

        _check_final_quantities(invoice, parsed, products)
        _reverse_lines(owner_id, invoice, REASON_UPDATE_REVERSAL, allow_negative=True)
        invoice.lines.clear()
        db.session.flush()

        invoice.invoice_number = invoice_number
        invoice.company_id = company_id
        if invoice_date is not None:
            invoice.invoice_date = invoice_date
        invoice.payment_method = payment_method
        invoice.settlement_bucket = resolve_bucket(payment_method) if payment_method else None

        # Final quantities were checked above, intermediate steps may dip below zero
        _apply_lines(owner_id, invoice, parsed, products, REASON_UPDATE, allow_negative=True)

        db.session.commit()
        return invoice

    return run_with_retry(_op)


def delete_invoice(owner_id: str, invoice_id: int) -> None:
    """Take the invoice's quantities back out of stock and remove it."""
    def _op():
        invoice = _get_invoice(owner_id, invoice_id, lock=True)
        lock_products(owner_id, [line.product_id for line in invoice.lines])

        _reverse_lines(owner_id, invoice, REASON_DELETE)
        db.session.delete(invoice)

        db.session.commit()

    run_with_retry(_op)


def get_invoice(owner_id: str, invoice_id: int) -> PurchaseInvoice:
    return _get_invoice(owner_id, invoice_id)


def list_invoices(
    owner_id: str,
    company_id: int | None = None,
    start: datetime | None = None,
    end: datetime | None = None,
) -> list[PurchaseInvoice]:
    query = db.session.query(PurchaseInvoice).filter_by(owner_id=owner_id)
    if company_id is not None:
        query = query.filter(PurchaseInvoice.company_id == company_id)
    if start:
        query = query.filter(PurchaseInvoice.invoice_date >= start)
    if end:
        query = query.filter(PurchaseInvoice.invoice_date <= end)
    return query.order_by(PurchaseInvoice.invoice_date.desc(), PurchaseInvoice.id.desc()).all()
