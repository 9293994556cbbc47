# Overview: Customer and supplier account events; debts, debt collections, company transactions.

"""
Customer and company accounts.

Debts and Payments are immutable once written: create and list only. The
customer's cached balance is adjusted in the same unit of work as the event
that moves it:

    debt                     -> balance += amount
    debt collection payment  -> balance -= amount
    open-account sale        -> balance += sale total (see sales_service)

Companies carry no stored balance; it is derived on demand by the
reconciliation service.
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal

from ..extensions import db
from ..models import Company, CompanyTransaction, Customer, Debt, Payment
from ..models.purchasing import COMPANY_TX_DEBT, COMPANY_TX_PAYMENT
from backoffice.time_utils import utcnow
from .concurrency import lock_for_update, run_with_retry
from .errors import InvalidStateError, NotFoundError
from .money import ZERO, positive_amount, quantize_money
from .settlement import resolve_bucket


def get_customer(owner_id: str, customer_id: int, *, lock: bool = False) -> Customer:
    query = db.session.query(Customer).filter_by(id=customer_id, owner_id=owner_id)
    if lock:
        query = lock_for_update(query)
    customer = query.first()
    if not customer:
        raise NotFoundError("Customer not found", details={"customer_id": customer_id})
    return customer


def get_company(owner_id: str, company_id: int) -> Company:
    company = db.session.query(Company).filter_by(id=company_id, owner_id=owner_id).first()
    if not company:
        raise NotFoundError("Company not found", details={"company_id": company_id})
    return company


def adjust_customer_balance(
    owner_id: str,
    customer_id: int,
    delta: Decimal,
    *,
    enforce_limit: bool = False,
) -> Customer:
    """
    Move the cached balance by a signed amount. Does not commit.

    With enforce_limit, a charge that would push the balance past the
    customer's open-account limit is refused.
    """
    customer = get_customer(owner_id, customer_id, lock=True)
    current = customer.balance or ZERO
    new_balance = quantize_money(current + delta)

    limit = customer.open_account_limit
    if enforce_limit and limit is not None and delta > 0 and new_balance > limit:
        raise InvalidStateError(
            "Open account limit exceeded",
            details={
                "customer_id": customer_id,
                "balance": current,
                "charge": delta,
                "limit": limit,
            },
        )

    customer.balance = new_balance
    return customer


def create_debt(
    owner_id: str,
    customer_id: int,
    amount,
    *,
    debt_date: datetime | None = None,
    note: str | None = None,
) -> Debt:
    """Charge a customer directly (not through a sale)."""
    amount = positive_amount(amount)

    def _op():
        adjust_customer_balance(owner_id, customer_id, amount)
        debt = Debt(
            owner_id=owner_id,
            customer_id=customer_id,
            amount=amount,
            debt_date=debt_date or utcnow(),
            note=note,
        )
        db.session.add(debt)
        db.session.commit()
        return debt

    return run_with_retry(_op)


def create_payment(
    owner_id: str,
    customer_id: int,
    amount,
    payment_method: str,
    *,
    payment_date: datetime | None = None,
    note: str | None = None,
) -> Payment:
    """Record a debt collection from a customer (a payment with no sale)."""
    amount = positive_amount(amount)
    if not payment_method:
        raise InvalidStateError("payment_method is required")

    def _op():
        adjust_customer_balance(owner_id, customer_id, -amount)
        payment = Payment(
            owner_id=owner_id,
            customer_id=customer_id,
            sale_id=None,
            amount=amount,
            payment_date=payment_date or utcnow(),
            payment_method=payment_method,
            settlement_bucket=resolve_bucket(payment_method),
            note=note,
        )
        db.session.add(payment)
        db.session.commit()
        return payment

    return run_with_retry(_op)


def list_debts(owner_id: str, customer_id: int) -> list[Debt]:
    get_customer(owner_id, customer_id)
    return (
        db.session.query(Debt)
        .filter_by(owner_id=owner_id, customer_id=customer_id)
        .order_by(Debt.debt_date.desc(), Debt.id.desc())
        .all()
    )


def list_payments(owner_id: str, customer_id: int) -> list[Payment]:
    get_customer(owner_id, customer_id)
    return (
        db.session.query(Payment)
        .filter_by(owner_id=owner_id, customer_id=customer_id)
        .order_by(Payment.payment_date.desc(), Payment.id.desc())
        .all()
    )


def create_company_transaction(
    owner_id: str,
    company_id: int,
    transaction_type: str,
    amount,
    *,
    transaction_date: datetime | None = None,
    description: str | None = None,
    payment_method: str | None = None,
) -> CompanyTransaction:
    """
    Record a manual supplier debt or a payment to a supplier.

    PAYMENT requires a payment method so the outlay lands in a settlement
    bucket; DEBT may omit it.
    """
    tx_type = (transaction_type or "").strip().upper()
    if tx_type not in (COMPANY_TX_DEBT, COMPANY_TX_PAYMENT):
        raise InvalidStateError("type must be DEBT or PAYMENT", details={"type": transaction_type})
    amount = positive_amount(amount)
    if tx_type == COMPANY_TX_PAYMENT and not payment_method:
        raise InvalidStateError("payment_method is required for PAYMENT")

    def _op():
        get_company(owner_id, company_id)
        tx = CompanyTransaction(
            owner_id=owner_id,
            company_id=company_id,
            type=tx_type,
            amount=amount,
            transaction_date=transaction_date or utcnow(),
            description=description,
            payment_method=payment_method,
            settlement_bucket=resolve_bucket(payment_method) if payment_method else None,
        )
        db.session.add(tx)
        db.session.commit()
        return tx

    return run_with_retry(_op)


def list_company_transactions(owner_id: str, company_id: int) -> list[CompanyTransaction]:
    get_company(owner_id, company_id)
    return (
        db.session.query(CompanyTransaction)
        .filter_by(owner_id=owner_id, company_id=company_id)
        .order_by(CompanyTransaction.transaction_date.desc(), CompanyTransaction.id.desc())
        .all()
    )
