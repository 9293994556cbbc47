# Overview: Merges account event streams into running-balance statements; recomputes balances from history.

"""
Account reconciliation.

A statement is built in three steps and the order matters:

1. Every event for the account over its FULL history is normalized into a
   LedgerEvent with a signed amount (+ increases what is owed, - reduces it).
2. Events are sorted ascending by (timestamp, category, source id) and a
   forward scan attaches the running balance after each event.
3. Only then is the requested window applied (inclusive on both ends) and
   the rows returned newest first.

Filtering after the balance is computed means a row's balance is the true
account balance at that moment, whatever window is asked for.

Customer events:  Debt (+), debt-collection Payment (-),
                  completed open-account Sale (+ total),
                  open-account portion of a split Sale (+ portion)
Company events:   PurchaseInvoice (+ grand total),
                  CompanyTransaction DEBT (+) / PAYMENT (-)
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Iterable

from ..extensions import db
from ..models import CompanyTransaction, Customer, Debt, Payment, PurchaseInvoice, Sale
from ..models.purchasing import COMPANY_TX_DEBT
from backoffice.time_utils import to_utc_z
from .account_service import get_company, get_customer
from .money import ZERO, money_sum, quantize_money
from .settlement import BUCKET_OPEN_ACCOUNT

CATEGORY_DEBT = "DEBT"
CATEGORY_PAYMENT = "PAYMENT"
CATEGORY_OPEN_ACCOUNT_SALE = "OPEN_ACCOUNT_SALE"
CATEGORY_SPLIT_OPEN_ACCOUNT = "SPLIT_OPEN_ACCOUNT"
CATEGORY_PURCHASE_INVOICE = "PURCHASE_INVOICE"


@dataclass
class LedgerEvent:
    timestamp: datetime
    amount: Decimal
    category: str
    source_id: int
    description: str | None = None
    settlement_bucket: str | None = None
    balance: Decimal | None = None

    @property
    def sort_key(self):
        return (self.timestamp, self.category, self.source_id)

    def to_dict(self) -> dict:
        return {
            "timestamp": to_utc_z(self.timestamp),
            "category": self.category,
            "source_id": self.source_id,
            "amount": self.amount,
            "description": self.description,
            "settlement_bucket": self.settlement_bucket,
            "balance": self.balance,
        }


def build_timeline(
    events: Iterable[LedgerEvent],
    start: datetime | None = None,
    end: datetime | None = None,
) -> list[LedgerEvent]:
    """Attach running balances over the full history, then window, newest first."""
    ordered = sorted(events, key=lambda e: e.sort_key)

    balance = ZERO
    for event in ordered:
        balance = quantize_money(balance + event.amount)
        event.balance = balance

    windowed = [
        e for e in ordered
        if (start is None or e.timestamp >= start) and (end is None or e.timestamp <= end)
    ]
    windowed.reverse()
    return windowed


def summarize(events: Iterable[LedgerEvent]) -> dict:
    events = list(events)
    charges = money_sum(e.amount for e in events if e.amount > 0)
    payments = money_sum(-e.amount for e in events if e.amount < 0)
    return {
        "total_charges": charges,
        "total_payments": payments,
        "remaining_balance": quantize_money(charges - payments),
    }


def customer_events(owner_id: str, customer_id: int) -> list[LedgerEvent]:
    events: list[LedgerEvent] = []

    for debt in db.session.query(Debt).filter_by(owner_id=owner_id, customer_id=customer_id):
        events.append(LedgerEvent(
            timestamp=debt.debt_date,
            amount=quantize_money(debt.amount),
            category=CATEGORY_DEBT,
            source_id=debt.id,
            description=debt.note,
        ))

    collections = db.session.query(Payment).filter(
        Payment.owner_id == owner_id,
        Payment.customer_id == customer_id,
        Payment.sale_id.is_(None),
    )
    for payment in collections:
        events.append(LedgerEvent(
            timestamp=payment.payment_date,
            amount=-quantize_money(payment.amount),
            category=CATEGORY_PAYMENT,
            source_id=payment.id,
            description=payment.note,
            settlement_bucket=payment.settlement_bucket,
        ))

    open_account_sales = db.session.query(Sale).filter(
        Sale.owner_id == owner_id,
        Sale.customer_id == customer_id,
        Sale.is_completed.is_(True),
        Sale.is_split.is_(False),
        Sale.settlement_bucket == BUCKET_OPEN_ACCOUNT,
    )
    for sale in open_account_sales:
        events.append(LedgerEvent(
            timestamp=sale.completed_at,
            amount=quantize_money(sale.total_amount),
            category=CATEGORY_OPEN_ACCOUNT_SALE,
            source_id=sale.id,
            description=sale.sale_code,
            settlement_bucket=BUCKET_OPEN_ACCOUNT,
        ))

    split_portions = (
        db.session.query(Payment, Sale)
        .join(Sale, Payment.sale_id == Sale.id)
        .filter(
            Payment.owner_id == owner_id,
            Sale.customer_id == customer_id,
            Sale.is_completed.is_(True),
            Payment.settlement_bucket == BUCKET_OPEN_ACCOUNT,
        )
    )
    for payment, sale in split_portions:
        events.append(LedgerEvent(
            timestamp=sale.completed_at,
            amount=quantize_money(payment.amount),
            category=CATEGORY_SPLIT_OPEN_ACCOUNT,
            source_id=payment.id,
            description=sale.sale_code,
            settlement_bucket=BUCKET_OPEN_ACCOUNT,
        ))

    return events


def company_events(owner_id: str, company_id: int) -> list[LedgerEvent]:
    events: list[LedgerEvent] = []

    for invoice in db.session.query(PurchaseInvoice).filter_by(owner_id=owner_id, company_id=company_id):
        events.append(LedgerEvent(
            timestamp=invoice.invoice_date,
            amount=quantize_money(invoice.grand_total),
            category=CATEGORY_PURCHASE_INVOICE,
            source_id=invoice.id,
            description=invoice.invoice_number,
            settlement_bucket=invoice.settlement_bucket,
        ))

    for tx in db.session.query(CompanyTransaction).filter_by(owner_id=owner_id, company_id=company_id):
        is_debt = tx.type == COMPANY_TX_DEBT
        events.append(LedgerEvent(
            timestamp=tx.transaction_date,
            amount=quantize_money(tx.amount) if is_debt else -quantize_money(tx.amount),
            category=CATEGORY_DEBT if is_debt else CATEGORY_PAYMENT,
            source_id=tx.id,
            description=tx.description,
            settlement_bucket=tx.settlement_bucket,
        ))

    return events


def _statement(events: list[LedgerEvent], start, end) -> dict:
    rows = build_timeline(events, start, end)
    summary = summarize(events)
    return {
        "start": to_utc_z(start),
        "end": to_utc_z(end),
        "rows": [row.to_dict() for row in rows],
        "remaining_balance": summary["remaining_balance"],
    }


def reconcile_customer(
    owner_id: str,
    customer_id: int,
    start: datetime | None = None,
    end: datetime | None = None,
) -> dict:
    """Customer statement with running balances; window bounds are inclusive and optional."""
    get_customer(owner_id, customer_id)
    statement = _statement(customer_events(owner_id, customer_id), start, end)
    statement["customer_id"] = customer_id
    return statement


def reconcile_company(
    owner_id: str,
    company_id: int,
    start: datetime | None = None,
    end: datetime | None = None,
) -> dict:
    """Supplier statement: invoices and manual transactions with running balances."""
    get_company(owner_id, company_id)
    statement = _statement(company_events(owner_id, company_id), start, end)
    statement["company_id"] = company_id
    return statement


def customer_summary(owner_id: str, customer_id: int) -> dict:
    """
    Totals over the customer's full history next to the cached balance.

    balance_in_sync is False when the cached Customer.balance has drifted
    from the balance recomputed out of the events.
    """
    customer = get_customer(owner_id, customer_id)
    summary = summarize(customer_events(owner_id, customer_id))

    completed = db.session.query(Sale).filter(
        Sale.owner_id == owner_id,
        Sale.customer_id == customer_id,
        Sale.is_completed.is_(True),
    ).all()

    cached = quantize_money(customer.balance or ZERO)
    summary.update({
        "customer_id": customer.id,
        "total_sales": money_sum(s.total_amount for s in completed),
        "sale_count": len(completed),
        "cached_balance": cached,
        "balance_in_sync": cached == summary["remaining_balance"],
    })
    return summary


def company_summary(owner_id: str, company_id: int) -> dict:
    get_company(owner_id, company_id)
    events = company_events(owner_id, company_id)
    summary = summarize(events)
    summary.update({
        "company_id": company_id,
        "total_invoices": money_sum(e.amount for e in events if e.category == CATEGORY_PURCHASE_INVOICE),
        # Manual transactions only (debts minus payments), without invoices
        "transaction_balance": money_sum(e.amount for e in events if e.category != CATEGORY_PURCHASE_INVOICE),
    })
    return summary


def verify_customer_balances(owner_id: str | None = None) -> list[dict]:
    """
    Compare every customer's cached balance with the recomputed one.

    Returns one row per customer whose balances disagree. owner_id None
    checks every owner.
    """
    query = db.session.query(Customer)
    if owner_id is not None:
        query = query.filter(Customer.owner_id == owner_id)

    mismatches = []
    for customer in query.order_by(Customer.id):
        recomputed = summarize(customer_events(customer.owner_id, customer.id))["remaining_balance"]
        cached = quantize_money(customer.balance or ZERO)
        if cached != recomputed:
            mismatches.append({
                "owner_id": customer.owner_id,
                "customer_id": customer.id,
                "name": customer.name,
                "cached_balance": cached,
                "recomputed_balance": recomputed,
                "difference": cached - recomputed,
            })
    return mismatches
