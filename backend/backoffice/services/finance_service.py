# Overview: Cash register incomes and expenses not tied to sales or suppliers.

from __future__ import annotations

from datetime import datetime

from ..extensions import db
from ..models import Expense, Income
from backoffice.time_utils import utcnow
from .concurrency import run_with_retry
from .errors import InvalidStateError
from .money import positive_amount
from .settlement import resolve_bucket


def _create_entry(model, owner_id: str, amount, payment_method: str, occurred_at, description, category):
    amount = positive_amount(amount)
    if not payment_method:
        raise InvalidStateError("payment_method is required")

    def _op():
        entry = model(
            owner_id=owner_id,
            amount=amount,
            description=description,
            category=category,
            payment_method=payment_method,
            settlement_bucket=resolve_bucket(payment_method),
            occurred_at=occurred_at or utcnow(),
        )
        db.session.add(entry)
        db.session.commit()
        return entry

    return run_with_retry(_op)


def create_income(
    owner_id: str,
    amount,
    payment_method: str,
    *,
    occurred_at: datetime | None = None,
    description: str | None = None,
    category: str | None = None,
) -> Income:
    return _create_entry(Income, owner_id, amount, payment_method, occurred_at, description, category)


def create_expense(
    owner_id: str,
    amount,
    payment_method: str,
    *,
    occurred_at: datetime | None = None,
    description: str | None = None,
    category: str | None = None,
) -> Expense:
    return _create_entry(Expense, owner_id, amount, payment_method, occurred_at, description, category)


def _list_entries(model, owner_id: str, start: datetime | None, end: datetime | None):
    query = db.session.query(model).filter(model.owner_id == owner_id)
    if start:
        query = query.filter(model.occurred_at >= start)
    if end:
        query = query.filter(model.occurred_at < end)
    return query.order_by(model.occurred_at.desc(), model.id.desc()).all()


def list_incomes(owner_id: str, start: datetime | None = None, end: datetime | None = None) -> list[Income]:
    return _list_entries(Income, owner_id, start, end)


def list_expenses(owner_id: str, start: datetime | None = None, end: datetime | None = None) -> list[Expense]:
    return _list_entries(Expense, owner_id, start, end)
