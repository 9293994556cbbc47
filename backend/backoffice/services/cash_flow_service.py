# Overview: Service-layer reporting; sales by bucket, cash flow, register, product and net-profit views.

"""
Cash-flow and summary reports.

All reports cover a half-open window [start, end) and are recomputed from
the raw tables on every call; nothing is cached. Sales are placed in the
window by completed_at, drafts are never counted.

Split sales are decomposed through their linked Payment rows. An
OPEN_ACCOUNT portion of a split sale is left out of both the cash and card
totals; it is reported separately as split_open_account_excluded.

register_totals takes an optional window, and net_profit_metrics builds its
own windows (today, yesterday, this month, last month) from a reference time.
"""

from __future__ import annotations

from datetime import date, datetime, timedelta
from decimal import Decimal, ROUND_HALF_UP

from ..extensions import db
from ..models import CompanyTransaction, Debt, Expense, Income, Payment, Product, PurchaseInvoice, Sale
from ..models.purchasing import COMPANY_TX_PAYMENT
from backoffice.time_utils import day_window, to_utc_z, utcnow
from .errors import ReportError
from .money import HUNDRED, ZERO, money_sum, quantize_money
from .settlement import BUCKET_CARD, BUCKET_CASH, BUCKET_OPEN_ACCOUNT

UNCATEGORIZED = "Uncategorized"
PERCENT_STEP = Decimal("0.1")


def _check_window(start: datetime | None, end: datetime | None) -> None:
    if start is None or end is None:
        raise ReportError("start and end are required")
    if start >= end:
        raise ReportError(
            "start must be before end",
            details={"start": to_utc_z(start), "end": to_utc_z(end)},
        )


def _window_meta(start: datetime, end: datetime) -> dict:
    return {"start": to_utc_z(start), "end": to_utc_z(end)}


def _completed_sales(owner_id: str, start: datetime, end: datetime) -> list[Sale]:
    return (
        db.session.query(Sale)
        .filter(
            Sale.owner_id == owner_id,
            Sale.is_completed.is_(True),
            Sale.completed_at >= start,
            Sale.completed_at < end,
        )
        .order_by(Sale.completed_at, Sale.id)
        .all()
    )


def _bucket_totals(rows) -> dict:
    """{total, cash, pos} over rows carrying amount and settlement_bucket."""
    rows = list(rows)
    return {
        "total": money_sum(r.amount for r in rows),
        "cash": money_sum(r.amount for r in rows if r.settlement_bucket == BUCKET_CASH),
        "pos": money_sum(r.amount for r in rows if r.settlement_bucket == BUCKET_CARD),
    }


def sales_totals(owner_id: str, start: datetime, end: datetime) -> dict:
    """Completed sales in the window split by settlement bucket, plus direct debt additions."""
    _check_window(start, end)
    sales = _completed_sales(owner_id, start, end)

    single = [s for s in sales if not s.is_split]
    split = [s for s in sales if s.is_split]
    split_payments = [p for s in split for p in s.payments]

    cash_sales = money_sum(s.total_amount for s in single if s.settlement_bucket == BUCKET_CASH)
    card_sales = money_sum(s.total_amount for s in single if s.settlement_bucket == BUCKET_CARD)
    open_account_sales = money_sum(
        s.total_amount for s in single if s.settlement_bucket == BUCKET_OPEN_ACCOUNT
    )
    split_cash = money_sum(p.amount for p in split_payments if p.settlement_bucket == BUCKET_CASH)
    split_card = money_sum(p.amount for p in split_payments if p.settlement_bucket == BUCKET_CARD)
    split_open_account = money_sum(
        p.amount for p in split_payments if p.settlement_bucket == BUCKET_OPEN_ACCOUNT
    )

    debts = (
        db.session.query(Debt)
        .filter(Debt.owner_id == owner_id, Debt.debt_date >= start, Debt.debt_date < end)
        .all()
    )

    result = _window_meta(start, end)
    result.update({
        "sale_count": len(sales),
        "cash_sales": cash_sales,
        "card_sales": card_sales,
        "open_account_sales": open_account_sales,
        "split_cash": split_cash,
        "split_card": split_card,
        "split_open_account_excluded": split_open_account,
        "total_cash": quantize_money(cash_sales + split_cash),
        "total_card": quantize_money(card_sales + split_card),
        "total_sales": money_sum(s.total_amount for s in sales),
        "direct_debt_additions": money_sum(d.amount for d in debts),
    })
    return result


def cash_flow_report(owner_id: str, start: datetime, end: datetime) -> dict:
    """Money in and out of the register that is not a sale, by cash and POS."""
    _check_window(start, end)

    customer_payments = (
        db.session.query(Payment)
        .filter(
            Payment.owner_id == owner_id,
            Payment.sale_id.is_(None),
            Payment.payment_date >= start,
            Payment.payment_date < end,
        )
        .all()
    )
    company_payments = (
        db.session.query(CompanyTransaction)
        .filter(
            CompanyTransaction.owner_id == owner_id,
            CompanyTransaction.type == COMPANY_TX_PAYMENT,
            CompanyTransaction.transaction_date >= start,
            CompanyTransaction.transaction_date < end,
        )
        .all()
    )
    incomes = (
        db.session.query(Income)
        .filter(Income.owner_id == owner_id, Income.occurred_at >= start, Income.occurred_at < end)
        .all()
    )
    expenses = (
        db.session.query(Expense)
        .filter(Expense.owner_id == owner_id, Expense.occurred_at >= start, Expense.occurred_at < end)
        .all()
    )

    cp = _bucket_totals(customer_payments)
    co = _bucket_totals(company_payments)
    inc = _bucket_totals(incomes)
    exp = _bucket_totals(expenses)

    cash_inflow = quantize_money(cp["cash"] + inc["cash"])
    pos_inflow = quantize_money(cp["pos"] + inc["pos"])
    cash_outflow = quantize_money(co["cash"] + exp["cash"])
    pos_outflow = quantize_money(co["pos"] + exp["pos"])

    result = _window_meta(start, end)
    result.update({
        "customer_payments": cp,
        "company_payments": co,
        "incomes": inc,
        "expenses": exp,
        "cash_inflow": cash_inflow,
        "pos_inflow": pos_inflow,
        "cash_outflow": cash_outflow,
        "pos_outflow": pos_outflow,
        "net_cash": quantize_money(cash_inflow - cash_outflow),
        "net_pos": quantize_money(pos_inflow - pos_outflow),
    })
    return result


def gross_profit(owner_id: str, start: datetime, end: datetime) -> dict:
    """
    Gross profit from sold lines at the unit cost frozen at finalization.

    profit = sum((line_total - discount) - unit_cost * quantity)
    """
    _check_window(start, end)
    lines = [line for sale in _completed_sales(owner_id, start, end) for line in sale.lines]

    net_sales = money_sum(line.line_total - (line.discount or ZERO) for line in lines)
    cost_of_goods_sold = money_sum((line.unit_cost or ZERO) * line.quantity for line in lines)

    result = _window_meta(start, end)
    result.update({
        "net_line_sales": net_sales,
        "cost_of_goods_sold": cost_of_goods_sold,
        "gross_profit": quantize_money(net_sales - cost_of_goods_sold),
        "units_sold": sum(line.quantity for line in lines),
    })
    return result


def _cash_purchase_outlays(owner_id: str, start: datetime, end: datetime):
    # Invoices without a payment method are on credit and never leave the register
    return money_sum(
        inv.grand_total
        for inv in db.session.query(PurchaseInvoice).filter(
            PurchaseInvoice.owner_id == owner_id,
            PurchaseInvoice.settlement_bucket == BUCKET_CASH,
            PurchaseInvoice.invoice_date >= start,
            PurchaseInvoice.invoice_date < end,
        )
    )


def comprehensive_summary(owner_id: str, start: datetime, end: datetime) -> dict:
    """
    Everything for the window in one view.

    cash register net = cash sales + cash incomes + cash customer payments
                        - cash company payments - cash expenses
                        - cash purchase invoices
    revenue           = total sales + customer payments + incomes - expenses
    """
    _check_window(start, end)
    sales = sales_totals(owner_id, start, end)
    flow = cash_flow_report(owner_id, start, end)
    profit = gross_profit(owner_id, start, end)
    cash_invoices = _cash_purchase_outlays(owner_id, start, end)

    cash_register_net = quantize_money(
        sales["total_cash"]
        + flow["incomes"]["cash"]
        + flow["customer_payments"]["cash"]
        - flow["company_payments"]["cash"]
        - flow["expenses"]["cash"]
        - cash_invoices
    )
    revenue = quantize_money(
        sales["total_sales"]
        + flow["customer_payments"]["total"]
        + flow["incomes"]["total"]
        - flow["expenses"]["total"]
    )

    result = _window_meta(start, end)
    result.update({
        "sales": sales,
        "cash_flow": flow,
        "cash_purchase_invoices": cash_invoices,
        "cash_register_net": cash_register_net,
        "gross_profit": profit["gross_profit"],
        "cost_of_goods_sold": profit["cost_of_goods_sold"],
        "revenue_summary": {
            "total_sales": sales["total_sales"],
            "customer_payments": flow["customer_payments"]["total"],
            "incomes": flow["incomes"]["total"],
            "expenses": flow["expenses"]["total"],
            "revenue": revenue,
        },
    })
    return result


def product_sales_report(owner_id: str, start: datetime, end: datetime) -> dict:
    """
    Per-product view of the sold lines in the window.

    Costs use the unit cost frozen at finalization, so the rows add up to
    gross_profit for the same window. remaining_stock is the quantity on
    hand now, not at the end of the window.
    """
    _check_window(start, end)

    grouped: dict[int, dict] = {}
    for sale in _completed_sales(owner_id, start, end):
        for line in sale.lines:
            entry = grouped.setdefault(line.product_id, {"quantity": 0, "sales": [], "costs": []})
            entry["quantity"] += line.quantity
            entry["sales"].append(line.line_total - (line.discount or ZERO))
            entry["costs"].append((line.unit_cost or ZERO) * line.quantity)

    products = {}
    if grouped:
        products = {
            p.id: p
            for p in db.session.query(Product).filter(
                Product.owner_id == owner_id, Product.id.in_(list(grouped))
            )
        }

    rows = []
    for product_id, entry in grouped.items():
        product = products[product_id]
        quantity = entry["quantity"]
        total_sales = money_sum(entry["sales"])
        cost = money_sum(entry["costs"])
        profit = quantize_money(total_sales - cost)
        rows.append({
            "product_id": product_id,
            "product_name": product.name,
            "barcode": product.barcode,
            "quantity_sold": quantity,
            "remaining_stock": product.quantity,
            "total_sales": total_sales,
            "cost_of_goods_sold": cost,
            "profit": profit,
            "average_sale_price": quantize_money(total_sales / quantity),
            "average_unit_cost": quantize_money(cost / quantity),
            "average_unit_profit": quantize_money(profit / quantity),
        })
    rows.sort(key=lambda r: (-r["total_sales"], r["product_id"]))

    result = _window_meta(start, end)
    result["rows"] = rows
    return result


def product_report_totals(owner_id: str, start: datetime, end: datetime) -> dict:
    rows = product_sales_report(owner_id, start, end)["rows"]
    result = _window_meta(start, end)
    result.update({
        "product_count": len(rows),
        "quantity_sold": sum(r["quantity_sold"] for r in rows),
        "total_sales": money_sum(r["total_sales"] for r in rows),
        "cost_of_goods_sold": money_sum(r["cost_of_goods_sold"] for r in rows),
        "profit": money_sum(r["profit"] for r in rows),
    })
    return result


def _register_breakdown(model, owner_id: str, start: datetime | None, end: datetime | None) -> dict:
    query = db.session.query(model).filter(model.owner_id == owner_id)
    if start is not None:
        query = query.filter(model.occurred_at >= start)
    if end is not None:
        query = query.filter(model.occurred_at < end)
    entries = query.all()

    by_category: dict[str, list] = {}
    for entry in entries:
        by_category.setdefault(entry.category or UNCATEGORIZED, []).append(entry.amount)

    totals = _bucket_totals(entries)
    totals["by_category"] = [
        {"category": category, "total": money_sum(amounts)}
        for category, amounts in sorted(by_category.items())
    ]
    return totals


def register_totals(owner_id: str, start: datetime | None = None, end: datetime | None = None) -> dict:
    """
    Income and expense totals split by cash and POS and broken down by
    category. Either bound may be left out; with both given the window is
    [start, end) and must not be empty.
    """
    if start is not None and end is not None:
        _check_window(start, end)

    incomes = _register_breakdown(Income, owner_id, start, end)
    expenses = _register_breakdown(Expense, owner_id, start, end)
    return {
        "start": to_utc_z(start),
        "end": to_utc_z(end),
        "incomes": incomes,
        "expenses": expenses,
        "net": quantize_money(incomes["total"] - expenses["total"]),
    }


def percent_change(current: Decimal, previous: Decimal) -> Decimal | None:
    """Change relative to |previous|, in percent to one decimal. None when previous is zero and current is not."""
    if previous == 0:
        return Decimal("0.0") if current == 0 else None
    return ((current - previous) / abs(previous) * HUNDRED).quantize(PERCENT_STEP, rounding=ROUND_HALF_UP)


def _net_profit(owner_id: str, start: datetime, end: datetime) -> Decimal:
    # sales + incomes + debt collections - expenses - purchase invoices - company payments
    if start >= end:
        return ZERO
    flow = cash_flow_report(owner_id, start, end)
    sales = money_sum(s.total_amount for s in _completed_sales(owner_id, start, end))
    invoices = money_sum(
        inv.grand_total
        for inv in db.session.query(PurchaseInvoice).filter(
            PurchaseInvoice.owner_id == owner_id,
            PurchaseInvoice.invoice_date >= start,
            PurchaseInvoice.invoice_date < end,
        )
    )
    return quantize_money(
        sales
        + flow["incomes"]["total"]
        + flow["customer_payments"]["total"]
        - flow["expenses"]["total"]
        - invoices
        - flow["company_payments"]["total"]
    )


def net_profit_metrics(owner_id: str, now: datetime | None = None) -> dict:
    """
    Net profit for today and this month so far, each compared with the
    whole previous day or month.
    """
    now = now or utcnow()
    today = datetime(now.year, now.month, now.day)
    yesterday = today - timedelta(days=1)
    this_month = today.replace(day=1)
    last_month = (this_month - timedelta(days=1)).replace(day=1)

    today_profit = _net_profit(owner_id, today, now)
    yesterday_profit = _net_profit(owner_id, yesterday, today)
    month_profit = _net_profit(owner_id, this_month, now)
    last_month_profit = _net_profit(owner_id, last_month, this_month)

    return {
        "as_of": to_utc_z(now),
        "today": {
            "net_profit": today_profit,
            "change_percent": percent_change(today_profit, yesterday_profit),
            "compared_to": "yesterday",
        },
        "yesterday": {"net_profit": yesterday_profit},
        "this_month": {
            "net_profit": month_profit,
            "change_percent": percent_change(month_profit, last_month_profit),
            "compared_to": "last_month",
        },
        "last_month": {"net_profit": last_month_profit},
    }


def daily_sales_totals(owner_id: str, day: date | None = None) -> dict:
    return sales_totals(owner_id, *day_window(day))


def daily_cash_flow(owner_id: str, day: date | None = None) -> dict:
    return cash_flow_report(owner_id, *day_window(day))


def daily_summary(owner_id: str, day: date | None = None) -> dict:
    return comprehensive_summary(owner_id, *day_window(day))
