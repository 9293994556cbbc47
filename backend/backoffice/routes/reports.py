# Overview: Flask API routes for cash-flow and summary reports; LedgerError responses come from the app-level handler.

from flask import Blueprint, g, jsonify, request

from ..decorators import require_owner
from ..services import cash_flow_service
from ..validation import parse_datetime, parse_exclusive_end


reports_bp = Blueprint("reports", __name__, url_prefix="/api/reports")

# Windowed reports: [start, end), a bare date as end includes that whole day
_WINDOWED = {
    "sales-totals": cash_flow_service.sales_totals,
    "cash-flow": cash_flow_service.cash_flow_report,
    "gross-profit": cash_flow_service.gross_profit,
    "summary": cash_flow_service.comprehensive_summary,
    "product-sales": cash_flow_service.product_sales_report,
    "product-totals": cash_flow_service.product_report_totals,
}

_DAILY = {
    "sales-totals": cash_flow_service.daily_sales_totals,
    "cash-flow": cash_flow_service.daily_cash_flow,
    "summary": cash_flow_service.daily_summary,
}


@reports_bp.get(
    "/<any('sales-totals', 'cash-flow', 'gross-profit', 'summary', 'product-sales', 'product-totals'):name>"
)
@require_owner
def windowed_report(name: str):
    start = parse_datetime(request.args.get("start"), "start")
    end = parse_exclusive_end(request.args.get("end"))
    return jsonify(_WINDOWED[name](g.owner_id, start, end)), 200


@reports_bp.get("/daily/<any('sales-totals', 'cash-flow', 'summary'):name>")
@require_owner
def daily_report(name: str):
    day = parse_datetime(request.args.get("date"), "date")
    return jsonify(_DAILY[name](g.owner_id, day.date() if day else None)), 200


@reports_bp.get("/register-totals")
@require_owner
def register_totals_route():
    """Income/expense totals by method and category. start/end are optional."""
    start = parse_datetime(request.args.get("start"), "start")
    end = parse_exclusive_end(request.args.get("end"))
    return jsonify(cash_flow_service.register_totals(g.owner_id, start, end)), 200


@reports_bp.get("/net-profit-metrics")
@require_owner
def net_profit_metrics_route():
    return jsonify(cash_flow_service.net_profit_metrics(g.owner_id)), 200
