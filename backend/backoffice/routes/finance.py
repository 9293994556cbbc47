# Overview: Flask API routes for cash register incomes and expenses.

from flask import Blueprint, current_app, g, jsonify, request

from ..decorators import require_owner
from ..services import finance_service
from ..services.errors import LedgerError
from ..validation import get_json_payload, parse_datetime, parse_exclusive_end, require_fields


finance_bp = Blueprint("finance", __name__, url_prefix="/api/finance")

_CREATORS = {
    "incomes": (finance_service.create_income, "income"),
    "expenses": (finance_service.create_expense, "expense"),
}

_LISTERS = {
    "incomes": finance_service.list_incomes,
    "expenses": finance_service.list_expenses,
}


@finance_bp.post("/<any(incomes, expenses):kind>")
@require_owner
def create_entry_route(kind: str):
    """Body: {amount, payment_method, occurred_at?, description?, category?}"""
    create, key = _CREATORS[kind]
    try:
        data = get_json_payload(request)
        require_fields(data, "amount", "payment_method")
        entry = create(
            g.owner_id,
            data.get("amount"),
            data.get("payment_method"),
            occurred_at=parse_datetime(data.get("occurred_at"), "occurred_at"),
            description=data.get("description"),
            category=data.get("category"),
        )
        return jsonify({key: entry.to_dict()}), 201

    except LedgerError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to create %s entry", key)
        return jsonify({"error": "Internal server error"}), 500


@finance_bp.get("/<any(incomes, expenses):kind>")
@require_owner
def list_entries_route(kind: str):
    try:
        entries = _LISTERS[kind](
            g.owner_id,
            start=parse_datetime(request.args.get("start"), "start"),
            end=parse_exclusive_end(request.args.get("end")),
        )
        return jsonify({kind: [e.to_dict() for e in entries]}), 200
    except LedgerError as e:
        return jsonify(e.to_dict()), e.status_code
