# Overview: Flask API routes for customer accounts; debts, debt collections, statements and summaries.

from flask import Blueprint, current_app, g, jsonify, request

from ..decorators import require_owner
from ..services import account_service, reconciliation_service
from ..services.errors import LedgerError
from ..validation import get_json_payload, parse_datetime, parse_inclusive_end, require_fields


customers_bp = Blueprint("customers", __name__, url_prefix="/api/customers")


@customers_bp.post("/<int:customer_id>/debts")
@require_owner
def create_debt_route(customer_id: int):
    try:
        data = get_json_payload(request)
        require_fields(data, "amount")
        debt = account_service.create_debt(
            g.owner_id,
            customer_id,
            data.get("amount"),
            debt_date=parse_datetime(data.get("debt_date"), "debt_date"),
            note=data.get("note"),
        )
        return jsonify({"debt": debt.to_dict()}), 201

    except LedgerError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to create debt")
        return jsonify({"error": "Internal server error"}), 500


@customers_bp.get("/<int:customer_id>/debts")
@require_owner
def list_debts_route(customer_id: int):
    try:
        debts = account_service.list_debts(g.owner_id, customer_id)
        return jsonify({"debts": [d.to_dict() for d in debts]}), 200
    except LedgerError as e:
        return jsonify(e.to_dict()), e.status_code


@customers_bp.post("/<int:customer_id>/payments")
@require_owner
def create_payment_route(customer_id: int):
    """Record a debt collection. Body: {amount, payment_method, payment_date?, note?}"""
    try:
        data = get_json_payload(request)
        require_fields(data, "amount", "payment_method")
        payment = account_service.create_payment(
            g.owner_id,
            customer_id,
            data.get("amount"),
            data.get("payment_method"),
            payment_date=parse_datetime(data.get("payment_date"), "payment_date"),
            note=data.get("note"),
        )
        return jsonify({"payment": payment.to_dict()}), 201

    except LedgerError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to create payment")
        return jsonify({"error": "Internal server error"}), 500


@customers_bp.get("/<int:customer_id>/payments")
@require_owner
def list_payments_route(customer_id: int):
    try:
        payments = account_service.list_payments(g.owner_id, customer_id)
        return jsonify({"payments": [p.to_dict() for p in payments]}), 200
    except LedgerError as e:
        return jsonify(e.to_dict()), e.status_code


@customers_bp.get("/<int:customer_id>/statement")
@require_owner
def customer_statement_route(customer_id: int):
    """
    Running-balance statement. start/end are optional and inclusive; a bare
    date as end covers the whole day.
    """
    try:
        statement = reconciliation_service.reconcile_customer(
            g.owner_id,
            customer_id,
            start=parse_datetime(request.args.get("start"), "start"),
            end=parse_inclusive_end(request.args.get("end")),
        )
        return jsonify(statement), 200

    except LedgerError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to build customer statement")
        return jsonify({"error": "Internal server error"}), 500


@customers_bp.get("/<int:customer_id>/summary")
@require_owner
def customer_summary_route(customer_id: int):
    try:
        return jsonify(reconciliation_service.customer_summary(g.owner_id, customer_id)), 200
    except LedgerError as e:
        return jsonify(e.to_dict()), e.status_code


@customers_bp.get("/balance-check")
@require_owner
def balance_check_route():
    """Customers whose cached balance disagrees with their event history."""
    mismatches = reconciliation_service.verify_customer_balances(g.owner_id)
    return jsonify({"mismatches": mismatches, "in_sync": not mismatches}), 200
