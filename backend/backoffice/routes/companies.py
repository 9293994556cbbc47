# Overview: Flask API routes for supplier accounts; manual transactions, statements and summaries.

from flask import Blueprint, current_app, g, jsonify, request

from ..decorators import require_owner
from ..services import account_service, reconciliation_service
from ..services.errors import LedgerError
from ..validation import get_json_payload, parse_datetime, parse_inclusive_end, require_fields


companies_bp = Blueprint("companies", __name__, url_prefix="/api/companies")


@companies_bp.post("/<int:company_id>/transactions")
@require_owner
def create_transaction_route(company_id: int):
    """Body: {type: DEBT|PAYMENT, amount, payment_method (PAYMENT only), transaction_date?, description?}"""
    try:
        data = get_json_payload(request)
        require_fields(data, "type", "amount")
        tx = account_service.create_company_transaction(
            g.owner_id,
            company_id,
            data.get("type"),
            data.get("amount"),
            transaction_date=parse_datetime(data.get("transaction_date"), "transaction_date"),
            description=data.get("description"),
            payment_method=data.get("payment_method"),
        )
        return jsonify({"transaction": tx.to_dict()}), 201

    except LedgerError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to create company transaction")
        return jsonify({"error": "Internal server error"}), 500


@companies_bp.get("/<int:company_id>/transactions")
@require_owner
def list_transactions_route(company_id: int):
    try:
        txs = account_service.list_company_transactions(g.owner_id, company_id)
        return jsonify({"transactions": [tx.to_dict() for tx in txs]}), 200
    except LedgerError as e:
        return jsonify(e.to_dict()), e.status_code


@companies_bp.get("/<int:company_id>/statement")
@require_owner
def company_statement_route(company_id: int):
    try:
        statement = reconciliation_service.reconcile_company(
            g.owner_id,
            company_id,
            start=parse_datetime(request.args.get("start"), "start"),
            end=parse_inclusive_end(request.args.get("end")),
        )
        return jsonify(statement), 200

    except LedgerError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to build company statement")
        return jsonify({"error": "Internal server error"}), 500


@companies_bp.get("/<int:company_id>/summary")
@require_owner
def company_summary_route(company_id: int):
    try:
        return jsonify(reconciliation_service.company_summary(g.owner_id, company_id)), 200
    except LedgerError as e:
        return jsonify(e.to_dict()), e.status_code
