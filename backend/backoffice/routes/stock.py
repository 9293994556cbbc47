# backend/backoffice/routes/stock.py
"""
Stock ledger routes.

All routes require an identity context (X-Owner-Id).

Time semantics:
- Ledger timestamps are server-assigned UTC; responses use ISO-8601 with Z.
- History is newest first.
"""
from flask import Blueprint, current_app, g, jsonify, request

from ..decorators import require_owner
from ..services import stock_ledger_service
from ..services.errors import LedgerError
from ..validation import get_json_payload, parse_int, require_fields


stock_bp = Blueprint("stock", __name__, url_prefix="/api/stock")


@stock_bp.post("/<int:product_id>/adjust")
@require_owner
def adjust_stock_route(product_id: int):
    """Manually adjust stock by a signed quantity_change."""
    try:
        payload = get_json_payload(request)
        require_fields(payload, "quantity_change")
        delta = parse_int(payload.get("quantity_change"), "quantity_change")

        record = stock_ledger_service.adjust_stock(
            g.owner_id,
            product_id,
            delta,
            payload.get("reason") or "Manual adjustment",
        )
        return jsonify({"transaction": record.to_dict()}), 201

    except LedgerError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to adjust stock")
        return jsonify({"error": "Internal server error"}), 500


@stock_bp.get("/<int:product_id>/history")
@require_owner
def stock_history_route(product_id: int):
    try:
        limit = request.args.get("limit", type=int)
        records = stock_ledger_service.get_stock_history(g.owner_id, product_id, limit=limit)
        return jsonify({"product_id": product_id, "transactions": [r.to_dict() for r in records]}), 200

    except LedgerError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to load stock history")
        return jsonify({"error": "Internal server error"}), 500


@stock_bp.get("/<int:product_id>")
@require_owner
def stock_level_route(product_id: int):
    try:
        return jsonify(stock_ledger_service.get_stock_level(g.owner_id, product_id)), 200
    except LedgerError as e:
        return jsonify(e.to_dict()), e.status_code
