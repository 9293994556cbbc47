# Overview: Flask API routes for sales operations; parses input and returns JSON responses.

# backend/backoffice/routes/sales.py
"""Sales API routes"""

from flask import Blueprint, request, jsonify, g
from flask import current_app

from ..services import sales_service
from ..services.errors import LedgerError
from ..decorators import require_owner
from ..validation import get_json_payload, parse_int, require_fields


sales_bp = Blueprint("sales", __name__, url_prefix="/api/sales")


@sales_bp.post("/")
@require_owner
def open_sale_route():
    """
    Open a draft sale.

    Body: {lines: [{product_id, quantity, discount?}], customer_id?,
           discount_type?, discount_value?, miscellaneous?: [{description, amount}]}
    """
    try:
        data = get_json_payload(request)
        require_fields(data, "lines")

        sale = sales_service.open_sale(
            g.owner_id,
            data.get("lines"),
            customer_id=parse_int(data.get("customer_id"), "customer_id"),
            discount_type=data.get("discount_type"),
            discount_value=data.get("discount_value"),
            miscellaneous=data.get("miscellaneous"),
        )
        return jsonify({"sale": sale.to_dict(include_lines=True)}), 201

    except LedgerError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to open sale")
        return jsonify({"error": "Internal server error"}), 500


@sales_bp.post("/<int:sale_id>/lines")
@require_owner
def add_line_route(sale_id: int):
    """Add line to draft sale."""
    try:
        data = get_json_payload(request)
        require_fields(data, "product_id", "quantity")

        line = sales_service.add_line(
            g.owner_id,
            sale_id,
            parse_int(data.get("product_id"), "product_id"),
            parse_int(data.get("quantity"), "quantity"),
            discount=data.get("discount", 0),
        )
        return jsonify({"line": line.to_dict()}), 201

    except LedgerError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to add sale line")
        return jsonify({"error": "Internal server error"}), 500


@sales_bp.post("/<int:sale_id>/finalize")
@require_owner
def finalize_sale_route(sale_id: int):
    """
    Finalize a draft sale - decrements stock through the ledger.

    Body: {payment_method} or {payments: [{payment_method, amount}]} for a split settlement.
    """
    try:
        data = get_json_payload(request)

        if data.get("payments"):
            sale = sales_service.finalize_split_sale(g.owner_id, sale_id, data.get("payments"))
        else:
            require_fields(data, "payment_method")
            sale = sales_service.finalize_sale(g.owner_id, sale_id, data["payment_method"])

        return jsonify({"sale": sale.to_dict(include_lines=True)}), 200

    except LedgerError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to finalize sale")
        return jsonify({"error": "Internal server error"}), 500


@sales_bp.get("/<int:sale_id>")
@require_owner
def get_sale_route(sale_id: int):
    """Get sale with lines, miscellaneous items and split payments."""
    try:
        sale = sales_service.get_sale(g.owner_id, sale_id)
        return jsonify({"sale": sale.to_dict(include_lines=True)}), 200
    except LedgerError as e:
        return jsonify(e.to_dict()), e.status_code


@sales_bp.get("/")
@require_owner
def list_sales_route():
    completed_arg = request.args.get("completed")
    completed = None
    if completed_arg is not None:
        completed = completed_arg.lower() == "true"

    sales = sales_service.list_sales(
        g.owner_id,
        customer_id=request.args.get("customer_id", type=int),
        completed=completed,
    )
    return jsonify({"sales": [s.to_dict() for s in sales]}), 200
