# Overview: Flask API routes for purchase invoices; parses input and returns JSON responses.

from flask import Blueprint, current_app, g, jsonify, request

from ..decorators import require_owner
from ..services import purchase_invoice_service
from ..services.errors import LedgerError
from ..validation import (
    get_json_payload,
    parse_datetime,
    parse_inclusive_end,
    parse_int,
    require_fields,
)


purchase_invoices_bp = Blueprint("purchase_invoices", __name__, url_prefix="/api/purchase-invoices")


def _invoice_args(payload: dict) -> dict:
    require_fields(payload, "invoice_number", "company_id", "lines")
    return {
        "invoice_number": str(payload["invoice_number"]).strip(),
        "company_id": parse_int(payload.get("company_id"), "company_id"),
        "lines": payload.get("lines"),
        "invoice_date": parse_datetime(payload.get("invoice_date"), "invoice_date"),
        "payment_method": payload.get("payment_method") or None,
    }


@purchase_invoices_bp.post("/")
@require_owner
def create_invoice_route():
    """
    Create a purchase invoice and receive its lines into stock.

    Body: {invoice_number, company_id, invoice_date?, payment_method?,
           lines: [{product_id, quantity, unit_price, discount_rate_1?, discount_rate_2?, tax_rate?}]}
    """
    try:
        args = _invoice_args(get_json_payload(request))
        invoice = purchase_invoice_service.create_invoice(g.owner_id, **args)
        return jsonify({"invoice": invoice.to_dict(include_lines=True)}), 201

    except LedgerError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to create purchase invoice")
        return jsonify({"error": "Internal server error"}), 500


@purchase_invoices_bp.put("/<int:invoice_id>")
@require_owner
def update_invoice_route(invoice_id: int):
    """Replace an invoice's header and lines; old quantities are reversed first."""
    try:
        args = _invoice_args(get_json_payload(request))
        invoice = purchase_invoice_service.update_invoice(g.owner_id, invoice_id, **args)
        return jsonify({"invoice": invoice.to_dict(include_lines=True)}), 200

    except LedgerError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to update purchase invoice")
        return jsonify({"error": "Internal server error"}), 500


@purchase_invoices_bp.delete("/<int:invoice_id>")
@require_owner
def delete_invoice_route(invoice_id: int):
    try:
        purchase_invoice_service.delete_invoice(g.owner_id, invoice_id)
        return jsonify({"deleted": invoice_id}), 200

    except LedgerError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to delete purchase invoice")
        return jsonify({"error": "Internal server error"}), 500


@purchase_invoices_bp.get("/<int:invoice_id>")
@require_owner
def get_invoice_route(invoice_id: int):
    try:
        invoice = purchase_invoice_service.get_invoice(g.owner_id, invoice_id)
        return jsonify({"invoice": invoice.to_dict(include_lines=True)}), 200
    except LedgerError as e:
        return jsonify(e.to_dict()), e.status_code


@purchase_invoices_bp.get("/")
@require_owner
def list_invoices_route():
    try:
        invoices = purchase_invoice_service.list_invoices(
            g.owner_id,
            company_id=request.args.get("company_id", type=int),
            start=parse_datetime(request.args.get("start"), "start"),
            end=parse_inclusive_end(request.args.get("end")),
        )
        return jsonify({"invoices": [inv.to_dict() for inv in invoices]}), 200
    except LedgerError as e:
        return jsonify(e.to_dict()), e.status_code
