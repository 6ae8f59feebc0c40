# Overview: Flask API routes for sales operations; parses input and returns JSON receipts.

# backend/shopledger/routes/sales.py
"""
Sales API Routes

DESIGN:
- Create a sale (inventory allocation, optional immediate payment)
- Edit a sale in place (requires editNote)
- Read a receipt with paid/status re-derived from the ledger
- Pin or clear the receipt status

All settlement work happens in services.sales_service inside one
transaction; routes only parse, delegate and shape the response.
"""

from flask import Blueprint, request, jsonify, g, current_app

from .. import schemas
from ..decorators import with_actor
from ..errors import SettlementError
from ..services import sales_service


sales_bp = Blueprint("sales", __name__, url_prefix="/api/sales")


@sales_bp.post("/")
@with_actor
def create_sale_route():
    """
    Record a sale.

    Request body:
    {
        "items": [
            {"itemId": 1, "mode": "EACH", "quantity": 2, "inventoryUnitIds": [5, 6]},
            {"itemId": 2, "mode": "METER", "lengthMeters": 30, "rollId": 3, "priceTier": "wholesale"}
        ],
        "customer": 4 | {"id": 4} | {"name": "Jane", "phone": "555"},
        "paid": 40.00,
        "cashboxCode": "A",
        "paymentNote": "deposit",
        "statusOverride": "PAID",
        "note": "..."
    }

    Returns:
        201: Receipt with paid, status, status_code, lines, payments
        400: Invalid input
        404: Referenced record missing
        409: Insufficient inventory
    """
    try:
        sale_request = schemas.parse_create_sale(request.get_json(silent=True))
        receipt = sales_service.create_sale(sale_request, g.actor)
        current_app.logger.info(
            "Sale %s recorded: total=%s paid=%s status=%s",
            receipt["id"], receipt["total"], receipt["paid"], receipt["status_code"],
        )
        return jsonify(receipt), 201
    except SettlementError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to create sale")
        return jsonify({"error": "Internal server error"}), 500


@sales_bp.put("/<int:sale_id>")
@with_actor
def update_sale_route(sale_id: int):
    """
    Replace a sale's lines. Same body as create plus a mandatory "editNote".

    Returns:
        200: Updated receipt
        400: Invalid input or missing editNote
        404: Sale not found
        409: Insufficient inventory
    """
    try:
        edit_request = schemas.parse_edit_sale(request.get_json(silent=True))
        receipt = sales_service.update_sale(sale_id, edit_request, g.actor)
        current_app.logger.info(
            "Sale %s edited by user %s: total=%s status=%s",
            sale_id, receipt["last_edit_user_id"], receipt["total"], receipt["status_code"],
        )
        return jsonify(receipt), 200
    except SettlementError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to edit sale")
        return jsonify({"error": "Internal server error"}), 500


@sales_bp.get("/<int:sale_id>")
def get_sale_route(sale_id: int):
    """Sale receipt including per-unit latest return."""
    try:
        return jsonify(sales_service.get_sale_receipt(sale_id)), 200
    except SettlementError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to load sale receipt")
        return jsonify({"error": "Internal server error"}), 500


@sales_bp.post("/<int:sale_id>/status-override")
@with_actor
def sale_status_override_route(sale_id: int):
    """
    Pin or clear the sale status.

    Request body:
    {"status": "PAID", "note": "settled in kind"}   pin
    {"status": null}                                 clear
    """
    try:
        override = schemas.parse_status_override(request.get_json(silent=True))
        receipt = sales_service.set_sale_status_override(sale_id, override)
        current_app.logger.info(
            "Sale %s status override %s -> status=%s",
            sale_id, override.value or "cleared", receipt["status_code"],
        )
        return jsonify(receipt), 200
    except SettlementError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to set sale status override")
        return jsonify({"error": "Internal server error"}), 500
