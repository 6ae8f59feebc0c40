# Overview: Flask API routes for restock operations; parses input and returns JSON receipts.

# backend/shopledger/routes/restocks.py
"""
Restock API Routes

DESIGN:
- Receive goods from a supplier (new items, serials, rolls)
- Read a restock receipt with paid/outstanding/status
- Pin or clear the restock status
"""

from flask import Blueprint, request, jsonify, g, current_app

from .. import schemas
from ..decorators import with_actor
from ..errors import SettlementError
from ..services import restock_service


restocks_bp = Blueprint("restocks", __name__, url_prefix="/api/restocks")


@restocks_bp.post("/")
@with_actor
def create_restock_route():
    """
    Record a restock.

    Request body:
    {
        "supplier": 3 | "Acme" | {"id": 3},
        "supplierName": "Acme",
        "items": [
            {"itemId": 1, "mode": "EACH", "quantity": 2, "unitCost": 4.5, "serials": ["SN1", "SN2"]},
            {"itemId": 1, "mode": "EACH", "quantity": 5, "unitCost": 4.5, "autoSerial": true},
            {"newItem": {"name": "Cable-5", "stockUnit": "m"}, "mode": "METER", "newRolls": [100, 50], "unitCost": 0.8}
        ],
        "tax": 3.10,
        "paid": 20,
        "cashboxCode": "B"
    }

    Returns:
        201: Restock receipt
        400: Invalid input
        404: Supplier not found
    """
    try:
        restock_request = schemas.parse_create_restock(request.get_json(silent=True))
        receipt = restock_service.create_restock(restock_request, g.actor)
        current_app.logger.info(
            "Restock %s recorded for supplier %s: total=%s paid=%s status=%s",
            receipt["id"], receipt["supplier_id"], receipt["total"], receipt["paid"], receipt["status_code"],
        )
        return jsonify(receipt), 201
    except SettlementError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to create restock")
        return jsonify({"error": "Internal server error"}), 500


@restocks_bp.get("/<int:restock_id>")
def get_restock_route(restock_id: int):
    try:
        return jsonify(restock_service.get_restock_receipt(restock_id)), 200
    except SettlementError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to load restock receipt")
        return jsonify({"error": "Internal server error"}), 500


@restocks_bp.post("/<int:restock_id>/status-override")
@with_actor
def restock_status_override_route(restock_id: int):
    """Pin ({"status": "PAID"}) or clear ({"status": null}) the restock status."""
    try:
        override = schemas.parse_status_override(request.get_json(silent=True))
        receipt = restock_service.set_restock_status_override(restock_id, override)
        current_app.logger.info(
            "Restock %s status override %s -> status=%s",
            restock_id, override.value or "cleared", receipt["status_code"],
        )
        return jsonify(receipt), 200
    except SettlementError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to set restock status override")
        return jsonify({"error": "Internal server error"}), 500
