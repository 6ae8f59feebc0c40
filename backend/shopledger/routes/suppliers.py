# Overview: Flask API routes for supplier debt; allocation of payments and debt detail.

# backend/shopledger/routes/suppliers.py
"""
Supplier Debt API Routes

DESIGN:
- One payment is spread over the supplier's outstanding restocks, oldest
  first, optionally capped per restock by allocation hints
- The debt view lists every restock with paid/outstanding and all
  restock payments with their cashbox
"""

from flask import Blueprint, request, jsonify, current_app

from .. import schemas
from ..decorators import with_actor
from ..errors import SettlementError
from ..services import supplier_service


suppliers_bp = Blueprint("suppliers", __name__, url_prefix="/api/suppliers")


@suppliers_bp.post("/<int:supplier_id>/payments")
@with_actor
def supplier_payment_route(supplier_id: int):
    """
    Pay a supplier.

    Request body:
    {
        "amount": 60.00,
        "cashboxCode": "B",
        "note": "May settlement",
        "allocations": [{"restockId": 12, "amount": 20.00}]
    }

    Returns:
        201: Allocations applied and the refreshed debt detail
        400: Invalid input, amount above outstanding debt
        404: Supplier not found
    """
    try:
        payment_request = schemas.parse_supplier_payment(request.get_json(silent=True))
        result = supplier_service.record_supplier_payment(supplier_id, payment_request)
        current_app.logger.info(
            "Supplier %s paid %s over %s restock(s)",
            supplier_id, payment_request.payment.amount, result["payments"],
        )
        return jsonify(result), 201
    except SettlementError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to record supplier payment")
        return jsonify({"error": "Internal server error"}), 500


@suppliers_bp.get("/<int:supplier_id>/debt")
def supplier_debt_route(supplier_id: int):
    try:
        return jsonify(supplier_service.get_supplier_debt_detail(supplier_id)), 200
    except SettlementError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to load supplier debt detail")
        return jsonify({"error": "Internal server error"}), 500
