# Overview: Flask API routes for standalone payments against existing receipts.

# backend/shopledger/routes/payments.py
"""
Payment API Routes

Standalone payments settle part or all of an existing sale (money in) or
restock (money out). Each one writes a Payment, a cashbox ledger entry and
refreshes the receipt status.

Request body (both routes):
{
    "amount": 25.00,
    "cashboxCode": "A",        (or cashboxId / cashbox)
    "note": "second installment",
    "paymentDate": "2024-05-01T10:00:00Z",
    "payMethod": "cash"
}
"""

from flask import Blueprint, request, jsonify, current_app

from .. import schemas
from ..decorators import with_actor
from ..errors import SettlementError
from ..services import restock_service, sales_service


payments_bp = Blueprint("payments", __name__, url_prefix="/api/payments")


@payments_bp.post("/sales/<int:sale_id>")
@with_actor
def sale_payment_route(sale_id: int):
    try:
        payment = schemas.parse_payment_request(request.get_json(silent=True))
        receipt = sales_service.record_sale_payment(sale_id, payment)
        current_app.logger.info(
            "Payment of %s recorded on sale %s: paid=%s status=%s",
            payment.amount, sale_id, receipt["paid"], receipt["status_code"],
        )
        return jsonify(receipt), 201
    except SettlementError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to record sale payment")
        return jsonify({"error": "Internal server error"}), 500


@payments_bp.post("/restocks/<int:restock_id>")
@with_actor
def restock_payment_route(restock_id: int):
    try:
        payment = schemas.parse_payment_request(request.get_json(silent=True))
        receipt = restock_service.record_restock_payment(restock_id, payment)
        current_app.logger.info(
            "Payment of %s recorded on restock %s: paid=%s status=%s",
            payment.amount, restock_id, receipt["paid"], receipt["status_code"],
        )
        return jsonify(receipt), 201
    except SettlementError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to record restock payment")
        return jsonify({"error": "Internal server error"}), 500
