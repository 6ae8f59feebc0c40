# Overview: Flask API routes for unit returns; request, resolve and list.

# backend/shopledger/routes/returns.py
"""
Returns API Routes

LIFECYCLE:
    sold unit --request--> pending --resolve--> restocked | trashed | returned_to_supplier
"""

from flask import Blueprint, request, jsonify, current_app

from .. import schemas
from ..decorators import with_actor
from ..errors import SettlementError
from ..services import return_service


returns_bp = Blueprint("returns", __name__, url_prefix="/api/returns")


@returns_bp.post("/units/<int:unit_id>")
@with_actor
def request_return_route(unit_id: int):
    """
    Mark a sold unit as returned.

    Request body:
    {"requestedOutcome": "restock" | "defective", "note": "..."}
    """
    try:
        return_request = schemas.parse_return_request(request.get_json(silent=True) or {})
        record = return_service.request_return(unit_id, return_request)
        current_app.logger.info(
            "Return %s opened for unit %s (requested %s)",
            record["id"], unit_id, record["requested_outcome"],
        )
        return jsonify(record), 201
    except SettlementError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to request return")
        return jsonify({"error": "Internal server error"}), 500


@returns_bp.post("/<int:return_id>/resolve")
@with_actor
def resolve_return_route(return_id: int):
    """
    Close a pending return.

    Request body:
    {"action": "restock" | "trash" | "return_to_supplier", "supplierId": 3, "supplierNote": "RMA 77"}
    """
    try:
        resolution = schemas.parse_return_resolution(request.get_json(silent=True))
        record = return_service.resolve_return(return_id, resolution)
        current_app.logger.info("Return %s resolved: %s", return_id, record["status"])
        return jsonify(record), 200
    except SettlementError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to resolve return")
        return jsonify({"error": "Internal server error"}), 500


@returns_bp.get("/")
def list_returns_route():
    """List returns, pending first. Optional ?status= filter."""
    try:
        status = (request.args.get("status") or "").strip().lower() or None
        return jsonify({"returns": return_service.list_returns(status)}), 200
    except SettlementError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to list returns")
        return jsonify({"error": "Internal server error"}), 500
