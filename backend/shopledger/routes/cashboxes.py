# Overview: Flask API routes for cashboxes; balances, entry history and manual movements.

# backend/shopledger/routes/cashboxes.py
"""
Cashbox API Routes

Balances are derived from the append-only entry ledger on every read.
Manual income/expense entries are the only entries written directly here;
payment entries are written by the settlement services.
"""

from flask import Blueprint, request, jsonify, current_app

from .. import schemas
from ..decorators import with_actor
from ..errors import SettlementError
from ..services import ledger_service
from ..services.concurrency import atomic


cashboxes_bp = Blueprint("cashboxes", __name__, url_prefix="/api/cashboxes")


@cashboxes_bp.get("/")
def list_cashboxes_route():
    try:
        return jsonify({"cashboxes": ledger_service.list_cashboxes_with_balances()}), 200
    except Exception:
        current_app.logger.exception("Failed to list cashboxes")
        return jsonify({"error": "Internal server error"}), 500


@cashboxes_bp.post("/entries")
@with_actor
def create_entry_route():
    """
    Record a manual income or expense.

    Request body:
    {"kind": "expense", "amount": 12.50, "cashboxCode": "A", "note": "tape", "occurredAt": "2024-05-01T09:00:00Z"}

    Returns:
        201: The new entry
        400: Invalid input, unknown or inactive cashbox
    """
    try:
        entry_request = schemas.parse_manual_entry(request.get_json(silent=True))
        with atomic():
            entry = ledger_service.create_manual_entry(entry_request)
            data = entry.to_dict()
        current_app.logger.info(
            "Manual %s of %s recorded in cashbox %s",
            data["kind"], data["amount"], data["cashbox_code"],
        )
        return jsonify(data), 201
    except SettlementError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to record cashbox entry")
        return jsonify({"error": "Internal server error"}), 500


@cashboxes_bp.get("/<code>/entries")
def list_entries_route(code: str):
    """Entries of one cashbox. Query: kind, startDate, endDate, search."""
    try:
        query = schemas.parse_entry_query(request.args)
        return jsonify({"entries": ledger_service.list_entries(code, query)}), 200
    except SettlementError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to list cashbox entries")
        return jsonify({"error": "Internal server error"}), 500
