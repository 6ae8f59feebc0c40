"""
Settlement error taxonomy.

Every error aborts the enclosing database transaction. None of them are
retried: the caller resubmits with corrected input.

- InvalidRequest: malformed or contradictory input (400)
- InsufficientInventory: not enough stock, meters or units (409)
- NotFound: a referenced sale/restock/return/supplier/unit is absent (404)
"""

from __future__ import annotations


class SettlementError(Exception):
    """Base class for domain errors surfaced to the caller."""

    status_code = 400
    code = "settlement_error"

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_dict(self) -> dict:
        payload = {"error": self.message, "code": self.code}
        if self.details:
            payload["details"] = self.details
        return payload


class InvalidRequest(SettlementError):
    status_code = 400
    code = "invalid_request"


class InsufficientInventory(SettlementError):
    status_code = 409
    code = "insufficient_inventory"


class NotFound(SettlementError):
    status_code = 404
    code = "not_found"
