# Overview: Pure receipt status derivation shared by sales and restocks.

"""
Receipt Status Resolver

A receipt's status is a projection of ledger truth (paid vs total) plus an
optional manual override. The override is a tagged value:

- Computed(): no override, status follows the ledger
- Manual(value, note, set_at): operator pinned the status

Both amounts are rounded to cents before comparison:
- paid >= total      -> PAID
- 0 < paid < total   -> PARTIAL
- paid <= 0          -> UNPAID
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Union

from ..money import q2, ZERO


RECEIPT_PAID = "PAID"
RECEIPT_PARTIAL = "PARTIAL"
RECEIPT_UNPAID = "UNPAID"

RECEIPT_STATUSES = (RECEIPT_PAID, RECEIPT_PARTIAL, RECEIPT_UNPAID)


def normalize_status(value) -> str | None:
    """Upper-case a candidate status; None when it is not a receipt status."""
    if value is None:
        return None
    candidate = str(value).strip().upper()
    return candidate if candidate in RECEIPT_STATUSES else None


@dataclass(frozen=True)
class Computed:
    """No manual override."""


@dataclass(frozen=True)
class Manual:
    value: str
    note: str | None = None
    set_at: datetime | None = None

    def __post_init__(self):
        if self.value not in RECEIPT_STATUSES:
            raise ValueError(f"invalid receipt status: {self.value!r}")


StatusOverride = Union[Computed, Manual]


def compute_status(paid, total) -> str:
    paid = q2(paid)
    total = q2(total)
    if paid >= total:
        return RECEIPT_PAID
    if paid > ZERO:
        return RECEIPT_PARTIAL
    return RECEIPT_UNPAID


def resolve_status(paid, total, override: StatusOverride | None = None) -> str:
    """Manual value wins over the computed one."""
    if isinstance(override, Manual):
        return override.value
    return compute_status(paid, total)
