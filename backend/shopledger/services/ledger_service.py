# Overview: Service-layer operations for the cashbox ledger; append-only entries and derived balances.

from __future__ import annotations

from datetime import datetime
from typing import Optional

from sqlalchemy import case, func

from ..extensions import db
from ..errors import InvalidRequest, NotFound
from ..models import Cashbox, CashboxEntry
from ..models.cashboxes import (
    DIRECTION_IN,
    DIRECTION_OUT,
    ENTRY_KIND_EXPENSE,
    ENTRY_KIND_INCOME,
    ENTRY_KINDS,
    REFERENCE_MANUAL,
)
from ..money import as_float, q2, ZERO
from ..time_utils import normalize_business_time

"""
Cashbox Ledger Invariants

- Append-only: entries are never updated or deleted.
- Entries are written inside the same DB transaction as the payment or
  manual movement they record.
- amount > 0; direction carries the sign.
- balance(cashbox) = sum(in) - sum(out), derived on read, never stored.
- occurred_at is business time; created_at is system time (DB default).
"""


def resolve_cashbox(selector, *, required: bool = True) -> Cashbox | None:
    """
    Load the cashbox a CashboxSelector points at.

    - no selector: InvalidRequest when required, else None
    - unknown id/code: InvalidRequest
    - inactive cashbox: InvalidRequest
    """
    if selector is None:
        if required:
            raise InvalidRequest("A cashbox (cashboxId or cashboxCode) is required")
        return None

    cashbox = None
    if selector.cashbox_id is not None:
        cashbox = db.session.get(Cashbox, selector.cashbox_id)
    if cashbox is None and selector.code:
        cashbox = db.session.query(Cashbox).filter_by(code=selector.code.upper()).first()

    if cashbox is None:
        raise InvalidRequest(
            "Cashbox not found",
            {"cashbox_id": selector.cashbox_id, "cashbox_code": selector.code},
        )
    if not cashbox.is_active:
        raise InvalidRequest("Cashbox is inactive", {"cashbox_code": cashbox.code})
    return cashbox


def append_entry(
    *,
    cashbox: Cashbox,
    kind: str,
    direction: str,
    amount,
    payment_id: int | None = None,
    reference_type: str | None = None,
    reference_id: int | None = None,
    occurred_at: Optional[datetime] = None,
    note: Optional[str] = None,
    meta: Optional[dict] = None,
) -> CashboxEntry:
    """
    Append one ledger entry.

    - No domain logic here.
    - No updates/deletes of existing entries.
    """
    if kind not in ENTRY_KINDS:
        raise InvalidRequest(f"Invalid cashbox entry kind: {kind}")
    if direction not in (DIRECTION_IN, DIRECTION_OUT):
        raise InvalidRequest(f"Invalid cashbox entry direction: {direction}")
    amount = q2(amount)
    if amount <= ZERO:
        raise InvalidRequest("Cashbox entry amount must be greater than 0")

    entry = CashboxEntry(
        cashbox_id=cashbox.id,
        kind=kind,
        direction=direction,
        amount=amount,
        payment_id=payment_id,
        reference_type=reference_type,
        reference_id=reference_id,
        occurred_at=normalize_business_time(occurred_at),
        note=note,
        meta=meta or None,
    )
    db.session.add(entry)
    db.session.flush()  # ensures entry.id is assigned without committing
    return entry


def _signed_amount():
    return case(
        (CashboxEntry.direction == DIRECTION_IN, CashboxEntry.amount),
        else_=-CashboxEntry.amount,
    )


def get_balance(cashbox_id: int, as_of: Optional[datetime] = None):
    """Balance of one cashbox; as_of is inclusive on occurred_at."""
    query = db.session.query(func.coalesce(func.sum(_signed_amount()), 0)).filter(
        CashboxEntry.cashbox_id == cashbox_id
    )
    if as_of is not None:
        query = query.filter(CashboxEntry.occurred_at <= as_of)
    return q2(query.scalar() or 0)


def list_cashboxes_with_balances() -> list[dict]:
    rows = (
        db.session.query(Cashbox, func.coalesce(func.sum(_signed_amount()), 0))
        .outerjoin(CashboxEntry, CashboxEntry.cashbox_id == Cashbox.id)
        .group_by(Cashbox.id)
        .order_by(Cashbox.code.asc())
        .all()
    )
    result = []
    for cashbox, balance in rows:
        data = cashbox.to_dict()
        data["balance"] = as_float(q2(balance or 0))
        result.append(data)
    return result


def create_manual_entry(request) -> CashboxEntry:
    """
    Record an income (in) or expense (out) not tied to a sale or restock.

    Caller owns the transaction boundary.
    """
    cashbox = resolve_cashbox(request.cashbox)
    direction = DIRECTION_IN if request.kind == ENTRY_KIND_INCOME else DIRECTION_OUT
    kind = ENTRY_KIND_INCOME if request.kind == ENTRY_KIND_INCOME else ENTRY_KIND_EXPENSE
    return append_entry(
        cashbox=cashbox,
        kind=kind,
        direction=direction,
        amount=request.amount,
        reference_type=REFERENCE_MANUAL,
        occurred_at=request.occurred_at,
        note=request.note,
    )


def list_entries(code: str, query) -> list[dict]:
    """
    Entries of one cashbox, newest first.

    Filters: kind, startDate/endDate (inclusive on occurred_at), note search.
    """
    cashbox = db.session.query(Cashbox).filter_by(code=(code or "").upper()).first()
    if cashbox is None:
        raise NotFound("Cashbox not found", {"cashbox_code": code})

    q = db.session.query(CashboxEntry).filter(CashboxEntry.cashbox_id == cashbox.id)
    if query.kind:
        q = q.filter(CashboxEntry.kind == query.kind)
    if query.start is not None:
        q = q.filter(CashboxEntry.occurred_at >= query.start)
    if query.end is not None:
        q = q.filter(CashboxEntry.occurred_at <= query.end)
    if query.search:
        q = q.filter(CashboxEntry.note.ilike(f"%{query.search}%"))

    entries = q.order_by(CashboxEntry.occurred_at.desc(), CashboxEntry.id.desc()).all()
    return [entry.to_dict() for entry in entries]
