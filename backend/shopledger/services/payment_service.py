# Overview: Service-layer operations for payments; writes Payment rows with their ledger entries and refreshes receipt status.

"""
Payment Recording Service

WHY: Every unit of money that moves for a sale or a restock must show up in
two places at once: a Payment row (what was paid against which receipt) and
a CashboxEntry (which drawer the money went into or came out of).

DESIGN PRINCIPLES:
- Payments are separate from receipts (many-to-one relationship)
- Partial payments: a receipt may stay PARTIAL or UNPAID indefinitely
- Paid-to-date is always summed from Payment rows, never stored
- Receipt status is refreshed from that sum after every payment
- Callers own the transaction boundary (services.concurrency.atomic)
"""

from __future__ import annotations

from sqlalchemy import func

from ..extensions import db
from ..errors import InvalidRequest
from ..models import Payment
from ..models.cashboxes import (
    DIRECTION_IN,
    DIRECTION_OUT,
    ENTRY_KIND_PAYMENT,
    REFERENCE_RESTOCK,
    REFERENCE_SALE,
)
from ..models.sales import PAYMENT_KIND_RESTOCK, PAYMENT_KIND_SALE
from ..money import q2, ZERO
from ..time_utils import normalize_business_time
from .ledger_service import append_entry, resolve_cashbox
from .receipt_status import resolve_status


# =============================================================================
# PAYMENT CREATION
# =============================================================================

def record_payment(*, kind: str, target_id: int, payment) -> Payment:
    """
    Write one Payment and its mirroring CashboxEntry.

    Args:
        kind: "sale" (money in) or "restock" (money out)
        target_id: sale (transaction) id or restock id
        payment: PaymentRequest with amount, cashbox selector, note, date

    Raises:
        InvalidRequest: amount not positive, cashbox missing/unknown/inactive
    """
    amount = q2(payment.amount)
    if amount <= ZERO:
        raise InvalidRequest("Payment amount must be greater than 0")

    cashbox = resolve_cashbox(payment.cashbox, required=True)
    occurred_at = normalize_business_time(payment.paid_at)

    if kind == PAYMENT_KIND_SALE:
        row = Payment(kind=kind, amount=amount, transaction_id=target_id)
        direction, reference_type = DIRECTION_IN, REFERENCE_SALE
    elif kind == PAYMENT_KIND_RESTOCK:
        row = Payment(kind=kind, amount=amount, restock_id=target_id)
        direction, reference_type = DIRECTION_OUT, REFERENCE_RESTOCK
    else:
        raise InvalidRequest(f"Unsupported payment kind: {kind}")

    row.cashbox_id = cashbox.id
    row.note = payment.note
    row.paid_at = occurred_at
    db.session.add(row)
    db.session.flush()

    meta = {"payMethod": payment.pay_method} if payment.pay_method else None
    append_entry(
        cashbox=cashbox,
        kind=ENTRY_KIND_PAYMENT,
        direction=direction,
        amount=amount,
        payment_id=row.id,
        reference_type=reference_type,
        reference_id=target_id,
        occurred_at=occurred_at,
        note=payment.note,
        meta=meta,
    )
    return row


# =============================================================================
# PAID-TO-DATE AND STATUS
# =============================================================================

def sale_paid_total(sale_id: int):
    total = (
        db.session.query(func.coalesce(func.sum(Payment.amount), 0))
        .filter(Payment.transaction_id == sale_id, Payment.kind == PAYMENT_KIND_SALE)
        .scalar()
    )
    return q2(total or 0)


def restock_paid_total(restock_id: int):
    total = (
        db.session.query(func.coalesce(func.sum(Payment.amount), 0))
        .filter(Payment.restock_id == restock_id, Payment.kind == PAYMENT_KIND_RESTOCK)
        .scalar()
    )
    return q2(total or 0)


def _refresh(receipt, paid) -> str:
    status = resolve_status(paid, receipt.total, receipt.manual_override)
    if receipt.status != status:
        receipt.status = status
        db.session.flush()
    return status


def refresh_sale_status(sale):
    """Re-derive a sale's status from its payments. Returns (paid, status)."""
    paid = sale_paid_total(sale.id)
    return paid, _refresh(sale, paid)


def refresh_restock_status(restock):
    """Re-derive a restock's status from its payments. Returns (paid, status)."""
    paid = restock_paid_total(restock.id)
    return paid, _refresh(restock, paid)


def list_payments(*, sale_id: int | None = None, restock_ids=None) -> list[Payment]:
    query = db.session.query(Payment)
    if sale_id is not None:
        query = query.filter(Payment.transaction_id == sale_id, Payment.kind == PAYMENT_KIND_SALE)
    if restock_ids is not None:
        ids = list(restock_ids)
        if not ids:
            return []
        query = query.filter(Payment.restock_id.in_(ids), Payment.kind == PAYMENT_KIND_RESTOCK)
    return query.order_by(Payment.paid_at.asc(), Payment.id.asc()).all()
