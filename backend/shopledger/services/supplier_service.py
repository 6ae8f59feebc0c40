# Overview: Service-layer operations for supplier debt; spreads one payment over outstanding restocks.

"""
Supplier Debt Allocator

One payment to a supplier is split across that supplier's restocks, oldest
first (business date, then id). Each restock takes
min(hint, outstanding, remaining) where the hint is optional and only ever
caps the slice. Every positive slice becomes its own Payment +
CashboxEntry(out), and the restock's status is refreshed.

If more than ALLOCATION_TOLERANCE is left over, the whole payment is
rejected and nothing is written.
"""

from __future__ import annotations

from dataclasses import replace

from sqlalchemy import func

from ..extensions import db
from ..errors import InvalidRequest, NotFound
from ..models import Cashbox, Payment, Restock, Supplier
from ..models.sales import PAYMENT_KIND_RESTOCK
from ..money import ALLOCATION_TOLERANCE, as_float, q2, ZERO
from ..time_utils import to_utc_z
from .concurrency import atomic, lock_for_update
from .ledger_service import resolve_cashbox
from .payment_service import record_payment, refresh_restock_status, restock_paid_total


def _business_order():
    return (func.coalesce(Restock.date, Restock.created_at).asc(), Restock.id.asc())


def _get_supplier(supplier_id: int) -> Supplier:
    supplier = db.session.get(Supplier, supplier_id)
    if supplier is None:
        raise NotFound("Supplier not found", {"supplier_id": supplier_id})
    return supplier


def _load_restocks_locked(supplier_id: int) -> list[Restock]:
    return lock_for_update(
        db.session.query(Restock)
        .filter(Restock.supplier_id == supplier_id)
        .order_by(*_business_order())
    ).all()


def record_supplier_payment(supplier_id: int, request) -> dict:
    """
    Allocate request.payment.amount over the supplier's outstanding restocks.

    Raises:
        NotFound: unknown supplier
        InvalidRequest: missing cashbox, hints for another supplier's
            restocks, or an amount larger than the outstanding debt
    """
    payment = request.payment
    amount = q2(payment.amount)
    if amount <= ZERO:
        raise InvalidRequest("Payment amount must be greater than 0", {"field": "amount"})

    with atomic():
        _get_supplier(supplier_id)
        resolve_cashbox(payment.cashbox, required=True)

        restocks = _load_restocks_locked(supplier_id)
        own_ids = {restock.id for restock in restocks}

        hints = {}
        for hint in request.allocations:
            if hint.restock_id not in own_ids:
                raise InvalidRequest(
                    "Allocation names a restock of another supplier",
                    {"restock_id": hint.restock_id, "supplier_id": supplier_id},
                )
            hints[hint.restock_id] = q2(hint.amount)

        remaining = amount
        applied = []
        for restock in restocks:
            if remaining <= ZERO:
                break
            outstanding = q2(restock.total) - restock_paid_total(restock.id)
            if outstanding <= ZERO:
                continue

            portion = min(outstanding, remaining)
            if restock.id in hints:
                portion = min(portion, hints[restock.id])
            portion = q2(portion)
            if portion <= ZERO:
                continue

            row = record_payment(
                kind=PAYMENT_KIND_RESTOCK,
                target_id=restock.id,
                payment=replace(payment, amount=portion),
            )
            _paid, status = refresh_restock_status(restock)
            applied.append({
                "restock_id": restock.id,
                "payment_id": row.id,
                "amount": as_float(portion),
                "status_code": status,
            })
            remaining = q2(remaining - portion)

        if remaining > ALLOCATION_TOLERANCE:
            raise InvalidRequest(
                "Could not allocate full amount to outstanding restocks",
                {"unallocated": as_float(remaining)},
            )

        return {
            "payments": len(applied),
            "allocations": applied,
            "unallocated": as_float(remaining),
            "detail": get_supplier_debt_detail(supplier_id),
        }


def get_supplier_debt_detail(supplier_id: int) -> dict:
    """Per-restock totals, the supplier's restock payments and an aggregate summary."""
    supplier = _get_supplier(supplier_id)

    paid_by_restock = dict(
        db.session.query(Payment.restock_id, func.coalesce(func.sum(Payment.amount), 0))
        .join(Restock, Restock.id == Payment.restock_id)
        .filter(Restock.supplier_id == supplier_id, Payment.kind == PAYMENT_KIND_RESTOCK)
        .group_by(Payment.restock_id)
        .all()
    )

    restocks = (
        db.session.query(Restock)
        .filter(Restock.supplier_id == supplier_id)
        .order_by(func.coalesce(Restock.date, Restock.created_at).desc(), Restock.id.desc())
        .all()
    )

    total_sum = paid_sum = outstanding_sum = ZERO
    rows = []
    for restock in restocks:
        total = q2(restock.total)
        paid = q2(paid_by_restock.get(restock.id) or 0)
        outstanding = q2(total - paid)
        total_sum += total
        paid_sum += paid
        outstanding_sum += outstanding
        rows.append({
            "id": restock.id,
            "date": to_utc_z(restock.date or restock.created_at),
            "total": as_float(total),
            "paid": as_float(paid),
            "outstanding": as_float(outstanding),
            "status_code": restock.status,
            "status_manual_enabled": bool(restock.status_manual_enabled),
            "status_manual_value": restock.status_manual_value,
        })

    payments = (
        db.session.query(Payment, Restock.id, Cashbox.code)
        .join(Restock, Restock.id == Payment.restock_id)
        .outerjoin(Cashbox, Cashbox.id == Payment.cashbox_id)
        .filter(Restock.supplier_id == supplier_id, Payment.kind == PAYMENT_KIND_RESTOCK)
        .order_by(Payment.paid_at.desc(), Payment.id.desc())
        .all()
    )

    return {
        "supplier": supplier.to_dict(),
        "summary": {
            "total": as_float(q2(total_sum)),
            "paid": as_float(q2(paid_sum)),
            "outstanding": as_float(q2(outstanding_sum)),
        },
        "restocks": rows,
        "payments": [
            {
                "id": payment.id,
                "restock_id": restock_id,
                "amount": as_float(q2(payment.amount)),
                "note": payment.note,
                "cashbox_code": code,
                "paid_at": to_utc_z(payment.paid_at),
                "created_at": to_utc_z(payment.created_at),
            }
            for payment, restock_id, code in payments
        ],
    }
