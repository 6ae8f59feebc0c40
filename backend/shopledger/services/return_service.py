# Overview: Service-layer operations for unit returns; a small state machine over sold inventory units.

"""
Returns Workflow

STATE MACHINE (return record):
    pending -> restocked            (unit back to available, item stock +1)
    pending -> trashed              (unit defective)
    pending -> returned_to_supplier (unit defective, optional supplier)

UNIT TRANSITIONS:
- request: sold -> returned
- resolve: returned -> available | defective

Money is not moved here; refunds, if any, are recorded separately.
"""

from __future__ import annotations

from ..extensions import db
from ..errors import InvalidRequest, NotFound
from ..models import InventoryReturn, InventoryUnit, Supplier, TransactionItem, TransactionItemUnit
from ..models.inventory import UNIT_AVAILABLE, UNIT_DEFECTIVE, UNIT_RETURNED, UNIT_SOLD
from ..models.returns import (
    RETURN_PENDING,
    RETURN_RESTOCKED,
    RETURN_TO_SUPPLIER,
    RETURN_TRASHED,
)
from ..money import as_float
from ..time_utils import to_utc_z, utcnow
from . import stock_ledger
from .concurrency import atomic, lock_for_update


def request_return(unit_id: int, request) -> dict:
    """
    Open a pending return for a sold unit.

    Raises:
        NotFound: unit does not exist
        InvalidRequest: unit not sold, or a return is already pending
    """
    with atomic():
        unit = lock_for_update(db.session.query(InventoryUnit).filter_by(id=unit_id)).first()
        if unit is None:
            raise NotFound("Inventory unit not found", {"unit_id": unit_id})
        if unit.status != UNIT_SOLD:
            raise InvalidRequest(
                "Only sold units can be marked for return",
                {"unit_id": unit.id, "status": unit.status},
            )

        pending = (
            db.session.query(InventoryReturn.id)
            .filter_by(inventory_unit_id=unit.id, status=RETURN_PENDING)
            .first()
        )
        if pending is not None:
            raise InvalidRequest("Return already pending for this unit", {"unit_id": unit.id})

        if not stock_ledger.transition_unit(unit.id, UNIT_SOLD, UNIT_RETURNED):
            raise InvalidRequest("Only sold units can be marked for return", {"unit_id": unit.id})

        record = InventoryReturn(
            inventory_unit_id=unit.id,
            requested_outcome=request.requested_outcome,
            status=RETURN_PENDING,
            note=request.note,
        )
        db.session.add(record)
        db.session.flush()
        return return_to_dict(record)


def resolve_return(return_id: int, resolution) -> dict:
    """
    Close a pending return.

    Raises:
        NotFound: return record or named supplier does not exist
        InvalidRequest: return already resolved, or unit no longer returned
    """
    with atomic():
        record = lock_for_update(db.session.query(InventoryReturn).filter_by(id=return_id)).first()
        if record is None:
            raise NotFound("Return record not found", {"return_id": return_id})
        if record.status != RETURN_PENDING:
            raise InvalidRequest("Return already resolved", {"return_id": record.id, "status": record.status})

        unit = db.session.get(InventoryUnit, record.inventory_unit_id)

        if resolution.action == "restock":
            target_unit_status, record_status = UNIT_AVAILABLE, RETURN_RESTOCKED
        elif resolution.action == "trash":
            target_unit_status, record_status = UNIT_DEFECTIVE, RETURN_TRASHED
        elif resolution.action == "return_to_supplier":
            target_unit_status, record_status = UNIT_DEFECTIVE, RETURN_TO_SUPPLIER
            supplier = None
            if resolution.supplier_id is not None:
                supplier = db.session.get(Supplier, resolution.supplier_id)
                if supplier is None:
                    raise NotFound("Supplier not found", {"supplier_id": resolution.supplier_id})
            record.supplier_id = supplier.id if supplier else None
            record.supplier_note = resolution.supplier_note
        else:
            raise InvalidRequest(f"Unknown return action: {resolution.action}")

        if not stock_ledger.transition_unit(unit.id, UNIT_RETURNED, target_unit_status):
            raise InvalidRequest(
                "Inventory unit is no longer in returned state",
                {"unit_id": unit.id, "status": unit.status},
            )
        if target_unit_status == UNIT_AVAILABLE:
            stock_ledger.increment_item_stock(unit.item_id, 1)

        record.status = record_status
        if resolution.note is not None:
            record.note = resolution.note
        record.resolved_at = utcnow()
        db.session.flush()
        return return_to_dict(record)


def _sale_line_for_unit(unit_id: int):
    """Most recent sale line the unit was sold on, or None."""
    return (
        db.session.query(TransactionItem)
        .join(TransactionItemUnit, TransactionItemUnit.transaction_item_id == TransactionItem.id)
        .filter(TransactionItemUnit.inventory_unit_id == unit_id)
        .order_by(TransactionItemUnit.id.desc())
        .first()
    )


def return_to_dict(record: InventoryReturn) -> dict:
    data = record.to_dict()
    unit = record.unit
    item = unit.item if unit else None
    line = _sale_line_for_unit(unit.id) if unit else None

    data["supplier"] = {"id": record.supplier.id, "name": record.supplier.name} if record.supplier else None
    data["inventory_unit"] = {
        "id": unit.id,
        "barcode": unit.barcode,
        "status": unit.status,
        "item": {"id": item.id, "name": item.name, "sku": item.sku} if item else None,
    } if unit else None
    data["transaction"] = {
        "id": line.transaction_id,
        "date": to_utc_z(line.sale.date) if line.sale else None,
        "line_id": line.id,
        "unit_price": as_float(line.price_each),
    } if line else None
    return data


def list_returns(status: str | None = None) -> list[dict]:
    """Pending first, newest first within a status."""
    query = db.session.query(InventoryReturn)
    if status:
        query = query.filter(InventoryReturn.status == status)
    records = query.order_by(
        (InventoryReturn.status != RETURN_PENDING).asc(),
        InventoryReturn.created_at.desc(),
        InventoryReturn.id.desc(),
    ).all()
    return [return_to_dict(record) for record in records]
