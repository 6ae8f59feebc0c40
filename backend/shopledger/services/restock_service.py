# Overview: Service-layer operations for restocks; receives goods from suppliers and pays for them atomically.

"""
Restock Settlement Engine

WHY: Receiving goods creates inventory (stock, rolls, units) and usually a
debt towards the supplier. Both must land together.

DESIGN:
- Every line names an existing item (itemId) or defines one (newItem);
  new items are created inside the same transaction
- EACH lines: stock += quantity and one InventoryUnit per piece, either
  with the given serials or with generated placeholder barcodes
- METER lines: one Roll per declared length, stock += length, a
  RestockRoll link and one lineage InventoryUnit per roll
- subtotal = sum(unit cost x quantity|length); total = subtotal + tax
- paid now > 0: Payment + CashboxEntry(out)
- status re-derived from restock payments like a sale receipt
"""

from __future__ import annotations

import uuid

from sqlalchemy import func

from ..extensions import db
from ..errors import InvalidRequest, NotFound
from ..models import Item, InventoryUnit, Restock, RestockItem, RestockRoll, Roll, Supplier
from ..models.inventory import STOCK_UNIT_METER, UNIT_AVAILABLE
from ..models.sales import LINE_MODE_EACH, LINE_MODE_METER, PAYMENT_KIND_RESTOCK
from ..money import as_float, q2, q3, ZERO
from ..time_utils import utcnow
from . import stock_ledger
from .actor_service import resolve_acting_user
from .allocation_service import is_unit_tracked
from .concurrency import atomic, lock_for_update
from .payment_service import list_payments, record_payment, refresh_restock_status
from .receipt_status import Computed, Manual, resolve_status


PLACEHOLDER_PREFIX = "PH-"


def generate_placeholder_barcode() -> str:
    return f"{PLACEHOLDER_PREFIX}{uuid.uuid4().hex[:12].upper()}"


# =============================================================================
# SUPPLIER / ITEMS
# =============================================================================

def resolve_supplier(supplier_id: int | None, supplier_name: str | None) -> Supplier:
    """Supplier by id (must exist) or by case-insensitive name (created when absent)."""
    if supplier_id is not None:
        supplier = db.session.get(Supplier, supplier_id)
        if supplier is None:
            raise NotFound("Supplier not found", {"supplier_id": supplier_id})
        return supplier

    name = (supplier_name or "").strip()
    if not name:
        raise InvalidRequest("Supplier id or name is required", {"field": "supplier"})

    supplier = (
        db.session.query(Supplier)
        .filter(func.lower(Supplier.name) == name.lower())
        .first()
    )
    if supplier is None:
        supplier = Supplier(name=name)
        db.session.add(supplier)
        db.session.flush()
    return supplier


def _create_item(definition) -> Item:
    is_metered = definition.stock_unit == STOCK_UNIT_METER
    if definition.price_retail is not None:
        legacy_price = q2(definition.price_retail)
    elif definition.price_wholesale is not None:
        legacy_price = q2(definition.price_wholesale)
    else:
        legacy_price = q2(ZERO)

    item = Item(
        name=definition.name,
        sku=definition.sku,
        category=definition.category,
        description=definition.description,
        stock_unit=STOCK_UNIT_METER if is_metered else None,
        roll_length=q3(definition.roll_length) if is_metered and definition.roll_length is not None else None,
        price_retail=q2(definition.price_retail) if definition.price_retail is not None else None,
        price_wholesale=q2(definition.price_wholesale) if definition.price_wholesale is not None else None,
        price=legacy_price,
        stock=q3(ZERO),
    )
    db.session.add(item)
    db.session.flush()
    return item


def _line_item(line, index: int) -> Item:
    if (line.item_id is None) == (line.new_item is None):
        raise InvalidRequest(
            "Each line needs exactly one of itemId or newItem",
            {"line": index},
        )
    if line.new_item is not None:
        return _create_item(line.new_item)

    item = lock_for_update(db.session.query(Item).filter_by(id=line.item_id)).first()
    if item is None:
        raise InvalidRequest("Item not found", {"line": index, "item_id": line.item_id})
    return item


# =============================================================================
# LINES
# =============================================================================

def _check_serials(lines) -> None:
    """Serials must be unique across the request and unknown to inventory."""
    serials = [serial for line in lines for serial in line.serials]
    if not serials:
        return
    if len(set(serials)) != len(serials):
        raise InvalidRequest("Duplicate serial numbers provided")
    existing = (
        db.session.query(InventoryUnit.barcode)
        .filter(InventoryUnit.barcode.in_(sorted(set(serials))))
        .all()
    )
    if existing:
        raise InvalidRequest(
            "One or more serial numbers already exist in inventory",
            {"serials": sorted(row.barcode for row in existing)},
        )


def _track_counter_stock(item: Item) -> None:
    """
    Give an untracked item one placeholder unit per piece of counter stock.

    Runs before the first unit-based receipt of the item, so that once it is
    unit-tracked its stock still equals its available units.
    """
    if is_unit_tracked(item.id):
        return
    on_hand = q3(item.stock or 0)
    if on_hand <= ZERO:
        return
    if on_hand != on_hand.to_integral_value():
        raise InvalidRequest(
            f"Stock of {item.name} is not a whole number of pieces",
            {"item_id": item.id, "stock": str(on_hand)},
        )
    for _ in range(int(on_hand)):
        db.session.add(InventoryUnit(
            item_id=item.id,
            barcode=generate_placeholder_barcode(),
            is_placeholder=True,
            status=UNIT_AVAILABLE,
            cost_each=q2(ZERO),
        ))
    db.session.flush()


def _receive_each(restock: Restock, item: Item, line, index: int):
    if item.is_metered:
        raise InvalidRequest(f"Item {item.name} is metered; use METER mode", {"line": index})

    quantity = line.quantity
    if quantity is None or quantity <= ZERO or quantity != quantity.to_integral_value():
        raise InvalidRequest("quantity must be a whole number greater than 0", {"line": index})
    quantity = int(quantity)

    if line.auto_serial and line.serials:
        raise InvalidRequest(
            f"Cannot supply serial numbers and enable auto generation for {item.name}",
            {"line": index},
        )
    if not line.auto_serial and len(line.serials) != quantity:
        raise InvalidRequest(
            f"Provide exactly {quantity} serial numbers for {item.name} or enable auto generation",
            {"line": index},
        )

    unit_cost = q2(line.unit_cost or 0)
    restock_item = RestockItem(
        item_id=item.id,
        mode=LINE_MODE_EACH,
        quantity=quantity,
        cost_each=unit_cost,
    )
    restock.lines.append(restock_item)
    db.session.flush()

    _track_counter_stock(item)
    stock_ledger.increment_item_stock(item.id, quantity)

    serials = list(line.serials)
    for _ in range(quantity):
        serial = serials.pop(0) if serials else None
        db.session.add(InventoryUnit(
            item_id=item.id,
            restock_item_id=restock_item.id,
            barcode=serial or generate_placeholder_barcode(),
            is_placeholder=serial is None,
            status=UNIT_AVAILABLE,
            cost_each=unit_cost,
        ))
    return q2(unit_cost * quantity)


def _receive_meter(restock: Restock, item: Item, line, index: int):
    if not item.is_metered:
        raise InvalidRequest(f"Item {item.name} is unit-based; use EACH mode", {"line": index})
    if not line.new_rolls:
        raise InvalidRequest(
            f"newRolls must contain at least one length for {item.name}",
            {"line": index},
        )
    lengths = [q3(length) for length in line.new_rolls]
    if any(length <= ZERO for length in lengths):
        raise InvalidRequest("Roll lengths must be greater than 0", {"line": index})

    cost_per_meter = q2(line.unit_cost) if line.unit_cost is not None else None
    restock_item = RestockItem(
        item_id=item.id,
        mode=LINE_MODE_METER,
        quantity=len(lengths),
        length_m=q3(sum(lengths, ZERO)),
        cost_each=cost_per_meter or q2(ZERO),
    )
    restock.lines.append(restock_item)
    db.session.flush()

    subtotal = ZERO
    for length in lengths:
        roll = Roll(
            item_id=item.id,
            length_m=length,
            remaining_m=length,
            cost_per_meter=cost_per_meter,
        )
        db.session.add(roll)
        db.session.flush()

        stock_ledger.increment_item_stock(item.id, length)
        restock_item.roll_links.append(RestockRoll(roll_id=roll.id))
        db.session.add(InventoryUnit(
            item_id=item.id,
            restock_item_id=restock_item.id,
            roll_id=roll.id,
            barcode=generate_placeholder_barcode(),
            is_placeholder=True,
            status=UNIT_AVAILABLE,
            cost_each=cost_per_meter or q2(ZERO),
        ))
        subtotal += q2((cost_per_meter or ZERO) * length)
    return q2(subtotal)


# =============================================================================
# RECEIPT
# =============================================================================

def build_restock_receipt(restock: Restock) -> dict:
    paid, _status = refresh_restock_status(restock)
    data = restock.to_dict()
    data["paid"] = as_float(paid)
    data["outstanding"] = as_float(max(q2(restock.total) - paid, ZERO))
    data["lines"] = [line.to_dict() for line in restock.lines]
    data["payments"] = [payment.to_dict() for payment in list_payments(restock_ids=[restock.id])]
    return data


def _load_restock_locked(restock_id: int) -> Restock:
    restock = lock_for_update(db.session.query(Restock).filter_by(id=restock_id)).first()
    if restock is None:
        raise NotFound("Restock not found", {"restock_id": restock_id})
    return restock


# =============================================================================
# PUBLIC OPERATIONS
# =============================================================================

def create_restock(request, actor) -> dict:
    """
    Receive goods from a supplier, with an optional immediate payment.

    Raises:
        InvalidRequest: bad lines or serials, missing supplier, missing cashbox
        NotFound: unknown supplier id
    """
    with atomic():
        user = resolve_acting_user(actor, request.user_id, required=False)
        supplier = resolve_supplier(request.supplier_id, request.supplier_name)
        _check_serials(request.lines)

        if request.override is not None and request.override.value is not None:
            override = Manual(value=request.override.value, note=request.override.note, set_at=utcnow())
        else:
            override = Computed()

        restock = Restock(
            supplier_id=supplier.id,
            user_id=user.id if user else None,
            note=request.note,
            date=request.date or utcnow(),
        )
        restock.manual_override = override
        db.session.add(restock)
        db.session.flush()

        subtotal = ZERO
        for index, line in enumerate(request.lines):
            item = _line_item(line, index)
            if line.mode == LINE_MODE_METER:
                subtotal += _receive_meter(restock, item, line, index)
            else:
                subtotal += _receive_each(restock, item, line, index)

        restock.subtotal = q2(subtotal)
        restock.tax = q2(request.tax)
        restock.total = q2(restock.subtotal + restock.tax)
        restock.status = resolve_status(request.payment.amount, restock.total, override)
        db.session.flush()

        if request.payment.amount > ZERO:
            record_payment(kind=PAYMENT_KIND_RESTOCK, target_id=restock.id, payment=request.payment)
        return build_restock_receipt(restock)


def record_restock_payment(restock_id: int, payment) -> dict:
    """Standalone payment against an existing restock."""
    with atomic():
        restock = _load_restock_locked(restock_id)
        record_payment(kind=PAYMENT_KIND_RESTOCK, target_id=restock.id, payment=payment)
        return build_restock_receipt(restock)


def set_restock_status_override(restock_id: int, override_request) -> dict:
    with atomic():
        restock = _load_restock_locked(restock_id)
        if override_request.value is None:
            restock.manual_override = Computed()
        else:
            restock.manual_override = Manual(
                value=override_request.value,
                note=override_request.note,
                set_at=utcnow(),
            )
        db.session.flush()
        return build_restock_receipt(restock)


def get_restock_receipt(restock_id: int) -> dict:
    with atomic():
        restock = db.session.get(Restock, restock_id)
        if restock is None:
            raise NotFound("Restock not found", {"restock_id": restock_id})
        return build_restock_receipt(restock)
