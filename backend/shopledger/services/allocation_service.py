# Overview: Inventory allocation for sale lines; picks units and rolls without mutating them.

"""
Inventory Allocator

Decides WHICH physical inventory a sale line consumes. Nothing is written
here: the settlement engine applies the returned allocations through the
stock ledger, whose guarded UPDATEs are the final word on availability.

EACH, unit-tracked item (the item owns at least one InventoryUnit row):
- explicit unit ids: every unit must exist, belong to the item and be
  available (or be one of the units just released by the sale being edited)
- no ids: oldest available units first (created_at, id)

EACH, untracked item: the stock counter must cover the quantity.

METER: one roll per line, never split across rolls.
- explicit roll: must belong to the item and hold enough length
- no roll: oldest roll of the item with enough remaining length

Several lines of one request may hit the same item or roll, so the
AllocationContext keeps what earlier lines already took.
"""

from __future__ import annotations

from collections import defaultdict
from dataclasses import dataclass, field
from decimal import Decimal

from ..extensions import db
from ..errors import InsufficientInventory, InvalidRequest
from ..models import InventoryUnit, Item, Roll
from ..models.inventory import UNIT_AVAILABLE
from ..models.sales import LINE_MODE_EACH, LINE_MODE_METER
from ..money import q2, q3, ZERO
from .concurrency import lock_for_update


@dataclass
class LineAllocation:
    item: Item
    mode: str
    quantity: int = 1
    length_m: Decimal | None = None
    units: list = field(default_factory=list)
    roll: Roll | None = None
    tracked: bool = False

    @property
    def stock_amount(self) -> Decimal:
        """What the line takes off item.stock."""
        if self.mode == LINE_MODE_METER:
            return q3(self.length_m)
        return q3(self.quantity)

    @property
    def cost_each(self) -> Decimal | None:
        """Cost snapshot written on the line."""
        if self.mode == LINE_MODE_METER:
            if self.roll is None or self.roll.cost_per_meter is None:
                return None
            return q2(self.roll.cost_per_meter)
        if not self.units:
            return None
        total = sum((q2(unit.cost_each or 0) for unit in self.units), ZERO)
        return q2(total / len(self.units))


@dataclass
class AllocationContext:
    """Claims made by earlier lines of the same request."""
    locked_unit_ids: set = field(default_factory=set)
    claimed_unit_ids: set = field(default_factory=set)
    taken_from_item: dict = field(default_factory=lambda: defaultdict(lambda: ZERO))
    taken_from_roll: dict = field(default_factory=lambda: defaultdict(lambda: ZERO))

    def record(self, allocation: LineAllocation) -> None:
        self.claimed_unit_ids.update(unit.id for unit in allocation.units)
        self.taken_from_item[allocation.item.id] += allocation.stock_amount
        if allocation.roll is not None:
            self.taken_from_roll[allocation.roll.id] += allocation.stock_amount


def is_unit_tracked(item_id: int) -> bool:
    return (
        db.session.query(InventoryUnit.id)
        .filter(InventoryUnit.item_id == item_id)
        .first()
        is not None
    )


def _stock_left(item: Item, ctx: AllocationContext) -> Decimal:
    return q3(item.stock or 0) - ctx.taken_from_item[item.id]


def _roll_left(roll: Roll, ctx: AllocationContext) -> Decimal:
    return q3(roll.remaining_m or 0) - ctx.taken_from_roll[roll.id]


# =============================================================================
# EACH
# =============================================================================

def _explicit_units(item: Item, unit_ids, quantity: int, ctx: AllocationContext) -> list:
    ids = list(dict.fromkeys(unit_ids))
    if len(ids) != quantity:
        raise InvalidRequest(
            "Number of inventory units must match quantity",
            {"item_id": item.id, "quantity": quantity, "unit_ids": ids},
        )

    units = lock_for_update(
        db.session.query(InventoryUnit).filter(InventoryUnit.id.in_(ids))
    ).all()
    by_id = {unit.id: unit for unit in units}

    missing = [unit_id for unit_id in ids if unit_id not in by_id]
    if missing:
        raise InvalidRequest("Inventory unit not found", {"unit_ids": missing})

    ordered = []
    for unit_id in ids:
        unit = by_id[unit_id]
        if unit.item_id != item.id:
            raise InvalidRequest(
                "Inventory unit belongs to another item",
                {"unit_id": unit.id, "item_id": item.id},
            )
        if unit.id in ctx.claimed_unit_ids:
            raise InvalidRequest("Inventory unit used twice in one sale", {"unit_id": unit.id})
        if unit.status != UNIT_AVAILABLE and unit.id not in ctx.locked_unit_ids:
            raise InvalidRequest(
                "Inventory unit is not available",
                {"unit_id": unit.id, "status": unit.status},
            )
        ordered.append(unit)
    return ordered


def _oldest_units(item: Item, quantity: int, ctx: AllocationContext) -> list:
    query = db.session.query(InventoryUnit).filter(
        InventoryUnit.item_id == item.id,
        InventoryUnit.status == UNIT_AVAILABLE,
    )
    if ctx.claimed_unit_ids:
        query = query.filter(InventoryUnit.id.notin_(sorted(ctx.claimed_unit_ids)))
    units = lock_for_update(
        query.order_by(InventoryUnit.created_at.asc(), InventoryUnit.id.asc()).limit(quantity)
    ).all()
    if len(units) < quantity:
        raise InsufficientInventory(
            f"Not enough available units for {item.name}",
            {"item_id": item.id, "requested": quantity, "available": len(units)},
        )
    return units


def _allocate_each(item: Item, quantity: int, unit_ids, ctx: AllocationContext) -> LineAllocation:
    if _stock_left(item, ctx) < quantity:
        raise InsufficientInventory(
            f"Insufficient stock for {item.name}",
            {"item_id": item.id, "requested": quantity, "available": str(_stock_left(item, ctx))},
        )

    tracked = is_unit_tracked(item.id)
    if not tracked:
        if unit_ids:
            raise InvalidRequest("Item does not track inventory units", {"item_id": item.id})
        return LineAllocation(item=item, mode=LINE_MODE_EACH, quantity=quantity)

    if unit_ids:
        units = _explicit_units(item, unit_ids, quantity, ctx)
    else:
        units = _oldest_units(item, quantity, ctx)
    return LineAllocation(item=item, mode=LINE_MODE_EACH, quantity=quantity, units=units, tracked=True)


# =============================================================================
# METER
# =============================================================================

def _allocate_meter(item: Item, length: Decimal, roll_id, ctx: AllocationContext) -> LineAllocation:
    if roll_id is not None:
        roll = lock_for_update(db.session.query(Roll).filter(Roll.id == roll_id)).first()
        if roll is None:
            raise InvalidRequest("Roll not found", {"roll_id": roll_id})
        if roll.item_id != item.id:
            raise InvalidRequest("Roll belongs to another item", {"roll_id": roll.id, "item_id": item.id})
        if _roll_left(roll, ctx) < length:
            raise InsufficientInventory(
                "Insufficient length on roll",
                {"roll_id": roll.id, "requested_m": str(length), "remaining_m": str(_roll_left(roll, ctx))},
            )
    else:
        rolls = lock_for_update(
            db.session.query(Roll)
            .filter(Roll.item_id == item.id)
            .order_by(Roll.created_at.asc(), Roll.id.asc())
        ).all()
        roll = next((candidate for candidate in rolls if _roll_left(candidate, ctx) >= length), None)
        if roll is None:
            raise InsufficientInventory(
                f"No roll of {item.name} holds {length} m",
                {"item_id": item.id, "requested_m": str(length)},
            )

    return LineAllocation(item=item, mode=LINE_MODE_METER, quantity=1, length_m=length, roll=roll)


def allocate_line(*, item: Item, mode: str, quantity: int = 1, length_m=None, roll_id=None,
                  unit_ids=(), ctx: AllocationContext) -> LineAllocation:
    """
    Allocate inventory for one normalized sale line and record the claim in ctx.

    Raises:
        InvalidRequest: bad unit/roll references
        InsufficientInventory: not enough units, stock or roll length
    """
    if mode == LINE_MODE_METER:
        allocation = _allocate_meter(item, q3(length_m), roll_id, ctx)
    else:
        allocation = _allocate_each(item, quantity, unit_ids, ctx)
    ctx.record(allocation)
    return allocation
