# Overview: Atomic stock, roll and unit-state mutations; every write is a guarded UPDATE.

from __future__ import annotations

from sqlalchemy import update, func

from ..extensions import db
from ..errors import InsufficientInventory, InvalidRequest
from ..models import Item, Roll, InventoryUnit
from ..models.inventory import UNIT_AVAILABLE, UNIT_SOLD
from ..money import q3, ZERO
from .concurrency import expire_cached

"""
Stock Ledger

Stock counters and roll lengths are never assigned in Python. Each change is
a single UPDATE that computes the new value in the database, so two
concurrent settlements cannot both read the same old value:

    UPDATE items SET stock = round(stock - :n, 3) WHERE id = :id AND stock >= :n

A decrement that matches no row means the guard failed and raises
InsufficientInventory. Values are rounded to 3 places in SQL so the stored
numbers never drift.
"""


def _execute(stmt) -> int:
    result = db.session.execute(stmt.execution_options(synchronize_session=False))
    return result.rowcount


def decrement_item_stock(item_id: int, amount) -> None:
    amount = q3(amount)
    if amount <= ZERO:
        raise InvalidRequest("Stock decrement must be positive", {"item_id": item_id})
    stmt = (
        update(Item)
        .where(Item.id == item_id, Item.stock >= amount)
        .values(stock=func.round(Item.stock - amount, 3))
    )
    if _execute(stmt) != 1:
        raise InsufficientInventory(
            "Insufficient stock",
            {"item_id": item_id, "requested": str(amount)},
        )
    expire_cached(Item, item_id, "stock")


def increment_item_stock(item_id: int, amount) -> None:
    amount = q3(amount)
    if amount <= ZERO:
        return
    stmt = (
        update(Item)
        .where(Item.id == item_id)
        .values(stock=func.round(Item.stock + amount, 3))
    )
    if _execute(stmt) != 1:
        raise InvalidRequest("Item not found", {"item_id": item_id})
    expire_cached(Item, item_id, "stock")


def decrement_roll(roll_id: int, length) -> None:
    length = q3(length)
    if length <= ZERO:
        raise InvalidRequest("Roll decrement must be positive", {"roll_id": roll_id})
    stmt = (
        update(Roll)
        .where(Roll.id == roll_id, Roll.remaining_m >= length)
        .values(remaining_m=func.round(Roll.remaining_m - length, 3))
    )
    if _execute(stmt) != 1:
        raise InsufficientInventory(
            "Insufficient length on roll",
            {"roll_id": roll_id, "requested_m": str(length)},
        )
    expire_cached(Roll, roll_id, "remaining_m")


def increment_roll(roll_id: int, length) -> None:
    """Give length back to a roll (sale edit). Never grows past length_m."""
    length = q3(length)
    if length <= ZERO:
        return
    stmt = (
        update(Roll)
        .where(Roll.id == roll_id, func.round(Roll.remaining_m + length, 3) <= Roll.length_m)
        .values(remaining_m=func.round(Roll.remaining_m + length, 3))
    )
    if _execute(stmt) != 1:
        raise InvalidRequest(
            "Roll cannot take back more than its length",
            {"roll_id": roll_id, "length_m": str(length)},
        )
    expire_cached(Roll, roll_id, "remaining_m")


def claim_units(unit_ids: list[int], locked_ids: set[int] | None = None) -> None:
    """
    Flip units to sold.

    A unit qualifies when it is available, or when it is one of `locked_ids`
    (units just released by the sale being edited). Every id must qualify.
    """
    if not unit_ids:
        return
    locked_ids = set(locked_ids or ())
    qualifies = InventoryUnit.status == UNIT_AVAILABLE
    if locked_ids:
        qualifies = qualifies | InventoryUnit.id.in_(sorted(locked_ids))
    stmt = (
        update(InventoryUnit)
        .where(InventoryUnit.id.in_(unit_ids), qualifies)
        .values(status=UNIT_SOLD)
    )
    if _execute(stmt) != len(unit_ids):
        raise InsufficientInventory(
            "Inventory unit is no longer available",
            {"unit_ids": list(unit_ids)},
        )
    for unit_id in unit_ids:
        expire_cached(InventoryUnit, unit_id, "status")


def transition_unit(unit_id: int, from_status: str, to_status: str) -> bool:
    """Move one unit between states; False when it was not in `from_status`."""
    stmt = (
        update(InventoryUnit)
        .where(InventoryUnit.id == unit_id, InventoryUnit.status == from_status)
        .values(status=to_status)
    )
    changed = _execute(stmt) == 1
    expire_cached(InventoryUnit, unit_id, "status")
    return changed


def release_sold_units(unit_ids: list[int]) -> list[int]:
    """Put sold units back to available. Returns the ids that actually flipped."""
    released = []
    for unit_id in unit_ids:
        if transition_unit(unit_id, UNIT_SOLD, UNIT_AVAILABLE):
            released.append(unit_id)
    return released
