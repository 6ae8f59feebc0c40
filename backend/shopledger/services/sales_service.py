# Overview: Service-layer operations for sales; plans, applies, edits and pays sale receipts atomically.

"""
Sale Settlement Engine

WHY: A sale touches inventory, money and the receipt at once. Either all of
it is recorded or none of it is.

FLOW (create):
1. resolve acting user and customer
2. normalize and validate lines against their items
3. allocate inventory and price every line (the plan; nothing written yet)
4. write the header, then per line: stock ledger decrements, line row,
   unit links (units flipped to sold)
5. paid now > 0: Payment + CashboxEntry(in)
6. re-derive paid and status from the ledger; return the receipt

FLOW (edit):
restore the old lines' inventory effects, drop the old lines, then run
steps 2-6 with the new lines. The result is the same as deleting the sale
and recording it again, except that payments are kept and paid now is an
additional payment.

Every public function here opens its own transaction (concurrency.atomic).
"""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal

from sqlalchemy import func

from ..extensions import db
from ..errors import InvalidRequest, NotFound
from ..models import Customer, Item, Transaction, TransactionItem, TransactionItemUnit
from ..models.sales import LINE_MODE_EACH, LINE_MODE_METER, PAYMENT_KIND_SALE
from ..money import as_float, q2, q3, ZERO
from ..time_utils import utcnow
from . import stock_ledger
from .actor_service import resolve_acting_user
from .allocation_service import AllocationContext, LineAllocation, allocate_line
from .concurrency import atomic, lock_for_update
from .payment_service import list_payments, record_payment, refresh_sale_status
from .pricing import resolve_unit_price
from .receipt_status import Computed, Manual, resolve_status


@dataclass
class PlannedLine:
    allocation: LineAllocation
    price_each: Decimal

    @property
    def amount(self) -> Decimal:
        """Unrounded price x quantity (EACH) or price x length (METER)."""
        if self.allocation.mode == LINE_MODE_METER:
            return self.price_each * self.allocation.length_m
        return self.price_each * self.allocation.quantity


@dataclass
class SalePlan:
    lines: list = field(default_factory=list)
    total: Decimal = ZERO
    locked_unit_ids: set = field(default_factory=set)


# =============================================================================
# CUSTOMER
# =============================================================================

def resolve_customer(ref) -> Customer | None:
    """
    Customer by id (must exist) or by case-insensitive name (created when
    absent). A given phone number overwrites the stored one.
    """
    if ref is None:
        return None

    if ref.customer_id is not None:
        customer = db.session.get(Customer, ref.customer_id)
        if customer is None:
            raise InvalidRequest("Customer not found", {"customer_id": ref.customer_id})
    elif ref.name:
        customer = (
            db.session.query(Customer)
            .filter(func.lower(Customer.name) == ref.name.lower())
            .first()
        )
        if customer is None:
            customer = Customer(name=ref.name, phone=ref.phone)
            db.session.add(customer)
            db.session.flush()
            return customer
    else:
        return None

    if ref.phone and customer.phone != ref.phone:
        customer.phone = ref.phone
    return customer


# =============================================================================
# PLAN
# =============================================================================

def _normalize_line(line, item: Item | None, index: int):
    """Returns (mode, quantity, length_m) after validating the line against its item."""
    if item is None:
        raise InvalidRequest("Item not found", {"line": index, "item_id": line.item_id})

    mode = line.mode or (LINE_MODE_METER if item.is_metered else LINE_MODE_EACH)
    if (mode == LINE_MODE_METER) != item.is_metered:
        raise InvalidRequest(
            f"Line mode {mode} does not match how {item.name} is stocked",
            {"line": index, "item_id": item.id},
        )

    if mode == LINE_MODE_METER:
        length = line.length_m
        if length is None or length <= ZERO:
            raise InvalidRequest("lengthMeters must be greater than 0", {"line": index})
        return mode, 1, q3(length)

    quantity = line.quantity
    if quantity is None or quantity <= ZERO:
        raise InvalidRequest("quantity must be greater than 0", {"line": index})
    if quantity != quantity.to_integral_value():
        raise InvalidRequest("quantity must be a whole number", {"line": index})
    return mode, int(quantity), None


def build_sale_plan(lines, *, locked_unit_ids=()) -> SalePlan:
    """Allocate and price every line. Reads and locks rows; writes nothing."""
    item_ids = {line.item_id for line in lines}
    items = {
        item.id: item
        for item in db.session.query(Item).filter(Item.id.in_(sorted(item_ids))).all()
    }

    plan = SalePlan(locked_unit_ids=set(locked_unit_ids))
    ctx = AllocationContext(locked_unit_ids=plan.locked_unit_ids)
    for index, line in enumerate(lines):
        item = items.get(line.item_id)
        mode, quantity, length = _normalize_line(line, item, index)
        allocation = allocate_line(
            item=item,
            mode=mode,
            quantity=quantity,
            length_m=length,
            roll_id=line.roll_id,
            unit_ids=line.unit_ids,
            ctx=ctx,
        )
        price = resolve_unit_price(item, line.tier, line.unit_price)
        plan.lines.append(PlannedLine(allocation=allocation, price_each=price))

    # Rounded once over the raw products, not per line
    plan.total = q2(sum((planned.amount for planned in plan.lines), ZERO))
    return plan


def _override_from(request):
    if request.override is None or request.override.value is None:
        return Computed()
    return Manual(value=request.override.value, note=request.override.note, set_at=utcnow())


# =============================================================================
# APPLY / RESTORE
# =============================================================================

def _apply_plan(sale: Transaction, plan: SalePlan) -> None:
    for planned in plan.lines:
        allocation = planned.allocation

        stock_ledger.decrement_item_stock(allocation.item.id, allocation.stock_amount)
        if allocation.mode == LINE_MODE_METER:
            stock_ledger.decrement_roll(allocation.roll.id, allocation.length_m)

        line = TransactionItem(
            item_id=allocation.item.id,
            mode=allocation.mode,
            quantity=allocation.quantity,
            length_m=allocation.length_m,
            roll_id=allocation.roll.id if allocation.roll is not None else None,
            price_each=planned.price_each,
            cost_each=allocation.cost_each,
        )
        sale.lines.append(line)

        if allocation.units:
            unit_ids = [unit.id for unit in allocation.units]
            stock_ledger.claim_units(unit_ids, plan.locked_unit_ids)
            for unit_id in unit_ids:
                line.unit_links.append(TransactionItemUnit(inventory_unit_id=unit_id))

    db.session.flush()


def _restore_inventory(sale: Transaction, lines) -> set:
    """
    Undo the inventory effects of a sale's lines.

    Only units still `sold` go back to available; a unit that was returned
    in the meantime keeps its return state. Returns the released unit ids.
    """
    released = set()
    for line in lines:
        if line.mode == LINE_MODE_METER:
            length = q3(line.length_m or 0)
            if line.roll_id is not None:
                stock_ledger.increment_roll(line.roll_id, length)
            stock_ledger.increment_item_stock(line.item_id, length)
            continue

        unit_ids = [link.inventory_unit_id for link in line.unit_links]
        if unit_ids:
            flipped = stock_ledger.release_sold_units(unit_ids)
            released.update(flipped)
            stock_ledger.increment_item_stock(line.item_id, len(flipped))
        else:
            stock_ledger.increment_item_stock(line.item_id, line.quantity)
    return released


def _settle_paid_now(sale: Transaction, payment) -> None:
    if payment.amount > ZERO:
        record_payment(kind=PAYMENT_KIND_SALE, target_id=sale.id, payment=payment)


# =============================================================================
# RECEIPT
# =============================================================================

def _latest_return(unit):
    if not unit.returns:
        return None
    latest = max(unit.returns, key=lambda ret: (ret.created_at, ret.id))
    return latest.to_dict()


def build_sale_receipt(sale: Transaction) -> dict:
    """Sale + lines + payments, with paid and status re-derived from the ledger."""
    paid, _status = refresh_sale_status(sale)

    data = sale.to_dict()
    data["paid"] = as_float(paid)
    data["balance_due"] = as_float(max(q2(sale.total) - paid, ZERO))
    data["customer"] = sale.customer.to_dict() if sale.customer else None

    lines = []
    for line in sale.lines:
        line_data = line.to_dict()
        units = []
        for link in line.unit_links:
            unit_data = link.unit.to_dict()
            unit_data["latest_return"] = _latest_return(link.unit)
            units.append(unit_data)
        line_data["units"] = units
        lines.append(line_data)
    data["lines"] = lines
    data["payments"] = [payment.to_dict() for payment in list_payments(sale_id=sale.id)]
    return data


def _load_sale_locked(sale_id: int) -> Transaction:
    sale = lock_for_update(db.session.query(Transaction).filter_by(id=sale_id)).first()
    if sale is None:
        raise NotFound("Sale not found", {"sale_id": sale_id})
    return sale


# =============================================================================
# PUBLIC OPERATIONS
# =============================================================================

def create_sale(request, actor) -> dict:
    """
    Record a sale with its inventory effects and optional immediate payment.

    Raises:
        InvalidRequest: bad lines, unknown user/customer/item, missing cashbox
        InsufficientInventory: not enough units, stock or roll length
    """
    with atomic():
        user = resolve_acting_user(actor, request.user_id)
        customer = resolve_customer(request.customer)
        plan = build_sale_plan(request.lines)

        override = _override_from(request)
        sale = Transaction(
            total=plan.total,
            receipt_type=request.receipt_type,
            note=request.note,
            date=request.date or utcnow(),
            customer_id=customer.id if customer else None,
            user_id=user.id,
        )
        sale.manual_override = override
        sale.status = resolve_status(request.payment.amount, plan.total, override)
        db.session.add(sale)
        db.session.flush()

        _apply_plan(sale, plan)
        _settle_paid_now(sale, request.payment)
        return build_sale_receipt(sale)


def update_sale(sale_id: int, request, actor) -> dict:
    """
    Replace a sale's lines in place.

    Requires a non-empty edit note. Existing payments are kept; paid now is
    recorded as an additional payment.
    """
    edit_note = (request.edit_note or "").strip()
    if not edit_note:
        raise InvalidRequest("Editing a receipt requires an edit note", {"field": "editNote"})

    with atomic():
        editor = resolve_acting_user(actor, request.user_id)
        sale = _load_sale_locked(sale_id)
        old_lines = lock_for_update(
            db.session.query(TransactionItem).filter_by(transaction_id=sale.id)
        ).all()

        released = _restore_inventory(sale, old_lines)
        sale.lines.clear()
        db.session.flush()

        customer = resolve_customer(request.customer)
        plan = build_sale_plan(request.lines, locked_unit_ids=released)

        override = _override_from(request)
        sale.total = plan.total
        sale.receipt_type = request.receipt_type
        sale.note = request.note
        sale.customer_id = customer.id if customer else None
        if request.date is not None:
            sale.date = request.date
        sale.manual_override = override
        sale.last_edit_user_id = editor.id
        sale.last_edit_note = edit_note
        sale.last_edit_at = utcnow()

        _apply_plan(sale, plan)
        _settle_paid_now(sale, request.payment)
        return build_sale_receipt(sale)


def record_sale_payment(sale_id: int, payment) -> dict:
    """Standalone payment against an existing sale."""
    with atomic():
        sale = _load_sale_locked(sale_id)
        record_payment(kind=PAYMENT_KIND_SALE, target_id=sale.id, payment=payment)
        return build_sale_receipt(sale)


def set_sale_status_override(sale_id: int, override_request) -> dict:
    """Pin the sale's status to a value, or clear the pin (value None)."""
    with atomic():
        sale = _load_sale_locked(sale_id)
        if override_request.value is None:
            sale.manual_override = Computed()
        else:
            sale.manual_override = Manual(
                value=override_request.value,
                note=override_request.note,
                set_at=utcnow(),
            )
        db.session.flush()
        return build_sale_receipt(sale)


def get_sale_receipt(sale_id: int) -> dict:
    """Receipt view; persists a corrected status when the stored one drifted."""
    with atomic():
        sale = db.session.get(Transaction, sale_id)
        if sale is None:
            raise NotFound("Sale not found", {"sale_id": sale_id})
        return build_sale_receipt(sale)
