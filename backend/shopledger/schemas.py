# Overview: Request payload parsing; camelCase JSON in, typed frozen dataclasses out.

"""
Request schemas.

Routes hand the raw JSON body to one of the parse_* functions below. Every
alias the API accepts (cashboxId / cashboxCode / cashbox, customer /
customerName, ...) is resolved here once, so services only ever see the
dataclasses and never a dict.

Numbers:
- money accepts ints, floats and numeric strings with at most 2 decimals
- lengths accept at most 3 decimals
- anything else raises InvalidRequest naming the field
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import Any

from .errors import InvalidRequest
from .models.sales import RECEIPT_TYPE_SIMPLE
from .money import fraction_digits, to_decimal, ZERO
from .services.receipt_status import normalize_status
from .time_utils import parse_iso_datetime


LINE_MODES = ("EACH", "METER")


def _to_text(value: Any) -> str | None:
    if value is None:
        return None
    text = str(value).strip()
    return text if text else None


def _to_int(value: Any, field_name: str) -> int | None:
    if value is None or value == "":
        return None
    if isinstance(value, bool):
        raise InvalidRequest(f"{field_name} must be an integer", {"field": field_name})
    if isinstance(value, int):
        return value
    if isinstance(value, float) and value.is_integer():
        return int(value)
    if isinstance(value, str) and value.strip().lstrip("-").isdigit():
        return int(value.strip())
    raise InvalidRequest(f"{field_name} must be an integer", {"field": field_name})


def _to_number(value: Any, field_name: str, places: int) -> Decimal | None:
    try:
        number = to_decimal(value, default=None)
    except ValueError:
        raise InvalidRequest(f"{field_name} must be a number", {"field": field_name})
    if number is None:
        return None
    if not number.is_finite():
        raise InvalidRequest(f"{field_name} must be a number", {"field": field_name})
    if fraction_digits(number) > places:
        raise InvalidRequest(
            f"{field_name} allows at most {places} decimal places",
            {"field": field_name},
        )
    return number


def _to_money(value: Any, field_name: str) -> Decimal | None:
    return _to_number(value, field_name, 2)


def _to_length(value: Any, field_name: str) -> Decimal | None:
    return _to_number(value, field_name, 3)


def _to_datetime(value: Any, field_name: str) -> datetime | None:
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value
    try:
        return parse_iso_datetime(str(value))
    except ValueError:
        raise InvalidRequest(f"{field_name} must be an ISO-8601 date", {"field": field_name})


def _to_bool(value: Any) -> bool:
    if isinstance(value, str):
        return value.strip().lower() in ("1", "true", "yes", "on")
    return bool(value)


def _require_dict(data: Any, what: str = "body") -> dict:
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise InvalidRequest(f"Request {what} must be a JSON object")
    return data


def _require_list(value: Any, field_name: str) -> list:
    if value is None:
        return []
    if not isinstance(value, list):
        raise InvalidRequest(f"{field_name} must be a list", {"field": field_name})
    return value


def _first(data: dict, *keys):
    for key in keys:
        if data.get(key) is not None:
            return data[key]
    return None


# =============================================================================
# SHARED PIECES
# =============================================================================

@dataclass(frozen=True)
class CashboxSelector:
    """Target cashbox: numeric id or 1-3 letter code (case-insensitive)."""
    cashbox_id: int | None = None
    code: str | None = None


def parse_cashbox_selector(data: dict) -> CashboxSelector | None:
    """
    Resolve cashboxId / cashboxCode / bare cashbox.

    A bare `cashbox` is read by type: an int or all-digit string is an id,
    anything else a code.
    """
    cashbox_id = _to_int(data.get("cashboxId"), "cashboxId")
    code = _to_text(data.get("cashboxCode"))

    bare = data.get("cashbox")
    if isinstance(bare, dict):
        bare = _first(bare, "id", "code")
    if bare is not None and cashbox_id is None and code is None:
        if isinstance(bare, int) and not isinstance(bare, bool):
            cashbox_id = bare
        elif isinstance(bare, str) and bare.strip().isdigit():
            cashbox_id = int(bare.strip())
        else:
            code = _to_text(bare)

    if code is not None:
        if not (1 <= len(code) <= 3 and code.isalpha()):
            raise InvalidRequest("cashbox code must be 1-3 letters", {"field": "cashboxCode"})
        code = code.upper()

    if cashbox_id is None and code is None:
        return None
    return CashboxSelector(cashbox_id=cashbox_id, code=code)


@dataclass(frozen=True)
class PaymentRequest:
    """Money paid now or later against a sale or a restock."""
    amount: Decimal = ZERO
    cashbox: CashboxSelector | None = None
    note: str | None = None
    paid_at: datetime | None = None
    pay_method: str | None = None


def _parse_payment(data: dict, amount_keys: tuple[str, ...], note_keys: tuple[str, ...]) -> PaymentRequest:
    amount_key = next((k for k in amount_keys if data.get(k) is not None), amount_keys[0])
    amount = _to_money(data.get(amount_key), amount_key)
    if amount is not None and amount < ZERO:
        raise InvalidRequest(f"{amount_key} cannot be negative", {"field": amount_key})
    return PaymentRequest(
        amount=amount if amount is not None else ZERO,
        cashbox=parse_cashbox_selector(data),
        note=_to_text(_first(data, *note_keys)),
        paid_at=_to_datetime(_first(data, "paymentDate", "date"), "paymentDate"),
        pay_method=_to_text(data.get("payMethod")),
    )


def parse_payment_request(data: Any) -> PaymentRequest:
    """Standalone payment body: amount, cashbox selector, note, paymentDate."""
    data = _require_dict(data)
    payment = _parse_payment(data, ("amount",), ("note", "paymentNote"))
    if payment.amount <= ZERO:
        raise InvalidRequest("amount must be greater than 0", {"field": "amount"})
    return payment


@dataclass(frozen=True)
class StatusOverrideRequest:
    """None value clears the override."""
    value: str | None = None
    note: str | None = None


def _parse_override(value: Any, note: Any, field_name: str) -> StatusOverrideRequest | None:
    if value is None or value == "":
        return None
    status = normalize_status(value)
    if status is None:
        raise InvalidRequest(f"{field_name} must be PAID, PARTIAL or UNPAID", {"field": field_name})
    return StatusOverrideRequest(value=status, note=_to_text(note))


def parse_status_override(data: Any) -> StatusOverrideRequest:
    """Body of the status-override endpoints; a null/missing status clears."""
    data = _require_dict(data)
    parsed = _parse_override(_first(data, "status", "statusOverride"), _first(data, "note", "statusOverrideNote"), "status")
    return parsed or StatusOverrideRequest()


# =============================================================================
# SALES
# =============================================================================

@dataclass(frozen=True)
class SaleLineRequest:
    item_id: int
    mode: str | None = None
    quantity: Decimal | None = None
    length_m: Decimal | None = None
    roll_id: int | None = None
    unit_ids: tuple[int, ...] = ()
    tier: str | None = None
    unit_price: Decimal | None = None


@dataclass(frozen=True)
class CustomerRef:
    customer_id: int | None = None
    name: str | None = None
    phone: str | None = None


@dataclass(frozen=True)
class CreateSaleRequest:
    lines: tuple[SaleLineRequest, ...]
    payment: PaymentRequest = field(default_factory=PaymentRequest)
    customer: CustomerRef | None = None
    override: StatusOverrideRequest | None = None
    note: str | None = None
    receipt_type: str = RECEIPT_TYPE_SIMPLE
    user_id: int | None = None
    date: datetime | None = None


@dataclass(frozen=True)
class EditSaleRequest(CreateSaleRequest):
    edit_note: str | None = None


def _parse_sale_line(raw: Any, index: int) -> SaleLineRequest:
    raw = _require_dict(raw, f"items[{index}]")
    prefix = f"items[{index}]"

    item_id = _to_int(_first(raw, "itemId", "item"), f"{prefix}.itemId")
    if item_id is None:
        raise InvalidRequest(f"{prefix}.itemId is required", {"field": f"{prefix}.itemId"})

    mode = _to_text(raw.get("mode"))
    if mode is not None:
        mode = mode.upper()
        if mode not in LINE_MODES:
            raise InvalidRequest(f"{prefix}.mode must be EACH or METER", {"field": f"{prefix}.mode"})

    unit_ids = []
    for unit_id in _require_list(_first(raw, "inventoryUnitIds", "unitIds"), f"{prefix}.inventoryUnitIds"):
        parsed = _to_int(unit_id, f"{prefix}.inventoryUnitIds")
        if parsed is not None:
            unit_ids.append(parsed)

    tier = _to_text(raw.get("priceTier"))
    if tier is not None:
        tier = tier.lower()
        if tier not in ("retail", "wholesale"):
            raise InvalidRequest(f"{prefix}.priceTier must be retail or wholesale", {"field": f"{prefix}.priceTier"})

    unit_price = _to_money(_first(raw, "unitPrice", "priceEach"), f"{prefix}.unitPrice")
    if unit_price is not None and unit_price < ZERO:
        raise InvalidRequest(f"{prefix}.unitPrice cannot be negative", {"field": f"{prefix}.unitPrice"})

    return SaleLineRequest(
        item_id=item_id,
        mode=mode,
        quantity=_to_length(raw.get("quantity"), f"{prefix}.quantity"),
        length_m=_to_length(_first(raw, "lengthMeters", "lengthM"), f"{prefix}.lengthMeters"),
        roll_id=_to_int(raw.get("rollId"), f"{prefix}.rollId"),
        unit_ids=tuple(unit_ids),
        tier=tier,
        unit_price=unit_price,
    )


def _parse_customer(data: dict) -> CustomerRef | None:
    raw = data.get("customer")
    customer_id = None
    name = _to_text(data.get("customerName"))
    phone = _to_text(data.get("customerPhone"))
    if isinstance(raw, dict):
        customer_id = _to_int(raw.get("id"), "customer.id")
        name = _to_text(raw.get("name")) or name
        phone = _to_text(raw.get("phone")) or phone
    elif raw is not None:
        customer_id = _to_int(raw, "customer")
    if customer_id is None and name is None:
        return None
    return CustomerRef(customer_id=customer_id, name=name, phone=phone)


def _sale_fields(data: dict) -> dict:
    lines = tuple(
        _parse_sale_line(raw, index)
        for index, raw in enumerate(_require_list(data.get("items"), "items"))
    )
    receipt_type = _to_text(data.get("receipt_type") or data.get("receiptType")) or RECEIPT_TYPE_SIMPLE
    return dict(
        lines=lines,
        payment=_parse_payment(data, ("paid", "amountPaidNow"), ("paymentNote",)),
        customer=_parse_customer(data),
        override=_parse_override(data.get("statusOverride"), data.get("statusOverrideNote"), "statusOverride"),
        note=_to_text(data.get("note")),
        receipt_type=receipt_type,
        user_id=_to_int(_first(data, "userId", "user"), "userId"),
        date=_to_datetime(data.get("date"), "date"),
    )


def parse_create_sale(data: Any) -> CreateSaleRequest:
    data = _require_dict(data)
    fields = _sale_fields(data)
    if not fields["lines"]:
        raise InvalidRequest("items must contain at least one line", {"field": "items"})
    return CreateSaleRequest(**fields)


def parse_edit_sale(data: Any) -> EditSaleRequest:
    data = _require_dict(data)
    fields = _sale_fields(data)
    if not fields["lines"]:
        raise InvalidRequest("items must contain at least one line", {"field": "items"})
    return EditSaleRequest(edit_note=_to_text(data.get("editNote")), **fields)


# =============================================================================
# RESTOCKS
# =============================================================================

@dataclass(frozen=True)
class NewItemDefinition:
    name: str
    sku: str | None = None
    category: str | None = None
    stock_unit: str | None = None
    roll_length: Decimal | None = None
    price_retail: Decimal | None = None
    price_wholesale: Decimal | None = None
    description: str | None = None


@dataclass(frozen=True)
class RestockLineRequest:
    mode: str
    item_id: int | None = None
    new_item: NewItemDefinition | None = None
    quantity: Decimal | None = None
    new_rolls: tuple[Decimal, ...] = ()
    unit_cost: Decimal | None = None
    serials: tuple[str, ...] = ()
    auto_serial: bool = False


@dataclass(frozen=True)
class CreateRestockRequest:
    lines: tuple[RestockLineRequest, ...]
    supplier_id: int | None = None
    supplier_name: str | None = None
    tax: Decimal = ZERO
    payment: PaymentRequest = field(default_factory=PaymentRequest)
    override: StatusOverrideRequest | None = None
    note: str | None = None
    date: datetime | None = None
    user_id: int | None = None


def _parse_new_item(raw: Any, prefix: str) -> NewItemDefinition | None:
    if raw is None:
        return None
    raw = _require_dict(raw, prefix)
    name = _to_text(raw.get("name"))
    if name is None:
        raise InvalidRequest(f"{prefix}.name is required", {"field": f"{prefix}.name"})
    stock_unit = _to_text(raw.get("stockUnit"))
    if stock_unit is not None:
        stock_unit = stock_unit.lower()
        if stock_unit in ("m", "meter", "meters"):
            stock_unit = "m"
        else:
            raise InvalidRequest(f"{prefix}.stockUnit must be 'm' or empty", {"field": f"{prefix}.stockUnit"})
    return NewItemDefinition(
        name=name,
        sku=_to_text(raw.get("sku")),
        category=_to_text(raw.get("category")),
        stock_unit=stock_unit,
        roll_length=_to_length(raw.get("rollLength"), f"{prefix}.rollLength"),
        price_retail=_to_money(raw.get("priceRetail"), f"{prefix}.priceRetail"),
        price_wholesale=_to_money(raw.get("priceWholesale"), f"{prefix}.priceWholesale"),
        description=_to_text(raw.get("description")),
    )


def _parse_restock_line(raw: Any, index: int) -> RestockLineRequest:
    raw = _require_dict(raw, f"items[{index}]")
    prefix = f"items[{index}]"

    mode = (_to_text(raw.get("mode")) or "EACH").upper()
    if mode not in LINE_MODES:
        raise InvalidRequest(f"{prefix}.mode must be EACH or METER", {"field": f"{prefix}.mode"})

    new_rolls = tuple(
        _to_length(length, f"{prefix}.newRolls")
        for length in _require_list(raw.get("newRolls"), f"{prefix}.newRolls")
    )
    serials = tuple(
        text for text in (
            _to_text(serial) for serial in _require_list(raw.get("serials"), f"{prefix}.serials")
        )
        if text is not None
    )

    return RestockLineRequest(
        mode=mode,
        item_id=_to_int(raw.get("itemId"), f"{prefix}.itemId"),
        new_item=_parse_new_item(raw.get("newItem"), f"{prefix}.newItem"),
        quantity=_to_length(raw.get("quantity"), f"{prefix}.quantity"),
        new_rolls=tuple(length for length in new_rolls if length is not None),
        unit_cost=_to_money(raw.get("unitCost"), f"{prefix}.unitCost"),
        serials=serials,
        auto_serial=_to_bool(raw.get("autoSerial")),
    )


def parse_create_restock(data: Any) -> CreateRestockRequest:
    data = _require_dict(data)
    lines = tuple(
        _parse_restock_line(raw, index)
        for index, raw in enumerate(_require_list(data.get("items"), "items"))
    )
    if not lines:
        raise InvalidRequest("items must contain at least one line", {"field": "items"})

    supplier_id = None
    supplier_name = _to_text(data.get("supplierName"))
    raw_supplier = data.get("supplier")
    if isinstance(raw_supplier, dict):
        supplier_id = _to_int(raw_supplier.get("id"), "supplier.id")
        supplier_name = _to_text(raw_supplier.get("name")) or supplier_name
    elif isinstance(raw_supplier, str) and not raw_supplier.strip().isdigit():
        supplier_name = _to_text(raw_supplier) or supplier_name
        supplier_id = _to_int(data.get("supplierId"), "supplierId")
    elif raw_supplier is not None:
        supplier_id = _to_int(raw_supplier, "supplier")
    else:
        supplier_id = _to_int(data.get("supplierId"), "supplierId")

    tax = _to_money(data.get("tax"), "tax")
    if tax is not None and tax < ZERO:
        raise InvalidRequest("tax cannot be negative", {"field": "tax"})

    return CreateRestockRequest(
        lines=lines,
        supplier_id=supplier_id,
        supplier_name=supplier_name,
        tax=tax if tax is not None else ZERO,
        payment=_parse_payment(data, ("paid", "amountPaidNow"), ("paymentNote",)),
        override=_parse_override(data.get("statusOverride"), data.get("statusOverrideNote"), "statusOverride"),
        note=_to_text(data.get("note")),
        date=_to_datetime(data.get("date"), "date"),
        user_id=_to_int(_first(data, "userId", "user"), "userId"),
    )


# =============================================================================
# SUPPLIER PAYMENTS
# =============================================================================

@dataclass(frozen=True)
class AllocationHint:
    restock_id: int
    amount: Decimal


@dataclass(frozen=True)
class SupplierPaymentRequest:
    payment: PaymentRequest
    allocations: tuple[AllocationHint, ...] = ()


def parse_supplier_payment(data: Any) -> SupplierPaymentRequest:
    data = _require_dict(data)
    payment = parse_payment_request(data)
    hints = []
    for index, raw in enumerate(_require_list(data.get("allocations"), "allocations")):
        raw = _require_dict(raw, f"allocations[{index}]")
        restock_id = _to_int(raw.get("restockId"), f"allocations[{index}].restockId")
        amount = _to_money(raw.get("amount"), f"allocations[{index}].amount")
        if restock_id is None or amount is None:
            raise InvalidRequest(
                f"allocations[{index}] needs restockId and amount",
                {"field": f"allocations[{index}]"},
            )
        if amount <= ZERO:
            raise InvalidRequest(
                f"allocations[{index}].amount must be greater than 0",
                {"field": f"allocations[{index}].amount"},
            )
        hints.append(AllocationHint(restock_id=restock_id, amount=amount))
    return SupplierPaymentRequest(payment=payment, allocations=tuple(hints))


# =============================================================================
# RETURNS
# =============================================================================

RETURN_ACTIONS = ("restock", "trash", "return_to_supplier")


@dataclass(frozen=True)
class ReturnRequest:
    requested_outcome: str = "restock"
    note: str | None = None


@dataclass(frozen=True)
class ReturnResolution:
    action: str
    supplier_id: int | None = None
    supplier_note: str | None = None
    note: str | None = None


def parse_return_request(data: Any) -> ReturnRequest:
    data = _require_dict(data)
    outcome = (_to_text(_first(data, "requestedOutcome", "outcome")) or "restock").lower()
    if outcome not in ("restock", "defective"):
        raise InvalidRequest("requestedOutcome must be restock or defective", {"field": "requestedOutcome"})
    return ReturnRequest(requested_outcome=outcome, note=_to_text(data.get("note")))


def parse_return_resolution(data: Any) -> ReturnResolution:
    data = _require_dict(data)
    action = _to_text(data.get("action"))
    if action is None:
        raise InvalidRequest("action is required", {"field": "action"})
    action = action.lower()
    if action in ("returntosupplier", "return-to-supplier"):
        action = "return_to_supplier"
    if action not in RETURN_ACTIONS:
        raise InvalidRequest(
            "action must be restock, trash or return_to_supplier",
            {"field": "action"},
        )
    return ReturnResolution(
        action=action,
        supplier_id=_to_int(data.get("supplierId"), "supplierId"),
        supplier_note=_to_text(data.get("supplierNote")),
        note=_to_text(data.get("note")),
    )


# =============================================================================
# CASHBOXES
# =============================================================================

@dataclass(frozen=True)
class ManualEntryRequest:
    kind: str
    amount: Decimal
    cashbox: CashboxSelector
    note: str | None = None
    occurred_at: datetime | None = None


@dataclass(frozen=True)
class EntryQuery:
    kind: str | None = None
    start: datetime | None = None
    end: datetime | None = None
    search: str | None = None


def parse_manual_entry(data: Any) -> ManualEntryRequest:
    data = _require_dict(data)
    kind = (_to_text(data.get("kind")) or "").lower()
    if kind not in ("income", "expense"):
        raise InvalidRequest("kind must be income or expense", {"field": "kind"})
    amount = _to_money(data.get("amount"), "amount")
    if amount is None or amount <= ZERO:
        raise InvalidRequest("amount must be greater than 0", {"field": "amount"})
    cashbox = parse_cashbox_selector(data)
    if cashbox is None:
        raise InvalidRequest("cashboxId or cashboxCode is required", {"field": "cashbox"})
    return ManualEntryRequest(
        kind=kind,
        amount=amount,
        cashbox=cashbox,
        note=_to_text(data.get("note")),
        occurred_at=_to_datetime(data.get("occurredAt"), "occurredAt"),
    )


def parse_entry_query(args) -> EntryQuery:
    kind = _to_text(args.get("kind"))
    return EntryQuery(
        kind=kind.lower() if kind else None,
        start=_to_datetime(args.get("startDate"), "startDate"),
        end=_to_datetime(args.get("endDate"), "endDate"),
        search=_to_text(args.get("search")),
    )
