from decimal import Decimal

import pytest

from shopledger import schemas
from shopledger.errors import InvalidRequest


def test_sale_payload_aliases():
    request = schemas.parse_create_sale({
        "items": [
            {"item": "7", "mode": "meter", "lengthMeters": "12.5", "priceTier": "Wholesale"},
            {"itemId": 8, "quantity": 2, "inventoryUnitIds": [3, "4"]},
        ],
        "amountPaidNow": "10.50",
        "cashbox": "b",
        "paymentNote": "deposit",
        "note": "counter sale",
        "customerName": "Jane",
        "customerPhone": "555",
        "statusOverride": "paid",
    })

    first, second = request.lines
    assert first.item_id == 7
    assert first.mode == "METER"
    assert first.length_m == Decimal("12.5")
    assert first.tier == "wholesale"
    assert second.unit_ids == (3, 4)
    assert request.payment.amount == Decimal("10.50")
    assert request.payment.cashbox.code == "B"
    assert request.payment.note == "deposit"
    assert request.note == "counter sale"
    assert request.customer.name == "Jane"
    assert request.override.value == "PAID"


def test_bare_numeric_cashbox_is_an_id():
    payment = schemas.parse_payment_request({"amount": 5, "cashbox": "12"})
    assert payment.cashbox.cashbox_id == 12
    assert payment.cashbox.code is None


@pytest.mark.parametrize("payload", [
    {"amount": "1.234", "cashboxCode": "A"},
    {"amount": 0, "cashboxCode": "A"},
    {"amount": "abc", "cashboxCode": "A"},
    {"amount": 5, "cashboxCode": "ABCD"},
])
def test_payment_rejects_bad_values(payload):
    with pytest.raises(InvalidRequest):
        schemas.parse_payment_request(payload)


def test_length_allows_three_decimals_only():
    schemas.parse_create_sale({"items": [{"itemId": 1, "lengthMeters": "1.125"}]})
    with pytest.raises(InvalidRequest) as exc:
        schemas.parse_create_sale({"items": [{"itemId": 1, "lengthMeters": "1.1255"}]})
    assert exc.value.details["field"] == "items[0].lengthMeters"


def test_negative_unit_price_rejected():
    schemas.parse_create_sale({"items": [{"itemId": 1, "quantity": 1, "unitPrice": 0}]})
    with pytest.raises(InvalidRequest) as exc:
        schemas.parse_create_sale({"items": [{"itemId": 1, "quantity": 1, "unitPrice": "-1.00"}]})
    assert exc.value.details["field"] == "items[0].unitPrice"


def test_sale_requires_lines():
    with pytest.raises(InvalidRequest):
        schemas.parse_create_sale({"items": []})


def test_restock_supplier_forms():
    by_name = schemas.parse_create_restock({"supplier": "Acme", "items": [{"itemId": 1, "quantity": 1}]})
    assert by_name.supplier_id is None
    assert by_name.supplier_name == "Acme"

    by_id = schemas.parse_create_restock({"supplier": 4, "items": [{"itemId": 1, "quantity": 1}]})
    assert by_id.supplier_id == 4

    by_dict = schemas.parse_create_restock({"supplier": {"id": 9}, "items": [{"itemId": 1, "quantity": 1}]})
    assert by_dict.supplier_id == 9


def test_status_override_clear():
    assert schemas.parse_status_override({"status": None}).value is None
    assert schemas.parse_status_override({"status": "partial", "note": "x"}).value == "PARTIAL"
    with pytest.raises(InvalidRequest):
        schemas.parse_status_override({"status": "void"})


def test_return_resolution_aliases():
    assert schemas.parse_return_resolution({"action": "returnToSupplier"}).action == "return_to_supplier"
    with pytest.raises(InvalidRequest):
        schemas.parse_return_resolution({"action": "refund"})
