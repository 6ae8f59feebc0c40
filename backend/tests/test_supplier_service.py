from decimal import Decimal

import pytest

from shopledger import schemas
from shopledger.errors import InvalidRequest, NotFound
from shopledger.models import CashboxEntry, Payment
from shopledger.services import restock_service, supplier_service
from shopledger.services.actor_service import Actor
from shopledger.services.ledger_service import get_balance


@pytest.fixture
def acme_restocks(db_session, cashboxes, make_item, make_supplier):
    """Acme owes 50.00 (January) and 30.00 (February)."""
    acme = make_supplier("Acme")
    bolts = make_item("Bolts")

    def _receive(total, date):
        return restock_service.create_restock(schemas.parse_create_restock({
            "supplier": acme.id,
            "date": date,
            "items": [{"itemId": bolts.id, "quantity": 1, "unitCost": total, "autoSerial": True}],
        }), Actor())

    # Created newest first so business date, not id, decides the order
    february = _receive("30.00", "2024-02-01T10:00:00Z")
    january = _receive("50.00", "2024-01-01T10:00:00Z")
    return acme, january, february


def _pay(supplier_id, payload):
    return supplier_service.record_supplier_payment(supplier_id, schemas.parse_supplier_payment(payload))


def test_payment_spread_oldest_first(db_session, cashboxes, acme_restocks):
    acme, january, february = acme_restocks

    result = _pay(acme.id, {"amount": 60, "cashboxCode": "B", "note": "settlement"})

    assert result["payments"] == 2
    assert result["unallocated"] == 0.0
    assert [(a["restock_id"], a["amount"], a["status_code"]) for a in result["allocations"]] == [
        (january["id"], 50.0, "PAID"),
        (february["id"], 10.0, "PARTIAL"),
    ]

    summary = result["detail"]["summary"]
    assert summary == {"total": 80.0, "paid": 60.0, "outstanding": 20.0}
    assert get_balance(cashboxes["B"].id) == Decimal("-60.00")

    entries = db_session.query(CashboxEntry).order_by(CashboxEntry.id).all()
    assert [(entry.direction, entry.reference_id, entry.amount) for entry in entries] == [
        ("out", january["id"], Decimal("50.00")),
        ("out", february["id"], Decimal("10.00")),
    ]
    assert all(entry.note == "settlement" for entry in entries)


def test_hint_caps_a_restock(db_session, cashboxes, acme_restocks):
    acme, january, february = acme_restocks

    result = _pay(acme.id, {
        "amount": 30,
        "cashboxCode": "B",
        "allocations": [{"restockId": january["id"], "amount": 10}],
    })

    assert [(a["restock_id"], a["amount"]) for a in result["allocations"]] == [
        (january["id"], 10.0),
        (february["id"], 20.0),
    ]


def test_amount_above_debt_rejected(db_session, cashboxes, acme_restocks):
    acme, _january, _february = acme_restocks

    with pytest.raises(InvalidRequest) as exc:
        _pay(acme.id, {"amount": 100, "cashboxCode": "B"})

    assert exc.value.details["unallocated"] == 20.0
    assert db_session.query(Payment).count() == 0
    assert db_session.query(CashboxEntry).count() == 0


def test_hints_that_strand_money_rejected(db_session, cashboxes, acme_restocks):
    acme, january, _february = acme_restocks

    with pytest.raises(InvalidRequest):
        _pay(acme.id, {
            "amount": 60,
            "cashboxCode": "B",
            "allocations": [{"restockId": january["id"], "amount": 10}],
        })
    assert db_session.query(Payment).count() == 0


def test_hint_for_another_suppliers_restock(db_session, cashboxes, acme_restocks, make_item):
    acme, _january, _february = acme_restocks
    nuts = make_item("Nuts")
    other = restock_service.create_restock(schemas.parse_create_restock({
        "supplier": "Globex",
        "items": [{"itemId": nuts.id, "quantity": 1, "unitCost": 5, "autoSerial": True}],
    }), Actor())

    with pytest.raises(InvalidRequest):
        _pay(acme.id, {
            "amount": 5,
            "cashboxCode": "B",
            "allocations": [{"restockId": other["id"], "amount": 5}],
        })


def test_unknown_supplier_and_missing_cashbox(db_session, cashboxes, acme_restocks):
    acme, _january, _february = acme_restocks

    with pytest.raises(NotFound):
        _pay(acme.id + 1000, {"amount": 10, "cashboxCode": "B"})
    with pytest.raises(InvalidRequest):
        _pay(acme.id, {"amount": 10})


def test_debt_detail(db_session, cashboxes, acme_restocks):
    acme, january, february = acme_restocks
    _pay(acme.id, {"amount": 60, "cashboxCode": "B"})

    detail = supplier_service.get_supplier_debt_detail(acme.id)

    assert detail["supplier"]["name"] == "Acme"
    assert [row["id"] for row in detail["restocks"]] == [february["id"], january["id"]]
    assert detail["restocks"][0]["outstanding"] == 20.0
    assert detail["restocks"][1]["status_code"] == "PAID"
    assert len(detail["payments"]) == 2
    assert {payment["cashbox_code"] for payment in detail["payments"]} == {"B"}

    with pytest.raises(NotFound):
        supplier_service.get_supplier_debt_detail(acme.id + 1000)
