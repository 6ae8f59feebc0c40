import unittest
from datetime import datetime
from decimal import Decimal

import pytest

from shopledger import schemas
from shopledger.errors import InvalidRequest, NotFound
from shopledger.models import CashboxEntry
from shopledger.schemas import CashboxSelector, EntryQuery
from shopledger.services import ledger_service
from shopledger.services.concurrency import atomic


def _manual(payload):
    with atomic():
        return ledger_service.create_manual_entry(schemas.parse_manual_entry(payload)).to_dict()


@pytest.fixture
def movements(db_session, cashboxes):
    _manual({"kind": "income", "amount": "100.00", "cashboxCode": "A", "note": "float", "occurredAt": "2024-05-01T08:00:00Z"})
    _manual({"kind": "expense", "amount": "12.50", "cashboxCode": "A", "note": "packing tape", "occurredAt": "2024-05-02T09:00:00Z"})
    _manual({"kind": "expense", "amount": "7.25", "cashboxCode": "A", "note": "coffee", "occurredAt": "2024-05-03T09:00:00Z"})
    return cashboxes


def test_manual_entries_signed_by_kind(db_session, movements):
    entries = db_session.query(CashboxEntry).order_by(CashboxEntry.id).all()

    assert [(entry.kind, entry.direction) for entry in entries] == [
        ("income", "in"),
        ("expense", "out"),
        ("expense", "out"),
    ]
    assert all(entry.reference_type == "manual" for entry in entries)
    assert ledger_service.get_balance(movements["A"].id) == Decimal("80.25")


def test_balance_as_of(db_session, movements):
    balance = ledger_service.get_balance(movements["A"].id, as_of=datetime(2024, 5, 2, 9, 0))
    assert balance == Decimal("87.50")


def test_list_cashboxes_with_balances(db_session, movements):
    rows = {row["code"]: row for row in ledger_service.list_cashboxes_with_balances()}

    assert set(rows) == {"A", "B", "C"}
    assert rows["A"]["balance"] == 80.25
    assert rows["B"]["balance"] == 0.0


def test_list_entries_filters(db_session, movements):
    everything = ledger_service.list_entries("a", EntryQuery())
    assert [entry["note"] for entry in everything] == ["coffee", "packing tape", "float"]

    expenses = ledger_service.list_entries("A", EntryQuery(kind="expense"))
    assert len(expenses) == 2

    ranged = ledger_service.list_entries("A", EntryQuery(start=datetime(2024, 5, 2), end=datetime(2024, 5, 2, 23, 59)))
    assert [entry["note"] for entry in ranged] == ["packing tape"]

    searched = ledger_service.list_entries("A", EntryQuery(search="TAPE"))
    assert [entry["amount"] for entry in searched] == [12.5]

    with pytest.raises(NotFound):
        ledger_service.list_entries("ZZ", EntryQuery())


def test_inactive_cashbox_refuses_entries(db_session, cashboxes):
    cashboxes["C"].is_active = False
    db_session.commit()

    with pytest.raises(InvalidRequest):
        _manual({"kind": "income", "amount": 5, "cashboxCode": "C"})
    assert db_session.query(CashboxEntry).count() == 0


class ResolveCashboxTests(unittest.TestCase):
    """Selector resolution; needs the app fixtures, so wired through autouse."""

    @pytest.fixture(autouse=True)
    def _seeded(self, cashboxes):
        self.cashboxes = cashboxes

    def test_by_code_case_insensitive(self):
        cashbox = ledger_service.resolve_cashbox(CashboxSelector(code="b"))
        self.assertEqual(cashbox.id, self.cashboxes["B"].id)

    def test_by_id(self):
        cashbox = ledger_service.resolve_cashbox(CashboxSelector(cashbox_id=self.cashboxes["C"].id))
        self.assertEqual(cashbox.code, "C")

    def test_missing_selector(self):
        self.assertIsNone(ledger_service.resolve_cashbox(None, required=False))
        with self.assertRaises(InvalidRequest):
            ledger_service.resolve_cashbox(None)

    def test_unknown_code(self):
        with self.assertRaises(InvalidRequest):
            ledger_service.resolve_cashbox(CashboxSelector(code="Q"))

    def test_append_entry_rejects_non_positive_amount(self):
        with self.assertRaises(InvalidRequest):
            ledger_service.append_entry(
                cashbox=self.cashboxes["A"],
                kind="adjustment",
                direction="in",
                amount=Decimal("0"),
            )
