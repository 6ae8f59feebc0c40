import unittest
from datetime import datetime
from decimal import Decimal

from shopledger.services.receipt_status import (
    Computed,
    Manual,
    RECEIPT_PAID,
    RECEIPT_PARTIAL,
    RECEIPT_UNPAID,
    compute_status,
    normalize_status,
    resolve_status,
)


class ComputeStatusTests(unittest.TestCase):
    def test_unpaid_when_nothing_paid(self):
        self.assertEqual(compute_status(Decimal("0"), Decimal("100.00")), RECEIPT_UNPAID)

    def test_partial_between_zero_and_total(self):
        self.assertEqual(compute_status(Decimal("40.00"), Decimal("100.00")), RECEIPT_PARTIAL)

    def test_paid_when_total_reached(self):
        self.assertEqual(compute_status(Decimal("100.00"), Decimal("100.00")), RECEIPT_PAID)

    def test_overpaid_is_paid(self):
        self.assertEqual(compute_status(Decimal("120.00"), Decimal("100.00")), RECEIPT_PAID)

    def test_rounds_to_cents_before_comparing(self):
        # 99.995 rounds half-up to 100.00
        self.assertEqual(compute_status(Decimal("99.995"), Decimal("100.00")), RECEIPT_PAID)
        self.assertEqual(compute_status(Decimal("99.994"), Decimal("100.00")), RECEIPT_PARTIAL)

    def test_accepts_floats_and_strings(self):
        self.assertEqual(compute_status(0.1 + 0.2, "0.30"), RECEIPT_PAID)


class ResolveStatusTests(unittest.TestCase):
    def test_computed_follows_ledger(self):
        self.assertEqual(resolve_status(Decimal("40"), Decimal("100"), Computed()), RECEIPT_PARTIAL)
        self.assertEqual(resolve_status(Decimal("40"), Decimal("100")), RECEIPT_PARTIAL)

    def test_manual_override_wins(self):
        override = Manual(value=RECEIPT_PAID, note="settled in kind", set_at=datetime(2024, 5, 1))
        self.assertEqual(resolve_status(Decimal("0"), Decimal("100"), override), RECEIPT_PAID)

    def test_manual_rejects_unknown_value(self):
        with self.assertRaises(ValueError):
            Manual(value="REFUNDED")


class NormalizeStatusTests(unittest.TestCase):
    def test_case_insensitive(self):
        self.assertEqual(normalize_status(" paid "), RECEIPT_PAID)
        self.assertEqual(normalize_status("Partial"), RECEIPT_PARTIAL)

    def test_unknown_or_missing(self):
        self.assertIsNone(normalize_status(None))
        self.assertIsNone(normalize_status("void"))


if __name__ == "__main__":
    unittest.main()
