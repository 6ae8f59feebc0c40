from __future__ import annotations

from ..extensions import db
from ..money import as_float
from ..time_utils import to_utc_z


ENTRY_KIND_PAYMENT = "payment"
ENTRY_KIND_EXPENSE = "expense"
ENTRY_KIND_INCOME = "income"
ENTRY_KIND_TRANSFER = "transfer"
ENTRY_KIND_ADJUSTMENT = "adjustment"

ENTRY_KINDS = (
    ENTRY_KIND_PAYMENT,
    ENTRY_KIND_EXPENSE,
    ENTRY_KIND_INCOME,
    ENTRY_KIND_TRANSFER,
    ENTRY_KIND_ADJUSTMENT,
)

DIRECTION_IN = "in"
DIRECTION_OUT = "out"

REFERENCE_SALE = "sale"
REFERENCE_RESTOCK = "restock"
REFERENCE_MANUAL = "manual"


class Cashbox(db.Model):
    """Named cash ledger. The balance is never stored; it is derived from entries."""
    __tablename__ = "cashboxes"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    code = db.Column(db.String(3), nullable=False, unique=True, index=True)
    label = db.Column(db.String(64), nullable=False)
    is_active = db.Column(db.Boolean, nullable=False, default=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "code": self.code,
            "label": self.label,
            "is_active": self.is_active,
        }


class CashboxEntry(db.Model):
    """
    Append-only cash ledger entry.

    - occurred_at is business time; created_at is system time (db default)
    - amount is always positive; direction carries the sign
    - payment_id is set when the entry mirrors a Payment
    """
    __tablename__ = "cashbox_entries"
    __table_args__ = (
        db.CheckConstraint("amount > 0", name="ck_cashbox_entries_amount_positive"),
        db.CheckConstraint("direction IN ('in', 'out')", name="ck_cashbox_entries_direction"),
        db.Index("ix_cashbox_entries_cashbox_occurred", "cashbox_id", "occurred_at"),
        db.Index("ix_cashbox_entries_reference", "reference_type", "reference_id"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    cashbox_id = db.Column(db.Integer, db.ForeignKey("cashboxes.id", ondelete="CASCADE"), nullable=False)
    kind = db.Column(db.String(16), nullable=False, default=ENTRY_KIND_PAYMENT)
    direction = db.Column(db.String(3), nullable=False)
    amount = db.Column(db.Numeric(12, 2), nullable=False)

    payment_id = db.Column(db.Integer, db.ForeignKey("payments.id", ondelete="SET NULL"), nullable=True, index=True)
    reference_type = db.Column(db.String(16), nullable=True)
    reference_id = db.Column(db.Integer, nullable=True)

    occurred_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    note = db.Column(db.Text, nullable=True)
    meta = db.Column(db.JSON, nullable=True)

    cashbox = db.relationship("Cashbox", backref=db.backref("entries", lazy="dynamic"))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "cashbox_id": self.cashbox_id,
            "cashbox_code": self.cashbox.code if self.cashbox else None,
            "kind": self.kind,
            "direction": self.direction,
            "amount": as_float(self.amount),
            "payment_id": self.payment_id,
            "reference_type": self.reference_type,
            "reference_id": self.reference_id,
            "occurred_at": to_utc_z(self.occurred_at),
            "created_at": to_utc_z(self.created_at),
            "note": self.note,
            "meta": self.meta,
        }
