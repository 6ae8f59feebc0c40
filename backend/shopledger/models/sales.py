from __future__ import annotations

from ..extensions import db
from ..money import as_float, q2
from ..time_utils import to_utc_z, utcnow
from .mixins import ReceiptStatusMixin


LINE_MODE_EACH = "EACH"
LINE_MODE_METER = "METER"

PAYMENT_KIND_SALE = "sale"
PAYMENT_KIND_RESTOCK = "restock"
PAYMENT_KIND_OTHER = "other"

RECEIPT_TYPE_SIMPLE = "simple"


class Transaction(ReceiptStatusMixin, db.Model):
    """
    A sale receipt.

    INVARIANTS:
    - total = sum of line totals, rounded to cents
    - paid is never stored; it is the sum of this sale's Payments
    - status = resolve_status(paid, total, manual_override) after every
      ledger mutation touching the sale
    """
    __tablename__ = "transactions"
    __table_args__ = (
        db.Index("ix_transactions_customer", "customer_id"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    total = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    receipt_type = db.Column(db.String(16), nullable=False, default=RECEIPT_TYPE_SIMPLE)
    note = db.Column(db.Text, nullable=True)
    date = db.Column(db.DateTime(timezone=True), nullable=True)

    customer_id = db.Column(db.Integer, db.ForeignKey("customers.id", ondelete="SET NULL"), nullable=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id", ondelete="SET NULL"), nullable=True, index=True)

    # Edit audit
    last_edit_user_id = db.Column(db.Integer, db.ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    last_edit_note = db.Column(db.Text, nullable=True)
    last_edit_at = db.Column(db.DateTime(timezone=True), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    customer = db.relationship("Customer")
    user = db.relationship("User", foreign_keys=[user_id])
    last_edit_user = db.relationship("User", foreign_keys=[last_edit_user_id])
    lines = db.relationship(
        "TransactionItem",
        backref="sale",
        lazy=True,
        order_by="TransactionItem.id",
        cascade="all, delete-orphan",
    )

    def to_dict(self) -> dict:
        data = {
            "id": self.id,
            "total": as_float(self.total),
            "receipt_type": self.receipt_type,
            "note": self.note,
            "date": to_utc_z(self.date),
            "customer_id": self.customer_id,
            "user_id": self.user_id,
            "last_edit_user_id": self.last_edit_user_id,
            "last_edit_note": self.last_edit_note,
            "last_edit_at": to_utc_z(self.last_edit_at),
            "created_at": to_utc_z(self.created_at),
        }
        data.update(self.status_dict())
        return data


class TransactionItem(db.Model):
    """
    One sale line.

    EACH: `quantity` pieces, units linked through TransactionItemUnit when
    the item is unit-tracked.
    METER: `length_m` cut from `roll_id`; quantity is always 1.

    cost_each is a snapshot taken when the line is written.
    """
    __tablename__ = "transaction_items"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    transaction_id = db.Column(db.Integer, db.ForeignKey("transactions.id", ondelete="CASCADE"), nullable=False, index=True)
    item_id = db.Column(db.Integer, db.ForeignKey("items.id"), nullable=False, index=True)
    mode = db.Column(db.String(8), nullable=False, default=LINE_MODE_EACH)

    quantity = db.Column(db.Integer, nullable=False, default=1)
    length_m = db.Column(db.Numeric(12, 3), nullable=True)
    roll_id = db.Column(db.Integer, db.ForeignKey("rolls.id", ondelete="SET NULL"), nullable=True, index=True)

    price_each = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    cost_each = db.Column(db.Numeric(12, 2), nullable=True)

    item = db.relationship("Item")
    roll = db.relationship("Roll")
    unit_links = db.relationship(
        "TransactionItemUnit",
        backref="line",
        lazy=True,
        order_by="TransactionItemUnit.id",
        cascade="all, delete-orphan",
    )

    @property
    def line_total(self):
        if self.mode == LINE_MODE_METER:
            return q2(q2(self.price_each) * (self.length_m or 0))
        return q2(q2(self.price_each) * (self.quantity or 0))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "transaction_id": self.transaction_id,
            "item_id": self.item_id,
            "item_name": self.item.name if self.item else None,
            "mode": self.mode,
            "quantity": self.quantity,
            "length_m": as_float(self.length_m),
            "roll_id": self.roll_id,
            "price_each": as_float(self.price_each),
            "cost_each": as_float(self.cost_each),
            "line_total": as_float(self.line_total),
        }


class TransactionItemUnit(db.Model):
    """Link between a sale line and a specific inventory unit it sold."""
    __tablename__ = "transaction_item_units"
    __table_args__ = (
        db.UniqueConstraint("transaction_item_id", "inventory_unit_id", name="uq_transaction_item_units_line_unit"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    transaction_item_id = db.Column(
        db.Integer,
        db.ForeignKey("transaction_items.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    inventory_unit_id = db.Column(
        db.Integer,
        db.ForeignKey("inventory_units.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    unit = db.relationship("InventoryUnit")


class Payment(db.Model):
    """
    Money received for a sale or paid out for a restock.

    Immutable once written. Every Payment is mirrored by exactly one
    CashboxEntry carrying its id.
    """
    __tablename__ = "payments"
    __table_args__ = (
        db.CheckConstraint(
            "NOT (transaction_id IS NOT NULL AND restock_id IS NOT NULL)",
            name="ck_payments_single_target",
        ),
        db.CheckConstraint("amount > 0", name="ck_payments_amount_positive"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    kind = db.Column(db.String(16), nullable=False, default=PAYMENT_KIND_SALE)
    amount = db.Column(db.Numeric(12, 2), nullable=False)

    transaction_id = db.Column(db.Integer, db.ForeignKey("transactions.id", ondelete="CASCADE"), nullable=True, index=True)
    restock_id = db.Column(db.Integer, db.ForeignKey("restocks.id", ondelete="CASCADE"), nullable=True, index=True)
    cashbox_id = db.Column(db.Integer, db.ForeignKey("cashboxes.id", ondelete="SET NULL"), nullable=True, index=True)

    note = db.Column(db.Text, nullable=True)
    # Business time of the payment; created_at is when the row was written
    paid_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, index=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "kind": self.kind,
            "amount": as_float(self.amount),
            "transaction_id": self.transaction_id,
            "restock_id": self.restock_id,
            "cashbox_id": self.cashbox_id,
            "note": self.note,
            "paid_at": to_utc_z(self.paid_at),
            "created_at": to_utc_z(self.created_at),
        }
