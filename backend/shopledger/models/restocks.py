from __future__ import annotations

from ..extensions import db
from ..money import as_float
from ..time_utils import to_utc_z
from .mixins import ReceiptStatusMixin


class Restock(ReceiptStatusMixin, db.Model):
    """
    A purchase from a supplier.

    total = subtotal + tax. Paid-to-date is the sum of restock Payments;
    outstanding debt towards the supplier is total - paid.
    `date` is the business date used to order outstanding restocks.
    """
    __tablename__ = "restocks"
    __table_args__ = (
        db.Index("ix_restocks_supplier_date", "supplier_id", "date"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    supplier_id = db.Column(db.Integer, db.ForeignKey("suppliers.id", ondelete="SET NULL"), nullable=True, index=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id", ondelete="SET NULL"), nullable=True)

    subtotal = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    tax = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    total = db.Column(db.Numeric(12, 2), nullable=False, default=0)

    note = db.Column(db.Text, nullable=True)
    date = db.Column(db.DateTime(timezone=True), nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    supplier = db.relationship("Supplier", backref=db.backref("restocks", lazy=True))
    lines = db.relationship(
        "RestockItem",
        backref="restock",
        lazy=True,
        order_by="RestockItem.id",
        cascade="all, delete-orphan",
    )

    def to_dict(self) -> dict:
        data = {
            "id": self.id,
            "supplier_id": self.supplier_id,
            "supplier_name": self.supplier.name if self.supplier else None,
            "user_id": self.user_id,
            "subtotal": as_float(self.subtotal),
            "tax": as_float(self.tax),
            "total": as_float(self.total),
            "note": self.note,
            "date": to_utc_z(self.date),
            "created_at": to_utc_z(self.created_at),
        }
        data.update(self.status_dict())
        return data


class RestockItem(db.Model):
    """
    One restock line.

    EACH: `quantity` pieces at `cost_each`, one InventoryUnit per piece.
    METER: `length_m` is the sum of the rolls created by the line.
    """
    __tablename__ = "restock_items"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    restock_id = db.Column(db.Integer, db.ForeignKey("restocks.id", ondelete="CASCADE"), nullable=False, index=True)
    item_id = db.Column(db.Integer, db.ForeignKey("items.id"), nullable=False, index=True)
    mode = db.Column(db.String(8), nullable=False, default="EACH")

    quantity = db.Column(db.Integer, nullable=False, default=0)
    length_m = db.Column(db.Numeric(12, 3), nullable=True)
    cost_each = db.Column(db.Numeric(12, 2), nullable=False, default=0)

    item = db.relationship("Item")
    roll_links = db.relationship(
        "RestockRoll",
        backref="restock_item",
        lazy=True,
        order_by="RestockRoll.id",
        cascade="all, delete-orphan",
    )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "restock_id": self.restock_id,
            "item_id": self.item_id,
            "item_name": self.item.name if self.item else None,
            "mode": self.mode,
            "quantity": self.quantity,
            "length_m": as_float(self.length_m),
            "cost_each": as_float(self.cost_each),
            "roll_ids": [link.roll_id for link in self.roll_links],
        }


class RestockRoll(db.Model):
    """Roll created by a METER restock line."""
    __tablename__ = "restock_rolls"
    __table_args__ = (
        db.UniqueConstraint("roll_id", name="uq_restock_rolls_roll"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    restock_item_id = db.Column(db.Integer, db.ForeignKey("restock_items.id", ondelete="CASCADE"), nullable=False, index=True)
    roll_id = db.Column(db.Integer, db.ForeignKey("rolls.id", ondelete="CASCADE"), nullable=False)

    roll = db.relationship("Roll")
