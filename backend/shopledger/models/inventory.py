from __future__ import annotations

from ..extensions import db
from ..money import as_float
from ..time_utils import to_utc_z


STOCK_UNIT_METER = "m"

UNIT_AVAILABLE = "available"
UNIT_RESERVED = "reserved"
UNIT_SOLD = "sold"
UNIT_RETURNED = "returned"
UNIT_DEFECTIVE = "defective"

UNIT_STATUSES = (UNIT_AVAILABLE, UNIT_RESERVED, UNIT_SOLD, UNIT_RETURNED, UNIT_DEFECTIVE)


class Item(db.Model):
    """
    Catalog item.

    STOCK:
    - stock_unit None: discrete item, `stock` counts pieces
    - stock_unit "m": meter item, `stock` is the sum of its rolls' remaining_m
      and is only ever moved together with a roll

    Stock is mutated through services.stock_ledger (atomic UPDATEs), never by
    assigning the attribute in application code.
    """
    __tablename__ = "items"
    __table_args__ = (
        db.Index("ix_items_name", "name"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(255), nullable=False)
    sku = db.Column(db.String(191), nullable=True, unique=True)
    category = db.Column(db.String(32), nullable=True)
    description = db.Column(db.Text, nullable=True)

    stock_unit = db.Column(db.String(4), nullable=True)
    stock = db.Column(db.Numeric(12, 3), nullable=False, default=0)
    roll_length = db.Column(db.Numeric(12, 3), nullable=True)

    # Legacy single price plus the two tiers
    price = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    price_retail = db.Column(db.Numeric(12, 2), nullable=True)
    price_wholesale = db.Column(db.Numeric(12, 2), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    @property
    def is_metered(self) -> bool:
        return self.stock_unit == STOCK_UNIT_METER

    def __repr__(self) -> str:
        return f"<Item id={self.id} name={self.name!r} stock={self.stock} unit={self.stock_unit!r}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "sku": self.sku,
            "category": self.category,
            "stock_unit": self.stock_unit,
            "stock": as_float(self.stock),
            "price": as_float(self.price),
            "price_retail": as_float(self.price_retail),
            "price_wholesale": as_float(self.price_wholesale),
        }


class Roll(db.Model):
    """A length-tracked piece of a meter item. 0 <= remaining_m <= length_m."""
    __tablename__ = "rolls"
    __table_args__ = (
        db.CheckConstraint("remaining_m >= 0", name="ck_rolls_remaining_nonneg"),
        db.CheckConstraint("remaining_m <= length_m", name="ck_rolls_remaining_le_length"),
        db.Index("ix_rolls_item_created", "item_id", "created_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    item_id = db.Column(db.Integer, db.ForeignKey("items.id", ondelete="CASCADE"), nullable=False, index=True)
    length_m = db.Column(db.Numeric(12, 3), nullable=False)
    remaining_m = db.Column(db.Numeric(12, 3), nullable=False)
    cost_per_meter = db.Column(db.Numeric(12, 2), nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    item = db.relationship("Item", backref=db.backref("rolls", lazy=True, order_by="Roll.id"))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "item_id": self.item_id,
            "length_m": as_float(self.length_m),
            "remaining_m": as_float(self.remaining_m),
            "cost_per_meter": as_float(self.cost_per_meter),
            "created_at": to_utc_z(self.created_at),
        }


class InventoryUnit(db.Model):
    """
    A trackable physical instance of an item.

    LIFECYCLE:
    available -> sold (sale allocation)
    sold -> returned (return requested)
    returned -> available | defective (return resolved)

    Created on restock (serialized or placeholder barcode) or as ad-hoc
    initial stock. Meter restocks also create one lineage unit per roll.
    """
    __tablename__ = "inventory_units"
    __table_args__ = (
        db.Index("ix_inventory_units_item_status_created", "item_id", "status", "created_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    item_id = db.Column(db.Integer, db.ForeignKey("items.id", ondelete="CASCADE"), nullable=False, index=True)
    restock_item_id = db.Column(db.Integer, db.ForeignKey("restock_items.id", ondelete="CASCADE"), nullable=True, index=True)
    roll_id = db.Column(db.Integer, db.ForeignKey("rolls.id", ondelete="SET NULL"), nullable=True, index=True)

    barcode = db.Column(db.String(191), nullable=True, unique=True)
    is_placeholder = db.Column(db.Boolean, nullable=False, default=True)
    status = db.Column(db.String(16), nullable=False, default=UNIT_AVAILABLE, index=True)
    cost_each = db.Column(db.Numeric(12, 2), nullable=False, default=0)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    item = db.relationship("Item", backref=db.backref("inventory_units", lazy=True))
    roll = db.relationship("Roll")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "item_id": self.item_id,
            "restock_item_id": self.restock_item_id,
            "roll_id": self.roll_id,
            "barcode": self.barcode,
            "is_placeholder": self.is_placeholder,
            "status": self.status,
            "cost_each": as_float(self.cost_each),
            "created_at": to_utc_z(self.created_at),
        }


class Supplier(db.Model):
    __tablename__ = "suppliers"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(255), nullable=False, index=True)
    phone = db.Column(db.String(64), nullable=True)
    email = db.Column(db.String(255), nullable=True)
    address = db.Column(db.String(255), nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "phone": self.phone,
            "email": self.email,
            "address": self.address,
        }
