from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z


OUTCOME_RESTOCK = "restock"
OUTCOME_DEFECTIVE = "defective"
REQUESTED_OUTCOMES = (OUTCOME_RESTOCK, OUTCOME_DEFECTIVE)

RETURN_PENDING = "pending"
RETURN_RESTOCKED = "restocked"
RETURN_TRASHED = "trashed"
RETURN_TO_SUPPLIER = "returned_to_supplier"


class InventoryReturn(db.Model):
    """
    Unit-level return.

    STATE MACHINE:
    pending -> restocked | trashed | returned_to_supplier

    At most one pending return exists per unit.
    """
    __tablename__ = "inventory_returns"
    __table_args__ = (
        db.Index("ix_inventory_returns_unit_status", "inventory_unit_id", "status"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    inventory_unit_id = db.Column(
        db.Integer,
        db.ForeignKey("inventory_units.id", ondelete="CASCADE"),
        nullable=False,
    )
    requested_outcome = db.Column(db.String(16), nullable=False, default=OUTCOME_RESTOCK)
    status = db.Column(db.String(24), nullable=False, default=RETURN_PENDING, index=True)

    supplier_id = db.Column(db.Integer, db.ForeignKey("suppliers.id", ondelete="SET NULL"), nullable=True)
    supplier_note = db.Column(db.Text, nullable=True)
    note = db.Column(db.Text, nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    resolved_at = db.Column(db.DateTime(timezone=True), nullable=True)

    unit = db.relationship("InventoryUnit", backref=db.backref("returns", lazy=True, order_by="InventoryReturn.id"))
    supplier = db.relationship("Supplier")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "inventory_unit_id": self.inventory_unit_id,
            "requested_outcome": self.requested_outcome,
            "status": self.status,
            "supplier_id": self.supplier_id,
            "supplier_note": self.supplier_note,
            "note": self.note,
            "created_at": to_utc_z(self.created_at),
            "resolved_at": to_utc_z(self.resolved_at),
        }
