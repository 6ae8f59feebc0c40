from __future__ import annotations

from ..extensions import db
from ..services.receipt_status import Computed, Manual, StatusOverride, RECEIPT_UNPAID
from ..time_utils import to_utc_z


class ReceiptStatusMixin:
    """
    Stored receipt status plus the manual override columns.

    The columns are only written through `manual_override`, so an enabled
    flag without a value (or a value without the flag) cannot be produced.
    """

    status = db.Column(db.String(16), nullable=False, default=RECEIPT_UNPAID, index=True)
    status_manual_enabled = db.Column(db.Boolean, nullable=False, default=False)
    status_manual_value = db.Column(db.String(16), nullable=True)
    status_manual_note = db.Column(db.String(255), nullable=True)
    status_manual_set_at = db.Column(db.DateTime(timezone=True), nullable=True)

    @property
    def manual_override(self) -> StatusOverride:
        if self.status_manual_enabled and self.status_manual_value:
            return Manual(
                value=self.status_manual_value,
                note=self.status_manual_note,
                set_at=self.status_manual_set_at,
            )
        return Computed()

    @manual_override.setter
    def manual_override(self, override: StatusOverride) -> None:
        if isinstance(override, Manual):
            self.status_manual_enabled = True
            self.status_manual_value = override.value
            self.status_manual_note = override.note
            self.status_manual_set_at = override.set_at
        else:
            self.status_manual_enabled = False
            self.status_manual_value = None
            self.status_manual_note = None
            self.status_manual_set_at = None

    def status_dict(self) -> dict:
        return {
            "status_code": self.status,
            "status": self.status.lower() if self.status else None,
            "status_manual_enabled": bool(self.status_manual_enabled),
            "status_manual_value": self.status_manual_value,
            "status_manual_note": self.status_manual_note,
            "status_manual_set_at": to_utc_z(self.status_manual_set_at),
        }
