from __future__ import annotations

from ..extensions import db


class User(db.Model):
    """
    Staff member recorded as the acting user on sales, edits and restocks.

    Authentication lives upstream; this table only backs the acting-user
    foreign keys and the role used to decide who may act on behalf of whom.
    """
    __tablename__ = "users"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    username = db.Column(db.String(64), nullable=False, unique=True, index=True)
    name = db.Column(db.String(255), nullable=True)
    role = db.Column(db.String(32), nullable=False, default="cashier")
    is_active = db.Column(db.Boolean, nullable=False, default=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "username": self.username,
            "name": self.name,
            "role": self.role,
            "is_active": self.is_active,
        }
