# Overview: Acting-user resolution for settlement operations.

from __future__ import annotations

from dataclasses import dataclass

from flask import current_app

from ..extensions import db
from ..errors import InvalidRequest
from ..models import User


@dataclass(frozen=True)
class Actor:
    """Caller identity as established by the upstream authentication layer."""
    user_id: int | None = None
    role: str | None = None

    @property
    def is_privileged(self) -> bool:
        privileged = current_app.config.get("PRIVILEGED_ROLES", frozenset())
        return bool(self.role) and self.role.lower() in privileged


def resolve_acting_user(actor: Actor | None, explicit_user_id: int | None = None, *, required: bool = True) -> User | None:
    """
    Pick the user recorded on a sale, edit or restock.

    A privileged actor may name another user explicitly; everyone else acts
    as themselves. The chosen id must point to an existing, active user.
    """
    user_id = None
    if explicit_user_id is not None and actor is not None and actor.is_privileged:
        user_id = explicit_user_id
    elif actor is not None:
        user_id = actor.user_id

    if user_id is None:
        if required:
            raise InvalidRequest("Acting user is required")
        return None

    user = db.session.get(User, user_id)
    if user is None or not user.is_active:
        raise InvalidRequest("Acting user not found", {"user_id": user_id})
    return user
