# Overview: Transaction boundary and row-locking helpers shared by the settlement services.

from __future__ import annotations

from contextlib import contextmanager

from sqlalchemy.orm.util import identity_key

from ..extensions import db


def lock_for_update(query):
    """
    Apply row-level locking for critical operations.

    NOTE: SQLite ignores SELECT ... FOR UPDATE, but other DBs will honor it.
    """
    return query.with_for_update()


@contextmanager
def atomic():
    """
    Run the enclosed block as one database transaction.

    Commits when the block finishes, rolls back on any exception and
    re-raises it. There is no retry: a failed settlement is resubmitted by
    the caller.
    """
    try:
        yield db.session
        db.session.commit()
    except Exception:
        db.session.rollback()
        raise


def expire_cached(model, pk, *attrs) -> None:
    """
    Drop cached attribute values of an already-loaded row.

    Bulk UPDATEs run with synchronize_session=False; this makes the next
    attribute access reload from the database.
    """
    obj = db.session.identity_map.get(identity_key(model, pk))
    if obj is not None:
        db.session.expire(obj, list(attrs) or None)
