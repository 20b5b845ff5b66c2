# Overview: Database access helpers shared by services; fresh reads and backend failure translation.

from __future__ import annotations

from contextlib import contextmanager

from sqlalchemy.exc import DisconnectionError, InterfaceError, OperationalError

from ..extensions import db


class BackendUnavailable(RuntimeError):
    """Raised when the database cannot be reached or drops the connection."""
    pass


def lock_for_update(query):
    """
    Apply row-level locking for critical operations.

    NOTE: SQLite ignores SELECT ... FOR UPDATE, but other DBs will honor it.
    """
    return query.with_for_update()


def fetch_current(query):
    """
    Re-read rows straight from the database.

    populate_existing() overwrites any copy already held in the session's
    identity map, so status guards never act on a stale in-memory object.
    """
    return lock_for_update(query.populate_existing())


@contextmanager
def backend_call(operation: str):
    """
    Translate connectivity failures into BackendUnavailable.

    No retry: the caller reports the failure to whoever started the action.
    """
    try:
        yield
    except (OperationalError, InterfaceError, DisconnectionError) as exc:
        db.session.rollback()
        raise BackendUnavailable(f"{operation}: backend unavailable") from exc


def commit(operation: str) -> None:
    """Commit the current session, surfacing connectivity failures as BackendUnavailable."""
    with backend_call(operation):
        db.session.commit()
