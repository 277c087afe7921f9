"""
Per-flush scratch state for the concern event handlers.

Mapper events fire once per row while the flush batches its statements, so
handlers that must see each other's decisions within one flush (next free
position, slugs and hashids already handed out) share a dict kept in
``session.info``. It is discarded when the flush finishes or rolls back.
"""

from __future__ import annotations

from typing import Any

from sqlalchemy import event
from sqlalchemy.orm import Session, object_session

_STATE_KEY = "recordconcerns.flush_state"


def flush_state(session: Session) -> dict[str, Any]:
    return session.info.setdefault(_STATE_KEY, {})


def flush_state_for(record: Any) -> dict[str, Any]:
    """Scratch state of the session the record is being flushed by."""
    session = object_session(record)
    if session is None:
        return {}
    return flush_state(session)


def claimed(record: Any, namespace: str) -> set[Any]:
    """A per-flush set of values already handed out under ``namespace``."""
    return flush_state_for(record).setdefault(namespace, set())


@event.listens_for(Session, "after_flush_postexec")
def _discard_after_flush(session: Session, flush_context: Any) -> None:
    session.info.pop(_STATE_KEY, None)


@event.listens_for(Session, "after_soft_rollback")
def _discard_after_rollback(session: Session, previous_transaction: Any) -> None:
    session.info.pop(_STATE_KEY, None)
