"""
Shared helpers for concern operations that write a single record.

Every transition runs inside its own SAVEPOINT. A write the database rejects
rolls back that savepoint only, so work the caller flushed earlier in the
same transaction survives and the operation reports ``False``.
"""

from __future__ import annotations

import inspect
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import Any

import structlog
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from recordconcerns.core.errors import ErrorCode

_log = structlog.get_logger(__name__)


async def run_hook(record: Any, name: str) -> None:
    """Invoke an optional hook method; coroutine hooks are awaited."""
    hook = getattr(record, name, None)
    if hook is None:
        return
    result = hook()
    if inspect.isawaitable(result):
        await result


@dataclass
class WriteOutcome:
    ok: bool = False


@asynccontextmanager
async def guarded_write(
    session: AsyncSession, record: Any, operation: str
) -> AsyncIterator[WriteOutcome]:
    """
    Apply the changes made in the block to ``record`` under a SAVEPOINT.

    Pending work already in the session is flushed first, outside the
    savepoint, and its errors propagate. Database errors raised by the block
    or its flush are logged, the savepoint is rolled back and
    ``outcome.ok`` stays False. Any other exception propagates.

        async with guarded_write(session, post, "soft_delete") as outcome:
            post.deleted_at = utcnow()
        if not outcome.ok:
            ...
    """
    outcome = WriteOutcome()
    session.add(record)
    await session.flush()
    try:
        async with session.begin_nested():
            yield outcome
            await session.flush()
    except SQLAlchemyError as exc:
        _log.warning(
            "record_write_rejected",
            code=ErrorCode.PERSIST_WRITE_REJECTED.value,
            operation=operation,
            model=type(record).__name__,
            error=str(exc),
        )
        return
    outcome.ok = True


async def delete_record(session: AsyncSession, record: Any, operation: str) -> bool:
    """Physically delete ``record``; False when the delete is rejected."""
    async with guarded_write(session, record, operation) as outcome:
        await session.delete(record)
    return outcome.ok
