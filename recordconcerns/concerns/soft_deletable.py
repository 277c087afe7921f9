"""
Soft deletion with restore, lifecycle hooks and visibility scopes.

A record is soft-deleted while its marker column is non-null. Each
transition runs ``before_*`` hook, write, then ``after_*`` hook only when the
write went through; a hook that raises aborts the transition.

Usage:
    class Post(SoftDeletableMixin, TimestampMixin, Base):
        ...
        deleted_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))

        def after_soft_delete(self) -> None:
            notify_subscribers(self)

    Post.soft_deletable_by("deleted_at", touch=False, hide_deleted=True)

    await post.soft_delete(session)
    visible = await session.scalars(select(Post))          # hides deleted rows
    trash = await session.scalars(Post.soft_deleted())      # clears that filter
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

import structlog
from sqlalchemy import ColumnElement, Select, event, exists, inspect, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import ORMExecuteState, Session, with_loader_criteria
from sqlalchemy.orm.attributes import flag_modified

from recordconcerns.concerns.lifecycle import delete_record, guarded_write, run_hook
from recordconcerns.db.base import utcnow
from recordconcerns.db.options import INCLUDE_DELETED
from recordconcerns.db.schema import has_column, primary_key_filter, require_column

_log = structlog.get_logger(__name__)

CONCERN = "SoftDeletable"
DEFAULT_FIELD = "deleted_at"
TOUCH_FIELD = "updated_at"


@dataclass(frozen=True)
class SoftDeleteConfig:
    field: str = DEFAULT_FIELD
    touch: bool = True
    hide_deleted: bool = False


class SoftDeletableMixin:
    """Adds soft delete, restore, hooks and scopes to a mapped class."""

    @classmethod
    def soft_deletable_by(
        cls,
        field: str | None = None,
        *,
        touch: bool = True,
        hide_deleted: bool = False,
    ) -> SoftDeleteConfig:
        config = SoftDeleteConfig(
            field=field or DEFAULT_FIELD,
            touch=touch,
            hide_deleted=hide_deleted,
        )
        require_column(cls, config.field, CONCERN)
        cls.__soft_delete_config__ = config
        _log.info(
            "concern_declared",
            concern=CONCERN,
            model=cls.__name__,
            field=config.field,
            touch=touch,
            hide_deleted=hide_deleted,
        )
        return config

    @classmethod
    def soft_delete_config(cls) -> SoftDeleteConfig:
        return getattr(cls, "__soft_delete_config__", None) or SoftDeleteConfig()

    # ── Hooks ──────────────────────────────────────────────────────────── #

    def before_soft_delete(self) -> Any:
        pass

    def after_soft_delete(self) -> Any:
        pass

    def before_restore(self) -> Any:
        pass

    def after_restore(self) -> Any:
        pass

    # ── Scopes ─────────────────────────────────────────────────────────── #

    @classmethod
    def active_clause(cls) -> ColumnElement[bool]:
        return getattr(cls, cls.soft_delete_config().field).is_(None)

    @classmethod
    def soft_deleted_clause(cls) -> ColumnElement[bool]:
        return getattr(cls, cls.soft_delete_config().field).is_not(None)

    @classmethod
    def active(cls, stmt: Select[Any] | None = None) -> Select[Any]:
        stmt = select(cls) if stmt is None else stmt
        return stmt.where(cls.active_clause()).execution_options(include_deleted=True)

    @classmethod
    def without_deleted(cls, stmt: Select[Any] | None = None) -> Select[Any]:
        return cls.active(stmt)

    @classmethod
    def soft_deleted(cls, stmt: Select[Any] | None = None) -> Select[Any]:
        stmt = select(cls) if stmt is None else stmt
        return stmt.where(cls.soft_deleted_clause()).execution_options(include_deleted=True)

    # ── State ──────────────────────────────────────────────────────────── #

    @property
    def is_deleted(self) -> bool:
        return getattr(self, type(self).soft_delete_config().field) is not None

    @property
    def is_soft_deleted(self) -> bool:
        return self.is_deleted

    async def is_really_deleted(self, session: AsyncSession) -> bool:
        """True once the row is physically gone from the table."""
        own_row = primary_key_filter(self)
        if own_row is None:
            return True
        found = await session.scalar(
            select(exists().where(own_row)).execution_options(include_deleted=True)
        )
        return not found

    # ── Transitions ────────────────────────────────────────────────────── #

    async def soft_delete(self, session: AsyncSession) -> bool:
        """
        Mark the record deleted. Returns the outcome of the write.

        Calling it on an already deleted record keeps the original timestamp
        but still runs both hooks.
        """
        config = type(self).soft_delete_config()
        await run_hook(self, "before_soft_delete")
        async with guarded_write(session, self, "soft_delete") as outcome:
            if getattr(self, config.field) is None:
                await self._touch(session, config)
                setattr(self, config.field, utcnow())
        if not outcome.ok:
            return False
        _log.debug("record_soft_deleted", model=type(self).__name__)
        await run_hook(self, "after_soft_delete")
        return True

    async def restore(self, session: AsyncSession) -> bool:
        config = type(self).soft_delete_config()
        await run_hook(self, "before_restore")
        async with guarded_write(session, self, "restore") as outcome:
            if getattr(self, config.field) is not None:
                await self._touch(session, config)
                setattr(self, config.field, None)
        if not outcome.ok:
            return False
        _log.debug("record_restored", model=type(self).__name__)
        await run_hook(self, "after_restore")
        return True

    async def really_delete(self, session: AsyncSession) -> bool:
        """Physically delete the row. No hooks run."""
        ok = await delete_record(session, self, "really_delete")
        if ok:
            _log.debug("record_really_deleted", model=type(self).__name__)
        return ok

    async def _touch(self, session: AsyncSession, config: SoftDeleteConfig) -> None:
        if not has_column(type(self), TOUCH_FIELD):
            return
        if config.touch:
            setattr(self, TOUCH_FIELD, utcnow())
            return
        # Writing the loaded value back keeps onupdate defaults from firing
        if TOUCH_FIELD in inspect(self).unloaded:
            await session.refresh(self, [TOUCH_FIELD])
        flag_modified(self, TOUCH_FIELD)

    # ── Bulk ───────────────────────────────────────────────────────────── #

    @classmethod
    async def destroy_all(cls, session: AsyncSession, stmt: Select[Any] | None = None) -> int:
        """Soft-delete every matching record, one transition at a time."""
        stmt = select(cls) if stmt is None else stmt
        records = (await session.scalars(stmt)).all()
        count = 0
        for record in records:
            if not await record.soft_delete(session):
                break
            count += 1
        _log.info("records_soft_deleted", model=cls.__name__, count=count)
        return count

    @classmethod
    async def really_destroy_all(
        cls, session: AsyncSession, stmt: Select[Any] | None = None
    ) -> int:
        """Physically delete every matching record, soft-deleted ones included."""
        if stmt is None:
            stmt = select(cls).execution_options(include_deleted=True)
        records = (await session.scalars(stmt)).all()
        for record in records:
            await session.delete(record)
        await session.flush()
        _log.info("records_really_deleted", model=cls.__name__, count=len(records))
        return len(records)


@event.listens_for(Session, "do_orm_execute")
def _hide_soft_deleted(state: ORMExecuteState) -> None:
    if (
        not state.is_select
        or state.is_column_load
        or state.is_relationship_load
        or state.execution_options.get(INCLUDE_DELETED, False)
    ):
        return
    for mapper in state.all_mappers:
        cls = mapper.class_
        if not issubclass(cls, SoftDeletableMixin):
            continue
        config = cls.soft_delete_config()
        if not config.hide_deleted or not has_column(cls, config.field):
            continue
        state.statement = state.statement.options(
            with_loader_criteria(cls, cls.active_clause(), include_aliases=True)
        )
