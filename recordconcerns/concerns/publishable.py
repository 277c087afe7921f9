"""Publish / unpublish state tracked by a nullable timestamp or boolean column."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

import structlog
from sqlalchemy import Boolean, ColumnElement, Select, select
from sqlalchemy.ext.asyncio import AsyncSession

from recordconcerns.concerns.lifecycle import guarded_write
from recordconcerns.db.base import utcnow
from recordconcerns.db.schema import column_for, has_column, require_column

_log = structlog.get_logger(__name__)

CONCERN = "Publishable"
DEFAULT_FIELD = "published_at"


@dataclass(frozen=True)
class PublishConfig:
    field: str = DEFAULT_FIELD


class PublishableMixin:
    """
    Adds publish state to a mapped class.

    A null field means unpublished. Boolean columns are also accepted, in
    which case ``False`` counts as unpublished too.

    Usage:
        Article.publishable_by("published_at")
        await article.publish(session)
        rows = await session.scalars(Article.published())
    """

    @classmethod
    def publishable_by(cls, field: str | None = None) -> PublishConfig:
        config = PublishConfig(field=field or DEFAULT_FIELD)
        require_column(cls, config.field, CONCERN)
        cls.__publish_config__ = config
        _log.info("concern_declared", concern=CONCERN, model=cls.__name__, field=config.field)
        return config

    @classmethod
    def publish_config(cls) -> PublishConfig:
        return getattr(cls, "__publish_config__", None) or PublishConfig()

    @classmethod
    def _publish_is_boolean(cls) -> bool:
        field = cls.publish_config().field
        return has_column(cls, field) and isinstance(column_for(cls, field).type, Boolean)

    @classmethod
    def published_clause(cls) -> ColumnElement[bool]:
        column = getattr(cls, cls.publish_config().field)
        if cls._publish_is_boolean():
            return column.is_(True)
        return column.is_not(None)

    @classmethod
    def unpublished_clause(cls) -> ColumnElement[bool]:
        column = getattr(cls, cls.publish_config().field)
        if cls._publish_is_boolean():
            return column.is_not(True)
        return column.is_(None)

    @classmethod
    def published(cls, stmt: Select[Any] | None = None) -> Select[Any]:
        stmt = select(cls) if stmt is None else stmt
        return stmt.where(cls.published_clause())

    @classmethod
    def unpublished(cls, stmt: Select[Any] | None = None) -> Select[Any]:
        stmt = select(cls) if stmt is None else stmt
        return stmt.where(cls.unpublished_clause())

    @property
    def is_published(self) -> bool:
        value = getattr(self, type(self).publish_config().field)
        return value is not None and value is not False

    @property
    def is_unpublished(self) -> bool:
        return not self.is_published

    async def publish(self, session: AsyncSession) -> bool:
        cls = type(self)
        async with guarded_write(session, self, "publish") as outcome:
            value = True if cls._publish_is_boolean() else utcnow()
            setattr(self, cls.publish_config().field, value)
        if outcome.ok:
            _log.debug("record_published", model=cls.__name__)
        return outcome.ok

    async def unpublish(self, session: AsyncSession) -> bool:
        cls = type(self)
        async with guarded_write(session, self, "unpublish") as outcome:
            setattr(self, cls.publish_config().field, None)
        if outcome.ok:
            _log.debug("record_unpublished", model=cls.__name__)
        return outcome.ok
