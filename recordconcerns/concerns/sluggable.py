"""
URL slugs derived from a source column.

The slug is (re)generated inside the flush, only when the source column has
pending changes, so unrelated updates never move a published URL.

Usage:
    class Page(SluggableMixin, Base):
        ...
        title: Mapped[str]
        slug: Mapped[str | None] = mapped_column(String(255), unique=True)

    Page.sluggable_by("title")
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Self

import structlog
from slugify import slugify
from sqlalchemy import Connection, event, inspect, or_, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import Mapper

from recordconcerns.config.settings import get_settings
from recordconcerns.db.flush import claimed
from recordconcerns.db.schema import column_for, primary_key_filter, require_column

_log = structlog.get_logger(__name__)

CONCERN = "Sluggable"


@dataclass(frozen=True)
class SlugConfig:
    field: str = "name"
    slug_field: str = "slug"


class SluggableMixin:
    """Adds slug generation and lookup to a mapped class."""

    @classmethod
    def sluggable_by(cls, field: str, slug_field: str = "slug") -> SlugConfig:
        config = SlugConfig(field=field, slug_field=slug_field)
        require_column(cls, config.field, CONCERN)
        require_column(cls, config.slug_field, CONCERN)
        cls.__slug_config__ = config
        _log.info(
            "concern_declared",
            concern=CONCERN,
            model=cls.__name__,
            field=config.field,
            slug_field=config.slug_field,
        )
        return config

    @classmethod
    def slug_config(cls) -> SlugConfig:
        return getattr(cls, "__slug_config__", None) or SlugConfig()

    @classmethod
    async def find_by_slug(cls, session: AsyncSession, slug: str) -> Self | None:
        column = getattr(cls, cls.slug_config().slug_field)
        result = await session.execute(select(cls).where(column == slug))
        return result.scalar_one_or_none()

    def slug_source(self) -> str:
        """Text the slug is built from: the source column, ``title``, or str(self)."""
        value = getattr(self, type(self).slug_config().field, None)
        if value is None:
            value = getattr(self, "title", None)
        if value is None:
            return str(self)
        return str(value)

    def should_generate_new_slug(self) -> bool:
        config = type(self).slug_config()
        state = inspect(self)
        if not state.has_identity:
            return not getattr(self, config.slug_field, None)
        if config.field not in state.mapper.column_attrs:
            return False
        return state.attrs[config.field].history.has_changes()

    def normalize_slug(self, text: str) -> str:
        settings = get_settings()
        slug = slugify(
            text,
            separator=settings.slug_separator,
            max_length=settings.slug_max_length,
        )
        return slug or slugify(type(self).__name__, separator=settings.slug_separator)


def _unique_slug(connection: Connection, target: Any, base: str) -> str:
    cls = type(target)
    config = cls.slug_config()
    settings = get_settings()
    separator = settings.slug_separator
    column = column_for(cls, config.slug_field)

    stmt = select(column).where(
        or_(column == base, column.startswith(f"{base}{separator}", autoescape=True))
    )
    own_row = primary_key_filter(target)
    if own_row is not None:
        stmt = stmt.where(~own_row)

    taken = claimed(target, f"slug:{column.table.name}.{column.name}")
    existing = set(connection.scalars(stmt)) | taken

    candidate = base
    counter = 1
    while candidate in existing:
        suffix = f"{separator}{counter}"
        candidate = f"{base[: settings.slug_max_length - len(suffix)]}{suffix}"
        counter += 1

    taken.add(candidate)
    return candidate


def _assign_slug(mapper: Mapper[Any], connection: Connection, target: Any) -> None:
    if not target.should_generate_new_slug():
        return
    config = type(target).slug_config()
    base = target.normalize_slug(target.slug_source())
    slug = _unique_slug(connection, target, base)
    setattr(target, config.slug_field, slug)
    _log.debug("slug_generated", model=type(target).__name__, slug=slug)


event.listen(SluggableMixin, "before_insert", _assign_slug, propagate=True)
event.listen(SluggableMixin, "before_update", _assign_slug, propagate=True)
