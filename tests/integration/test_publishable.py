"""Publish state transitions and published/unpublished scopes."""
from datetime import UTC, datetime, timedelta

import pytest
from sqlalchemy import DateTime, Integer, String
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

from recordconcerns.concerns import PublishableMixin
from recordconcerns.core.errors import ConfigurationError
from tests.models import Article, Bulletin, Embargoed


async def _article(db_session, title="Hello", **values):
    article = Article(title=title, **values)
    db_session.add(article)
    await db_session.flush()
    return article


async def _titles(db_session, stmt):
    return sorted(a.title for a in (await db_session.scalars(stmt)).all())


async def test_defaults_to_unpublished(db_session):
    article = await _article(db_session)
    assert article.published_at is None
    assert article.is_published is False
    assert article.is_unpublished is True


async def test_publish_and_unpublish(db_session):
    article = await _article(db_session)

    assert await article.publish(db_session) is True
    assert article.published_at is not None
    assert article.is_published is True

    assert await article.unpublish(db_session) is True
    assert article.published_at is None
    assert article.is_unpublished is True


async def test_published_change_is_persisted(db_session):
    article = await _article(db_session)
    await article.publish(db_session)
    await db_session.refresh(article)
    assert article.published_at is not None


async def test_scopes_partition_records(db_session):
    live = await _article(db_session, title="live")
    await _article(db_session, title="draft")
    await live.publish(db_session)

    assert await _titles(db_session, Article.published()) == ["live"]
    assert await _titles(db_session, Article.unpublished()) == ["draft"]


async def test_scopes_compose_with_other_filters(db_session):
    for title in ("alpha", "beta"):
        await (await _article(db_session, title=title)).publish(db_session)
    await _article(db_session, title="gamma")

    stmt = Article.published().where(Article.title != "alpha")
    assert await _titles(db_session, stmt) == ["beta"]


async def test_custom_publish_time(db_session):
    when = datetime.now(UTC) - timedelta(days=1)
    article = await _article(db_session, published_at=when)
    assert article.is_published is True
    assert article.published_at == when


async def test_publish_returns_false_when_write_rejected(db_session):
    kept = Embargoed(title="open")
    blocked = Embargoed(title="embargoed")
    db_session.add_all([kept, blocked])
    await db_session.flush()
    assert await kept.publish(db_session) is True

    assert await blocked.publish(db_session) is False

    await db_session.refresh(blocked)
    assert blocked.published_at is None
    assert await _titles(db_session, Embargoed.published()) == ["open"]
    assert await _titles(db_session, Embargoed.unpublished()) == ["embargoed"]


# ─── Boolean columns ──────────────────────────────────────────────────────────

async def test_boolean_field_publish_cycle(db_session):
    bulletin = Bulletin(title="news")
    db_session.add(bulletin)
    await db_session.flush()

    await bulletin.publish(db_session)
    assert bulletin.is_live is True
    assert [b.title for b in await db_session.scalars(Bulletin.published())] == ["news"]

    await bulletin.unpublish(db_session)
    assert bulletin.is_published is False
    assert [b.title for b in await db_session.scalars(Bulletin.unpublished())] == ["news"]


async def test_boolean_false_counts_as_unpublished(db_session):
    bulletin = Bulletin(title="held", is_live=False)
    db_session.add(bulletin)
    await db_session.flush()
    assert bulletin.is_published is False
    assert list(await db_session.scalars(Bulletin.published())) == []
    assert [b.title for b in await db_session.scalars(Bulletin.unpublished())] == ["held"]


# ─── Declaration ──────────────────────────────────────────────────────────────

class _Base(DeclarativeBase):
    pass


class Notice(PublishableMixin, _Base):
    __tablename__ = "notices"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    title: Mapped[str] = mapped_column(String(255))
    published_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    released_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))


def test_missing_field_raises():
    with pytest.raises(ConfigurationError, match="does not exist"):
        Notice.publishable_by("went_live_at")


def test_default_field():
    assert Notice.publishable_by().field == "published_at"


def test_redeclaration_overwrites_field():
    Notice.publishable_by("released_at")
    assert Notice.publish_config().field == "released_at"
    Notice.publishable_by("published_at")
    assert Notice.publish_config().field == "published_at"
