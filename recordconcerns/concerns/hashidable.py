"""
Public-safe obfuscated identifiers.

A hashid is a reversible, salted encoding of an integer (by default the
primary key) stored in its own unique column at insert time.

Usage:
    class Invoice(HashidableMixin, Base):
        __tablename__ = "invoices"

        id: Mapped[int] = mapped_column(primary_key=True)
        hashid: Mapped[str | None] = mapped_column(String(32), unique=True)

    Invoice.hashidable_by(field="id", hashid_field="hashid", min_length=10)

The source value is usually unknown before the INSERT (autoincrement keys),
in which case a random integer is encoded instead. The collision loop below
only narrows the race window; the unique constraint on the hashid column is
what guarantees uniqueness under concurrent inserts.
"""

from __future__ import annotations

import secrets
from dataclasses import dataclass
from typing import Any, Self

import structlog
from hashids import Hashids
from sqlalchemy import Connection, event, exists, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import Mapper

from recordconcerns.config.settings import get_settings
from recordconcerns.core.errors import ConfigurationError, ErrorCode
from recordconcerns.db.flush import claimed
from recordconcerns.db.schema import column_for, is_unique, require_column

_log = structlog.get_logger(__name__)

CONCERN = "Hashidable"


@dataclass(frozen=True)
class HashidConfig:
    field: str
    hashid_field: str
    salt: str
    min_length: int

    def encoder(self) -> Hashids:
        return Hashids(salt=self.salt, min_length=self.min_length)


def _default_config() -> HashidConfig:
    settings = get_settings()
    return HashidConfig(
        field="id",
        hashid_field="hashid",
        salt=settings.default_hashid_salt,
        min_length=settings.hashid_min_length,
    )


class HashidableMixin:
    """Adds hashid generation, decoding and lookup to a mapped class."""

    @classmethod
    def hashidable_by(
        cls,
        field: str = "id",
        hashid_field: str = "hashid",
        salt: str | None = None,
        min_length: int | None = None,
    ) -> HashidConfig:
        settings = get_settings()
        require_column(cls, field, CONCERN)
        require_column(cls, hashid_field, CONCERN)
        if min_length is not None and min_length < 0:
            raise ConfigurationError(
                f"{CONCERN}: min_length must be >= 0, got {min_length}",
                code=ErrorCode.CONFIG_INVALID_OPTION,
                detail={"model": cls.__name__, "min_length": min_length},
            )

        config = HashidConfig(
            field=field,
            hashid_field=hashid_field,
            salt=salt if salt is not None else settings.default_hashid_salt,
            min_length=min_length if min_length is not None else settings.hashid_min_length,
        )
        if not is_unique(cls, hashid_field):
            _log.warning("hashid_field_not_unique", model=cls.__name__, field=hashid_field)

        cls.__hashid_config__ = config
        _log.info(
            "concern_declared",
            concern=CONCERN,
            model=cls.__name__,
            field=field,
            hashid_field=hashid_field,
            min_length=config.min_length,
        )
        return config

    @classmethod
    def hashid_config(cls) -> HashidConfig:
        return getattr(cls, "__hashid_config__", None) or _default_config()

    @classmethod
    def hashids(cls) -> Hashids:
        return cls.hashid_config().encoder()

    @classmethod
    async def find_by_hashid(cls, session: AsyncSession, value: str) -> Self | None:
        column = getattr(cls, cls.hashid_config().hashid_field)
        result = await session.execute(select(cls).where(column == value))
        return result.scalar_one_or_none()

    @property
    def hashid(self) -> str | None:
        return getattr(self, type(self).hashid_config().hashid_field)

    def decode_hashid(self) -> int | None:
        """Recover the integer the stored hashid was generated from."""
        config = type(self).hashid_config()
        value = getattr(self, config.hashid_field)
        if not value:
            return None
        decoded = config.encoder().decode(value)
        return decoded[0] if decoded else None


def _candidate_source(value: Any, ceiling: int) -> int:
    if isinstance(value, int) and not isinstance(value, bool) and value >= 0:
        return value
    return secrets.randbelow(ceiling)


@event.listens_for(HashidableMixin, "before_insert", propagate=True)
def _assign_hashid(mapper: Mapper[Any], connection: Connection, target: Any) -> None:
    config = type(target).hashid_config()
    if getattr(target, config.hashid_field, None):
        return

    column = column_for(type(target), config.hashid_field)
    ceiling = get_settings().hashid_random_ceiling
    taken = claimed(target, f"hashid:{column.table.name}.{column.name}")
    encoder = config.encoder()

    value = _candidate_source(getattr(target, config.field, None), ceiling)
    while True:
        candidate = encoder.encode(value)
        if candidate not in taken and not connection.scalar(
            select(exists().where(column == candidate))
        ):
            break
        _log.debug("hashid_collision", model=type(target).__name__, source=value)
        value = secrets.randbelow(ceiling)

    taken.add(candidate)
    setattr(target, config.hashid_field, candidate)
