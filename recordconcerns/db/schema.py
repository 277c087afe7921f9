"""Schema introspection used by concern declarations."""

from __future__ import annotations

from typing import Any

import structlog
from sqlalchemy import ColumnElement, UniqueConstraint, and_, inspect
from sqlalchemy.orm import Mapper

from recordconcerns.core.errors import MissingFieldError

_log = structlog.get_logger(__name__)


def _mapper(cls: type) -> Mapper[Any] | None:
    return inspect(cls, raiseerr=False)


def has_column(cls: type, field: str) -> bool:
    """True when ``field`` is a column-backed attribute of the mapped class."""
    mapper = _mapper(cls)
    if mapper is None:
        return False
    return field in mapper.column_attrs


def require_column(cls: type, field: str, concern: str) -> None:
    """Raise MissingFieldError unless ``field`` is a mapped column of ``cls``."""
    if not has_column(cls, field):
        _log.error(
            "concern_misconfigured",
            concern=concern,
            model=cls.__name__,
            field=field,
        )
        raise MissingFieldError(concern=concern, model=cls.__name__, field=field)


def column_for(cls: type, field: str) -> Any:
    """Return the table Column behind a mapped attribute."""
    return _mapper(cls).column_attrs[field].columns[0]


def is_unique(cls: type, field: str) -> bool:
    """True when the column carries a single-column unique constraint or index."""
    column = column_for(cls, field)
    if column.unique or column.primary_key:
        return True
    for constraint in column.table.constraints:
        if isinstance(constraint, UniqueConstraint) and list(constraint.columns) == [column]:
            return True
    return any(index.unique and list(index.columns) == [column] for index in column.table.indexes)


def primary_key_filter(record: Any) -> ColumnElement[bool] | None:
    """
    Build a WHERE clause matching the record's row by primary key.

    Returns None for records whose primary key is not yet known.
    """
    mapper = _mapper(type(record))
    identity = mapper.primary_key_from_instance(record)
    if any(value is None for value in identity):
        return None
    return and_(*(column == value for column, value in zip(mapper.primary_key, identity)))
