"""Declarative record behaviours for SQLAlchemy models."""

from recordconcerns.concerns import (
    Direction,
    HashidableMixin,
    PublishableMixin,
    SluggableMixin,
    SoftDeletableMixin,
    SortableMixin,
)
from recordconcerns.core.errors import ConcernError, ConfigurationError, ErrorCode

__version__ = "0.1.0"

__all__ = [
    "ConcernError",
    "ConfigurationError",
    "Direction",
    "ErrorCode",
    "HashidableMixin",
    "PublishableMixin",
    "SluggableMixin",
    "SoftDeletableMixin",
    "SortableMixin",
]
