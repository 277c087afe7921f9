"""Concern registry. Importing this package installs every ORM event hook."""

from recordconcerns.concerns.hashidable import HashidableMixin, HashidConfig
from recordconcerns.concerns.publishable import PublishableMixin, PublishConfig
from recordconcerns.concerns.sluggable import SlugConfig, SluggableMixin
from recordconcerns.concerns.soft_deletable import SoftDeletableMixin, SoftDeleteConfig
from recordconcerns.concerns.sortable import Direction, SortableMixin, SortConfig

__all__ = [
    "Direction",
    "HashidConfig",
    "HashidableMixin",
    "PublishConfig",
    "PublishableMixin",
    "SlugConfig",
    "SluggableMixin",
    "SoftDeletableMixin",
    "SoftDeleteConfig",
    "SortConfig",
    "SortableMixin",
]
