"""Storage backends behind the ``Storage`` interface."""

from formline.storage.base import Storage
from formline.storage.memory import InMemoryStorage

__all__ = ["InMemoryStorage", "Storage"]
