"""Reference persistence collaborators for the recurring task engine."""

from .json_storage import JsonTaskStorage
from .memory_storage import InMemoryTaskStorage

__all__ = ["InMemoryTaskStorage", "JsonTaskStorage"]
