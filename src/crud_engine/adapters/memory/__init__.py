"""In-memory storage adapter."""

from .adapter import DuplicateKeyError, MemoryStorageAdapter
from .store import MemoryStore
from .unit_of_work import MemoryUnitOfWork

__all__ = [
    "DuplicateKeyError",
    "MemoryStorageAdapter",
    "MemoryStore",
    "MemoryUnitOfWork",
]
