"""Ports: the interfaces adapters implement."""

from .storage import FindOptions, Record, StorageAdapter
from .unit_of_work import UnitOfWork

__all__ = [
    "FindOptions",
    "Record",
    "StorageAdapter",
    "UnitOfWork",
]
