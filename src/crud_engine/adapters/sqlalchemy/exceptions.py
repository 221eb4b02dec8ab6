"""Exceptions for the SQLAlchemy storage adapters."""

from __future__ import annotations

from ...primitives.exceptions import PersistenceError


class SQLAlchemyPersistenceError(PersistenceError):
    """Base exception for all SQLAlchemy-specific persistence errors."""


class SessionManagementError(SQLAlchemyPersistenceError):
    """Raised when session or connection creation or management fails."""


class UnitOfWorkError(SQLAlchemyPersistenceError):
    """Raised when Unit of Work operations fail."""


class MappingError(SQLAlchemyPersistenceError):
    """Raised when a model has no table or mapped class, or a column is unknown."""


__all__: list[str] = [
    "MappingError",
    "SessionManagementError",
    "SQLAlchemyPersistenceError",
    "UnitOfWorkError",
]
