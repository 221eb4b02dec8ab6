"""Lowest-level building blocks shared by every layer."""

from .exceptions import (
    ConflictError,
    CrudEngineError,
    EntityNotFoundError,
    InfrastructureError,
    NotFoundError,
    OperationNotAllowedError,
    PersistenceError,
    ValidationError,
    error_response,
)

__all__ = [
    "ConflictError",
    "CrudEngineError",
    "EntityNotFoundError",
    "InfrastructureError",
    "NotFoundError",
    "OperationNotAllowedError",
    "PersistenceError",
    "ValidationError",
    "error_response",
]
