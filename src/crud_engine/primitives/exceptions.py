"""Engine and infrastructure exceptions for crud-engine."""

from __future__ import annotations

from typing import Any


class CrudEngineError(Exception):
    """Root exception for the entire crud-engine toolkit."""

    code: str = "INTERNAL_ERROR"
    status: int = 500

    def to_dict(self) -> dict[str, Any]:
        return {"code": self.code, "message": str(self), "details": None}


class ValidationError(CrudEngineError):
    """Raised when a request, filter or payload fails validation.

    Carries structured errors: ``{field: [messages]}``.
    """

    code = "VALIDATION_ERROR"
    status = 400

    def __init__(self, errors: dict[str, list[str]] | str | None = None) -> None:
        if isinstance(errors, str):
            self.errors: dict[str, list[str]] = {"__root__": [errors]}
        elif errors is None:
            self.errors = {}
        else:
            self.errors = errors
        super().__init__(str(self.errors))

    @property
    def message(self) -> str:
        messages = [msg for msgs in self.errors.values() for msg in msgs]
        return "; ".join(messages) if messages else "Validation failed"

    def to_dict(self) -> dict[str, Any]:
        return {"code": self.code, "message": self.message, "details": self.errors}


class NotFoundError(CrudEngineError):
    """Raised when a record is absent or not visible to the caller.

    Absent, soft-deleted, foreign-tenant and unowned records all surface
    through this one type with the same message shape.
    """

    code = "NOT_FOUND"
    status = 404


class EntityNotFoundError(NotFoundError):
    """Raised when a specific record cannot be found by key."""

    def __init__(self, entity_type: str, entity_id: object) -> None:
        self.entity_type = entity_type
        self.entity_id = entity_id
        super().__init__(f"{entity_type} with id={entity_id!r} not found")


class OperationNotAllowedError(CrudEngineError):
    """Raised when a nested-write operation is not enabled for a relation."""

    code = "OPERATION_NOT_ALLOWED"
    status = 400

    def __init__(self, relation: str, operation: str, reason: str | None = None) -> None:
        self.relation = relation
        self.operation = operation
        msg = f"Nested {operation!r} is not allowed on relation {relation!r}"
        if reason:
            msg += f" - {reason}"
        super().__init__(msg)


class ConflictError(CrudEngineError):
    """Raised when a write conflicts with existing state.

    Usage: ambiguous upsert matches and ``restrict`` cascades.
    """

    code = "CONFLICT"
    status = 409

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        self.details = details
        super().__init__(message)

    def to_dict(self) -> dict[str, Any]:
        return {"code": self.code, "message": str(self), "details": self.details}


class InfrastructureError(CrudEngineError):
    """Base class for all infrastructure-related errors."""


class PersistenceError(InfrastructureError):
    """Base class for all persistence-related errors."""


def error_response(exc: CrudEngineError) -> dict[str, Any]:
    """Build the ``{success: false, error: {...}}`` envelope for *exc*."""
    return {"success": False, "error": exc.to_dict()}


__all__: list[str] = [
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
