"""Validation system: SchemaValidator, PydanticSchema, ValidationResult."""

from __future__ import annotations

from .pydantic import PydanticSchema
from .result import ValidationResult
from .schema import SchemaValidator

__all__ = [
    "PydanticSchema",
    "SchemaValidator",
    "ValidationResult",
]
