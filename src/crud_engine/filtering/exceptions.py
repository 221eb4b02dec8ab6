"""Filtering package exceptions."""

from __future__ import annotations

from ..primitives.exceptions import ValidationError


class FilterParseError(ValidationError):
    """Raised when a query parameter or filter structure is invalid."""


class FieldNotAllowedError(ValidationError):
    """Raised when a field is not in the whitelist or operator is disallowed."""
