"""ValidationResult — structured validation errors."""

from __future__ import annotations

from dataclasses import dataclass, field

from ..primitives.exceptions import ValidationError


@dataclass
class ValidationResult:
    """Collects field-level validation errors, keyed by field path."""

    errors: dict[str, list[str]] = field(default_factory=dict)

    @property
    def is_valid(self) -> bool:
        return len(self.errors) == 0

    def add_error(self, field_name: str, message: str) -> None:
        """Add a single error for *field_name*."""
        self.errors.setdefault(field_name, []).append(message)

    def raise_if_invalid(self) -> None:
        if not self.is_valid:
            raise ValidationError(self.errors)

    def __bool__(self) -> bool:
        return self.is_valid
