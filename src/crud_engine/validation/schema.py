"""SchemaValidator — the opaque validator + shape descriptor of a Model."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

if TYPE_CHECKING:
    from collections.abc import Collection, Mapping


@runtime_checkable
class SchemaValidator(Protocol):
    """
    Protocol for record schemas.

    The engine only needs to validate payloads, look up a field's declared
    type (to coerce query-string filter values) and know whether a field
    accepts ``None`` (to allow ``disconnect``).
    """

    @property
    def field_names(self) -> frozenset[str]: ...

    def validate(
        self,
        data: Mapping[str, Any],
        *,
        partial: bool = False,
        skip_required: Collection[str] = (),
    ) -> dict[str, Any]:
        """Return validated/coerced data or raise ``ValidationError``."""
        ...

    def coerce(self, name: str, value: Any) -> Any:
        """Coerce a single value to the declared type of *name*."""
        ...

    def has_field(self, name: str) -> bool: ...

    def is_nullable(self, name: str) -> bool: ...
