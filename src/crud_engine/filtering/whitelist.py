"""FieldWhitelist — per-endpoint filterable/sortable fields."""

from __future__ import annotations

from typing import TYPE_CHECKING

from ..specifications.operators import FilterOperator
from .exceptions import FieldNotAllowedError

if TYPE_CHECKING:
    from collections.abc import Iterable, Mapping


class FieldWhitelist:
    """Per-endpoint allowed fields and operators.

    A field absent from ``filterable_fields`` cannot be filtered on at all;
    a present field accepts only the listed operators.
    """

    def __init__(
        self,
        *,
        filterable_fields: Mapping[str, Iterable[str | FilterOperator]] | None = None,
        sortable_fields: Iterable[str] | None = None,
    ) -> None:
        self.filterable_fields: dict[str, frozenset[FilterOperator]] = {
            name: frozenset(FilterOperator(op) for op in ops)
            for name, ops in (filterable_fields or {}).items()
        }
        self.sortable_fields = frozenset(sortable_fields or ())

    def is_filterable(self, field: str) -> bool:
        return field in self.filterable_fields

    def allow_filter(self, field: str, op: str | FilterOperator) -> None:
        """Raise FieldNotAllowedError if field or operator is not allowed."""
        if field not in self.filterable_fields:
            raise FieldNotAllowedError({field: [f"Field {field!r} is not filterable"]})
        allowed_ops = self.filterable_fields[field]
        try:
            op_normalized = FilterOperator(op)
        except ValueError:
            raise FieldNotAllowedError(
                {field: [f"Unknown operator {op!r}"]}
            ) from None
        if op_normalized not in allowed_ops:
            raise FieldNotAllowedError(
                {field: [f"Operator {op_normalized.value!r} not allowed for field {field!r}"]}
            )

    def allow_sort(self, field: str) -> None:
        if field not in self.sortable_fields:
            raise FieldNotAllowedError({field: [f"Field {field!r} is not sortable"]})
