"""
FilterCondition — one ``field``/``operator``/``value`` constraint on a read.

Conditions are immutable and hashable. They are produced by the query
parser, by the policy layer, and by external translators; adapters render
a sequence of them (always ANDed) into their native predicate.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from ..primitives.exceptions import ValidationError
from .operators import COMPARISON_OPERATORS, FilterOperator


@dataclass(frozen=True)
class FilterCondition:
    """
    A single filter constraint.

    Attributes:
        field: The record field the constraint applies to.
        operator: One of :class:`FilterOperator`.
        value: Scalar for comparisons, a 2-tuple for ``between``, a non-empty
            tuple for ``in``/``nin``, a ``bool`` for ``null``, a string
            pattern for ``like``/``ilike``.

    Raises:
        ValidationError: If the value does not fit the operator's shape.
    """

    field: str
    operator: FilterOperator
    value: Any

    def __post_init__(self) -> None:
        if not self.field or not isinstance(self.field, str):
            raise ValidationError("Filter field must be a non-empty string")
        try:
            op = FilterOperator(self.operator)
        except ValueError:
            raise ValidationError(
                {self.field: [f"Unknown filter operator {self.operator!r}"]}
            ) from None
        object.__setattr__(self, "operator", op)
        object.__setattr__(self, "value", _normalize_value(self.field, op, self.value))

    # -- factories -----------------------------------------------------------

    @classmethod
    def eq(cls, field: str, value: Any) -> FilterCondition:
        return cls(field, FilterOperator.EQ, value)

    @classmethod
    def is_null(cls, field: str, value: bool = True) -> FilterCondition:
        return cls(field, FilterOperator.NULL, value)

    @classmethod
    def one_of(cls, field: str, values: Any) -> FilterCondition:
        return cls(field, FilterOperator.IN, values)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> FilterCondition:
        """Build from ``{"field": ..., "operator": ..., "value": ...}``."""
        try:
            return cls(data["field"], data["operator"], data.get("value"))
        except KeyError as exc:
            raise ValidationError(f"Filter condition is missing {exc.args[0]!r}") from None

    def to_dict(self) -> dict[str, Any]:
        value = list(self.value) if isinstance(self.value, tuple) else self.value
        return {"field": self.field, "operator": self.operator.value, "value": value}


def _normalize_value(field: str, op: FilterOperator, value: Any) -> Any:
    if op is FilterOperator.BETWEEN:
        if not isinstance(value, list | tuple) or len(value) != 2:
            raise ValidationError(
                {field: ["'between' requires exactly two values"]}
            )
        low, high = value
        if low is None or high is None:
            raise ValidationError({field: ["'between' bounds must not be null"]})
        try:
            low <= high  # noqa: B015
        except TypeError:
            raise ValidationError(
                {field: ["'between' bounds must be comparable"]}
            ) from None
        return (low, high)

    if op in (FilterOperator.IN, FilterOperator.NIN):
        if not isinstance(value, list | tuple | set | frozenset) or not value:
            raise ValidationError(
                {field: [f"{op.value!r} requires a non-empty list of values"]}
            )
        return tuple(value)

    if op is FilterOperator.NULL:
        if not isinstance(value, bool):
            raise ValidationError({field: ["'null' requires a boolean value"]})
        return value

    if op in (FilterOperator.LIKE, FilterOperator.ILIKE):
        if not isinstance(value, str):
            raise ValidationError({field: [f"{op.value!r} requires a string pattern"]})
        return value

    if op in COMPARISON_OPERATORS and isinstance(value, list | tuple | dict | set):
        raise ValidationError({field: [f"{op.value!r} requires a scalar value"]})
    return value
