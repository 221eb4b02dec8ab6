"""Comparison operators: eq, ne and the orderings gt, gte, lt, lte."""

from __future__ import annotations

import operator
from typing import Any

from ..evaluator import MemoryOperator
from ..operators import FilterOperator

ORDERINGS = {
    FilterOperator.GT: operator.gt,
    FilterOperator.GTE: operator.ge,
    FilterOperator.LT: operator.lt,
    FilterOperator.LTE: operator.le,
}


class EqualOperator(MemoryOperator):
    @property
    def name(self) -> FilterOperator:
        return FilterOperator.EQ

    def evaluate(self, field_value: Any, condition_value: Any) -> bool:
        return bool(field_value == condition_value)


class NotEqualOperator(MemoryOperator):
    """A null field differs from every non-null value."""

    @property
    def name(self) -> FilterOperator:
        return FilterOperator.NE

    def evaluate(self, field_value: Any, condition_value: Any) -> bool:
        return bool(field_value != condition_value)


class OrderingOperator(MemoryOperator):
    """One of gt/gte/lt/lte. A null field never matches."""

    def __init__(self, name: FilterOperator) -> None:
        self._name = FilterOperator(name)
        self._compare = ORDERINGS[self._name]

    @property
    def name(self) -> FilterOperator:
        return self._name

    def evaluate(self, field_value: Any, condition_value: Any) -> bool:
        if field_value is None:
            return False
        return bool(self._compare(field_value, condition_value))
