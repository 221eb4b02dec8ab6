"""Set operators: in, nin, between."""

from __future__ import annotations

from typing import Any

from ..evaluator import MemoryOperator
from ..operators import FilterOperator


class InOperator(MemoryOperator):
    @property
    def name(self) -> FilterOperator:
        return FilterOperator.IN

    def evaluate(self, field_value: Any, condition_value: Any) -> bool:
        return field_value in condition_value


class NotInOperator(MemoryOperator):
    @property
    def name(self) -> FilterOperator:
        return FilterOperator.NIN

    def evaluate(self, field_value: Any, condition_value: Any) -> bool:
        return field_value not in condition_value


class BetweenOperator(MemoryOperator):
    """Inclusive on both bounds."""

    @property
    def name(self) -> FilterOperator:
        return FilterOperator.BETWEEN

    def evaluate(self, field_value: Any, condition_value: Any) -> bool:
        if field_value is None:
            return False
        low, high = condition_value
        return bool(low <= field_value <= high)
