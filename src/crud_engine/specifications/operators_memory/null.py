"""Null check operator."""

from __future__ import annotations

from typing import Any

from ..evaluator import MemoryOperator
from ..operators import FilterOperator


class IsNullOperator(MemoryOperator):
    """``null=True`` matches missing values, ``null=False`` present ones."""

    @property
    def name(self) -> FilterOperator:
        return FilterOperator.NULL

    def evaluate(self, field_value: Any, condition_value: Any) -> bool:
        return (field_value is None) is bool(condition_value)
