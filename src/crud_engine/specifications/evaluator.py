"""In-memory evaluation of FilterConditions against plain ``dict`` records."""

from __future__ import annotations

from abc import abstractmethod
from typing import TYPE_CHECKING, Any

from .strategy import OperatorRegistry, OperatorStrategy

if TYPE_CHECKING:
    from collections.abc import Iterable, Mapping

    from .condition import FilterCondition


class MemoryOperator(OperatorStrategy):
    """Decides one operator for a value read from a record."""

    @abstractmethod
    def evaluate(self, field_value: Any, condition_value: Any) -> bool:
        """
        Args:
            field_value: The record's value; ``None`` when the field is absent.
            condition_value: The condition's value, already shape-checked.
        """
        ...


class MemoryOperatorRegistry(OperatorRegistry[MemoryOperator]):
    backend = "in-memory"

    def matches(
        self,
        record: Mapping[str, Any],
        conditions: Iterable[FilterCondition],
    ) -> bool:
        """True if *record* satisfies every condition (logical AND)."""
        return all(
            self.strategy_for(c.operator).evaluate(record.get(c.field), c.value)
            for c in conditions
        )
