"""
SQLAlchemy operator strategies.

Each ``SQLAlchemyOperator`` turns one FilterCondition into a
``ColumnElement[bool]`` for a column resolved by the caller, so the same
strategies serve Core tables and ORM attributes.
"""

from __future__ import annotations

from abc import abstractmethod
from typing import TYPE_CHECKING, Any

from ...specifications.strategy import OperatorRegistry, OperatorStrategy

if TYPE_CHECKING:
    from sqlalchemy import ColumnElement

    from ...specifications.condition import FilterCondition


class SQLAlchemyOperator(OperatorStrategy):
    @abstractmethod
    def apply(self, column: Any, value: Any) -> ColumnElement[bool]:
        """
        Args:
            column: A SQLAlchemy column or instrumented attribute.
            value: The condition value, already shape-checked.
        """
        ...


class SQLAlchemyOperatorRegistry(OperatorRegistry[SQLAlchemyOperator]):
    backend = "SQLAlchemy"

    def clause(self, condition: FilterCondition, column: Any) -> ColumnElement[bool]:
        return self.strategy_for(condition.operator).apply(column, condition.value)
