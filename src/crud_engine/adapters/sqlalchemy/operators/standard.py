"""Comparison operators for SQLAlchemy: eq, ne and the orderings."""

from __future__ import annotations

import operator
from typing import TYPE_CHECKING, Any, cast

from sqlalchemy import or_

from ....specifications.operators import FilterOperator
from ..strategy import SQLAlchemyOperator

if TYPE_CHECKING:
    from sqlalchemy.sql.elements import ColumnElement

ORDERINGS = {
    FilterOperator.GT: operator.gt,
    FilterOperator.GTE: operator.ge,
    FilterOperator.LT: operator.lt,
    FilterOperator.LTE: operator.le,
}


class EqualOperator(SQLAlchemyOperator):
    """``eq None`` renders ``IS NULL``."""

    @property
    def name(self) -> FilterOperator:
        return FilterOperator.EQ

    def apply(self, column: Any, value: Any) -> ColumnElement[bool]:
        if value is None:
            return cast("ColumnElement[bool]", column.is_(None))
        return cast("ColumnElement[bool]", column == value)


class NotEqualOperator(SQLAlchemyOperator):
    """SQL ``<>`` drops nulls, so they are OR-ed back in."""

    @property
    def name(self) -> FilterOperator:
        return FilterOperator.NE

    def apply(self, column: Any, value: Any) -> ColumnElement[bool]:
        if value is None:
            return cast("ColumnElement[bool]", column.is_not(None))
        return or_(column.is_(None), column != value)


class OrderingOperator(SQLAlchemyOperator):
    def __init__(self, name: FilterOperator) -> None:
        self._name = FilterOperator(name)
        self._compare = ORDERINGS[self._name]

    @property
    def name(self) -> FilterOperator:
        return self._name

    def apply(self, column: Any, value: Any) -> ColumnElement[bool]:
        return cast("ColumnElement[bool]", self._compare(column, value))
