"""Set operators for SQLAlchemy: in, nin, between."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, cast

from sqlalchemy import and_, or_

from ....specifications.operators import FilterOperator
from ..strategy import SQLAlchemyOperator

if TYPE_CHECKING:
    from sqlalchemy.sql.elements import ColumnElement


def _split_null(values: Any) -> tuple[list[Any], bool]:
    present = [v for v in values if v is not None]
    return present, len(present) != len(values)


class InOperator(SQLAlchemyOperator):
    """A ``None`` member matches null columns."""

    @property
    def name(self) -> FilterOperator:
        return FilterOperator.IN

    def apply(self, column: Any, value: Any) -> ColumnElement[bool]:
        present, with_null = _split_null(value)
        if not present:
            return cast("ColumnElement[bool]", column.is_(None))
        clause = column.in_(present)
        if with_null:
            return or_(clause, column.is_(None))
        return cast("ColumnElement[bool]", clause)


class NotInOperator(SQLAlchemyOperator):
    """Null columns match unless ``None`` is a member."""

    @property
    def name(self) -> FilterOperator:
        return FilterOperator.NIN

    def apply(self, column: Any, value: Any) -> ColumnElement[bool]:
        present, with_null = _split_null(value)
        if not present:
            return cast("ColumnElement[bool]", column.is_not(None))
        clause = column.not_in(present)
        if with_null:
            return and_(column.is_not(None), clause)
        return or_(column.is_(None), clause)


class BetweenOperator(SQLAlchemyOperator):
    @property
    def name(self) -> FilterOperator:
        return FilterOperator.BETWEEN

    def apply(self, column: Any, value: Any) -> ColumnElement[bool]:
        return cast("ColumnElement[bool]", column.between(value[0], value[1]))
