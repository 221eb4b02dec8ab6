"""Null check operator for SQLAlchemy."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, cast

from ....specifications.operators import FilterOperator
from ..strategy import SQLAlchemyOperator

if TYPE_CHECKING:
    from sqlalchemy.sql.elements import ColumnElement


class IsNullOperator(SQLAlchemyOperator):
    """``true`` renders ``IS NULL``, ``false`` renders ``IS NOT NULL``."""

    @property
    def name(self) -> FilterOperator:
        return FilterOperator.NULL

    def apply(self, column: Any, value: Any) -> ColumnElement[bool]:
        if value:
            return cast("ColumnElement[bool]", column.is_(None))
        return cast("ColumnElement[bool]", column.is_not(None))
