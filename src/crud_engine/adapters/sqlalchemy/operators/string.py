"""String operators for SQLAlchemy: like, ilike.

``%`` is the only wildcard. ``_`` and the escape character are escaped so
they match literally on every dialect. SQLite's ``LIKE`` ignores ASCII case,
so case-sensitive ``like`` is rendered as ``GLOB`` there.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, cast

from sqlalchemy import func

from ....specifications.operators import FilterOperator
from ..strategy import SQLAlchemyOperator

if TYPE_CHECKING:
    from sqlalchemy.sql.elements import ColumnElement

LIKE_ESCAPE = "/"

_GLOB_SPECIAL = {"*": "[*]", "?": "[?]", "[": "[[]"}


def escape_like(pattern: str, escape: str = LIKE_ESCAPE) -> str:
    """Escape everything but ``%`` for use with ``LIKE ... ESCAPE``."""
    return "%".join(
        part.replace(escape, escape * 2).replace("_", escape + "_")
        for part in pattern.split("%")
    )


def like_to_glob(pattern: str) -> str:
    """Translate a ``%``-only LIKE pattern into an equivalent GLOB pattern."""
    return "*".join(
        "".join(_GLOB_SPECIAL.get(ch, ch) for ch in part)
        for part in pattern.split("%")
    )


class LikeOperator(SQLAlchemyOperator):
    def __init__(self, dialect: str | None = None) -> None:
        self._dialect = dialect

    @property
    def name(self) -> FilterOperator:
        return FilterOperator.LIKE

    def apply(self, column: Any, value: Any) -> ColumnElement[bool]:
        if self._dialect == "sqlite":
            glob = column.op("GLOB", is_comparison=True)
            return cast("ColumnElement[bool]", glob(like_to_glob(str(value))))
        return cast(
            "ColumnElement[bool]",
            column.like(escape_like(str(value)), escape=LIKE_ESCAPE),
        )


class ILikeOperator(SQLAlchemyOperator):
    """Native ``ILIKE`` on PostgreSQL, ``lower(col) LIKE lower(pattern)`` elsewhere."""

    def __init__(self, dialect: str | None = None) -> None:
        self._dialect = dialect

    @property
    def name(self) -> FilterOperator:
        return FilterOperator.ILIKE

    def apply(self, column: Any, value: Any) -> ColumnElement[bool]:
        pattern = escape_like(str(value))
        if self._dialect == "postgresql":
            return cast(
                "ColumnElement[bool]", column.ilike(pattern, escape=LIKE_ESCAPE)
            )
        return cast(
            "ColumnElement[bool]",
            func.lower(column).like(pattern.lower(), escape=LIKE_ESCAPE),
        )
