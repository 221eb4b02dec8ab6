"""
Compile FilterCondition sequences into SQLAlchemy expressions.

Uses the strategy pattern: each operator is an isolated class in
``operators/``, registered in a ``SQLAlchemyOperatorRegistry``.
Column lookup is delegated to a resolver so the same compiler serves
Core tables and ORM mapped classes.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from sqlalchemy import and_, asc, desc, true

from .operators import DEFAULT_SQLA_REGISTRY

if TYPE_CHECKING:
    from collections.abc import Callable, Sequence

    from sqlalchemy import ColumnElement, Select

    from ...specifications.condition import FilterCondition
    from .strategy import SQLAlchemyOperatorRegistry


def build_sqla_filter(
    resolve: Callable[[str], Any],
    conditions: Sequence[FilterCondition],
    *,
    registry: SQLAlchemyOperatorRegistry | None = None,
) -> ColumnElement[bool]:
    """
    AND every condition into one SQLAlchemy boolean expression.

    Args:
        resolve: Maps a record field name to a column or attribute.
        conditions: Conditions to compile; empty yields ``true()``.
        registry: Optional custom operator registry. Falls back to
            ``DEFAULT_SQLA_REGISTRY``.
    """
    reg = registry or DEFAULT_SQLA_REGISTRY
    clauses = [reg.clause(c, resolve(c.field)) for c in conditions]
    if not clauses:
        return true()
    if len(clauses) == 1:
        return clauses[0]
    return and_(*clauses)


def apply_order_by(
    stmt: Select[Any],
    resolve: Callable[[str], Any],
    order_by: Sequence[tuple[str, str]],
) -> Select[Any]:
    """Apply ``(field, direction)`` pairs; nulls sort first ascending."""
    clauses: list[Any] = []
    for field, direction in order_by:
        column = resolve(field)
        if direction == "desc":
            clauses.append(desc(column).nulls_last())
        else:
            clauses.append(asc(column).nulls_first())
    return stmt.order_by(*clauses) if clauses else stmt


def apply_window(stmt: Select[Any], skip: int | None, take: int | None) -> Select[Any]:
    if skip:
        stmt = stmt.offset(skip)
    if take is not None:
        stmt = stmt.limit(take)
    return stmt
