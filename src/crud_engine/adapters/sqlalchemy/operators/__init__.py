"""
SQLAlchemy operator implementations and default registry.

``like``/``ilike`` render differently per dialect, so adapters build their
own registry with :func:`build_default_sqla_registry` and the engine's
dialect name. ``DEFAULT_SQLA_REGISTRY`` uses the portable renderings.
"""

from __future__ import annotations

from ..strategy import SQLAlchemyOperatorRegistry
from .null import IsNullOperator
from .set import BetweenOperator, InOperator, NotInOperator
from .standard import ORDERINGS, EqualOperator, NotEqualOperator, OrderingOperator
from .string import ILikeOperator, LikeOperator, escape_like, like_to_glob


def build_default_sqla_registry(dialect: str | None = None) -> SQLAlchemyOperatorRegistry:
    """Create a registry with every built-in operator for *dialect*."""
    return SQLAlchemyOperatorRegistry(
        EqualOperator(),
        NotEqualOperator(),
        *(OrderingOperator(name) for name in ORDERINGS),
        InOperator(),
        NotInOperator(),
        BetweenOperator(),
        IsNullOperator(),
        LikeOperator(dialect),
        ILikeOperator(dialect),
    )


DEFAULT_SQLA_REGISTRY = build_default_sqla_registry()

__all__ = [
    "DEFAULT_SQLA_REGISTRY",
    "BetweenOperator",
    "EqualOperator",
    "ILikeOperator",
    "InOperator",
    "IsNullOperator",
    "LikeOperator",
    "NotEqualOperator",
    "NotInOperator",
    "OrderingOperator",
    "build_default_sqla_registry",
    "escape_like",
    "like_to_glob",
]
