"""
In-memory operator implementations.

Usage::

    from crud_engine.specifications.operators_memory import build_default_registry

    registry = build_default_registry()
    registry.matches({"age": 30}, [FilterCondition("age", "gte", 18)])
"""

from __future__ import annotations

from ..evaluator import MemoryOperatorRegistry
from .null import IsNullOperator
from .set import BetweenOperator, InOperator, NotInOperator
from .standard import ORDERINGS, EqualOperator, NotEqualOperator, OrderingOperator
from .string import ILikeOperator, LikeOperator, like_pattern_to_regex


def build_default_registry() -> MemoryOperatorRegistry:
    """Create a registry with every built-in operator."""
    return MemoryOperatorRegistry(
        EqualOperator(),
        NotEqualOperator(),
        *(OrderingOperator(name) for name in ORDERINGS),
        InOperator(),
        NotInOperator(),
        BetweenOperator(),
        LikeOperator(),
        ILikeOperator(),
        IsNullOperator(),
    )


__all__ = [
    "MemoryOperatorRegistry",
    "build_default_registry",
    "like_pattern_to_regex",
]
