"""Nested-write engine."""

from .engine import NestedWriteEngine, RelationPlan, WritePlan
from .payload import DecomposedPayload, RelationOps, decompose, is_operation_object

__all__ = [
    "DecomposedPayload",
    "NestedWriteEngine",
    "RelationOps",
    "RelationPlan",
    "WritePlan",
    "decompose",
    "is_operation_object",
]
