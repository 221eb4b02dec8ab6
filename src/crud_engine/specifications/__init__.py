"""Filter-condition model and operator grammar."""

from .condition import FilterCondition
from .evaluator import MemoryOperator, MemoryOperatorRegistry
from .operators import FilterOperator
from .operators_memory import build_default_registry
from .strategy import OperatorRegistry, OperatorStrategy

__all__ = [
    "FilterCondition",
    "FilterOperator",
    "MemoryOperator",
    "MemoryOperatorRegistry",
    "OperatorRegistry",
    "OperatorStrategy",
    "build_default_registry",
]
