from enum import Enum


class FilterOperator(str, Enum):
    """Supported filter operators."""

    # Standard comparison
    EQ = "eq"
    NE = "ne"
    GT = "gt"
    GTE = "gte"
    LT = "lt"
    LTE = "lte"

    # Set / range
    IN = "in"
    NIN = "nin"
    BETWEEN = "between"

    # String matching (``%`` is the only wildcard)
    LIKE = "like"
    ILIKE = "ilike"

    # Null check (value is a strict bool)
    NULL = "null"


COMPARISON_OPERATORS = frozenset(
    {
        FilterOperator.EQ,
        FilterOperator.NE,
        FilterOperator.GT,
        FilterOperator.GTE,
        FilterOperator.LT,
        FilterOperator.LTE,
    }
)

ARRAY_OPERATORS = frozenset(
    {FilterOperator.IN, FilterOperator.NIN, FilterOperator.BETWEEN}
)

PATTERN_OPERATORS = frozenset({FilterOperator.LIKE, FilterOperator.ILIKE})
