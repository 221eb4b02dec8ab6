"""String operators: like, ilike."""

from __future__ import annotations

import re
from functools import lru_cache
from typing import Any

from ..evaluator import MemoryOperator
from ..operators import FilterOperator


@lru_cache(maxsize=256)
def like_pattern_to_regex(pattern: str) -> re.Pattern[str]:
    """Compile a LIKE pattern where ``%`` is the only wildcard.

    Every other character, ``_`` included, matches literally.
    """
    body = ".*".join(re.escape(part) for part in pattern.split("%"))
    return re.compile(body, re.DOTALL)


class LikeOperator(MemoryOperator):
    @property
    def name(self) -> FilterOperator:
        return FilterOperator.LIKE

    def evaluate(self, field_value: Any, condition_value: Any) -> bool:
        if field_value is None:
            return False
        regex = like_pattern_to_regex(str(condition_value))
        return regex.fullmatch(str(field_value)) is not None


class ILikeOperator(MemoryOperator):
    """Case-insensitive LIKE: both sides are lower-cased before matching."""

    @property
    def name(self) -> FilterOperator:
        return FilterOperator.ILIKE

    def evaluate(self, field_value: Any, condition_value: Any) -> bool:
        if field_value is None:
            return False
        regex = like_pattern_to_regex(str(condition_value).lower())
        return regex.fullmatch(str(field_value).lower()) is not None
