"""Consumer-facing result envelopes."""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Any


@dataclass(frozen=True)
class ResultInfo:
    page: int
    per_page: int
    total_count: int
    total_pages: int
    has_next_page: bool
    has_prev_page: bool

    @classmethod
    def build(cls, page: int, per_page: int, total_count: int) -> ResultInfo:
        total_pages = math.ceil(total_count / per_page) if per_page else 0
        return cls(
            page=page,
            per_page=per_page,
            total_count=total_count,
            total_pages=total_pages,
            has_next_page=page < total_pages,
            has_prev_page=page > 1,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "page": self.page,
            "per_page": self.per_page,
            "total_count": self.total_count,
            "total_pages": self.total_pages,
            "has_next_page": self.has_next_page,
            "has_prev_page": self.has_prev_page,
        }


@dataclass(frozen=True)
class ReadResult:
    """``{result: T | T[], result_info?: {...}}``"""

    result: Any
    result_info: ResultInfo | None = None

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {"success": True, "result": self.result}
        if self.result_info is not None:
            out["result_info"] = self.result_info.to_dict()
        return out


@dataclass(frozen=True)
class WriteResult:
    """``{success: bool, result: T}``"""

    success: bool
    result: Any

    def to_dict(self) -> dict[str, Any]:
        return {"success": self.success, "result": self.result}
