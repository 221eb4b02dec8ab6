"""Batch-upsert options and result envelopes."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

DEFAULT_MAX_BATCH_SIZE = 100


@dataclass
class UpsertBatchItem:
    """Outcome of one input item; ``index`` is its position in the input."""

    index: int
    created: bool
    record: dict[str, Any] | None
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.error is None

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {
            "index": self.index,
            "created": self.created,
            "data": self.record,
        }
        if self.error is not None:
            out["error"] = self.error
        return out


@dataclass(frozen=True)
class BatchItemError:
    index: int
    error: str
    code: str = "INTERNAL_ERROR"

    def to_dict(self) -> dict[str, Any]:
        return {"index": self.index, "error": self.error, "code": self.code}


@dataclass
class BatchUpsertResult:
    created_count: int = 0
    updated_count: int = 0
    total_count: int = 0
    items: list[UpsertBatchItem] = field(default_factory=list)
    errors: list[BatchItemError] = field(default_factory=list)

    @property
    def failed_count(self) -> int:
        return len(self.errors)

    @property
    def success(self) -> bool:
        """True unless every item of a non-empty batch failed."""
        return self.total_count == 0 or self.failed_count < self.total_count

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {
            "items": [item.to_dict() for item in self.items],
            "createdCount": self.created_count,
            "updatedCount": self.updated_count,
            "totalCount": self.total_count,
        }
        if self.errors:
            result["errors"] = [e.to_dict() for e in self.errors]
        return {"success": self.success, "result": result}


@dataclass(frozen=True)
class BatchUpsertOptions:
    """
    Batch-upsert behaviour.

    Attributes:
        upsert_keys: Fields matched against existing records; defaults to
            the model's primary keys.
        max_batch_size: Larger batches are rejected before any item runs.
        continue_on_error: Record item failures in their slot and go on.
        atomic: Without ``continue_on_error``, run the whole batch in one
            transaction (all-or-nothing). ``False`` keeps the items applied
            before the failing one.
        create_only_fields: Dropped from the payload when updating.
        update_only_fields: Dropped from the payload when creating.
        before_item: ``(data, index, is_create)`` → replacement data.
        after_item: Called with each successful UpsertBatchItem.
    """

    upsert_keys: tuple[str, ...] | None = None
    max_batch_size: int | None = DEFAULT_MAX_BATCH_SIZE
    continue_on_error: bool = False
    atomic: bool = True
    create_only_fields: frozenset[str] = frozenset()
    update_only_fields: frozenset[str] = frozenset()
    before_item: Callable[..., Any] | None = None
    after_item: Callable[[UpsertBatchItem], Awaitable[None] | None] | None = None
