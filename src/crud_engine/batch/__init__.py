"""Batch-upsert engine."""

from .results import (
    DEFAULT_MAX_BATCH_SIZE,
    BatchItemError,
    BatchUpsertOptions,
    BatchUpsertResult,
    UpsertBatchItem,
)
from .upsert import BatchUpsertEngine

__all__ = [
    "DEFAULT_MAX_BATCH_SIZE",
    "BatchItemError",
    "BatchUpsertEngine",
    "BatchUpsertOptions",
    "BatchUpsertResult",
    "UpsertBatchItem",
]
