"""
BatchUpsertEngine — create-or-update a list of items by key tuple.

Each item is matched against existing live, in-tenant records by exact
equality on every upsert-key field. Items missing any key field are
created. More than one match is a conflict.
"""

from __future__ import annotations

import inspect
import logging
from collections.abc import Mapping, Sequence
from typing import TYPE_CHECKING, Any

from ..policies.pipeline import PolicyPipeline, PolicyScope
from ..ports.storage import FindOptions
from ..primitives.exceptions import ConflictError, CrudEngineError, ValidationError
from ..specifications.condition import FilterCondition
from .results import (
    BatchItemError,
    BatchUpsertOptions,
    BatchUpsertResult,
    UpsertBatchItem,
)

if TYPE_CHECKING:
    from ..model.model import Model
    from ..ports.storage import Record, StorageAdapter

logger = logging.getLogger("crud_engine.batch")


async def _maybe_await(value: Any) -> Any:
    if inspect.isawaitable(value):
        return await value
    return value


class BatchUpsertEngine:
    """Runs batch upserts against one storage adapter."""

    def __init__(
        self,
        adapter: StorageAdapter,
        policies: PolicyPipeline | None = None,
    ) -> None:
        self._adapter = adapter
        self._policies = policies or PolicyPipeline()

    async def upsert(
        self,
        model: Model,
        items: Sequence[Mapping[str, Any]],
        upsert_keys: Sequence[str] | None = None,
        options: BatchUpsertOptions | None = None,
        *,
        scope: PolicyScope | None = None,
    ) -> BatchUpsertResult:
        """Upsert *items* and report per-item outcomes in input order.

        Raises:
            ValidationError: The batch exceeds ``max_batch_size`` (checked
                before any item is processed) or is not a list.
            CrudEngineError: Any item failure when ``continue_on_error`` is
                off; with ``atomic`` the whole batch is rolled back.
        """
        options = options or BatchUpsertOptions()
        scope = (scope or PolicyScope()).live()
        if not isinstance(items, Sequence) or isinstance(items, str | bytes):
            raise ValidationError({"items": ["Expected a list of items"]})
        if options.max_batch_size is not None and len(items) > options.max_batch_size:
            raise ValidationError(
                {
                    "items": [
                        f"Batch size {len(items)} exceeds maximum of "
                        f"{options.max_batch_size}"
                    ]
                }
            )
        keys = tuple(upsert_keys or options.upsert_keys or model.primary_keys)
        unknown = [k for k in keys if model.schema is not None and not model.schema.has_field(k)]
        if unknown:
            raise ValidationError({k: ["Unknown upsert key"] for k in unknown})

        result = BatchUpsertResult(total_count=len(items))

        async def run_all() -> None:
            for index, item in enumerate(items):
                await self._run_item(model, index, item, keys, options, scope, result)

        if options.continue_on_error or not options.atomic:
            await run_all()
        else:
            await self._adapter.run_in_transaction(run_all)

        logger.info(
            "Batch upsert on %s: %d created, %d updated, %d failed",
            model.name,
            result.created_count,
            result.updated_count,
            result.failed_count,
        )
        return result

    async def _run_item(
        self,
        model: Model,
        index: int,
        item: Mapping[str, Any],
        keys: tuple[str, ...],
        options: BatchUpsertOptions,
        scope: PolicyScope,
        result: BatchUpsertResult,
    ) -> None:
        if not options.continue_on_error:
            outcome = await self._process(model, index, item, keys, options, scope)
            self._record(result, outcome)
            return

        savepoint = self._adapter.current_unit_of_work is not None
        try:
            async with self._adapter.transaction(savepoint=savepoint):
                outcome = await self._process(model, index, item, keys, options, scope)
        except Exception as exc:
            message = exc.message if isinstance(exc, ValidationError) else str(exc)
            code = exc.code if isinstance(exc, CrudEngineError) else "INTERNAL_ERROR"
            logger.warning(
                "Batch upsert item %d on %s failed: %s",
                index,
                model.name,
                message,
                exc_info=not isinstance(exc, CrudEngineError),
            )
            result.items.append(UpsertBatchItem(index, False, None, error=message))
            result.errors.append(BatchItemError(index, message, code))
            return
        self._record(result, outcome)

    def _record(self, result: BatchUpsertResult, outcome: UpsertBatchItem) -> None:
        result.items.append(outcome)
        if outcome.created:
            result.created_count += 1
        else:
            result.updated_count += 1

    async def _process(
        self,
        model: Model,
        index: int,
        item: Mapping[str, Any],
        keys: tuple[str, ...],
        options: BatchUpsertOptions,
        scope: PolicyScope,
    ) -> UpsertBatchItem:
        if not isinstance(item, Mapping):
            raise ValidationError({f"items.{index}": ["Expected an object"]})

        existing = await self.match(model, item, keys, scope)
        is_create = existing is None

        data: dict[str, Any] = dict(item)
        if options.before_item is not None:
            replaced = await _maybe_await(options.before_item(dict(data), index, is_create))
            if replaced is not None:
                data = dict(replaced)

        if is_create:
            record = await self._create(model, data, options, scope)
        else:
            assert existing is not None
            record = await self._update(model, existing, data, options)

        outcome = UpsertBatchItem(index=index, created=is_create, record=record)
        if options.after_item is not None:
            await _maybe_await(options.after_item(outcome))
        return outcome

    async def match(
        self,
        model: Model,
        item: Mapping[str, Any],
        keys: tuple[str, ...],
        scope: PolicyScope,
    ) -> Record | None:
        """Find the existing record sharing *item*'s full key tuple.

        Raises:
            ConflictError: More than one record matches.
        """
        if any(item.get(k) is None for k in keys):
            return None
        conditions = [FilterCondition.eq(k, model.coerce(k, item[k])) for k in keys]
        where = self._policies.read_conditions(model, scope, conditions)
        matches = await self._adapter.find_many(
            model, FindOptions(where=tuple(where), take=2)
        )
        if len(matches) > 1:
            raise ConflictError(
                f"Ambiguous upsert: several {model.name} records match "
                f"{dict(zip(keys, (item[k] for k in keys), strict=True))!r}"
            )
        return matches[0] if matches else None

    async def _create(
        self,
        model: Model,
        data: dict[str, Any],
        options: BatchUpsertOptions,
        scope: PolicyScope,
    ) -> Record:
        for name in options.update_only_fields:
            data.pop(name, None)
        if model.schema is not None:
            data = model.schema.validate(
                data, partial=False, skip_required=model.engine_managed_fields
            )
        prepared = self._policies.prepare_create(model, data, scope)
        return await self._adapter.create(model, prepared)

    async def _update(
        self,
        model: Model,
        existing: Record,
        data: dict[str, Any],
        options: BatchUpsertOptions,
    ) -> Record:
        for name in options.create_only_fields:
            data.pop(name, None)
        if model.schema is not None:
            data = model.schema.validate(data, partial=True)
        changes = self._policies.prepare_update(model, data)
        if not changes:
            return existing
        return await self._adapter.update(model, model.key_of(existing), changes)
