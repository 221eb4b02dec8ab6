"""MemoryStorageAdapter — dict-backed StorageAdapter for tests and prototyping."""

from __future__ import annotations

import asyncio
import logging
import uuid
from typing import TYPE_CHECKING, Any

from ...filtering.engine import render
from ...primitives.exceptions import EntityNotFoundError, PersistenceError, ValidationError
from ...ports.storage import FindOptions, Record, StorageAdapter
from ...specifications.operators_memory import build_default_registry
from .store import MemoryStore
from .unit_of_work import MemoryUnitOfWork

if TYPE_CHECKING:
    from collections.abc import Callable, Mapping, Sequence

    from ...model.model import KeyTuple, Model
    from ...ports.unit_of_work import UnitOfWork
    from ...specifications.condition import FilterCondition
    from ...specifications.evaluator import MemoryOperatorRegistry

logger = logging.getLogger("crud_engine.adapters.memory")


class DuplicateKeyError(PersistenceError):
    """Raised when a create would overwrite an existing primary key."""


def _sort_key(value: Any) -> tuple[bool, Any]:
    return (value is not None, value)


class MemoryStorageAdapter(StorageAdapter):
    """In-memory implementation of :class:`StorageAdapter`.

    Records are stored per table in insertion order. A missing single
    primary key is generated with ``uuid4``. Conditions are evaluated with
    the in-memory operator registry.
    """

    def __init__(self, registry: MemoryOperatorRegistry | None = None) -> None:
        super().__init__()
        self._registry = registry or build_default_registry()
        self._store = MemoryStore()
        self._transaction_lock = asyncio.Lock()
        self.operations: list[tuple[str, str]] = []

    @property
    def supports_concurrent_reads(self) -> bool:
        return True

    def build_predicate(
        self, model: Model, conditions: Sequence[FilterCondition]
    ) -> Callable[[Mapping[str, Any]], bool]:
        frozen = tuple(conditions)
        registry = self._registry

        def predicate(record: Mapping[str, Any]) -> bool:
            return registry.matches(record, frozen)

        return predicate

    def _begin_unit_of_work(self, parent: UnitOfWork | None) -> UnitOfWork:
        return MemoryUnitOfWork(self._store, parent, self._transaction_lock)

    def _remember(self, model: Model, *keys: KeyTuple) -> None:
        uow = self.current_unit_of_work
        if isinstance(uow, MemoryUnitOfWork):
            for key in keys:
                uow.remember(model.table_name, tuple(key))

    # -- reads -----------------------------------------------------------------

    async def find_many(
        self, model: Model, options: FindOptions | None = None
    ) -> list[Record]:
        options = options or FindOptions()
        self.operations.append(("find_many", model.table_name))
        predicate = render(options.where, lambda c: self.build_predicate(model, c))
        rows = [r for r in self._store.table(model.table_name).values() if predicate(r)]
        for field, direction in reversed(options.order_by):
            rows.sort(
                key=lambda r, f=field: _sort_key(r.get(f)),
                reverse=direction == "desc",
            )
        start = options.skip or 0
        end = start + options.take if options.take is not None else None
        return [dict(r) for r in rows[start:end]]

    async def count(self, model: Model, where: Sequence[FilterCondition] = ()) -> int:
        self.operations.append(("count", model.table_name))
        predicate = render(where, lambda c: self.build_predicate(model, c))
        return sum(1 for r in self._store.table(model.table_name).values() if predicate(r))

    async def find_by_key(self, model: Model, key: KeyTuple) -> Record | None:
        self.operations.append(("find_by_key", model.table_name))
        record = self._store.table(model.table_name).get(tuple(key))
        return dict(record) if record is not None else None

    # -- writes ----------------------------------------------------------------

    async def create(self, model: Model, data: Mapping[str, Any]) -> Record:
        self.operations.append(("create", model.table_name))
        record = dict(data)
        if not model.has_composite_key and record.get(model.primary_key) is None:
            record[model.primary_key] = str(uuid.uuid4())
        key = model.key_of(record)
        if any(v is None for v in key):
            raise ValidationError(
                {pk: ["Primary key value is required"] for pk in model.primary_keys}
            )
        table = self._store.table(model.table_name)
        if key in table:
            raise DuplicateKeyError(f"{model.name} with key={key!r} already exists")
        self._remember(model, key)
        table[key] = record
        logger.debug("Created %s %r", model.name, key)
        return dict(record)

    async def update(
        self, model: Model, key: KeyTuple, data: Mapping[str, Any]
    ) -> Record:
        self.operations.append(("update", model.table_name))
        table = self._store.table(model.table_name)
        key = tuple(key)
        current = table.get(key)
        if current is None:
            raise EntityNotFoundError(model.name, key)
        updated = {**current, **data}
        new_key = model.key_of(updated)
        self._remember(model, key, new_key)
        if new_key != key:
            if new_key in table:
                raise DuplicateKeyError(f"{model.name} with key={new_key!r} already exists")
            del table[key]
        table[new_key] = updated
        logger.debug("Updated %s %r", model.name, key)
        return dict(updated)

    async def delete(self, model: Model, key: KeyTuple) -> None:
        self.operations.append(("delete", model.table_name))
        self._remember(model, key)
        self._store.table(model.table_name).pop(tuple(key), None)
        logger.debug("Deleted %s %r", model.name, key)

    # ── Test helpers ─────────────────────────────────────────────

    def seed(self, model: Model, *records: Mapping[str, Any]) -> None:
        """Insert records directly, bypassing policies and the operation log."""
        table = self._store.table(model.table_name)
        for record in records:
            table[model.key_of(record)] = dict(record)

    def all_records(self, model: Model) -> list[Record]:
        return [dict(r) for r in self._store.table(model.table_name).values()]

    def count_operations(self, name: str, table: str | None = None) -> int:
        return sum(
            1
            for op, tbl in self.operations
            if op == name and (table is None or tbl == table)
        )

    def reset_operations(self) -> None:
        self.operations.clear()

    def clear(self) -> None:
        self._store.clear()
        self.operations.clear()
