"""MemoryUnitOfWork — undo-journal transactions over the in-memory store."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from ...ports.unit_of_work import UnitOfWork

if TYPE_CHECKING:
    import asyncio

    from .store import MemoryStore


class MemoryUnitOfWork(UnitOfWork):
    """In-memory implementation of UnitOfWork.

    The adapter calls :meth:`remember` before it changes a row; the unit
    keeps the row's first before-image and ``rollback`` puts back only the
    rows it touched. A savepoint hands its journal to the parent on commit.

    A top-level unit holds the adapter's lock from ``begin`` until it
    commits or rolls back, so top-level transactions on one adapter run one
    at a time.
    """

    def __init__(
        self,
        store: MemoryStore,
        parent: UnitOfWork | None = None,
        lock: asyncio.Lock | None = None,
    ) -> None:
        super().__init__(parent)
        self._store = store
        self._lock = lock if parent is None else None
        self._locked = False
        self._journal: dict[tuple[str, tuple[Any, ...]], dict[str, Any] | None] = {}
        self.committed: bool = False
        self.rolled_back: bool = False

    def remember(self, table: str, key: tuple[Any, ...]) -> None:
        """Record the current state of one row, unless already recorded."""
        if (table, key) in self._journal:
            return
        row = self._store.table(table).get(key)
        self._journal[(table, key)] = dict(row) if row is not None else None

    async def begin(self) -> None:
        if self._lock is not None:
            await self._lock.acquire()
            self._locked = True

    async def commit(self) -> None:
        if self.committed or self.rolled_back:
            return
        if isinstance(self.parent, MemoryUnitOfWork):
            for entry, before in self._journal.items():
                self.parent._journal.setdefault(entry, before)
        self._journal.clear()
        self.committed = True
        self._release()

    async def rollback(self) -> None:
        if self.committed or self.rolled_back:
            return
        for (table, key), before in reversed(self._journal.items()):
            rows = self._store.table(table)
            if before is None:
                rows.pop(key, None)
            else:
                rows[key] = before
        self._journal.clear()
        self.rolled_back = True
        self._release()

    async def close(self) -> None:
        self._release()

    def _release(self) -> None:
        # Released before commit hooks run; a hook may open its own transaction.
        if self._locked and self._lock is not None:
            self._locked = False
            self._lock.release()
