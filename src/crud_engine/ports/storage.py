"""
StorageAdapter — the persistence contract the engine depends on.

One implementation exists per backend. All primitives are coroutines and
operate on plain ``dict`` records; ``where`` clauses are sequences of
FilterCondition (ANDed) that each adapter renders with its own
``build_predicate``.
"""

from __future__ import annotations

import contextlib
from abc import ABC, abstractmethod
from contextvars import ContextVar
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, TypeVar

if TYPE_CHECKING:
    from collections.abc import AsyncIterator, Awaitable, Callable, Mapping, Sequence

    from ..model.model import KeyTuple, Model
    from ..specifications.condition import FilterCondition
    from .unit_of_work import UnitOfWork

T = TypeVar("T")

Record = dict[str, Any]


@dataclass(frozen=True)
class FindOptions:
    """
    Arguments of ``find_many``.

    Attributes:
        where: Conditions, ANDed.
        order_by: ``(field, "asc"|"desc")`` pairs.
        skip: Number of records to skip.
        take: Maximum number of records to return.
    """

    where: tuple[FilterCondition, ...] = ()
    order_by: tuple[tuple[str, str], ...] = ()
    skip: int | None = None
    take: int | None = None


class StorageAdapter(ABC):
    """
    Abstract base class for storage backends.

    Subclasses implement the primitives plus ``_begin_unit_of_work``;
    transaction scoping (re-entrant, with optional savepoints) is shared.

    Nested ``transaction()`` / ``run_in_transaction()`` calls made inside an
    open scope reuse it, unless ``savepoint=True`` asks for an inner scope
    that can roll back on its own.
    """

    def __init__(self) -> None:
        self._active_uow: ContextVar[UnitOfWork | None] = ContextVar(
            f"{type(self).__name__}_uow_{id(self)}", default=None
        )

    # -- capabilities ----------------------------------------------------------

    @property
    def supports_concurrent_reads(self) -> bool:
        """Whether independent reads may be awaited concurrently right now."""
        return False

    # -- primitives ------------------------------------------------------------

    @abstractmethod
    async def find_many(
        self, model: Model, options: FindOptions | None = None
    ) -> list[Record]: ...

    @abstractmethod
    async def count(self, model: Model, where: Sequence[FilterCondition] = ()) -> int: ...

    @abstractmethod
    async def find_by_key(self, model: Model, key: KeyTuple) -> Record | None: ...

    @abstractmethod
    async def create(self, model: Model, data: Mapping[str, Any]) -> Record: ...

    @abstractmethod
    async def update(
        self, model: Model, key: KeyTuple, data: Mapping[str, Any]
    ) -> Record: ...

    @abstractmethod
    async def delete(self, model: Model, key: KeyTuple) -> None: ...

    @abstractmethod
    def build_predicate(
        self, model: Model, conditions: Sequence[FilterCondition]
    ) -> Any:
        """Render *conditions* (ANDed) into the backend's native predicate."""
        ...

    # -- transactions ----------------------------------------------------------

    @abstractmethod
    def _begin_unit_of_work(self, parent: UnitOfWork | None) -> UnitOfWork:
        """Create (not enter) a unit of work, nested under *parent* if given."""
        ...

    @property
    def current_unit_of_work(self) -> UnitOfWork | None:
        return self._active_uow.get()

    @contextlib.asynccontextmanager
    async def transaction(self, *, savepoint: bool = False) -> AsyncIterator[UnitOfWork]:
        """Open (or join) a transaction scope.

        Commits on normal exit and rolls back on any exception, including
        cancellation, which is re-raised.
        """
        parent = self._active_uow.get()
        if parent is not None and not savepoint:
            yield parent
            return
        uow = self._begin_unit_of_work(parent)
        async with uow:
            token = self._active_uow.set(uow)
            try:
                yield uow
            finally:
                self._active_uow.reset(token)

    async def run_in_transaction(
        self, fn: Callable[[], Awaitable[T]], *, savepoint: bool = False
    ) -> T:
        """Await ``fn()`` inside ``transaction()`` and return its result."""
        async with self.transaction(savepoint=savepoint):
            return await fn()
