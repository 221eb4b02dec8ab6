"""UnitOfWork — Abstract base class for transaction scopes."""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from collections import deque
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

logger = logging.getLogger("crud_engine.uow")


class UnitOfWork(ABC):
    """
    Abstract base class for Unit of Work implementations.

    Every storage adapter opens its transactions through a subclass of
    this class, so the lifecycle guarantee is the same on every backend:
    **commit happens BEFORE hooks are triggered**, and any exception
    (cancellation included) rolls back.

    A unit of work opened inside another one (a savepoint) receives the
    outer one as ``parent``; its ``on_commit`` hooks are deferred to the
    outermost commit.

    Example:
        ```python
        class MemoryUnitOfWork(UnitOfWork):
            async def commit(self):
                self._journal.clear()

            async def rollback(self):
                self._undo(self._journal)
        ```
    """

    def __init__(self, parent: UnitOfWork | None = None) -> None:
        self.parent = parent
        self._on_commit_hooks: deque[Callable[[], Awaitable[Any]]] = deque()

    @property
    def is_nested(self) -> bool:
        return self.parent is not None

    def on_commit(self, callback: Callable[[], Awaitable[Any]]) -> None:
        """Register an async callback to be executed after a successful commit.

        Args:
            callback: An async function that takes no arguments.
        """
        if self.parent is not None:
            self.parent.on_commit(callback)
            return
        self._on_commit_hooks.append(callback)

    async def trigger_commit_hooks(self) -> None:
        """Execute all registered on_commit hooks.

        Called automatically by __aexit__ AFTER commit completes.
        """
        while self._on_commit_hooks:
            callback = self._on_commit_hooks.popleft()
            try:
                await callback()
            except Exception as exc:
                logger.error("Error in on_commit hook: %s", exc, exc_info=True)

    @abstractmethod
    async def begin(self) -> None:
        """Open the transaction (or savepoint). Must be implemented by subclasses."""
        ...

    @abstractmethod
    async def commit(self) -> None:
        """Commit the transaction. Must be implemented by subclasses."""
        ...

    @abstractmethod
    async def rollback(self) -> None:
        """Rollback the transaction. Must be implemented by subclasses."""
        ...

    async def close(self) -> None:  # noqa: B027
        """Release resources after commit/rollback. Optional."""

    async def __aenter__(self) -> UnitOfWork:
        await self.begin()
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: Any,
    ) -> None:
        """
        Exit the context manager.

        CRITICAL ORDER:
        1. If successful (exc_type is None): commit() first
        2. Then trigger_commit_hooks() — ensures data is durable before hooks fire
        3. If exception: rollback() and skip hooks
        """
        try:
            if exc_type is None:
                await self.commit()
                await self.trigger_commit_hooks()
            else:
                logger.debug(
                    "Rolling back %s after %s", type(self).__name__, exc_type.__name__
                )
                await self.rollback()
        finally:
            await self.close()
