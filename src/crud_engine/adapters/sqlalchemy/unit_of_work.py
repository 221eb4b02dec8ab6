"""
SQLAlchemy implementations of the Unit of Work pattern.

``SQLAlchemyConnectionUnitOfWork`` drives an ``AsyncConnection`` for the
Core adapter; ``SQLAlchemyUnitOfWork`` drives an ``AsyncSession`` for the
ORM adapter. Both open a SAVEPOINT when given a parent unit of work.
"""

from __future__ import annotations

import contextlib
from typing import TYPE_CHECKING

from ...ports.unit_of_work import UnitOfWork
from .exceptions import SessionManagementError, UnitOfWorkError

if TYPE_CHECKING:
    from collections.abc import Callable

    from sqlalchemy.ext.asyncio import (
        AsyncConnection,
        AsyncEngine,
        AsyncSession,
        AsyncSessionTransaction,
        AsyncTransaction,
    )

    AsyncSessionFactory = Callable[[], AsyncSession]


class SQLAlchemyConnectionUnitOfWork(UnitOfWork):
    """
    Unit of Work over one ``AsyncConnection``.

    The outermost unit checks a connection out of the engine and begins a
    transaction; nested units reuse the parent's connection with
    ``begin_nested()``.
    """

    def __init__(
        self, engine: AsyncEngine, parent: SQLAlchemyConnectionUnitOfWork | None = None
    ) -> None:
        super().__init__(parent)
        self._engine = engine
        self._connection: AsyncConnection | None = None
        self._transaction: AsyncTransaction | None = None

    @property
    def connection(self) -> AsyncConnection:
        """Get the active connection. Raises if the unit has not begun."""
        if self._connection is None:
            raise UnitOfWorkError("Connection not yet acquired. Ensure begin() was called.")
        return self._connection

    async def begin(self) -> None:
        try:
            if isinstance(self.parent, SQLAlchemyConnectionUnitOfWork):
                self._connection = self.parent.connection
                self._transaction = await self._connection.begin_nested()
            else:
                self._connection = await self._engine.connect()
                self._transaction = await self._connection.begin()
        except Exception as e:
            if isinstance(e, SessionManagementError | UnitOfWorkError):
                raise
            raise SessionManagementError(f"Failed to initialize UoW: {e}") from e

    async def commit(self) -> None:
        if self._transaction is None or not self._transaction.is_active:
            return
        try:
            await self._transaction.commit()
        except Exception as e:
            with contextlib.suppress(Exception):
                await self.rollback()
            raise UnitOfWorkError(f"Failed to commit transaction: {e}") from e

    async def rollback(self) -> None:
        try:
            if self._transaction is not None and self._transaction.is_active:
                await self._transaction.rollback()
        except Exception as e:
            raise UnitOfWorkError(f"Failed to rollback transaction: {e}") from e

    async def close(self) -> None:
        if self.parent is not None or self._connection is None:
            return
        try:
            await self._connection.close()
        except Exception as e:
            raise SessionManagementError(f"Failed to close connection: {e}") from e
        finally:
            self._connection = None


class SQLAlchemyUnitOfWork(UnitOfWork):
    """
    Unit of Work implementation using SQLAlchemy AsyncSession.

    Supports two usage patterns:

    1. **Caller-Managed Sessions**:
       ```python
       async with SQLAlchemyUnitOfWork(session=session) as uow:
           ...
       ```
       The session lifecycle is managed by the caller.

    2. **Self-Managed Sessions**:
       ```python
       factory = async_sessionmaker(engine, expire_on_commit=False)
       async with SQLAlchemyUnitOfWork(session_factory=factory) as uow:
           # UoW creates and closes the session
           ...
       ```

    With a ``parent``, the unit runs as a SAVEPOINT inside the parent's
    session and neither ``session`` nor ``session_factory`` may be given.
    """

    def __init__(
        self,
        session: AsyncSession | None = None,
        session_factory: AsyncSessionFactory | None = None,
        parent: SQLAlchemyUnitOfWork | None = None,
    ) -> None:
        if session is not None and session_factory is not None:
            raise SessionManagementError(
                "Cannot provide both 'session' and 'session_factory'. "
                "Use either caller-managed (session) or self-managed "
                "(session_factory) pattern."
            )
        if parent is None and session is None and session_factory is None:
            raise SessionManagementError(
                "Must provide either 'session' or 'session_factory'. "
                "Use caller-managed pattern with session=(AsyncSession) "
                "or self-managed pattern with session_factory=(callable)."
            )

        super().__init__(parent)
        self._session: AsyncSession | None = session
        self._session_factory = session_factory
        self._owns_session = parent is None and session is None
        self._nested: AsyncSessionTransaction | None = None

    @property
    def session(self) -> AsyncSession:
        """Get the active session. Raises if session not yet created."""
        if self._session is None:
            raise UnitOfWorkError("Session not yet created. Ensure begin() was called.")
        return self._session

    async def begin(self) -> None:
        """Begin a transaction, creating the session if a factory was given."""
        try:
            if isinstance(self.parent, SQLAlchemyUnitOfWork):
                self._session = self.parent.session
                self._nested = await self._session.begin_nested()
                return
            if self._owns_session and self._session_factory is not None:
                self._session = self._session_factory()
            if not self.session.in_transaction():
                await self.session.begin()
        except Exception as e:
            if isinstance(e, SessionManagementError | UnitOfWorkError):
                raise
            raise SessionManagementError(f"Failed to initialize UoW: {e}") from e

    async def commit(self) -> None:
        """Commit the current transaction (or release the savepoint)."""
        try:
            if self._nested is not None:
                if self._nested.is_active:
                    await self._nested.commit()
                return
            await self.session.commit()
        except Exception as e:
            with contextlib.suppress(Exception):
                await self.rollback()
            raise UnitOfWorkError(f"Failed to commit transaction: {e}") from e

    async def rollback(self) -> None:
        """Rollback the current transaction (or to the savepoint)."""
        try:
            if self._nested is not None:
                if self._nested.is_active:
                    await self._nested.rollback()
                return
            if self.session.in_transaction():
                await self.session.rollback()
        except Exception as e:
            raise UnitOfWorkError(f"Failed to rollback transaction: {e}") from e

    async def close(self) -> None:
        if self._owns_session and self._session is not None:
            try:
                await self._session.close()
            except Exception as e:
                raise SessionManagementError(f"Failed to close session: {e}") from e
            finally:
                self._session = None
