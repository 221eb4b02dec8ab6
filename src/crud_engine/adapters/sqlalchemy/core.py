"""
SQLAlchemyCoreAdapter — StorageAdapter over SQLAlchemy Core tables.

Records map one-to-one onto table rows (``dict`` keyed by column name).
Statements run on the connection of the active unit of work, or on a
short-lived ``engine.begin()`` connection outside one.
"""

from __future__ import annotations

import contextlib
import logging
import uuid
from collections.abc import Mapping
from typing import TYPE_CHECKING, Any, cast

from sqlalchemy import MetaData, delete, func, insert, select, update

from ...filtering.engine import render
from ...ports.storage import FindOptions, Record, StorageAdapter
from ...primitives.exceptions import EntityNotFoundError
from .compiler import apply_order_by, apply_window, build_sqla_filter
from .exceptions import MappingError
from .operators import build_default_sqla_registry
from .unit_of_work import SQLAlchemyConnectionUnitOfWork

if TYPE_CHECKING:
    from collections.abc import AsyncIterator, Sequence

    from sqlalchemy import ColumnElement, Table
    from sqlalchemy.ext.asyncio import AsyncConnection, AsyncEngine

    from ...model.model import KeyTuple, Model
    from ...ports.unit_of_work import UnitOfWork
    from ...specifications.condition import FilterCondition
    from .strategy import SQLAlchemyOperatorRegistry

logger = logging.getLogger("crud_engine.adapters.sqlalchemy")


class SQLAlchemyCoreAdapter(StorageAdapter):
    """
    Storage adapter built on SQLAlchemy Core and ``AsyncEngine``.

    Args:
        engine: The async engine (e.g. ``create_async_engine("sqlite+aiosqlite://")``).
        tables: A ``MetaData`` or a mapping of table name to ``Table``;
            models are matched by ``Model.table_name``.
        registry: Optional operator registry; defaults to the built-in
            operators for the engine's dialect.

    Outside a transaction, independent reads use independent pooled
    connections and may run concurrently.
    """

    def __init__(
        self,
        engine: AsyncEngine,
        tables: MetaData | Mapping[str, Table],
        registry: SQLAlchemyOperatorRegistry | None = None,
    ) -> None:
        super().__init__()
        self._engine = engine
        self._tables: dict[str, Table] = (
            dict(tables.tables) if isinstance(tables, MetaData) else dict(tables)
        )
        self._registry = registry or build_default_sqla_registry(engine.dialect.name)

    @property
    def engine(self) -> AsyncEngine:
        return self._engine

    @property
    def supports_concurrent_reads(self) -> bool:
        return self.current_unit_of_work is None

    def table(self, model: Model) -> Table:
        try:
            return self._tables[model.table_name]
        except KeyError:
            raise MappingError(
                f"No table {model.table_name!r} registered for {model.name}"
            ) from None

    def _column(self, table: Table, name: str) -> Any:
        try:
            return table.c[name]
        except KeyError:
            raise MappingError(f"Table {table.name!r} has no column {name!r}") from None

    def build_predicate(
        self, model: Model, conditions: Sequence[FilterCondition]
    ) -> ColumnElement[bool]:
        table = self.table(model)
        return build_sqla_filter(
            lambda name: self._column(table, name), conditions, registry=self._registry
        )

    def _where(self, model: Model, where: Sequence[FilterCondition]) -> ColumnElement[bool]:
        return render(where, lambda c: self.build_predicate(model, c))

    def _begin_unit_of_work(self, parent: UnitOfWork | None) -> UnitOfWork:
        return SQLAlchemyConnectionUnitOfWork(
            self._engine, cast("SQLAlchemyConnectionUnitOfWork | None", parent)
        )

    @contextlib.asynccontextmanager
    async def _connect(self) -> AsyncIterator[AsyncConnection]:
        uow = self.current_unit_of_work
        if isinstance(uow, SQLAlchemyConnectionUnitOfWork):
            yield uow.connection
            return
        async with self._engine.begin() as connection:
            yield connection

    # -- reads -----------------------------------------------------------------

    async def find_many(
        self, model: Model, options: FindOptions | None = None
    ) -> list[Record]:
        options = options or FindOptions()
        table = self.table(model)
        stmt = select(table).where(self._where(model, options.where))
        stmt = apply_order_by(
            stmt, lambda name: self._column(table, name), options.order_by
        )
        stmt = apply_window(stmt, options.skip, options.take)
        async with self._connect() as connection:
            result = await connection.execute(stmt)
            return [dict(row) for row in result.mappings().all()]

    async def count(self, model: Model, where: Sequence[FilterCondition] = ()) -> int:
        table = self.table(model)
        stmt = select(func.count()).select_from(table).where(self._where(model, where))
        async with self._connect() as connection:
            return int((await connection.execute(stmt)).scalar_one())

    async def find_by_key(self, model: Model, key: KeyTuple) -> Record | None:
        rows = await self.find_many(
            model, FindOptions(where=tuple(model.key_conditions(key)), take=1)
        )
        return rows[0] if rows else None

    # -- writes ----------------------------------------------------------------

    def _values(self, table: Table, data: Mapping[str, Any]) -> dict[str, Any]:
        for name in data:
            self._column(table, name)
        return dict(data)

    async def create(self, model: Model, data: Mapping[str, Any]) -> Record:
        table = self.table(model)
        values = self._values(table, data)
        if not model.has_composite_key and values.get(model.primary_key) is None:
            column = self._column(table, model.primary_key)
            generated = table.autoincrement_column is column or (
                column.default is not None or column.server_default is not None
            )
            if not generated:
                values[model.primary_key] = str(uuid.uuid4())

        async with self._connect() as connection:
            if self._engine.dialect.insert_returning:
                stmt = insert(table).values(values).returning(*table.c)
                row = (await connection.execute(stmt)).mappings().one()
                record = dict(row)
            else:
                result = await connection.execute(insert(table).values(values))
                inserted = dict(
                    zip(
                        (c.name for c in table.primary_key.columns),
                        result.inserted_primary_key or (),
                        strict=False,
                    )
                )
                found = await self._select_key(
                    connection, model, model.key_of({**values, **inserted})
                )
                if found is None:
                    raise MappingError(f"Inserted {model.name} could not be re-read")
                record = found
        logger.debug("Created %s %r", model.name, model.key_of(record))
        return record

    async def update(
        self, model: Model, key: KeyTuple, data: Mapping[str, Any]
    ) -> Record:
        table = self.table(model)
        values = self._values(table, data)
        predicate = self._where(model, model.key_conditions(key))
        async with self._connect() as connection:
            if values:
                result = await connection.execute(
                    update(table).where(predicate).values(values)
                )
                if result.rowcount == 0:
                    raise EntityNotFoundError(model.name, key)
            new_key = tuple(
                values.get(pk, value)
                for pk, value in zip(model.primary_keys, key, strict=True)
            )
            record = await self._select_key(connection, model, new_key)
        if record is None:
            raise EntityNotFoundError(model.name, key)
        logger.debug("Updated %s %r", model.name, key)
        return record

    async def delete(self, model: Model, key: KeyTuple) -> None:
        table = self.table(model)
        predicate = self._where(model, model.key_conditions(key))
        async with self._connect() as connection:
            await connection.execute(delete(table).where(predicate))
        logger.debug("Deleted %s %r", model.name, key)

    async def _select_key(
        self, connection: AsyncConnection, model: Model, key: KeyTuple
    ) -> Record | None:
        table = self.table(model)
        stmt = select(table).where(self._where(model, model.key_conditions(key))).limit(1)
        row = (await connection.execute(stmt)).mappings().first()
        return dict(row) if row is not None else None
