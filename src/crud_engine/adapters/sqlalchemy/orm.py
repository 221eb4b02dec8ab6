"""
SQLAlchemyOrmAdapter — StorageAdapter over ORM mapped classes.

Reads and writes go through ``AsyncSession`` and mapped instances; records
are built from the mapper's column attributes, so attribute keys are the
record keys.
"""

from __future__ import annotations

import contextlib
import logging
import uuid
from typing import TYPE_CHECKING, Any, cast

from sqlalchemy import func, inspect, select

from ...filtering.engine import render
from ...ports.storage import FindOptions, Record, StorageAdapter
from ...primitives.exceptions import EntityNotFoundError
from .compiler import apply_order_by, apply_window, build_sqla_filter
from .exceptions import MappingError
from .operators import build_default_sqla_registry
from .unit_of_work import SQLAlchemyUnitOfWork

if TYPE_CHECKING:
    from collections.abc import AsyncIterator, Callable, Iterable, Mapping, Sequence

    from sqlalchemy import ColumnElement
    from sqlalchemy.ext.asyncio import AsyncSession
    from sqlalchemy.orm import Mapper

    from ...model.model import KeyTuple, Model
    from ...ports.unit_of_work import UnitOfWork
    from ...specifications.condition import FilterCondition
    from .strategy import SQLAlchemyOperatorRegistry

logger = logging.getLogger("crud_engine.adapters.sqlalchemy")


class SQLAlchemyOrmAdapter(StorageAdapter):
    """
    Storage adapter built on the SQLAlchemy ORM.

    Args:
        session_factory: Usually an ``async_sessionmaker``.
        mapped: Mapped classes; models are matched by ``Model.table_name``
            against each class's table name.
        registry: Optional operator registry.
        dialect: Dialect name used to pick pattern operators; read from the
            session factory's bind when omitted.

    A session is not safe for concurrent use, so relation fetches against
    this adapter are always sequential.
    """

    def __init__(
        self,
        session_factory: Callable[[], AsyncSession],
        mapped: Iterable[type[Any]],
        registry: SQLAlchemyOperatorRegistry | None = None,
        dialect: str | None = None,
    ) -> None:
        super().__init__()
        self._session_factory = session_factory
        self._classes: dict[str, type[Any]] = {
            inspect(cls).local_table.name: cls for cls in mapped
        }
        if dialect is None:
            bind = getattr(session_factory, "kw", {}).get("bind")
            dialect = bind.dialect.name if bind is not None else None
        self._registry = registry or build_default_sqla_registry(dialect)

    def mapped_class(self, model: Model) -> type[Any]:
        try:
            return self._classes[model.table_name]
        except KeyError:
            raise MappingError(
                f"No mapped class for table {model.table_name!r} ({model.name})"
            ) from None

    def _attribute(self, cls: type[Any], name: str) -> Any:
        if name not in inspect(cls).column_attrs:
            raise MappingError(f"{cls.__name__} has no mapped column {name!r}")
        return getattr(cls, name)

    def build_predicate(
        self, model: Model, conditions: Sequence[FilterCondition]
    ) -> ColumnElement[bool]:
        cls = self.mapped_class(model)
        return build_sqla_filter(
            lambda name: self._attribute(cls, name), conditions, registry=self._registry
        )

    def _where(self, model: Model, where: Sequence[FilterCondition]) -> ColumnElement[bool]:
        return render(where, lambda c: self.build_predicate(model, c))

    def _begin_unit_of_work(self, parent: UnitOfWork | None) -> UnitOfWork:
        if parent is not None:
            return SQLAlchemyUnitOfWork(parent=cast("SQLAlchemyUnitOfWork", parent))
        return SQLAlchemyUnitOfWork(session_factory=self._session_factory)

    @contextlib.asynccontextmanager
    async def _session(self) -> AsyncIterator[AsyncSession]:
        uow = self.current_unit_of_work
        if isinstance(uow, SQLAlchemyUnitOfWork):
            yield uow.session
            return
        async with self._session_factory() as session, session.begin():
            yield session

    @staticmethod
    def _to_record(obj: Any) -> Record:
        mapper: Mapper[Any] = inspect(type(obj))
        return {attr.key: getattr(obj, attr.key) for attr in mapper.column_attrs}

    async def _load(self, session: AsyncSession, model: Model, key: KeyTuple) -> Any:
        cls = self.mapped_class(model)
        stmt = select(cls).where(self._where(model, model.key_conditions(key))).limit(1)
        return (await session.scalars(stmt)).first()

    # -- reads -----------------------------------------------------------------

    async def find_many(
        self, model: Model, options: FindOptions | None = None
    ) -> list[Record]:
        options = options or FindOptions()
        cls = self.mapped_class(model)
        stmt = select(cls).where(self._where(model, options.where))
        stmt = apply_order_by(
            stmt, lambda name: self._attribute(cls, name), options.order_by
        )
        stmt = apply_window(stmt, options.skip, options.take)
        async with self._session() as session:
            objs = (await session.scalars(stmt)).all()
            return [self._to_record(obj) for obj in objs]

    async def count(self, model: Model, where: Sequence[FilterCondition] = ()) -> int:
        cls = self.mapped_class(model)
        stmt = select(func.count()).select_from(cls).where(self._where(model, where))
        async with self._session() as session:
            return int(await session.scalar(stmt) or 0)

    async def find_by_key(self, model: Model, key: KeyTuple) -> Record | None:
        async with self._session() as session:
            obj = await self._load(session, model, key)
            return self._to_record(obj) if obj is not None else None

    # -- writes ----------------------------------------------------------------

    def _check_attributes(self, cls: type[Any], data: Mapping[str, Any]) -> None:
        for name in data:
            self._attribute(cls, name)

    async def create(self, model: Model, data: Mapping[str, Any]) -> Record:
        cls = self.mapped_class(model)
        self._check_attributes(cls, data)
        values = dict(data)
        if not model.has_composite_key and values.get(model.primary_key) is None:
            table = inspect(cls).local_table
            column = table.c[model.primary_key]
            generated = table.autoincrement_column is column or (
                column.default is not None or column.server_default is not None
            )
            if not generated:
                values[model.primary_key] = str(uuid.uuid4())

        async with self._session() as session:
            obj = cls(**values)
            session.add(obj)
            await session.flush()
            await session.refresh(obj)
            record = self._to_record(obj)
        logger.debug("Created %s %r", model.name, model.key_of(record))
        return record

    async def update(
        self, model: Model, key: KeyTuple, data: Mapping[str, Any]
    ) -> Record:
        cls = self.mapped_class(model)
        self._check_attributes(cls, data)
        async with self._session() as session:
            obj = await self._load(session, model, key)
            if obj is None:
                raise EntityNotFoundError(model.name, key)
            for name, value in data.items():
                setattr(obj, name, value)
            await session.flush()
            await session.refresh(obj)
            record = self._to_record(obj)
        logger.debug("Updated %s %r", model.name, key)
        return record

    async def delete(self, model: Model, key: KeyTuple) -> None:
        async with self._session() as session:
            obj = await self._load(session, model, key)
            if obj is not None:
                await session.delete(obj)
                await session.flush()
        logger.debug("Deleted %s %r", model.name, key)
