"""Integration tests for SQLAlchemyCoreAdapter on aiosqlite."""

from __future__ import annotations

from collections.abc import AsyncIterator
from pathlib import Path

import pytest
import pytest_asyncio
from sqlalchemy import (
    Column,
    DateTime,
    Integer,
    MetaData,
    String,
    Table,
    insert,
    select,
)
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine

from crud_engine.adapters.sqlalchemy import (
    MappingError,
    SQLAlchemyCoreAdapter,
    SQLAlchemyOperatorRegistry,
    build_default_sqla_registry,
    build_sqla_filter,
)
from crud_engine.adapters.sqlalchemy.operators import escape_like, like_to_glob
from crud_engine.batch import BatchUpsertOptions
from crud_engine.context import RequestContext
from crud_engine.model import Model, ModelRegistry
from crud_engine.ports import FindOptions
from crud_engine.primitives.exceptions import (
    EntityNotFoundError,
    OperationNotAllowedError,
)
from crud_engine.service import CrudService
from crud_engine.specifications import FilterCondition, FilterOperator

from .models import POSTS, PROFILES, SETTINGS, USER_CONFIG, USERS

metadata = MetaData()

users_table = Table(
    "users",
    metadata,
    Column("id", String(36), primary_key=True),
    Column("name", String(100), nullable=False),
    Column("email", String(100)),
    Column("age", Integer),
    Column("tenantId", String(36), nullable=False),
    Column("deletedAt", DateTime(timezone=True)),
)

posts_table = Table(
    "posts",
    metadata,
    Column("id", String(36), primary_key=True),
    Column("title", String(100), nullable=False),
    Column("userId", String(36)),
    Column("tenantId", String(36), nullable=False),
    Column("deletedAt", DateTime(timezone=True)),
)

profiles_table = Table(
    "profiles",
    metadata,
    Column("id", String(36), primary_key=True),
    Column("bio", String(200)),
    Column("userId", String(36), nullable=False),
    Column("tenantId", String(36), nullable=False),
)

settings_table = Table(
    "settings",
    metadata,
    Column("userId", String(36), primary_key=True),
    Column("key", String(50), primary_key=True),
    Column("value", String(200)),
)

counters_table = Table(
    "counters",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("label", String(50)),
)

COUNTERS = Model("counters")

AGES = [18, 22, 35, None]


@pytest_asyncio.fixture
async def engine(tmp_path: Path) -> AsyncIterator[AsyncEngine]:
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'crud.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(metadata.create_all)
        await conn.execute(
            insert(users_table),
            [
                {"id": f"u{i}", "name": f"user_{i}", "age": age, "tenantId": "t1"}
                for i, age in enumerate(AGES, start=1)
            ],
        )
        await conn.execute(
            insert(users_table),
            [
                {"id": "x1", "name": "userX1", "tenantId": "t1", "age": 50},
                {"id": "a1", "name": "Alice", "tenantId": "t1", "age": 60},
                {"id": "f1", "name": "Foreign", "tenantId": "t2", "age": 22},
            ],
        )
        await conn.execute(
            insert(posts_table),
            [
                {"id": "p1", "title": "First", "userId": "u1", "tenantId": "t1"},
                {"id": "p2", "title": "Second", "userId": "u1", "tenantId": "t1"},
                {"id": "p3", "title": "Loose", "userId": None, "tenantId": "t1"},
            ],
        )
    yield engine
    await engine.dispose()


@pytest.fixture
def sql_adapter(engine: AsyncEngine) -> SQLAlchemyCoreAdapter:
    return SQLAlchemyCoreAdapter(engine, metadata)


@pytest.fixture
def sql_service(sql_adapter: SQLAlchemyCoreAdapter, registry: ModelRegistry) -> CrudService:
    return CrudService(USERS, sql_adapter, registry, USER_CONFIG)


async def _ids(adapter: SQLAlchemyCoreAdapter, *conditions: FilterCondition) -> list[str]:
    where = (FilterCondition.eq("tenantId", "t1"), *conditions)
    rows = await adapter.find_many(
        USERS, FindOptions(where=where, order_by=(("id", "asc"),))
    )
    return [r["id"] for r in rows]


# ---------------------------------------------------------------------------
# Operators (ages 18, 22, 35, null on u1..u4)
# ---------------------------------------------------------------------------


class TestOperators:
    @pytest.mark.asyncio()
    async def test_between(self, sql_adapter: SQLAlchemyCoreAdapter) -> None:
        cond = FilterCondition("age", FilterOperator.BETWEEN, [18, 30])
        assert await _ids(sql_adapter, cond) == ["u1", "u2"]

    @pytest.mark.asyncio()
    async def test_null(self, sql_adapter: SQLAlchemyCoreAdapter) -> None:
        assert await _ids(sql_adapter, FilterCondition.is_null("age")) == ["u4"]
        not_null = await _ids(sql_adapter, FilterCondition.is_null("age", False))
        assert "u4" not in not_null

    @pytest.mark.asyncio()
    async def test_gte(self, sql_adapter: SQLAlchemyCoreAdapter) -> None:
        cond = FilterCondition("age", FilterOperator.GTE, 22)
        assert await _ids(sql_adapter, cond) == ["a1", "u2", "u3", "x1"]

    @pytest.mark.asyncio()
    async def test_ne_and_nin_include_null(self, sql_adapter: SQLAlchemyCoreAdapter) -> None:
        ne = FilterCondition("age", FilterOperator.NE, 22)
        assert "u4" in await _ids(sql_adapter, ne)
        nin = FilterCondition("age", FilterOperator.NIN, [18, 35])
        assert await _ids(sql_adapter, nin) == ["a1", "u2", "u4", "x1"]

    @pytest.mark.asyncio()
    async def test_in_with_null(self, sql_adapter: SQLAlchemyCoreAdapter) -> None:
        cond = FilterCondition("age", FilterOperator.IN, [18, None])
        assert await _ids(sql_adapter, cond) == ["u1", "u4"]

    @pytest.mark.asyncio()
    async def test_eq_none_is_null(self, sql_adapter: SQLAlchemyCoreAdapter) -> None:
        assert await _ids(sql_adapter, FilterCondition.eq("age", None)) == ["u4"]

    @pytest.mark.asyncio()
    async def test_like_underscore_is_literal(self, sql_adapter: SQLAlchemyCoreAdapter) -> None:
        cond = FilterCondition("name", FilterOperator.LIKE, "user_1")
        assert await _ids(sql_adapter, cond) == ["u1"]

    @pytest.mark.asyncio()
    async def test_like_percent_and_case(self, sql_adapter: SQLAlchemyCoreAdapter) -> None:
        prefix = FilterCondition("name", FilterOperator.LIKE, "user_%")
        assert await _ids(sql_adapter, prefix) == ["u1", "u2", "u3", "u4"]
        lower = FilterCondition("name", FilterOperator.LIKE, "al%")
        assert await _ids(sql_adapter, lower) == []

    @pytest.mark.asyncio()
    async def test_ilike(self, sql_adapter: SQLAlchemyCoreAdapter) -> None:
        cond = FilterCondition("name", FilterOperator.ILIKE, "AL%")
        assert await _ids(sql_adapter, cond) == ["a1"]

    @pytest.mark.asyncio()
    async def test_sort_puts_nulls_first_ascending(
        self, sql_adapter: SQLAlchemyCoreAdapter
    ) -> None:
        rows = await sql_adapter.find_many(
            USERS,
            FindOptions(
                where=(FilterCondition("id", FilterOperator.LIKE, "u%"),),
                order_by=(("age", "asc"),),
            ),
        )
        assert [r["age"] for r in rows] == [None, 18, 22, 35]
        rows = await sql_adapter.find_many(
            USERS,
            FindOptions(
                where=(FilterCondition("id", FilterOperator.LIKE, "u%"),),
                order_by=(("age", "desc"),),
            ),
        )
        assert [r["age"] for r in rows] == [35, 22, 18, None]


class TestCompiler:
    def test_escape_like(self) -> None:
        assert escape_like("a_b%c/") == "a/_b%c//"

    def test_like_to_glob(self) -> None:
        assert like_to_glob("a*b?%[") == "a[*]b[?]*[[]"

    def test_registry_without_strategy(self) -> None:
        registry = SQLAlchemyOperatorRegistry()
        with pytest.raises(ValueError, match="not supported by the SQLAlchemy backend"):
            build_sqla_filter(
                lambda name: users_table.c[name],
                [FilterCondition.eq("name", "a")],
                registry=registry,
            )

    def test_ilike_is_native_on_postgresql(self) -> None:
        registry = build_default_sqla_registry("postgresql")
        expr = build_sqla_filter(
            lambda name: users_table.c[name],
            [FilterCondition("name", FilterOperator.ILIKE, "a%")],
            registry=registry,
        )
        assert "ILIKE" in str(expr.compile(dialect=postgresql.dialect()))

    def test_like_uses_glob_on_sqlite(self) -> None:
        registry = build_default_sqla_registry("sqlite")
        expr = build_sqla_filter(
            lambda name: users_table.c[name],
            [FilterCondition("name", FilterOperator.LIKE, "a%")],
            registry=registry,
        )
        assert "GLOB" in str(expr.compile(dialect=sqlite.dialect()))


# ---------------------------------------------------------------------------
# Primitives
# ---------------------------------------------------------------------------


class TestPrimitives:
    @pytest.mark.asyncio()
    async def test_create_generates_uuid_key(self, sql_adapter: SQLAlchemyCoreAdapter) -> None:
        record = await sql_adapter.create(
            POSTS, {"title": "New", "tenantId": "t1", "userId": None}
        )
        assert len(record["id"]) == 36
        assert await sql_adapter.find_by_key(POSTS, (record["id"],)) == record

    @pytest.mark.asyncio()
    async def test_create_leaves_autoincrement_to_database(
        self, sql_adapter: SQLAlchemyCoreAdapter
    ) -> None:
        first = await sql_adapter.create(COUNTERS, {"label": "a"})
        second = await sql_adapter.create(COUNTERS, {"label": "b"})
        assert isinstance(first["id"], int)
        assert second["id"] == first["id"] + 1

    @pytest.mark.asyncio()
    async def test_composite_key_create_and_update(
        self, sql_adapter: SQLAlchemyCoreAdapter
    ) -> None:
        await sql_adapter.create(SETTINGS, {"userId": "u1", "key": "theme", "value": "dark"})
        updated = await sql_adapter.update(SETTINGS, ("u1", "theme"), {"value": "light"})
        assert updated == {"userId": "u1", "key": "theme", "value": "light"}

    @pytest.mark.asyncio()
    async def test_update_missing_record(self, sql_adapter: SQLAlchemyCoreAdapter) -> None:
        with pytest.raises(EntityNotFoundError):
            await sql_adapter.update(POSTS, ("nope",), {"title": "x"})

    @pytest.mark.asyncio()
    async def test_count_and_delete(self, sql_adapter: SQLAlchemyCoreAdapter) -> None:
        assert await sql_adapter.count(POSTS) == 3
        await sql_adapter.delete(POSTS, ("p3",))
        assert await sql_adapter.count(POSTS) == 2

    @pytest.mark.asyncio()
    async def test_window(self, sql_adapter: SQLAlchemyCoreAdapter) -> None:
        rows = await sql_adapter.find_many(
            POSTS, FindOptions(order_by=(("id", "asc"),), skip=1, take=1)
        )
        assert [r["id"] for r in rows] == ["p2"]

    @pytest.mark.asyncio()
    async def test_unknown_table_and_column(self, engine: AsyncEngine) -> None:
        adapter = SQLAlchemyCoreAdapter(engine, {"users": users_table})
        with pytest.raises(MappingError):
            await adapter.count(POSTS)
        with pytest.raises(MappingError):
            await adapter.count(USERS, [FilterCondition.eq("missing", 1)])

    @pytest.mark.asyncio()
    async def test_transaction_rollback(self, sql_adapter: SQLAlchemyCoreAdapter) -> None:
        with pytest.raises(RuntimeError):
            async with sql_adapter.transaction():
                await sql_adapter.create(POSTS, {"title": "Doomed", "tenantId": "t1"})
                assert await sql_adapter.count(POSTS) == 4
                raise RuntimeError("abort")
        assert await sql_adapter.count(POSTS) == 3

    @pytest.mark.asyncio()
    async def test_concurrent_reads_only_outside_transactions(
        self, sql_adapter: SQLAlchemyCoreAdapter
    ) -> None:
        assert sql_adapter.supports_concurrent_reads is True
        async with sql_adapter.transaction():
            assert sql_adapter.supports_concurrent_reads is False


# ---------------------------------------------------------------------------
# Through the service
# ---------------------------------------------------------------------------


class TestServiceOnCore:
    @pytest.mark.asyncio()
    async def test_list_is_tenant_scoped(
        self, sql_service: CrudService, tenant_b: RequestContext
    ) -> None:
        page = await sql_service.list({}, context=tenant_b)
        assert [r["id"] for r in page.result] == ["f1"]

    @pytest.mark.asyncio()
    async def test_list_with_include(
        self, sql_service: CrudService, tenant_a: RequestContext
    ) -> None:
        page = await sql_service.list(
            {"filter[name]": "user_1", "include": "posts,profile"}, context=tenant_a
        )
        (user,) = page.result
        assert sorted(p["id"] for p in user["posts"]) == ["p1", "p2"]
        assert user["profile"] is None

    @pytest.mark.asyncio()
    async def test_nested_create(
        self, sql_service: CrudService, engine: AsyncEngine, tenant_a: RequestContext
    ) -> None:
        created = await sql_service.create(
            {
                "name": "Nested",
                "posts": {"create": [{"title": "Child"}], "connect": ["p3"]},
                "profile": {"bio": "hi"},
            },
            context=tenant_a,
        )
        user = created.result
        assert sorted(p["title"] for p in user["posts"]) == ["Child", "Loose"]
        assert user["profile"]["userId"] == user["id"]
        async with engine.connect() as conn:
            rows = (
                await conn.execute(
                    select(posts_table.c.id).where(posts_table.c.userId == user["id"])
                )
            ).all()
        assert len(rows) == 2

    @pytest.mark.asyncio()
    async def test_nested_failure_rolls_back_root(
        self,
        sql_service: CrudService,
        sql_adapter: SQLAlchemyCoreAdapter,
        tenant_a: RequestContext,
    ) -> None:
        before = await sql_adapter.count(USERS)
        with pytest.raises(EntityNotFoundError):
            await sql_service.create(
                {"name": "Doomed", "posts": {"create": [{"title": "x"}], "connect": ["zz"]}},
                context=tenant_a,
            )
        assert await sql_adapter.count(USERS) == before
        assert await sql_adapter.count(POSTS) == 3

    @pytest.mark.asyncio()
    async def test_failed_update_leaves_root_and_children_untouched(
        self,
        sql_service: CrudService,
        sql_adapter: SQLAlchemyCoreAdapter,
        tenant_a: RequestContext,
    ) -> None:
        with pytest.raises(OperationNotAllowedError):
            await sql_service.update(
                "u1",
                {"name": "Changed", "profile": {"delete": ["x"]}},
                context=tenant_a,
            )
        with pytest.raises(EntityNotFoundError):
            await sql_service.update(
                "u1",
                {"name": "Changed", "posts": {"connect": ["p3", "zz"]}},
                context=tenant_a,
            )

        found = await sql_service.read("u1", {"include": "posts"}, context=tenant_a)
        assert found.result["name"] == "user_1"
        assert sorted(p["id"] for p in found.result["posts"]) == ["p1", "p2"]
        loose = await sql_adapter.find_by_key(POSTS, ("p3",))
        assert loose is not None
        assert loose["userId"] is None

    @pytest.mark.asyncio()
    async def test_soft_delete_and_restore(
        self,
        sql_service: CrudService,
        sql_adapter: SQLAlchemyCoreAdapter,
        tenant_a: RequestContext,
    ) -> None:
        await sql_service.delete("u2", context=tenant_a)
        stored = await sql_adapter.find_by_key(USERS, ("u2",))
        assert stored is not None
        assert stored["deletedAt"] is not None
        page = await sql_service.list({"onlyDeleted": "true"}, context=tenant_a)
        assert [r["id"] for r in page.result] == ["u2"]

        await sql_service.restore("u2", context=tenant_a)
        found = await sql_service.read("u2", context=tenant_a)
        assert found.result["deletedAt"] is None

    @pytest.mark.asyncio()
    async def test_batch_upsert(
        self,
        sql_adapter: SQLAlchemyCoreAdapter,
        registry: ModelRegistry,
    ) -> None:
        service = CrudService(SETTINGS, sql_adapter, registry)
        first = await service.batch_upsert(
            [{"userId": "u1", "key": "lang", "value": "en"}]
        )
        assert first.created_count == 1
        second = await service.batch_upsert(
            [
                {"userId": "u1", "key": "lang", "value": "de"},
                {"userId": "u1", "key": "tz", "value": "UTC"},
            ],
            options=BatchUpsertOptions(atomic=True),
        )
        assert second.updated_count == 1
        assert second.created_count == 1
        rows = await sql_adapter.find_many(SETTINGS, FindOptions(order_by=(("key", "asc"),)))
        assert [(r["key"], r["value"]) for r in rows] == [("lang", "de"), ("tz", "UTC")]

    @pytest.mark.asyncio()
    async def test_profiles_are_isolated(
        self,
        sql_adapter: SQLAlchemyCoreAdapter,
        registry: ModelRegistry,
        tenant_a: RequestContext,
    ) -> None:
        await sql_adapter.create(
            PROFILES, {"id": "pr1", "bio": "x", "userId": "u1", "tenantId": "t2"}
        )
        service = CrudService(PROFILES, sql_adapter, registry)
        page = await service.list({}, context=tenant_a)
        assert page.result == []
