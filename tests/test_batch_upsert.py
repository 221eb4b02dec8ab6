"""Tests for BatchUpsertEngine."""

from __future__ import annotations

import pytest

from crud_engine.adapters.memory import MemoryStorageAdapter
from crud_engine.batch import BatchUpsertEngine, BatchUpsertOptions, UpsertBatchItem
from crud_engine.policies import PolicyScope
from crud_engine.primitives.exceptions import ConflictError, ValidationError

from .models import SETTINGS, USERS


@pytest.fixture
def engine(adapter: MemoryStorageAdapter) -> BatchUpsertEngine:
    return BatchUpsertEngine(adapter)


@pytest.fixture
def settings(adapter: MemoryStorageAdapter) -> MemoryStorageAdapter:
    adapter.seed(
        SETTINGS,
        {"userId": "u1", "key": "theme", "value": "dark"},
        {"userId": "u1", "key": "lang", "value": "en"},
    )
    adapter.reset_operations()
    return adapter


def _values(adapter: MemoryStorageAdapter) -> dict[tuple[str, str], str | None]:
    return {(r["userId"], r["key"]): r["value"] for r in adapter.all_records(SETTINGS)}


# ---------------------------------------------------------------------------
# Matching
# ---------------------------------------------------------------------------


class TestMatching:
    @pytest.mark.asyncio()
    async def test_composite_key_creates_and_updates(
        self, engine: BatchUpsertEngine, settings: MemoryStorageAdapter
    ) -> None:
        result = await engine.upsert(
            SETTINGS,
            [
                {"userId": "u1", "key": "theme", "value": "light"},
                {"userId": "u1", "key": "tz", "value": "UTC"},
            ],
        )
        assert [item.created for item in result.items] == [False, True]
        assert result.created_count == 1
        assert result.updated_count == 1
        assert _values(settings)[("u1", "theme")] == "light"
        assert _values(settings)[("u1", "tz")] == "UTC"

    @pytest.mark.asyncio()
    async def test_item_missing_a_key_field_is_created(
        self, engine: BatchUpsertEngine, adapter: MemoryStorageAdapter, tenant_a
    ) -> None:
        adapter.seed(USERS, {"id": "u1", "name": "Ann", "email": "a@x", "tenantId": "t1"})
        result = await engine.upsert(
            USERS,
            [{"name": "New"}],
            upsert_keys=["email"],
            scope=PolicyScope(context=tenant_a),
        )
        assert result.items[0].created is True
        assert len(adapter.all_records(USERS)) == 2

    @pytest.mark.asyncio()
    async def test_custom_keys_match_within_tenant(
        self, engine: BatchUpsertEngine, adapter: MemoryStorageAdapter, tenant_a
    ) -> None:
        adapter.seed(
            USERS,
            {"id": "u1", "name": "Ann", "email": "a@x", "tenantId": "t1"},
            {"id": "u2", "name": "Foreign", "email": "b@x", "tenantId": "t2"},
        )
        result = await engine.upsert(
            USERS,
            [{"email": "a@x", "name": "Ann B"}, {"email": "b@x", "name": "Mine"}],
            upsert_keys=["email"],
            scope=PolicyScope(context=tenant_a),
        )
        assert [item.created for item in result.items] == [False, True]
        foreign = [u for u in adapter.all_records(USERS) if u["id"] == "u2"][0]
        assert foreign["name"] == "Foreign"

    @pytest.mark.asyncio()
    async def test_ambiguous_match_is_a_conflict(
        self, engine: BatchUpsertEngine, adapter: MemoryStorageAdapter, tenant_a
    ) -> None:
        adapter.seed(
            USERS,
            {"id": "u1", "name": "Ann", "email": "same@x", "tenantId": "t1"},
            {"id": "u2", "name": "Bob", "email": "same@x", "tenantId": "t1"},
        )
        with pytest.raises(ConflictError):
            await engine.upsert(
                USERS,
                [{"email": "same@x", "name": "Who"}],
                upsert_keys=["email"],
                scope=PolicyScope(context=tenant_a),
            )

    @pytest.mark.asyncio()
    async def test_unknown_upsert_key(
        self, engine: BatchUpsertEngine, settings: MemoryStorageAdapter
    ) -> None:
        with pytest.raises(ValidationError):
            await engine.upsert(SETTINGS, [{"userId": "u1"}], upsert_keys=["nope"])


# ---------------------------------------------------------------------------
# Limits and error modes
# ---------------------------------------------------------------------------


class TestErrorModes:
    @pytest.mark.asyncio()
    async def test_max_batch_size_checked_before_any_write(
        self, engine: BatchUpsertEngine, settings: MemoryStorageAdapter
    ) -> None:
        items = [{"userId": "u2", "key": f"k{i}", "value": "v"} for i in range(3)]
        with pytest.raises(ValidationError):
            await engine.upsert(
                SETTINGS, items, options=BatchUpsertOptions(max_batch_size=2)
            )
        assert settings.operations == []

    @pytest.mark.asyncio()
    async def test_atomic_failure_rolls_back_everything(
        self, engine: BatchUpsertEngine, settings: MemoryStorageAdapter
    ) -> None:
        before = _values(settings)
        with pytest.raises(ValidationError):
            await engine.upsert(
                SETTINGS,
                [
                    {"userId": "u1", "key": "theme", "value": "light"},
                    {"userId": "u2", "key": "tz", "value": 42},
                ],
            )
        assert _values(settings) == before

    @pytest.mark.asyncio()
    async def test_non_atomic_keeps_earlier_items(
        self, engine: BatchUpsertEngine, settings: MemoryStorageAdapter
    ) -> None:
        with pytest.raises(ValidationError):
            await engine.upsert(
                SETTINGS,
                [
                    {"userId": "u1", "key": "theme", "value": "light"},
                    {"userId": "u2", "key": "tz", "value": 42},
                ],
                options=BatchUpsertOptions(atomic=False),
            )
        assert _values(settings)[("u1", "theme")] == "light"

    @pytest.mark.asyncio()
    async def test_continue_on_error_reports_in_place(
        self, engine: BatchUpsertEngine, settings: MemoryStorageAdapter
    ) -> None:
        result = await engine.upsert(
            SETTINGS,
            [
                {"userId": "u1", "key": "theme", "value": "light"},
                {"userId": "u2", "key": "tz", "value": 42},
                {"userId": "u2", "key": "lang", "value": "fr"},
            ],
            options=BatchUpsertOptions(continue_on_error=True),
        )
        assert [item.index for item in result.items] == [0, 1, 2]
        assert [item.ok for item in result.items] == [True, False, True]
        assert result.errors[0].index == 1
        assert result.errors[0].code == "VALIDATION_ERROR"
        assert result.success is True
        assert ("u2", "tz") not in _values(settings)

        body = result.to_dict()
        assert body["result"]["createdCount"] == 1
        assert body["result"]["updatedCount"] == 1
        assert body["result"]["totalCount"] == 3
        assert body["result"]["items"][1]["error"]

    @pytest.mark.asyncio()
    async def test_all_items_failing_is_unsuccessful(
        self, engine: BatchUpsertEngine, settings: MemoryStorageAdapter
    ) -> None:
        result = await engine.upsert(
            SETTINGS,
            [{"userId": "u2", "key": "tz", "value": 42}],
            options=BatchUpsertOptions(continue_on_error=True),
        )
        assert result.success is False
        assert result.to_dict()["success"] is False

    @pytest.mark.asyncio()
    async def test_empty_batch(self, engine: BatchUpsertEngine) -> None:
        result = await engine.upsert(SETTINGS, [])
        assert result.to_dict() == {
            "success": True,
            "result": {"items": [], "createdCount": 0, "updatedCount": 0, "totalCount": 0},
        }

    @pytest.mark.asyncio()
    async def test_items_must_be_a_list(self, engine: BatchUpsertEngine) -> None:
        with pytest.raises(ValidationError):
            await engine.upsert(SETTINGS, "not a list")  # type: ignore[arg-type]


# ---------------------------------------------------------------------------
# Field rules and hooks
# ---------------------------------------------------------------------------


class TestFieldRulesAndHooks:
    @pytest.mark.asyncio()
    async def test_create_only_and_update_only_fields(
        self, engine: BatchUpsertEngine, adapter: MemoryStorageAdapter, tenant_a
    ) -> None:
        adapter.seed(USERS, {"id": "u1", "name": "Ann", "age": 30, "tenantId": "t1"})
        options = BatchUpsertOptions(
            create_only_fields=frozenset({"name"}),
            update_only_fields=frozenset({"age"}),
        )
        await engine.upsert(
            USERS,
            [{"id": "u1", "name": "Changed", "age": 31}, {"id": "u2", "name": "Bob", "age": 5}],
            options=options,
            scope=PolicyScope(context=tenant_a),
        )
        stored = {u["id"]: u for u in adapter.all_records(USERS)}
        assert stored["u1"]["name"] == "Ann"
        assert stored["u1"]["age"] == 31
        assert stored["u2"]["name"] == "Bob"
        assert stored["u2"]["age"] is None

    @pytest.mark.asyncio()
    async def test_before_and_after_item_hooks(
        self, engine: BatchUpsertEngine, settings: MemoryStorageAdapter
    ) -> None:
        seen: list[tuple[int, bool]] = []
        finished: list[UpsertBatchItem] = []

        def before(data: dict, index: int, is_create: bool) -> dict:
            seen.append((index, is_create))
            return {**data, "value": str(data["value"]).upper()}

        async def after(item: UpsertBatchItem) -> None:
            finished.append(item)

        await engine.upsert(
            SETTINGS,
            [
                {"userId": "u1", "key": "lang", "value": "de"},
                {"userId": "u3", "key": "lang", "value": "it"},
            ],
            options=BatchUpsertOptions(before_item=before, after_item=after),
        )
        assert seen == [(0, False), (1, True)]
        assert [item.index for item in finished] == [0, 1]
        assert _values(settings)[("u1", "lang")] == "DE"
        assert _values(settings)[("u3", "lang")] == "IT"
