"""Tests for RelationResolver: batched includes, shapes and policies."""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timezone

import pytest

from crud_engine.adapters.memory import MemoryStorageAdapter
from crud_engine.model import Model, ModelRegistry
from crud_engine.policies import PolicyScope
from crud_engine.primitives.exceptions import ValidationError
from crud_engine.relations import RelationResolver

from .models import POSTS, PROFILES, USERS


@pytest.fixture
def scope(tenant_a) -> PolicyScope:
    return PolicyScope(context=tenant_a)


@pytest.fixture
def resolver(adapter: MemoryStorageAdapter, registry: ModelRegistry) -> RelationResolver:
    return RelationResolver(adapter, registry)


@pytest.fixture
def users(adapter: MemoryStorageAdapter) -> list[dict]:
    records = [
        {"id": f"u{i}", "name": f"User {i}", "tenantId": "t1"} for i in range(1, 6)
    ]
    adapter.seed(USERS, *records)
    adapter.seed(
        POSTS,
        {"id": "p1", "title": "A", "userId": "u1", "tenantId": "t1"},
        {"id": "p2", "title": "B", "userId": "u1", "tenantId": "t1"},
        {"id": "p3", "title": "C", "userId": "u2", "tenantId": "t1"},
        {"id": "p4", "title": "Other tenant", "userId": "u1", "tenantId": "t2"},
        {
            "id": "p5",
            "title": "Gone",
            "userId": "u2",
            "tenantId": "t1",
            "deletedAt": datetime(2024, 1, 1, tzinfo=timezone.utc),
        },
    )
    adapter.seed(
        PROFILES,
        {"id": "pr1", "bio": "hi", "userId": "u1", "tenantId": "t1"},
    )
    adapter.reset_operations()
    return records


# ---------------------------------------------------------------------------
# Query count
# ---------------------------------------------------------------------------


class TestBatchedFetch:
    @pytest.mark.asyncio()
    async def test_one_query_per_relation(
        self,
        resolver: RelationResolver,
        adapter: MemoryStorageAdapter,
        users: list[dict],
        scope: PolicyScope,
    ) -> None:
        await resolver.resolve_includes(users, ["posts", "profile"], USERS, scope=scope)
        assert adapter.count_operations("find_many", "posts") == 1
        assert adapter.count_operations("find_many", "profiles") == 1
        assert len(adapter.operations) == 2

    @pytest.mark.asyncio()
    async def test_query_count_independent_of_base_size(
        self,
        resolver: RelationResolver,
        adapter: MemoryStorageAdapter,
        users: list[dict],
        scope: PolicyScope,
    ) -> None:
        await resolver.resolve_includes(users[:1], ["posts"], USERS, scope=scope)
        single = len(adapter.operations)
        adapter.reset_operations()
        await resolver.resolve_includes(users, ["posts"], USERS, scope=scope)
        assert len(adapter.operations) == single == 1

    @pytest.mark.asyncio()
    async def test_no_base_records_issues_no_query(
        self,
        resolver: RelationResolver,
        adapter: MemoryStorageAdapter,
        scope: PolicyScope,
    ) -> None:
        assert await resolver.resolve_includes([], ["posts"], USERS, scope=scope) == []
        assert adapter.operations == []

    @pytest.mark.asyncio()
    async def test_duplicate_names_fetch_once(
        self,
        resolver: RelationResolver,
        adapter: MemoryStorageAdapter,
        users: list[dict],
        scope: PolicyScope,
    ) -> None:
        await resolver.resolve_includes(users, ["posts", "posts"], USERS, scope=scope)
        assert adapter.count_operations("find_many", "posts") == 1


# ---------------------------------------------------------------------------
# Shapes and policies
# ---------------------------------------------------------------------------


class TestShapes:
    @pytest.mark.asyncio()
    async def test_has_many_and_has_one(
        self,
        resolver: RelationResolver,
        users: list[dict],
        scope: PolicyScope,
    ) -> None:
        out = await resolver.resolve_includes(
            users, ["posts", "profile"], USERS, scope=scope
        )
        by_id = {r["id"]: r for r in out}
        assert [p["id"] for p in by_id["u1"]["posts"]] == ["p1", "p2"]
        assert by_id["u1"]["profile"]["bio"] == "hi"
        assert by_id["u3"]["posts"] == []
        assert by_id["u3"]["profile"] is None

    @pytest.mark.asyncio()
    async def test_base_records_are_not_mutated(
        self,
        resolver: RelationResolver,
        users: list[dict],
        scope: PolicyScope,
    ) -> None:
        await resolver.resolve_includes(users, ["posts"], USERS, scope=scope)
        assert "posts" not in users[0]

    @pytest.mark.asyncio()
    async def test_related_tenant_and_soft_delete_apply(
        self,
        resolver: RelationResolver,
        users: list[dict],
        scope: PolicyScope,
    ) -> None:
        out = await resolver.resolve_includes(users[:2], ["posts"], USERS, scope=scope)
        assert [p["id"] for p in out[0]["posts"]] == ["p1", "p2"]
        assert [p["id"] for p in out[1]["posts"]] == ["p3"]

    @pytest.mark.asyncio()
    async def test_with_deleted_widens_related_reads(
        self,
        resolver: RelationResolver,
        users: list[dict],
        tenant_a,
    ) -> None:
        scope = PolicyScope(context=tenant_a, only_deleted=True)
        out = await resolver.resolve_includes(users[1:2], ["posts"], USERS, scope=scope)
        assert [p["id"] for p in out[0]["posts"]] == ["p3", "p5"]

    @pytest.mark.asyncio()
    async def test_belongs_to(
        self,
        resolver: RelationResolver,
        adapter: MemoryStorageAdapter,
        users: list[dict],
        scope: PolicyScope,
    ) -> None:
        posts = await adapter.find_many(POSTS)
        out = await resolver.resolve_includes(posts[:3], ["author"], POSTS, scope=scope)
        assert [p["author"]["id"] for p in out] == ["u1", "u1", "u2"]

    @pytest.mark.asyncio()
    async def test_null_foreign_key_resolves_to_none(
        self,
        resolver: RelationResolver,
        scope: PolicyScope,
    ) -> None:
        orphan = {"id": "p9", "title": "Orphan", "userId": None, "tenantId": "t1"}
        out = await resolver.resolve_includes([orphan], ["author"], POSTS, scope=scope)
        assert out[0]["author"] is None

    @pytest.mark.asyncio()
    async def test_to_one_with_several_matches_warns(
        self,
        resolver: RelationResolver,
        adapter: MemoryStorageAdapter,
        users: list[dict],
        scope: PolicyScope,
        caplog: pytest.LogCaptureFixture,
    ) -> None:
        adapter.seed(
            PROFILES, {"id": "pr2", "bio": "dup", "userId": "u1", "tenantId": "t1"}
        )
        with caplog.at_level(logging.WARNING, logger="crud_engine.relations"):
            out = await resolver.resolve_includes(users[:1], ["profile"], USERS, scope=scope)
        assert out[0]["profile"]["id"] == "pr1"
        (warning,) = resolver.integrity_warnings
        assert warning.relation == "profile"
        assert warning.match_count == 2
        assert "Data integrity" in caplog.text


class TestValidation:
    @pytest.mark.asyncio()
    async def test_unknown_relation(
        self, resolver: RelationResolver, users: list[dict], scope: PolicyScope
    ) -> None:
        with pytest.raises(ValidationError):
            await resolver.resolve_includes(users, ["comments"], USERS, scope=scope)

    @pytest.mark.asyncio()
    async def test_relation_outside_allow_list(
        self, resolver: RelationResolver, users: list[dict], scope: PolicyScope
    ) -> None:
        with pytest.raises(ValidationError):
            await resolver.resolve_includes(
                users, ["profile"], USERS, scope=scope, allowed={"posts"}
            )


class TestConcurrency:
    @pytest.mark.asyncio()
    async def test_sequential_when_adapter_disallows_concurrency(
        self,
        registry: ModelRegistry,
        users: list[dict],
        scope: PolicyScope,
        monkeypatch: pytest.MonkeyPatch,
    ) -> None:
        adapter = MemoryStorageAdapter()
        adapter.seed(USERS, *users)
        monkeypatch.setattr(
            MemoryStorageAdapter, "supports_concurrent_reads", property(lambda self: False)
        )
        resolver = RelationResolver(adapter, registry)
        out = await resolver.resolve_includes(
            users, ["posts", "profile"], USERS, scope=scope
        )
        assert adapter.count_operations("find_many") == 2
        assert all(r["posts"] == [] and r["profile"] is None for r in out)

    @pytest.mark.asyncio()
    async def test_failed_fetch_cancels_the_others(
        self,
        resolver: RelationResolver,
        adapter: MemoryStorageAdapter,
        users: list[dict],
        scope: PolicyScope,
        monkeypatch: pytest.MonkeyPatch,
    ) -> None:
        started = asyncio.Event()
        cancelled = asyncio.Event()

        async def find_many(model: Model, options: object = None) -> list[dict]:
            if model is POSTS:
                started.set()
                try:
                    await asyncio.Event().wait()
                except asyncio.CancelledError:
                    cancelled.set()
                    raise
            await started.wait()
            raise RuntimeError("profiles unavailable")

        monkeypatch.setattr(adapter, "find_many", find_many)
        with pytest.raises(RuntimeError, match="profiles unavailable"):
            await resolver.resolve_includes(
                users, ["posts", "profile"], USERS, scope=scope
            )
        assert cancelled.is_set()


# ---------------------------------------------------------------------------
# Model registry
# ---------------------------------------------------------------------------


class TestModelRegistry:
    def test_targets_are_resolved_lazily(self) -> None:
        registry = ModelRegistry(USERS)
        registry.register(POSTS, PROFILES)
        assert registry.target_of(USERS, "posts") is POSTS
        assert registry.target_of(USERS, "posts") is POSTS

    def test_dangling_target_is_reported(self) -> None:
        registry = ModelRegistry(USERS)
        with pytest.raises(ValueError, match="Unknown model: 'posts'"):
            registry.check()

    def test_conflicting_registration(self) -> None:
        registry = ModelRegistry(USERS)
        with pytest.raises(ValueError, match="already registered"):
            registry.register(Model("users"))
