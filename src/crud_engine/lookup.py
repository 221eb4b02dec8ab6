"""Policy-aware single-record lookups shared by the write paths."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from .ports.storage import FindOptions
from .primitives.exceptions import EntityNotFoundError

if TYPE_CHECKING:
    from collections.abc import Sequence

    from .model.model import KeyTuple, Model
    from .policies.pipeline import PolicyPipeline, PolicyScope
    from .ports.storage import Record, StorageAdapter
    from .specifications.condition import FilterCondition


async def find_one(
    adapter: StorageAdapter, model: Model, where: Sequence[FilterCondition]
) -> Record | None:
    rows = await adapter.find_many(model, FindOptions(where=tuple(where), take=1))
    return rows[0] if rows else None


async def find_visible(
    adapter: StorageAdapter,
    policies: PolicyPipeline,
    model: Model,
    key: KeyTuple,
    scope: PolicyScope,
    extra: Sequence[FilterCondition] = (),
) -> Record | None:
    """Find *key* through the tenant and soft-delete predicates of *scope*."""
    where = policies.key_conditions(model, key, scope)
    where.extend(extra)
    return await find_one(adapter, model, where)


async def get_visible(
    adapter: StorageAdapter,
    policies: PolicyPipeline,
    model: Model,
    key: KeyTuple,
    scope: PolicyScope,
    extra: Sequence[FilterCondition] = (),
) -> Record:
    """Like :func:`find_visible` but raise when nothing is visible.

    Raises:
        EntityNotFoundError: Absent, soft-deleted, foreign-tenant or (with
            *extra*) unowned, indistinguishably.
    """
    record = await find_visible(adapter, policies, model, key, scope, extra)
    if record is None:
        raise EntityNotFoundError(model.name, _display_key(key))
    return record


def _display_key(key: KeyTuple) -> Any:
    return key[0] if len(key) == 1 else key
