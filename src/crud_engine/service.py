"""
CrudService — the entry point a REST handler calls for one endpoint.

Wires the filter engine, policy pipeline, relation resolver, nested-write
and batch-upsert engines over one storage adapter, and wraps outcomes in
the result envelopes of :mod:`crud_engine.results`.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping, Sequence
from typing import TYPE_CHECKING, Any

from .batch.upsert import BatchUpsertEngine
from .config import EndpointConfig
from .context import resolve_request_context
from .filtering.engine import FilterEngine
from .lookup import find_one, find_visible, get_visible
from .model.relations import CascadeAction
from .nested.engine import NestedWriteEngine
from .policies.pipeline import PolicyPipeline, PolicyScope
from .ports.storage import FindOptions
from .primitives.exceptions import ConflictError, EntityNotFoundError, ValidationError
from .relations.resolver import RelationResolver
from .results import ReadResult, ResultInfo, WriteResult
from .selection import apply_computed_fields, project, resolve_selection
from .specifications.condition import FilterCondition

if TYPE_CHECKING:
    from .batch.results import BatchUpsertOptions, BatchUpsertResult
    from .context import RequestContext
    from .model.model import Model
    from .model.registry import ModelRegistry
    from .ports.storage import Record, StorageAdapter

logger = logging.getLogger("crud_engine.service")


class CrudService:
    """
    CRUD operations for one model behind one endpoint.

    Every call takes an optional :class:`RequestContext`; without one the
    context bound with ``bind_request_context`` is used.

    Example:
        service = CrudService(users, adapter, registry, EndpointConfig(...))
        page = await service.list({"filter[age][gte]": "18", "include": "posts"})
        return page.to_dict()
    """

    def __init__(
        self,
        model: Model,
        adapter: StorageAdapter,
        registry: ModelRegistry,
        config: EndpointConfig | None = None,
        policies: PolicyPipeline | None = None,
    ) -> None:
        self.model = model
        self.adapter = adapter
        self.registry = registry
        self.config = config or EndpointConfig()
        self.policies = policies or PolicyPipeline()
        self.filters = FilterEngine(model, self.config)
        self.nested = NestedWriteEngine(adapter, registry, self.config, self.policies)
        self.batch = BatchUpsertEngine(adapter, self.policies)

    # -- reads -----------------------------------------------------------------

    async def list(
        self,
        raw_params: Mapping[str, Any] | None = None,
        *,
        context: RequestContext | None = None,
        conditions: Iterable[FilterCondition | Mapping[str, Any]] = (),
    ) -> ReadResult:
        """Filtered, sorted, paginated read with includes.

        *conditions* are ANDed with the parsed query; they go through the
        same whitelist as client filters.
        """
        query = self.filters.parse_list_query(raw_params or {})
        scope = self._scope(context, query.with_deleted, query.only_deleted)
        resolver = self._resolver()
        resolver.validate_includes(self.model, query.includes, self.config.allowed_includes)
        selection = self._selection(query.fields, query.includes)

        extra = self.filters.check(_normalize(conditions))
        where = tuple(
            self.policies.read_conditions(self.model, scope, [*query.conditions, *extra])
        )
        total = await self.adapter.count(self.model, where)
        rows = await self.adapter.find_many(
            self.model,
            FindOptions(
                where=where,
                order_by=tuple(query.order_by),
                skip=query.skip,
                take=query.per_page,
            ),
        )
        logger.debug(
            "List %s: page %d, %d of %d record(s)",
            self.model.name,
            query.page,
            len(rows),
            total,
        )
        records = await self._present(rows, query.includes, scope, selection, resolver)
        return ReadResult(
            result=records,
            result_info=ResultInfo.build(query.page, query.per_page, total),
        )

    async def read(
        self,
        key: Any,
        raw_params: Mapping[str, Any] | None = None,
        *,
        context: RequestContext | None = None,
    ) -> ReadResult:
        """Read one record by primary key.

        Raises:
            EntityNotFoundError: Absent, foreign-tenant, or soft-deleted
                without deleted inclusion.
        """
        query = self.filters.parse_read_query(raw_params or {})
        scope = self._scope(context, query.with_deleted, query.only_deleted)
        resolver = self._resolver()
        resolver.validate_includes(self.model, query.includes, self.config.allowed_includes)
        selection = self._selection(query.fields, query.includes)

        normalized = self.model.normalize_key(key)
        record = await find_visible(
            self.adapter, self.policies, self.model, normalized, scope
        )
        if record is None:
            raise EntityNotFoundError(self.model.name, key)
        records = await self._present(
            [record], query.includes, scope, selection, resolver
        )
        return ReadResult(result=records[0])

    # -- writes ----------------------------------------------------------------

    async def create(
        self, payload: Mapping[str, Any], *, context: RequestContext | None = None
    ) -> WriteResult:
        _require_object(payload)
        scope = self._scope(context)
        record = await self.nested.create(self.model, payload, scope=scope)
        return WriteResult(success=True, result=await self._present_one(record))

    async def update(
        self,
        key: Any,
        payload: Mapping[str, Any],
        *,
        context: RequestContext | None = None,
    ) -> WriteResult:
        _require_object(payload)
        scope = self._scope(context)
        normalized = self.model.normalize_key(key)
        record = await self.nested.update(self.model, normalized, payload, scope=scope)
        return WriteResult(success=True, result=await self._present_one(record))

    async def delete(
        self,
        key: Any,
        *,
        context: RequestContext | None = None,
        hard: bool = False,
    ) -> WriteResult:
        """Delete a live record and apply the cascade rules of its relations.

        Models with a soft-delete policy are soft-deleted unless *hard*.
        ``restrict`` relations are checked before anything is written.

        Raises:
            EntityNotFoundError: The record is not visible.
            ConflictError: A ``restrict`` relation still has live children.
        """
        scope = self._scope(context)
        normalized = self.model.normalize_key(key)
        soft = self.model.soft_delete is not None and not hard

        async def run() -> dict[str, dict[str, int]]:
            record = await get_visible(
                self.adapter, self.policies, self.model, normalized, scope
            )
            cascade = await self._cascade(record, soft=soft, scope=scope)
            record_key = self.model.key_of(record)
            if soft:
                await self.adapter.update(
                    self.model, record_key, self.policies.deletion_payload(self.model)
                )
            else:
                await self.adapter.delete(self.model, record_key)
            return cascade

        cascade = await self.adapter.run_in_transaction(run)
        logger.info(
            "%s %s %r", "Soft-deleted" if soft else "Deleted", self.model.name, key
        )
        result: dict[str, Any] = {"deleted": True}
        if cascade:
            result["cascade"] = cascade
        return WriteResult(success=True, result=result)

    async def restore(
        self, key: Any, *, context: RequestContext | None = None
    ) -> WriteResult:
        """Clear the soft-delete marker of a deleted record.

        Raises:
            ValidationError: The model has no soft-delete policy.
            EntityNotFoundError: No deleted record with that key is visible.
        """
        if self.model.soft_delete is None:
            raise ValidationError(f"{self.model.name} does not support restore")
        scope = self._scope(context)
        normalized = self.model.normalize_key(key)

        async def run() -> Record:
            where = self.policies.deleted_key_conditions(self.model, normalized, scope)
            record = await find_one(self.adapter, self.model, where)
            if record is None:
                raise EntityNotFoundError(self.model.name, key)
            return await self.adapter.update(
                self.model,
                self.model.key_of(record),
                self.policies.restore_payload(self.model),
            )

        record = await self.adapter.run_in_transaction(run)
        logger.info("Restored %s %r", self.model.name, key)
        return WriteResult(success=True, result=await self._present_one(record))

    async def batch_upsert(
        self,
        items: Sequence[Mapping[str, Any]],
        *,
        upsert_keys: Sequence[str] | None = None,
        options: BatchUpsertOptions | None = None,
        context: RequestContext | None = None,
    ) -> BatchUpsertResult:
        return await self.batch.upsert(
            self.model, items, upsert_keys, options, scope=self._scope(context)
        )

    # -- internals -------------------------------------------------------------

    def _scope(
        self,
        context: RequestContext | None,
        with_deleted: bool = False,
        only_deleted: bool = False,
    ) -> PolicyScope:
        return PolicyScope(
            context=resolve_request_context(context),
            with_deleted=with_deleted,
            only_deleted=only_deleted,
        )

    def _resolver(self) -> RelationResolver:
        return RelationResolver(self.adapter, self.registry, self.policies)

    def _selection(
        self, requested: Sequence[str] | None, includes: Sequence[str]
    ) -> Sequence[str] | None:
        selected = resolve_selection(self.model, self.config.field_selection, requested)
        if selected is None:
            return None
        return [*selected, *(name for name in includes if name not in selected)]

    async def _present(
        self,
        rows: Sequence[Record],
        includes: Sequence[str],
        scope: PolicyScope,
        selection: Sequence[str] | None,
        resolver: RelationResolver,
    ) -> Sequence[Record]:
        if includes:
            rows = await resolver.resolve_includes(
                rows,
                includes,
                self.model,
                scope=scope,
                allowed=self.config.allowed_includes,
            )
        rows = await apply_computed_fields(self.model, rows, selection)
        blocked = (
            self.config.field_selection.blocked if self.config.field_selection else ()
        )
        return project(rows, selection, blocked)

    async def _present_one(self, record: Record) -> Record:
        rows = await apply_computed_fields(self.model, [record])
        blocked = (
            self.config.field_selection.blocked if self.config.field_selection else ()
        )
        return project(rows, None, blocked)[0]

    async def _cascade(
        self, record: Record, *, soft: bool, scope: PolicyScope
    ) -> dict[str, dict[str, int]]:
        plans = []
        for name, descriptor in self.model.relations.items():
            if not descriptor.is_owning:
                continue
            policy = descriptor.cascade
            action = policy.on_soft_delete if soft else policy.on_delete
            if action is CascadeAction.NO_ACTION:
                continue
            target = self.registry.target_of(self.model, name)
            owner_column, foreign_key = descriptor.join_columns(self.model, target)
            where = self.policies.read_conditions(
                target,
                scope.live(),
                [FilterCondition.eq(foreign_key, record.get(owner_column))],
            )
            plans.append((name, action, target, foreign_key, where))

        for name, action, target, _, where in plans:
            if action is not CascadeAction.RESTRICT:
                continue
            count = await self.adapter.count(target, where)
            if count:
                raise ConflictError(
                    f"Cannot delete {self.model.name}: {count} related "
                    f"{name} record(s) exist",
                    details={"relation": name, "count": count},
                )

        deleted: dict[str, int] = {}
        nullified: dict[str, int] = {}
        for name, action, target, foreign_key, where in plans:
            if action is CascadeAction.RESTRICT:
                continue
            children = await self.adapter.find_many(target, FindOptions(where=tuple(where)))
            for child in children:
                child_key = target.key_of(child)
                if action is CascadeAction.SET_NULL:
                    await self.adapter.update(target, child_key, {foreign_key: None})
                elif soft and target.soft_delete is not None:
                    await self.adapter.update(
                        target, child_key, self.policies.deletion_payload(target)
                    )
                else:
                    await self.adapter.delete(target, child_key)
            if children:
                bucket = nullified if action is CascadeAction.SET_NULL else deleted
                bucket[name] = len(children)

        summary: dict[str, dict[str, int]] = {}
        if deleted:
            summary["deleted"] = deleted
        if nullified:
            summary["nullified"] = nullified
        return summary


def _normalize(
    conditions: Iterable[FilterCondition | Mapping[str, Any]],
) -> Iterable[FilterCondition]:
    for cond in conditions:
        if isinstance(cond, FilterCondition):
            yield cond
        else:
            yield FilterCondition.from_dict(dict(cond))


def _require_object(payload: Any) -> None:
    if not isinstance(payload, Mapping):
        raise ValidationError("Request body must be an object")
