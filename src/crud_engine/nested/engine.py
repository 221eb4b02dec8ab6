"""
NestedWriteEngine — create/update a root record together with its relations.

A request runs through four phases:

1. **Decompose** the payload into root fields and relation operations.
2. **Authorize and validate** every operation: the relation's
   ``nested_writes`` flags and the endpoint allow-list must both permit it,
   keys and child payloads must be well formed. Nothing is written yet.
3. **Execute the root** (create, or policy-checked update).
4. **Execute relation operations** in relation declaration order and, per
   relation, in the order create, update, delete, connect, disconnect, set.

Phases 3 and 4 run inside one adapter transaction: any failure rolls back
the root together with every nested effect.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from ..lookup import get_visible
from ..model.relations import NestedOperation, RelationType
from ..policies.pipeline import PolicyPipeline, PolicyScope
from ..ports.storage import FindOptions
from ..primitives.exceptions import OperationNotAllowedError, ValidationError
from ..relations.resolver import RelationResolver
from ..specifications.condition import FilterCondition
from .payload import RelationOps, decompose

if TYPE_CHECKING:
    from collections.abc import Mapping

    from ..config import EndpointConfig
    from ..model.model import KeyTuple, Model
    from ..model.registry import ModelRegistry
    from ..model.relations import RelationDescriptor
    from ..ports.storage import Record, StorageAdapter

logger = logging.getLogger("crud_engine.nested")


@dataclass
class RelationPlan:
    """Validated operations for one relation."""

    name: str
    descriptor: RelationDescriptor
    target: Model
    owner_column: str
    foreign_key: str
    creates: list[dict[str, Any]] = field(default_factory=list)
    updates: list[tuple[KeyTuple, dict[str, Any]]] = field(default_factory=list)
    deletes: list[KeyTuple] = field(default_factory=list)
    connects: list[KeyTuple] = field(default_factory=list)
    disconnects: list[KeyTuple] = field(default_factory=list)
    set_keys: list[KeyTuple] | None = None


@dataclass
class WritePlan:
    root: dict[str, Any]
    relations: list[RelationPlan]

    @property
    def touched(self) -> list[str]:
        return [plan.name for plan in self.relations]


class NestedWriteEngine:
    """Plans and executes nested writes for one endpoint."""

    def __init__(
        self,
        adapter: StorageAdapter,
        registry: ModelRegistry,
        config: EndpointConfig,
        policies: PolicyPipeline | None = None,
    ) -> None:
        self._adapter = adapter
        self._registry = registry
        self._config = config
        self._policies = policies or PolicyPipeline()

    # -- planning (no I/O) -----------------------------------------------------

    def plan(
        self, model: Model, payload: Mapping[str, Any], *, is_create: bool
    ) -> WritePlan:
        """Decompose, authorize and validate *payload*.

        Raises:
            OperationNotAllowedError: An operation is not enabled by both
                the relation flags and the endpoint allow-list.
            ValidationError: Malformed keys, child payloads or a
                ``disconnect`` on a non-nullable foreign key.
        """
        decomposed = decompose(model, payload)
        for ops in decomposed.relations:
            self.authorize(ops)

        root = self._validate(model, decomposed.root, partial=not is_create)
        return WritePlan(
            root=root,
            relations=[self._plan_relation(model, ops) for ops in decomposed.relations],
        )

    def authorize(self, ops: RelationOps) -> None:
        descriptor = ops.descriptor
        for operation in ops.operations():
            if descriptor.type is RelationType.BELONGS_TO:
                raise OperationNotAllowedError(
                    ops.name, operation.value, "belongsTo relations are read-only"
                )
            if operation not in descriptor.nested_writes.allowed():
                raise OperationNotAllowedError(
                    ops.name, operation.value, "disabled on the relation"
                )
            if not self._config.permits_nested(ops.name, operation):
                raise OperationNotAllowedError(
                    ops.name, operation.value, "disabled on this endpoint"
                )

    def _plan_relation(self, model: Model, ops: RelationOps) -> RelationPlan:
        target = self._registry.target_of(model, ops.name)
        owner_column, foreign_key = ops.descriptor.join_columns(model, target)
        plan = RelationPlan(ops.name, ops.descriptor, target, owner_column, foreign_key)

        skip = target.engine_managed_fields | {foreign_key}
        for child in ops.create:
            data = self._validate(target, child, partial=False, skip_required=skip)
            data.pop(foreign_key, None)
            plan.creates.append(data)

        for item in ops.update:
            key = self._child_key(target, ops.name, item)
            data = self._validate(target, item, partial=True)
            data.pop(foreign_key, None)
            plan.updates.append((key, data))

        plan.deletes = [self._child_key(target, ops.name, raw) for raw in ops.delete]
        plan.connects = [self._child_key(target, ops.name, raw) for raw in ops.connect]
        plan.disconnects = [
            self._child_key(target, ops.name, raw) for raw in ops.disconnect
        ]
        if ops.has_set:
            raw_set = ops.set if isinstance(ops.set, list | tuple) else [ops.set]
            plan.set_keys = [
                self._child_key(target, ops.name, raw) for raw in raw_set if raw is not None
            ]
            if ops.descriptor.is_to_one and len(plan.set_keys) > 1:
                raise ValidationError({ops.name: ["'set' accepts a single record here"]})

        unlinks = plan.disconnects or plan.set_keys is not None
        if unlinks and not target.is_nullable(foreign_key):
            raise ValidationError(
                {
                    f"{ops.name}.{foreign_key}": [
                        f"Cannot disconnect: {target.name}.{foreign_key} is not nullable"
                    ]
                }
            )
        return plan

    def _child_key(self, target: Model, relation: str, raw: Any) -> KeyTuple:
        try:
            return target.normalize_key(raw)
        except ValidationError as exc:
            raise ValidationError(
                {f"{relation}.{k}": v for k, v in exc.errors.items()}
            ) from None

    def _validate(
        self,
        model: Model,
        data: Mapping[str, Any],
        *,
        partial: bool,
        skip_required: frozenset[str] | None = None,
    ) -> dict[str, Any]:
        if model.schema is None:
            return dict(data)
        skip = model.engine_managed_fields if skip_required is None else skip_required
        return model.schema.validate(data, partial=partial, skip_required=skip)

    # -- execution -------------------------------------------------------------

    async def create(
        self,
        model: Model,
        payload: Mapping[str, Any],
        *,
        scope: PolicyScope | None = None,
    ) -> Record:
        """Create a root record with its nested relations, atomically."""
        scope = scope or PolicyScope()
        plan = self.plan(model, payload, is_create=True)

        async def run() -> Record:
            data = self._policies.prepare_create(model, plan.root, scope)
            root = await self._adapter.create(model, data)
            logger.debug("Created %s %r", model.name, model.key_of(root))
            await self._execute_relations(model, root, plan, scope)
            return root

        root = await self._adapter.run_in_transaction(run)
        return await self._attach(model, root, plan, scope)

    async def update(
        self,
        model: Model,
        key: KeyTuple,
        payload: Mapping[str, Any],
        *,
        scope: PolicyScope | None = None,
    ) -> Record:
        """Update a live, in-tenant root record and its nested relations."""
        scope = scope or PolicyScope()
        plan = self.plan(model, payload, is_create=False)

        async def run() -> Record:
            live = scope.live()
            root = await get_visible(self._adapter, self._policies, model, key, live)
            data = self._policies.prepare_update(model, plan.root)
            if data:
                root = await self._adapter.update(model, model.key_of(root), data)
            await self._execute_relations(model, root, plan, scope)
            return root

        root = await self._adapter.run_in_transaction(run)
        return await self._attach(model, root, plan, scope)

    async def _attach(
        self, model: Model, root: Record, plan: WritePlan, scope: PolicyScope
    ) -> Record:
        if not plan.touched:
            return root
        resolver = RelationResolver(self._adapter, self._registry, self._policies)
        resolved = await resolver.resolve_includes(
            [root], plan.touched, model, scope=scope.live()
        )
        return resolved[0]

    async def _execute_relations(
        self, model: Model, root: Record, plan: WritePlan, scope: PolicyScope
    ) -> None:
        for relation in plan.relations:
            parent_value = root.get(relation.owner_column)
            if parent_value is None:
                raise ValidationError(
                    {relation.owner_column: ["Parent key is required for nested writes"]}
                )
            await self._execute_relation(relation, parent_value, scope.live())

    async def _execute_relation(
        self, plan: RelationPlan, parent_value: Any, scope: PolicyScope
    ) -> None:
        target, fk = plan.target, plan.foreign_key
        owned = [FilterCondition.eq(fk, parent_value)]

        for data in plan.creates:
            child = self._policies.prepare_create(target, {**data, fk: parent_value}, scope)
            await self._adapter.create(target, child)
        self._log(plan, NestedOperation.CREATE, len(plan.creates))

        for key, data in plan.updates:
            await self._owned(plan, key, scope, owned)
            changes = self._policies.prepare_update(target, data)
            if changes:
                await self._adapter.update(target, key, changes)
        self._log(plan, NestedOperation.UPDATE, len(plan.updates))

        for key in plan.deletes:
            await self._owned(plan, key, scope, owned)
            if target.soft_delete is not None:
                await self._adapter.update(
                    target, key, self._policies.deletion_payload(target)
                )
            else:
                await self._adapter.delete(target, key)
        self._log(plan, NestedOperation.DELETE, len(plan.deletes))

        for key in plan.connects:
            await get_visible(self._adapter, self._policies, target, key, scope)
            await self._adapter.update(target, key, {fk: parent_value})
        self._log(plan, NestedOperation.CONNECT, len(plan.connects))

        for key in plan.disconnects:
            await self._owned(plan, key, scope, owned)
            await self._adapter.update(target, key, {fk: None})
        self._log(plan, NestedOperation.DISCONNECT, len(plan.disconnects))

        if plan.set_keys is not None:
            await self._replace_links(plan, parent_value, scope)

    async def _owned(
        self,
        plan: RelationPlan,
        key: KeyTuple,
        scope: PolicyScope,
        owned: list[FilterCondition],
    ) -> Record:
        return await get_visible(
            self._adapter, self._policies, plan.target, key, scope, owned
        )

    async def _replace_links(
        self, plan: RelationPlan, parent_value: Any, scope: PolicyScope
    ) -> None:
        target, fk = plan.target, plan.foreign_key
        wanted = plan.set_keys or []
        where = self._policies.read_conditions(
            target, scope, [FilterCondition.eq(fk, parent_value)]
        )
        current = await self._adapter.find_many(target, FindOptions(where=tuple(where)))
        current_keys = [target.key_of(r) for r in current]
        for key in current_keys:
            if key not in wanted:
                await self._adapter.update(target, key, {fk: None})
        for key in wanted:
            if key not in current_keys:
                await get_visible(self._adapter, self._policies, target, key, scope)
                await self._adapter.update(target, key, {fk: parent_value})
        self._log(plan, NestedOperation.SET, len(wanted))

    def _log(self, plan: RelationPlan, operation: NestedOperation, count: int) -> None:
        if count:
            logger.debug("Nested %s on %s: %d record(s)", operation.value, plan.name, count)
