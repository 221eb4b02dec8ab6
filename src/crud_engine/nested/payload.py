"""Decompose a write payload into root fields and per-relation operations."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from ..model.relations import NESTED_OPERATION_ORDER, NestedOperation
from ..primitives.exceptions import ValidationError

if TYPE_CHECKING:
    from ..model.model import Model
    from ..model.relations import RelationDescriptor

_OPERATION_KEYS = frozenset(op.value for op in NestedOperation)
_UNSET: Any = object()


@dataclass(frozen=True)
class RelationOps:
    """Raw nested operations requested for one relation."""

    name: str
    descriptor: RelationDescriptor
    create: tuple[Mapping[str, Any], ...] = ()
    update: tuple[Mapping[str, Any], ...] = ()
    delete: tuple[Any, ...] = ()
    connect: tuple[Any, ...] = ()
    disconnect: tuple[Any, ...] = ()
    set: Any = field(default=_UNSET)

    @property
    def has_set(self) -> bool:
        return self.set is not _UNSET

    def operations(self) -> list[NestedOperation]:
        """Requested operation kinds, in execution order."""
        present = {
            NestedOperation.CREATE: bool(self.create),
            NestedOperation.UPDATE: bool(self.update),
            NestedOperation.DELETE: bool(self.delete),
            NestedOperation.CONNECT: bool(self.connect),
            NestedOperation.DISCONNECT: bool(self.disconnect),
            NestedOperation.SET: self.has_set,
        }
        return [op for op in NESTED_OPERATION_ORDER if present[op]]


@dataclass(frozen=True)
class DecomposedPayload:
    root: dict[str, Any]
    relations: tuple[RelationOps, ...]


def is_operation_object(value: Any) -> bool:
    """True for ``{create?, update?, delete?, connect?, disconnect?, set?}``."""
    return (
        isinstance(value, Mapping)
        and bool(value)
        and all(key in _OPERATION_KEYS for key in value)
    )


def _as_tuple(value: Any) -> tuple[Any, ...]:
    if value is None:
        return ()
    if isinstance(value, list | tuple):
        return tuple(value)
    return (value,)


def _records(name: str, op: str, value: Any) -> tuple[Mapping[str, Any], ...]:
    items = _as_tuple(value)
    for item in items:
        if not isinstance(item, Mapping):
            raise ValidationError({name: [f"{op!r} expects objects, got {item!r}"]})
    return items


def _relation_ops(name: str, descriptor: RelationDescriptor, value: Any) -> RelationOps:
    if not is_operation_object(value):
        # Direct nested data: one object or a list of objects to create-and-link.
        return RelationOps(name, descriptor, create=_records(name, "create", value))
    return RelationOps(
        name,
        descriptor,
        create=_records(name, "create", value.get("create")),
        update=_records(name, "update", value.get("update")),
        delete=_as_tuple(value.get("delete")),
        connect=_as_tuple(value.get("connect")),
        disconnect=_as_tuple(value.get("disconnect")),
        set=value["set"] if "set" in value else _UNSET,
    )


def decompose(model: Model, payload: Mapping[str, Any]) -> DecomposedPayload:
    """Split *payload* into the root record and relation operations.

    Keys naming a declared relation with a non-null value become relation
    operations, ordered as the relations are declared on the model; every
    other key stays on the root record.
    """
    if not isinstance(payload, Mapping):
        raise ValidationError("Request body must be an object")
    root: dict[str, Any] = {}
    requested: dict[str, RelationOps] = {}
    for key, value in payload.items():
        descriptor = model.relations.get(key)
        if descriptor is None:
            root[key] = value
        elif value is not None:
            ops = _relation_ops(key, descriptor, value)
            if ops.operations():
                requested[key] = ops
    ordered = tuple(requested[name] for name in model.relations if name in requested)
    return DecomposedPayload(root=root, relations=ordered)
