"""Relation descriptors — declared associations between models."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .model import Model


class RelationType(str, Enum):
    HAS_MANY = "hasMany"
    HAS_ONE = "hasOne"
    BELONGS_TO = "belongsTo"


class NestedOperation(str, Enum):
    """Kinds of nested-write operations, in execution order."""

    CREATE = "create"
    UPDATE = "update"
    DELETE = "delete"
    CONNECT = "connect"
    DISCONNECT = "disconnect"
    SET = "set"


NESTED_OPERATION_ORDER: tuple[NestedOperation, ...] = tuple(NestedOperation)


class CascadeAction(str, Enum):
    CASCADE = "cascade"
    SET_NULL = "setNull"
    RESTRICT = "restrict"
    NO_ACTION = "noAction"


@dataclass(frozen=True)
class NestedWriteCapabilities:
    """Capability flags for nested writes through one relation.

    Every flag defaults to ``False``. ``set`` (replace the single child of a
    ``hasOne``) needs both ``allow_connect`` and ``allow_disconnect``.
    """

    allow_create: bool = False
    allow_update: bool = False
    allow_delete: bool = False
    allow_connect: bool = False
    allow_disconnect: bool = False

    @classmethod
    def all(cls) -> NestedWriteCapabilities:
        return cls(True, True, True, True, True)

    def allowed(self) -> frozenset[NestedOperation]:
        ops: set[NestedOperation] = set()
        if self.allow_create:
            ops.add(NestedOperation.CREATE)
        if self.allow_update:
            ops.add(NestedOperation.UPDATE)
        if self.allow_delete:
            ops.add(NestedOperation.DELETE)
        if self.allow_connect:
            ops.add(NestedOperation.CONNECT)
        if self.allow_disconnect:
            ops.add(NestedOperation.DISCONNECT)
        if self.allow_connect and self.allow_disconnect:
            ops.add(NestedOperation.SET)
        return frozenset(ops)


@dataclass(frozen=True)
class CascadePolicy:
    """What happens to related records when the parent is deleted."""

    on_delete: CascadeAction = CascadeAction.NO_ACTION
    on_soft_delete: CascadeAction = CascadeAction.NO_ACTION


@dataclass(frozen=True)
class RelationDescriptor:
    """
    Declared association from one model to another.

    Attributes:
        type: ``hasMany``, ``hasOne`` or ``belongsTo``.
        target: Name of the related model, resolved lazily via the registry.
        foreign_key: For ``hasMany``/``hasOne`` the column on the related
            model; for ``belongsTo`` the column on the declaring model that
            stores the reference.
        local_key: The referenced column. Lives on the declaring model for
            ``hasMany``/``hasOne`` and on the target for ``belongsTo``.
            Defaults to that side's primary key.
        nested_writes: Capability flags, all disabled by default.
        cascade: Delete propagation for ``hasMany``/``hasOne``.
    """

    type: RelationType
    target: str
    foreign_key: str
    local_key: str | None = None
    nested_writes: NestedWriteCapabilities = field(
        default_factory=NestedWriteCapabilities
    )
    cascade: CascadePolicy = field(default_factory=CascadePolicy)

    def __post_init__(self) -> None:
        object.__setattr__(self, "type", RelationType(self.type))

    @property
    def is_to_one(self) -> bool:
        return self.type is not RelationType.HAS_MANY

    @property
    def is_owning(self) -> bool:
        """``True`` when the foreign key lives on the related model."""
        return self.type is not RelationType.BELONGS_TO

    def resolve_local_key(self, owner: Model, target: Model) -> str:
        if self.local_key is not None:
            return self.local_key
        side = owner if self.is_owning else target
        return side.primary_key

    def join_columns(self, owner: Model, target: Model) -> tuple[str, str]:
        """Return ``(column on owner records, column on target records)``."""
        local = self.resolve_local_key(owner, target)
        if self.is_owning:
            return local, self.foreign_key
        return self.foreign_key, local


def has_many(target: str, foreign_key: str, **kwargs: object) -> RelationDescriptor:
    return RelationDescriptor(RelationType.HAS_MANY, target, foreign_key, **kwargs)  # type: ignore[arg-type]


def has_one(target: str, foreign_key: str, **kwargs: object) -> RelationDescriptor:
    return RelationDescriptor(RelationType.HAS_ONE, target, foreign_key, **kwargs)  # type: ignore[arg-type]


def belongs_to(target: str, foreign_key: str, **kwargs: object) -> RelationDescriptor:
    return RelationDescriptor(RelationType.BELONGS_TO, target, foreign_key, **kwargs)  # type: ignore[arg-type]
