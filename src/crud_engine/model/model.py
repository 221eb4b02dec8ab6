"""Model — declarative description of one storable entity type."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import TYPE_CHECKING, Any

from ..primitives.exceptions import ValidationError
from ..specifications.condition import FilterCondition

if TYPE_CHECKING:
    from ..validation.schema import SchemaValidator
    from .policies import ComputedField, MultiTenantPolicy, SoftDeletePolicy
    from .relations import RelationDescriptor

KeyTuple = tuple[Any, ...]


@dataclass(frozen=True, eq=False)
class Model:
    """
    Immutable model configuration shared by every endpoint that uses it.

    Attributes:
        name: Registry name; relation targets refer to models by this name.
        table_name: Storage identifier used by adapters.
        primary_keys: Ordered, non-empty primary key fields.
        schema: Optional validator for payloads and filter values.
        relations: Relation name → descriptor, in declaration order.
        soft_delete: Optional soft-delete policy.
        multi_tenant: Optional tenancy policy.
        computed_fields: Name → computed field, attached after reads/writes.
    """

    name: str
    table_name: str = ""
    primary_keys: tuple[str, ...] = ("id",)
    schema: SchemaValidator | None = None
    relations: Mapping[str, RelationDescriptor] = field(default_factory=dict)
    soft_delete: SoftDeletePolicy | None = None
    multi_tenant: MultiTenantPolicy | None = None
    computed_fields: Mapping[str, ComputedField] = field(default_factory=dict)

    def __post_init__(self) -> None:
        if isinstance(self.primary_keys, str):
            object.__setattr__(self, "primary_keys", (self.primary_keys,))
        object.__setattr__(self, "primary_keys", tuple(self.primary_keys))
        if not self.primary_keys:
            raise ValueError(f"Model {self.name!r} needs at least one primary key")
        if not self.table_name:
            object.__setattr__(self, "table_name", self.name)
        object.__setattr__(self, "relations", MappingProxyType(dict(self.relations)))
        object.__setattr__(
            self, "computed_fields", MappingProxyType(dict(self.computed_fields))
        )

    def __repr__(self) -> str:
        return f"Model({self.name!r})"

    # -- keys ----------------------------------------------------------------

    @property
    def primary_key(self) -> str:
        return self.primary_keys[0]

    @property
    def has_composite_key(self) -> bool:
        return len(self.primary_keys) > 1

    def key_of(self, record: Mapping[str, Any]) -> KeyTuple:
        return tuple(record.get(pk) for pk in self.primary_keys)

    def normalize_key(self, key: Any) -> KeyTuple:
        """Accept a scalar (single key), a tuple/list, or a mapping.

        Raises:
            ValidationError: If the key does not match the primary key arity.
        """
        if isinstance(key, Mapping):
            values: tuple[Any, ...] = tuple(key.get(pk) for pk in self.primary_keys)
        elif isinstance(key, list | tuple):
            values = tuple(key)
        else:
            values = (key,)
        if len(values) != len(self.primary_keys) or any(v is None for v in values):
            raise ValidationError(
                {
                    ",".join(self.primary_keys): [
                        f"Expected a key with {len(self.primary_keys)} value(s)"
                    ]
                }
            )
        if self.schema is not None:
            values = tuple(
                self.schema.coerce(pk, v)
                for pk, v in zip(self.primary_keys, values, strict=True)
            )
        return values

    def key_conditions(self, key: KeyTuple) -> list[FilterCondition]:
        return [
            FilterCondition.eq(pk, value)
            for pk, value in zip(self.primary_keys, key, strict=True)
        ]

    # -- relations -----------------------------------------------------------

    def relation(self, name: str) -> RelationDescriptor:
        try:
            return self.relations[name]
        except KeyError:
            raise ValidationError(
                {name: [f"Unknown relation {name!r} on {self.name!r}"]}
            ) from None

    # -- schema --------------------------------------------------------------

    def is_nullable(self, name: str) -> bool:
        if self.schema is None:
            return True
        return self.schema.is_nullable(name)

    def coerce(self, name: str, value: Any) -> Any:
        if self.schema is None:
            return value
        return self.schema.coerce(name, value)

    @property
    def engine_managed_fields(self) -> frozenset[str]:
        """Fields filled by the engine rather than the client on create."""
        managed = set(self.primary_keys)
        if self.multi_tenant is not None:
            managed.add(self.multi_tenant.field)
        if self.soft_delete is not None:
            managed.add(self.soft_delete.field)
        return frozenset(managed)
