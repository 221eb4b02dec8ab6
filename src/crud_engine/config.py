"""Endpoint configuration — what one endpoint exposes on top of its Model."""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from types import MappingProxyType

from .filtering.whitelist import FieldWhitelist
from .model.relations import NestedOperation

DEFAULT_PER_PAGE = 20
MAX_PER_PAGE = 100


@dataclass(frozen=True)
class FieldSelection:
    """
    Controls the ``fields`` query parameter.

    Attributes:
        allowed: Fields a client may select; empty means any stored field.
        blocked: Fields never returned, selected or not.
        always_include: Fields returned whatever the selection.
        default: Selection applied when the client sends none.
    """

    allowed: frozenset[str] = frozenset()
    blocked: frozenset[str] = frozenset()
    always_include: frozenset[str] = frozenset()
    default: tuple[str, ...] = ()


def _freeze_nested(
    raw: Mapping[str, Iterable[str | NestedOperation]],
) -> Mapping[str, frozenset[NestedOperation]]:
    return MappingProxyType(
        {name: frozenset(NestedOperation(op) for op in ops) for name, ops in raw.items()}
    )


@dataclass(frozen=True)
class EndpointConfig:
    """
    Immutable per-endpoint configuration.

    Attributes:
        whitelist: Filterable fields/operators and sortable fields.
        allowed_includes: Relation names accepted in ``include``.
        nested_writes: Relation name → nested operations this endpoint
            permits. Checked in addition to the relation's own flags.
        default_per_page: Page size when ``perPage`` is absent.
        max_per_page: Upper bound ``perPage`` is clamped to.
        default_sort: ``(field, "asc"|"desc")`` pairs used without ``orderBy``.
        field_selection: Optional ``fields`` parameter rules.
    """

    whitelist: FieldWhitelist = field(default_factory=FieldWhitelist)
    allowed_includes: frozenset[str] = frozenset()
    nested_writes: Mapping[str, frozenset[NestedOperation]] = field(
        default_factory=dict
    )
    default_per_page: int = DEFAULT_PER_PAGE
    max_per_page: int = MAX_PER_PAGE
    default_sort: tuple[tuple[str, str], ...] = ()
    field_selection: FieldSelection | None = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "allowed_includes", frozenset(self.allowed_includes))
        object.__setattr__(self, "nested_writes", _freeze_nested(self.nested_writes))
        if self.default_per_page < 1 or self.max_per_page < 1:
            raise ValueError("Page sizes must be positive")

    def permits_nested(self, relation: str, operation: NestedOperation) -> bool:
        return operation in self.nested_writes.get(relation, frozenset())
