"""Computed fields and field selection, applied to outgoing records."""

from __future__ import annotations

import inspect
import logging
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from collections.abc import Collection, Sequence

    from .config import FieldSelection
    from .model.model import Model
    from .ports.storage import Record

logger = logging.getLogger("crud_engine.service")


def resolve_selection(
    model: Model,
    config: FieldSelection | None,
    requested: Sequence[str] | None,
) -> list[str] | None:
    """Return the fields to keep, or ``None`` for "everything".

    Requested fields that are not available (blocked, not allowed, unknown)
    are dropped silently; ``always_include`` fields are always kept.
    """
    if config is None:
        return None
    wanted = list(requested) if requested else list(config.default)
    if not wanted:
        return None

    known: set[str] | None = None
    if model.schema is not None:
        known = set(model.schema.field_names) | set(model.computed_fields) | set(
            model.relations
        )

    def available(name: str) -> bool:
        if name in config.blocked:
            return False
        if config.allowed and name not in config.allowed:
            return False
        return known is None or name in known

    selected = [f for f in wanted if available(f)]
    return list(dict.fromkeys([*sorted(config.always_include), *selected]))


def project(
    records: Sequence[Record],
    fields: Sequence[str] | None,
    blocked: Collection[str] = (),
) -> list[Record]:
    out: list[Record] = []
    for record in records:
        if fields is not None:
            record = {f: record[f] for f in fields if f in record}
        if blocked:
            record = {k: v for k, v in record.items() if k not in blocked}
        out.append(record)
    return out


async def apply_computed_fields(
    model: Model,
    records: Sequence[Record],
    fields: Sequence[str] | None = None,
) -> list[Record]:
    """Attach every computed field (or only the selected ones).

    A computation that raises yields ``None`` for that field.
    """
    if not model.computed_fields:
        return list(records)
    names = [
        name
        for name, computed in model.computed_fields.items()
        if fields is None
        or name in fields
        or any(dep in fields for dep in computed.depends_on)
    ]
    out: list[Record] = []
    for record in records:
        result = dict(record)
        for name in names:
            try:
                value: Any = model.computed_fields[name].compute(record)
                if inspect.isawaitable(value):
                    value = await value
            except Exception as exc:
                logger.warning(
                    "Computed field %s.%s failed: %s", model.name, name, exc
                )
                value = None
            result[name] = value
        out.append(result)
    return out
