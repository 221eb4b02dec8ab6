"""
RelationResolver — attach requested relations with one fetch per relation.

For every requested relation the resolver collects the distinct join-key
values of the base records, issues exactly one ``find_many`` on the target
model with an ``in`` condition (plus the target's tenant and soft-delete
predicates) and joins the results in memory. The number of secondary
queries depends on the number of relations, never on the number of base
records.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Collection, Mapping, Sequence
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from ..policies.pipeline import PolicyPipeline, PolicyScope
from ..ports.storage import FindOptions
from ..primitives.exceptions import ValidationError
from ..specifications.condition import FilterCondition

if TYPE_CHECKING:
    from ..model.model import Model
    from ..model.registry import ModelRegistry
    from ..model.relations import RelationDescriptor
    from ..ports.storage import Record, StorageAdapter

logger = logging.getLogger("crud_engine.relations")


@dataclass(frozen=True)
class IntegrityWarning:
    """A to-one relation matched more than one related record."""

    model: str
    relation: str
    key: Any
    match_count: int


@dataclass(frozen=True)
class _Fetched:
    name: str
    descriptor: RelationDescriptor
    owner_column: str
    target_column: str
    records: list[Record]


def collect_keys(records: Sequence[Mapping[str, Any]], column: str) -> list[Any]:
    """Distinct non-null values of *column*, in first-seen order."""
    return list(
        dict.fromkeys(r.get(column) for r in records if r.get(column) is not None)
    )


class RelationResolver:
    """
    Resolves ``include`` requests for one request.

    Relations are fetched concurrently only when the adapter reports
    ``supports_concurrent_reads``; the joined output is the same either
    way. ``integrity_warnings`` collects every to-one relation that matched
    several records (the first one, in adapter order, is attached).
    """

    def __init__(
        self,
        adapter: StorageAdapter,
        registry: ModelRegistry,
        policies: PolicyPipeline | None = None,
    ) -> None:
        self._adapter = adapter
        self._registry = registry
        self._policies = policies or PolicyPipeline()
        self.integrity_warnings: list[IntegrityWarning] = []

    def validate_includes(
        self,
        model: Model,
        names: Sequence[str],
        allowed: Collection[str] | None = None,
    ) -> None:
        """Raise ValidationError for undeclared or non-allowed relations."""
        for name in names:
            model.relation(name)
            if allowed is not None and name not in allowed:
                raise ValidationError({name: [f"Relation {name!r} cannot be included"]})

    async def resolve_includes(
        self,
        records: Sequence[Mapping[str, Any]],
        names: Sequence[str],
        model: Model,
        *,
        scope: PolicyScope | None = None,
        allowed: Collection[str] | None = None,
    ) -> list[Record]:
        """Return copies of *records* with each relation in *names* attached.

        ``hasMany`` relations become lists (``[]`` when nothing matches),
        ``hasOne``/``belongsTo`` relations a record or ``None``.

        Raises:
            ValidationError: Unknown or non-allowed relation name.
        """
        names = list(dict.fromkeys(names))
        self.validate_includes(model, names, allowed)
        results = [dict(r) for r in records]
        if not results or not names:
            return results

        relation_scope = (scope or PolicyScope()).for_relations()
        if self._adapter.supports_concurrent_reads and len(names) > 1:
            fetched = await self._fetch_concurrently(
                model, names, results, relation_scope
            )
        else:
            fetched = [
                await self._fetch(model, n, results, relation_scope) for n in names
            ]

        for item in fetched:
            self._join(model, results, item)
        return results

    async def _fetch_concurrently(
        self,
        model: Model,
        names: Sequence[str],
        records: Sequence[Mapping[str, Any]],
        scope: PolicyScope,
    ) -> list[_Fetched]:
        """Fetch every relation at once; the first failure cancels the rest."""
        tasks = [
            asyncio.create_task(self._fetch(model, n, records, scope)) for n in names
        ]
        try:
            await asyncio.wait(tasks, return_when=asyncio.FIRST_EXCEPTION)
        finally:
            pending = [t for t in tasks if not t.done()]
            for task in pending:
                task.cancel()
            if pending:
                await asyncio.wait(pending)
        for task in tasks:
            error = None if task.cancelled() else task.exception()
            if error is not None:
                raise error
        return [task.result() for task in tasks]

    async def _fetch(
        self,
        model: Model,
        name: str,
        records: Sequence[Mapping[str, Any]],
        scope: PolicyScope,
    ) -> _Fetched:
        descriptor = model.relation(name)
        target = self._registry.target_of(model, name)
        owner_column, target_column = descriptor.join_columns(model, target)
        keys = collect_keys(records, owner_column)
        related: list[Record] = []
        if keys:
            where = self._policies.read_conditions(
                target, scope, [FilterCondition.one_of(target_column, keys)]
            )
            related = await self._adapter.find_many(target, FindOptions(where=tuple(where)))
        logger.debug(
            "Resolved %s.%s: %d key(s), %d related record(s)",
            model.name,
            name,
            len(keys),
            len(related),
        )
        return _Fetched(name, descriptor, owner_column, target_column, related)

    def _join(self, model: Model, results: list[Record], fetched: _Fetched) -> None:
        index: dict[Any, list[Record]] = {}
        for related in fetched.records:
            index.setdefault(related.get(fetched.target_column), []).append(related)

        for record in results:
            key = record.get(fetched.owner_column)
            matches = index.get(key, []) if key is not None else []
            if not fetched.descriptor.is_to_one:
                record[fetched.name] = [dict(m) for m in matches]
                continue
            if len(matches) > 1:
                logger.warning(
                    "Data integrity: %s.%s matched %d records for key %r; "
                    "using the first",
                    model.name,
                    fetched.name,
                    len(matches),
                    key,
                )
                self.integrity_warnings.append(
                    IntegrityWarning(model.name, fetched.name, key, len(matches))
                )
            record[fetched.name] = dict(matches[0]) if matches else None
