"""FilterEngine — parse query params and render conditions via an adapter."""

from __future__ import annotations

from collections.abc import Callable, Iterable, Mapping
from typing import TYPE_CHECKING, Any, TypeVar

from ..primitives.exceptions import ValidationError
from ..specifications.condition import FilterCondition
from .parser import FilterParser, ListQuery, ReadQuery

if TYPE_CHECKING:
    from ..config import EndpointConfig
    from ..model.model import Model

P = TypeVar("P")


def render(
    conditions: Iterable[FilterCondition | Mapping[str, Any]],
    predicate_builder: Callable[[list[FilterCondition]], P],
) -> P:
    """Hand *conditions* (ANDed) to an adapter's predicate builder.

    Mappings are accepted for conditions produced by external translators
    and are validated into FilterCondition first.
    """
    normalized: list[FilterCondition] = []
    for cond in conditions:
        if isinstance(cond, FilterCondition):
            normalized.append(cond)
        elif isinstance(cond, Mapping):
            normalized.append(FilterCondition.from_dict(dict(cond)))
        else:
            raise ValidationError(f"Invalid filter condition: {cond!r}")
    return predicate_builder(normalized)


class FilterEngine:
    """Per-endpoint facade over :class:`FilterParser` and :func:`render`."""

    def __init__(self, model: Model, config: EndpointConfig) -> None:
        self.model = model
        self.config = config
        self.parser = FilterParser(model, config)

    def parse(self, raw_params: Mapping[str, Any]) -> list[FilterCondition]:
        return self.parser.parse(raw_params)

    def parse_list_query(self, raw_params: Mapping[str, Any]) -> ListQuery:
        return self.parser.parse_list_query(raw_params)

    def parse_read_query(self, raw_params: Mapping[str, Any]) -> ReadQuery:
        return self.parser.parse_read_query(raw_params)

    def check(self, conditions: Iterable[FilterCondition]) -> list[FilterCondition]:
        """Whitelist-check conditions built outside the parser."""
        checked = list(conditions)
        for cond in checked:
            self.config.whitelist.allow_filter(cond.field, cond.operator)
        return checked

    render = staticmethod(render)
