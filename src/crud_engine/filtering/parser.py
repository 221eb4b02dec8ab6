"""FilterParser — query params -> FilterCondition list + ListQuery."""

from __future__ import annotations

import re
from collections.abc import Mapping
from typing import TYPE_CHECKING, Any, NamedTuple

from ..specifications.condition import FilterCondition
from ..specifications.operators import FilterOperator
from .exceptions import FilterParseError

if TYPE_CHECKING:
    from ..config import EndpointConfig
    from ..model.model import Model

_FILTER_KEY = re.compile(r"^filter\[([^\[\]]+)\](?:\[([^\[\]]+)\])?$")
_BARE_KEY = re.compile(r"^([^\[\]]+)\[([^\[\]]+)\]$")

_TRUE = frozenset({"true", "1", "yes"})
_FALSE = frozenset({"false", "0", "no"})

RESERVED_PARAMS = frozenset(
    {
        "filter",
        "page",
        "perPage",
        "orderBy",
        "orderDirection",
        "include",
        "fields",
        "withDeleted",
        "onlyDeleted",
    }
)


class ListQuery(NamedTuple):
    """Parsed filters, pagination, sort, includes and projection."""

    conditions: list[FilterCondition]
    page: int
    per_page: int
    order_by: list[tuple[str, str]]
    includes: list[str]
    with_deleted: bool
    only_deleted: bool
    fields: list[str] | None

    @property
    def skip(self) -> int:
        return (self.page - 1) * self.per_page


class ReadQuery(NamedTuple):
    """Includes, projection and deleted-record flags of a single-record read."""

    includes: list[str]
    with_deleted: bool
    only_deleted: bool
    fields: list[str] | None


def parse_bool(raw: Any, name: str) -> bool:
    if isinstance(raw, bool):
        return raw
    text = str(raw).strip().lower()
    if text in _TRUE:
        return True
    if text in _FALSE:
        return False
    raise FilterParseError({name: [f"Expected a boolean, got {raw!r}"]})


def _parse_simple_value(v: str) -> Any:
    try:
        return int(v)
    except ValueError:
        try:
            return float(v)
        except ValueError:
            return v


def _split_list(raw: Any) -> list[Any]:
    if isinstance(raw, list | tuple):
        out: list[Any] = []
        for item in raw:
            out.extend(_split_list(item))
        return out
    if isinstance(raw, str):
        return [part.strip() for part in raw.split(",") if part.strip()]
    return [raw]


def _last(raw: Any) -> Any:
    if isinstance(raw, list | tuple):
        return raw[-1] if raw else None
    return raw


class FilterParser:
    """Parse HTTP query parameters for one endpoint.

    Accepted filter forms, all ANDed together:

    * ``filter[field][op]=value``
    * ``filter[field]=value`` (``eq``)
    * ``field[op]=value``
    * ``field=value`` (``eq``; only for filterable fields)
    * ``{"filter": {field: value | {op: value}}}`` (already-nested input)
    """

    def __init__(self, model: Model, config: EndpointConfig) -> None:
        self._model = model
        self._config = config
        soft_delete = model.soft_delete
        self._with_deleted_param = soft_delete.query_param if soft_delete else "withDeleted"
        self._only_deleted_param = (
            soft_delete.only_query_param if soft_delete else "onlyDeleted"
        )
        self._reserved = RESERVED_PARAMS | {
            self._with_deleted_param,
            self._only_deleted_param,
        }

    # -- filters -------------------------------------------------------------

    def parse(self, raw_params: Mapping[str, Any]) -> list[FilterCondition]:
        """Return the filter conditions carried by *raw_params*.

        Raises:
            FieldNotAllowedError: Field or operator outside the whitelist.
            FilterParseError: Malformed operator or value.
            ValidationError: Value fails the operator's shape constraint or
                cannot be coerced to the field's declared type.
        """
        whitelist = self._config.whitelist
        conditions: list[FilterCondition] = []
        for key, raw in raw_params.items():
            if key == "filter":
                if isinstance(raw, Mapping):
                    conditions.extend(self._parse_nested(raw))
                continue
            match = _FILTER_KEY.match(key) or _BARE_KEY.match(key)
            if match is not None:
                field, op = match.group(1), match.group(2) or FilterOperator.EQ.value
                conditions.append(self.build(field, op, raw))
            elif key not in self._reserved and whitelist.is_filterable(key):
                conditions.append(self.build(key, FilterOperator.EQ.value, raw))
        return conditions

    def _parse_nested(self, raw: Mapping[str, Any]) -> list[FilterCondition]:
        conditions: list[FilterCondition] = []
        for field, entry in raw.items():
            if isinstance(entry, Mapping):
                for op, value in entry.items():
                    conditions.append(self.build(field, op, value))
            else:
                conditions.append(self.build(field, FilterOperator.EQ.value, entry))
        return conditions

    def build(self, field: str, op: str, raw: Any) -> FilterCondition:
        """Whitelist-check, coerce and build one condition."""
        try:
            operator = FilterOperator(str(op).strip().lower())
        except ValueError:
            raise FilterParseError({field: [f"Unknown filter operator {op!r}"]}) from None
        self._config.whitelist.allow_filter(field, operator)
        return FilterCondition(field, operator, self._coerce_value(field, operator, raw))

    def _coerce_value(self, field: str, op: FilterOperator, raw: Any) -> Any:
        if op is FilterOperator.NULL:
            return parse_bool(_last(raw), field)
        if op in (FilterOperator.IN, FilterOperator.NIN, FilterOperator.BETWEEN):
            return [self._coerce_scalar(field, v) for v in _split_list(raw)]
        value = _last(raw)
        if op in (FilterOperator.LIKE, FilterOperator.ILIKE):
            return value if value is None else str(value)
        return self._coerce_scalar(field, value)

    def _coerce_scalar(self, field: str, value: Any) -> Any:
        schema = self._model.schema
        if schema is not None and schema.has_field(field):
            return schema.coerce(field, value)
        if isinstance(value, str):
            return _parse_simple_value(value.strip())
        return value

    # -- full list query -----------------------------------------------------

    def parse_list_query(self, raw_params: Mapping[str, Any]) -> ListQuery:
        """Parse filters plus pagination, sorting, includes and projection."""
        config = self._config
        page = self._positive_int(raw_params.get("page"), "page", 1)
        per_page = min(
            self._positive_int(raw_params.get("perPage"), "perPage", config.default_per_page),
            config.max_per_page,
        )
        return ListQuery(
            conditions=self.parse(raw_params),
            page=page,
            per_page=per_page,
            order_by=self.parse_sort(
                raw_params.get("orderBy"), raw_params.get("orderDirection")
            ),
            includes=self.parse_includes(raw_params.get("include")),
            with_deleted=self._flag(raw_params, self._with_deleted_param),
            only_deleted=self._flag(raw_params, self._only_deleted_param),
            fields=self.parse_fields(raw_params.get("fields")),
        )

    def parse_read_query(self, raw_params: Mapping[str, Any]) -> ReadQuery:
        """Parse the parameters that apply to one record.

        Filters, pagination and sorting only make sense on a list and are
        not read here.
        """
        return ReadQuery(
            includes=self.parse_includes(raw_params.get("include")),
            with_deleted=self._flag(raw_params, self._with_deleted_param),
            only_deleted=self._flag(raw_params, self._only_deleted_param),
            fields=self.parse_fields(raw_params.get("fields")),
        )

    def parse_sort(self, raw: Any, direction: Any = None) -> list[tuple[str, str]]:
        if not raw:
            return list(self._config.default_sort)
        default_dir = str(_last(direction) or "asc").strip().lower()
        if default_dir not in ("asc", "desc"):
            raise FilterParseError({"orderDirection": [f"Invalid direction {direction!r}"]})
        out: list[tuple[str, str]] = []
        for item in _split_list(raw):
            name = str(item)
            if name.startswith("-"):
                name, item_dir = name[1:], "desc"
            else:
                item_dir = default_dir
            self._config.whitelist.allow_sort(name)
            out.append((name, item_dir))
        return out

    def parse_includes(self, raw: Any) -> list[str]:
        if not raw:
            return []
        includes: list[str] = []
        for name in _split_list(raw):
            if name not in includes:
                includes.append(str(name))
        return includes

    def parse_fields(self, raw: Any) -> list[str] | None:
        if not raw:
            return None
        return [str(f) for f in _split_list(raw)]

    def _flag(self, raw_params: Mapping[str, Any], name: str) -> bool:
        raw = raw_params.get(name)
        if raw is None:
            return False
        return parse_bool(_last(raw), name)

    def _positive_int(self, raw: Any, name: str, default: int) -> int:
        raw = _last(raw)
        if raw is None or raw == "":
            return default
        try:
            value = int(raw)
        except (TypeError, ValueError):
            raise FilterParseError({name: [f"Expected an integer, got {raw!r}"]}) from None
        if value < 1:
            raise FilterParseError({name: ["Must be greater than or equal to 1"]})
        return value
