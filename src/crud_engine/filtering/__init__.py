"""Query-parameter parsing, field whitelisting and predicate rendering."""

from .engine import FilterEngine, render
from .exceptions import FieldNotAllowedError, FilterParseError
from .parser import FilterParser, ListQuery, ReadQuery, parse_bool
from .whitelist import FieldWhitelist

__all__ = [
    "FieldNotAllowedError",
    "FieldWhitelist",
    "FilterEngine",
    "FilterParseError",
    "FilterParser",
    "ListQuery",
    "ReadQuery",
    "parse_bool",
    "render",
]
