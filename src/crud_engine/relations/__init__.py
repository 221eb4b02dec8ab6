"""Relation resolution for ``include`` requests."""

from .resolver import IntegrityWarning, RelationResolver, collect_keys

__all__ = ["IntegrityWarning", "RelationResolver", "collect_keys"]
