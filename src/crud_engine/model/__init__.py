"""Model registry: models, relations and per-model policies."""

from .model import KeyTuple, Model
from .policies import ComputedField, MultiTenantPolicy, SoftDeletePolicy, TenantSource
from .registry import ModelRegistry
from .relations import (
    NESTED_OPERATION_ORDER,
    CascadeAction,
    CascadePolicy,
    NestedOperation,
    NestedWriteCapabilities,
    RelationDescriptor,
    RelationType,
    belongs_to,
    has_many,
    has_one,
)

__all__ = [
    "NESTED_OPERATION_ORDER",
    "CascadeAction",
    "CascadePolicy",
    "ComputedField",
    "KeyTuple",
    "Model",
    "ModelRegistry",
    "MultiTenantPolicy",
    "NestedOperation",
    "NestedWriteCapabilities",
    "RelationDescriptor",
    "RelationType",
    "SoftDeletePolicy",
    "TenantSource",
    "belongs_to",
    "has_many",
    "has_one",
]
