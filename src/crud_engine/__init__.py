"""crud-engine — storage-agnostic query and mutation engine for REST CRUD endpoints.

SQLAlchemy adapters live in :mod:`crud_engine.adapters.sqlalchemy`.
"""

from __future__ import annotations

# ── Adapters ────────────────────────────────────────────────────
from .adapters.memory import MemoryStorageAdapter, MemoryUnitOfWork

# ── Batch upsert ────────────────────────────────────────────────
from .batch import BatchUpsertEngine, BatchUpsertOptions, BatchUpsertResult, UpsertBatchItem

# ── Configuration & context ─────────────────────────────────────
from .config import EndpointConfig, FieldSelection
from .context import (
    RequestContext,
    bind_request_context,
    get_request_context,
    set_request_context,
)

# ── Filtering ───────────────────────────────────────────────────
from .filtering import (
    FieldWhitelist,
    FilterEngine,
    FilterParser,
    ListQuery,
    ReadQuery,
)

# ── Model ───────────────────────────────────────────────────────
from .model import (
    CascadeAction,
    CascadePolicy,
    ComputedField,
    Model,
    ModelRegistry,
    MultiTenantPolicy,
    NestedOperation,
    NestedWriteCapabilities,
    RelationDescriptor,
    RelationType,
    SoftDeletePolicy,
    TenantSource,
    belongs_to,
    has_many,
    has_one,
)
from .nested import NestedWriteEngine
from .policies import MissingTenantError, PolicyPipeline, PolicyScope

# ── Ports ───────────────────────────────────────────────────────
from .ports import FindOptions, StorageAdapter, UnitOfWork

# ── Primitives ──────────────────────────────────────────────────
from .primitives import (
    ConflictError,
    CrudEngineError,
    EntityNotFoundError,
    InfrastructureError,
    NotFoundError,
    OperationNotAllowedError,
    PersistenceError,
    ValidationError,
    error_response,
)
from .relations import RelationResolver
from .results import ReadResult, ResultInfo, WriteResult
from .service import CrudService
from .specifications import FilterCondition, FilterOperator

# ── Validation ──────────────────────────────────────────────────
from .validation import PydanticSchema, SchemaValidator

__all__ = [
    "BatchUpsertEngine",
    "BatchUpsertOptions",
    "BatchUpsertResult",
    "CascadeAction",
    "CascadePolicy",
    "ComputedField",
    "ConflictError",
    "CrudEngineError",
    "CrudService",
    "EndpointConfig",
    "EntityNotFoundError",
    "FieldSelection",
    "FieldWhitelist",
    "FilterCondition",
    "FilterEngine",
    "FilterOperator",
    "FilterParser",
    "FindOptions",
    "InfrastructureError",
    "ListQuery",
    "MemoryStorageAdapter",
    "MemoryUnitOfWork",
    "MissingTenantError",
    "Model",
    "ModelRegistry",
    "MultiTenantPolicy",
    "NestedOperation",
    "NestedWriteCapabilities",
    "NestedWriteEngine",
    "NotFoundError",
    "OperationNotAllowedError",
    "PersistenceError",
    "PolicyPipeline",
    "PolicyScope",
    "PydanticSchema",
    "ReadQuery",
    "ReadResult",
    "RelationDescriptor",
    "RelationResolver",
    "RelationType",
    "RequestContext",
    "ResultInfo",
    "SchemaValidator",
    "SoftDeletePolicy",
    "StorageAdapter",
    "TenantSource",
    "UnitOfWork",
    "UpsertBatchItem",
    "ValidationError",
    "WriteResult",
    "belongs_to",
    "bind_request_context",
    "error_response",
    "get_request_context",
    "has_many",
    "has_one",
    "set_request_context",
]
