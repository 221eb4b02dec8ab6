"""SQLAlchemy storage adapters (Core and ORM, async)."""

from .compiler import apply_order_by, build_sqla_filter
from .core import SQLAlchemyCoreAdapter
from .exceptions import (
    MappingError,
    SessionManagementError,
    SQLAlchemyPersistenceError,
    UnitOfWorkError,
)
from .operators import DEFAULT_SQLA_REGISTRY, build_default_sqla_registry
from .orm import SQLAlchemyOrmAdapter
from .strategy import SQLAlchemyOperator, SQLAlchemyOperatorRegistry
from .unit_of_work import SQLAlchemyConnectionUnitOfWork, SQLAlchemyUnitOfWork

__all__ = [
    "DEFAULT_SQLA_REGISTRY",
    "MappingError",
    "SQLAlchemyConnectionUnitOfWork",
    "SQLAlchemyCoreAdapter",
    "SQLAlchemyOperator",
    "SQLAlchemyOperatorRegistry",
    "SQLAlchemyOrmAdapter",
    "SQLAlchemyPersistenceError",
    "SQLAlchemyUnitOfWork",
    "SessionManagementError",
    "UnitOfWorkError",
    "apply_order_by",
    "build_default_sqla_registry",
    "build_sqla_filter",
]
