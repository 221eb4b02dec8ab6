"""Per-model policy configuration: soft delete, multi-tenancy, computed fields."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

    from ..context import RequestContext


@dataclass(frozen=True)
class SoftDeletePolicy:
    """A record is live iff ``field`` is ``None`` or absent."""

    field: str = "deletedAt"
    allow_query_deleted: bool = True
    query_param: str = "withDeleted"
    only_query_param: str = "onlyDeleted"


class TenantSource(str, Enum):
    CONTEXT = "context"
    HEADER = "header"
    PATH = "path"
    CUSTOM = "custom"


@dataclass(frozen=True)
class MultiTenantPolicy:
    """
    How the tenant is obtained per request and which column it guards.

    Attributes:
        field: Column matched on reads and stamped on creates.
        source: Where the tenant comes from.
        context_key: Key in ``RequestContext.values`` (``context`` source).
        header_name: Header name (``header`` source).
        path_param: Route parameter (``path`` source).
        extractor: Callable receiving the ``RequestContext`` (``custom``).
        required: When ``False`` a missing tenant disables scoping.
        error_message: Message of the error raised for a missing tenant.
    """

    field: str = "tenantId"
    source: TenantSource = TenantSource.CONTEXT
    context_key: str = "tenantId"
    header_name: str = "X-Tenant-ID"
    path_param: str = "tenantId"
    extractor: Callable[[RequestContext], Any] | None = None
    required: bool = True
    error_message: str = "Tenant ID is required"

    def __post_init__(self) -> None:
        object.__setattr__(self, "source", TenantSource(self.source))
        if self.source is TenantSource.CUSTOM and self.extractor is None:
            raise ValueError("A 'custom' tenant source requires an extractor")


@dataclass(frozen=True)
class ComputedField:
    """A derived value attached to records after reads and writes.

    ``compute`` receives the record and may be sync or async.
    ``depends_on`` lists the stored fields it reads.
    """

    compute: Callable[[dict[str, Any]], Any | Awaitable[Any]]
    depends_on: tuple[str, ...] = ()
