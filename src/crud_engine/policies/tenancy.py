"""Multi-tenancy policy transformers."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from ..model.policies import TenantSource
from ..primitives.exceptions import ValidationError

if TYPE_CHECKING:
    from collections.abc import Mapping

    from ..context import RequestContext
    from ..model.policies import MultiTenantPolicy


class MissingTenantError(ValidationError):
    """Raised when a mandatory tenant cannot be resolved from the request."""


def resolve_tenant(policy: MultiTenantPolicy, ctx: RequestContext) -> Any | None:
    """Read the tenant from the policy's source; ``None`` when absent."""
    if policy.source is TenantSource.HEADER:
        value: Any = ctx.header(policy.header_name)
    elif policy.source is TenantSource.PATH:
        value = ctx.path_params.get(policy.path_param)
    elif policy.source is TenantSource.CUSTOM:
        assert policy.extractor is not None
        value = policy.extractor(ctx)
    else:
        value = ctx.get(policy.context_key)
    if value is None or value == "":
        return None
    return value


def require_tenant(policy: MultiTenantPolicy, ctx: RequestContext) -> Any | None:
    """Resolve the tenant, raising when it is missing and mandatory.

    Raises:
        MissingTenantError: No tenant and ``policy.required``.
    """
    tenant = resolve_tenant(policy, ctx)
    if tenant is None and policy.required:
        raise MissingTenantError({policy.field: [policy.error_message]})
    return tenant


def strip_tenant(
    policy: MultiTenantPolicy | None, data: Mapping[str, Any]
) -> dict[str, Any]:
    """Drop the tenant column from an update payload."""
    out = dict(data)
    if policy is not None:
        out.pop(policy.field, None)
    return out
