"""Soft-delete and multi-tenancy policy layer."""

from .pipeline import PolicyPipeline, PolicyScope, utc_now
from .soft_delete import DeletedVisibility, resolve_visibility
from .tenancy import MissingTenantError, require_tenant, resolve_tenant

__all__ = [
    "DeletedVisibility",
    "MissingTenantError",
    "PolicyPipeline",
    "PolicyScope",
    "require_tenant",
    "resolve_tenant",
    "resolve_visibility",
    "utc_now",
]
