"""Soft-delete policy transformers."""

from __future__ import annotations

from enum import Enum
from typing import TYPE_CHECKING, Any

from ..specifications.condition import FilterCondition

if TYPE_CHECKING:
    from collections.abc import Mapping

    from ..model.policies import SoftDeletePolicy


class DeletedVisibility(str, Enum):
    LIVE = "live"
    ALL = "all"
    ONLY_DELETED = "onlyDeleted"


def resolve_visibility(
    policy: SoftDeletePolicy | None,
    *,
    with_deleted: bool = False,
    only_deleted: bool = False,
) -> DeletedVisibility:
    """Map the request flags onto what a read of this model may see.

    The flags are ignored unless the policy allows querying deleted records.
    """
    if policy is None:
        return DeletedVisibility.ALL
    if not policy.allow_query_deleted:
        return DeletedVisibility.LIVE
    if only_deleted:
        return DeletedVisibility.ONLY_DELETED
    if with_deleted:
        return DeletedVisibility.ALL
    return DeletedVisibility.LIVE


def soft_delete_conditions(
    policy: SoftDeletePolicy | None, visibility: DeletedVisibility
) -> list[FilterCondition]:
    if policy is None or visibility is DeletedVisibility.ALL:
        return []
    return [FilterCondition.is_null(policy.field, visibility is DeletedVisibility.LIVE)]


def strip_deleted_field(
    policy: SoftDeletePolicy | None, data: Mapping[str, Any]
) -> dict[str, Any]:
    """Clients change the deletion marker only through delete/restore."""
    out = dict(data)
    if policy is not None:
        out.pop(policy.field, None)
    return out


def deletion_payload(policy: SoftDeletePolicy, now: Any) -> dict[str, Any]:
    return {policy.field: now}


def restore_payload(policy: SoftDeletePolicy) -> dict[str, Any]:
    return {policy.field: None}
