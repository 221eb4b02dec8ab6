"""
PolicyPipeline — applies tenancy then soft delete, in that fixed order.

Every read predicate the engine issues is built here:

    tenant predicate AND soft-delete predicate AND caller conditions

and every write payload passes through here before reaching an adapter.
"""

from __future__ import annotations

from collections.abc import Callable, Iterable, Mapping
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Any

from ..context import RequestContext
from ..specifications.condition import FilterCondition
from . import soft_delete, tenancy
from .soft_delete import DeletedVisibility

if TYPE_CHECKING:
    from ..model.model import KeyTuple, Model


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class PolicyScope:
    """Request-level inputs of the policy layer.

    Attributes:
        context: The request the tenant is resolved from.
        with_deleted: Client asked to include soft-deleted records.
        only_deleted: Client asked for soft-deleted records only.
    """

    context: RequestContext = field(default_factory=RequestContext)
    with_deleted: bool = False
    only_deleted: bool = False

    def visibility_for(self, model: Model) -> DeletedVisibility:
        return soft_delete.resolve_visibility(
            model.soft_delete,
            with_deleted=self.with_deleted,
            only_deleted=self.only_deleted,
        )

    def live(self) -> PolicyScope:
        """Same request, without deleted-record visibility."""
        return replace(self, with_deleted=False, only_deleted=False)

    def for_relations(self) -> PolicyScope:
        """Related records: any deleted-inclusion request widens to all."""
        return replace(
            self, with_deleted=self.with_deleted or self.only_deleted, only_deleted=False
        )


class PolicyPipeline:
    """Pure predicate/payload transformers for one or more models."""

    def __init__(self, clock: Callable[[], Any] = utc_now) -> None:
        self._clock = clock

    # -- reads -----------------------------------------------------------------

    def tenant_of(self, model: Model, scope: PolicyScope) -> Any | None:
        policy = model.multi_tenant
        if policy is None:
            return None
        tenant = tenancy.require_tenant(policy, scope.context)
        return model.coerce(policy.field, tenant) if tenant is not None else None

    def read_conditions(
        self,
        model: Model,
        scope: PolicyScope,
        conditions: Iterable[FilterCondition] = (),
    ) -> list[FilterCondition]:
        out: list[FilterCondition] = []
        tenant = self.tenant_of(model, scope)
        if tenant is not None:
            assert model.multi_tenant is not None
            out.append(FilterCondition.eq(model.multi_tenant.field, tenant))
        out.extend(
            soft_delete.soft_delete_conditions(
                model.soft_delete, scope.visibility_for(model)
            )
        )
        out.extend(conditions)
        return out

    def key_conditions(
        self, model: Model, key: KeyTuple, scope: PolicyScope
    ) -> list[FilterCondition]:
        """Primary-key predicate combined with the read policies."""
        return self.read_conditions(model, scope, model.key_conditions(key))

    def deleted_key_conditions(
        self, model: Model, key: KeyTuple, scope: PolicyScope
    ) -> list[FilterCondition]:
        """Tenant and key predicate restricted to soft-deleted records.

        Used by restore, independently of ``allow_query_deleted``.
        """
        assert model.soft_delete is not None
        out = self.read_conditions(model, scope.live())
        out = [c for c in out if c.field != model.soft_delete.field]
        out.append(FilterCondition.is_null(model.soft_delete.field, False))
        out.extend(model.key_conditions(key))
        return out

    # -- writes ----------------------------------------------------------------

    def prepare_create(
        self, model: Model, data: Mapping[str, Any], scope: PolicyScope
    ) -> dict[str, Any]:
        out = soft_delete.strip_deleted_field(model.soft_delete, data)
        tenant = self.tenant_of(model, scope)
        if tenant is not None:
            assert model.multi_tenant is not None
            out[model.multi_tenant.field] = tenant
        return out

    def prepare_update(self, model: Model, data: Mapping[str, Any]) -> dict[str, Any]:
        out = tenancy.strip_tenant(model.multi_tenant, data)
        out = soft_delete.strip_deleted_field(model.soft_delete, out)
        for pk in model.primary_keys:
            out.pop(pk, None)
        return out

    def deletion_payload(self, model: Model) -> dict[str, Any]:
        assert model.soft_delete is not None
        return soft_delete.deletion_payload(model.soft_delete, self._clock())

    def restore_payload(self, model: Model) -> dict[str, Any]:
        assert model.soft_delete is not None
        return soft_delete.restore_payload(model.soft_delete)
