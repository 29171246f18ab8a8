# ispbill/services/tenant_scope.py
"""
Tenant isolation for every tenant-owned table.

Reads: ``apply_read_scope`` adds a loader criteria to the statement so that
every tenant-owned entity it touches (joined ones included) is limited to
the principal's tenant. Super admins see everything, tenant-less principals
see nothing.

Writes: ``assign_owner_tenant`` stamps ``tenant_id`` on a new record before
its first flush, from the acting principal or from the record's declared
parent (Service -> Customer, Invoice -> Service, Ticket -> Customer).

``guard_session`` makes a session refuse any read of a tenant-owned table
that went through neither ``apply_read_scope``/``scope_to_tenant`` nor the
explicit ``without_scope`` escape hatch.
"""

import logging
from typing import Any, Callable, Optional, Type

from sqlalchemy import event, false
from sqlalchemy.orm import ORMExecuteState, with_loader_criteria
from sqlmodel import Session, select

from ..core.errors import UnscopedQueryError
from ..core.tenancy import Principal
from ..models.tenant import TenantOwned

logger = logging.getLogger(__name__)

# Execution options used to mark how a statement was scoped
SCOPED_OPTION = "tenant_scoped"
BYPASS_OPTION = "tenant_scope_bypass"

ParentLookup = Callable[[Type[Any], Any], Optional[Any]]


def tenant_owned_models() -> list:
    """Every mapped table that carries ``tenant_id``."""
    found = []
    pending = list(TenantOwned.__subclasses__())
    while pending:
        cls = pending.pop()
        pending.extend(cls.__subclasses__())
        if hasattr(cls, "__table__") and cls not in found:
            found.append(cls)
    return found


def _tenant_criteria(tenant_id: int) -> list:
    # One criteria per mapped model; the mixin itself has no mapped column
    return [
        with_loader_criteria(model, lambda cls: cls.tenant_id == tenant_id, include_aliases=True)
        for model in tenant_owned_models()
    ]


def _no_rows_criteria() -> list:
    return [
        with_loader_criteria(model, lambda cls: false(), include_aliases=True)
        for model in tenant_owned_models()
    ]


class TenantScopingEngine:
    """
    Applies and bypasses tenant filtering, and assigns ownership on creation.
    Stateless; one instance can be shared.
    """

    # --- Reads ---

    def apply_read_scope(self, statement, principal: Principal):
        """Restrict ``statement`` to what ``principal`` may see."""
        if principal.is_privileged:
            return statement.execution_options(**{SCOPED_OPTION: True})

        if principal.tenant_id is None:
            # Tenant-less and not privileged: fail closed
            criteria = _no_rows_criteria()
        else:
            criteria = _tenant_criteria(principal.tenant_id)

        return statement.options(*criteria).execution_options(**{SCOPED_OPTION: True})

    def scope_to_tenant(self, statement, tenant_id: int):
        """Limit ``statement`` to one tenant (cross-tenant inspection by super admins)."""
        return statement.options(*_tenant_criteria(tenant_id)).execution_options(
            **{SCOPED_OPTION: True}
        )

    def without_scope(self, statement):
        """
        Explicit escape hatch for operational code (reconciliation, jobs, reports).
        Must be called deliberately; unscoped reads are otherwise rejected.
        """
        return statement.execution_options(**{BYPASS_OPTION: True})

    # --- Writes ---

    def resolve_owner_tenant(self, record: TenantOwned, parent_lookup: ParentLookup) -> Optional[int]:
        """
        Copy the tenant of the record's declared parent when the record has none.

        No-op if the tenant is already set, the model declares no parent, the
        parent is not found or the parent is unowned itself. A missing parent
        does not raise: callers that need a tenant must validate the parent.
        """
        if record.tenant_id is not None:
            return record.tenant_id

        parent_link = getattr(type(record), "__tenant_parent__", None)
        if not parent_link:
            return None

        parent_model, foreign_key = parent_link
        parent_id = getattr(record, foreign_key, None)
        if parent_id is None:
            return None

        parent = parent_lookup(parent_model, parent_id)
        if parent is None:
            logger.debug(
                f"{parent_model.__name__} {parent_id} not found, "
                f"{type(record).__name__} stays unowned"
            )
            return None

        if parent.tenant_id is not None:
            record.tenant_id = parent.tenant_id
        return record.tenant_id

    def assign_owner_tenant(
        self, record: TenantOwned, principal: Principal, parent_lookup: ParentLookup
    ) -> Optional[int]:
        """
        Ownership for a record being created. Must run before the first flush.
        Order: tenant already on the record, the acting principal's tenant,
        then the parent chain.
        """
        if record.tenant_id is None and principal.tenant_id is not None:
            record.tenant_id = principal.tenant_id
        return self.resolve_owner_tenant(record, parent_lookup)

    def parent_lookup_for(self, session: Session) -> ParentLookup:
        """Parent lookup by primary key, unscoped: ownership comes from the real parent."""

        def lookup(model: Type[Any], pk: Any) -> Optional[Any]:
            statement = self.without_scope(select(model).where(model.id == pk))
            return session.exec(statement).first()

        return lookup


# --- Session guard ---


def _is_tenant_owned(mapper) -> bool:
    return issubclass(mapper.class_, TenantOwned)


def _check_scoped(orm_execute_state: ORMExecuteState) -> None:
    if not orm_execute_state.is_select:
        return
    # Lazy loads and attribute refreshes follow from an already scoped read
    if orm_execute_state.is_relationship_load or orm_execute_state.is_column_load:
        return

    options = orm_execute_state.execution_options
    if options.get(SCOPED_OPTION) or options.get(BYPASS_OPTION):
        return

    owned = [m.class_.__name__ for m in orm_execute_state.all_mappers if _is_tenant_owned(m)]
    if owned:
        raise UnscopedQueryError(
            f"Unscoped read of tenant-owned table(s): {', '.join(owned)}"
        )


def guard_session(session: Session) -> Session:
    """Reject unscoped reads of tenant-owned tables on this session."""
    if not event.contains(session, "do_orm_execute", _check_scoped):
        event.listen(session, "do_orm_execute", _check_scoped)
    return session


# Shared instance
tenant_scoping = TenantScopingEngine()
