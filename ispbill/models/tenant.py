# ispbill/models/tenant.py
"""
Base for tenant-owned tables.

There is no tenants table: a tenant is just an integer id stored on each
owned row. ``tenant_id = None`` marks a platform-operated (global) record,
visible only to super admins.
"""

from typing import Optional

from sqlmodel import Field, SQLModel


class TenantOwned(SQLModel):
    """
    Mixin adding ``tenant_id`` to a table model.

    Subclasses may set ``__tenant_parent__ = (ParentModel, "fk_attribute")``.
    When a record is created without a tenant, the tenant is copied from that
    parent (see TenantScopingEngine.resolve_owner_tenant). Set once, never changed.
    """

    tenant_id: Optional[int] = Field(default=None, index=True)

    __tenant_parent__ = None
