# ispbill/core/tenancy.py
"""
Acting principal for the current operation.

The principal is resolved once per request and passed explicitly into the
services; nothing reads it from global state. Authentication itself lives
outside this package: the auth layer is expected to put the logged-in user
on ``request.state.user``.
"""

from dataclasses import dataclass
from typing import Any, Optional

from fastapi import Depends, HTTPException, Request, status

from .constants import UserRole


@dataclass(frozen=True)
class Principal:
    user_id: Optional[int] = None
    role: Optional[str] = None
    tenant_id: Optional[int] = None

    @property
    def is_privileged(self) -> bool:
        """Only super admins see every tenant (and unowned records)."""
        return self.role == UserRole.SUPER_ADMIN.value

    @property
    def is_authenticated(self) -> bool:
        return self.role is not None

    @classmethod
    def anonymous(cls) -> "Principal":
        return cls()

    @classmethod
    def system(cls) -> "Principal":
        """Principal for scheduled jobs and webhook processing."""
        return cls(role=UserRole.SUPER_ADMIN.value)

    @classmethod
    def from_user(cls, user: Any) -> "Principal":
        role = getattr(user, "role", None)
        return cls(
            user_id=getattr(user, "id", None),
            role=role.value if isinstance(role, UserRole) else role,
            tenant_id=getattr(user, "tenant_id", None),
        )


def get_current_principal(request: Request) -> Principal:
    """
    Dependency returning the acting principal.
    Requests without an authenticated user get the anonymous principal,
    which is tenant-less and therefore sees no tenant-owned rows.
    """
    user = getattr(request.state, "user", None)
    if user is None:
        return Principal.anonymous()
    if isinstance(user, Principal):
        return user
    return Principal.from_user(user)


class RoleChecker:
    """
    Dependency class to check if the current principal has one of the allowed roles.

    Usage:
        @router.get("/billing-only")
        def endpoint(principal: Principal = Depends(RoleChecker(["billing"]))):
            ...
    """

    def __init__(self, allowed_roles: list[str]):
        self.allowed_roles = allowed_roles

    def __call__(self, principal: Principal = Depends(get_current_principal)) -> Principal:
        if not principal.is_authenticated:
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="Could not validate credentials",
            )
        if principal.role not in self.allowed_roles:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f"Access denied. Required role: {', '.join(self.allowed_roles)}. Your role: {principal.role}",
            )
        return principal


# Pre-configured role checkers for common use cases
require_billing = RoleChecker(
    [
        UserRole.SUPER_ADMIN.value,
        UserRole.ADMIN.value,
        UserRole.RESELLER.value,
        UserRole.BILLING.value,
    ]
)
require_support = RoleChecker(
    [
        UserRole.SUPER_ADMIN.value,
        UserRole.ADMIN.value,
        UserRole.RESELLER.value,
        UserRole.TECHNICIAN.value,
    ]
)
# Catalog changes affect every tenant
require_super_admin = RoleChecker([UserRole.SUPER_ADMIN.value])
