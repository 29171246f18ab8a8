# ispbill/models/user.py
"""
User model.
Login and sessions are handled by the authentication layer; billing only
needs the role and the tenant of the acting user.
"""

from typing import Optional

from sqlmodel import Field, SQLModel

from ..core.constants import UserRole


class User(SQLModel, table=True):
    """
    Back-office user.

    - role: super_admin, admin, reseller, technician, billing, customer
    - tenant_id: tenant the user acts for (None for platform staff)
    """

    __tablename__ = "users"

    id: Optional[int] = Field(default=None, primary_key=True)
    username: str = Field(index=True, unique=True, nullable=False, max_length=100)
    email: Optional[str] = Field(default=None, max_length=320)
    role: str = Field(default=UserRole.ADMIN.value, max_length=50)
    tenant_id: Optional[int] = Field(default=None, index=True)
    is_active: bool = Field(default=True, nullable=False)

    @property
    def disabled(self) -> bool:
        return not self.is_active
