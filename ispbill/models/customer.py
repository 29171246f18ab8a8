# ispbill/models/customer.py
"""
Customer model for ISP subscriber management.
"""
from typing import Optional
from sqlmodel import Field
from datetime import datetime

from ..core.constants import CustomerStatus
from .tenant import TenantOwned


class Customer(TenantOwned, table=True):
    """
    Customer model representing ISP subscribers.

    Fields:
    - id: Auto-increment primary key
    - tenant_id: Owning reseller (None = operated by the platform)
    - name: Customer name (required)
    - email: Email address
    - phone: Contact phone
    - address: Installation address
    - status: Onboarding/account status (pending_survey ... terminated)
    - created_at: Registration timestamp
    """

    __tablename__ = "customers"

    id: Optional[int] = Field(default=None, primary_key=True)
    name: str = Field(nullable=False)
    email: Optional[str] = Field(default=None)
    phone: Optional[str] = Field(default=None)
    address: Optional[str] = Field(default=None)
    status: str = Field(default=CustomerStatus.PENDING_SURVEY.value, nullable=False, index=True)
    created_at: Optional[datetime] = Field(default_factory=datetime.utcnow)
