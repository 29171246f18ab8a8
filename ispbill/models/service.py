# ispbill/models/service.py
"""
Service model: an internet subscription of a customer.
"""
from typing import Optional
from sqlmodel import Field, Relationship
from datetime import date, datetime

from ..core.constants import ServiceStatus
from .customer import Customer
from .package import Package
from .tenant import TenantOwned


class Service(TenantOwned, table=True):
    """Internet service assigned to a customer. Inherits tenant from the customer."""

    __tablename__ = "services"
    __tenant_parent__ = (Customer, "customer_id")

    id: Optional[int] = Field(default=None, primary_key=True)
    customer_id: int = Field(foreign_key="customers.id", nullable=False, index=True)
    package_id: int = Field(foreign_key="packages.id", nullable=False)
    router_id: Optional[int] = Field(default=None, foreign_key="routers.id")
    username_pppoe: Optional[str] = Field(default=None, unique=True)
    ip_address: Optional[str] = Field(default=None)
    status: str = Field(default=ServiceStatus.PENDING.value, nullable=False, index=True)
    activation_date: Optional[date] = Field(default=None)
    # Paid-through date, extended by one billing cycle per paid invoice
    expiry_date: Optional[date] = Field(default=None, index=True)
    isolation_timestamp: Optional[datetime] = Field(default=None)
    created_at: Optional[datetime] = Field(default_factory=datetime.utcnow)

    customer: Optional[Customer] = Relationship()
    package: Optional[Package] = Relationship()

    @property
    def is_isolated(self) -> bool:
        return self.status == ServiceStatus.ISOLATED.value
