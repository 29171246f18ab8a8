# ispbill/models/ticket.py
"""
Support ticket model.
"""

from datetime import datetime
from typing import Optional
from sqlmodel import Field

from ..core.constants import TicketPriority, TicketStatus
from .customer import Customer
from .tenant import TenantOwned


class Ticket(TenantOwned, table=True):
    """
    Represents a support ticket.
    Inherits the tenant of the customer it was opened for.
    """

    __tablename__ = "tickets"
    __tenant_parent__ = (Customer, "customer_id")

    id: Optional[int] = Field(default=None, primary_key=True)
    customer_id: int = Field(foreign_key="customers.id", index=True)
    status: str = Field(default=TicketStatus.OPEN.value, index=True)
    priority: str = Field(default=TicketPriority.MEDIUM.value)
    subject: str = Field(nullable=False)
    description: str = Field(nullable=False)

    assigned_to: Optional[int] = Field(default=None, foreign_key="users.id")

    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow, sa_column_kwargs={"onupdate": datetime.utcnow})
