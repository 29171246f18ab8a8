# ispbill/api/tickets/models.py
from datetime import datetime
from typing import Optional
from pydantic import BaseModel, ConfigDict

from ...core.constants import TicketPriority, TicketStatus


class TicketCreate(BaseModel):
    customer_id: int
    subject: str
    description: str
    priority: TicketPriority = TicketPriority.MEDIUM
    model_config = ConfigDict(use_enum_values=True, validate_default=True)


class TicketUpdate(BaseModel):
    status: Optional[TicketStatus] = None
    priority: Optional[TicketPriority] = None
    assigned_to: Optional[int] = None
    model_config = ConfigDict(use_enum_values=True, validate_default=True)


class TicketRead(BaseModel):
    id: int
    tenant_id: Optional[int]
    customer_id: int
    subject: str
    description: str
    status: TicketStatus
    priority: TicketPriority
    assigned_to: Optional[int]
    created_at: datetime
    updated_at: datetime
    model_config = ConfigDict(from_attributes=True)
