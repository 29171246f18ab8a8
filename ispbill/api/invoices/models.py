# ispbill/api/invoices/models.py
from datetime import date, datetime
from decimal import Decimal

from pydantic import BaseModel, ConfigDict


class Invoice(BaseModel):
    id: int
    tenant_id: int | None = None
    service_id: int
    amount: Decimal
    status: str
    invoice_date: date
    due_date: date
    payment_link: str | None = None
    paid_at: datetime | None = None
    model_config = ConfigDict(from_attributes=True)


class PaymentLinkRequest(BaseModel):
    # Configured default gateway when omitted
    gateway: str | None = None


class PaymentLink(BaseModel):
    invoice_id: int
    payment_link: str


class PaymentSyncResult(BaseModel):
    payment_id: int
    invoice_id: int
    outcome: str
    status: str
    invoice_status: str
