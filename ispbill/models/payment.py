# ispbill/models/payment.py
"""
Payment model: one attempt to settle an invoice through a payment gateway.
"""

from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, Optional

from sqlalchemy import JSON, Column
from sqlmodel import Field, SQLModel

from ..core.constants import TERMINAL_PAYMENT_STATUSES, PaymentStatus


class Payment(SQLModel, table=True):
    """
    Payment model representing gateway transactions.

    Fields:
    - id: Auto-increment primary key
    - invoice_id: Foreign key to invoices table (required)
    - payment_gateway: midtrans, xendit, tripay
    - transaction_id: Gateway transaction id, unique across the system
    - amount: Amount reported by the gateway
    - status: pending, success, failed, expired
    - gateway_metadata: Raw gateway data, stored as-is and never interpreted
    """

    __tablename__ = "payments"

    id: Optional[int] = Field(default=None, primary_key=True)
    invoice_id: int = Field(foreign_key="invoices.id", nullable=False, index=True)
    payment_gateway: str = Field(nullable=False, index=True)
    transaction_id: str = Field(nullable=False, unique=True, index=True)
    amount: Decimal = Field(max_digits=10, decimal_places=2)
    status: str = Field(default=PaymentStatus.PENDING.value, nullable=False, index=True)
    gateway_metadata: Dict[str, Any] = Field(default_factory=dict, sa_column=Column(JSON))
    created_at: Optional[datetime] = Field(default_factory=datetime.utcnow)
    updated_at: Optional[datetime] = Field(
        default_factory=datetime.utcnow,
        sa_column_kwargs={"onupdate": datetime.utcnow},
    )

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_PAYMENT_STATUSES
