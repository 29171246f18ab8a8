# ispbill/models/invoice.py
"""
Invoice model for service billing.
"""

from datetime import date, datetime
from decimal import Decimal
from typing import Optional

from sqlalchemy import CheckConstraint
from sqlmodel import Field, Relationship

from ..core.constants import OPEN_INVOICE_STATUSES, InvoiceStatus
from .service import Service
from .tenant import TenantOwned


class Invoice(TenantOwned, table=True):
    """
    Invoice issued for one billing cycle of a service.

    Fields:
    - id: Auto-increment primary key
    - service_id: Billed service (required)
    - tenant_id: Copied from the service when the invoice is created
    - amount: Amount due, 2 decimal places
    - status: unpaid, paid, overdue, cancelled
    - invoice_date / due_date: Issue and due dates (due_date >= invoice_date)
    - payment_link: Last checkout URL issued by a payment gateway
    - paid_at: Settlement time, set if and only if status is paid
    """

    __tablename__ = "invoices"
    __tenant_parent__ = (Service, "service_id")
    __table_args__ = (
        CheckConstraint("due_date >= invoice_date", name="ck_invoices_due_after_issue"),
        CheckConstraint(
            "(status = 'paid' AND paid_at IS NOT NULL) OR (status != 'paid' AND paid_at IS NULL)",
            name="ck_invoices_paid_at_iff_paid",
        ),
    )

    id: Optional[int] = Field(default=None, primary_key=True)
    service_id: int = Field(foreign_key="services.id", nullable=False, index=True)
    amount: Decimal = Field(max_digits=10, decimal_places=2)
    status: str = Field(default=InvoiceStatus.UNPAID.value, nullable=False, index=True)
    invoice_date: date = Field(nullable=False, index=True)
    due_date: date = Field(nullable=False, index=True)
    payment_link: Optional[str] = Field(default=None)
    paid_at: Optional[datetime] = Field(default=None)
    created_at: Optional[datetime] = Field(default_factory=datetime.utcnow)
    updated_at: Optional[datetime] = Field(
        default_factory=datetime.utcnow,
        sa_column_kwargs={"onupdate": datetime.utcnow},
    )

    service: Optional[Service] = Relationship()

    @property
    def is_open(self) -> bool:
        return self.status in OPEN_INVOICE_STATUSES

    @property
    def is_paid(self) -> bool:
        return self.status == InvoiceStatus.PAID.value

    def mark_as_paid(self, paid_at: datetime) -> None:
        """Set status to paid together with its settlement timestamp."""
        self.status = InvoiceStatus.PAID.value
        self.paid_at = paid_at
