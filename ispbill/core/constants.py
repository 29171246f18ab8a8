"""
Centralized constants for the billing system.
Removes "magic strings" and gives typed values for the status vocabularies.
"""

from enum import Enum, unique


@unique
class UserRole(str, Enum):
    """Roles of back-office users."""

    SUPER_ADMIN = "super_admin"
    ADMIN = "admin"
    RESELLER = "reseller"
    TECHNICIAN = "technician"
    BILLING = "billing"
    CUSTOMER = "customer"


@unique
class CustomerStatus(str, Enum):
    """Customer onboarding and account states."""

    PENDING_SURVEY = "pending_survey"
    SURVEY_SCHEDULED = "survey_scheduled"
    SURVEY_COMPLETE = "survey_complete"
    APPROVED = "approved"
    ACTIVE = "active"
    SUSPENDED = "suspended"
    TERMINATED = "terminated"


@unique
class ServiceStatus(str, Enum):
    """Internet service states."""

    PENDING = "pending"
    ACTIVE = "active"
    ISOLATED = "isolated"
    SUSPENDED = "suspended"
    TERMINATED = "terminated"
    PROVISIONING_FAILED = "provisioning_failed"


@unique
class InvoiceStatus(str, Enum):
    """Invoice states. PAID and CANCELLED are terminal."""

    UNPAID = "unpaid"
    PAID = "paid"
    OVERDUE = "overdue"
    CANCELLED = "cancelled"


# Invoices that can still be paid, cancelled or marked overdue
OPEN_INVOICE_STATUSES = (InvoiceStatus.UNPAID.value, InvoiceStatus.OVERDUE.value)


@unique
class PaymentStatus(str, Enum):
    """Canonical payment vocabulary. Adapters map every provider status into these four."""

    PENDING = "pending"
    SUCCESS = "success"
    FAILED = "failed"
    EXPIRED = "expired"


TERMINAL_PAYMENT_STATUSES = (
    PaymentStatus.SUCCESS.value,
    PaymentStatus.FAILED.value,
    PaymentStatus.EXPIRED.value,
)


@unique
class TicketStatus(str, Enum):
    OPEN = "open"
    IN_PROGRESS = "in_progress"
    RESOLVED = "resolved"
    CLOSED = "closed"


@unique
class TicketPriority(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


@unique
class GatewayName(str, Enum):
    """Supported payment gateways (closed set, used in the webhook route)."""

    MIDTRANS = "midtrans"
    XENDIT = "xendit"
    TRIPAY = "tripay"
