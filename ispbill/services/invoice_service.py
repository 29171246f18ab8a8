# ispbill/services/invoice_service.py
"""
Invoice lifecycle: generation, overdue marking, isolation eligibility,
cancellation and payment links.

Status flow:
    unpaid -> overdue        (due date passed)
    unpaid/overdue -> paid   (reconciliation only)
    unpaid/overdue -> cancelled
Paid and cancelled are final.
"""

import logging
from datetime import date, timedelta
from typing import Callable, List, Optional

from sqlmodel import Session, select

from ..core.config import Settings, get_settings
from ..core.constants import OPEN_INVOICE_STATUSES, InvoiceStatus, ServiceStatus
from ..core.errors import InvalidInvoiceTransitionError, TenancyViolation
from ..core.tenancy import Principal
from ..models import Invoice, Package, Payment, Service
from .base_service import TenantScopedService
from .payment_gateways import get_gateway
from .reconciliation import ReconciliationEngine, ReconciliationResult
from .tenant_scope import TenantScopingEngine

logger = logging.getLogger(__name__)


class InvoiceLifecycleManager(TenantScopedService[Invoice]):
    """
    Principal-facing operations are scoped to the principal's tenant.
    Batch operations (generation, overdue, isolation) are system reads and
    bypass the scope explicitly.
    """

    def __init__(
        self,
        session: Session,
        principal: Principal,
        settings: Optional[Settings] = None,
        scoping: Optional[TenantScopingEngine] = None,
        gateway_factory: Callable = get_gateway,
        reconciliation: Optional[ReconciliationEngine] = None,
    ):
        super().__init__(session, Invoice, principal, scoping)
        self.settings = settings or get_settings()
        self.gateway_factory = gateway_factory
        self.reconciliation = reconciliation or ReconciliationEngine(
            session, self.settings, self.scoping, gateway_factory=gateway_factory
        )

    # --- Scoped reads ---

    def list_invoices(self, status: Optional[str] = None, service_id: Optional[int] = None) -> List[Invoice]:
        statement = select(Invoice).order_by(Invoice.invoice_date.desc(), Invoice.id.desc())
        if status:
            statement = statement.where(Invoice.status == status)
        if service_id is not None:
            statement = statement.where(Invoice.service_id == service_id)
        return self.session.exec(self._scoped(statement)).all()

    # --- Batch jobs ---

    def generate_due_invoices(self, today: Optional[date] = None) -> List[Invoice]:
        """
        One invoice per active service whose paid-through date is unset or
        reached, unless the service already has an open invoice.
        """
        today = today or date.today()

        open_statement = self.scoping.without_scope(
            select(Invoice.service_id).where(Invoice.status.in_(OPEN_INVOICE_STATUSES))
        )
        services_with_open = set(self.session.exec(open_statement).all())

        due_statement = self.scoping.without_scope(
            select(Service, Package)
            .join(Package, Package.id == Service.package_id)
            .where(Service.status == ServiceStatus.ACTIVE.value)
            .where((Service.expiry_date == None) | (Service.expiry_date <= today))  # noqa: E711
            .order_by(Service.id)
        )
        parent_lookup = self.scoping.parent_lookup_for(self.session)

        created = []
        for service, package in self.session.exec(due_statement).all():
            if service.id in services_with_open:
                continue
            invoice = Invoice(
                service_id=service.id,
                amount=package.price,
                status=InvoiceStatus.UNPAID.value,
                invoice_date=today,
                due_date=today + timedelta(days=self.settings.billing_cycle_days),
            )
            self.scoping.resolve_owner_tenant(invoice, parent_lookup)
            self.session.add(invoice)
            created.append(invoice)

        try:
            self.session.commit()
        except Exception:
            self.session.rollback()
            raise

        for invoice in created:
            self.session.refresh(invoice)
        logger.info(f"[Billing] {len(created)} invoice(s) generated for {today}")
        return created

    def mark_overdue(self, today: Optional[date] = None) -> int:
        """Unpaid invoices past their due date become overdue. Returns the count."""
        today = today or date.today()
        statement = self.scoping.without_scope(
            select(Invoice)
            .where(Invoice.status == InvoiceStatus.UNPAID.value)
            .where(Invoice.due_date < today)
        )
        invoices = self.session.exec(statement).all()
        for invoice in invoices:
            invoice.status = InvoiceStatus.OVERDUE.value
            self.session.add(invoice)

        try:
            self.session.commit()
        except Exception:
            self.session.rollback()
            raise

        if invoices:
            logger.info(f"[Billing] {len(invoices)} invoice(s) marked overdue")
        return len(invoices)

    def isolation_candidates(self, today: Optional[date] = None) -> List[Service]:
        """
        Active services with an open invoice past due date plus grace period.
        Only reports them: isolating a service is the router layer's job.
        """
        today = today or date.today()
        cutoff = today - timedelta(days=self.settings.billing_grace_period_days)
        statement = self.scoping.without_scope(
            select(Service)
            .join(Invoice, Invoice.service_id == Service.id)
            .where(Service.status == ServiceStatus.ACTIVE.value)
            .where(Invoice.status.in_(OPEN_INVOICE_STATUSES))
            .where(Invoice.due_date < cutoff)
            .distinct()
            .order_by(Service.id)
        )
        return self.session.exec(statement).all()

    # --- Principal actions ---

    def cancel(self, invoice_id: int) -> Invoice:
        """
        Raises:
            TenancyViolation: invoice not visible.
            InvalidInvoiceTransitionError: invoice is paid or already cancelled.
        """
        invoice = self.get_by_id(invoice_id)
        if not invoice.is_open:
            raise InvalidInvoiceTransitionError(
                f"Invoice {invoice.id} is {invoice.status} and cannot be cancelled"
            )

        invoice.status = InvoiceStatus.CANCELLED.value
        try:
            self.session.add(invoice)
            self.session.commit()
            self.session.refresh(invoice)
        except Exception:
            self.session.rollback()
            raise

        logger.info(f"[Billing] Invoice {invoice.id} cancelled by user {self.principal.user_id}")
        return invoice

    def create_payment_link(self, invoice_id: int, gateway_name: Optional[str] = None) -> str:
        """
        Checkout URL for an open invoice, saved on the invoice.
        GatewayError propagates; the invoice is left unchanged in that case.
        """
        invoice = self.get_by_id(invoice_id)
        if not invoice.is_open:
            raise InvalidInvoiceTransitionError(
                f"Invoice {invoice.id} is {invoice.status}, no payment link can be issued"
            )

        gateway = self.gateway_factory(gateway_name or self.settings.payment_gateway_default, self.settings)
        logger.info(f"[Billing] Creating {gateway.name} payment link for invoice {invoice.id}")
        try:
            url = gateway.create_payment_link(invoice)
        except Exception as e:
            logger.error(f"[Billing] {gateway.name} payment link failed for invoice {invoice.id}: {e}")
            raise

        invoice.payment_link = url
        try:
            self.session.add(invoice)
            self.session.commit()
        except Exception:
            self.session.rollback()
            raise
        return url

    def sync_payment(self, transaction_id: str) -> ReconciliationResult:
        """Poll the gateway for a payment on an invoice visible to the principal."""
        payment = self.session.exec(
            select(Payment).where(Payment.transaction_id == transaction_id)
        ).first()
        if payment is None:
            raise TenancyViolation(f"Payment {transaction_id} not found")
        # Visibility follows the invoice
        self.get_by_id(payment.invoice_id)
        return self.reconciliation.sync_payment_status(transaction_id)
