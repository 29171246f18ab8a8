# ispbill/services/reconciliation.py
"""
Applies normalized payment events (webhooks and polls) to Payment and
Invoice records.

Rules:
- One Payment per gateway transaction_id; replays are no-ops.
- Terminal payment statuses (success, failed, expired) are never overwritten.
- An invoice moves to paid at most once; cancelled invoices are not reopened.
- A concurrent insert of the same transaction is retried and takes the
  update path on the next attempt.
"""

import logging
from dataclasses import dataclass
from datetime import date, datetime, timedelta
from enum import Enum
from typing import Callable, Optional

from sqlalchemy.exc import IntegrityError
from sqlmodel import Session, select

from ..core.config import Settings, get_settings
from ..core.constants import InvoiceStatus, PaymentStatus
from ..core.errors import UnresolvableReferenceError
from ..models import Invoice, Payment, Service
from .payment_gateways import get_gateway
from .payment_gateways.base import NormalizedPaymentEvent, partial_reference
from .tenant_scope import TenantScopingEngine, tenant_scoping

logger = logging.getLogger(__name__)

MAX_ATTEMPTS = 3

RestoreHook = Callable[[Service], None]


class ReconciliationOutcome(str, Enum):
    CREATED = "created"
    UPDATED = "updated"
    DUPLICATE = "duplicate"


@dataclass
class ReconciliationResult:
    payment_id: int
    invoice_id: int
    outcome: ReconciliationOutcome
    previous_status: Optional[str]
    status: str
    invoice_status: str
    invoice_marked_paid: bool = False


class ReconciliationEngine:
    """
    Reconciles payment events. Runs as the system: lookups bypass tenant
    scope explicitly since a webhook carries no principal.
    """

    def __init__(
        self,
        session: Session,
        settings: Optional[Settings] = None,
        scoping: Optional[TenantScopingEngine] = None,
        restore_hook: Optional[RestoreHook] = None,
        gateway_factory: Callable = get_gateway,
    ):
        self.session = session
        self.settings = settings or get_settings()
        self.scoping = scoping or tenant_scoping
        self.restore_hook = restore_hook
        self.gateway_factory = gateway_factory

    # --- Public API ---

    def apply(self, event: NormalizedPaymentEvent) -> ReconciliationResult:
        """
        Apply one event in its own transaction.

        Raises:
            UnresolvableReferenceError: no Payment for the transaction and no
                Invoice for the event's reference.
        """
        for attempt in range(1, MAX_ATTEMPTS + 1):
            try:
                result, restore_service = self._apply_once(event)
                self.session.commit()
            except IntegrityError:
                self.session.rollback()
                if attempt == MAX_ATTEMPTS:
                    logger.error(
                        f"[Reconciliation] Giving up on {event.gateway} transaction "
                        f"{event.transaction_id} after {attempt} attempts"
                    )
                    raise
                logger.warning(
                    f"[Reconciliation] Concurrent write on {event.gateway} transaction "
                    f"{event.transaction_id}, retrying ({attempt}/{MAX_ATTEMPTS})"
                )
                continue
            except Exception:
                self.session.rollback()
                raise

            logger.info(
                f"[Reconciliation] {event.gateway} {event.transaction_id}: {result.outcome.value} "
                f"(payment {result.payment_id} {result.previous_status} -> {result.status}, "
                f"invoice {result.invoice_id} {result.invoice_status})"
            )
            if restore_service is not None:
                self._restore(restore_service)
            return result

    def sync_payment_status(self, transaction_id: str) -> ReconciliationResult:
        """
        Pull path: ask the gateway for the current status of a known
        transaction and apply it like a webhook.
        Raises GatewayError if the provider call fails.
        """
        payment = self._find_payment(transaction_id, lock=False)
        if payment is None:
            raise UnresolvableReferenceError(f"Unknown transaction {transaction_id}")

        gateway = self.gateway_factory(payment.payment_gateway, self.settings)
        status = gateway.get_payment_status(transaction_id)
        event = NormalizedPaymentEvent(
            gateway=payment.payment_gateway,
            transaction_id=transaction_id,
            invoice_id=str(payment.invoice_id),
            status=PaymentStatus(status).value,
            amount=payment.amount,
            paid_at=None,
            metadata={"polled_status": PaymentStatus(status).value},
        )
        return self.apply(event)

    # --- Unit of work ---

    def _apply_once(self, event: NormalizedPaymentEvent):
        payment = self._find_payment(event.transaction_id, lock=True)

        if payment is None:
            invoice = self._resolve_invoice(event)
            payment = Payment(
                invoice_id=invoice.id,
                payment_gateway=event.gateway,
                transaction_id=event.transaction_id,
                amount=event.amount,
                status=PaymentStatus.PENDING.value,
                gateway_metadata=dict(event.metadata),
            )
            self.session.add(payment)
            # Surfaces a concurrent insert of the same transaction as IntegrityError
            self.session.flush()
            outcome = ReconciliationOutcome.CREATED
            previous_status = None
        else:
            invoice = self._get_invoice(payment.invoice_id)
            previous_status = payment.status
            if payment.is_terminal or payment.status == event.status:
                return (
                    ReconciliationResult(
                        payment_id=payment.id,
                        invoice_id=invoice.id,
                        outcome=ReconciliationOutcome.DUPLICATE,
                        previous_status=previous_status,
                        status=payment.status,
                        invoice_status=invoice.status,
                    ),
                    None,
                )
            outcome = ReconciliationOutcome.UPDATED

        if payment.payment_gateway != event.gateway:
            logger.warning(
                f"[Reconciliation] Transaction {event.transaction_id} belongs to "
                f"{payment.payment_gateway}, event came from {event.gateway}"
            )

        payment.status = event.status
        self.session.add(payment)

        marked_paid = False
        restore_service = None
        if event.status == PaymentStatus.SUCCESS.value:
            marked_paid, restore_service = self._settle_invoice(invoice, event)

        self.session.flush()
        return (
            ReconciliationResult(
                payment_id=payment.id,
                invoice_id=invoice.id,
                outcome=outcome,
                previous_status=previous_status,
                status=payment.status,
                invoice_status=invoice.status,
                invoice_marked_paid=marked_paid,
            ),
            restore_service,
        )

    def _settle_invoice(self, invoice: Invoice, event: NormalizedPaymentEvent):
        if invoice.is_paid:
            logger.info(
                f"[Reconciliation] Invoice {invoice.id} already paid, "
                f"{event.gateway} {event.transaction_id} recorded only"
            )
            return False, None
        if invoice.status == InvoiceStatus.CANCELLED.value:
            logger.warning(
                f"[Reconciliation] Successful payment {event.transaction_id} for cancelled "
                f"invoice {invoice.id}, invoice left cancelled (manual refund or reissue needed)"
            )
            return False, None

        if event.amount < invoice.amount:
            logger.warning(
                f"[Reconciliation] Invoice {invoice.id} paid {event.amount}, expected {invoice.amount}"
            )

        invoice.mark_as_paid(event.paid_at or datetime.utcnow())
        self.session.add(invoice)

        service = self._extend_service(invoice.service_id)
        restore_service = service if service is not None and service.is_isolated else None
        return True, restore_service

    def _extend_service(self, service_id: int) -> Optional[Service]:
        statement = self.scoping.without_scope(select(Service).where(Service.id == service_id))
        service = self.session.exec(statement).first()
        if service is None:
            return None

        today = date.today()
        start = service.expiry_date if service.expiry_date and service.expiry_date > today else today
        service.expiry_date = start + timedelta(days=self.settings.billing_cycle_days)
        self.session.add(service)
        return service

    def _restore(self, service: Service) -> None:
        if self.restore_hook is None:
            logger.info(f"[Reconciliation] Service {service.id} is isolated, no restore hook configured")
            return
        try:
            self.restore_hook(service)
        except Exception as e:
            # Payment is committed; restoration can be retried from the service screen
            logger.error(f"[Reconciliation] Restore hook failed for service {service.id}: {e}")

    # --- Lookups (system reads) ---

    def _find_payment(self, transaction_id: str, lock: bool) -> Optional[Payment]:
        statement = select(Payment).where(Payment.transaction_id == transaction_id)
        if lock:
            statement = statement.with_for_update()
        return self.session.exec(self.scoping.without_scope(statement)).first()

    def _get_invoice(self, invoice_id: int) -> Invoice:
        statement = select(Invoice).where(Invoice.id == invoice_id).with_for_update()
        return self.session.exec(self.scoping.without_scope(statement)).one()

    def _resolve_invoice(self, event: NormalizedPaymentEvent) -> Invoice:
        try:
            invoice_id = int(event.invoice_id)
        except (TypeError, ValueError):
            invoice_id = None

        invoice = None
        if invoice_id is not None:
            statement = select(Invoice).where(Invoice.id == invoice_id).with_for_update()
            invoice = self.session.exec(self.scoping.without_scope(statement)).first()

        if invoice is None:
            raise UnresolvableReferenceError(
                f"{event.gateway} transaction {event.transaction_id} references unknown "
                f"invoice {partial_reference(event.reference)}"
            )
        return invoice
