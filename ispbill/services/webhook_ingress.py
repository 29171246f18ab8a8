# ispbill/services/webhook_ingress.py
"""
Inbound payment webhooks: authenticate, normalize, reconcile.

Status codes tell the provider whether to retry:
- 404 unknown gateway, 403 bad signature: rejected, never retried usefully.
- 500 unparseable payload or database failure: provider retries.
- 200 everything that was processed, replayed or cannot ever be matched.
"""

import logging
from dataclasses import dataclass
from typing import Callable, Optional

from sqlalchemy.exc import SQLAlchemyError

from ..core.config import Settings, get_settings
from ..core.errors import (
    AuthenticationFailure,
    MalformedPayloadError,
    UnknownGatewayError,
    UnresolvableReferenceError,
)
from .payment_gateways import get_gateway
from .payment_gateways.base import WebhookRequest, partial_reference
from .reconciliation import ReconciliationEngine, ReconciliationOutcome

logger = logging.getLogger(__name__)

# Fields that carry the merchant reference, per provider
REFERENCE_FIELDS = ("order_id", "external_id", "merchant_ref")


@dataclass
class WebhookOutcome:
    status_code: int
    message: str

    @property
    def success(self) -> bool:
        return 200 <= self.status_code < 300


def _reference_hint(request: WebhookRequest) -> str:
    """Partial reference for log lines; never the payload itself."""
    try:
        data = request.fields()
    except Exception:
        return "-"
    for key in REFERENCE_FIELDS:
        if data.get(key):
            return partial_reference(data[key])
    return "-"


class WebhookIngress:
    def __init__(
        self,
        reconciliation: ReconciliationEngine,
        settings: Optional[Settings] = None,
        gateway_factory: Callable = get_gateway,
    ):
        self.reconciliation = reconciliation
        self.settings = settings or get_settings()
        self.gateway_factory = gateway_factory

    def handle(self, gateway_name: str, request: WebhookRequest) -> WebhookOutcome:
        try:
            gateway = self.gateway_factory(gateway_name, self.settings)
        except UnknownGatewayError:
            logger.warning(f"[Webhook] Unknown gateway '{gateway_name}' from {request.client_ip}")
            return WebhookOutcome(404, "Unknown payment gateway")

        try:
            self._authenticate(gateway, request)
        except AuthenticationFailure as e:
            logger.warning(f"[Webhook] {e}")
            return WebhookOutcome(403, "Invalid signature")

        try:
            event = gateway.parse_webhook_data(request)
        except MalformedPayloadError as e:
            logger.error(f"[Webhook] Unparseable {gateway.name} payload from {request.client_ip}: {e}")
            return WebhookOutcome(500, "Invalid webhook data")

        try:
            result = self.reconciliation.apply(event)
        except UnresolvableReferenceError as e:
            # Acknowledged so the provider stops retrying; needs manual reconciliation
            logger.error(f"[Webhook] {e}")
            return WebhookOutcome(200, "Webhook received, reference not found")
        except SQLAlchemyError as e:
            logger.error(
                f"[Webhook] Database error on {gateway.name} transaction {event.transaction_id}: {e}"
            )
            return WebhookOutcome(500, "Internal server error")

        if result.outcome == ReconciliationOutcome.DUPLICATE:
            return WebhookOutcome(200, "Payment already processed")
        return WebhookOutcome(200, "Payment processed successfully")

    @staticmethod
    def _authenticate(gateway, request: WebhookRequest) -> None:
        """Raises AuthenticationFailure unless the provider signature checks out."""
        if not gateway.verify_webhook_signature(request):
            raise AuthenticationFailure(
                f"Invalid {gateway.name} signature from {request.client_ip} "
                f"(reference {_reference_hint(request)})"
            )
