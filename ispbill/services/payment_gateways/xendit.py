# ispbill/services/payment_gateways/xendit.py
"""
Xendit adapter (Invoice API).

Xendit authenticates callbacks with a static token in ``X-Callback-Token``
rather than a per-message signature. The token is compared in constant time.
"""

import logging
from typing import Optional

from ...core.constants import PaymentStatus
from ...core.errors import GatewayError, MalformedPayloadError
from .base import (
    NormalizedPaymentEvent,
    PaymentGatewayPort,
    WebhookRequest,
    build_merchant_reference,
    checkout_details,
    constant_time_equals,
    extract_invoice_id,
    parse_timestamp,
    to_decimal,
)

logger = logging.getLogger(__name__)

API_URL = "https://api.xendit.co"
INVOICE_DURATION_SECONDS = 86400

STATUS_MAP = {
    "PAID": PaymentStatus.SUCCESS,
    "SETTLED": PaymentStatus.SUCCESS,
    "PENDING": PaymentStatus.PENDING,
    "EXPIRED": PaymentStatus.EXPIRED,
    "FAILED": PaymentStatus.FAILED,
}


class XenditGateway(PaymentGatewayPort):
    name = "xendit"

    @property
    def _auth(self):
        return (self.settings.xendit_secret_key, "")

    def map_status(self, provider_status: Optional[str], **context) -> PaymentStatus:
        return STATUS_MAP.get((provider_status or "").upper(), PaymentStatus.PENDING)

    def create_payment_link(self, invoice) -> str:
        details = checkout_details(invoice)
        external_id = build_merchant_reference(invoice.id)
        amount = float(invoice.amount)
        return_url = f"{self.settings.app_url}/customer/invoices"

        payload = {
            "external_id": external_id,
            "amount": amount,
            "payer_email": details["customer_email"],
            "description": f"Payment {details['item_name']}",
            "invoice_duration": INVOICE_DURATION_SECONDS,
            "currency": "IDR",
            "success_redirect_url": return_url,
            "failure_redirect_url": return_url,
            "customer": {
                "given_names": details["customer_name"],
                "mobile_number": details["customer_phone"],
            },
            "items": [{"name": details["item_name"], "quantity": 1, "price": amount}],
        }

        result = self._request("POST", f"{API_URL}/v2/invoices", json=payload, auth=self._auth)
        url = result.get("invoice_url")
        if not url:
            raise GatewayError("xendit response has no invoice_url", gateway=self.name)

        logger.info(
            f"[xendit] Payment link created for invoice {invoice.id} "
            f"(external_id {external_id}, xendit id {result.get('id')})"
        )
        return url

    def get_payment_status(self, transaction_id: str) -> PaymentStatus:
        result = self._request("GET", f"{API_URL}/v2/invoices/{transaction_id}", auth=self._auth)
        return self.map_status(result.get("status"))

    def _verify(self, request: WebhookRequest) -> bool:
        return constant_time_equals(
            self.settings.xendit_webhook_token, request.header("X-Callback-Token")
        )

    def _parse(self, request: WebhookRequest) -> NormalizedPaymentEvent:
        data = request.fields()
        transaction_id = data.get("id")
        if not transaction_id:
            raise MalformedPayloadError("xendit callback has no id")

        external_id = data.get("external_id")
        status = self.map_status(data.get("status"))
        paid_at = parse_timestamp(data.get("paid_at")) if status == PaymentStatus.SUCCESS else None

        return NormalizedPaymentEvent(
            gateway=self.name,
            transaction_id=str(transaction_id),
            invoice_id=extract_invoice_id(external_id),
            status=status.value,
            amount=to_decimal(data.get("amount")),
            paid_at=paid_at,
            metadata={
                "reference": external_id,
                "provider_status": data.get("status"),
                "payment_method": data.get("payment_method"),
                "payment_channel": data.get("payment_channel"),
                "paid_amount": data.get("paid_amount"),
            },
        )
