# ispbill/services/payment_gateways/midtrans.py
"""
Midtrans adapter (Snap API).
"""

import hashlib
import logging
from typing import Optional

from ...core.constants import PaymentStatus
from ...core.errors import GatewayError, MalformedPayloadError
from .base import (
    WIB,
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

STATUS_MAP = {
    "capture": PaymentStatus.SUCCESS,
    "settlement": PaymentStatus.SUCCESS,
    "pending": PaymentStatus.PENDING,
    "deny": PaymentStatus.FAILED,
    "cancel": PaymentStatus.FAILED,
    "failure": PaymentStatus.FAILED,
    "expire": PaymentStatus.EXPIRED,
}


class MidtransGateway(PaymentGatewayPort):
    name = "midtrans"

    @property
    def _auth(self):
        # Basic auth: server key as username, empty password
        return (self.settings.midtrans_server_key, "")

    def map_status(self, provider_status: Optional[str], fraud_status: Optional[str] = None, **context) -> PaymentStatus:
        if fraud_status == "deny":
            return PaymentStatus.FAILED
        return STATUS_MAP.get((provider_status or "").lower(), PaymentStatus.PENDING)

    def create_payment_link(self, invoice) -> str:
        details = checkout_details(invoice)
        order_id = build_merchant_reference(invoice.id)
        amount = int(invoice.amount)

        payload = {
            "transaction_details": {"order_id": order_id, "gross_amount": amount},
            "customer_details": {
                "first_name": details["customer_name"],
                "email": details["customer_email"],
                "phone": details["customer_phone"],
            },
            "item_details": [
                {
                    "id": details["item_id"],
                    "price": amount,
                    "quantity": 1,
                    "name": details["item_name"],
                }
            ],
            "callbacks": {"finish": f"{self.settings.app_url}/customer/invoices"},
        }

        result = self._request(
            "POST",
            f"{self.settings.midtrans_snap_url}/transactions",
            json=payload,
            auth=self._auth,
            headers={"Accept": "application/json"},
        )
        url = result.get("redirect_url")
        if not url and result.get("token"):
            base = self.settings.midtrans_snap_url.rsplit("/snap/", 1)[0]
            url = f"{base}/snap/v2/vtweb/{result['token']}"
        if not url:
            raise GatewayError("midtrans response has no redirect_url", gateway=self.name)

        logger.info(f"[midtrans] Payment link created for invoice {invoice.id} (order {order_id})")
        return url

    def get_payment_status(self, transaction_id: str) -> PaymentStatus:
        result = self._request(
            "GET",
            f"{self.settings.midtrans_api_url}/v2/{transaction_id}/status",
            auth=self._auth,
            headers={"Accept": "application/json"},
        )
        return self.map_status(result.get("transaction_status"), fraud_status=result.get("fraud_status"))

    def _verify(self, request: WebhookRequest) -> bool:
        data = request.fields()
        order_id = data.get("order_id")
        status_code = data.get("status_code")
        gross_amount = data.get("gross_amount")
        signature_key = data.get("signature_key")
        server_key = self.settings.midtrans_server_key

        if not (order_id and status_code and gross_amount and signature_key and server_key):
            return False

        raw = f"{order_id}{status_code}{gross_amount}{server_key}"
        expected = hashlib.sha512(raw.encode("utf-8")).hexdigest()
        return constant_time_equals(expected, signature_key)

    def _parse(self, request: WebhookRequest) -> NormalizedPaymentEvent:
        data = request.fields()
        transaction_id = data.get("transaction_id")
        if not transaction_id:
            raise MalformedPayloadError("midtrans notification has no transaction_id")

        order_id = data.get("order_id")
        fraud_status = data.get("fraud_status")
        status = self.map_status(data.get("transaction_status"), fraud_status=fraud_status)

        paid_at = None
        if status == PaymentStatus.SUCCESS:
            paid_at = parse_timestamp(
                data.get("settlement_time") or data.get("transaction_time"), default_tz=WIB
            )

        return NormalizedPaymentEvent(
            gateway=self.name,
            transaction_id=str(transaction_id),
            invoice_id=extract_invoice_id(order_id),
            status=status.value,
            amount=to_decimal(data.get("gross_amount")),
            paid_at=paid_at,
            metadata={
                "reference": order_id,
                "payment_type": data.get("payment_type"),
                "transaction_status": data.get("transaction_status"),
                "transaction_time": data.get("transaction_time"),
                "fraud_status": fraud_status,
            },
        )
