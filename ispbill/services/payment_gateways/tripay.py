# ispbill/services/payment_gateways/tripay.py
"""
Tripay adapter (closed payment).
"""

import logging
import time
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
    hmac_sha256,
    parse_timestamp,
    to_decimal,
)

logger = logging.getLogger(__name__)

CHECKOUT_EXPIRY_SECONDS = 24 * 60 * 60

STATUS_MAP = {
    "PAID": PaymentStatus.SUCCESS,
    "UNPAID": PaymentStatus.PENDING,
    "EXPIRED": PaymentStatus.EXPIRED,
    "FAILED": PaymentStatus.FAILED,
    "REFUND": PaymentStatus.FAILED,
}


class TripayGateway(PaymentGatewayPort):
    name = "tripay"

    @property
    def _headers(self):
        return {"Authorization": f"Bearer {self.settings.tripay_api_key}"}

    def map_status(self, provider_status: Optional[str], **context) -> PaymentStatus:
        return STATUS_MAP.get((provider_status or "").upper(), PaymentStatus.PENDING)

    def _checked(self, result: dict) -> dict:
        # Tripay answers 200 with success=false on business errors
        if not result.get("success"):
            raise GatewayError(
                f"tripay request failed: {result.get('message') or 'Unknown error'}",
                gateway=self.name,
            )
        return result.get("data") or {}

    def create_payment_link(self, invoice) -> str:
        details = checkout_details(invoice)
        merchant_ref = build_merchant_reference(invoice.id)
        amount = int(invoice.amount)
        signature = hmac_sha256(
            f"{self.settings.tripay_merchant_code}{merchant_ref}{amount}",
            self.settings.tripay_private_key,
        )

        payload = {
            "method": self.settings.tripay_method,
            "merchant_ref": merchant_ref,
            "amount": amount,
            "customer_name": details["customer_name"],
            "customer_email": details["customer_email"],
            "customer_phone": details["customer_phone"],
            "order_items": [{"name": details["item_name"], "price": amount, "quantity": 1}],
            "return_url": f"{self.settings.app_url}/customer/invoices",
            "expired_time": int(time.time()) + CHECKOUT_EXPIRY_SECONDS,
            "signature": signature,
        }

        data = self._checked(
            self._request(
                "POST",
                f"{self.settings.tripay_base_url}/transaction/create",
                json=payload,
                headers=self._headers,
            )
        )
        url = data.get("checkout_url") or data.get("pay_url")
        if not url:
            raise GatewayError("tripay response has no checkout_url", gateway=self.name)

        logger.info(
            f"[tripay] Payment link created for invoice {invoice.id} "
            f"(merchant_ref {merchant_ref}, reference {data.get('reference')})"
        )
        return url

    def get_payment_status(self, transaction_id: str) -> PaymentStatus:
        data = self._checked(
            self._request(
                "GET",
                f"{self.settings.tripay_base_url}/transaction/detail",
                params={"reference": transaction_id},
                headers=self._headers,
            )
        )
        return self.map_status(data.get("status"))

    def _verify(self, request: WebhookRequest) -> bool:
        signature = request.header("X-Callback-Signature")
        private_key = self.settings.tripay_private_key
        if not signature or not private_key:
            return False
        return constant_time_equals(hmac_sha256(request.body, private_key), signature)

    def _parse(self, request: WebhookRequest) -> NormalizedPaymentEvent:
        data = request.fields()
        reference = data.get("reference")
        if not reference:
            raise MalformedPayloadError("tripay callback has no reference")

        merchant_ref = data.get("merchant_ref")
        status = self.map_status(data.get("status"))
        paid_at = parse_timestamp(data.get("paid_at")) if status == PaymentStatus.SUCCESS else None
        amount = data.get("total_amount") if data.get("amount") is None else data.get("amount")

        return NormalizedPaymentEvent(
            gateway=self.name,
            transaction_id=str(reference),
            invoice_id=extract_invoice_id(merchant_ref),
            status=status.value,
            amount=to_decimal(amount),
            paid_at=paid_at,
            metadata={
                "reference": merchant_ref,
                "provider_status": data.get("status"),
                "payment_method": data.get("payment_method"),
                "payment_name": data.get("payment_name"),
                "fee_merchant": data.get("fee_merchant"),
                "fee_customer": data.get("fee_customer"),
            },
        )
