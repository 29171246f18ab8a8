# ispbill/services/payment_gateways/base.py
"""
Base port for all payment gateways.
Every provider adapter implements this interface and maps its own status
vocabulary into PaymentStatus.
"""

import hashlib
import hmac
import json
import logging
import secrets
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, Mapping, Optional
from urllib.parse import parse_qsl

import requests

from ...core.config import Settings, get_settings
from ...core.constants import PaymentStatus
from ...core.errors import GatewayError, MalformedPayloadError

logger = logging.getLogger(__name__)

REFERENCE_PREFIX = "INV-"
# Midtrans and Tripay report local time in Western Indonesia Time
WIB = timezone(timedelta(hours=7))
FALLBACK_EMAIL = "noreply@example.com"


@dataclass
class WebhookRequest:
    """
    Inbound webhook as received: raw body, headers and the caller's IP.
    Header lookup is case-insensitive.
    """

    body: bytes
    headers: Dict[str, str] = field(default_factory=dict)
    client_ip: Optional[str] = None

    def __post_init__(self):
        self.headers = {k.lower(): v for k, v in (self.headers or {}).items()}

    def header(self, name: str) -> Optional[str]:
        return self.headers.get(name.lower())

    @property
    def content_type(self) -> str:
        return (self.header("content-type") or "").split(";")[0].strip().lower()

    def json(self) -> Any:
        return json.loads(self.body.decode("utf-8"))

    def form(self) -> Dict[str, str]:
        return dict(parse_qsl(self.body.decode("utf-8"), keep_blank_values=True))

    def fields(self) -> Dict[str, Any]:
        """Body as a flat mapping: JSON object or urlencoded form."""
        if self.content_type == "application/x-www-form-urlencoded":
            return self.form()
        data = self.json()
        if not isinstance(data, dict):
            raise MalformedPayloadError("Webhook body is not a JSON object")
        return data


@dataclass(frozen=True)
class NormalizedPaymentEvent:
    """Provider-neutral view of one payment notification or poll result."""

    gateway: str
    transaction_id: str
    invoice_id: Optional[str]
    status: str
    amount: Decimal
    paid_at: Optional[datetime] = None
    metadata: Dict[str, Any] = field(default_factory=dict)

    @property
    def reference(self) -> str:
        """Merchant reference as sent by the provider, for log lines."""
        return str(self.metadata.get("reference") or self.invoice_id or "")


# --- Helpers ---


def build_merchant_reference(invoice_id: int) -> str:
    """
    Reference sent to providers as order_id / external_id / merchant_ref.
    Unique per payment attempt: ``INV-{invoice_id}-{unix time}{nonce}``.
    """
    return f"{REFERENCE_PREFIX}{invoice_id}-{int(time.time())}{secrets.token_hex(3)}"


def extract_invoice_id(reference: Optional[str]) -> Optional[str]:
    """
    Invoice id carried by a merchant reference.
    ``INV-42-1700000000ab12cd`` -> ``"42"``; a bare ``"42"`` is returned as-is.
    """
    if not reference:
        return None
    reference = str(reference)
    if reference.startswith(REFERENCE_PREFIX):
        parts = reference.split("-")
        if len(parts) > 1 and parts[1]:
            return parts[1]
    return reference


def partial_reference(reference: Optional[str], keep: int = 8) -> str:
    """Shortened reference safe to put in warning logs."""
    if not reference:
        return "-"
    reference = str(reference)
    return reference if len(reference) <= keep else reference[:keep] + "..."


def to_decimal(value: Any) -> Decimal:
    if value is None or value == "":
        raise MalformedPayloadError("Missing amount")
    try:
        return Decimal(str(value))
    except (InvalidOperation, ValueError) as e:
        raise MalformedPayloadError(f"Invalid amount: {value!r}") from e


def parse_timestamp(value: Any, default_tz: timezone = timezone.utc) -> Optional[datetime]:
    """
    Provider timestamp to naive UTC.
    Accepts unix seconds, ISO 8601 (``Z`` suffix included) and
    ``YYYY-MM-DD HH:MM:SS``; naive values are read in ``default_tz``.
    """
    if value is None or value == "":
        return None
    if isinstance(value, (int, float)) or (isinstance(value, str) and value.isdigit()):
        return datetime.fromtimestamp(int(value), tz=timezone.utc).replace(tzinfo=None)
    try:
        parsed = datetime.fromisoformat(str(value).replace("Z", "+00:00"))
    except ValueError as e:
        raise MalformedPayloadError(f"Invalid timestamp: {value!r}") from e
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=default_tz)
    return parsed.astimezone(timezone.utc).replace(tzinfo=None)


def constant_time_equals(expected: Optional[str], received: Optional[str]) -> bool:
    if not expected or not received:
        return False
    return hmac.compare_digest(str(expected).encode("utf-8"), str(received).encode("utf-8"))


def hmac_sha256(message: bytes | str, key: str) -> str:
    if isinstance(message, str):
        message = message.encode("utf-8")
    return hmac.new(key.encode("utf-8"), message, hashlib.sha256).hexdigest()


def checkout_details(invoice) -> Dict[str, Any]:
    """Customer and item fields shared by every checkout request."""
    service = invoice.service
    customer = service.customer if service else None
    package = service.package if service else None

    item_name = f"{package.name} - {package.speed}" if package else f"Invoice {invoice.id}"
    return {
        "customer_name": customer.name if customer else f"Invoice {invoice.id}",
        "customer_email": (customer.email if customer else None) or FALLBACK_EMAIL,
        "customer_phone": customer.phone if customer else None,
        "item_id": f"PKG-{package.id}" if package else f"INV-{invoice.id}",
        "item_name": item_name,
    }


class PaymentGatewayPort(ABC):
    """
    Abstract base class for all payment gateway adapters.

    Adapters receive their credentials through Settings and their HTTP
    client through ``http`` (the ``requests`` module by default, one
    connection per call).
    """

    def __init__(self, settings: Optional[Settings] = None, http: Optional[Any] = None):
        self.settings = settings or get_settings()
        self.http = http or requests
        self.timeout = self.settings.gateway_timeout_seconds

    @property
    @abstractmethod
    def name(self) -> str:
        """Gateway name as used in the webhook route (e.g. 'midtrans')."""
        pass

    # --- Outbound ---

    @abstractmethod
    def create_payment_link(self, invoice) -> str:
        """
        Registers a checkout with the provider and returns its URL.
        Raises GatewayError on any provider or network failure.
        """
        pass

    @abstractmethod
    def get_payment_status(self, transaction_id: str) -> PaymentStatus:
        """Polls the provider for one transaction. Raises GatewayError."""
        pass

    # --- Inbound ---

    def verify_webhook_signature(self, request: WebhookRequest) -> bool:
        """True only for an authentic notification. Never raises."""
        try:
            return bool(self._verify(request))
        except Exception as e:
            logger.error(f"[{self.name}] Error verifying webhook signature: {e}")
            return False

    def parse_webhook_data(self, request: WebhookRequest) -> NormalizedPaymentEvent:
        """Normalizes an authenticated webhook. Raises MalformedPayloadError."""
        try:
            return self._parse(request)
        except MalformedPayloadError:
            raise
        except Exception as e:
            raise MalformedPayloadError(f"[{self.name}] Failed to parse webhook data: {e}") from e

    @abstractmethod
    def _verify(self, request: WebhookRequest) -> bool:
        pass

    @abstractmethod
    def _parse(self, request: WebhookRequest) -> NormalizedPaymentEvent:
        pass

    @abstractmethod
    def map_status(self, provider_status: Optional[str], **context) -> PaymentStatus:
        """Provider status to PaymentStatus. Unknown values map to PENDING."""
        pass

    # --- HTTP ---

    def _request(self, method: str, url: str, **kwargs) -> Dict[str, Any]:
        """
        One HTTP call with the configured timeout; JSON body on success.
        Timeouts, network errors, non-2xx answers and non-JSON bodies
        become GatewayError. No retry.
        """
        kwargs.setdefault("timeout", self.timeout)
        try:
            response = self.http.request(method, url, **kwargs)
        except requests.exceptions.Timeout as e:
            raise GatewayError(f"{self.name} timed out after {self.timeout}s", gateway=self.name) from e
        except requests.exceptions.RequestException as e:
            raise GatewayError(f"{self.name} network error: {e}", gateway=self.name) from e

        if not 200 <= response.status_code < 300:
            raise GatewayError(
                f"{self.name} API error {response.status_code}: {response.text[:200]}",
                gateway=self.name,
                status_code=response.status_code,
            )
        try:
            return response.json()
        except ValueError as e:
            raise GatewayError(f"{self.name} returned a non-JSON body", gateway=self.name) from e
