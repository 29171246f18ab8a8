# ispbill/services/payment_gateways/__init__.py
"""
Gateway registry.
Returns the adapter for a gateway name from the closed set in GatewayName.
"""

import logging
from typing import Dict, Optional, Type

from ...core.config import Settings, get_settings
from ...core.constants import GatewayName
from ...core.errors import UnknownGatewayError
from .base import NormalizedPaymentEvent, PaymentGatewayPort, WebhookRequest
from .midtrans import MidtransGateway
from .tripay import TripayGateway
from .xendit import XenditGateway

logger = logging.getLogger(__name__)

GATEWAYS: Dict[str, Type[PaymentGatewayPort]] = {
    GatewayName.MIDTRANS.value: MidtransGateway,
    GatewayName.XENDIT.value: XenditGateway,
    GatewayName.TRIPAY.value: TripayGateway,
}


def get_gateway(name: str, settings: Optional[Settings] = None, **kwargs) -> PaymentGatewayPort:
    """
    Factory function returning the adapter for ``name``.

    Raises:
        UnknownGatewayError: If the gateway is not supported. Nothing is
            constructed in that case.
    """
    adapter_class = GATEWAYS.get((name or "").lower())
    if adapter_class is None:
        raise UnknownGatewayError(
            f"Unsupported payment gateway: {name}. Supported: {', '.join(get_supported_gateways())}"
        )
    return adapter_class(settings=settings or get_settings(), **kwargs)


def get_default_gateway(settings: Optional[Settings] = None, **kwargs) -> PaymentGatewayPort:
    settings = settings or get_settings()
    return get_gateway(settings.payment_gateway_default, settings, **kwargs)


def get_supported_gateways() -> list:
    """Returns list of supported gateway names."""
    return list(GATEWAYS)


__all__ = [
    "GATEWAYS",
    "NormalizedPaymentEvent",
    "PaymentGatewayPort",
    "WebhookRequest",
    "get_default_gateway",
    "get_gateway",
    "get_supported_gateways",
]
