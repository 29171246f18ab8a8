# ispbill/core/errors.py
"""
Domain exceptions.
Services raise these; the API layer translates them into HTTP responses.
"""


class BillingError(Exception):
    pass


class GatewayError(BillingError):
    """Outbound call to a payment provider failed (network, non-2xx, business error)."""

    def __init__(self, message: str, gateway: str | None = None, status_code: int | None = None):
        super().__init__(message)
        self.gateway = gateway
        self.status_code = status_code


class UnknownGatewayError(BillingError):
    pass


class AuthenticationFailure(BillingError):
    pass


class MalformedPayloadError(BillingError):
    pass


class UnresolvableReferenceError(BillingError):
    """A webhook or poll references an invoice/transaction that does not exist."""

    pass


class InvalidInvoiceTransitionError(BillingError):
    pass


class TenancyViolation(BillingError):
    """
    Record missing or owned by another tenant.
    Both cases are reported as "not found" so callers cannot discover other tenants' records.
    """

    pass


class UnscopedQueryError(BillingError):
    """A tenant-owned table was read without a scope or an explicit bypass."""

    pass
