# ispbill/api/invoices/main.py
from fastapi import APIRouter, Depends, HTTPException
from sqlmodel import Session

from ...core.config import Settings, get_settings
from ...core.errors import (
    GatewayError,
    InvalidInvoiceTransitionError,
    TenancyViolation,
    UnknownGatewayError,
    UnresolvableReferenceError,
)
from ...core.tenancy import Principal, require_billing
from ...db.engine import get_session
from ...services.invoice_service import InvoiceLifecycleManager
from .models import Invoice, PaymentLink, PaymentLinkRequest, PaymentSyncResult

router = APIRouter()


def get_invoice_manager(
    session: Session = Depends(get_session),
    principal: Principal = Depends(require_billing),
    settings: Settings = Depends(get_settings),
) -> InvoiceLifecycleManager:
    return InvoiceLifecycleManager(session, principal, settings)


@router.get("/invoices", response_model=list[Invoice])
def api_get_invoices(
    status: str | None = None,
    service_id: int | None = None,
    manager: InvoiceLifecycleManager = Depends(get_invoice_manager),
):
    return manager.list_invoices(status=status, service_id=service_id)


@router.get("/invoices/{invoice_id}", response_model=Invoice)
def api_get_invoice(invoice_id: int, manager: InvoiceLifecycleManager = Depends(get_invoice_manager)):
    try:
        return manager.get_by_id(invoice_id)
    except TenancyViolation as e:
        raise HTTPException(status_code=404, detail=str(e))


@router.post("/invoices/{invoice_id}/cancel", response_model=Invoice)
def api_cancel_invoice(invoice_id: int, manager: InvoiceLifecycleManager = Depends(get_invoice_manager)):
    try:
        return manager.cancel(invoice_id)
    except TenancyViolation as e:
        raise HTTPException(status_code=404, detail=str(e))
    except InvalidInvoiceTransitionError as e:
        raise HTTPException(status_code=409, detail=str(e))


@router.post("/invoices/{invoice_id}/payment-link", response_model=PaymentLink)
def api_create_payment_link(
    invoice_id: int,
    body: PaymentLinkRequest | None = None,
    manager: InvoiceLifecycleManager = Depends(get_invoice_manager),
):
    gateway = body.gateway if body else None
    try:
        url = manager.create_payment_link(invoice_id, gateway)
    except TenancyViolation as e:
        raise HTTPException(status_code=404, detail=str(e))
    except InvalidInvoiceTransitionError as e:
        raise HTTPException(status_code=409, detail=str(e))
    except UnknownGatewayError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except GatewayError as e:
        raise HTTPException(status_code=502, detail=f"Payment gateway error: {e}")
    return PaymentLink(invoice_id=invoice_id, payment_link=url)


@router.post("/payments/{transaction_id}/sync", response_model=PaymentSyncResult)
def api_sync_payment(
    transaction_id: str,
    manager: InvoiceLifecycleManager = Depends(get_invoice_manager),
):
    try:
        result = manager.sync_payment(transaction_id)
    except (TenancyViolation, UnresolvableReferenceError) as e:
        raise HTTPException(status_code=404, detail=str(e))
    except GatewayError as e:
        raise HTTPException(status_code=502, detail=f"Payment gateway error: {e}")
    return PaymentSyncResult(
        payment_id=result.payment_id,
        invoice_id=result.invoice_id,
        outcome=result.outcome.value,
        status=result.status,
        invoice_status=result.invoice_status,
    )
