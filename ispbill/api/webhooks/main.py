# ispbill/api/webhooks/main.py
"""
Payment provider callbacks. No user authentication: each adapter checks
the provider's signature or callback token instead.
"""
from fastapi import APIRouter, Depends, Request
from fastapi.concurrency import run_in_threadpool
from fastapi.responses import JSONResponse
from sqlmodel import Session

from ...core.config import Settings, get_settings
from ...db.engine import get_session
from ...services.payment_gateways.base import WebhookRequest
from ...services.reconciliation import ReconciliationEngine
from ...services.webhook_ingress import WebhookIngress

router = APIRouter()


def get_webhook_ingress(
    session: Session = Depends(get_session),
    settings: Settings = Depends(get_settings),
) -> WebhookIngress:
    return WebhookIngress(ReconciliationEngine(session, settings), settings)


@router.post("/webhooks/payment/{gateway}")
async def payment_webhook(
    gateway: str,
    request: Request,
    ingress: WebhookIngress = Depends(get_webhook_ingress),
):
    webhook_request = WebhookRequest(
        body=await request.body(),
        headers=dict(request.headers),
        client_ip=request.client.host if request.client else None,
    )
    outcome = await run_in_threadpool(ingress.handle, gateway, webhook_request)
    return JSONResponse(
        status_code=outcome.status_code,
        content={"success": outcome.success, "message": outcome.message},
    )
