"""
Payment webhooks. The signature covers the raw body, so the body is read as
bytes and only parsed after verification.
"""
import structlog
from fastapi import APIRouter, Depends, Request

from scalpel.config import settings
from scalpel.core.errors import InvalidSignature, ServerMisconfigured
from scalpel.core.payments import parse_notification
from scalpel.core.plans import PlanGate, get_plan_gate
from scalpel.core.security import verify_signature

router = APIRouter()
log = structlog.get_logger()

SIGNATURE_HEADER = "X-Razorpay-Signature"
EVENT_ID_HEADER = "X-Razorpay-Event-Id"


@router.post("/razorpay")
async def razorpay_webhook(request: Request, gate: PlanGate = Depends(get_plan_gate)):
    secret = settings.RAZORPAY_WEBHOOK_SECRET
    if not secret:
        log.error("webhook_secret_missing")
        raise ServerMisconfigured()

    signature = request.headers.get(SIGNATURE_HEADER)
    if not signature:
        log.warning("webhook_signature_missing")
        raise InvalidSignature("Missing signature")

    raw = await request.body()
    if not verify_signature(raw, signature, secret):
        log.warning("webhook_signature_mismatch")
        raise InvalidSignature()

    notification = parse_notification(raw, request.headers.get(EVENT_ID_HEADER))
    outcome = await gate.apply_payment(notification)
    log.info("webhook_processed", event_type=notification.event, outcome=outcome.status)
    return {"ok": True}
