"""
Payment gateway webhooks.

POST /webhooks/paypal — PayPal event notifications

Sale notifications are verified with PayPal before they are applied.
Malformed or unknown-payment notifications are acknowledged with
success=false so the gateway stops retrying; infrastructure failures
propagate as 5xx so it retries later.
"""

from __future__ import annotations

import structlog
from fastapi import APIRouter, Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.clients import get_payment_service
from app.core.database import get_session
from app.core.errors import BadRequestError, NotFoundError
from app.services.payments import PaymentService

log = structlog.get_logger()
router = APIRouter()


@router.post("/paypal")
async def paypal_webhook(
    request: Request,
    payments: PaymentService = Depends(get_payment_service),
    session: AsyncSession = Depends(get_session),
):
    try:
        payload = await request.json()
    except ValueError:
        log.warning("webhook.paypal_invalid_json")
        return {"success": False, "error": "INVALID_WEBHOOK_PAYLOAD"}
    if not isinstance(payload, dict):
        return {"success": False, "error": "INVALID_WEBHOOK_PAYLOAD"}

    try:
        payment = await payments.handle_webhook(session, payload, request.headers)
    except (BadRequestError, NotFoundError) as exc:
        log.warning("webhook.paypal_rejected", code=exc.code, event_id=payload.get("id"))
        return {"success": False, "error": exc.code}

    return {
        "success": True,
        "payment_id": str(payment.id) if payment else None,
    }
