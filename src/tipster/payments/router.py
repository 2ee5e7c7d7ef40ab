"""Payment endpoints: Stripe webhook, intent creation and status polling."""

from __future__ import annotations

import json

import stripe
import structlog
from fastapi import APIRouter, Depends, HTTPException, Query, Request
from sqlalchemy.ext.asyncio import AsyncSession

from tipster.auth.dependencies import get_current_user
from tipster.config import get_settings
from tipster.database import get_session
from tipster.db.models import User
from tipster.payments.schemas import PaymentIntentRequest, PaymentIntentResponse, PaymentStatusResponse
from tipster.payments.service import create_payment_intent, get_payment_status, process_event
from tipster.redis_client import get_redis

logger = structlog.get_logger()

router = APIRouter(prefix="/api/v1/payments", tags=["Payments"])


@router.post("/webhook")
async def stripe_webhook(request: Request, db: AsyncSession = Depends(get_session)) -> dict[str, bool]:
    """Verify and process a Stripe event. Rate limiting does not apply here."""
    payload = await request.body()
    signature = request.headers.get("stripe-signature")
    if not signature:
        raise HTTPException(status_code=400, detail="Missing Stripe-Signature header")
    try:
        stripe.Webhook.construct_event(payload, signature, get_settings().stripe_webhook_secret)
    except (ValueError, stripe.SignatureVerificationError) as e:
        logger.warning("stripe_signature_invalid", error=str(e))
        raise HTTPException(status_code=400, detail="Invalid signature") from e

    event = json.loads(payload)
    try:
        await process_event(db, get_redis(), event)
    except Exception as e:
        await db.rollback()
        logger.error("stripe_webhook_failed", event_type=event.get("type"), event_id=event.get("id"), exc_info=True)
        raise HTTPException(status_code=500, detail="Webhook processing failed") from e
    return {"received": True}


@router.post("/intent", response_model=PaymentIntentResponse)
async def payment_intent(
    body: PaymentIntentRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
) -> PaymentIntentResponse:
    try:
        data = await create_payment_intent(db, user, body.item_type, body.item_id)
    except LookupError as e:
        raise HTTPException(status_code=404, detail=str(e)) from e
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e)) from e
    except stripe.StripeError as e:
        logger.error("payment_intent_failed", user_id=user.id, error=str(e))
        raise HTTPException(status_code=502, detail="Payment provider error") from e
    return PaymentIntentResponse(**data)


@router.get("/status", response_model=PaymentStatusResponse)
async def payment_status(
    payment_intent: str = Query(..., min_length=1),
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
) -> PaymentStatusResponse:
    return PaymentStatusResponse(**await get_payment_status(db, user.id, payment_intent))
