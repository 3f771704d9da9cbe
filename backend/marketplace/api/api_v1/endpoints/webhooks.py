"""Stripe webhook"""

import logging
from typing import Any, Optional

import stripe
from fastapi import APIRouter, Depends, Header, HTTPException, Request
from sqlalchemy.ext.asyncio import AsyncSession

from marketplace.core.deps import get_db
from marketplace.services import payments
from marketplace.services.cart import CartStore
from marketplace.services.orders import (
    handle_payment_succeeded, handle_payment_failed, handle_charge_refunded, stripe_field
)
from marketplace.api.api_v1.endpoints.cart import get_cart_store

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("/stripe")
async def stripe_webhook(
    *,
    request: Request,
    db: AsyncSession = Depends(get_db),
    cart_store: CartStore = Depends(get_cart_store),
    stripe_signature: Optional[str] = Header(None, alias="stripe-signature")) -> Any:
    payload = await request.body()
    if not stripe_signature:
        raise HTTPException(status_code=400, detail="Invalid signature")
    try:
        event = payments.construct_webhook_event(payload, stripe_signature)
    except (stripe.SignatureVerificationError, ValueError) as e:
        logger.warning(f"Stripe webhook signature verification failed: {e}")
        raise HTTPException(status_code=400, detail="Invalid signature")

    event_type = stripe_field(event, "type")
    data_object = stripe_field(stripe_field(event, "data", {}), "object")
    logger.info(f"Stripe event {stripe_field(event, 'id')} ({event_type})")

    try:
        if event_type == "payment_intent.succeeded":
            await handle_payment_succeeded(db, cart_store, data_object)
        elif event_type == "payment_intent.payment_failed":
            await handle_payment_failed(db, data_object)
        elif event_type == "charge.refunded":
            await handle_charge_refunded(db, data_object)
        else:
            logger.info(f"Unhandled Stripe event type {event_type}")
    except Exception:
        logger.exception(f"Stripe webhook handler failed for {event_type}")
        await db.rollback()
        raise HTTPException(status_code=500, detail="Webhook handler failed")

    return {"received": True}
