"""
Stripe integration
"""

import logging
from typing import Dict, Optional

import stripe

from marketplace.core.config import settings

logger = logging.getLogger(__name__)


def _configure() -> None:
    stripe.api_key = settings.STRIPE_SECRET_KEY


def create_payment_intent(
    amount_cents: int,
    receipt_email: str,
    metadata: Dict[str, str],
    destination_account: Optional[str] = None,
    transfer_amount_cents: Optional[int] = None,
) -> stripe.PaymentIntent:
    """Card PaymentIntent; with a connected account the vendor share is transferred on capture"""
    _configure()
    params = {
        "amount": amount_cents,
        "currency": settings.CURRENCY,
        "receipt_email": receipt_email,
        "metadata": metadata,
        "automatic_payment_methods": {"enabled": True},
    }
    if destination_account:
        params["transfer_data"] = {"destination": destination_account}
        if transfer_amount_cents is not None:
            params["transfer_data"]["amount"] = transfer_amount_cents

    intent = stripe.PaymentIntent.create(**params)
    logger.info(f"PaymentIntent {intent.id} created for {amount_cents} cents (order {metadata.get('order_number')})")
    return intent


def construct_webhook_event(payload: bytes, signature: Optional[str]):
    """Verify the Stripe-Signature header; raises stripe.SignatureVerificationError or ValueError"""
    _configure()
    return stripe.Webhook.construct_event(payload, signature, settings.STRIPE_WEBHOOK_SECRET)
