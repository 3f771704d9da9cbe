"""Shipping quotes and Stripe checkout"""

import json
import logging
from decimal import Decimal
from typing import Any, List, Optional, Tuple

from fastapi import APIRouter, Depends, HTTPException, Request
from fastapi.concurrency import run_in_threadpool
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from marketplace.core.deps import get_db, get_optional_user
from marketplace.core.rate_limit import rate_limit
from marketplace.models import Product, ProductStatus, VendorStore, ShippingZone, User
from marketplace.schemas.cart import (
    ShippingCalculateRequest, ShippingCalculateResponse, ShippingOption,
    PaymentIntentCreate, PaymentIntentResponse
)
from marketplace.services import payments
from marketplace.services import stock as stock_service
from marketplace.services.cart import CartStore, CART_COOKIE, cart_subtotal
from marketplace.services.coupons import validate_coupon
from marketplace.services.orders import generate_order_number
from marketplace.services.pricing import (
    default_shipping_rates, zone_shipping_rates, match_zone, shipping_zone_for_zip,
    calculate_tax, platform_fee_percent, split_payout, round_money, to_cents, FREE_SHIPPING_THRESHOLD
)
from marketplace.services.tenancy import check_order_quota
from marketplace.api.api_v1.endpoints.cart import get_cart_store

logger = logging.getLogger(__name__)

router = APIRouter()


async def shipping_options_for(
    db: AsyncSession, store: Optional[VendorStore], zip_code: str, state: Optional[str], cart_total: Decimal
) -> Tuple[List[dict], Optional[ShippingZone]]:
    """Store zone rates when a zone covers the destination, else the default carrier table"""
    if store is not None:
        result = await db.execute(select(ShippingZone).where(ShippingZone.store_id == store.id))
        zone = match_zone(result.scalars().all(), state, zip_code)
        if zone is not None:
            rates = zone_shipping_rates(zone, cart_total)
            if rates:
                return rates, zone
    return default_shipping_rates(zip_code, cart_total), None


@router.post("/shipping/calculate", response_model=ShippingCalculateResponse)
async def calculate_shipping(
    *,
    db: AsyncSession = Depends(get_db),
    request_in: ShippingCalculateRequest) -> Any:
    store = None
    if request_in.store_slug:
        result = await db.execute(select(VendorStore).where(VendorStore.slug == request_in.store_slug))
        store = result.scalar_one_or_none()
        if not store:
            raise HTTPException(status_code=404, detail="Store not found")

    cart_total = Decimal(str(request_in.cart_total))
    rates, zone = await shipping_options_for(db, store, request_in.zip_code, request_in.state, cart_total)
    return ShippingCalculateResponse(
        rates=[ShippingOption(**{**r, "price": float(r["price"])}) for r in rates],
        zone=None if zone else shipping_zone_for_zip(request_in.zip_code),
        shipping_zone_name=zone.name if zone else None,
        free_shipping_eligible=any(r["price"] == 0 and r["id"] != "local_pickup" for r in rates)
        if zone else cart_total >= FREE_SHIPPING_THRESHOLD,
    )


@router.post(
    "/checkout/create-payment-intent",
    response_model=PaymentIntentResponse,
)
@rate_limit("checkout")
async def create_payment_intent(
    *,
    request: Request,
    db: AsyncSession = Depends(get_db),
    cart_store: CartStore = Depends(get_cart_store),
    current_user: Optional[User] = Depends(get_optional_user),
    checkout_in: PaymentIntentCreate) -> Any:
    """
    Price the cart server-side and open a Stripe PaymentIntent

    The order itself is created by the payment_intent.succeeded webhook
    from the metadata attached here.
    """
    cart_id = request.cookies.get(CART_COOKIE)
    if not cart_id:
        raise HTTPException(status_code=400, detail="No cart session found")
    cart = await cart_store.get(cart_id)
    if not cart or not cart.get("items"):
        raise HTTPException(status_code=400, detail="Cart is empty")

    store = await db.get(VendorStore, cart["store_id"])
    if not store or not store.is_active:
        raise HTTPException(status_code=400, detail="This store is not accepting orders")
    check_order_quota(store.tenant)

    # Stock may have moved since the items were added
    for line in cart["items"]:
        product = await db.get(Product, line["product_id"])
        if not product or product.status != ProductStatus.ACTIVE:
            raise HTTPException(status_code=400, detail=f"{line['name']} is no longer available")
        variant = await stock_service.load_variant(db, product.id, line.get("variant_id"))
        if line.get("variant_id") and variant is None:
            raise HTTPException(status_code=400, detail=f"{line['name']} is no longer available")
        available, available_quantity = stock_service.check_availability(product, variant, line["quantity"])
        if not available:
            raise HTTPException(
                status_code=400,
                detail=f"Only {available_quantity} of {line['name']} available",
            )

    info = checkout_in.shipping_info
    subtotal = cart_subtotal(cart)

    rates, zone = await shipping_options_for(db, store, info.zip_code, info.state, subtotal)
    rate = next((r for r in rates if r["id"] == checkout_in.shipping_method), None)
    if rate is None:
        raise HTTPException(status_code=400, detail="Selected shipping method is not available")
    shipping_cost = round_money(rate["price"])

    discount = Decimal("0.00")
    coupon_code = (checkout_in.coupon_code or cart.get("coupon_code") or "").strip().upper() or None
    if coupon_code:
        coupon_result = await validate_coupon(
            db, store.id, coupon_code, cart["items"], subtotal, shipping_cost, customer_email=info.email
        )
        if not coupon_result["valid"]:
            raise HTTPException(status_code=400, detail=coupon_result["error"])
        discount = coupon_result["discount"]

    taxable = max(subtotal + shipping_cost - discount, Decimal("0"))
    tax = calculate_tax(taxable, info.state)
    total = round_money(taxable + tax)
    fee, payout = split_payout(total, platform_fee_percent(store))

    order_number = generate_order_number()
    metadata = {
        "order_number": order_number,
        "store_id": str(store.id),
        "cart_session_id": cart_id,
        "customer_id": str(current_user.id) if current_user else "",
        "customer_email": info.email,
        "customer_name": info.full_name,
        "shipping_info": json.dumps(info.model_dump()),
        "shipping_method_name": rate["name"],
        "subtotal": str(subtotal),
        "discount_amount": str(discount),
        "coupon_code": coupon_code or "",
        "shipping_cost": str(shipping_cost),
        "tax_amount": str(tax),
        "total": str(total),
        "platform_fee": str(fee),
        "vendor_payout": str(payout),
    }

    # Blocking SDK call, kept off the event loop
    intent = await run_in_threadpool(
        payments.create_payment_intent,
        amount_cents=to_cents(total),
        receipt_email=info.email,
        metadata=metadata,
        destination_account=store.stripe_account_id,
        transfer_amount_cents=to_cents(payout) if store.stripe_account_id else None,
    )

    return PaymentIntentResponse(
        client_secret=intent.client_secret,
        order_number=order_number,
        subtotal=float(subtotal),
        discount_amount=float(discount),
        shipping_cost=float(shipping_cost),
        tax_amount=float(tax),
        total=float(total),
    )
