"""
Order lifecycle driven by Stripe events

- payment_intent.succeeded: create the order from the Redis cart
- payment_intent.payment_failed: mark the order failed
- charge.refunded: record full or partial refunds

Handlers are idempotent: the payment intent id is unique on store_orders.
"""

import json
import logging
import secrets
from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, Optional, Tuple

from fastapi.concurrency import run_in_threadpool
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from marketplace.models import (
    StoreOrder, StoreOrderItem, VendorStore, Product, Tenant,
    OrderStatus, PaymentStatus, FulfillmentStatus
)
from marketplace.services import email as email_service
from marketplace.services.cart import CartStore
from marketplace.services.coupons import increment_usage
from marketplace.services.stock import reserve_stock, release_stock, load_variant

logger = logging.getLogger(__name__)


def generate_order_number(now: Optional[datetime] = None) -> str:
    """ORD + date + random suffix; assigned before the order row exists"""
    now = now or datetime.utcnow()
    return f"ORD{now.strftime('%Y%m%d')}-{secrets.token_hex(3).upper()}"


def stripe_field(obj: Any, key: str, default: Any = None) -> Any:
    """Read a key from a Stripe object or a plain dict"""
    try:
        value = obj[key]
    except (KeyError, TypeError):
        return default
    return default if value is None else value


def stripe_to_dict(obj: Any) -> Dict[str, Any]:
    if obj is None:
        return {}
    if hasattr(obj, "to_dict"):
        return obj.to_dict()
    return dict(obj)


def _decimal(value: Any, default: str = "0") -> Decimal:
    try:
        return Decimal(str(value)) if value not in (None, "") else Decimal(default)
    except ArithmeticError:
        return Decimal(default)


async def get_order_by_payment_intent(db: AsyncSession, payment_intent_id: str) -> Optional[StoreOrder]:
    result = await db.execute(select(StoreOrder).where(StoreOrder.payment_intent_id == payment_intent_id))
    return result.scalar_one_or_none()


async def _notify_order_created(order: StoreOrder, store: VendorStore) -> None:
    try:
        await run_in_threadpool(email_service.send_order_confirmation, order, store.name)
    except Exception as e:
        logger.error(f"Order confirmation email failed for {order.order_number}: {e}")
    try:
        await run_in_threadpool(email_service.send_vendor_new_order_alert, order, store.email, store.name)
    except Exception as e:
        logger.error(f"Vendor order alert failed for {order.order_number}: {e}")


async def handle_payment_succeeded(
    db: AsyncSession, cart_store: CartStore, payment_intent: Any
) -> Tuple[Optional[StoreOrder], bool]:
    """
    Create the order for a successful payment

    Returns:
        (order, created). order is None when the cart has expired.
    """
    intent_id = stripe_field(payment_intent, "id")
    existing = await get_order_by_payment_intent(db, intent_id)
    if existing:
        logger.info(f"PaymentIntent {intent_id} already processed as {existing.order_number}")
        return existing, False

    metadata = stripe_to_dict(stripe_field(payment_intent, "metadata", {}))
    cart_session_id = metadata.get("cart_session_id")
    cart = await cart_store.get(cart_session_id)
    if not cart or not cart.get("items"):
        logger.error(f"Cart {cart_session_id} not found for PaymentIntent {intent_id}; order not created")
        return None, False

    store = await db.get(VendorStore, int(metadata["store_id"]))
    if not store:
        logger.error(f"Store {metadata.get('store_id')} not found for PaymentIntent {intent_id}")
        return None, False

    try:
        shipping_info = json.loads(metadata.get("shipping_info") or "{}")
    except json.JSONDecodeError:
        shipping_info = {}

    customer_id = metadata.get("customer_id")
    now = datetime.utcnow()
    order = StoreOrder(
        order_number=metadata.get("order_number") or generate_order_number(now),
        store_id=store.id,
        customer_id=int(customer_id) if customer_id else None,
        customer_email=metadata.get("customer_email") or stripe_field(payment_intent, "receipt_email", ""),
        customer_name=metadata.get("customer_name") or shipping_info.get("full_name"),
        customer_phone=shipping_info.get("phone"),
        shipping_address={
            "full_name": shipping_info.get("full_name"),
            "address_line1": shipping_info.get("address_line1"),
            "address_line2": shipping_info.get("address_line2"),
            "city": shipping_info.get("city"),
            "state": shipping_info.get("state"),
            "zip_code": shipping_info.get("zip_code"),
            "country": shipping_info.get("country", "US"),
        },
        subtotal=_decimal(metadata.get("subtotal")),
        discount_amount=_decimal(metadata.get("discount_amount")),
        shipping_cost=_decimal(metadata.get("shipping_cost")),
        tax_amount=_decimal(metadata.get("tax_amount")),
        total=_decimal(metadata.get("total")),
        platform_fee=_decimal(metadata.get("platform_fee")),
        vendor_payout=_decimal(metadata.get("vendor_payout")),
        shipping_method=metadata.get("shipping_method_name"),
        coupon_code=metadata.get("coupon_code") or None,
        payment_intent_id=intent_id,
        status=OrderStatus.PAID,
        payment_status=PaymentStatus.PAID,
        fulfillment_status=FulfillmentStatus.UNFULFILLED,
        paid_at=now,
    )
    for line in cart["items"]:
        order.items.append(StoreOrderItem(
            product_id=line["product_id"],
            variant_id=line.get("variant_id"),
            name=line["name"],
            variant_name=line.get("variant_name"),
            sku=line.get("sku"),
            image_url=line.get("image"),
            price=_decimal(line["price"]),
            quantity=line["quantity"],
        ))
    db.add(order)

    try:
        await db.flush()
    except IntegrityError:
        # Concurrent delivery of the same event won the insert
        await db.rollback()
        existing = await get_order_by_payment_intent(db, intent_id)
        logger.info(f"PaymentIntent {intent_id} processed concurrently")
        return existing, False

    store.total_orders = (store.total_orders or 0) + 1
    store.total_sales = (store.total_sales or Decimal("0")) + order.vendor_payout
    if store.tenant_id:
        tenant = await db.get(Tenant, store.tenant_id)
        if tenant:
            tenant.current_orders = (tenant.current_orders or 0) + 1

    for item in order.items:
        product = await db.get(Product, item.product_id)
        if not product:
            logger.error(f"Product {item.product_id} in order {order.order_number} no longer exists")
            continue
        variant = await load_variant(db, product.id, item.variant_id)
        reserve_stock(db, product, variant, item.quantity, order_id=order.id,
                      reason=f"Order {order.order_number}")
        product.sales_count = (product.sales_count or 0) + item.quantity

    if order.coupon_code:
        await increment_usage(db, store.id, order.coupon_code)

    await db.commit()
    logger.info(f"Order {order.order_number} created for PaymentIntent {intent_id} ({order.total})")

    await cart_store.delete(cart_session_id)
    await _notify_order_created(order, store)
    return order, True


async def handle_payment_failed(db: AsyncSession, payment_intent: Any) -> Optional[StoreOrder]:
    intent_id = stripe_field(payment_intent, "id")
    metadata = stripe_to_dict(stripe_field(payment_intent, "metadata", {}))
    order = await get_order_by_payment_intent(db, intent_id)

    if order:
        order.payment_status = PaymentStatus.FAILED
        order.status = OrderStatus.CANCELLED
        await db.commit()
        logger.info(f"Order {order.order_number} marked as payment failed")
        email, order_number, name = order.customer_email, order.order_number, order.customer_name
    else:
        email = metadata.get("customer_email") or stripe_field(payment_intent, "receipt_email")
        order_number = metadata.get("order_number") or intent_id
        name = metadata.get("customer_name")
        logger.info(f"Payment failed for {order_number} before an order was created")

    if email:
        try:
            await run_in_threadpool(email_service.send_payment_failed, email, order_number, name)
        except Exception as e:
            logger.error(f"Payment failed email error for {order_number}: {e}")
    return order


async def handle_charge_refunded(db: AsyncSession, charge: Any) -> Optional[StoreOrder]:
    intent_id = stripe_field(charge, "payment_intent")
    order = await get_order_by_payment_intent(db, intent_id) if intent_id else None
    if not order:
        logger.warning(f"Refund for unknown PaymentIntent {intent_id}")
        return None

    amount_refunded = Decimal(stripe_field(charge, "amount_refunded", 0)) / 100
    amount = Decimal(stripe_field(charge, "amount", 0)) / 100
    is_full_refund = bool(stripe_field(charge, "refunded", False)) or (amount > 0 and amount_refunded >= amount)

    order.refund_amount = amount_refunded.quantize(Decimal("0.01"))
    if is_full_refund:
        was_unshipped = order.fulfillment_status == FulfillmentStatus.UNFULFILLED
        order.payment_status = PaymentStatus.REFUNDED
        order.status = OrderStatus.REFUNDED
        order.refunded_at = datetime.utcnow()
        if was_unshipped and order.paid_at is not None:
            order.fulfillment_status = FulfillmentStatus.CANCELLED
            for item in order.items:
                product = await db.get(Product, item.product_id)
                if product:
                    variant = await load_variant(db, product.id, item.variant_id)
                    release_stock(db, product, variant, item.quantity, order_id=order.id,
                                  reason=f"Refund {order.order_number}")
    else:
        order.payment_status = PaymentStatus.PARTIALLY_REFUNDED

    await db.commit()
    logger.info(f"Order {order.order_number} refunded {order.refund_amount} ({'full' if is_full_refund else 'partial'})")

    try:
        await run_in_threadpool(email_service.send_refund_confirmation, order, order.refund_amount, is_full_refund)
    except Exception as e:
        logger.error(f"Refund email failed for {order.order_number}: {e}")
    return order
