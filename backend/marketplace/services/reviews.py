"""
Review eligibility and rating aggregates

An order item can be reviewed once, by the buyer, after the order is paid
and shipped: no sooner than 3 days and no later than 100 days after
shipment.
"""

import math
import logging
from datetime import datetime, timedelta
from typing import Dict, Optional

from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession

from marketplace.core.errors import NotFoundError, ForbiddenError
from marketplace.models import (
    StoreOrder, StoreOrderItem, ProductReview, ReviewStatus, Product, VendorStore,
    PaymentStatus, FulfillmentStatus, User
)

logger = logging.getLogger(__name__)

MIN_DAYS_AFTER_SHIPMENT = 3
MAX_DAYS_AFTER_SHIPMENT = 100


def _ineligible(reason: str, **extra) -> dict:
    return {"eligible": False, "reason": reason, **extra}


def _owns_order(order: StoreOrder, user: Optional[User], email: Optional[str]) -> bool:
    if user is not None:
        if order.customer_id is not None:
            return order.customer_id == user.id
        return (order.customer_email or "").lower() == user.email.lower()
    return email is not None and (order.customer_email or "").lower() == email.lower()


async def check_review_eligibility(
    db: AsyncSession,
    order_item_id: int,
    user: Optional[User] = None,
    email: Optional[str] = None,
    now: Optional[datetime] = None,
) -> dict:
    """
    Decide whether an order item may be reviewed

    Either the signed-in user or the email carried by a review link must
    match the order. Missing item raises 404, a foreign order raises 403;
    every other outcome is reported in the returned dict:
        {"eligible": bool, "reason": str | None, "days_remaining": int?, ...}
    """
    now = now or datetime.utcnow()

    item = await db.get(StoreOrderItem, order_item_id)
    if not item:
        raise NotFoundError("Order item")
    order = await db.get(StoreOrder, item.order_id)
    if not order:
        raise NotFoundError("Order")

    if not _owns_order(order, user, email):
        raise ForbiddenError("You can only review items from your own orders")

    existing = await db.execute(select(ProductReview.id).where(ProductReview.order_item_id == item.id))
    if existing.scalar_one_or_none() is not None:
        return _ineligible("You have already reviewed this item")

    if order.payment_status != PaymentStatus.PAID:
        if order.payment_status in (PaymentStatus.REFUNDED, PaymentStatus.PARTIALLY_REFUNDED):
            return _ineligible("Refunded orders cannot be reviewed")
        return _ineligible("Order has not been paid")

    if order.refunded_at is not None:
        return _ineligible("Refunded orders cannot be reviewed")

    if order.fulfillment_status not in (FulfillmentStatus.SHIPPED, FulfillmentStatus.DELIVERED) or not order.shipped_at:
        return _ineligible("Order has not shipped yet")

    opens_at = order.shipped_at + timedelta(days=MIN_DAYS_AFTER_SHIPMENT)
    if now < opens_at:
        days_remaining = math.ceil((opens_at - now) / timedelta(days=1))
        return _ineligible(
            f"You can review this item in {days_remaining} day{'s' if days_remaining != 1 else ''}",
            days_remaining=days_remaining,
        )

    if now > order.shipped_at + timedelta(days=MAX_DAYS_AFTER_SHIPMENT):
        return _ineligible("The review window for this item has closed")

    return {
        "eligible": True,
        "reason": None,
        "order_item_id": item.id,
        "order_id": order.id,
        "product_id": item.product_id,
        "product_name": item.name,
        "variant_name": item.variant_name,
        "store_id": order.store_id,
        "customer_name": order.customer_name,
        "customer_email": order.customer_email,
    }


async def rating_distribution(db: AsyncSession, product_id: int) -> Dict[int, int]:
    result = await db.execute(
        select(ProductReview.rating, func.count(ProductReview.id))
        .where(ProductReview.product_id == product_id, ProductReview.status == ReviewStatus.PUBLISHED)
        .group_by(ProductReview.rating)
    )
    distribution = {star: 0 for star in range(1, 6)}
    for rating, count in result.all():
        distribution[int(rating)] = count
    return distribution


async def update_rating_aggregates(db: AsyncSession, product_id: int, store_id: int) -> None:
    """Recompute product and store averages over published reviews. Does not commit."""
    await db.flush()
    product_stats = await db.execute(
        select(func.avg(ProductReview.rating), func.count(ProductReview.id))
        .where(ProductReview.product_id == product_id, ProductReview.status == ReviewStatus.PUBLISHED)
    )
    avg_rating, count = product_stats.one()
    product = await db.get(Product, product_id)
    if product:
        product.average_rating = round(float(avg_rating or 0), 2)
        product.review_count = count or 0

    store_stats = await db.execute(
        select(func.avg(ProductReview.rating), func.count(ProductReview.id))
        .where(ProductReview.store_id == store_id, ProductReview.status == ReviewStatus.PUBLISHED)
    )
    store_avg, store_count = store_stats.one()
    store = await db.get(VendorStore, store_id)
    if store:
        store.average_rating = round(float(store_avg or 0), 2)
        store.total_reviews = store_count or 0
