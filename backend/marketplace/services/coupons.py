"""
Coupon validation and discount calculation
"""

import logging
from datetime import datetime
from decimal import Decimal
from typing import List, Optional

from sqlalchemy import select, func, update
from sqlalchemy.ext.asyncio import AsyncSession

from marketplace.models import Coupon, DiscountType, StoreOrder, PaymentStatus
from marketplace.services.pricing import round_money

logger = logging.getLogger(__name__)


def _invalid(message: str) -> dict:
    return {"valid": False, "error": message, "coupon": None, "discount": Decimal("0.00")}


def eligible_items(coupon: Coupon, items: List[dict]) -> List[dict]:
    """Cart items the coupon applies to

    items: [{"product_id", "category", "price", "quantity"}]
    """
    excluded = set(coupon.excluded_products or [])
    products = set(coupon.applicable_products or [])
    categories = set(coupon.applicable_categories or [])

    result = []
    for item in items:
        if item["product_id"] in excluded:
            continue
        if products:
            if item["product_id"] not in products:
                continue
        elif categories and item.get("category") not in categories:
            continue
        result.append(item)
    return result


def calculate_discount(coupon: Coupon, eligible_subtotal: Decimal, shipping_cost: Decimal) -> Decimal:
    value = Decimal(str(coupon.discount_value or 0))
    if coupon.discount_type == DiscountType.PERCENTAGE:
        discount = eligible_subtotal * value / Decimal("100")
    elif coupon.discount_type == DiscountType.FIXED_AMOUNT:
        discount = value
    elif coupon.discount_type == DiscountType.FREE_SHIPPING:
        discount = Decimal(str(shipping_cost))
    else:
        discount = Decimal("0")

    if coupon.max_discount_amount is not None:
        discount = min(discount, Decimal(str(coupon.max_discount_amount)))
    if coupon.discount_type != DiscountType.FREE_SHIPPING:
        discount = min(discount, eligible_subtotal)
    return round_money(max(discount, Decimal("0")))


async def validate_coupon(
    db: AsyncSession,
    store_id: int,
    code: str,
    items: List[dict],
    subtotal: Decimal,
    shipping_cost: Decimal = Decimal("0"),
    customer_email: Optional[str] = None,
    now: Optional[datetime] = None,
) -> dict:
    """
    Check a coupon against a cart

    Returns:
        {"valid": bool, "error": str | None, "coupon": Coupon | None, "discount": Decimal}
    """
    now = now or datetime.utcnow()
    result = await db.execute(
        select(Coupon).where(Coupon.store_id == store_id, Coupon.code == code.strip().upper())
    )
    coupon = result.scalar_one_or_none()

    if not coupon:
        return _invalid("Coupon code not found")
    if not coupon.is_active:
        return _invalid("This coupon is no longer active")
    if coupon.start_date and now < coupon.start_date:
        return _invalid(f"This coupon is not valid until {coupon.start_date.strftime('%B %d, %Y')}")
    if coupon.end_date and now > coupon.end_date:
        return _invalid("This coupon has expired")
    if coupon.usage_limit is not None and (coupon.usage_count or 0) >= coupon.usage_limit:
        return _invalid("This coupon has reached its usage limit")

    if coupon.first_time_customers_only and customer_email:
        previous = await db.execute(
            select(func.count(StoreOrder.id)).where(
                StoreOrder.store_id == store_id,
                func.lower(StoreOrder.customer_email) == customer_email.lower(),
                StoreOrder.payment_status == PaymentStatus.PAID,
            )
        )
        if (previous.scalar() or 0) > 0:
            return _invalid("This coupon is only valid for first-time customers")

    subtotal = Decimal(str(subtotal))
    if coupon.min_purchase_amount is not None and subtotal < coupon.min_purchase_amount:
        return _invalid(f"Minimum purchase amount of ${round_money(coupon.min_purchase_amount)} required")

    applicable = eligible_items(coupon, items)
    if not applicable:
        return _invalid("This coupon is not applicable to items in your cart")

    eligible_subtotal = sum(
        (Decimal(str(i["price"])) * i["quantity"] for i in applicable), Decimal("0")
    )
    discount = calculate_discount(coupon, eligible_subtotal, Decimal(str(shipping_cost)))
    return {"valid": True, "error": None, "coupon": coupon, "discount": discount}


async def increment_usage(db: AsyncSession, store_id: int, code: str) -> None:
    await db.execute(
        update(Coupon)
        .where(Coupon.store_id == store_id, Coupon.code == code.upper())
        .values(usage_count=Coupon.usage_count + 1)
    )
