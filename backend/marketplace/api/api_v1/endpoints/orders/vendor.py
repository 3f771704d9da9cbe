"""
Vendor order dashboard
- list / detail
- fulfill: ship a paid order, commit held stock, credit the payout
- cancel: release held stock and roll back store totals
"""

import logging
from datetime import datetime, timedelta
from decimal import Decimal
from typing import Any, Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from fastapi.concurrency import run_in_threadpool
from sqlalchemy import select, func, or_
from sqlalchemy.ext.asyncio import AsyncSession

from marketplace.core.dates import naive_utc
from marketplace.core.deps import get_db, require_vendor_store
from marketplace.models import (
    StoreOrder, VendorStore, Product, OrderStatus, PaymentStatus, FulfillmentStatus
)
from marketplace.schemas.order import VendorOrderResponse, OrderListResponse, OrderFulfill, OrderCancel
from marketplace.services import email as email_service
from marketplace.services.stock import commit_stock, release_stock, load_variant
from marketplace.api.api_v1.endpoints.orders.core import build_order_response

logger = logging.getLogger(__name__)

router = APIRouter()

DATE_RANGES = {"7days": 7, "30days": 30, "90days": 90}

SORTS = {
    "date_desc": StoreOrder.created_at.desc(),
    "date_asc": StoreOrder.created_at.asc(),
    "total_desc": StoreOrder.total.desc(),
    "total_asc": StoreOrder.total.asc(),
}


async def get_store_order(db: AsyncSession, store: VendorStore, order_id: int) -> StoreOrder:
    order = await db.get(StoreOrder, order_id)
    if not order:
        raise HTTPException(status_code=404, detail="Order not found")
    if order.store_id != store.id:
        raise HTTPException(status_code=403, detail="Forbidden")
    return order


@router.get("", response_model=OrderListResponse)
async def list_store_orders(
    *,
    db: AsyncSession = Depends(get_db),
    store: VendorStore = Depends(require_vendor_store),
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    status: str = Query("all", pattern="^(all|unfulfilled|shipped|delivered|cancelled|refunded)$"),
    date_range: str = Query("30days", pattern="^(7days|30days|90days|all)$"),
    sort_by: str = Query("date_desc", pattern="^(date_desc|date_asc|total_desc|total_asc)$"),
    search: Optional[str] = Query(None, description="Order number, customer name or email")) -> Any:
    conditions = [StoreOrder.store_id == store.id, StoreOrder.payment_status != PaymentStatus.PENDING]
    if status == "unfulfilled":
        conditions.append(StoreOrder.fulfillment_status == FulfillmentStatus.UNFULFILLED)
        conditions.append(StoreOrder.status == OrderStatus.PAID)
    elif status == "shipped":
        conditions.append(StoreOrder.fulfillment_status == FulfillmentStatus.SHIPPED)
    elif status == "delivered":
        conditions.append(StoreOrder.fulfillment_status == FulfillmentStatus.DELIVERED)
    elif status == "cancelled":
        conditions.append(StoreOrder.status == OrderStatus.CANCELLED)
    elif status == "refunded":
        conditions.append(StoreOrder.payment_status.in_([PaymentStatus.REFUNDED, PaymentStatus.PARTIALLY_REFUNDED]))

    if date_range in DATE_RANGES:
        conditions.append(StoreOrder.created_at >= datetime.utcnow() - timedelta(days=DATE_RANGES[date_range]))

    if search:
        pattern = f"%{search}%"
        conditions.append(or_(
            StoreOrder.order_number.ilike(pattern),
            StoreOrder.customer_name.ilike(pattern),
            StoreOrder.customer_email.ilike(pattern),
        ))

    total_result = await db.execute(select(func.count(StoreOrder.id)).where(*conditions))
    total = total_result.scalar() or 0
    result = await db.execute(
        select(StoreOrder)
        .where(*conditions)
        .order_by(SORTS[sort_by], StoreOrder.id.desc())
        .offset((page - 1) * limit)
        .limit(limit)
    )
    return OrderListResponse(
        data=[build_order_response(o, VendorOrderResponse) for o in result.scalars().all()],
        total=total,
        page=page,
        limit=limit,
        total_pages=(total + limit - 1) // limit,
    )


@router.get("/{order_id}", response_model=VendorOrderResponse)
async def get_store_order_detail(
    *,
    db: AsyncSession = Depends(get_db),
    store: VendorStore = Depends(require_vendor_store),
    order_id: int) -> Any:
    order = await get_store_order(db, store, order_id)
    return build_order_response(order, VendorOrderResponse)


@router.post("/{order_id}/fulfill", response_model=VendorOrderResponse)
async def fulfill_order(
    *,
    db: AsyncSession = Depends(get_db),
    store: VendorStore = Depends(require_vendor_store),
    order_id: int,
    fulfill_in: OrderFulfill) -> Any:
    """Mark a paid order as shipped"""
    order = await get_store_order(db, store, order_id)

    if order.status != OrderStatus.PAID or order.payment_status != PaymentStatus.PAID:
        raise HTTPException(status_code=400, detail="Only paid orders can be fulfilled")
    if order.fulfillment_status != FulfillmentStatus.UNFULFILLED:
        raise HTTPException(status_code=400, detail="Order has already been fulfilled")

    order.fulfillment_status = FulfillmentStatus.SHIPPED
    order.carrier = fulfill_in.carrier
    order.tracking_number = fulfill_in.tracking_number
    order.shipped_at = naive_utc(fulfill_in.shipping_date)
    if fulfill_in.internal_notes:
        order.internal_notes = fulfill_in.internal_notes

    for item in order.items:
        product = await db.get(Product, item.product_id)
        if not product:
            continue
        variant = await load_variant(db, product.id, item.variant_id)
        commit_stock(db, product, variant, item.quantity, order_id=order.id,
                     reason=f"Shipped {order.order_number}")

    # Payout becomes withdrawable once the goods are on their way
    store.withdraw_balance = (store.withdraw_balance or Decimal("0")) + (order.vendor_payout or Decimal("0"))

    await db.commit()
    logger.info(f"Order {order.order_number} shipped via {order.carrier} {order.tracking_number or ''}")

    if order.tracking_number:
        try:
            await run_in_threadpool(email_service.send_shipping_notification, order, store.name)
        except Exception as e:
            logger.error(f"Shipping email failed for {order.order_number}: {e}")

    return build_order_response(order, VendorOrderResponse)


@router.post("/{order_id}/deliver", response_model=VendorOrderResponse)
async def mark_delivered(
    *,
    db: AsyncSession = Depends(get_db),
    store: VendorStore = Depends(require_vendor_store),
    order_id: int) -> Any:
    order = await get_store_order(db, store, order_id)
    if order.fulfillment_status != FulfillmentStatus.SHIPPED:
        raise HTTPException(status_code=400, detail="Only shipped orders can be marked as delivered")
    order.fulfillment_status = FulfillmentStatus.DELIVERED
    order.delivered_at = datetime.utcnow()
    await db.commit()
    return build_order_response(order, VendorOrderResponse)


@router.post("/{order_id}/cancel", response_model=VendorOrderResponse)
async def cancel_order(
    *,
    db: AsyncSession = Depends(get_db),
    store: VendorStore = Depends(require_vendor_store),
    order_id: int,
    cancel_in: OrderCancel) -> Any:
    """Cancel an unshipped order and release its stock"""
    order = await get_store_order(db, store, order_id)

    if order.status == OrderStatus.CANCELLED or order.fulfillment_status == FulfillmentStatus.CANCELLED:
        raise HTTPException(status_code=400, detail="Order is already cancelled")
    if order.status == OrderStatus.REFUNDED:
        raise HTTPException(status_code=400, detail="Refunded orders cannot be cancelled")
    if order.fulfillment_status in (FulfillmentStatus.SHIPPED, FulfillmentStatus.DELIVERED):
        raise HTTPException(status_code=400, detail="Cannot cancel orders that have been shipped or delivered")

    # Paid and still holding stock, whatever partial refunds happened since
    was_paid = order.paid_at is not None and order.fulfillment_status == FulfillmentStatus.UNFULFILLED
    order.status = OrderStatus.CANCELLED
    order.fulfillment_status = FulfillmentStatus.CANCELLED
    order.cancel_reason = cancel_in.reason or "Order cancelled by vendor"
    order.cancelled_at = datetime.utcnow()

    if was_paid:
        for item in order.items:
            product = await db.get(Product, item.product_id)
            if not product:
                continue
            variant = await load_variant(db, product.id, item.variant_id)
            release_stock(db, product, variant, item.quantity, order_id=order.id,
                          reason=f"Cancelled {order.order_number}")
            product.sales_count = max((product.sales_count or 0) - item.quantity, 0)

        store.total_orders = max((store.total_orders or 0) - 1, 0)
        store.total_sales = max((store.total_sales or Decimal("0")) - (order.vendor_payout or Decimal("0")), Decimal("0"))

    await db.commit()
    logger.info(f"Order {order.order_number} cancelled by store {store.id}")
    return build_order_response(order, VendorOrderResponse)
