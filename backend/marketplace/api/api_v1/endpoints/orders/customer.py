"""Customer order history"""

from typing import Any, Optional
from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy import select, func, or_, and_
from sqlalchemy.ext.asyncio import AsyncSession

from marketplace.core.deps import get_db, get_current_user
from marketplace.models import StoreOrder, User
from marketplace.schemas.order import OrderResponse, OrderListResponse
from marketplace.api.api_v1.endpoints.orders.core import build_order_response

router = APIRouter()


def owned_by(user: User):
    # Guest orders placed with the same email count as the user's
    return or_(
        StoreOrder.customer_id == user.id,
        and_(StoreOrder.customer_id.is_(None), func.lower(StoreOrder.customer_email) == user.email.lower()),
    )


@router.get("", response_model=OrderListResponse)
async def list_my_orders(
    *,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    status: Optional[str] = Query(None)) -> Any:
    conditions = [owned_by(current_user)]
    if status:
        conditions.append(StoreOrder.status == status.upper())

    total_result = await db.execute(select(func.count(StoreOrder.id)).where(*conditions))
    total = total_result.scalar() or 0
    result = await db.execute(
        select(StoreOrder)
        .where(*conditions)
        .order_by(StoreOrder.created_at.desc(), StoreOrder.id.desc())
        .offset((page - 1) * limit)
        .limit(limit)
    )
    return OrderListResponse(
        data=[build_order_response(o) for o in result.scalars().all()],
        total=total,
        page=page,
        limit=limit,
        total_pages=(total + limit - 1) // limit,
    )


@router.get("/{order_id}", response_model=OrderResponse)
async def get_my_order(
    *,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
    order_id: int) -> Any:
    result = await db.execute(
        select(StoreOrder).where(StoreOrder.id == order_id, owned_by(current_user))
    )
    order = result.scalar_one_or_none()
    if not order:
        raise HTTPException(status_code=404, detail="Order not found")
    return build_order_response(order)
