"""Vendor coupons"""

import logging
from typing import Any, List

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from marketplace.core.dates import naive_utc
from marketplace.core.deps import get_db, require_vendor_store
from marketplace.models import Coupon, VendorStore, DiscountType
from marketplace.schemas.coupon import CouponCreate, CouponUpdate, CouponResponse

logger = logging.getLogger(__name__)

router = APIRouter()


async def get_store_coupon(db: AsyncSession, store: VendorStore, coupon_id: int) -> Coupon:
    coupon = await db.get(Coupon, coupon_id)
    if not coupon:
        raise HTTPException(status_code=404, detail="Coupon not found")
    if coupon.store_id != store.id:
        raise HTTPException(status_code=403, detail="Forbidden")
    return coupon


@router.get("", response_model=List[CouponResponse])
async def list_coupons(
    *,
    db: AsyncSession = Depends(get_db),
    store: VendorStore = Depends(require_vendor_store),
    active_only: bool = Query(False)) -> Any:
    query = select(Coupon).where(Coupon.store_id == store.id)
    if active_only:
        query = query.where(Coupon.is_active == True)
    result = await db.execute(query.order_by(Coupon.created_at.desc(), Coupon.id.desc()))
    return result.scalars().all()


@router.post("", response_model=CouponResponse, status_code=201)
async def create_coupon(
    *,
    db: AsyncSession = Depends(get_db),
    store: VendorStore = Depends(require_vendor_store),
    coupon_in: CouponCreate) -> Any:
    existing = await db.execute(
        select(Coupon.id).where(Coupon.store_id == store.id, Coupon.code == coupon_in.code)
    )
    if existing.scalar_one_or_none() is not None:
        raise HTTPException(status_code=409, detail=f"Coupon code {coupon_in.code} already exists")

    data = coupon_in.model_dump()
    data["start_date"] = naive_utc(data["start_date"])
    data["end_date"] = naive_utc(data["end_date"])
    coupon = Coupon(store_id=store.id, usage_count=0, **data)
    db.add(coupon)
    await db.commit()
    await db.refresh(coupon)
    logger.info(f"Store {store.id} created coupon {coupon.code}")
    return coupon


@router.put("/{coupon_id}", response_model=CouponResponse)
async def update_coupon(
    *,
    db: AsyncSession = Depends(get_db),
    store: VendorStore = Depends(require_vendor_store),
    coupon_id: int,
    coupon_in: CouponUpdate) -> Any:
    coupon = await get_store_coupon(db, store, coupon_id)
    update_data = coupon_in.model_dump(exclude_unset=True)
    for key in ("start_date", "end_date"):
        if key in update_data:
            update_data[key] = naive_utc(update_data[key])

    value = update_data.get("discount_value", coupon.discount_value)
    if coupon.discount_type == DiscountType.PERCENTAGE and value is not None and value > 100:
        raise HTTPException(status_code=400, detail="Percentage discount cannot exceed 100")
    start = update_data.get("start_date", coupon.start_date)
    end = update_data.get("end_date", coupon.end_date)
    if start and end and end < start:
        raise HTTPException(status_code=400, detail="End date must be after start date")

    for field, val in update_data.items():
        setattr(coupon, field, val)
    await db.commit()
    await db.refresh(coupon)
    return coupon


@router.delete("/{coupon_id}")
async def delete_coupon(
    *,
    db: AsyncSession = Depends(get_db),
    store: VendorStore = Depends(require_vendor_store),
    coupon_id: int) -> Any:
    coupon = await get_store_coupon(db, store, coupon_id)
    await db.delete(coupon)
    await db.commit()
    return {"message": "Coupon deleted"}
