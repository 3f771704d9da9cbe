"""
Store hours and vacation periods
"""

from datetime import datetime
from typing import Any, List, Optional

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from marketplace.core.dates import naive_utc
from marketplace.core.deps import get_db, require_vendor_store
from marketplace.models import StoreHours, StoreVacation, VendorStore, WEEKDAYS
from marketplace.schemas.store import (
    StoreHoursUpdate, StoreHoursResponse, VacationCreate, VacationUpdate, VacationResponse
)

router = APIRouter()


async def get_store_vacation(db: AsyncSession, store: VendorStore, vacation_id: int) -> StoreVacation:
    vacation = await db.get(StoreVacation, vacation_id)
    if not vacation:
        raise HTTPException(status_code=404, detail="Vacation not found")
    if vacation.store_id != store.id:
        raise HTTPException(status_code=403, detail="Forbidden")
    return vacation


# ===== Store hours =====
@router.get("/store-hours", response_model=Optional[StoreHoursResponse])
async def get_store_hours(
    *,
    db: AsyncSession = Depends(get_db),
    store: VendorStore = Depends(require_vendor_store)) -> Any:
    result = await db.execute(select(StoreHours).where(StoreHours.store_id == store.id))
    return result.scalar_one_or_none()


@router.put("/store-hours", response_model=StoreHoursResponse)
async def upsert_store_hours(
    *,
    db: AsyncSession = Depends(get_db),
    store: VendorStore = Depends(require_vendor_store),
    hours_in: StoreHoursUpdate) -> Any:
    result = await db.execute(select(StoreHours).where(StoreHours.store_id == store.id))
    hours = result.scalar_one_or_none()
    if hours is None:
        hours = StoreHours(store_id=store.id)
        db.add(hours)

    for day in WEEKDAYS:
        setattr(hours, day, getattr(hours_in, day).model_dump())
    hours.timezone = hours_in.timezone
    hours.is_enabled = hours_in.is_enabled
    hours.updated_at = datetime.utcnow()

    await db.commit()
    await db.refresh(hours)
    return hours


# ===== Vacations =====
@router.get("/vacations", response_model=List[VacationResponse])
async def list_vacations(
    *,
    db: AsyncSession = Depends(get_db),
    store: VendorStore = Depends(require_vendor_store)) -> Any:
    result = await db.execute(
        select(StoreVacation)
        .where(StoreVacation.store_id == store.id)
        .order_by(StoreVacation.start_date.desc())
    )
    return result.scalars().all()


@router.post("/vacations", response_model=VacationResponse, status_code=201)
async def create_vacation(
    *,
    db: AsyncSession = Depends(get_db),
    store: VendorStore = Depends(require_vendor_store),
    vacation_in: VacationCreate) -> Any:
    vacation = StoreVacation(
        store_id=store.id,
        start_date=naive_utc(vacation_in.start_date),
        end_date=naive_utc(vacation_in.end_date),
        message=vacation_in.message,
        is_active=vacation_in.is_active,
    )
    db.add(vacation)
    await db.commit()
    await db.refresh(vacation)
    return vacation


@router.put("/vacations/{vacation_id}", response_model=VacationResponse)
async def update_vacation(
    *,
    db: AsyncSession = Depends(get_db),
    store: VendorStore = Depends(require_vendor_store),
    vacation_id: int,
    vacation_in: VacationUpdate) -> Any:
    vacation = await get_store_vacation(db, store, vacation_id)
    update_data = vacation_in.model_dump(exclude_unset=True)
    for key in ("start_date", "end_date"):
        if key in update_data:
            if update_data[key] is None:
                del update_data[key]
            else:
                update_data[key] = naive_utc(update_data[key])

    start = update_data.get("start_date", vacation.start_date)
    end = update_data.get("end_date", vacation.end_date)
    if end < start:
        raise HTTPException(status_code=400, detail="End date must be after start date")

    for field, value in update_data.items():
        setattr(vacation, field, value)
    await db.commit()
    await db.refresh(vacation)
    return vacation


@router.delete("/vacations/{vacation_id}")
async def delete_vacation(
    *,
    db: AsyncSession = Depends(get_db),
    store: VendorStore = Depends(require_vendor_store),
    vacation_id: int) -> Any:
    vacation = await get_store_vacation(db, store, vacation_id)
    await db.delete(vacation)
    await db.commit()
    return {"message": "Vacation deleted"}
