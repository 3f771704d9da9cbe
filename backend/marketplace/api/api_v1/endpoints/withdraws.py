"""
Vendor withdrawals
- vendor: request / list / cancel
- admin: approve / reject / mark paid
"""

import logging
from datetime import datetime
from decimal import Decimal
from typing import Any, Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession

from marketplace.core.deps import get_db, require_vendor_store, require_admin
from marketplace.core.errors import BusinessLogicError, NotFoundError, ForbiddenError
from marketplace.models import VendorWithdraw, VendorStore, User, WithdrawMethod, WithdrawStatus
from marketplace.schemas.withdraw import (
    WithdrawCreate, WithdrawAdminAction, WithdrawResponse, WithdrawListResponse
)

logger = logging.getLogger(__name__)

router = APIRouter()
admin_router = APIRouter()

STATUS_PATTERN = "^(PENDING|APPROVED|PROCESSING|PAID|REJECTED|CANCELLED)$"


async def paginate_withdraws(db: AsyncSession, conditions: list, page: int, limit: int) -> dict:
    total_result = await db.execute(select(func.count(VendorWithdraw.id)).where(*conditions))
    total = total_result.scalar() or 0
    result = await db.execute(
        select(VendorWithdraw)
        .where(*conditions)
        .order_by(VendorWithdraw.requested_at.desc(), VendorWithdraw.id.desc())
        .offset((page - 1) * limit)
        .limit(limit)
    )
    return {
        "data": [WithdrawResponse.model_validate(w) for w in result.scalars().all()],
        "total": total,
        "page": page,
        "limit": limit,
        "total_pages": (total + limit - 1) // limit,
    }


async def get_store_withdraw(db: AsyncSession, store: VendorStore, withdraw_id: int) -> VendorWithdraw:
    withdraw = await db.get(VendorWithdraw, withdraw_id)
    if not withdraw:
        raise NotFoundError("Withdraw")
    if withdraw.store_id != store.id:
        raise ForbiddenError()
    return withdraw


# ===== Vendor =====
@router.get("", response_model=WithdrawListResponse)
async def list_withdraws(
    *,
    db: AsyncSession = Depends(get_db),
    store: VendorStore = Depends(require_vendor_store),
    status: Optional[str] = Query(None, pattern=STATUS_PATTERN),
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100)) -> Any:
    conditions = [VendorWithdraw.store_id == store.id]
    if status:
        conditions.append(VendorWithdraw.status == status)
    page_data = await paginate_withdraws(db, conditions, page, limit)
    return WithdrawListResponse(
        **page_data,
        balance=float(store.withdraw_balance or 0),
        minimum_withdraw=float(store.minimum_withdraw or 0),
    )


@router.post("", response_model=WithdrawResponse, status_code=201)
async def request_withdraw(
    *,
    db: AsyncSession = Depends(get_db),
    store: VendorStore = Depends(require_vendor_store),
    withdraw_in: WithdrawCreate) -> Any:
    """Request a payout; the amount leaves the balance right away"""
    balance = store.withdraw_balance or Decimal("0")
    minimum = store.minimum_withdraw or Decimal("0")

    if withdraw_in.amount < minimum:
        raise BusinessLogicError(f"Minimum withdraw amount is ${minimum:.2f}")
    if withdraw_in.amount > balance:
        raise BusinessLogicError(f"Insufficient balance. Available: ${balance:.2f}")
    if withdraw_in.method == WithdrawMethod.STRIPE and not store.stripe_account_id:
        raise BusinessLogicError("Stripe account not connected")
    if withdraw_in.method == WithdrawMethod.PAYPAL and not store.paypal_email:
        raise BusinessLogicError("PayPal email not configured")

    open_result = await db.execute(
        select(VendorWithdraw.id).where(
            VendorWithdraw.store_id == store.id,
            VendorWithdraw.status.in_(WithdrawStatus.OPEN),
        )
    )
    if open_result.first() is not None:
        raise BusinessLogicError("You have a pending withdraw request. Please wait for it to be processed.")

    withdraw = VendorWithdraw(
        store_id=store.id,
        amount=withdraw_in.amount,
        method=withdraw_in.method,
        status=WithdrawStatus.PENDING,
        notes=withdraw_in.notes,
        bank_details=withdraw_in.bank_details,
        requested_at=datetime.utcnow(),
    )
    db.add(withdraw)
    store.withdraw_balance = balance - withdraw_in.amount

    await db.commit()
    await db.refresh(withdraw)
    logger.info(f"Withdraw request {withdraw.id} created for ${withdraw_in.amount} by store {store.id}")
    return withdraw


@router.get("/{withdraw_id}", response_model=WithdrawResponse)
async def get_withdraw(
    *,
    db: AsyncSession = Depends(get_db),
    store: VendorStore = Depends(require_vendor_store),
    withdraw_id: int) -> Any:
    return await get_store_withdraw(db, store, withdraw_id)


@router.delete("/{withdraw_id}", response_model=WithdrawResponse)
async def cancel_withdraw(
    *,
    db: AsyncSession = Depends(get_db),
    store: VendorStore = Depends(require_vendor_store),
    withdraw_id: int) -> Any:
    withdraw = await get_store_withdraw(db, store, withdraw_id)
    if withdraw.status != WithdrawStatus.PENDING:
        raise BusinessLogicError("Only pending withdraws can be cancelled")

    withdraw.status = WithdrawStatus.CANCELLED
    store.withdraw_balance = (store.withdraw_balance or Decimal("0")) + withdraw.amount
    await db.commit()
    await db.refresh(withdraw)
    logger.info(f"Withdraw request {withdraw.id} cancelled by store {store.id}")
    return withdraw


# ===== Admin =====
@admin_router.get("", response_model=WithdrawListResponse)
async def admin_list_withdraws(
    *,
    db: AsyncSession = Depends(get_db),
    admin: User = Depends(require_admin),
    status: Optional[str] = Query(None, pattern=STATUS_PATTERN),
    store_id: Optional[int] = Query(None),
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100)) -> Any:
    conditions = []
    if status:
        conditions.append(VendorWithdraw.status == status)
    if store_id:
        conditions.append(VendorWithdraw.store_id == store_id)
    return WithdrawListResponse(**await paginate_withdraws(db, conditions, page, limit))


@admin_router.patch("/{withdraw_id}", response_model=WithdrawResponse)
async def admin_update_withdraw(
    *,
    db: AsyncSession = Depends(get_db),
    admin: User = Depends(require_admin),
    withdraw_id: int,
    action_in: WithdrawAdminAction) -> Any:
    withdraw = await db.get(VendorWithdraw, withdraw_id)
    if not withdraw:
        raise NotFoundError("Withdraw")

    now = datetime.utcnow()
    if action_in.action == "approve":
        if withdraw.status != WithdrawStatus.PENDING:
            raise BusinessLogicError("Only pending withdraws can be approved")
        withdraw.status = WithdrawStatus.APPROVED

    elif action_in.action == "reject":
        if withdraw.status != WithdrawStatus.PENDING:
            raise BusinessLogicError("Only pending withdraws can be rejected")
        withdraw.status = WithdrawStatus.REJECTED
        withdraw.processed_at = now
        store = await db.get(VendorStore, withdraw.store_id)
        if store:
            store.withdraw_balance = (store.withdraw_balance or Decimal("0")) + withdraw.amount

    else:  # mark_paid
        if withdraw.status not in (WithdrawStatus.APPROVED, WithdrawStatus.PROCESSING):
            raise BusinessLogicError("Only approved/processing withdraws can be marked as paid")
        withdraw.status = WithdrawStatus.PAID
        withdraw.processed_at = now

    if action_in.admin_notes is not None:
        withdraw.admin_notes = action_in.admin_notes
    withdraw.processed_by = admin.id
    await db.commit()
    await db.refresh(withdraw)
    logger.info(f"Withdraw {withdraw.id} {action_in.action} by admin {admin.id}")
    return withdraw
