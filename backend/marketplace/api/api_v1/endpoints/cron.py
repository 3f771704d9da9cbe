"""
Cron triggers for an external scheduler
All routes require "Authorization: Bearer <CRON_SECRET>"
"""

import logging
from typing import Any

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from marketplace.core.deps import get_db, verify_cron_secret
from marketplace.services.scheduler import run_low_stock_check, run_review_requests, get_scheduler_status
from marketplace.services.tenancy import reset_monthly_usage

logger = logging.getLogger(__name__)

router = APIRouter(dependencies=[Depends(verify_cron_secret)])


@router.post("/check-low-stock")
async def check_low_stock(*, db: AsyncSession = Depends(get_db)) -> Any:
    result = await run_low_stock_check(db)
    return {"success": True, **result}


@router.post("/send-review-requests")
async def send_review_requests(*, db: AsyncSession = Depends(get_db)) -> Any:
    result = await run_review_requests(db)
    return {"success": True, **result}


@router.post("/reset-monthly-usage")
async def reset_usage(*, db: AsyncSession = Depends(get_db)) -> Any:
    tenants_reset = await reset_monthly_usage(db)
    logger.info(f"Monthly usage reset for {tenants_reset} tenants")
    return {"success": True, "tenants_reset": tenants_reset}


@router.get("/status")
async def scheduler_status() -> Any:
    return get_scheduler_status()
