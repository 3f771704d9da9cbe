"""
Scheduled jobs (APScheduler)

- daily low stock alerts to vendors
- daily review requests for orders shipped 3 days ago
- monthly reset of tenant order counters

The same job bodies back the /cron endpoints, so an external scheduler can
drive them instead.
"""

import logging
from collections import defaultdict
from datetime import datetime, timedelta
from typing import Optional

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger
from fastapi.concurrency import run_in_threadpool
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from marketplace.core.config import settings
from marketplace.db.session import SessionLocal
from marketplace.models import (
    StoreOrder, StoreOrderItem, ProductReview, VendorStore, PaymentStatus
)
from marketplace.services import email as email_service
from marketplace.services.review_tokens import generate_review_token, get_review_url
from marketplace.services.stock import find_low_stock
from marketplace.services.tenancy import reset_monthly_usage

logger = logging.getLogger(__name__)

scheduler: Optional[AsyncIOScheduler] = None

REVIEW_REQUEST_DELAY_DAYS = 3


async def run_low_stock_check(db: AsyncSession) -> dict:
    """Email each store the list of its low stock products"""
    low_items = await find_low_stock(db)
    by_store = defaultdict(list)
    for item in low_items:
        by_store[item["store_id"]].append(item)

    emails_sent = 0
    errors = 0
    for store_id, products in by_store.items():
        store = await db.get(VendorStore, store_id)
        if not store or not store.is_active:
            continue
        try:
            await run_in_threadpool(email_service.send_low_stock_alert, store.email, store.name, products)
            emails_sent += 1
        except Exception as e:
            errors += 1
            logger.error(f"Low stock alert to store {store_id} failed: {e}")

    logger.info(f"Low stock check: {len(low_items)} items across {len(by_store)} stores, {emails_sent} emails sent")
    return {"low_stock_items": len(low_items), "stores": len(by_store), "emails_sent": emails_sent, "errors": errors}


async def run_review_requests(db: AsyncSession, now: Optional[datetime] = None) -> dict:
    """Ask buyers to review items from orders shipped REVIEW_REQUEST_DELAY_DAYS days ago"""
    now = now or datetime.utcnow()
    window_end = now - timedelta(days=REVIEW_REQUEST_DELAY_DAYS)
    window_start = window_end - timedelta(days=1)

    result = await db.execute(
        select(StoreOrderItem, StoreOrder)
        .join(StoreOrder, StoreOrderItem.order_id == StoreOrder.id)
        .outerjoin(ProductReview, ProductReview.order_item_id == StoreOrderItem.id)
        .where(
            StoreOrder.payment_status == PaymentStatus.PAID,
            StoreOrder.refunded_at.is_(None),
            StoreOrder.shipped_at > window_start,
            StoreOrder.shipped_at <= window_end,
            StoreOrderItem.review_request_sent_at.is_(None),
            ProductReview.id.is_(None),
        )
        .order_by(StoreOrder.id, StoreOrderItem.id)
    )
    rows = result.all()

    sent = 0
    errors = 0
    for item, order in rows:
        try:
            review_url = get_review_url(generate_review_token(item.id, now))
            await run_in_threadpool(
                email_service.send_review_request,
                order.customer_email, order.customer_name, item.name, review_url, order.order_number
            )
            item.review_request_sent_at = now
            sent += 1
        except Exception as e:
            errors += 1
            logger.error(f"Review request for order item {item.id} failed: {e}")

    await db.commit()
    logger.info(f"Review requests: {sent} sent, {errors} failed, {len(rows)} candidates")
    return {"candidates": len(rows), "emails_sent": sent, "errors": errors}


async def low_stock_job():
    try:
        async with SessionLocal() as db:
            await run_low_stock_check(db)
    except Exception as e:
        logger.error(f"Low stock job failed: {e}")


async def review_request_job():
    try:
        async with SessionLocal() as db:
            await run_review_requests(db)
    except Exception as e:
        logger.error(f"Review request job failed: {e}")


async def monthly_reset_job():
    try:
        async with SessionLocal() as db:
            await reset_monthly_usage(db)
    except Exception as e:
        logger.error(f"Monthly usage reset failed: {e}")


def init_scheduler():
    """Create and start the scheduler"""
    global scheduler

    if not settings.SCHEDULER_ENABLED:
        logger.info("Scheduler disabled")
        return

    scheduler = AsyncIOScheduler()
    scheduler.add_job(
        low_stock_job,
        trigger=CronTrigger(hour=settings.LOW_STOCK_CHECK_HOUR, minute=0),
        id="low_stock_check",
        name="Low stock alerts",
        replace_existing=True
    )
    scheduler.add_job(
        review_request_job,
        trigger=CronTrigger(hour=settings.REVIEW_REQUEST_HOUR, minute=0),
        id="review_requests",
        name="Review request emails",
        replace_existing=True
    )
    scheduler.add_job(
        monthly_reset_job,
        trigger=CronTrigger(day=1, hour=0, minute=0),
        id="monthly_usage_reset",
        name="Reset monthly tenant usage",
        replace_existing=True
    )

    scheduler.start()
    logger.info(
        f"Scheduler started - low stock {settings.LOW_STOCK_CHECK_HOUR:02d}:00, "
        f"review requests {settings.REVIEW_REQUEST_HOUR:02d}:00, usage reset on the 1st"
    )


def shutdown_scheduler():
    global scheduler
    if scheduler:
        scheduler.shutdown()
        scheduler = None
        logger.info("Scheduler stopped")


def get_scheduler_status() -> dict:
    if not scheduler:
        return {"enabled": settings.SCHEDULER_ENABLED, "running": False, "jobs": []}

    jobs = []
    for job in scheduler.get_jobs():
        jobs.append({
            "id": job.id,
            "name": job.name,
            "next_run_time": job.next_run_time.isoformat() if job.next_run_time else None
        })
    return {"enabled": settings.SCHEDULER_ENABLED, "running": scheduler.running, "jobs": jobs}
