"""
Product reviews
- eligibility and submission (signed-in buyers or emailed review links)
- public listing with rating aggregates
- helpful votes, vendor responses, flagging
"""

import base64
import logging
from datetime import datetime
from typing import Any, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request
from redis.asyncio import Redis
from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession

from marketplace.core.deps import (
    get_db, get_redis, get_current_user, get_optional_user, require_vendor_store, client_ip
)
from marketplace.core.rate_limit import rate_limit
from marketplace.models import (
    ProductReview, ReviewStatus, Product, ProductStatus, StoreOrder, StoreOrderItem, User, VendorStore
)
from marketplace.schemas.review import (
    ReviewCreate, TokenReviewCreate, ReviewResponse, ReviewEligibility, ReviewAggregates,
    ProductReviewListResponse, ReviewListResponse, ReviewVote, ReviewVoteStatus,
    ReviewFlag, ReviewRespond, FLAG_REASONS
)
from marketplace.services.review_tokens import decode_review_token
from marketplace.services.reviews import (
    check_review_eligibility, rating_distribution, update_rating_aggregates
)

logger = logging.getLogger(__name__)

router = APIRouter()
vendor_router = APIRouter()

VOTE_TTL_SECONDS = 30 * 24 * 60 * 60

SORTS = {
    "recent": (ProductReview.created_at.desc(),),
    "highest": (ProductReview.rating.desc(), ProductReview.created_at.desc()),
    "lowest": (ProductReview.rating.asc(), ProductReview.created_at.desc()),
    "helpful": (ProductReview.helpful_count.desc(), ProductReview.created_at.desc()),
}


def build_review_response(review: ProductReview) -> ReviewResponse:
    return ReviewResponse(
        id=review.id,
        product_id=review.product_id,
        store_id=review.store_id,
        order_item_id=review.order_item_id,
        rating=review.rating,
        title=review.title,
        review=review.body,
        photo_urls=review.photo_urls or [],
        customer_name=review.customer_name,
        is_verified_purchase=review.is_verified_purchase,
        status=review.status,
        vendor_response=review.vendor_response,
        vendor_responded_at=review.vendor_responded_at,
        helpful_count=review.helpful_count or 0,
        unhelpful_count=review.unhelpful_count or 0,
        created_at=review.created_at,
    )


async def create_review(db: AsyncSession, eligibility: dict, data, customer_id: Optional[int]) -> ProductReview:
    review = ProductReview(
        product_id=eligibility["product_id"],
        store_id=eligibility["store_id"],
        order_item_id=eligibility["order_item_id"],
        customer_id=customer_id,
        rating=data.rating,
        title=data.title,
        body=data.review,
        photo_urls=list(data.photo_urls or []),
        customer_name=data.customer_name or eligibility.get("customer_name") or "Verified buyer",
        customer_email=eligibility["customer_email"],
        is_verified_purchase=True,
        status=ReviewStatus.PUBLISHED,
    )
    db.add(review)
    await update_rating_aggregates(db, review.product_id, review.store_id)
    await db.commit()
    await db.refresh(review)
    logger.info(f"Review {review.id} created for product {review.product_id} ({review.rating}*)")
    return review


async def get_published_review(db: AsyncSession, review_id: int) -> ProductReview:
    review = await db.get(ProductReview, review_id)
    if not review or review.status == ReviewStatus.HIDDEN:
        raise HTTPException(status_code=404, detail="Review not found")
    return review


async def order_email_for_item(db: AsyncSession, order_item_id: int) -> Optional[str]:
    item = await db.get(StoreOrderItem, order_item_id)
    if not item:
        raise HTTPException(status_code=404, detail="Order item not found")
    order = await db.get(StoreOrder, item.order_id)
    return order.customer_email if order else None


def voter_key(review_id: int, request: Request) -> str:
    # Anonymous voters are told apart by IP plus a short user agent fingerprint
    user_agent = request.headers.get("user-agent", "")
    fingerprint = base64.b64encode(user_agent.encode()).decode()[:10]
    return f"review:vote:{review_id}:{client_ip(request)}{fingerprint}"


@router.get("/eligibility", response_model=ReviewEligibility)
async def get_review_eligibility(
    *,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
    order_item_id: int = Query(...)) -> Any:
    return await check_review_eligibility(db, order_item_id, user=current_user)


@router.post("", response_model=ReviewResponse, status_code=201)
async def submit_review(
    *,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
    review_in: ReviewCreate) -> Any:
    """Submit a review for an item the caller bought"""
    eligibility = await check_review_eligibility(db, review_in.order_item_id, user=current_user)
    if not eligibility["eligible"]:
        raise HTTPException(status_code=400, detail=eligibility["reason"])
    if not review_in.customer_name:
        review_in.customer_name = eligibility.get("customer_name") or current_user.name
    review = await create_review(db, eligibility, review_in, current_user.id)
    return build_review_response(review)


@router.get("/token/{token}", response_model=ReviewEligibility)
async def get_token_eligibility(
    *,
    db: AsyncSession = Depends(get_db),
    token: str) -> Any:
    """Eligibility for an emailed review link"""
    order_item_id, valid, reason = decode_review_token(token)
    if not valid:
        raise HTTPException(status_code=400, detail=reason)
    email = await order_email_for_item(db, order_item_id)
    return await check_review_eligibility(db, order_item_id, email=email)


@router.post("/token/{token}", response_model=ReviewResponse, status_code=201)
async def submit_token_review(
    *,
    db: AsyncSession = Depends(get_db),
    current_user: Optional[User] = Depends(get_optional_user),
    token: str,
    review_in: TokenReviewCreate) -> Any:
    order_item_id, valid, reason = decode_review_token(token)
    if not valid:
        raise HTTPException(status_code=400, detail=reason)
    email = await order_email_for_item(db, order_item_id)
    eligibility = await check_review_eligibility(db, order_item_id, email=email)
    if not eligibility["eligible"]:
        raise HTTPException(status_code=400, detail=eligibility["reason"])
    review = await create_review(db, eligibility, review_in, current_user.id if current_user else None)
    return build_review_response(review)


@router.get("/product/{product_id}", response_model=ProductReviewListResponse)
async def list_product_reviews(
    *,
    db: AsyncSession = Depends(get_db),
    product_id: int,
    sort: str = Query("recent", pattern="^(recent|highest|lowest|helpful)$"),
    rating: Optional[int] = Query(None, ge=1, le=5),
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100)) -> Any:
    product = await db.get(Product, product_id)
    if not product or product.status != ProductStatus.ACTIVE:
        raise HTTPException(status_code=404, detail="Product not found")

    conditions = [ProductReview.product_id == product_id, ProductReview.status == ReviewStatus.PUBLISHED]
    if rating:
        conditions.append(ProductReview.rating == rating)

    total_result = await db.execute(select(func.count(ProductReview.id)).where(*conditions))
    total = total_result.scalar() or 0
    result = await db.execute(
        select(ProductReview)
        .where(*conditions)
        .order_by(*SORTS[sort], ProductReview.id.desc())
        .offset((page - 1) * limit)
        .limit(limit)
    )
    reviews = result.scalars().all()

    distribution = await rating_distribution(db, product_id)
    review_count = sum(distribution.values())
    average = sum(star * count for star, count in distribution.items()) / review_count if review_count else 0

    return ProductReviewListResponse(
        data=[build_review_response(r) for r in reviews],
        total=total,
        page=page,
        limit=limit,
        total_pages=(total + limit - 1) // limit,
        has_more=page * limit < total,
        aggregates=ReviewAggregates(
            average_rating=round(average, 2),
            total_reviews=review_count,
            distribution=distribution,
        ),
    )


@router.get("/{review_id}/vote", response_model=ReviewVoteStatus)
async def get_vote_status(
    *,
    db: AsyncSession = Depends(get_db),
    redis: Redis = Depends(get_redis),
    request: Request,
    review_id: int) -> Any:
    review = await get_published_review(db, review_id)
    vote_type = await redis.get(voter_key(review_id, request))
    return ReviewVoteStatus(
        has_voted=vote_type is not None,
        vote_type=vote_type,
        helpful_count=review.helpful_count or 0,
        unhelpful_count=review.unhelpful_count or 0,
    )


@router.post("/{review_id}/vote", response_model=ReviewVoteStatus)
@rate_limit("review_vote")
async def vote_review(
    *,
    db: AsyncSession = Depends(get_db),
    redis: Redis = Depends(get_redis),
    request: Request,
    review_id: int,
    vote_in: ReviewVote) -> Any:
    """Helpful / unhelpful vote, one per voter; switching moves the count"""
    review = await get_published_review(db, review_id)
    key = voter_key(review_id, request)
    previous = await redis.get(key)

    if previous == vote_in.vote_type:
        raise HTTPException(status_code=409, detail="You have already voted on this review")

    if previous == "helpful":
        review.helpful_count = max((review.helpful_count or 0) - 1, 0)
    elif previous == "unhelpful":
        review.unhelpful_count = max((review.unhelpful_count or 0) - 1, 0)

    if vote_in.vote_type == "helpful":
        review.helpful_count = (review.helpful_count or 0) + 1
    else:
        review.unhelpful_count = (review.unhelpful_count or 0) + 1

    await db.commit()
    await redis.setex(key, VOTE_TTL_SECONDS, vote_in.vote_type)
    return ReviewVoteStatus(
        has_voted=True,
        vote_type=vote_in.vote_type,
        helpful_count=review.helpful_count,
        unhelpful_count=review.unhelpful_count,
    )


@router.post("/{review_id}/respond", response_model=ReviewResponse)
async def respond_to_review(
    *,
    db: AsyncSession = Depends(get_db),
    store: VendorStore = Depends(require_vendor_store),
    review_id: int,
    respond_in: ReviewRespond) -> Any:
    review = await get_published_review(db, review_id)
    if review.store_id != store.id:
        raise HTTPException(status_code=403, detail="You can only respond to reviews of your own products")
    if review.vendor_response:
        raise HTTPException(status_code=400, detail="You have already responded to this review")

    review.vendor_response = respond_in.response.strip()
    review.vendor_responded_at = datetime.utcnow()
    await db.commit()
    await db.refresh(review)
    return build_review_response(review)


@router.post("/{review_id}/flag")
async def flag_review(
    *,
    db: AsyncSession = Depends(get_db),
    review_id: int,
    flag_in: ReviewFlag) -> Any:
    review = await db.get(ProductReview, review_id)
    if not review:
        raise HTTPException(status_code=404, detail="Review not found")
    if review.status == ReviewStatus.FLAGGED:
        raise HTTPException(status_code=400, detail="This review has already been flagged")

    reason_text = FLAG_REASONS[flag_in.reason]
    review.flag_reason = f"{reason_text}: {flag_in.details}" if flag_in.details else reason_text
    review.flagged_at = datetime.utcnow()
    review.status = ReviewStatus.FLAGGED

    # Flagged reviews drop out of the published averages until moderated
    await update_rating_aggregates(db, review.product_id, review.store_id)
    await db.commit()
    logger.warning(f"Review {review.id} flagged: {review.flag_reason}")
    return {"message": "Review flagged for moderation", "review_id": review.id}


@vendor_router.get("", response_model=ReviewListResponse)
async def list_store_reviews(
    *,
    db: AsyncSession = Depends(get_db),
    store: VendorStore = Depends(require_vendor_store),
    rating: Optional[int] = Query(None, ge=1, le=5),
    status: Optional[str] = Query(None, pattern="^(PUBLISHED|FLAGGED|HIDDEN)$"),
    responded: Optional[bool] = Query(None),
    product_id: Optional[int] = Query(None),
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100)) -> Any:
    """Reviews of the caller's products"""
    conditions = [ProductReview.store_id == store.id]
    if rating:
        conditions.append(ProductReview.rating == rating)
    if status:
        conditions.append(ProductReview.status == status)
    if product_id:
        conditions.append(ProductReview.product_id == product_id)
    if responded is True:
        conditions.append(ProductReview.vendor_response.isnot(None))
    elif responded is False:
        conditions.append(ProductReview.vendor_response.is_(None))

    total_result = await db.execute(select(func.count(ProductReview.id)).where(*conditions))
    total = total_result.scalar() or 0
    result = await db.execute(
        select(ProductReview)
        .where(*conditions)
        .order_by(ProductReview.created_at.desc(), ProductReview.id.desc())
        .offset((page - 1) * limit)
        .limit(limit)
    )
    return ReviewListResponse(
        data=[build_review_response(r) for r in result.scalars().all()],
        total=total,
        page=page,
        limit=limit,
        total_pages=(total + limit - 1) // limit,
    )
