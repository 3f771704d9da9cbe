"""Review Schema"""
from typing import Optional, List, Dict
from datetime import datetime
from pydantic import BaseModel, Field, EmailStr


class ReviewCreate(BaseModel):
    order_item_id: int
    rating: int = Field(..., ge=1, le=5)
    title: Optional[str] = Field(None, min_length=10, max_length=100)
    review: str = Field(..., min_length=50, max_length=5000)
    photo_urls: List[str] = Field(default=[], max_length=3)
    customer_name: Optional[str] = Field(None, min_length=1, max_length=100)
    customer_email: Optional[EmailStr] = None


class TokenReviewCreate(BaseModel):
    """Review submitted from an emailed link; the token identifies the item"""
    rating: int = Field(..., ge=1, le=5)
    title: Optional[str] = Field(None, min_length=10, max_length=100)
    review: str = Field(..., min_length=50, max_length=5000)
    photo_urls: List[str] = Field(default=[], max_length=3)
    customer_name: Optional[str] = Field(None, min_length=1, max_length=100)


class ReviewResponse(BaseModel):
    id: int
    product_id: int
    store_id: int
    order_item_id: int
    rating: int
    title: Optional[str] = None
    review: str
    photo_urls: List[str] = []
    customer_name: str
    is_verified_purchase: bool
    status: str
    vendor_response: Optional[str] = None
    vendor_responded_at: Optional[datetime] = None
    helpful_count: int
    unhelpful_count: int
    created_at: datetime


class ReviewEligibility(BaseModel):
    eligible: bool
    reason: Optional[str] = None
    days_remaining: Optional[int] = None
    order_item_id: Optional[int] = None
    product_id: Optional[int] = None
    product_name: Optional[str] = None
    variant_name: Optional[str] = None


class ReviewAggregates(BaseModel):
    average_rating: float
    total_reviews: int
    distribution: Dict[int, int]


class ProductReviewListResponse(BaseModel):
    data: List[ReviewResponse]
    total: int
    page: int
    limit: int
    total_pages: int
    has_more: bool
    aggregates: ReviewAggregates


class ReviewListResponse(BaseModel):
    data: List[ReviewResponse]
    total: int
    page: int
    limit: int
    total_pages: int


class ReviewVote(BaseModel):
    vote_type: str = Field(..., pattern=r"^(helpful|unhelpful)$")


class ReviewVoteStatus(BaseModel):
    has_voted: bool
    vote_type: Optional[str] = None
    helpful_count: int
    unhelpful_count: int


FLAG_REASONS = {
    "spam": "Spam or fake review",
    "offensive": "Offensive language",
    "off-topic": "Off-topic content",
    "personal-info": "Contains personal information",
    "external-links": "Contains external links",
    "other": "Other reason",
}


class ReviewFlag(BaseModel):
    reason: str = Field(..., pattern=r"^(spam|offensive|off-topic|personal-info|external-links|other)$")
    details: Optional[str] = Field(None, max_length=500)


class ReviewRespond(BaseModel):
    response: str = Field(..., min_length=10, max_length=500)
