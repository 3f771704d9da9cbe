from datetime import datetime
from sqlalchemy import Column, Integer, String, Text, Boolean, DateTime, ForeignKey, JSON

from marketplace.db.base import Base


class ReviewStatus:
    PUBLISHED = "PUBLISHED"
    FLAGGED = "FLAGGED"
    HIDDEN = "HIDDEN"


class ProductReview(Base):
    """Verified-purchase review, at most one per order item"""
    __tablename__ = "product_reviews"

    id = Column(Integer, primary_key=True, index=True)
    product_id = Column(Integer, ForeignKey("products.id", ondelete="CASCADE"), nullable=False, index=True)
    store_id = Column(Integer, ForeignKey("vendor_stores.id"), nullable=False, index=True)
    order_item_id = Column(Integer, ForeignKey("store_order_items.id"), unique=True, nullable=False)
    customer_id = Column(Integer, ForeignKey("users.id"), nullable=True, index=True)

    rating = Column(Integer, nullable=False)
    title = Column(String(100))
    body = Column(Text, nullable=False)
    photo_urls = Column(JSON, default=list)

    customer_name = Column(String(100), nullable=False)
    customer_email = Column(String(255), nullable=False)
    is_verified_purchase = Column(Boolean, nullable=False, default=True)

    status = Column(String(20), nullable=False, default=ReviewStatus.PUBLISHED, index=True)
    flag_reason = Column(String(600))
    flagged_at = Column(DateTime)

    vendor_response = Column(Text)
    vendor_responded_at = Column(DateTime)

    helpful_count = Column(Integer, nullable=False, default=0)
    unhelpful_count = Column(Integer, nullable=False, default=0)

    created_at = Column(DateTime, default=datetime.utcnow, index=True)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    def __repr__(self):
        return f"<ProductReview {self.id}: product {self.product_id} {self.rating}*>"
