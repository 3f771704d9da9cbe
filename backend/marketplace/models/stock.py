"""
Stock movements - audit trail for every inventory change
"""

from datetime import datetime
from sqlalchemy import Column, Integer, String, DateTime, ForeignKey

from marketplace.db.base import Base


class MovementType:
    RESERVE = "reserve"  # paid order holds stock
    RELEASE = "release"  # hold dropped (cancel / refund before shipping)
    COMMIT = "commit"    # shipped, leaves the shelf
    ADJUST = "adjust"    # vendor restock or count


class StockMovement(Base):
    __tablename__ = "stock_movements"

    id = Column(Integer, primary_key=True, index=True)
    product_id = Column(Integer, ForeignKey("products.id", ondelete="CASCADE"), nullable=False, index=True)
    variant_id = Column(Integer, ForeignKey("product_variants.id", ondelete="SET NULL"), index=True)
    order_id = Column(Integer, ForeignKey("store_orders.id"), index=True)

    movement_type = Column(String(20), nullable=False)

    # Change to on-hand quantity; reserve/release leave it untouched
    quantity_change = Column(Integer, nullable=False, default=0)
    quantity_before = Column(Integer, nullable=False)
    quantity_after = Column(Integer, nullable=False)
    # Held quantity after the change
    on_hold_after = Column(Integer, nullable=False, default=0)

    reason = Column(String(200))
    created_at = Column(DateTime, default=datetime.utcnow)

    def __repr__(self):
        return f"<StockMovement {self.product_id}/{self.variant_id}: {self.movement_type} {self.quantity_change:+d}>"
