"""
Inventory operations

Quantities live on the variant when an order line names one, otherwise on
the product. available = quantity - quantity_on_hold.

- reserve: paid order puts units on hold
- commit: shipment takes held units off the shelf
- release: cancellation drops the hold
- adjust: vendor sets the on-hand count

Each change writes a StockMovement row. Nothing here commits.
"""

import logging
from typing import List, Optional, Tuple, Union

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from marketplace.core.errors import BusinessLogicError
from marketplace.models import Product, ProductVariant, StockMovement, MovementType, ProductStatus

logger = logging.getLogger(__name__)

StockHolder = Union[Product, ProductVariant]


def _holder(product: Product, variant: Optional[ProductVariant]) -> StockHolder:
    return variant if variant is not None else product


def check_availability(product: Product, variant: Optional[ProductVariant], quantity: int) -> Tuple[bool, int]:
    """(enough stock, units available). Untracked products are always available."""
    holder = _holder(product, variant)
    if not product.track_inventory:
        return True, holder.available_quantity
    available = holder.available_quantity
    return available >= quantity, available


def _record(db: AsyncSession, product: Product, variant: Optional[ProductVariant], movement_type: str,
            quantity_change: int, quantity_before: int, order_id: Optional[int], reason: Optional[str]) -> None:
    holder = _holder(product, variant)
    db.add(StockMovement(
        product_id=product.id,
        variant_id=variant.id if variant is not None else None,
        order_id=order_id,
        movement_type=movement_type,
        quantity_change=quantity_change,
        quantity_before=quantity_before,
        quantity_after=holder.quantity or 0,
        on_hold_after=holder.quantity_on_hold or 0,
        reason=reason,
    ))


def reserve_stock(db: AsyncSession, product: Product, variant: Optional[ProductVariant], quantity: int,
                  order_id: Optional[int] = None, reason: Optional[str] = None) -> bool:
    """Put units on hold for a paid order

    Returns False (and changes nothing) when there is not enough stock; the
    payment already happened so the caller carries on.
    """
    if not product.track_inventory:
        return True

    holder = _holder(product, variant)
    if holder.available_quantity < quantity:
        logger.error(
            f"Insufficient stock for product {product.id}"
            f"{f' variant {variant.id}' if variant is not None else ''}: "
            f"available {holder.available_quantity}, requested {quantity}"
        )
        return False

    before = holder.quantity or 0
    holder.quantity_on_hold = (holder.quantity_on_hold or 0) + quantity
    _record(db, product, variant, MovementType.RESERVE, 0, before, order_id, reason or f"Reserved {quantity}")
    return True


def commit_stock(db: AsyncSession, product: Product, variant: Optional[ProductVariant], quantity: int,
                 order_id: Optional[int] = None, reason: Optional[str] = None) -> None:
    """Shipped: held units leave both on-hold and on-hand"""
    if not product.track_inventory:
        return

    holder = _holder(product, variant)
    before = holder.quantity or 0
    held = holder.quantity_on_hold or 0
    holder.quantity_on_hold = max(held - quantity, 0)
    holder.quantity = max(before - quantity, 0)
    _record(db, product, variant, MovementType.COMMIT, holder.quantity - before, before, order_id,
            reason or f"Shipped {quantity}")


def release_stock(db: AsyncSession, product: Product, variant: Optional[ProductVariant], quantity: int,
                  order_id: Optional[int] = None, reason: Optional[str] = None) -> None:
    if not product.track_inventory:
        return

    holder = _holder(product, variant)
    before = holder.quantity or 0
    holder.quantity_on_hold = max((holder.quantity_on_hold or 0) - quantity, 0)
    _record(db, product, variant, MovementType.RELEASE, 0, before, order_id, reason or f"Released {quantity}")


def adjust_stock(db: AsyncSession, product: Product, variant: Optional[ProductVariant], new_quantity: int,
                 reason: Optional[str] = None) -> StockHolder:
    """Set the on-hand count; it cannot drop below what paid orders hold"""
    holder = _holder(product, variant)
    held = holder.quantity_on_hold or 0
    if new_quantity < held:
        raise BusinessLogicError(f"Quantity cannot be lower than the {held} units held by open orders")

    before = holder.quantity or 0
    holder.quantity = new_quantity
    _record(db, product, variant, MovementType.ADJUST, new_quantity - before, before, None,
            reason or "Manual adjustment")
    return holder


async def load_variant(db: AsyncSession, product_id: int, variant_id: Optional[int]) -> Optional[ProductVariant]:
    if variant_id is None:
        return None
    variant = await db.get(ProductVariant, variant_id)
    if variant is None or variant.product_id != product_id:
        return None
    return variant


async def find_low_stock(db: AsyncSession, store_id: Optional[int] = None) -> List[dict]:
    """Active tracked products (or their combinations) at or below their threshold"""
    query = select(Product).where(
        Product.status == ProductStatus.ACTIVE,
        Product.track_inventory.is_(True),
    )
    if store_id is not None:
        query = query.where(Product.store_id == store_id)
    result = await db.execute(query.order_by(Product.store_id, Product.name))

    low = []
    for product in result.scalars().all():
        threshold = product.low_stock_threshold or 0
        if product.has_variants:
            for variant in product.variants:
                if variant.is_available and variant.available_quantity <= threshold:
                    low.append({
                        "store_id": product.store_id,
                        "product_id": product.id,
                        "product_name": product.name,
                        "variant_id": variant.id,
                        "variant_name": variant.name,
                        "sku": variant.sku,
                        "available_quantity": variant.available_quantity,
                        "threshold": threshold,
                    })
        elif product.available_quantity <= threshold:
            low.append({
                "store_id": product.store_id,
                "product_id": product.id,
                "product_name": product.name,
                "variant_id": None,
                "variant_name": None,
                "sku": product.sku,
                "available_quantity": product.available_quantity,
                "threshold": threshold,
            })
    return low
