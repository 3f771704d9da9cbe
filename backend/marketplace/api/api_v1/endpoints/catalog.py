"""Public catalog: active products of active stores"""

from typing import Any, Optional
from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy import select, func, and_
from sqlalchemy.ext.asyncio import AsyncSession

from marketplace.core.deps import get_db
from marketplace.models import Product, ProductStatus, VendorStore
from marketplace.schemas.product import ProductResponse, ProductListResponse
from marketplace.api.api_v1.endpoints.products import build_product_response

router = APIRouter()


@router.get("/products/{product_id}", response_model=ProductResponse)
async def get_public_product(
    *,
    db: AsyncSession = Depends(get_db),
    product_id: int) -> Any:
    product = await db.get(Product, product_id)
    if not product or product.status != ProductStatus.ACTIVE:
        raise HTTPException(status_code=404, detail="Product not found")
    store = await db.get(VendorStore, product.store_id)
    if not store or not store.is_active:
        raise HTTPException(status_code=404, detail="Product not found")
    return build_product_response(product)


@router.get("/stores/{slug}/products", response_model=ProductListResponse)
async def list_store_products(
    *,
    db: AsyncSession = Depends(get_db),
    slug: str,
    page: int = Query(1, ge=1),
    limit: int = Query(24, ge=1, le=100),
    category: Optional[str] = Query(None),
    search: Optional[str] = Query(None),
    sort: str = Query("newest", pattern="^(newest|price_asc|price_desc|popular|rating)$")) -> Any:
    result = await db.execute(
        select(VendorStore).where(VendorStore.slug == slug, VendorStore.is_active.is_(True))
    )
    store = result.scalar_one_or_none()
    if not store:
        raise HTTPException(status_code=404, detail="Store not found")

    conditions = [Product.store_id == store.id, Product.status == ProductStatus.ACTIVE]
    if category:
        conditions.append(Product.category == category)
    if search:
        conditions.append(Product.name.ilike(f"%{search}%"))

    order_by = {
        "newest": Product.created_at.desc(),
        "price_asc": Product.price.asc(),
        "price_desc": Product.price.desc(),
        "popular": Product.sales_count.desc(),
        "rating": Product.average_rating.desc(),
    }[sort]

    total_result = await db.execute(select(func.count(Product.id)).where(and_(*conditions)))
    total = total_result.scalar() or 0
    result = await db.execute(
        select(Product).where(and_(*conditions))
        .order_by(order_by, Product.id.desc())
        .offset((page - 1) * limit)
        .limit(limit)
    )
    return ProductListResponse(
        data=[build_product_response(p) for p in result.scalars().all()],
        total=total,
        page=page,
        limit=limit,
        total_pages=(total + limit - 1) // limit,
    )
