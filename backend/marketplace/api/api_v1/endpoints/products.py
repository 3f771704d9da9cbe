"""Vendor product management API"""

import logging
import os
import uuid
from decimal import Decimal
from typing import Any, Optional, List

from fastapi import APIRouter, Depends, HTTPException, Query, UploadFile, File, Form
from sqlalchemy import select, func, and_, delete
from sqlalchemy.ext.asyncio import AsyncSession

from marketplace.core.config import settings
from marketplace.core.deps import get_db, require_vendor_store
from marketplace.models import (
    Product, ProductImage, ProductVariant, ProductStatus, StockMovement, StoreOrderItem, VendorStore
)
from marketplace.schemas.product import (
    ProductCreate, ProductUpdate, ProductResponse, ProductListResponse, VariantResponse,
    VariantCombinationsCreate, VariantUpdate, StockAdjust, ProductImageResponse, LowStockItem,
    StockMovementResponse, VariantOptionResponse
)
from marketplace.services import stock as stock_service
from marketplace.services.tenancy import (
    slugify, check_product_quota, check_storage_quota, add_product_usage, add_storage_usage
)
from marketplace.services.variants import create_combinations, MAX_VARIANT_TYPES

logger = logging.getLogger(__name__)

router = APIRouter()

MAX_IMAGE_BYTES = 5 * 1024 * 1024
ALLOWED_IMAGE_TYPES = {"image/jpeg": ".jpg", "image/png": ".png", "image/webp": ".webp", "image/gif": ".gif"}


def build_variant_response(variant: ProductVariant, product: Product) -> VariantResponse:
    return VariantResponse(
        id=variant.id,
        combination_key=variant.combination_key,
        option_values=variant.option_values or {},
        name=variant.name,
        sku=variant.sku,
        price=float(variant.price) if variant.price is not None else None,
        effective_price=float(variant.price if variant.price is not None else product.price),
        quantity=variant.quantity or 0,
        quantity_on_hold=variant.quantity_on_hold or 0,
        available_quantity=variant.available_quantity,
        in_stock=variant.in_stock,
        is_available=variant.is_available,
        image_url=variant.image_url,
    )


def build_product_response(product: Product) -> ProductResponse:
    """Build the product response"""
    return ProductResponse(
        id=product.id,
        store_id=product.store_id,
        name=product.name,
        slug=product.slug,
        description=product.description,
        category=product.category,
        tags=product.tags or [],
        price=float(product.price or 0),
        compare_at_price=float(product.compare_at_price) if product.compare_at_price is not None else None,
        sku=product.sku,
        status=product.status,
        track_inventory=product.track_inventory,
        quantity=product.quantity or 0,
        quantity_on_hold=product.quantity_on_hold or 0,
        available_quantity=product.available_quantity,
        low_stock_threshold=product.low_stock_threshold or 0,
        is_low_stock=product.is_low_stock and not product.has_variants,
        has_variants=product.has_variants,
        variant_types=product.variant_types or [],
        sales_count=product.sales_count or 0,
        average_rating=product.average_rating or 0.0,
        review_count=product.review_count or 0,
        images=[ProductImageResponse.model_validate(i) for i in product.images],
        options=[VariantOptionResponse.model_validate(o) for o in product.options],
        variants=[build_variant_response(v, product) for v in product.variants],
        created_at=product.created_at,
        updated_at=product.updated_at,
    )


async def load_product(db: AsyncSession, product_id: int) -> Optional[Product]:
    """Load a product with fresh images, options and variants"""
    result = await db.execute(
        select(Product)
        .where(Product.id == product_id)
        .execution_options(populate_existing=True)
    )
    return result.scalar_one_or_none()


async def get_store_product(db: AsyncSession, store: VendorStore, product_id: int) -> Product:
    product = await load_product(db, product_id)
    if not product:
        raise HTTPException(status_code=404, detail="Product not found")
    if product.store_id != store.id:
        raise HTTPException(status_code=403, detail="You do not have access to this product")
    return product


@router.get("", response_model=ProductListResponse)
async def list_products(
    *,
    db: AsyncSession = Depends(get_db),
    store: VendorStore = Depends(require_vendor_store),
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    status: Optional[str] = Query(None, pattern="^(DRAFT|ACTIVE|ARCHIVED)$"),
    category: Optional[str] = Query(None),
    search: Optional[str] = Query(None, description="Name or SKU"),
    low_stock: bool = Query(False, description="Only products at or below their threshold")) -> Any:
    conditions = [Product.store_id == store.id]
    if status:
        conditions.append(Product.status == status)
    if category:
        conditions.append(Product.category == category)
    if search:
        conditions.append(Product.name.ilike(f"%{search}%") | Product.sku.ilike(f"%{search}%"))
    if low_stock:
        conditions.append(Product.track_inventory.is_(True))
        conditions.append(Product.has_variants.is_(False))
        conditions.append(Product.quantity - Product.quantity_on_hold <= Product.low_stock_threshold)

    total_result = await db.execute(select(func.count(Product.id)).where(and_(*conditions)))
    total = total_result.scalar() or 0

    result = await db.execute(
        select(Product)
        .where(and_(*conditions))
        .order_by(Product.created_at.desc(), Product.id.desc())
        .offset((page - 1) * limit)
        .limit(limit)
    )
    products = result.scalars().all()

    return ProductListResponse(
        data=[build_product_response(p) for p in products],
        total=total,
        page=page,
        limit=limit,
        total_pages=(total + limit - 1) // limit,
    )


@router.post("", response_model=ProductResponse, status_code=201)
async def create_product(
    *,
    db: AsyncSession = Depends(get_db),
    store: VendorStore = Depends(require_vendor_store),
    product_in: ProductCreate) -> Any:
    """Create a product in DRAFT, counted against the tenant's product quota"""
    check_product_quota(store.tenant)

    slug = slugify(product_in.name)
    if not slug:
        raise HTTPException(status_code=400, detail="Product name must contain letters or numbers")
    duplicate = await db.execute(
        select(func.count(Product.id)).where(Product.store_id == store.id, Product.slug == slug)
    )
    if duplicate.scalar():
        raise HTTPException(status_code=400, detail="A product with this name already exists in your store")

    has_variants = product_in.has_variants or product_in.variant_options is not None
    product = Product(
        store_id=store.id,
        name=product_in.name,
        slug=slug,
        description=product_in.description,
        category=product_in.category,
        tags=product_in.tags,
        price=product_in.price,
        compare_at_price=product_in.compare_at_price,
        sku=product_in.sku,
        status=ProductStatus.DRAFT,
        track_inventory=product_in.track_inventory,
        # Variant products keep stock on the combinations
        quantity=0 if has_variants else product_in.quantity,
        quantity_on_hold=0,
        low_stock_threshold=product_in.low_stock_threshold,
        has_variants=has_variants,
        variant_types=[],
    )
    db.add(product)
    await db.flush()

    if product_in.variant_options is not None:
        opts = product_in.variant_options
        await create_combinations(
            db, product,
            variant_types=opts.variant_types,
            options=[g.model_dump() for g in opts.options],
            generate=opts.generate_combinations,
            default_price=opts.defaults.price,
            default_quantity=opts.defaults.quantity,
            default_sku=opts.defaults.sku,
        )

    add_product_usage(store.tenant, 1)
    await db.commit()
    logger.info(f"Store {store.id} created product {product.id} ({product.slug})")

    product = await load_product(db, product.id)
    return build_product_response(product)


@router.get("/low-stock", response_model=List[LowStockItem])
async def list_low_stock(
    *,
    db: AsyncSession = Depends(get_db),
    store: VendorStore = Depends(require_vendor_store)) -> Any:
    """Active products and combinations at or below their low stock threshold"""
    items = await stock_service.find_low_stock(db, store.id)
    return [LowStockItem(**item) for item in items]


@router.get("/{product_id}", response_model=ProductResponse)
async def get_product(
    *,
    db: AsyncSession = Depends(get_db),
    store: VendorStore = Depends(require_vendor_store),
    product_id: int) -> Any:
    product = await get_store_product(db, store, product_id)
    return build_product_response(product)


@router.put("/{product_id}", response_model=ProductResponse)
async def update_product(
    *,
    db: AsyncSession = Depends(get_db),
    store: VendorStore = Depends(require_vendor_store),
    product_id: int,
    product_in: ProductUpdate) -> Any:
    product = await get_store_product(db, store, product_id)
    update_data = product_in.model_dump(exclude_unset=True)

    if "name" in update_data and update_data["name"] != product.name:
        slug = slugify(update_data["name"])
        duplicate = await db.execute(
            select(func.count(Product.id)).where(
                Product.store_id == store.id, Product.slug == slug, Product.id != product.id
            )
        )
        if duplicate.scalar():
            raise HTTPException(status_code=400, detail="A product with this name already exists in your store")
        product.slug = slug

    if "quantity" in update_data:
        new_quantity = update_data.pop("quantity")
        if product.has_variants:
            if new_quantity:
                raise HTTPException(status_code=400, detail="Set stock on the variants of this product")
        elif new_quantity != product.quantity:
            stock_service.adjust_stock(db, product, None, new_quantity, reason="Product edit")

    if update_data.get("status") == ProductStatus.ACTIVE and product.has_variants and not product.variants:
        raise HTTPException(status_code=400, detail="Add at least one variant before publishing")

    for field, value in update_data.items():
        setattr(product, field, value)

    await db.commit()
    product = await load_product(db, product.id)
    return build_product_response(product)


def remove_image_file(image: ProductImage) -> None:
    """Delete an uploaded file; external URLs are left alone"""
    if not image.url.startswith("/media/"):
        return
    path = os.path.join(settings.MEDIA_DIR, image.url[len("/media/"):])
    if os.path.exists(path):
        os.remove(path)


@router.delete("/{product_id}")
async def delete_product(
    *,
    db: AsyncSession = Depends(get_db),
    store: VendorStore = Depends(require_vendor_store),
    product_id: int) -> Any:
    product = await get_store_product(db, store, product_id)

    ordered = await db.execute(
        select(func.count(StoreOrderItem.id)).where(StoreOrderItem.product_id == product.id)
    )
    if ordered.scalar():
        raise HTTPException(status_code=400, detail="Products with orders cannot be deleted. Archive it instead.")

    freed_bytes = sum(image.size_bytes or 0 for image in product.images)
    for image in product.images:
        remove_image_file(image)
    await db.execute(delete(StockMovement).where(StockMovement.product_id == product.id))
    await db.delete(product)
    add_product_usage(store.tenant, -1)
    add_storage_usage(store.tenant, -freed_bytes)
    await db.commit()
    logger.info(f"Store {store.id} deleted product {product_id}")
    return {"success": True}


# ===== Variants =====
@router.post("/{product_id}/variants/combinations", response_model=ProductResponse, status_code=201)
async def create_variant_combinations(
    *,
    db: AsyncSession = Depends(get_db),
    store: VendorStore = Depends(require_vendor_store),
    product_id: int,
    combos_in: VariantCombinationsCreate) -> Any:
    """Record option values and generate every missing combination"""
    product = await get_store_product(db, store, product_id)

    types = set(combos_in.variant_types)
    if len(types) > MAX_VARIANT_TYPES:
        raise HTTPException(status_code=400, detail=f"At most {MAX_VARIANT_TYPES} variant types are allowed")
    unknown = {g.type for g in combos_in.options} - types
    if unknown:
        raise HTTPException(status_code=400, detail=f"Options given for undeclared variant types: {', '.join(sorted(unknown))}")

    await create_combinations(
        db, product,
        variant_types=combos_in.variant_types,
        options=[g.model_dump() for g in combos_in.options],
        generate=combos_in.generate_combinations,
        default_price=combos_in.defaults.price,
        default_quantity=combos_in.defaults.quantity,
        default_sku=combos_in.defaults.sku,
    )
    await db.commit()

    product = await load_product(db, product.id)
    return build_product_response(product)


@router.put("/{product_id}/variants/{variant_id}", response_model=VariantResponse)
async def update_variant(
    *,
    db: AsyncSession = Depends(get_db),
    store: VendorStore = Depends(require_vendor_store),
    product_id: int,
    variant_id: int,
    variant_in: VariantUpdate) -> Any:
    product = await get_store_product(db, store, product_id)
    variant = await stock_service.load_variant(db, product.id, variant_id)
    if not variant:
        raise HTTPException(status_code=404, detail="Variant not found")

    update_data = variant_in.model_dump(exclude_unset=True)
    if "quantity" in update_data:
        new_quantity = update_data.pop("quantity")
        if new_quantity != variant.quantity:
            stock_service.adjust_stock(db, product, variant, new_quantity, reason="Variant edit")
    for field, value in update_data.items():
        setattr(variant, field, value)

    await db.commit()
    return build_variant_response(variant, product)


# ===== Stock =====
@router.post("/{product_id}/stock", response_model=ProductResponse)
async def adjust_product_stock(
    *,
    db: AsyncSession = Depends(get_db),
    store: VendorStore = Depends(require_vendor_store),
    product_id: int,
    adjust_in: StockAdjust) -> Any:
    """Restock or correct the on-hand count"""
    product = await get_store_product(db, store, product_id)

    variant = None
    if adjust_in.variant_id is not None:
        variant = await stock_service.load_variant(db, product.id, adjust_in.variant_id)
        if not variant:
            raise HTTPException(status_code=404, detail="Variant not found")
    elif product.has_variants:
        raise HTTPException(status_code=400, detail="variant_id is required for products with variants")

    stock_service.adjust_stock(db, product, variant, adjust_in.new_quantity, reason=adjust_in.reason)
    await db.commit()

    product = await load_product(db, product.id)
    return build_product_response(product)


@router.get("/{product_id}/stock-movements", response_model=List[StockMovementResponse])
async def list_stock_movements(
    *,
    db: AsyncSession = Depends(get_db),
    store: VendorStore = Depends(require_vendor_store),
    product_id: int,
    limit: int = Query(50, ge=1, le=200)) -> Any:
    product = await get_store_product(db, store, product_id)
    result = await db.execute(
        select(StockMovement)
        .where(StockMovement.product_id == product.id)
        .order_by(StockMovement.id.desc())
        .limit(limit)
    )
    return result.scalars().all()


# ===== Images =====
@router.post("/{product_id}/images", response_model=ProductImageResponse, status_code=201)
async def upload_product_image(
    *,
    db: AsyncSession = Depends(get_db),
    store: VendorStore = Depends(require_vendor_store),
    product_id: int,
    file: UploadFile = File(...),
    alt_text: Optional[str] = Form(None)) -> Any:
    """Store an image on disk, counted against the tenant's storage quota"""
    product = await get_store_product(db, store, product_id)

    extension = ALLOWED_IMAGE_TYPES.get(file.content_type or "")
    if not extension:
        raise HTTPException(status_code=400, detail="Only JPEG, PNG, WebP and GIF images are allowed")

    content = await file.read()
    size = len(content)
    if size == 0:
        raise HTTPException(status_code=400, detail="Empty file")
    if size > MAX_IMAGE_BYTES:
        raise HTTPException(status_code=400, detail="Images must be 5 MB or smaller")

    check_storage_quota(store.tenant, size)

    relative_path = os.path.join("products", str(product.id), f"{uuid.uuid4().hex}{extension}")
    full_path = os.path.join(settings.MEDIA_DIR, relative_path)
    os.makedirs(os.path.dirname(full_path), exist_ok=True)
    with open(full_path, "wb") as f:
        f.write(content)

    image = ProductImage(
        product_id=product.id,
        url=f"/media/{relative_path.replace(os.sep, '/')}",
        alt_text=alt_text or product.name,
        size_bytes=size,
        sort_order=len(product.images),
    )
    db.add(image)
    add_storage_usage(store.tenant, size)
    await db.commit()
    logger.info(f"Image {image.id} ({size} bytes) uploaded for product {product.id}")
    return image


@router.delete("/{product_id}/images/{image_id}")
async def delete_product_image(
    *,
    db: AsyncSession = Depends(get_db),
    store: VendorStore = Depends(require_vendor_store),
    product_id: int,
    image_id: int) -> Any:
    product = await get_store_product(db, store, product_id)
    image = await db.get(ProductImage, image_id)
    if not image or image.product_id != product.id:
        raise HTTPException(status_code=404, detail="Image not found")

    remove_image_file(image)
    add_storage_usage(store.tenant, -(image.size_bytes or 0))
    await db.delete(image)
    await db.commit()
    return {"success": True}
