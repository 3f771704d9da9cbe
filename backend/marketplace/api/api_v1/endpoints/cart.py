"""Cart API - carts live in Redis, identified by the cart_id cookie"""

import logging
from decimal import Decimal
from typing import Any, Optional

from fastapi import APIRouter, Depends, HTTPException, Request, Response
from redis.asyncio import Redis
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from marketplace.core.config import settings
from marketplace.core.deps import get_db, get_redis
from marketplace.core.rate_limit import rate_limit
from marketplace.models import Product, ProductStatus, VendorStore
from marketplace.schemas.cart import (
    CartItemAdd, CartItemUpdate, CartResponse, CartItem, CouponApply, CouponResult
)
from marketplace.services import stock as stock_service
from marketplace.services.cart import (
    CartStore, CART_COOKIE, new_cart_id, cart_item_id, empty_cart, cart_subtotal, cart_item_count
)
from marketplace.services.coupons import validate_coupon

logger = logging.getLogger(__name__)

router = APIRouter()


def get_cart_store(redis: Redis = Depends(get_redis)) -> CartStore:
    return CartStore(redis)


def build_cart_response(cart: Optional[dict]) -> CartResponse:
    if not cart:
        return CartResponse()
    items = [
        CartItem(
            cart_item_id=i["cart_item_id"],
            product_id=i["product_id"],
            product_name=i["name"],
            product_slug=i["slug"],
            variant_id=i.get("variant_id"),
            variant_name=i.get("variant_name"),
            option_values=i.get("option_values"),
            price=float(i["price"]),
            quantity=i["quantity"],
            image=i.get("image"),
            line_total=float(Decimal(str(i["price"])) * i["quantity"]),
        )
        for i in cart.get("items", [])
    ]
    return CartResponse(
        store_id=cart.get("store_id"),
        store_slug=cart.get("store_slug"),
        store_name=cart.get("store_name"),
        items=items,
        item_count=cart_item_count(cart),
        subtotal=float(cart_subtotal(cart)),
    )


def set_cart_cookie(response: Response, cart_id: str) -> None:
    response.set_cookie(
        CART_COOKIE,
        cart_id,
        max_age=settings.CART_TTL_SECONDS,
        httponly=True,
        samesite="lax",
    )


async def save_cart(cart_store: CartStore, response: Response, cart_id: str, cart: dict) -> None:
    if not cart["items"]:
        cart.pop("coupon_code", None)
        cart.update(empty_cart())
    await cart_store.save(cart_id, cart)
    set_cart_cookie(response, cart_id)


@router.get("", response_model=CartResponse)
async def get_cart(
    *,
    request: Request,
    cart_store: CartStore = Depends(get_cart_store)) -> Any:
    cart = await cart_store.get(request.cookies.get(CART_COOKIE))
    return build_cart_response(cart)


@router.post("/add", response_model=CartResponse)
@rate_limit("cart")
async def add_to_cart(
    *,
    request: Request,
    response: Response,
    db: AsyncSession = Depends(get_db),
    cart_store: CartStore = Depends(get_cart_store),
    item_in: CartItemAdd) -> Any:
    """Add a product (or one of its combinations) to the cart"""
    product = await db.get(Product, item_in.product_id)
    if not product or product.status != ProductStatus.ACTIVE:
        raise HTTPException(status_code=404, detail="Product not found or unavailable")

    result = await db.execute(
        select(VendorStore).where(VendorStore.slug == item_in.store_slug, VendorStore.is_active.is_(True))
    )
    store = result.scalar_one_or_none()
    if not store or store.id != product.store_id:
        raise HTTPException(status_code=404, detail="Store not found")

    variant = None
    if item_in.variant_id is not None:
        variant = await stock_service.load_variant(db, product.id, item_in.variant_id)
        if not variant:
            raise HTTPException(status_code=404, detail="Variant not found")
        if not variant.is_available:
            raise HTTPException(status_code=400, detail="This variant is not available")
    elif product.has_variants:
        raise HTTPException(status_code=400, detail="Please select product options")

    cart_id = request.cookies.get(CART_COOKIE) or new_cart_id()
    cart = await cart_store.get(cart_id) or empty_cart()

    if cart["items"] and cart.get("store_id") != store.id:
        raise HTTPException(status_code=400, detail={
            "error": "different_store",
            "message": f"Your cart has items from {cart.get('store_name')}. "
                       "Complete that order or clear your cart to shop from another store.",
            "current_cart": {"store_slug": cart.get("store_slug"), "store_name": cart.get("store_name"),
                             "item_count": cart_item_count(cart)},
            "attempted_store": {"store_slug": store.slug, "store_name": store.name},
        })

    item_key = cart_item_id(product.id, variant.id if variant else None)
    existing = next((i for i in cart["items"] if i["cart_item_id"] == item_key), None)
    max_quantity = settings.MAX_CART_ITEM_QUANTITY
    new_quantity = min((existing["quantity"] if existing else 0) + item_in.quantity, max_quantity)

    available, available_quantity = stock_service.check_availability(product, variant, new_quantity)
    if not available:
        raise HTTPException(status_code=400, detail=f"Only {available_quantity} items available")

    price = variant.price if variant is not None and variant.price is not None else product.price
    if existing:
        existing["quantity"] = new_quantity
        existing["price"] = str(price)
    else:
        cart["items"].append({
            "cart_item_id": item_key,
            "product_id": product.id,
            "name": product.name,
            "slug": product.slug,
            "category": product.category,
            "sku": variant.sku if variant is not None and variant.sku else product.sku,
            "variant_id": variant.id if variant else None,
            "variant_name": variant.name if variant else None,
            "option_values": variant.option_values if variant else None,
            "price": str(price),
            "quantity": new_quantity,
            "image": (variant.image_url if variant is not None and variant.image_url else None) or product.primary_image_url,
        })
    cart["store_id"] = store.id
    cart["store_slug"] = store.slug
    cart["store_name"] = store.name

    await save_cart(cart_store, response, cart_id, cart)
    return build_cart_response(cart)


@router.put("/update", response_model=CartResponse)
@rate_limit("cart")
async def update_cart_item(
    *,
    request: Request,
    response: Response,
    db: AsyncSession = Depends(get_db),
    cart_store: CartStore = Depends(get_cart_store),
    item_in: CartItemUpdate) -> Any:
    """Change a line's quantity; 0 removes it"""
    cart_id = request.cookies.get(CART_COOKIE)
    cart = await cart_store.get(cart_id)
    if not cart:
        raise HTTPException(status_code=404, detail="Cart not found")

    line = next((i for i in cart["items"] if i["cart_item_id"] == item_in.cart_item_id), None)
    if not line:
        raise HTTPException(status_code=404, detail="Item not in cart")

    if item_in.quantity == 0:
        cart["items"].remove(line)
    else:
        product = await db.get(Product, line["product_id"])
        if not product or product.status != ProductStatus.ACTIVE:
            raise HTTPException(status_code=400, detail="This product is no longer available")
        variant = await stock_service.load_variant(db, product.id, line.get("variant_id"))
        available, available_quantity = stock_service.check_availability(product, variant, item_in.quantity)
        if not available:
            raise HTTPException(status_code=400, detail=f"Only {available_quantity} items available")
        line["quantity"] = item_in.quantity

    await save_cart(cart_store, response, cart_id, cart)
    return build_cart_response(cart)


@router.delete("/items/{item_key}", response_model=CartResponse)
@rate_limit("cart")
async def remove_cart_item(
    *,
    request: Request,
    response: Response,
    cart_store: CartStore = Depends(get_cart_store),
    item_key: str) -> Any:
    cart_id = request.cookies.get(CART_COOKIE)
    cart = await cart_store.get(cart_id)
    if not cart:
        raise HTTPException(status_code=404, detail="Cart not found")

    remaining = [i for i in cart["items"] if i["cart_item_id"] != item_key]
    if len(remaining) == len(cart["items"]):
        raise HTTPException(status_code=404, detail="Item not in cart")
    cart["items"] = remaining

    await save_cart(cart_store, response, cart_id, cart)
    return build_cart_response(cart)


@router.delete("", response_model=CartResponse)
async def clear_cart(
    *,
    request: Request,
    cart_store: CartStore = Depends(get_cart_store)) -> Any:
    cart_id = request.cookies.get(CART_COOKIE)
    if cart_id:
        await cart_store.delete(cart_id)
    return CartResponse()


@router.post("/apply-coupon", response_model=CouponResult)
async def apply_coupon(
    *,
    request: Request,
    response: Response,
    db: AsyncSession = Depends(get_db),
    cart_store: CartStore = Depends(get_cart_store),
    coupon_in: CouponApply) -> Any:
    """Validate a coupon against the cart and remember it for checkout"""
    cart_id = request.cookies.get(CART_COOKIE)
    cart = await cart_store.get(cart_id)
    if not cart or not cart.get("items"):
        raise HTTPException(status_code=400, detail="Cart is empty")

    code = coupon_in.code.strip().upper()
    result = await validate_coupon(
        db,
        store_id=cart["store_id"],
        code=code,
        items=cart["items"],
        subtotal=cart_subtotal(cart),
        customer_email=coupon_in.email,
    )
    if not result["valid"]:
        return CouponResult(valid=False, code=code, error=result["error"])

    cart["coupon_code"] = code
    await save_cart(cart_store, response, cart_id, cart)
    return CouponResult(
        valid=True,
        code=code,
        discount=float(result["discount"]),
        discount_type=result["coupon"].discount_type,
    )
