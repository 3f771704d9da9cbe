"""API v1 router aggregation"""
from fastapi import APIRouter

from marketplace.api.api_v1.endpoints import (
    auth, tenants, stores, products, catalog, cart, checkout, webhooks,
    reviews, shipping_zones, store_settings, coupons, withdraws, cron
)
from marketplace.api.api_v1.endpoints.orders import customer_router, vendor_router

api_router = APIRouter()

# Accounts and tenancy
api_router.include_router(auth.router, prefix="/auth", tags=["Auth"])
api_router.include_router(tenants.router, prefix="/tenants", tags=["Tenants"])

# Storefront
api_router.include_router(stores.public_router, prefix="/stores", tags=["Storefront"])
api_router.include_router(catalog.router, tags=["Storefront"])
api_router.include_router(cart.router, prefix="/cart", tags=["Cart"])
api_router.include_router(checkout.router, tags=["Checkout"])
api_router.include_router(webhooks.router, prefix="/webhooks", tags=["Webhooks"])
api_router.include_router(customer_router, prefix="/account/orders", tags=["Customer orders"])
api_router.include_router(reviews.router, prefix="/reviews", tags=["Reviews"])

# Vendor dashboard
api_router.include_router(stores.router, prefix="/vendor/stores", tags=["Vendor stores"])
api_router.include_router(products.router, prefix="/vendor/products", tags=["Vendor products"])
api_router.include_router(shipping_zones.router, prefix="/vendor/shipping/zones", tags=["Shipping zones"])
api_router.include_router(store_settings.router, prefix="/vendor", tags=["Store settings"])
api_router.include_router(coupons.router, prefix="/vendor/coupons", tags=["Coupons"])
api_router.include_router(withdraws.router, prefix="/vendor/withdraws", tags=["Withdraws"])
api_router.include_router(vendor_router, prefix="/dashboard/orders", tags=["Vendor orders"])
api_router.include_router(reviews.vendor_router, prefix="/dashboard/reviews", tags=["Vendor reviews"])

# Admin and system
api_router.include_router(withdraws.admin_router, prefix="/admin/withdraws", tags=["Admin"])
api_router.include_router(cron.router, prefix="/cron", tags=["Cron"])
