"""Order routers: customer history and vendor dashboard"""
from marketplace.api.api_v1.endpoints.orders.customer import router as customer_router
from marketplace.api.api_v1.endpoints.orders.vendor import router as vendor_router

__all__ = ["customer_router", "vendor_router"]
