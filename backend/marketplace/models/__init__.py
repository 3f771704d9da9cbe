# Data models, imported here so Base.metadata sees every table

from marketplace.models.user import User, UserRole
from marketplace.models.tenant import Tenant, SubscriptionPlan, SubscriptionStatus
from marketplace.models.store import VendorStore, StoreHours, StoreVacation, WEEKDAYS
from marketplace.models.product import (
    Product, ProductImage, VariantOption, ProductVariant, ProductStatus, PRODUCT_CATEGORIES
)
from marketplace.models.stock import StockMovement, MovementType
from marketplace.models.order import (
    StoreOrder, StoreOrderItem, OrderStatus, PaymentStatus, FulfillmentStatus
)
from marketplace.models.review import ProductReview, ReviewStatus
from marketplace.models.coupon import Coupon, DiscountType
from marketplace.models.withdraw import VendorWithdraw, WithdrawMethod, WithdrawStatus
from marketplace.models.shipping import ShippingZone, ShippingRate, ShippingRateType

__all__ = [
    "User", "UserRole",
    "Tenant", "SubscriptionPlan", "SubscriptionStatus",
    "VendorStore", "StoreHours", "StoreVacation", "WEEKDAYS",
    "Product", "ProductImage", "VariantOption", "ProductVariant", "ProductStatus", "PRODUCT_CATEGORIES",
    "StockMovement", "MovementType",
    "StoreOrder", "StoreOrderItem", "OrderStatus", "PaymentStatus", "FulfillmentStatus",
    "ProductReview", "ReviewStatus",
    "Coupon", "DiscountType",
    "VendorWithdraw", "WithdrawMethod", "WithdrawStatus",
    "ShippingZone", "ShippingRate", "ShippingRateType",
]
