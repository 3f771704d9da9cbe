"""
Order helpers shared by the customer and vendor views
"""

from typing import Type

from marketplace.models import StoreOrder
from marketplace.schemas.order import OrderResponse, OrderItemResponse
from marketplace.services.email import tracking_url


def build_order_response(order: StoreOrder, schema: Type[OrderResponse] = OrderResponse) -> OrderResponse:
    """Build the order response"""
    extra = {}
    if "internal_notes" in schema.model_fields:
        extra["internal_notes"] = order.internal_notes
    return schema(
        id=order.id,
        order_number=order.order_number,
        store_id=order.store_id,
        customer_id=order.customer_id,
        customer_email=order.customer_email,
        customer_name=order.customer_name,
        customer_phone=order.customer_phone,
        shipping_address=order.shipping_address,
        subtotal=float(order.subtotal or 0),
        discount_amount=float(order.discount_amount or 0),
        shipping_cost=float(order.shipping_cost or 0),
        tax_amount=float(order.tax_amount or 0),
        total=float(order.total or 0),
        platform_fee=float(order.platform_fee or 0),
        vendor_payout=float(order.vendor_payout or 0),
        refund_amount=float(order.refund_amount or 0),
        shipping_method=order.shipping_method,
        coupon_code=order.coupon_code,
        status=order.status,
        payment_status=order.payment_status,
        fulfillment_status=order.fulfillment_status,
        carrier=order.carrier,
        tracking_number=order.tracking_number,
        tracking_url=tracking_url(order.carrier, order.tracking_number),
        cancel_reason=order.cancel_reason,
        paid_at=order.paid_at,
        shipped_at=order.shipped_at,
        cancelled_at=order.cancelled_at,
        refunded_at=order.refunded_at,
        created_at=order.created_at,
        items=[
            OrderItemResponse(
                id=item.id,
                product_id=item.product_id,
                variant_id=item.variant_id,
                name=item.name,
                variant_name=item.variant_name,
                sku=item.sku,
                image_url=item.image_url,
                price=float(item.price or 0),
                quantity=item.quantity,
                line_total=float(item.line_total),
            )
            for item in order.items
        ],
        **extra,
    )
