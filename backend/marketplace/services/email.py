"""
Transactional email through Resend

Senders raise on delivery errors; callers that must not fail (webhook,
scheduled jobs) log and carry on. Nothing is retried.
"""

import html
import logging
from datetime import datetime, timedelta
from decimal import Decimal
from typing import List, Optional

import resend

from marketplace.core.config import settings

logger = logging.getLogger(__name__)

TRACKING_URLS = {
    "USPS": "https://tools.usps.com/go/TrackConfirmAction?tLabels=",
    "FEDEX": "https://www.fedex.com/fedextrack/?trknbr=",
    "UPS": "https://www.ups.com/track?loc=null&tracknum=",
    "DHL": "https://www.dhl.com/en/express/tracking.html?AWB=",
}


def tracking_url(carrier: Optional[str], tracking_number: Optional[str]) -> Optional[str]:
    if not carrier or not tracking_number:
        return None
    base = TRACKING_URLS.get(carrier.upper())
    return f"{base}{tracking_number}" if base else None


def estimated_delivery(shipped_at: datetime) -> str:
    start = shipped_at + timedelta(days=5)
    end = shipped_at + timedelta(days=7)
    return f"{start.strftime('%b %d')} - {end.strftime('%b %d, %Y')}"


def _money(value) -> str:
    return f"${Decimal(str(value or 0)).quantize(Decimal('0.01'))}"


def _layout(title: str, body: str) -> str:
    return (
        "<!DOCTYPE html><html><body style=\"font-family: Arial, sans-serif; color: #111827;\">"
        f"<div style=\"max-width: 600px; margin: 0 auto; padding: 24px;\"><h2>{html.escape(title)}</h2>"
        f"{body}"
        "<p style=\"color: #6b7280; font-size: 12px;\">You received this email because of activity on your account.</p>"
        "</div></body></html>"
    )


def _items_table(items: List[dict]) -> str:
    rows = "".join(
        f"<tr><td>{html.escape(i['name'])}"
        f"{' (' + html.escape(i['variant_name']) + ')' if i.get('variant_name') else ''}</td>"
        f"<td>{i['quantity']}</td><td>{_money(Decimal(str(i['price'])) * i['quantity'])}</td></tr>"
        for i in items
    )
    return f"<table width=\"100%\"><tr><th align=\"left\">Item</th><th>Qty</th><th>Total</th></tr>{rows}</table>"


def send_email(to: str, subject: str, html_body: str, text_body: Optional[str] = None) -> Optional[str]:
    """Send one message; returns the Resend id, or None when email is not configured"""
    if not settings.RESEND_API_KEY:
        logger.warning(f"RESEND_API_KEY not set, skipping email '{subject}' to {to}")
        return None

    resend.api_key = settings.RESEND_API_KEY
    payload = {
        "from": settings.EMAIL_FROM,
        "to": [to],
        "subject": subject,
        "html": html_body,
    }
    if text_body:
        payload["text"] = text_body

    response = resend.Emails.send(payload)
    email_id = response.get("id") if isinstance(response, dict) else getattr(response, "id", None)
    logger.info(f"Email '{subject}' sent to {to} ({email_id})")
    return email_id


def send_order_confirmation(order, store_name: str) -> Optional[str]:
    items = [{"name": i.name, "variant_name": i.variant_name, "quantity": i.quantity, "price": i.price} for i in order.items]
    body = (
        f"<p>Hi {html.escape(order.customer_name or 'there')},</p>"
        f"<p>Thanks for your order from {html.escape(store_name)}. We'll let you know when it ships.</p>"
        f"<p><strong>Order {order.order_number}</strong></p>"
        f"{_items_table(items)}"
        f"<p>Subtotal: {_money(order.subtotal)}<br>"
        f"Discount: -{_money(order.discount_amount)}<br>"
        f"Shipping: {_money(order.shipping_cost)}<br>"
        f"Tax: {_money(order.tax_amount)}<br>"
        f"<strong>Total: {_money(order.total)}</strong></p>"
    )
    return send_email(
        order.customer_email,
        f"Order Confirmation - {order.order_number}",
        _layout("Order confirmed", body),
        f"Order {order.order_number} confirmed. Total {_money(order.total)}.",
    )


def send_vendor_new_order_alert(order, store_email: str, store_name: str) -> Optional[str]:
    items = [{"name": i.name, "variant_name": i.variant_name, "quantity": i.quantity, "price": i.price} for i in order.items]
    body = (
        f"<p>{html.escape(store_name)} has a new order.</p>"
        f"<p><strong>Order {order.order_number}</strong> from {html.escape(order.customer_name or order.customer_email)}</p>"
        f"{_items_table(items)}"
        f"<p>Order total: {_money(order.total)}<br>Your payout: {_money(order.vendor_payout)}</p>"
        f"<p><a href=\"{settings.APP_URL}/dashboard/orders/{order.id}\">View order</a></p>"
    )
    return send_email(store_email, f"New Order - {order.order_number}", _layout("New order received", body))


def send_payment_failed(email: str, order_number: str, customer_name: Optional[str] = None) -> Optional[str]:
    body = (
        f"<p>Hi {html.escape(customer_name or 'there')},</p>"
        f"<p>We couldn't process the payment for order {html.escape(order_number)}. "
        "No charge was made. You can try again with a different payment method.</p>"
    )
    return send_email(email, f"Payment Failed - {order_number}", _layout("Payment failed", body))


def send_refund_confirmation(order, refund_amount: Decimal, is_full_refund: bool) -> Optional[str]:
    kind = "full" if is_full_refund else "partial"
    body = (
        f"<p>Hi {html.escape(order.customer_name or 'there')},</p>"
        f"<p>A {kind} refund of {_money(refund_amount)} for order {order.order_number} has been issued. "
        "It can take 5-10 business days to appear on your statement.</p>"
    )
    return send_email(order.customer_email, f"Refund Processed - {order.order_number}", _layout("Refund processed", body))


def send_shipping_notification(order, store_name: str) -> Optional[str]:
    url = tracking_url(order.carrier, order.tracking_number)
    tracking = (
        f"<p>Tracking number: <a href=\"{url}\">{html.escape(order.tracking_number)}</a></p>" if url
        else f"<p>Tracking number: {html.escape(order.tracking_number or '')}</p>"
    )
    body = (
        f"<p>Hi {html.escape(order.customer_name or 'there')},</p>"
        f"<p>Good news! Your order {order.order_number} from {html.escape(store_name)} "
        f"has shipped with {html.escape(order.carrier or 'the carrier')}.</p>"
        f"{tracking}"
        f"<p>Estimated delivery: {estimated_delivery(order.shipped_at or datetime.utcnow())}</p>"
    )
    return send_email(order.customer_email, f"Your order has shipped - {order.order_number}", _layout("Order shipped", body))


def send_review_request(email: str, customer_name: Optional[str], product_name: str, review_url: str,
                        order_number: str) -> Optional[str]:
    body = (
        f"<p>Hi {html.escape(customer_name or 'there')},</p>"
        f"<p>How are you enjoying your {html.escape(product_name)}? "
        "Your review helps other shoppers and the seller.</p>"
        f"<p><a href=\"{review_url}\">Write a review</a></p>"
        f"<p style=\"color: #6b7280;\">Order {html.escape(order_number)}. This link expires in 30 days.</p>"
    )
    return send_email(email, f"How was your {product_name}?", _layout("Share your thoughts", body))


def send_low_stock_alert(store_email: str, store_name: str, products: List[dict]) -> Optional[str]:
    rows = "".join(
        f"<tr><td>{html.escape(p['product_name'])}"
        f"{' (' + html.escape(p['variant_name']) + ')' if p.get('variant_name') else ''}</td>"
        f"<td>{html.escape(p.get('sku') or '-')}</td><td>{p['available_quantity']}</td></tr>"
        for p in products
    )
    body = (
        f"<p>{len(products)} item(s) in {html.escape(store_name)} are running low.</p>"
        f"<table width=\"100%\"><tr><th align=\"left\">Product</th><th>SKU</th><th>Available</th></tr>{rows}</table>"
        f"<p><a href=\"{settings.APP_URL}/dashboard/products?low_stock=true\">Restock now</a></p>"
    )
    return send_email(store_email, f"Low Stock Alert - {len(products)} item(s)", _layout("Low stock alert", body))


def send_vendor_welcome(email: str, store_name: str) -> Optional[str]:
    body = (
        f"<p>Your store {html.escape(store_name)} is ready.</p>"
        "<p>Add your first products, set up shipping zones and connect a payout method to start selling.</p>"
        f"<p><a href=\"{settings.APP_URL}/dashboard\">Open your dashboard</a></p>"
    )
    return send_email(email, f"Welcome to {settings.PROJECT_NAME}!", _layout("Welcome aboard", body))
