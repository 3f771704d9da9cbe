import pytest
from sqlalchemy import select

from conftest import API, add_to_cart
from marketplace.models import StoreOrder, StockMovement
from marketplace.services import orders as order_service, payments
from marketplace.services.cart import CartStore

SIGNATURE = {"stripe-signature": "t=1,v1=test"}

SHIPPING_INFO = {
    "email": "buyer@example.com",
    "full_name": "Pat Buyer",
    "phone": "212-555-0100",
    "address_line1": "350 Fifth Avenue",
    "city": "New York",
    "state": "NY",
    "zip_code": "10001",
}


@pytest.fixture
def stripe_events(monkeypatch):
    """Queue of events handed back instead of verifying the payload"""
    queue = []

    def fake_construct(payload, signature):
        if not queue:
            raise ValueError("no event queued")
        return queue.pop(0)

    monkeypatch.setattr(payments, "construct_webhook_event", fake_construct)
    return queue


def intent_event(intent, event_type="payment_intent.succeeded"):
    return {
        "id": f"evt_{intent['id']}",
        "type": event_type,
        "data": {"object": {"id": intent["id"], "metadata": intent["metadata"], "receipt_email": intent["receipt_email"]}},
    }


async def place_order(client, product, stripe_intents, stripe_events, headers=None, quantity=2):
    await add_to_cart(client, product, quantity=quantity)
    resp = await client.post(
        f"{API}/checkout/create-payment-intent",
        headers=headers or {},
        json={"shipping_info": SHIPPING_INFO, "shipping_method": "standard"},
    )
    assert resp.status_code == 200
    intent = stripe_intents[-1]
    stripe_events.append(intent_event(intent))
    webhook = await client.post(f"{API}/webhooks/stripe", content=b"{}", headers=SIGNATURE)
    assert webhook.status_code == 200
    assert webhook.json() == {"received": True}
    return intent


async def test_missing_signature(client):
    resp = await client.post(f"{API}/webhooks/stripe", content=b"{}")
    assert resp.status_code == 400
    assert resp.json()["error"] == "Invalid signature"


async def test_bad_signature(client, stripe_events):
    resp = await client.post(f"{API}/webhooks/stripe", content=b"{}", headers=SIGNATURE)
    assert resp.status_code == 400


async def test_unhandled_event_is_acknowledged(client, stripe_events):
    stripe_events.append({"id": "evt_1", "type": "customer.created", "data": {"object": {}}})
    resp = await client.post(f"{API}/webhooks/stripe", content=b"{}", headers=SIGNATURE)
    assert resp.status_code == 200


async def test_payment_succeeded_creates_order(
    client, db, store, make_product, stripe_intents, stripe_events, fake_redis, sent_emails
):
    product = await make_product(store, price="25.00", quantity=10)
    intent = await place_order(client, product, stripe_intents, stripe_events)

    result = await db.execute(select(StoreOrder).where(StoreOrder.payment_intent_id == intent["id"]))
    order = result.scalar_one()
    assert order.order_number == intent["metadata"]["order_number"]
    assert order.status == "PAID"
    assert order.fulfillment_status == "UNFULFILLED"
    assert order.customer_email == "buyer@example.com"
    assert order.shipping_address["city"] == "New York"
    assert str(order.total) == "59.27"
    assert len(order.items) == 1
    assert order.items[0].quantity == 2

    await db.refresh(product)
    assert product.quantity == 10
    assert product.quantity_on_hold == 2
    assert product.sales_count == 2
    await db.refresh(store)
    assert store.total_orders == 1

    movements = await db.execute(select(StockMovement).where(StockMovement.product_id == product.id))
    assert [m.movement_type for m in movements.scalars().all()] == ["reserve"]

    # Cart is consumed by the order
    assert not any(key.startswith("cart:") for key in fake_redis.data)
    recipients = {mail["to"] for mail in sent_emails}
    assert "buyer@example.com" in recipients
    assert store.email in recipients
    assert not any(mail["on_main_thread"] for mail in sent_emails)


async def test_replayed_event_creates_one_order(client, db, store, make_product, stripe_intents, stripe_events):
    product = await make_product(store)
    intent = await place_order(client, product, stripe_intents, stripe_events)

    stripe_events.append(intent_event(intent))
    again = await client.post(f"{API}/webhooks/stripe", content=b"{}", headers=SIGNATURE)
    assert again.status_code == 200

    result = await db.execute(select(StoreOrder).where(StoreOrder.payment_intent_id == intent["id"]))
    assert len(result.scalars().all()) == 1


async def test_signed_in_customer_sees_order(
    client, store, customer, customer_headers, make_product, stripe_intents, stripe_events
):
    product = await make_product(store)
    intent = await place_order(client, product, stripe_intents, stripe_events, headers=customer_headers)
    assert intent["metadata"]["customer_id"] == str(customer.id)

    mine = await client.get(f"{API}/account/orders", headers=customer_headers)
    assert mine.json()["total"] == 1
    assert mine.json()["data"][0]["order_number"] == intent["metadata"]["order_number"]


async def test_payment_failed(client, stripe_events, sent_emails):
    stripe_events.append({
        "id": "evt_fail",
        "type": "payment_intent.payment_failed",
        "data": {"object": {"id": "pi_failed", "metadata": {
            "customer_email": "buyer@example.com", "order_number": "ORD20260101-FAIL01", "customer_name": "Pat",
        }}},
    })
    resp = await client.post(f"{API}/webhooks/stripe", content=b"{}", headers=SIGNATURE)
    assert resp.status_code == 200
    assert sent_emails[-1]["to"] == "buyer@example.com"
    assert "ORD20260101-FAIL01" in sent_emails[-1]["subject"] + sent_emails[-1]["html"]


async def test_full_refund_releases_stock(client, db, store, make_product, make_order, stripe_events):
    product = await make_product(store, quantity=10)
    order = await make_order(store, product, quantity=3)

    stripe_events.append({
        "id": "evt_refund",
        "type": "charge.refunded",
        "data": {"object": {
            "payment_intent": order.payment_intent_id, "amount": 7500, "amount_refunded": 7500, "refunded": True,
        }},
    })
    resp = await client.post(f"{API}/webhooks/stripe", content=b"{}", headers=SIGNATURE)
    assert resp.status_code == 200

    await db.refresh(order)
    assert order.status == "REFUNDED"
    assert order.payment_status == "REFUNDED"
    assert order.fulfillment_status == "CANCELLED"
    assert str(order.refund_amount) == "75.00"
    await db.refresh(product)
    assert product.quantity_on_hold == 0
    assert product.quantity == 10


async def test_partial_refund(client, db, store, make_product, make_order, stripe_events):
    product = await make_product(store, quantity=10)
    order = await make_order(store, product, quantity=2)

    stripe_events.append({
        "id": "evt_partial",
        "type": "charge.refunded",
        "data": {"object": {
            "payment_intent": order.payment_intent_id, "amount": 5000, "amount_refunded": 1000, "refunded": False,
        }},
    })
    await client.post(f"{API}/webhooks/stripe", content=b"{}", headers=SIGNATURE)

    await db.refresh(order)
    assert order.payment_status == "PARTIALLY_REFUNDED"
    assert order.status == "PAID"
    assert str(order.refund_amount) == "10.00"
    await db.refresh(product)
    assert product.quantity_on_hold == 2


async def test_concurrent_delivery_returns_existing_order(db, store, make_product, make_order, fake_redis, monkeypatch):
    product = await make_product(store, quantity=10)
    order = await make_order(store, product, quantity=2, order_number="ORD20260101-RACE01")
    order_id, intent_id = order.id, order.payment_intent_id

    cart_store = CartStore(fake_redis)
    await cart_store.save("cart-race", {
        "store_id": store.id, "store_slug": store.slug, "store_name": store.name,
        "items": [{"product_id": product.id, "name": product.name, "price": "25.00", "quantity": 2}],
    })

    # The other delivery commits between our lookup and our insert
    real_lookup = order_service.get_order_by_payment_intent
    lookups = []

    async def late_lookup(session, payment_intent_id):
        lookups.append(payment_intent_id)
        if len(lookups) == 1:
            return None
        return await real_lookup(session, payment_intent_id)

    monkeypatch.setattr(order_service, "get_order_by_payment_intent", late_lookup)

    intent = {"id": intent_id, "metadata": {
        "store_id": str(store.id), "cart_session_id": "cart-race", "order_number": "ORD20260101-RACE02",
        "customer_email": "buyer@example.com", "total": "50.00", "vendor_payout": "46.50",
    }}
    result, created = await order_service.handle_payment_succeeded(db, cart_store, intent)

    assert created is False
    assert result.id == order_id
    assert len(lookups) == 2

    rows = await db.execute(select(StoreOrder).where(StoreOrder.payment_intent_id == intent_id))
    assert len(rows.scalars().all()) == 1
    await db.refresh(product)
    assert product.quantity_on_hold == 2
