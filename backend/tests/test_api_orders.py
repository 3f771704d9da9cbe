from datetime import datetime, timedelta
from decimal import Decimal

from conftest import API, auth_headers

DASHBOARD = f"{API}/dashboard/orders"


async def test_customer_order_history(client, store, customer, customer_headers, make_product, make_order, make_user):
    product = await make_product(store)
    mine = await make_order(store, product, customer=customer, order_number="ORD20260101-MINE01")
    # Guest checkout with the same email
    guest = await make_order(store, product, email="Buyer@Example.com", order_number="ORD20260101-GUEST1")
    stranger = await make_user(email="stranger@example.com")
    other = await make_order(store, product, customer=stranger, email="stranger@example.com",
                             order_number="ORD20260101-OTHER1")

    resp = await client.get(f"{API}/account/orders", headers=customer_headers)
    assert resp.status_code == 200
    numbers = {o["order_number"] for o in resp.json()["data"]}
    assert numbers == {mine.order_number, guest.order_number}

    detail = await client.get(f"{API}/account/orders/{mine.id}", headers=customer_headers)
    assert detail.status_code == 200
    body = detail.json()
    assert body["items"][0]["line_total"] == 50.0
    assert "internal_notes" not in body

    hidden = await client.get(f"{API}/account/orders/{other.id}", headers=customer_headers)
    assert hidden.status_code == 404


async def test_order_history_requires_login(client):
    resp = await client.get(f"{API}/account/orders")
    assert resp.status_code == 401


async def test_vendor_list_filters(client, db, store, vendor_headers, make_product, make_order):
    product = await make_product(store)
    await make_order(store, product, order_number="ORD20260101-OPEN01", email="alice@example.com")
    await make_order(store, product, order_number="ORD20260101-SHIP01", shipped_days_ago=2)
    old = await make_order(store, product, order_number="ORD20250101-OLD001")
    old.created_at = datetime.utcnow() - timedelta(days=60)
    await db.commit()

    default = await client.get(DASHBOARD, headers=vendor_headers)
    assert default.json()["total"] == 2

    everything = await client.get(DASHBOARD, headers=vendor_headers, params={"date_range": "all"})
    assert everything.json()["total"] == 3

    unfulfilled = await client.get(DASHBOARD, headers=vendor_headers, params={"status": "unfulfilled"})
    assert [o["order_number"] for o in unfulfilled.json()["data"]] == ["ORD20260101-OPEN01"]

    shipped = await client.get(DASHBOARD, headers=vendor_headers, params={"status": "shipped"})
    assert [o["order_number"] for o in shipped.json()["data"]] == ["ORD20260101-SHIP01"]

    found = await client.get(DASHBOARD, headers=vendor_headers, params={"search": "alice"})
    assert found.json()["total"] == 1

    bad = await client.get(DASHBOARD, headers=vendor_headers, params={"sort_by": "random"})
    assert bad.status_code == 400


async def test_other_store_order_forbidden(client, store, make_user, make_store, make_product, make_order):
    product = await make_product(store)
    order = await make_order(store, product)
    rival = await make_user(email="rival@example.com", role="VENDOR")
    await make_store(rival, name="Rival", slug="rival")

    resp = await client.get(f"{DASHBOARD}/{order.id}", headers=auth_headers(rival))
    assert resp.status_code == 403
    missing = await client.get(f"{DASHBOARD}/9999", headers=auth_headers(rival))
    assert missing.status_code == 404


async def test_fulfill_order(client, db, store, vendor_headers, make_product, make_order, sent_emails):
    product = await make_product(store, quantity=20)
    order = await make_order(store, product, quantity=2)

    resp = await client.post(
        f"{DASHBOARD}/{order.id}/fulfill",
        headers=vendor_headers,
        json={
            "carrier": "USPS",
            "tracking_number": "9400111899223100000000",
            "shipping_date": "2026-01-02T15:00:00Z",
            "internal_notes": "Packed with care",
        },
    )
    assert resp.status_code == 200
    body = resp.json()
    assert body["fulfillment_status"] == "SHIPPED"
    assert body["tracking_url"].endswith("9400111899223100000000")
    assert body["internal_notes"] == "Packed with care"
    assert body["shipped_at"].startswith("2026-01-02T15:00:00")

    await db.refresh(product)
    assert product.quantity == 18
    assert product.quantity_on_hold == 0
    await db.refresh(store)
    assert str(store.withdraw_balance) == "46.50"
    assert sent_emails[-1]["to"] == "buyer@example.com"

    again = await client.post(
        f"{DASHBOARD}/{order.id}/fulfill",
        headers=vendor_headers,
        json={"carrier": "USPS", "shipping_date": "2026-01-02T15:00:00Z"},
    )
    assert again.status_code == 400
    assert again.json()["error"] == "Order has already been fulfilled"


async def test_fulfill_without_tracking_sends_no_email(client, store, vendor_headers, make_product, make_order, sent_emails):
    product = await make_product(store)
    order = await make_order(store, product)

    resp = await client.post(
        f"{DASHBOARD}/{order.id}/fulfill",
        headers=vendor_headers,
        json={"carrier": "OTHER", "shipping_date": "2026-01-02T15:00:00"},
    )
    assert resp.status_code == 200
    assert resp.json()["tracking_url"] is None
    assert sent_emails == []


async def test_deliver_requires_shipment(client, store, vendor_headers, make_product, make_order):
    product = await make_product(store)
    open_order = await make_order(store, product, order_number="ORD20260101-OPEN01")
    shipped = await make_order(store, product, order_number="ORD20260101-SHIP01", shipped_days_ago=3)

    refused = await client.post(f"{DASHBOARD}/{open_order.id}/deliver", headers=vendor_headers)
    assert refused.status_code == 400

    resp = await client.post(f"{DASHBOARD}/{shipped.id}/deliver", headers=vendor_headers)
    assert resp.status_code == 200
    assert resp.json()["fulfillment_status"] == "DELIVERED"


async def test_cancel_releases_stock_and_totals(client, db, store, vendor_headers, make_product, make_order):
    product = await make_product(store, quantity=20, sales_count=2)
    order = await make_order(store, product, quantity=2)
    store.total_orders = 1
    store.total_sales = order.vendor_payout
    await db.commit()

    resp = await client.post(f"{DASHBOARD}/{order.id}/cancel", headers=vendor_headers, json={"reason": "Out of fabric"})
    assert resp.status_code == 200
    body = resp.json()
    assert body["status"] == "CANCELLED"
    assert body["fulfillment_status"] == "CANCELLED"
    assert body["cancel_reason"] == "Out of fabric"

    await db.refresh(product)
    assert product.quantity_on_hold == 0
    assert product.quantity == 20
    assert product.sales_count == 0
    await db.refresh(store)
    assert store.total_orders == 0
    assert str(store.total_sales) == "0.00"

    twice = await client.post(f"{DASHBOARD}/{order.id}/cancel", headers=vendor_headers, json={})
    assert twice.json()["error"] == "Order is already cancelled"


async def test_shipped_orders_cannot_be_cancelled(client, store, vendor_headers, make_product, make_order):
    product = await make_product(store)
    order = await make_order(store, product, shipped_days_ago=1)

    resp = await client.post(f"{DASHBOARD}/{order.id}/cancel", headers=vendor_headers, json={})
    assert resp.status_code == 400
    assert resp.json()["error"] == "Cannot cancel orders that have been shipped or delivered"


async def test_cancel_partially_refunded_order_releases_stock(client, db, store, vendor_headers, make_product, make_order):
    product = await make_product(store, quantity=20, sales_count=2)
    order = await make_order(store, product, quantity=2)
    order.payment_status = "PARTIALLY_REFUNDED"
    order.refund_amount = Decimal("5.00")
    store.total_orders = 1
    store.total_sales = order.vendor_payout
    await db.commit()

    resp = await client.post(f"{DASHBOARD}/{order.id}/cancel", headers=vendor_headers, json={"reason": "Buyer asked"})
    assert resp.status_code == 200
    assert resp.json()["status"] == "CANCELLED"

    await db.refresh(product)
    assert product.quantity_on_hold == 0
    assert product.sales_count == 0
    await db.refresh(store)
    assert store.total_orders == 0


async def test_refunded_order_cannot_be_cancelled(client, db, store, vendor_headers, make_product, make_order):
    product = await make_product(store)
    order = await make_order(store, product, hold_stock=False)
    order.status = "REFUNDED"
    order.payment_status = "REFUNDED"
    order.fulfillment_status = "CANCELLED"
    await db.commit()

    resp = await client.post(f"{DASHBOARD}/{order.id}/cancel", headers=vendor_headers, json={})
    assert resp.status_code == 400

    await db.refresh(order)
    assert order.status == "REFUNDED"


async def test_refunded_unshipped_order_keeps_its_status(client, db, store, vendor_headers, make_product, make_order):
    product = await make_product(store)
    order = await make_order(store, product, hold_stock=False)
    order.status = "REFUNDED"
    order.payment_status = "REFUNDED"
    await db.commit()

    resp = await client.post(f"{DASHBOARD}/{order.id}/cancel", headers=vendor_headers, json={})
    assert resp.status_code == 400
    assert resp.json()["error"] == "Refunded orders cannot be cancelled"
