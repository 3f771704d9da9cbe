from datetime import datetime, timedelta

from conftest import API


async def test_customer_opens_store(client, customer, customer_headers, sent_emails):
    resp = await client.post(f"{API}/vendor/stores", headers=customer_headers, json={"name": "Acme Goods"})
    assert resp.status_code == 201
    store = resp.json()
    assert store["slug"] == "acme-goods"
    assert store["email"] == customer.email
    assert store["minimum_withdraw"] == 50.0
    assert store["withdraw_balance"] == 0.0

    me = await client.get(f"{API}/auth/me", headers=customer_headers)
    assert me.json()["role"] == "VENDOR"
    assert sent_emails and sent_emails[0]["to"] == customer.email
    assert sent_emails[0]["on_main_thread"] is False

    again = await client.post(f"{API}/vendor/stores", headers=customer_headers, json={"name": "Second Shop"})
    assert again.status_code == 409
    assert again.json()["error"] == "You already have a store"


async def test_store_name_taken(client, store, customer_headers):
    resp = await client.post(f"{API}/vendor/stores", headers=customer_headers, json={"name": "Acme Goods"})
    assert resp.status_code == 409


async def test_tenant_must_belong_to_caller(client, admin, customer_headers, make_tenant):
    tenant = await make_tenant(admin, slug="other")
    resp = await client.post(
        f"{API}/vendor/stores", headers=customer_headers, json={"name": "Mine", "tenant_id": tenant.id}
    )
    assert resp.status_code == 403


async def test_update_my_store(client, store, vendor_headers):
    resp = await client.put(
        f"{API}/vendor/stores/me",
        headers=vendor_headers,
        json={"description": "Hand made", "paypal_email": "pay@example.com"},
    )
    assert resp.status_code == 200
    assert resp.json()["description"] == "Hand made"
    assert resp.json()["paypal_email"] == "pay@example.com"


async def test_my_store_requires_one(client, customer_headers):
    resp = await client.get(f"{API}/vendor/stores/me", headers=customer_headers)
    assert resp.status_code == 404


async def test_public_store_shows_hours_and_vacation(client, store, vendor_headers):
    hours = await client.put(
        f"{API}/vendor/store-hours",
        headers=vendor_headers,
        json={"monday": {"open": "08:00", "close": "18:00"}, "timezone": "America/Chicago"},
    )
    assert hours.status_code == 200
    now = datetime.utcnow()
    vacation = await client.post(
        f"{API}/vendor/vacations",
        headers=vendor_headers,
        json={
            "start_date": (now - timedelta(days=1)).isoformat(),
            "end_date": (now + timedelta(days=3)).isoformat(),
            "message": "Back next week",
        },
    )
    assert vacation.status_code == 201

    resp = await client.get(f"{API}/stores/acme-goods")
    assert resp.status_code == 200
    body = resp.json()
    assert body["name"] == "Acme Goods"
    assert body["hours"]["monday"]["open"] == "08:00"
    assert body["hours"]["saturday"]["closed"] is True
    assert body["is_on_vacation"] is True
    assert body["vacation"]["message"] == "Back next week"


async def test_public_store_not_found(client):
    resp = await client.get(f"{API}/stores/nowhere")
    assert resp.status_code == 404
    assert resp.json()["error"] == "Store not found"
