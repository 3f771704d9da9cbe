from decimal import Decimal

import pytest_asyncio

from conftest import API

WITHDRAWS = f"{API}/vendor/withdraws"
ADMIN = f"{API}/admin/withdraws"


@pytest_asyncio.fixture
async def funded_store(make_store, vendor):
    return await make_store(vendor, withdraw_balance=Decimal("120.00"), paypal_email="vera@example.com")


async def test_request_and_cancel(client, db, funded_store, vendor_headers):
    resp = await client.post(WITHDRAWS, headers=vendor_headers, json={"amount": "80.00", "method": "PAYPAL"})
    assert resp.status_code == 201
    withdraw = resp.json()
    assert withdraw["status"] == "PENDING"
    assert withdraw["amount"] == 80.0

    listing = await client.get(WITHDRAWS, headers=vendor_headers)
    body = listing.json()
    assert body["total"] == 1
    assert body["balance"] == 40.0
    assert body["minimum_withdraw"] == 50.0

    cancelled = await client.delete(f"{WITHDRAWS}/{withdraw['id']}", headers=vendor_headers)
    assert cancelled.json()["status"] == "CANCELLED"
    await db.refresh(funded_store)
    assert str(funded_store.withdraw_balance) == "120.00"

    again = await client.delete(f"{WITHDRAWS}/{withdraw['id']}", headers=vendor_headers)
    assert again.status_code == 400
    assert again.json()["error"] == "Only pending withdraws can be cancelled"


async def test_request_rules(client, funded_store, vendor_headers):
    below = await client.post(WITHDRAWS, headers=vendor_headers, json={"amount": "20", "method": "PAYPAL"})
    assert below.json()["error"] == "Minimum withdraw amount is $50.00"

    above = await client.post(WITHDRAWS, headers=vendor_headers, json={"amount": "500", "method": "PAYPAL"})
    assert above.json()["error"] == "Insufficient balance. Available: $120.00"

    stripe = await client.post(WITHDRAWS, headers=vendor_headers, json={"amount": "60", "method": "STRIPE"})
    assert stripe.json()["error"] == "Stripe account not connected"

    first = await client.post(WITHDRAWS, headers=vendor_headers, json={"amount": "50", "method": "BANK_TRANSFER"})
    assert first.status_code == 201
    second = await client.post(WITHDRAWS, headers=vendor_headers, json={"amount": "50", "method": "PAYPAL"})
    assert second.status_code == 400
    assert second.json()["error"].startswith("You have a pending withdraw request")


async def test_paypal_email_required(client, vendor, vendor_headers, make_store):
    await make_store(vendor, withdraw_balance=Decimal("100.00"))
    resp = await client.post(WITHDRAWS, headers=vendor_headers, json={"amount": "60", "method": "PAYPAL"})
    assert resp.status_code == 400
    assert resp.json()["error"] == "PayPal email not configured"


async def test_admin_approve_and_pay(client, admin, funded_store, vendor_headers, admin_headers):
    withdraw = (await client.post(WITHDRAWS, headers=vendor_headers, json={"amount": "100", "method": "PAYPAL"})).json()

    early = await client.patch(f"{ADMIN}/{withdraw['id']}", headers=admin_headers, json={"action": "mark_paid"})
    assert early.status_code == 400
    assert early.json()["error"] == "Only approved/processing withdraws can be marked as paid"

    approved = await client.patch(
        f"{ADMIN}/{withdraw['id']}", headers=admin_headers, json={"action": "approve", "admin_notes": "Checked"}
    )
    assert approved.json()["status"] == "APPROVED"
    assert approved.json()["admin_notes"] == "Checked"

    paid = await client.patch(f"{ADMIN}/{withdraw['id']}", headers=admin_headers, json={"action": "mark_paid"})
    assert paid.json()["status"] == "PAID"
    assert paid.json()["processed_at"] is not None
    # Notes from the approval survive an action without notes
    assert paid.json()["admin_notes"] == "Checked"

    pending = await client.get(ADMIN, headers=admin_headers, params={"status": "PENDING"})
    assert pending.json()["total"] == 0
    by_store = await client.get(ADMIN, headers=admin_headers, params={"store_id": funded_store.id})
    assert by_store.json()["total"] == 1


async def test_admin_reject_restores_balance(client, db, admin, funded_store, vendor_headers, admin_headers):
    withdraw = (await client.post(WITHDRAWS, headers=vendor_headers, json={"amount": "70", "method": "PAYPAL"})).json()

    rejected = await client.patch(
        f"{ADMIN}/{withdraw['id']}", headers=admin_headers, json={"action": "reject", "admin_notes": "Wrong account"}
    )
    assert rejected.json()["status"] == "REJECTED"
    await db.refresh(funded_store)
    assert str(funded_store.withdraw_balance) == "120.00"

    twice = await client.patch(f"{ADMIN}/{withdraw['id']}", headers=admin_headers, json={"action": "approve"})
    assert twice.json()["error"] == "Only pending withdraws can be approved"


async def test_admin_routes_require_admin(client, funded_store, vendor_headers):
    resp = await client.get(ADMIN, headers=vendor_headers)
    assert resp.status_code == 403
