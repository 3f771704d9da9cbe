import os

import pytest

from conftest import API, auth_headers
from marketplace.core.config import settings


PRODUCTS = f"{API}/vendor/products"


async def test_create_product_starts_as_draft(client, store, vendor_headers):
    resp = await client.post(
        PRODUCTS,
        headers=vendor_headers,
        json={"name": "Wool Scarf", "price": "19.50", "quantity": 12, "category": "CLOTHING"},
    )
    assert resp.status_code == 201
    product = resp.json()
    assert product["status"] == "DRAFT"
    assert product["slug"] == "wool-scarf"
    assert product["price"] == 19.5
    assert product["available_quantity"] == 12

    dup = await client.post(PRODUCTS, headers=vendor_headers, json={"name": "Wool Scarf", "price": "5"})
    assert dup.status_code == 400


async def test_unknown_category_rejected(client, store, vendor_headers):
    resp = await client.post(PRODUCTS, headers=vendor_headers, json={"name": "Thing", "price": "5", "category": "SPACESHIPS"})
    assert resp.status_code == 400
    assert resp.json()["error"].startswith("category")


async def test_product_quota(client, vendor, vendor_headers, make_tenant, make_store):
    tenant = await make_tenant(vendor, current_products=10)
    await make_store(vendor, tenant=tenant)

    resp = await client.post(PRODUCTS, headers=vendor_headers, json={"name": "Eleventh", "price": "5"})
    assert resp.status_code == 403
    body = resp.json()
    assert body["limit"] == 10
    assert body["currentUsage"] == 10


async def test_product_usage_follows_create_and_delete(client, db, vendor, vendor_headers, make_tenant, make_store):
    tenant = await make_tenant(vendor)
    await make_store(vendor, tenant=tenant)

    created = await client.post(PRODUCTS, headers=vendor_headers, json={"name": "Mug", "price": "8"})
    await db.refresh(tenant)
    assert tenant.current_products == 1

    deleted = await client.delete(f"{PRODUCTS}/{created.json()['id']}", headers=vendor_headers)
    assert deleted.json() == {"success": True}
    await db.refresh(tenant)
    assert tenant.current_products == 0


async def test_other_vendor_cannot_touch_product(client, store, make_user, make_store, make_product):
    product = await make_product(store)
    rival = await make_user(email="rival@example.com", role="VENDOR")
    await make_store(rival, name="Rival", slug="rival")

    resp = await client.get(f"{PRODUCTS}/{product.id}", headers=auth_headers(rival))
    assert resp.status_code == 403


async def test_variant_combinations(client, store, vendor_headers):
    resp = await client.post(
        PRODUCTS,
        headers=vendor_headers,
        json={
            "name": "Tee",
            "price": "20",
            "quantity": 50,
            "variant_options": {
                "variant_types": ["color", "size"],
                "options": [
                    {"type": "color", "values": [{"value": "red"}, {"value": "navy", "display_name": "Navy Blue"}]},
                    {"type": "size", "values": [{"value": "s"}, {"value": "m"}]},
                ],
                "defaults": {"quantity": 3},
            },
        },
    )
    assert resp.status_code == 201
    product = resp.json()
    assert product["has_variants"] is True
    assert product["quantity"] == 0
    assert product["variant_types"] == ["color", "size"]
    assert len(product["variants"]) == 4
    names = {v["name"] for v in product["variants"]}
    assert "Red / S" in names
    assert "Navy Blue / M" in names
    keys = {v["combination_key"] for v in product["variants"]}
    assert "color:red|size:s" in keys
    assert all(v["effective_price"] == 20.0 for v in product["variants"])

    more = await client.post(
        f"{PRODUCTS}/{product['id']}/variants/combinations",
        headers=vendor_headers,
        json={
            "variant_types": ["color", "size"],
            "options": [
                {"type": "color", "values": [{"value": "red"}]},
                {"type": "size", "values": [{"value": "s"}, {"value": "l"}]},
            ],
        },
    )
    assert more.status_code == 201
    assert len(more.json()["variants"]) == 5

    variant_id = product["variants"][0]["id"]
    updated = await client.put(
        f"{PRODUCTS}/{product['id']}/variants/{variant_id}",
        headers=vendor_headers,
        json={"price": "24.00", "quantity": 9},
    )
    assert updated.status_code == 200
    assert updated.json()["effective_price"] == 24.0
    assert updated.json()["quantity"] == 9


async def test_undeclared_variant_type(client, store, vendor_headers, make_product):
    product = await make_product(store)
    resp = await client.post(
        f"{PRODUCTS}/{product.id}/variants/combinations",
        headers=vendor_headers,
        json={"variant_types": ["color"], "options": [{"type": "size", "values": [{"value": "s"}]}]},
    )
    assert resp.status_code == 400


async def test_publish_requires_variants(client, store, vendor_headers):
    created = await client.post(
        PRODUCTS, headers=vendor_headers, json={"name": "Hoodie", "price": "40", "has_variants": True}
    )
    resp = await client.put(
        f"{PRODUCTS}/{created.json()['id']}", headers=vendor_headers, json={"status": "ACTIVE"}
    )
    assert resp.status_code == 400
    assert resp.json()["error"] == "Add at least one variant before publishing"


async def test_stock_adjust_and_movements(client, store, vendor_headers, make_product):
    product = await make_product(store, quantity=20)

    resp = await client.post(
        f"{PRODUCTS}/{product.id}/stock", headers=vendor_headers, json={"new_quantity": 35, "reason": "Restock"}
    )
    assert resp.status_code == 200
    assert resp.json()["quantity"] == 35

    movements = await client.get(f"{PRODUCTS}/{product.id}/stock-movements", headers=vendor_headers)
    assert movements.status_code == 200
    latest = movements.json()[0]
    assert latest["movement_type"] == "adjust"
    assert latest["quantity_change"] == 15
    assert latest["quantity_after"] == 35


async def test_stock_cannot_drop_below_held(client, store, vendor_headers, make_product, make_order):
    product = await make_product(store, quantity=10)
    await make_order(store, product, quantity=4)

    resp = await client.post(f"{PRODUCTS}/{product.id}/stock", headers=vendor_headers, json={"new_quantity": 2})
    assert resp.status_code == 400
    assert "4 units held" in resp.json()["error"]


async def test_low_stock_listing(client, store, vendor_headers, make_product):
    await make_product(store, name="Plenty", quantity=50)
    await make_product(store, name="Nearly Gone", quantity=3)
    await make_product(store, name="Draft Low", quantity=1, status="DRAFT")

    resp = await client.get(f"{PRODUCTS}/low-stock", headers=vendor_headers)
    assert resp.status_code == 200
    assert [item["product_name"] for item in resp.json()] == ["Nearly Gone"]

    listed = await client.get(PRODUCTS, headers=vendor_headers, params={"low_stock": True})
    assert {p["name"] for p in listed.json()["data"]} == {"Nearly Gone", "Draft Low"}


async def test_products_with_orders_cannot_be_deleted(client, store, vendor_headers, make_product, make_order):
    product = await make_product(store)
    await make_order(store, product)

    resp = await client.delete(f"{PRODUCTS}/{product.id}", headers=vendor_headers)
    assert resp.status_code == 400
    assert "Archive" in resp.json()["error"]


async def test_list_filters(client, store, vendor_headers, make_product):
    await make_product(store, name="Blue Mug", category="HOME")
    await make_product(store, name="Red Mug", category="HOME", status="DRAFT")
    await make_product(store, name="Linen Shirt")

    mugs = await client.get(PRODUCTS, headers=vendor_headers, params={"search": "mug"})
    assert mugs.json()["total"] == 2
    drafts = await client.get(PRODUCTS, headers=vendor_headers, params={"status": "DRAFT"})
    assert [p["name"] for p in drafts.json()["data"]] == ["Red Mug"]
    bad = await client.get(PRODUCTS, headers=vendor_headers, params={"status": "GONE"})
    assert bad.status_code == 400


@pytest.fixture
def media_dir(tmp_path, monkeypatch):
    monkeypatch.setattr(settings, "MEDIA_DIR", str(tmp_path))
    return tmp_path


async def test_image_upload_and_delete(client, db, vendor, vendor_headers, make_tenant, make_store, make_product, media_dir):
    tenant = await make_tenant(vendor)
    store = await make_store(vendor, tenant=tenant)
    product = await make_product(store)

    resp = await client.post(
        f"{PRODUCTS}/{product.id}/images",
        headers=vendor_headers,
        files={"file": ("shirt.png", b"\x89PNG fake image bytes", "image/png")},
        data={"alt_text": "Front"},
    )
    assert resp.status_code == 201
    image = resp.json()
    assert image["url"].startswith(f"/media/products/{product.id}/")
    assert image["url"].endswith(".png")
    assert image["alt_text"] == "Front"
    stored = os.path.join(str(media_dir), image["url"][len("/media/"):])
    assert os.path.exists(stored)

    await db.refresh(tenant)
    assert tenant.current_storage_gb > 0

    removed = await client.delete(f"{PRODUCTS}/{product.id}/images/{image['id']}", headers=vendor_headers)
    assert removed.status_code == 200
    assert not os.path.exists(stored)
    await db.refresh(tenant)
    assert tenant.current_storage_gb == 0


async def test_image_type_rejected(client, store, vendor_headers, make_product, media_dir):
    product = await make_product(store)
    resp = await client.post(
        f"{PRODUCTS}/{product.id}/images",
        headers=vendor_headers,
        files={"file": ("notes.txt", b"hello", "text/plain")},
    )
    assert resp.status_code == 400


async def test_storage_quota(client, vendor, vendor_headers, make_tenant, make_store, make_product, media_dir):
    tenant = await make_tenant(vendor, current_storage_gb=1.0, max_storage_gb=1.0)
    store = await make_store(vendor, tenant=tenant)
    product = await make_product(store)

    resp = await client.post(
        f"{PRODUCTS}/{product.id}/images",
        headers=vendor_headers,
        files={"file": ("shirt.jpg", b"jpegbytes", "image/jpeg")},
    )
    assert resp.status_code == 403


async def test_combinations_refused_while_orders_hold_stock(client, db, store, vendor_headers, make_product, make_order):
    product = await make_product(store, quantity=20)
    await make_order(store, product, quantity=3)

    resp = await client.post(
        f"{PRODUCTS}/{product.id}/variants/combinations",
        headers=vendor_headers,
        json={"variant_types": ["size"], "options": [{"type": "size", "values": [{"value": "s"}]}]},
    )
    assert resp.status_code == 400
    assert "3 units are held" in resp.json()["error"]

    await db.refresh(product)
    assert product.quantity == 20
    assert product.quantity_on_hold == 3


async def test_deleting_product_removes_its_files(client, store, vendor_headers, make_product, media_dir):
    product = await make_product(store)
    uploaded = await client.post(
        f"{PRODUCTS}/{product.id}/images",
        headers=vendor_headers,
        files={"file": ("shirt.webp", b"webp bytes", "image/webp")},
    )
    stored = os.path.join(str(media_dir), uploaded.json()["url"][len("/media/"):])
    assert os.path.exists(stored)

    resp = await client.delete(f"{PRODUCTS}/{product.id}", headers=vendor_headers)
    assert resp.status_code == 200
    assert not os.path.exists(stored)
