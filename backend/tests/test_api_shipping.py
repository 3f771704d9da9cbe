from conftest import API, auth_headers

ZONES = f"{API}/vendor/shipping/zones"


async def test_zone_crud(client, store, vendor_headers):
    created = await client.post(
        ZONES,
        headers=vendor_headers,
        json={"name": "West Coast", "regions": {"states": ["ca", "or", "wa"], "zip_prefixes": ["9"]}, "priority": 2},
    )
    assert created.status_code == 201
    zone = created.json()
    assert zone["regions"]["states"] == ["CA", "OR", "WA"]
    assert zone["rates"] == []

    await client.post(ZONES, headers=vendor_headers, json={"name": "Everywhere else", "priority": 5})
    await client.post(ZONES, headers=vendor_headers, json={"name": "Local", "priority": 0})

    listed = await client.get(ZONES, headers=vendor_headers)
    assert [z["name"] for z in listed.json()] == ["Local", "West Coast", "Everywhere else"]

    updated = await client.put(
        f"{ZONES}/{zone['id']}", headers=vendor_headers, json={"name": "Pacific", "regions": {"states": ["hi"]}}
    )
    assert updated.json()["name"] == "Pacific"
    assert updated.json()["regions"]["states"] == ["HI"]
    assert updated.json()["priority"] == 2

    deleted = await client.delete(f"{ZONES}/{zone['id']}", headers=vendor_headers)
    assert deleted.json() == {"message": "Shipping zone deleted"}
    assert (await client.get(f"{ZONES}/{zone['id']}", headers=vendor_headers)).status_code == 404


async def test_rate_crud(client, store, vendor_headers):
    zone = (await client.post(ZONES, headers=vendor_headers, json={"name": "Texas"})).json()
    rates_url = f"{ZONES}/{zone['id']}/rates"

    created = await client.post(
        rates_url,
        headers=vendor_headers,
        json={"name": "Ground", "type": "FLAT_RATE", "cost": "5.95", "estimated_days": "3-5 days"},
    )
    assert created.status_code == 201
    rate = created.json()
    assert rate["zone_id"] == zone["id"]
    assert rate["cost"] == 5.95

    bad_type = await client.post(rates_url, headers=vendor_headers, json={"name": "Drone", "type": "DRONE"})
    assert bad_type.status_code == 400

    updated = await client.put(f"{rates_url}/{rate['id']}", headers=vendor_headers, json={"cost": "7.25"})
    assert updated.json()["cost"] == 7.25

    zone_view = await client.get(f"{ZONES}/{zone['id']}", headers=vendor_headers)
    assert [r["name"] for r in zone_view.json()["rates"]] == ["Ground"]

    removed = await client.delete(f"{rates_url}/{rate['id']}", headers=vendor_headers)
    assert removed.json() == {"message": "Shipping rate deleted"}
    assert (await client.get(rates_url, headers=vendor_headers)).json() == []
    missing = await client.delete(f"{rates_url}/{rate['id']}", headers=vendor_headers)
    assert missing.status_code == 404


async def test_zones_are_private_to_store(client, store, vendor_headers, make_user, make_store):
    zone = (await client.post(ZONES, headers=vendor_headers, json={"name": "Texas"})).json()
    rival = await make_user(email="rival@example.com", role="VENDOR")
    await make_store(rival, name="Rival", slug="rival")

    resp = await client.get(f"{ZONES}/{zone['id']}", headers=auth_headers(rival))
    assert resp.status_code == 403
    assert (await client.get(ZONES, headers=auth_headers(rival))).json() == []
