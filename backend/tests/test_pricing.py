from decimal import Decimal
from types import SimpleNamespace

from marketplace.models import ShippingZone, ShippingRate, ShippingRateType
from marketplace.services.pricing import (
    round_money, to_cents, shipping_zone_for_zip, default_shipping_rates, match_zone,
    zone_shipping_rates, calculate_tax, platform_fee_percent, split_payout
)


def rate_ids(rates):
    return [r["id"] for r in rates]


def test_round_money_and_cents():
    assert round_money("10.005") == Decimal("10.01")
    assert round_money(3) == Decimal("3.00")
    assert to_cents(Decimal("19.99")) == 1999
    assert to_cents("0.015") == 2


def test_shipping_zone_for_zip():
    assert shipping_zone_for_zip("10001") == 1
    assert shipping_zone_for_zip("30301") == 2
    assert shipping_zone_for_zip("60601") == 4
    assert shipping_zone_for_zip("94105") == 5
    assert shipping_zone_for_zip("00501") == 1


def test_default_rates_small_cart_nearby():
    rates = default_shipping_rates("10001", Decimal("20"))
    assert rate_ids(rates) == ["standard", "express", "local_pickup"]
    standard = rates[0]
    assert standard["price"] == Decimal("6.99")
    assert standard["estimated_days"] == "5-7 business days"


def test_default_rates_free_shipping_and_overnight():
    rates = default_shipping_rates("10001", Decimal("50"))
    assert rate_ids(rates) == ["free_shipping", "standard", "express", "priority_overnight", "local_pickup"]
    assert rates[0]["price"] == Decimal("0.00")


def test_default_rates_distance_surcharge():
    # Zone 5 adds 60%
    rates = {r["id"]: r for r in default_shipping_rates("94105", Decimal("30"))}
    assert rates["standard"]["price"] == Decimal("11.18")
    assert rates["express"]["price"] == Decimal("20.78")
    assert rates["priority_overnight"]["price"] == Decimal("39.98")


def _zone(zone_id, regions, priority=0, enabled=True, rates=()):
    zone = ShippingZone(id=zone_id, store_id=1, name=f"Zone {zone_id}", regions=regions,
                        priority=priority, is_enabled=enabled)
    zone.rates = list(rates)
    return zone


def test_match_zone_by_state_prefix_and_priority():
    west = _zone(1, {"states": ["CA", "OR"]}, priority=1)
    bay = _zone(2, {"zip_prefixes": ["941"]}, priority=0)
    everywhere = _zone(3, {}, priority=5)
    disabled = _zone(4, {"states": ["TX"]}, enabled=False)
    zones = [west, bay, everywhere, disabled]

    assert match_zone(zones, "CA", "94105") is bay
    assert match_zone(zones, "CA", "90001") is west
    assert match_zone(zones, "TX", "73301") is everywhere


def test_zone_rates_free_threshold_and_pickup():
    zone = _zone(1, {}, rates=[
        ShippingRate(id=10, name="Flat", type=ShippingRateType.FLAT_RATE, cost=Decimal("5.50"), is_enabled=True),
        ShippingRate(id=11, name="Free over 40", type=ShippingRateType.FREE_SHIPPING, cost=Decimal("0"),
                     min_order_amount=Decimal("40"), is_enabled=True),
        ShippingRate(id=12, name="Pickup", type=ShippingRateType.LOCAL_PICKUP, cost=Decimal("3"), is_enabled=True),
        ShippingRate(id=13, name="Off", type=ShippingRateType.FLAT_RATE, cost=Decimal("1"), is_enabled=False),
    ])

    small = zone_shipping_rates(zone, Decimal("30"))
    assert rate_ids(small) == ["rate_10", "rate_12"]
    assert small[0]["price"] == Decimal("5.50")
    assert small[1]["price"] == Decimal("0.00")

    large = zone_shipping_rates(zone, Decimal("40"))
    assert rate_ids(large) == ["rate_10", "rate_11", "rate_12"]


def test_calculate_tax():
    assert calculate_tax(Decimal("100"), "CA") == Decimal("7.25")
    assert calculate_tax(Decimal("100"), "OR") == Decimal("0.00")
    assert calculate_tax(Decimal("100"), "ZZ") == Decimal("6.25")


def test_platform_fee_precedence():
    tenant = SimpleNamespace(platform_fee_percent=3.0)
    assert platform_fee_percent(SimpleNamespace(platform_fee_percent=4.5, tenant=tenant)) == Decimal("4.5")
    assert platform_fee_percent(SimpleNamespace(platform_fee_percent=None, tenant=tenant)) == Decimal("3.0")
    assert platform_fee_percent(SimpleNamespace(platform_fee_percent=None, tenant=None)) == Decimal("7.0")


def test_split_payout_sums_to_total():
    fee, payout = split_payout(Decimal("107.49"), Decimal("7"))
    assert fee == Decimal("7.52")
    assert payout == Decimal("99.97")
    assert fee + payout == Decimal("107.49")
