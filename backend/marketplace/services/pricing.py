"""
Checkout pricing: shipping options, sales tax and platform fee

All amounts are Decimal, rounded half-up to cents.
"""

from decimal import Decimal, ROUND_HALF_UP
from typing import Iterable, List, Optional

from marketplace.core.config import settings
from marketplace.models import ShippingZone, ShippingRateType, VendorStore

CENT = Decimal("0.01")

DEFAULT_TAX_RATE = Decimal("0.0625")

STATE_TAX_RATES = {
    "AL": "0.04", "AK": "0.0", "AZ": "0.056", "AR": "0.065", "CA": "0.0725", "CO": "0.029", "CT": "0.0635",
    "DE": "0.0", "FL": "0.06", "GA": "0.04", "HI": "0.04", "ID": "0.06", "IL": "0.0625", "IN": "0.07",
    "IA": "0.06", "KS": "0.065", "KY": "0.06", "LA": "0.0445", "ME": "0.055", "MD": "0.06", "MA": "0.0625",
    "MI": "0.06", "MN": "0.06875", "MS": "0.07", "MO": "0.04225", "MT": "0.0", "NE": "0.055", "NV": "0.0685",
    "NH": "0.0", "NJ": "0.06625", "NM": "0.05125", "NY": "0.04", "NC": "0.0475", "ND": "0.05", "OH": "0.0575",
    "OK": "0.045", "OR": "0.0", "PA": "0.06", "RI": "0.07", "SC": "0.06", "SD": "0.045", "TN": "0.07",
    "TX": "0.0625", "UT": "0.0485", "VT": "0.06", "VA": "0.053", "WA": "0.065", "WV": "0.06", "WI": "0.05",
    "WY": "0.04",
}

FREE_SHIPPING_THRESHOLD = Decimal("50")
OVERNIGHT_MINIMUM = Decimal("25")
ZONE_SURCHARGE = Decimal("0.15")


def round_money(value) -> Decimal:
    return Decimal(str(value)).quantize(CENT, rounding=ROUND_HALF_UP)


def to_cents(value) -> int:
    return int((round_money(value) * 100).to_integral_value(rounding=ROUND_HALF_UP))


def shipping_zone_for_zip(zip_code: str) -> int:
    """Distance zone 1-5 from the first three ZIP digits"""
    try:
        prefix = int(zip_code[:3])
    except (TypeError, ValueError):
        return 1
    if 100 <= prefix <= 299:
        return 1
    if 300 <= prefix <= 399:
        return 2
    if 400 <= prefix <= 599:
        return 3
    if 600 <= prefix <= 799:
        return 4
    if 800 <= prefix <= 999:
        return 5
    return 1


def default_shipping_rates(zip_code: str, cart_total) -> List[dict]:
    """Carrier rates used when the store has no matching shipping zone"""
    cart_total = Decimal(str(cart_total))
    zone = shipping_zone_for_zip(zip_code)
    multiplier = Decimal("1") + (zone - 1) * ZONE_SURCHARGE

    rates = []
    if cart_total >= FREE_SHIPPING_THRESHOLD:
        rates.append({
            "id": "free_shipping",
            "name": "Free Standard Shipping",
            "description": "Free shipping on orders over $50",
            "price": Decimal("0.00"),
            "estimated_days": "5-7 business days",
            "carrier": "USPS",
        })
    rates.append({
        "id": "standard",
        "name": "Standard Shipping",
        "description": "Delivered by USPS",
        "price": round_money(Decimal("6.99") * multiplier),
        "estimated_days": "5-7 business days",
        "carrier": "USPS",
    })
    rates.append({
        "id": "express",
        "name": "Express Shipping",
        "description": "Faster delivery by FedEx",
        "price": round_money(Decimal("12.99") * multiplier),
        "estimated_days": "2-3 business days",
        "carrier": "FedEx",
    })
    if cart_total >= OVERNIGHT_MINIMUM:
        rates.append({
            "id": "priority_overnight",
            "name": "Priority Overnight",
            "description": "Next business day delivery",
            "price": round_money(Decimal("24.99") * multiplier),
            "estimated_days": "1 business day",
            "carrier": "FedEx",
        })
    rates.append({
        "id": "local_pickup",
        "name": "Local Pickup",
        "description": "Pick up from the seller",
        "price": Decimal("0.00"),
        "estimated_days": "Available tomorrow",
        "carrier": "In-Store",
    })
    return rates


def match_zone(zones: Iterable[ShippingZone], state: Optional[str], zip_code: str) -> Optional[ShippingZone]:
    """First enabled zone by priority that covers the destination"""
    for zone in sorted(zones, key=lambda z: (z.priority or 0, z.id or 0)):
        if zone.is_enabled and zone.matches(state, zip_code):
            return zone
    return None


def zone_shipping_rates(zone: ShippingZone, cart_total) -> List[dict]:
    cart_total = Decimal(str(cart_total))
    rates = []
    for rate in zone.rates:
        if not rate.is_enabled:
            continue
        if rate.type == ShippingRateType.FREE_SHIPPING:
            if rate.min_order_amount is not None and cart_total < rate.min_order_amount:
                continue
            price = Decimal("0.00")
        elif rate.type == ShippingRateType.LOCAL_PICKUP:
            price = Decimal("0.00")
        else:
            price = round_money(rate.cost or 0)
        rates.append({
            "id": f"rate_{rate.id}",
            "name": rate.name,
            "description": zone.name,
            "price": price,
            "estimated_days": rate.estimated_days,
            "carrier": "In-Store" if rate.type == ShippingRateType.LOCAL_PICKUP else None,
        })
    return rates


def calculate_tax(taxable_amount, state: str) -> Decimal:
    rate = Decimal(STATE_TAX_RATES[state]) if state in STATE_TAX_RATES else DEFAULT_TAX_RATE
    return round_money(Decimal(str(taxable_amount)) * rate)


def platform_fee_percent(store: VendorStore) -> Decimal:
    """Store override, then the tenant's plan fee, then the global default"""
    if store.platform_fee_percent is not None:
        return Decimal(str(store.platform_fee_percent))
    if store.tenant is not None:
        return Decimal(str(store.tenant.platform_fee_percent))
    return Decimal(str(settings.DEFAULT_PLATFORM_FEE_PERCENT))


def split_payout(total, fee_percent) -> tuple:
    """(platform fee, vendor payout) for an order total"""
    total = round_money(total)
    fee = round_money(total * Decimal(str(fee_percent)) / Decimal("100"))
    return fee, total - fee
