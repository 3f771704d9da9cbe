from datetime import datetime, timedelta
from decimal import Decimal

from marketplace.models import Coupon, DiscountType
from marketplace.services.coupons import eligible_items, calculate_discount, validate_coupon, increment_usage

ITEMS = [
    {"product_id": 1, "category": "CLOTHING", "price": "20.00", "quantity": 2},
    {"product_id": 2, "category": "JEWELRY", "price": "50.00", "quantity": 1},
]


def coupon(**fields):
    defaults = dict(store_id=1, code="SAVE", discount_type=DiscountType.PERCENTAGE,
                    discount_value=Decimal("10"), is_active=True, usage_count=0,
                    applicable_products=[], applicable_categories=[], excluded_products=[])
    defaults.update(fields)
    return Coupon(**defaults)


def test_eligible_items_filters():
    assert len(eligible_items(coupon(), ITEMS)) == 2
    assert [i["product_id"] for i in eligible_items(coupon(applicable_products=[2]), ITEMS)] == [2]
    assert [i["product_id"] for i in eligible_items(coupon(applicable_categories=["CLOTHING"]), ITEMS)] == [1]
    assert [i["product_id"] for i in eligible_items(coupon(excluded_products=[1]), ITEMS)] == [2]


def test_percentage_discount_with_cap():
    assert calculate_discount(coupon(), Decimal("90"), Decimal("5")) == Decimal("9.00")
    capped = coupon(discount_value=Decimal("50"), max_discount_amount=Decimal("20"))
    assert calculate_discount(capped, Decimal("90"), Decimal("5")) == Decimal("20.00")


def test_fixed_discount_never_exceeds_subtotal():
    fixed = coupon(discount_type=DiscountType.FIXED_AMOUNT, discount_value=Decimal("15"))
    assert calculate_discount(fixed, Decimal("40"), Decimal("0")) == Decimal("15.00")
    assert calculate_discount(fixed, Decimal("12"), Decimal("0")) == Decimal("12.00")


def test_free_shipping_discount_is_shipping_cost():
    free = coupon(discount_type=DiscountType.FREE_SHIPPING, discount_value=Decimal("0"))
    assert calculate_discount(free, Decimal("10"), Decimal("12.99")) == Decimal("12.99")


async def save(db, c):
    db.add(c)
    await db.commit()
    return c


async def test_validate_coupon_happy_path(db, store):
    await save(db, coupon(store_id=store.id, code="SAVE10"))
    result = await validate_coupon(db, store.id, " save10 ", ITEMS, Decimal("90.00"))
    assert result["valid"] is True
    assert result["discount"] == Decimal("9.00")
    assert result["coupon"].code == "SAVE10"


async def test_validate_coupon_rejections(db, store):
    now = datetime.utcnow()
    await save(db, coupon(store_id=store.id, code="OFF", is_active=False))
    await save(db, coupon(store_id=store.id, code="LATER", start_date=now + timedelta(days=2)))
    await save(db, coupon(store_id=store.id, code="OLD", end_date=now - timedelta(days=1)))
    await save(db, coupon(store_id=store.id, code="USED", usage_limit=5, usage_count=5))
    await save(db, coupon(store_id=store.id, code="BIG", min_purchase_amount=Decimal("100")))
    await save(db, coupon(store_id=store.id, code="BOOKS", applicable_categories=["BOOKS_MOVIES_AND_MUSIC"]))

    async def error(code):
        return (await validate_coupon(db, store.id, code, ITEMS, Decimal("90.00"), now=now))["error"]

    assert await error("NOPE") == "Coupon code not found"
    assert await error("OFF") == "This coupon is no longer active"
    assert (await error("LATER")).startswith("This coupon is not valid until")
    assert await error("OLD") == "This coupon has expired"
    assert await error("USED") == "This coupon has reached its usage limit"
    assert await error("BIG") == "Minimum purchase amount of $100.00 required"
    assert await error("BOOKS") == "This coupon is not applicable to items in your cart"


async def test_first_time_customer_coupon(db, store, make_product, make_order):
    product = await make_product(store)
    await make_order(store, product, email="repeat@example.com")
    await save(db, coupon(store_id=store.id, code="WELCOME", first_time_customers_only=True))

    repeat = await validate_coupon(db, store.id, "WELCOME", ITEMS, Decimal("90"), customer_email="Repeat@example.com")
    assert repeat["error"] == "This coupon is only valid for first-time customers"
    fresh = await validate_coupon(db, store.id, "WELCOME", ITEMS, Decimal("90"), customer_email="new@example.com")
    assert fresh["valid"] is True


async def test_increment_usage(db, store):
    c = await save(db, coupon(store_id=store.id, code="COUNT"))
    await increment_usage(db, store.id, "count")
    await db.commit()
    refreshed = await db.get(Coupon, c.id, populate_existing=True)
    assert refreshed.usage_count == 1
