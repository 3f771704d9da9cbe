import os
import threading

# Settings are read at import time
os.environ["SCHEDULER_ENABLED"] = "false"
os.environ["LOG_TO_FILE"] = "false"
os.environ["LOG_LEVEL"] = "WARNING"
os.environ["CRON_SECRET"] = "test-cron-secret"
os.environ["SECRET_KEY"] = "test-secret-key"
os.environ["SQLITE_DATABASE_URI"] = "sqlite:///:memory:"

from datetime import datetime, timedelta
from decimal import Decimal
from types import SimpleNamespace

import pytest
import pytest_asyncio
from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from marketplace.core.deps import get_db, get_redis
from marketplace.core.rate_limit import limiter
from marketplace.core.security import get_password_hash, create_access_token
from marketplace.db.base import Base
from marketplace.main import app
from marketplace.models import (
    User, UserRole, VendorStore, Product, ProductStatus, StoreOrder, StoreOrderItem,
    OrderStatus, PaymentStatus, FulfillmentStatus
)
from marketplace.services import email as email_service
from marketplace.services import payments
from marketplace.services.tenancy import build_tenant

API = "/api/v1"


class FakeRedis:
    """The subset of redis.asyncio.Redis the app uses, kept in a dict"""

    def __init__(self):
        self.data = {}
        self.ttls = {}

    async def get(self, key):
        return self.data.get(key)

    async def set(self, key, value, ex=None):
        self.data[key] = value
        if ex:
            self.ttls[key] = ex
        return True

    async def setex(self, key, ttl, value):
        self.data[key] = value
        self.ttls[key] = ttl
        return True

    async def delete(self, *keys):
        removed = 0
        for key in keys:
            if self.data.pop(key, None) is not None:
                removed += 1
            self.ttls.pop(key, None)
        return removed

    async def ttl(self, key):
        if key not in self.data:
            return -2
        return self.ttls.get(key, -1)


@pytest_asyncio.fixture
async def engine():
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(
        autocommit=False,
        autoflush=False,
        bind=engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )


@pytest_asyncio.fixture
async def db(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture
def fake_redis():
    return FakeRedis()


@pytest.fixture(autouse=True)
def sent_emails(monkeypatch):
    """Capture outgoing email instead of calling Resend"""
    outbox = []

    def fake_send(to, subject, html_body, text_body=None):
        outbox.append({
            "to": to,
            "subject": subject,
            "html": html_body,
            "on_main_thread": threading.current_thread() is threading.main_thread(),
        })
        return f"email_{len(outbox)}"

    monkeypatch.setattr(email_service, "send_email", fake_send)
    return outbox


@pytest.fixture
def stripe_intents(monkeypatch):
    """Record PaymentIntent requests instead of calling Stripe"""
    created = []

    def fake_create(amount_cents, receipt_email, metadata, destination_account=None, transfer_amount_cents=None):
        intent_id = f"pi_test_{len(created) + 1}"
        created.append({
            "id": intent_id,
            "amount_cents": amount_cents,
            "receipt_email": receipt_email,
            "metadata": metadata,
            "destination_account": destination_account,
            "transfer_amount_cents": transfer_amount_cents,
            "on_main_thread": threading.current_thread() is threading.main_thread(),
        })
        return SimpleNamespace(id=intent_id, client_secret=f"{intent_id}_secret_abc")

    monkeypatch.setattr(payments, "create_payment_intent", fake_create)
    return created


@pytest_asyncio.fixture
async def client(session_factory, fake_redis):
    async def override_get_db():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_redis] = lambda: fake_redis
    limiter.reset()

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()
    limiter.reset()


def auth_headers(user: User) -> dict:
    return {"Authorization": f"Bearer {create_access_token(user.id, user.role)}"}


# ===== Factories =====
@pytest.fixture
def make_user(db):
    async def _make(email="buyer@example.com", role=UserRole.CUSTOMER, password="password123", name="Test User"):
        user = User(
            email=email,
            name=name,
            hashed_password=get_password_hash(password),
            role=role,
            is_active=True,
        )
        db.add(user)
        await db.commit()
        return user
    return _make


@pytest.fixture
def make_store(db):
    async def _make(owner, name="Acme Goods", slug="acme-goods", tenant=None, **fields):
        store = VendorStore(
            owner_id=owner.id,
            tenant_id=tenant.id if tenant else None,
            name=name,
            slug=slug,
            email=owner.email,
            is_active=True,
            **fields,
        )
        db.add(store)
        await db.commit()
        return store
    return _make


@pytest.fixture
def make_tenant(db):
    async def _make(owner, slug="acme", **overrides):
        tenant = build_tenant("Acme", slug, owner.id)
        for field, value in overrides.items():
            setattr(tenant, field, value)
        db.add(tenant)
        await db.commit()
        return tenant
    return _make


@pytest.fixture
def make_product(db):
    async def _make(store, name="Linen Shirt", price="25.00", quantity=20, status=ProductStatus.ACTIVE, **fields):
        product = Product(
            store_id=store.id,
            name=name,
            slug=name.lower().replace(" ", "-"),
            category=fields.pop("category", "CLOTHING"),
            price=Decimal(price),
            quantity=quantity,
            quantity_on_hold=0,
            status=status,
            track_inventory=fields.pop("track_inventory", True),
            low_stock_threshold=5,
            has_variants=False,
            variant_types=[],
            images=[],
            options=[],
            variants=[],
            **fields,
        )
        db.add(product)
        await db.commit()
        return product
    return _make


@pytest.fixture
def make_order(db):
    """A paid order placed directly in the database"""
    async def _make(store, product, customer=None, quantity=2, email="buyer@example.com",
                    shipped_days_ago=None, order_number="ORD20260101-AAA111", hold_stock=True):
        price = Decimal(str(product.price))
        subtotal = price * quantity
        order = StoreOrder(
            order_number=order_number,
            store_id=store.id,
            customer_id=customer.id if customer else None,
            customer_email=email,
            customer_name="Pat Buyer",
            shipping_address={"city": "Austin", "state": "TX", "zip_code": "73301"},
            subtotal=subtotal,
            discount_amount=Decimal("0.00"),
            shipping_cost=Decimal("0.00"),
            tax_amount=Decimal("0.00"),
            total=subtotal,
            platform_fee=(subtotal * Decimal("0.07")).quantize(Decimal("0.01")),
            vendor_payout=(subtotal * Decimal("0.93")).quantize(Decimal("0.01")),
            refund_amount=Decimal("0.00"),
            payment_intent_id=f"pi_{order_number}",
            status=OrderStatus.PAID,
            payment_status=PaymentStatus.PAID,
            fulfillment_status=FulfillmentStatus.UNFULFILLED,
            paid_at=datetime.utcnow(),
            items=[StoreOrderItem(
                product_id=product.id,
                name=product.name,
                price=price,
                quantity=quantity,
            )],
        )
        if shipped_days_ago is not None:
            order.fulfillment_status = FulfillmentStatus.SHIPPED
            order.carrier = "USPS"
            order.tracking_number = "9400100000000000000000"
            order.shipped_at = datetime.utcnow() - timedelta(days=shipped_days_ago)
        elif hold_stock:
            product.quantity_on_hold = (product.quantity_on_hold or 0) + quantity
        db.add(order)
        await db.commit()
        return order
    return _make


@pytest_asyncio.fixture
async def vendor(make_user):
    return await make_user(email="vendor@example.com", role=UserRole.VENDOR, name="Vera Vendor")


@pytest_asyncio.fixture
async def customer(make_user):
    return await make_user(email="buyer@example.com", role=UserRole.CUSTOMER, name="Pat Buyer")


@pytest_asyncio.fixture
async def admin(make_user):
    return await make_user(email="admin@example.com", role=UserRole.ADMIN, name="Admin")


@pytest_asyncio.fixture
async def store(make_store, vendor):
    return await make_store(vendor)


@pytest.fixture
def vendor_headers(vendor):
    return auth_headers(vendor)


@pytest.fixture
def customer_headers(customer):
    return auth_headers(customer)


@pytest.fixture
def admin_headers(admin):
    return auth_headers(admin)


async def add_to_cart(client, product, quantity=1, store_slug="acme-goods", variant_id=None):
    """POST /cart/add and keep the cart cookie on the client"""
    resp = await client.post(
        f"{API}/cart/add",
        json={"product_id": product.id, "quantity": quantity, "store_slug": store_slug, "variant_id": variant_id},
    )
    if "cart_id" in resp.cookies:
        client.cookies.set("cart_id", resp.cookies["cart_id"])
    return resp
