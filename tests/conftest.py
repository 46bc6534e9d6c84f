import hashlib
import hmac
import itertools
import json
import os
import threading
import time
from decimal import Decimal
from types import SimpleNamespace

#przed importem marketplace - settings czyta env przy imporcie
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["CELERY_TASK_ALWAYS_EAGER"] = "1"
os.environ["STRIPE_WEBHOOK_SECRET"] = "whsec_test"
os.environ["STRIPE_SECRET_KEY"] = "sk_test_dummy"

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

import marketplace.data.models  # noqa: F401
from marketplace.api.deps import get_event_cache, get_gateway
from marketplace.data.database import Base, get_db
from marketplace.data.models import (
    AddressModel,
    CartItemModel,
    ProductModel,
    ProductVariantModel,
    UserModel,
    VendorModel,
)
from marketplace.main import create_app
from marketplace.services.cart_snapshot import CartSnapshotter
from marketplace.services.inventory_ledger import InventoryLedger
from marketplace.services.order_assembler import OrderAssembler
from marketplace.services.payment_gateway import PaymentGatewayAdapter
from marketplace.services.pricing import ShippingMethod

WEBHOOK_SECRET = "whsec_test"

TEST_SHIPPING = {
    "test": ShippingMethod("test", "Test Shipping", Decimal("5.99"), "1 day"),
    "standard": ShippingMethod("standard", "Standard Shipping", Decimal("9.99"), "5-7 business days"),
}


class FakeGateway(PaymentGatewayAdapter):
    """Prawdziwa walidacja i weryfikacja podpisu, bez wywolan do stripe."""

    def __init__(self):
        super().__init__(api_key="sk_test_dummy", webhook_secret=WEBHOOK_SECRET)
        self.created = []
        self._ids = itertools.count(1)

    def _create_intent(self, amount_minor, currency, metadata):
        n = next(self._ids)
        self.created.append({"amount": amount_minor, "currency": currency, "metadata": metadata})
        return SimpleNamespace(id=f"pi_test_{n}", client_secret=f"pi_test_{n}_secret")


class GatedLedger(InventoryLedger):
    """Rezerwacja startuje dopiero gdy wszystkie watki dojda do bramki."""

    def __init__(self, db, gate):
        super().__init__(db)
        self.gate = gate

    def reserve(self, *args, **kwargs):
        self.gate.wait()
        return super().reserve(*args, **kwargs)


class FakeEventCache:
    def __init__(self):
        self.processed = set()

    def was_processed(self, event_id):
        return bool(event_id) and event_id in self.processed

    def mark_processed(self, event_id):
        if event_id:
            self.processed.add(event_id)


def sign(payload: str, secret: str = WEBHOOK_SECRET, timestamp: int | None = None) -> str:
    timestamp = timestamp or int(time.time())
    signature = hmac.new(secret.encode(), f"{timestamp}.{payload}".encode(), hashlib.sha256).hexdigest()
    return f"t={timestamp},v1={signature}"


def provider_event(event_type: str, intent_id: str, event_id: str = "evt_1", **extra) -> dict:
    if event_type == "charge.refunded":
        obj = {"id": "ch_1", "object": "charge", "payment_intent": intent_id}
    else:
        obj = {"id": intent_id, "object": "payment_intent"}
    obj.update(extra)
    return {"id": event_id, "type": event_type, "data": {"object": obj}}


class Factory:
    def __init__(self, db):
        self.db = db
        self._ids = itertools.count(100)

    def _save(self, obj):
        self.db.add(obj)
        self.db.commit()
        return obj

    def user(self, name="Alice"):
        n = next(self._ids)
        return self._save(UserModel(id=n, name=name, email=f"user{n}@example.com"))

    def vendor(self, user=None, commission_rate=Decimal("15")):
        user = user or self.user("Seller")
        return self._save(VendorModel(user_id=user.id, store_name=f"Store {user.id}", commission_rate=commission_rate))

    def product(self, vendor, price="25.00", quantity=10, status="active", name="Widget"):
        return self._save(
            ProductModel(vendor_id=vendor.id, name=name, price=Decimal(price), quantity=quantity, status=status)
        )

    def variant(self, product, price="30.00", quantity=5, is_active=True, name="Large"):
        return self._save(
            ProductVariantModel(
                product_id=product.id, name=name, price=Decimal(price), quantity=quantity, is_active=is_active
            )
        )

    def address(self, user):
        return self._save(
            AddressModel(
                user_id=user.id,
                full_name=user.name,
                address_line1="1 Main St",
                city="Springfield",
                state="IL",
                postal_code="62701",
                country="US",
            )
        )

    def cart_line(self, user, product, quantity=1, variant=None):
        price = variant.price if variant else product.price
        return self._save(
            CartItemModel(
                user_id=user.id,
                product_id=product.id,
                variant_id=variant.id if variant else None,
                quantity=quantity,
                price_at_add=price,
            )
        )


@pytest.fixture
def engine(tmp_path):
    engine = create_engine(f"sqlite:///{tmp_path / 'test.db'}", connect_args={"check_same_thread": False})
    Base.metadata.create_all(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(bind=engine, autocommit=False, autoflush=False)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def factory(db):
    return Factory(db)


@pytest.fixture
def gateway():
    return FakeGateway()


@pytest.fixture
def event_cache():
    return FakeEventCache()


@pytest.fixture
def client(session_factory, gateway, event_cache):
    app = create_app()

    def override_get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_gateway] = lambda: gateway
    app.dependency_overrides[get_event_cache] = lambda: event_cache

    with TestClient(app) as c:
        yield c


@pytest.fixture
def shop(factory):
    """Klient z adresem + vendor (15%) z produktem po 25.00."""
    customer = factory.user("Alice")
    vendor = factory.vendor()
    return SimpleNamespace(
        customer=customer,
        address=factory.address(customer),
        vendor=vendor,
        vendor_user_id=vendor.user_id,
        product=factory.product(vendor, price="25.00", quantity=10),
    )


@pytest.fixture
def place_order(db, factory):
    """Sklada zamowienie bezposrednio przez OrderAssembler."""
    intents = itertools.count(1)

    def _place(user, lines, address=None, intent_id=None, shipping_method_id="test"):
        address = address or factory.address(user)
        for product, quantity, variant in lines:
            factory.cart_line(user, product, quantity, variant)

        snapshot = CartSnapshotter(db).snapshot(user.id)
        assembler = OrderAssembler(db, shipping_methods=TEST_SHIPPING)
        return assembler.assemble(
            user_id=user.id,
            lines=snapshot.lines,
            shipping_method_id=shipping_method_id,
            shipping_address=address.snapshot(),
            billing_address=address.snapshot(),
            payment_intent_id=intent_id or f"pi_order_{next(intents)}",
        )

    return _place


def post_webhook(client, event: dict, signature: str | None = None):
    payload = json.dumps(event)
    headers = {"Content-Type": "application/json"}
    headers["Stripe-Signature"] = signature if signature is not None else sign(payload)
    return client.post("/webhooks/payments", content=payload, headers=headers)


def run_concurrently(session_factory, **actions) -> dict:
    """
    Kazda akcja w osobnym watku z wlasna sesja.
    Wynik: {nazwa: "ok" | nazwa klasy wyjatku}.
    """
    results = {}

    def worker(name, action):
        session = session_factory()
        try:
            action(session)
            results[name] = "ok"
        except Exception as e:
            results[name] = type(e).__name__
        finally:
            session.close()

    threads = [threading.Thread(target=worker, args=(name, action)) for name, action in actions.items()]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join(timeout=30)
    return results
