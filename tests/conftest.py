import os

os.environ["DATABASE_URL"] = "sqlite+pysqlite:///:memory:"
os.environ["CELERY_TASK_ALWAYS_EAGER"] = "1"
os.environ.setdefault("LOG_LEVEL", "WARNING")

from decimal import Decimal

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

import storefront.data.models  # noqa: F401
from storefront.api import create_app
from storefront.api.deps import get_lock_service
from storefront.data.database import Base, get_db
from storefront.data.models.product import ProductModel
from storefront.repos.cart_repo import CartRepo
from storefront.repos.order_repo import OrderRepo
from storefront.repos.product_repo import ProductRepo
from storefront.services.cart_service import CartService
from storefront.services.order_service import OrderService
from storefront.services.order_state import OrderStateMachine
from storefront.services.stock_ledger import StockLedger


ADDRESS = {
    "first_name": "Ada",
    "last_name": "Lovelace",
    "address": "12 Analytical St",
    "city": "London",
    "state": "Greater London",
    "zip_code": "N1 9GU",
    "country": "UK",
}


class FakeLockService:
    """In-memory stand-in for the Redis merge lock."""

    def __init__(self):
        self.held = set()

    def acquire_merge_lock(self, guest_cart_id, user_id, ttl):
        if guest_cart_id in self.held:
            return False
        self.held.add(guest_cart_id)
        return True

    def release_merge_lock(self, guest_cart_id, user_id):
        self.held.discard(guest_cart_id)
        return True


class RecordingNotifier:
    def __init__(self):
        self.sent = []

    def send_order_notification(self, user_id, order_number, event):
        self.sent.append((user_id, order_number, event))


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite+pysqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    yield engine
    Base.metadata.drop_all(engine)
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def make_product(db):
    def _make(title="Desk Lamp", price="10.00", discount="0", stock=10, **extra):
        product = ProductModel(
            title=title,
            description=extra.pop("description", f"{title} description"),
            brand=extra.pop("brand", "Acme"),
            thumbnail=extra.pop("thumbnail", f"https://cdn.example.com/{title}.png"),
            category=extra.pop("category", "home"),
            price=Decimal(price),
            discount_percentage=Decimal(discount),
            stock=stock,
            **extra,
        )
        return ProductRepo(db).create_product(product)

    return _make


@pytest.fixture
def lock_service():
    return FakeLockService()


@pytest.fixture
def notifier():
    return RecordingNotifier()


@pytest.fixture
def ledger(db):
    return StockLedger(ProductRepo(db))


@pytest.fixture
def cart_service(db, lock_service):
    return CartService(CartRepo(db), ProductRepo(db), lock_service)


@pytest.fixture
def order_service(db, ledger, notifier):
    return OrderService(OrderRepo(db), CartRepo(db), ProductRepo(db), ledger, notifier)


@pytest.fixture
def state_machine(db, ledger, notifier):
    return OrderStateMachine(OrderRepo(db), ledger, notifier)


@pytest.fixture
def client(session_factory, lock_service):
    app = create_app()

    def override_get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_lock_service] = lambda: lock_service

    with TestClient(app) as c:
        yield c


@pytest.fixture
def address():
    return dict(ADDRESS)
