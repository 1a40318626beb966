import os
import uuid
from decimal import Decimal

import pytest

# konfiguracja testowa PRZED importem aplikacji
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ["CELERY_TASK_ALWAYS_EAGER"] = "1"

import fakeredis
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.pool import StaticPool

from storefront.data.database import Base, make_session_factory
from storefront.data.models import (
    ProductMediaModel,
    ProductModel,
    UserModel,
    VariantModel,
)
from storefront.main import create_app
from storefront.repos.cart_store import CartOwner
from storefront.repos.guest_store import GuestSessionStore
from storefront.services.cart_service import CartService
from storefront.services.lock_service import LockService


@pytest.fixture(scope='function')
def engine():
    """Fresh in-memory database per test."""
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture(scope='function')
def session_factory(engine):
    return make_session_factory(engine)


@pytest.fixture(scope='function')
def db(session_factory):
    session = session_factory()
    yield session
    session.rollback()
    session.close()


@pytest.fixture(scope='function')
def redis_client():
    client = fakeredis.FakeRedis(decode_responses=True)
    yield client
    client.flushall()


@pytest.fixture(scope='function')
def guest_store(redis_client):
    return GuestSessionStore(redis_client)


@pytest.fixture(scope='function')
def lock_service(redis_client):
    return LockService(redis_client)


@pytest.fixture(scope='function')
def cart_service(db, guest_store):
    return CartService(db, guest_store)


@pytest.fixture(scope='function')
def guest(guest_store):
    """Live guest session as a cart owner."""
    session = guest_store.create_session()
    return CartOwner(session_id=session.session_id)


@pytest.fixture(scope='function')
def user(db):
    suffix = str(uuid.uuid4())[:8]
    user = UserModel(name='User One', email=f'user1-{suffix}@test.com')
    db.add(user)
    db.commit()
    return user


@pytest.fixture(scope='function')
def member(user):
    return CartOwner(user_id=user.id)


@pytest.fixture(scope='function')
def make_variant(db):
    """Factory: a product with one variant and a primary image."""

    def _make(
        stock=5,
        reserved=0,
        base_price="100.00",
        additional_price="0.00",
        size="M",
        color="Navy",
        active=True,
        product_active=True,
        product=None,
        name=None,
    ):
        suffix = str(uuid.uuid4())[:8]
        if product is None:
            product = ProductModel(
                name=name or f'Cotton Tee {suffix}',
                slug=f'cotton-tee-{suffix}',
                base_price=Decimal(base_price),
                is_active=product_active,
            )
            db.add(product)
            db.flush()
            db.add(
                ProductMediaModel(
                    product_id=product.id,
                    media_url=f'https://cdn.test/{suffix}.jpg',
                    is_primary=True,
                )
            )

        variant = VariantModel(
            product_id=product.id,
            sku=f'SKU-{suffix}',
            size=size,
            color=color,
            additional_price=Decimal(additional_price),
            stock_quantity=stock,
            reserved_quantity=reserved,
            is_active=active,
        )
        db.add(variant)
        db.commit()
        return variant

    return _make


@pytest.fixture(scope='function')
def app(session_factory, redis_client):
    return create_app(session_factory=session_factory, redis_client=redis_client, create_tables=False)


@pytest.fixture(scope='function')
def client(app):
    with TestClient(app) as client:
        yield client


@pytest.fixture(scope='function')
def shipping_address():
    return {
        "full_name": "John Doe",
        "phone": "+91 9876543210",
        "address_line_1": "123 Main Street",
        "city": "Mumbai",
        "state": "Maharashtra",
        "postal_code": "400001",
        "country": "India",
    }


@pytest.fixture(scope='function')
def member_headers(user):
    return {"X-User-Id": str(user.id)}
