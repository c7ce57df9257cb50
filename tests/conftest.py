"""Pytest fixtures: app on a throwaway SQLite file, seeded catalog and coupons."""

from datetime import timedelta
from decimal import Decimal

import pytest
from flask_jwt_extended import create_access_token
from sqlalchemy import select

from storefront import create_app
from storefront.extensions import db
from storefront.model import Coupon, Order, Product, User
from storefront.model.coupon import FIXED, FREE_DELIVERY, PERCENTAGE
from storefront.model.user import ROLE_CUSTOMER, ROLE_MERCHANT
from storefront.services.settlement import SettlementOrchestrator
from storefront.utils.clock import utcnow

DELIVERY = 4000

ADDRESS = {
    "street": "12 MG Road",
    "city": "Pune",
    "state": "Maharashtra",
    "pincode": "411001",
}


@pytest.fixture
def app(tmp_path):
    app = create_app({
        "TESTING": True,
        "SQLALCHEMY_DATABASE_URI": f"sqlite:///{tmp_path / 'test.db'}",
        "SQLALCHEMY_ENGINE_OPTIONS": {"connect_args": {"timeout": 30}},
        "JWT_SECRET_KEY": "test-jwt-secret-key-that-is-long-enough",
        "PAYMENT_GATEWAY": "fake",
        "PAYMENT_KEY_SECRET": "test-payment-secret",
        "DEFAULT_DELIVERY_CHARGE": DELIVERY,
        "LOG_LEVEL": "DEBUG",
    })
    with app.app_context():
        yield app
        db.session.remove()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def gateway(app):
    return app.extensions["payment_gateway"]


@pytest.fixture
def customer(app) -> User:
    u = User(name="Asha", email="asha@example.com", role=ROLE_CUSTOMER)
    db.session.add(u)
    db.session.commit()
    return u


@pytest.fixture
def merchant(app) -> User:
    u = User(name="Store Owner", email="owner@example.com", role=ROLE_MERCHANT)
    db.session.add(u)
    db.session.commit()
    return u


def auth_headers(user: User) -> dict:
    return {"Authorization": f"Bearer {create_access_token(identity=str(user.id))}"}


@pytest.fixture
def customer_headers(customer):
    return auth_headers(customer)


@pytest.fixture
def merchant_headers(merchant):
    return auth_headers(merchant)


@pytest.fixture
def products(app) -> dict:
    rows = {
        "notebook": Product(name="Notebook", price=50000, stock=10, active=True),
        "pen": Product(name="Pen", price=25000, stock=5, active=True),
        "lamp": Product(name="Lamp", price=100000, stock=1, active=True),
        "retired": Product(name="Retired", price=1000, stock=50, active=False),
    }
    db.session.add_all(rows.values())
    db.session.commit()
    return {k: p.id for k, p in rows.items()}


def _coupon(code, kind, value, **kw):
    now = utcnow()
    data = dict(
        code=code,
        discount_type=kind,
        discount_value=Decimal(value),
        min_order_amount=0,
        valid_from=now - timedelta(days=1),
        valid_to=now + timedelta(days=30),
        used_count=0,
        active=True,
    )
    data.update(kw)
    return Coupon(**data)


@pytest.fixture
def coupons(app) -> list:
    now = utcnow()
    rows = [
        _coupon("SAVE15", PERCENTAGE, 15, max_discount_amount=12000),
        _coupon("FLAT200", FIXED, 20000),
        _coupon("FREESHIP", FREE_DELIVERY, 0),
        _coupon("FREESHIP2", FREE_DELIVERY, 0),
        _coupon("ONCE", FIXED, 1000, usage_limit=1),
        _coupon("USEDUP", FIXED, 1000, usage_limit=2, used_count=2),
        _coupon("EXPIRED", FIXED, 1000, valid_to=now - timedelta(hours=1)),
        _coupon("BIGSPEND", FIXED, 5000, min_order_amount=500000),
        _coupon("PAUSED", FIXED, 1000, active=False),
    ]
    db.session.add_all(rows)
    db.session.commit()
    return [c.code for c in rows]


@pytest.fixture
def settlement(app, gateway) -> SettlementOrchestrator:
    return SettlementOrchestrator(gateway=gateway, base_delivery_charge=DELIVERY)


def stock_of(product_id: int) -> int:
    return db.session.execute(select(Product.stock).where(Product.id == product_id)).scalar_one()


def used_count(code: str) -> int:
    return db.session.execute(select(Coupon.used_count).where(Coupon.code == code)).scalar_one()


def order_count() -> int:
    return db.session.query(Order).count()
