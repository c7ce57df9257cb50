# storefront/cli.py
from datetime import timedelta

import click

from .extensions import db
from .model import Coupon, Product, User
from .model.coupon import FIXED, FREE_DELIVERY, PERCENTAGE
from .model.user import ROLE_MERCHANT
from .utils.clock import utcnow

# prices in paise
SAMPLE_PRODUCTS = [
    {"name": "Basmati Rice 5kg", "price": 64900, "stock": 40},
    {"name": "Toor Dal 1kg", "price": 16500, "stock": 120},
    {"name": "Sunflower Oil 1L", "price": 15900, "stock": 80},
    {"name": "Masala Chai 250g", "price": 21000, "stock": 60},
    {"name": "Ghee 500ml", "price": 32500, "stock": 25},
]


@click.command("create-merchant")
@click.option("--email", required=True)
@click.option("--name", required=True)
def create_merchant(email, name):
    email = email.strip().lower()
    if User.query.filter_by(email=email).first():
        click.echo("Email already exists"); return
    u = User(email=email, name=name, role=ROLE_MERCHANT)
    db.session.add(u); db.session.commit()
    click.echo(f"Merchant created: {u.id} {u.email}")


@click.command("seed-demo")
def seed_demo():
    """Sample catalog plus one coupon of each kind."""
    for data in SAMPLE_PRODUCTS:
        if not Product.query.filter_by(name=data["name"]).first():
            db.session.add(Product(active=True, **data))

    now = utcnow()
    coupons = [
        dict(code="SAVE15", discount_type=PERCENTAGE, discount_value=15, max_discount_amount=12000, min_order_amount=50000),
        dict(code="FLAT200", discount_type=FIXED, discount_value=20000, min_order_amount=100000, usage_limit=100),
        dict(code="FREESHIP", discount_type=FREE_DELIVERY, discount_value=0),
    ]
    for data in coupons:
        if not Coupon.query.filter_by(code=data["code"]).first():
            db.session.add(Coupon(valid_from=now, valid_to=now + timedelta(days=30), used_count=0, **data))

    db.session.commit()
    click.echo(f"Seeded {len(SAMPLE_PRODUCTS)} products and {len(coupons)} coupons")


def register_cli(app):
    app.cli.add_command(create_merchant)
    app.cli.add_command(seed_demo)
