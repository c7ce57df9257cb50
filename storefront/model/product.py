# storefront/model/product.py
from ..extensions import db
from sqlalchemy.sql import func


class Product(db.Model):
    """
    Catalog record as seen by checkout. ``stock`` is written only by the
    inventory ledger; price/name/active belong to catalog management.
    """
    __tablename__ = "product"
    __table_args__ = (
        db.CheckConstraint("stock >= 0", name="ck_product_stock_non_negative"),
        db.CheckConstraint("price >= 0", name="ck_product_price_non_negative"),
    )

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(255), nullable=False, index=True)
    price = db.Column(db.Integer, nullable=False, default=0)       # minor units
    stock = db.Column(db.Integer, nullable=False, default=0)
    active = db.Column(db.Boolean, nullable=False, default=True, index=True)

    created_at = db.Column(db.DateTime, server_default=func.now())
    updated_at = db.Column(db.DateTime, onupdate=func.now(), server_default=func.now())
