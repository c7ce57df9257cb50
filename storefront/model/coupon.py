# --- storefront/model/coupon.py ---

from ..extensions import db
from sqlalchemy.sql import func

PERCENTAGE = "PERCENTAGE"
FIXED = "FIXED"
FREE_DELIVERY = "FREE_DELIVERY"

COUPON_KINDS = (PERCENTAGE, FIXED, FREE_DELIVERY)


def normalize_code(code) -> str:
    return code.strip().upper() if isinstance(code, str) else ""


class Coupon(db.Model):
    __tablename__ = "coupon"
    __table_args__ = (
        db.CheckConstraint("used_count >= 0", name="ck_coupon_used_non_negative"),
        db.CheckConstraint(
            "usage_limit IS NULL OR used_count <= usage_limit",
            name="ck_coupon_used_within_limit",
        ),
    )

    id = db.Column(db.Integer, primary_key=True)
    code = db.Column(db.String(64), unique=True, nullable=False, index=True)   # stored upper-case

    # PERCENTAGE: value is a percent; FIXED: value is minor units; FREE_DELIVERY: value unused
    discount_type = db.Column(db.String(16), nullable=False, default=PERCENTAGE)
    discount_value = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    max_discount_amount = db.Column(db.Integer, nullable=True)   # PERCENTAGE only
    min_order_amount = db.Column(db.Integer, nullable=False, default=0)

    valid_from = db.Column(db.DateTime, nullable=False, server_default=func.now())
    valid_to = db.Column(db.DateTime, nullable=False)

    usage_limit = db.Column(db.Integer, nullable=True)           # NULL = unlimited
    used_count = db.Column(db.Integer, nullable=False, default=0)

    active = db.Column(db.Boolean, nullable=False, default=True, index=True)

    created_at = db.Column(db.DateTime, server_default=func.now())
    updated_at = db.Column(db.DateTime, onupdate=func.now(), server_default=func.now())

    def as_api(self):
        return {
            "id": self.id,
            "code": self.code,
            "discount_type": self.discount_type,
            "discount_value": float(self.discount_value or 0),
            "max_discount_amount": self.max_discount_amount,
            "min_order_amount": self.min_order_amount,
            "valid_from": self.valid_from.isoformat() if self.valid_from else None,
            "valid_to": self.valid_to.isoformat() if self.valid_to else None,
            "usage_limit": self.usage_limit,
            "used_count": self.used_count,
            "active": self.active,
        }
