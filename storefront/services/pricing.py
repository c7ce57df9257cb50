# storefront/services/pricing.py
"""
Pricing & discount resolution.

Pure: reads product prices and coupon records handed in by the caller and
returns the totals. It never touches stock, usage counters or the session,
so the same inputs (including ``now``) always give the same answer.
"""
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Iterable, Mapping, Sequence

from ..errors import (
    CartValidationError,
    CouponCombinationError,
    CouponExpiredError,
    CouponLimitReachedError,
    CouponMinimumOrderError,
    CouponNotFoundError,
    TooManyCouponsError,
    ValidationError,
)
from ..model.coupon import FIXED, FREE_DELIVERY, PERCENTAGE, normalize_code
from ..utils.money import D, percent_of

MAX_COUPONS_PER_ORDER = 2
# per line, and the bound of a 32-bit INTEGER column
MAX_LINE_QUANTITY = 2**31 - 1


@dataclass(frozen=True, slots=True)
class PricedLine:
    product_id: int
    name: str
    unit_price: int
    quantity: int

    @property
    def line_total(self) -> int:
        return self.unit_price * self.quantity


@dataclass(frozen=True, slots=True)
class Pricing:
    subtotal: int
    discount: int
    delivery_charge: int
    total: int
    coupon_codes: tuple[str, ...] = ()
    lines: tuple[PricedLine, ...] = ()

    def as_api(self) -> dict:
        return {
            "subtotal": self.subtotal,
            "discount_amount": self.discount,
            "delivery_charge": self.delivery_charge,
            "total": self.total,
            "coupon_codes": list(self.coupon_codes),
            "items": [
                {
                    "product_id": l.product_id,
                    "name": l.name,
                    "unit_price": l.unit_price,
                    "quantity": l.quantity,
                    "line_total": l.line_total,
                }
                for l in self.lines
            ],
        }


def normalize_coupon_codes(codes: Iterable[str] | None) -> list[str]:
    """Trim, upper-case and de-duplicate, keeping the order supplied."""
    seen: list[str] = []
    for raw in codes or ():
        if not isinstance(raw, str):
            raise ValidationError("Coupon codes must be strings", coupon_codes=[str(c) for c in codes])
        code = normalize_code(raw)
        if code and code not in seen:
            seen.append(code)
    return seen


def coupon_discount(coupon, subtotal: int) -> int:
    """Discount a single PERCENTAGE/FIXED coupon grants on ``subtotal``, before clamping."""
    if coupon.discount_type == PERCENTAGE:
        amount = percent_of(subtotal, coupon.discount_value)
        if coupon.max_discount_amount is not None:
            amount = min(amount, coupon.max_discount_amount)
        return amount
    if coupon.discount_type == FIXED:
        return int(D(coupon.discount_value))
    return 0


def check_coupon_window(coupon, now: datetime) -> None:
    if coupon.valid_from and now < coupon.valid_from:
        raise CouponExpiredError(coupon.code)
    if coupon.valid_to and now > coupon.valid_to:
        raise CouponExpiredError(coupon.code)


def check_coupon_usage(coupon) -> None:
    if coupon.usage_limit is not None and (coupon.used_count or 0) >= coupon.usage_limit:
        raise CouponLimitReachedError(coupon.code)


def _check_combination(coupons: Sequence) -> None:
    free = [c.code for c in coupons if c.discount_type == FREE_DELIVERY]
    discounts = [c.code for c in coupons if c.discount_type != FREE_DELIVERY]
    if len(free) > 1:
        raise CouponCombinationError("Only one free delivery coupon allowed", free)
    if len(discounts) > 1:
        raise CouponCombinationError("Only one discount coupon allowed", discounts)


def resolve(
    lines: Iterable[tuple],
    coupon_codes: Iterable[str] | None,
    coupons: Mapping[str, object],
    base_delivery_charge: int,
    now: datetime,
) -> Pricing:
    """
    lines          -> (product, quantity) pairs; product needs id, name, price
    coupon_codes   -> codes as typed by the shopper
    coupons        -> coupon records keyed by normalised code (missing = unknown)
    Validation is fail-fast: the first failing coupon is reported by code.
    """
    codes = normalize_coupon_codes(coupon_codes)
    if len(codes) > MAX_COUPONS_PER_ORDER:
        raise TooManyCouponsError(codes)

    priced: list[PricedLine] = []
    for product, quantity in lines:
        if not isinstance(quantity, int) or quantity < 1:
            raise CartValidationError("Quantity must be a positive integer", product_id=product.id)
        if quantity > MAX_LINE_QUANTITY:
            raise CartValidationError(f"Quantity must not exceed {MAX_LINE_QUANTITY}", product_id=product.id)
        priced.append(PricedLine(product.id, product.name, int(product.price), quantity))
    if not priced:
        raise CartValidationError("Order must contain at least one item")

    subtotal = sum(l.line_total for l in priced)

    resolved = []
    for code in codes:
        coupon = coupons.get(code)
        if coupon is None or not coupon.active:
            raise CouponNotFoundError(code)
        resolved.append(coupon)

    _check_combination(resolved)

    delivery_charge = max(int(base_delivery_charge or 0), 0)
    discount = 0
    for coupon in resolved:
        check_coupon_window(coupon, now)
        if subtotal < (coupon.min_order_amount or 0):
            raise CouponMinimumOrderError(coupon.code, coupon.min_order_amount)
        check_coupon_usage(coupon)

        if coupon.discount_type == FREE_DELIVERY:
            delivery_charge = 0
        else:
            discount += coupon_discount(coupon, subtotal)

    discount = min(discount, subtotal)
    total = subtotal + delivery_charge - discount

    return Pricing(
        subtotal=subtotal,
        discount=discount,
        delivery_charge=delivery_charge,
        total=total,
        coupon_codes=tuple(codes),
        lines=tuple(priced),
    )
