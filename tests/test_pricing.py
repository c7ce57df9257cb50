from datetime import datetime, timedelta
from decimal import Decimal
from types import SimpleNamespace

import pytest

from storefront.errors import (
    CartValidationError,
    CouponCombinationError,
    CouponExpiredError,
    CouponLimitReachedError,
    CouponMinimumOrderError,
    CouponNotFoundError,
    TooManyCouponsError,
    ValidationError,
)
from storefront.model.coupon import FIXED, FREE_DELIVERY, PERCENTAGE
from storefront.services.pricing import normalize_coupon_codes, resolve

NOW = datetime(2025, 6, 1, 12, 0, 0)


def product(pid=1, price=1000, name="Item"):
    return SimpleNamespace(id=pid, name=name, price=price)


def coupon(code, kind, value, *, cap=None, min_order=0, limit=None, used=0, active=True,
           valid_from=NOW - timedelta(days=1), valid_to=NOW + timedelta(days=1)):
    return SimpleNamespace(
        code=code, discount_type=kind, discount_value=Decimal(value),
        max_discount_amount=cap, min_order_amount=min_order,
        usage_limit=limit, used_count=used, active=active,
        valid_from=valid_from, valid_to=valid_to,
    )


def book(*coupons):
    return {c.code: c for c in coupons}


def test_percentage_capped_plus_delivery():
    coupons = book(coupon("SAVE15", PERCENTAGE, 15, cap=120))
    p = resolve([(product(price=1000), 1)], ["SAVE15"], coupons, 40, NOW)
    assert (p.subtotal, p.discount, p.delivery_charge, p.total) == (1000, 120, 40, 920)


def test_fixed_with_free_delivery():
    coupons = book(coupon("FLAT200", FIXED, 200), coupon("FREESHIP", FREE_DELIVERY, 0))
    p = resolve([(product(price=1000), 1)], ["FLAT200", "FREESHIP"], coupons, 40, NOW)
    assert (p.discount, p.delivery_charge, p.total) == (200, 0, 800)
    assert p.coupon_codes == ("FLAT200", "FREESHIP")


def test_no_coupons():
    p = resolve([(product(1, 250), 2), (product(2, 100), 3)], None, {}, 40, NOW)
    assert (p.subtotal, p.discount, p.total) == (800, 0, 840)
    assert [l.line_total for l in p.lines] == [500, 300]


def test_more_than_two_coupons_rejected():
    with pytest.raises(TooManyCouponsError):
        resolve([(product(), 1)], ["A", "B", "C"], {}, 0, NOW)


def test_codes_are_normalised_and_deduplicated():
    assert normalize_coupon_codes([" save15 ", "SAVE15", "", "flat200"]) == ["SAVE15", "FLAT200"]
    coupons = book(coupon("SAVE15", PERCENTAGE, 10))
    p = resolve([(product(price=1000), 1)], ["save15", "Save15 "], coupons, 0, NOW)
    assert p.coupon_codes == ("SAVE15",)
    assert p.discount == 100


@pytest.mark.parametrize("codes, message", [
    (["FLAT200", "SAVE15"], "Only one discount coupon allowed"),
    (["FREESHIP", "FREESHIP2"], "Only one free delivery coupon allowed"),
])
def test_combination_rules(codes, message):
    coupons = book(
        coupon("SAVE15", PERCENTAGE, 15),
        coupon("FLAT200", FIXED, 200),
        coupon("FREESHIP", FREE_DELIVERY, 0),
        coupon("FREESHIP2", FREE_DELIVERY, 0),
    )
    with pytest.raises(CouponCombinationError) as exc:
        resolve([(product(), 1)], codes, coupons, 40, NOW)
    assert str(exc.value) == message


def test_unknown_and_inactive_coupons():
    with pytest.raises(CouponNotFoundError) as exc:
        resolve([(product(), 1)], ["NOPE"], {}, 0, NOW)
    assert exc.value.coupon_code == "NOPE"

    coupons = book(coupon("OFF", FIXED, 10, active=False))
    with pytest.raises(CouponNotFoundError):
        resolve([(product(), 1)], ["OFF"], coupons, 0, NOW)


def test_first_failing_coupon_is_reported():
    coupons = book(
        coupon("OLD", FIXED, 10, valid_to=NOW - timedelta(minutes=1)),
        coupon("FREESHIP", FREE_DELIVERY, 0, limit=1, used=1),
    )
    with pytest.raises(CouponExpiredError) as exc:
        resolve([(product(), 1)], ["OLD", "FREESHIP"], coupons, 40, NOW)
    assert exc.value.coupon_code == "OLD"


def test_not_yet_valid_counts_as_expired():
    coupons = book(coupon("SOON", FIXED, 10, valid_from=NOW + timedelta(hours=1)))
    with pytest.raises(CouponExpiredError):
        resolve([(product(), 1)], ["SOON"], coupons, 0, NOW)


def test_minimum_order():
    coupons = book(coupon("BIG", FIXED, 100, min_order=5000))
    with pytest.raises(CouponMinimumOrderError) as exc:
        resolve([(product(price=4999), 1)], ["BIG"], coupons, 0, NOW)
    assert exc.value.data["min_order_amount"] == 5000

    p = resolve([(product(price=5000), 1)], ["BIG"], coupons, 0, NOW)
    assert p.discount == 100


def test_usage_limit():
    coupons = book(coupon("DONE", FIXED, 100, limit=3, used=3))
    with pytest.raises(CouponLimitReachedError):
        resolve([(product(), 1)], ["DONE"], coupons, 0, NOW)

    coupons = book(coupon("ZERO", FIXED, 100, limit=0))
    with pytest.raises(CouponLimitReachedError):
        resolve([(product(), 1)], ["ZERO"], coupons, 0, NOW)


def test_discount_clamped_to_subtotal():
    coupons = book(coupon("HUGE", FIXED, 5000))
    p = resolve([(product(price=300), 1)], ["HUGE"], coupons, 40, NOW)
    assert (p.discount, p.total) == (300, 40)


def test_percentage_rounds_down():
    coupons = book(coupon("P", PERCENTAGE, "12.5"))
    p = resolve([(product(price=999), 1)], ["P"], coupons, 0, NOW)
    # 12.5% of 999 = 124.875
    assert p.discount == 124
    assert p.total == 875


def test_percentage_without_cap():
    coupons = book(coupon("HALF", PERCENTAGE, 50))
    p = resolve([(product(price=10000), 1)], ["HALF"], coupons, 0, NOW)
    assert p.discount == 5000


def test_resolve_is_deterministic():
    coupons = book(coupon("SAVE15", PERCENTAGE, 15, cap=120), coupon("FREESHIP", FREE_DELIVERY, 0))
    lines = [(product(1, 700), 1), (product(2, 150), 2)]
    first = resolve(lines, ["SAVE15", "FREESHIP"], coupons, 40, NOW)
    second = resolve(lines, ["SAVE15", "FREESHIP"], coupons, 40, NOW)
    assert first == second


@pytest.mark.parametrize("qty", [0, -1, 1.5])
def test_bad_quantity(qty):
    with pytest.raises(CartValidationError):
        resolve([(product(), qty)], None, {}, 0, NOW)


def test_empty_cart():
    with pytest.raises(CartValidationError):
        resolve([], None, {}, 0, NOW)


def test_non_string_codes_rejected():
    with pytest.raises(ValidationError):
        resolve([(product(), 1)], [5], {}, 0, NOW)


def test_quantity_upper_bound():
    with pytest.raises(CartValidationError):
        resolve([(product(), 2**31)], None, {}, 0, NOW)
