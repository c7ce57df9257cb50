# storefront/services/coupon_service.py
from datetime import datetime, timezone

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError

from ..errors import CouponNotFoundError, ValidationError
from ..extensions import db
from ..model import Coupon
from ..model.coupon import COUPON_KINDS, FIXED, FREE_DELIVERY, PERCENTAGE, normalize_code
from ..utils.clock import utcnow
from ..utils.money import D, parse_minor
from .pricing import check_coupon_usage, check_coupon_window

# used_count belongs to the redemption tracker, code identifies past orders
UPDATABLE_FIELDS = (
    "active",
    "discount_type",
    "discount_value",
    "max_discount_amount",
    "min_order_amount",
    "valid_from",
    "valid_to",
    "usage_limit",
)


def _parse_iso8601(s):
    if not isinstance(s, str) or not s: return None
    s = s.strip()
    if s.endswith("Z"): s = s[:-1] + "+00:00"
    try:
        dt = datetime.fromisoformat(s)
    except ValueError:
        return None
    if dt.tzinfo:
        return dt.astimezone(timezone.utc).replace(tzinfo=None)  # store naive UTC
    return dt


def find_coupons(codes, session=None):
    """Coupon records keyed by code, for the codes that exist."""
    codes = [normalize_code(c) for c in codes or ()]
    if not codes:
        return {}
    rows = (session or db.session).execute(select(Coupon).where(Coupon.code.in_(codes))).scalars()
    return {c.code: c for c in rows}


def check_coupon(code, now=None) -> Coupon:
    """Stand-alone check used by the storefront before checkout; claims nothing."""
    if not isinstance(code, str) or not code.strip():
        raise ValidationError("Code is required", field="code")
    code = normalize_code(code)
    coupon = Coupon.query.filter_by(code=code).first()
    if not coupon or not coupon.active:
        raise CouponNotFoundError(code)
    check_coupon_window(coupon, now or utcnow())
    check_coupon_usage(coupon)
    return coupon


def _optional_minor(data, field):
    if data.get(field) in (None, ""):
        return None
    try:
        return parse_minor(data.get(field), field)
    except ValueError as e:
        raise ValidationError(str(e), field=field) from e


def _discount_type(data, default):
    raw = data.get("discount_type")
    if raw is None:
        return default
    dtype = raw.strip().upper() if isinstance(raw, str) else ""
    if dtype not in COUPON_KINDS:
        raise ValidationError(f"discount_type must be one of {', '.join(COUPON_KINDS)}", field="discount_type")
    return dtype


def _discount_value(data, dtype):
    if dtype == FREE_DELIVERY:
        return D(0)
    if dtype == FIXED:
        value = D(_optional_minor(data, "discount_value") or 0)
        if value <= 0:
            raise ValidationError("discount_value must be > 0", field="discount_value")
        return value
    try:
        value = D(data.get("discount_value") or 0)
        in_range = 0 < value <= 100
    except (ArithmeticError, ValueError):
        raise ValidationError("discount_value must be numeric", field="discount_value") from None
    if not in_range:
        raise ValidationError("percentage must be > 0 and ≤ 100", field="discount_value")
    return value


def _usage_limit(data):
    usage_limit = data.get("usage_limit")
    if usage_limit is not None:
        if isinstance(usage_limit, bool) or not isinstance(usage_limit, int) or usage_limit < 0:
            raise ValidationError("usage_limit must be a non-negative integer", field="usage_limit")
    return usage_limit


def _datetime(data, field):
    if data.get(field) in (None, ""):
        return None
    dt = _parse_iso8601(data.get(field))
    if not dt:
        raise ValidationError(f"Invalid datetime format for {field}", field=field)
    return dt


def create_coupon_from_payload(data: dict) -> Coupon:
    code = normalize_code(data.get("code"))
    if len(code) < 3:
        raise ValidationError("Coupon code must be at least 3 characters", field="code")

    dtype = _discount_type(data, PERCENTAGE)
    value = _discount_value(data, dtype)
    max_discount = _optional_minor(data, "max_discount_amount") if dtype == PERCENTAGE else None
    min_order = _optional_minor(data, "min_order_amount") or 0
    usage_limit = _usage_limit(data)

    valid_from = _datetime(data, "valid_from") or utcnow()
    valid_to = _datetime(data, "valid_to")
    if not valid_to:
        raise ValidationError("valid_to is required (ISO 8601)", field="valid_to")
    if valid_to < valid_from:
        raise ValidationError("valid_to must be after valid_from", field="valid_to")

    if Coupon.query.filter_by(code=code).first():
        raise ValidationError("Coupon code already exists", field="code")

    c = Coupon(
        code=code,
        discount_type=dtype,
        discount_value=value,
        max_discount_amount=max_discount,
        min_order_amount=min_order,
        valid_from=valid_from,
        valid_to=valid_to,
        usage_limit=usage_limit,
        used_count=0,
        active=bool(data.get("active", True)),
    )
    db.session.add(c)
    db.session.commit()
    return c


def _apply_update(c: Coupon, data: dict) -> None:
    unknown = sorted(k for k in data if k not in UPDATABLE_FIELDS)
    if unknown:
        raise ValidationError(f"Cannot update {', '.join(unknown)}", fields=unknown)

    if "active" in data:
        if not isinstance(data["active"], bool):
            raise ValidationError("active must be true or false", field="active")
        c.active = data["active"]

    dtype = _discount_type(data, c.discount_type)
    if "discount_type" in data or "discount_value" in data:
        current = {"discount_value": data.get("discount_value", c.discount_value)}
        c.discount_value = _discount_value(current, dtype)
        c.discount_type = dtype

    if dtype != PERCENTAGE:
        c.max_discount_amount = None
    elif "max_discount_amount" in data:
        c.max_discount_amount = _optional_minor(data, "max_discount_amount")
    if "min_order_amount" in data:
        c.min_order_amount = _optional_minor(data, "min_order_amount") or 0

    if "usage_limit" in data:
        limit = _usage_limit(data)
        if limit is not None and limit < (c.used_count or 0):
            raise ValidationError("usage_limit cannot be lower than used_count",
                                  field="usage_limit", used_count=c.used_count)
        c.usage_limit = limit

    if "valid_from" in data:
        c.valid_from = _datetime(data, "valid_from") or c.valid_from
    if "valid_to" in data:
        valid_to = _datetime(data, "valid_to")
        if not valid_to:
            raise ValidationError("valid_to is required (ISO 8601)", field="valid_to")
        c.valid_to = valid_to
    if c.valid_to < c.valid_from:
        raise ValidationError("valid_to must be after valid_from", field="valid_to")


def update_coupon_from_payload(c: Coupon, data: dict) -> Coupon:
    """
    Partial update of a coupon's terms. ``used_count`` is never written here,
    so claims racing with the update keep their counts.
    """
    try:
        _apply_update(c, data)
        db.session.commit()
    except ValidationError:
        db.session.rollback()
        raise
    except IntegrityError:
        # a claim landed between the check above and the write
        db.session.rollback()
        raise ValidationError("usage_limit cannot be lower than used_count", field="usage_limit") from None
    return c


def deactivate_coupon(c: Coupon) -> Coupon:
    """Soft delete: the row stays so past orders keep resolving their codes."""
    c.active = False
    db.session.commit()
    return c
