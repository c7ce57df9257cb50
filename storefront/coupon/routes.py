# storefront/coupon/routes.py
from ..errors import SettlementError
from ..services.coupon_service import check_coupon
from ..utils.api import json_body, ok, settlement_err
from . import bp


@bp.post("/validate")
def validate_coupon():
    data = json_body()
    try:
        c = check_coupon(data.get("code"))
    except SettlementError as e:
        return settlement_err(e)
    return ok("Coupon is valid", {"coupon": {
        "code": c.code,
        "discount_type": c.discount_type,
        "discount_value": float(c.discount_value or 0),
        "max_discount_amount": c.max_discount_amount,
        "min_order_amount": c.min_order_amount,
        "valid_to": c.valid_to.isoformat() if c.valid_to else None,
    }})
