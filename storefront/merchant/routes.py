# storefront/merchant/routes.py
from flask import request

from ..errors import SettlementError
from ..extensions import db
from ..model import Coupon, Order
from ..model.user import ROLE_MERCHANT
from ..services.coupon_service import create_coupon_from_payload, deactivate_coupon, update_coupon_from_payload
from ..services.settlement import build_settlement
from ..utils.api import err, json_body, ok, paginate_args, settlement_err
from ..utils.decorators import role_required
from . import bp

merchant_only = role_required(ROLE_MERCHANT, message="Merchant access only")


# ------------------------ ORDERS ------------------------

@bp.get("/orders")
@merchant_only
def list_orders():
    """
    Query params:
      - page, per_page
      - status=ORDERED|CONFIRMED|PROCESSING|SHIPPED|DELIVERED|CANCELLED
      - payment_status=PENDING|PAID|FAILED|NOT_REQUIRED
    """
    q = Order.query
    status = request.args.get("status")
    payment_status = request.args.get("payment_status")
    if status: q = q.filter(Order.status == status.upper())
    if payment_status: q = q.filter(Order.payment_status == payment_status.upper())

    page, per = paginate_args(request.args)
    paged = q.order_by(Order.created_at.desc(), Order.id.desc()).paginate(page=page, per_page=per, error_out=False)
    return ok("orders", {
        "page": page,
        "per_page": per,
        "total": paged.total,
        "items": [o.as_api() for o in paged.items],
    })


@bp.get("/orders/<int:order_id>")
@merchant_only
def get_order(order_id: int):
    try:
        o = build_settlement().get_order(order_id)
    except SettlementError as e:
        return settlement_err(e)
    return ok("order", {"order": o.as_api()})


@bp.put("/orders/<int:order_id>/status")
@merchant_only
def update_order_status(order_id: int):
    data = json_body()
    if not data.get("status"):
        return err("status is required", 400)
    try:
        o = build_settlement().transition_fulfillment(order_id, data["status"])
    except SettlementError as e:
        return settlement_err(e)
    return ok("Order status updated", {"order": o.as_api()})


# ------------------------ COUPONS ------------------------

@bp.post("/coupons")
@merchant_only
def create_coupon():
    try:
        c = create_coupon_from_payload(json_body())
    except SettlementError as e:
        return settlement_err(e)
    return ok("Coupon created successfully", {"coupon": c.as_api()}, status=201)


@bp.get("/coupons")
@merchant_only
def list_coupons():
    q = Coupon.query
    active = request.args.get("active")
    if active is not None:
        q = q.filter(Coupon.active == (active.lower() == "true"))
    items = q.order_by(Coupon.id.desc()).all()
    return ok("ok", {"items": [c.as_api() for c in items]})


@bp.patch("/coupons/<int:coupon_id>")
@merchant_only
def update_coupon(coupon_id: int):
    """Toggle ``active`` or change terms; the usage counter is left alone."""
    c = db.session.get(Coupon, coupon_id)
    if not c: return err("Coupon not found", 404)
    try:
        c = update_coupon_from_payload(c, json_body())
    except SettlementError as e:
        return settlement_err(e)
    return ok("Coupon updated successfully", {"coupon": c.as_api()})


@bp.delete("/coupons/<int:coupon_id>")
@merchant_only
def delete_coupon(coupon_id: int):
    c = db.session.get(Coupon, coupon_id)
    if not c: return err("Coupon not found", 404)
    c = deactivate_coupon(c)
    return ok("Coupon deactivated", {"coupon": c.as_api()})
