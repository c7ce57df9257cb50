# storefront/order/routes.py
from flask import current_app, g, request

from ..errors import SettlementError
from ..gateway import get_gateway
from ..model import Order
from ..model.order import ONLINE
from ..services.settlement import build_settlement
from ..utils.api import err, json_body, ok, paginate_args, settlement_err
from ..utils.decorators import login_required
from . import bp


def _coupon_codes(payload):
    # legacy clients send a single "coupon_code"
    codes = payload.get("coupon_codes")
    if codes is None and payload.get("coupon_code"):
        codes = [payload.get("coupon_code")]
    return codes


@bp.post("")
@login_required
def place_order():
    payload = json_body()
    try:
        order = build_settlement().place_order(
            customer_id=g.user.id,
            items=payload.get("items"),
            delivery_address=payload.get("delivery_address"),
            payment_method=payload.get("payment_method"),
            coupon_codes=_coupon_codes(payload),
            customer_name=g.user.name,
        )
    except SettlementError as e:
        if e.http_status >= 500:
            current_app.logger.error("place order failed for customer %s: %s", g.user.id, e.message)
        return settlement_err(e)

    data = {"order": order.as_api()}
    if order.payment_method == ONLINE:
        data["payment"] = {
            "gateway_order_id": order.gateway_order_id,
            "amount": order.total,
            "currency": order.currency,
            "key_id": get_gateway().key_id,
        }
    resp = ok("Order placed successfully", data, status=201)
    resp.headers["X-Order-Id"] = str(order.id)
    return resp


@bp.post("/quote")
@login_required
def quote():
    payload = json_body()
    try:
        pricing = build_settlement().quote(payload.get("items"), _coupon_codes(payload))
    except SettlementError as e:
        return settlement_err(e)
    return ok("quote", {"pricing": pricing.as_api()})


@bp.get("")
@login_required
def list_orders():
    """
    Query params:
      - page, per_page
    """
    page, per = paginate_args(request.args, default_per_page=50)
    q = Order.query.filter(Order.customer_id == g.user.id).order_by(Order.created_at.desc(), Order.id.desc())
    paged = q.paginate(page=page, per_page=per, error_out=False)
    return ok("orders", {
        "page": page,
        "per_page": per,
        "total": paged.total,
        "items": [o.as_api() for o in paged.items],
    })


@bp.get("/<int:order_id>")
@login_required
def get_order(order_id: int):
    o = Order.query.filter_by(id=order_id, customer_id=g.user.id).first()
    if not o: return err("Order not found", 404)
    return ok("order", {"order": o.as_api()})
