# storefront/payment/routes.py
from flask import current_app, g

from ..errors import OrderNotFoundError, SettlementError
from ..model import Order
from ..services.settlement import build_settlement
from ..utils.api import err, json_body, ok, settlement_err
from ..utils.decorators import login_required
from . import bp

_FIELDS = ("gateway_order_id", "payment_id", "signature")


@bp.post("/verify")
@login_required
def verify_payment():
    """Shopper's browser echoes the signed confirmation it got from the gateway."""
    data = json_body()
    order_id = data.get("order_id")
    if isinstance(order_id, bool) or not isinstance(order_id, int):
        return err("Missing payment details", 400)
    if not all(isinstance(data.get(k), str) and data.get(k) for k in _FIELDS):
        return err("Missing payment details", 400)

    order = Order.query.filter_by(id=order_id, customer_id=g.user.id).first()
    if not order:
        return err("Order not found", 404)
    try:
        order = build_settlement().confirm_payment(
            order.id, data["gateway_order_id"], data["payment_id"], data["signature"]
        )
    except SettlementError as e:
        return settlement_err(e)
    return ok("Payment verified successfully", {"order": order.as_api()})


@bp.post("/callback")
def gateway_callback():
    """Server-to-server confirmation; authenticated only by the signature."""
    data = json_body()
    if not all(isinstance(data.get(k), str) and data.get(k) for k in _FIELDS):
        return err("Missing payment details", 400)
    settlement = build_settlement()
    try:
        order = settlement.find_by_gateway_order(data["gateway_order_id"])
        order = settlement.confirm_payment(
            order.id, data["gateway_order_id"], data["payment_id"], data["signature"]
        )
    except OrderNotFoundError as e:
        current_app.logger.warning("payment callback for unknown gateway order %s", data["gateway_order_id"])
        return settlement_err(e)
    except SettlementError as e:
        return settlement_err(e)
    return ok("Payment recorded", {"order_id": order.id, "payment_status": order.payment_status})
