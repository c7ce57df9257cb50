import hashlib
import hmac

import pytest

from storefront.errors import (
    OrderNotFoundError,
    PaymentMethodError,
    SignatureMismatchError,
    ValidationError,
)
from storefront.extensions import db
from storefront.model import Notification, Order
from storefront.model.order import PAYMENT_FAILED, PAYMENT_PAID, PAYMENT_PENDING

from .conftest import ADDRESS


@pytest.fixture
def online_order(settlement, customer, products):
    return settlement.place_order(
        customer.id, [{"product_id": products["notebook"], "quantity": 1}], ADDRESS, "ONLINE",
    )


def reload(order) -> Order:
    db.session.expire_all()
    return db.session.get(Order, order.id)


def test_signature_is_hmac_sha256_of_order_and_payment(gateway):
    expected = hmac.new(b"test-payment-secret", b"order_abc|pay_123", hashlib.sha256).hexdigest()
    assert gateway.sign("order_abc", "pay_123") == expected
    assert gateway.verify_signature("order_abc", "pay_123", expected)
    assert not gateway.verify_signature("order_abc", "pay_124", expected)
    assert not gateway.verify_signature("order_abc", "pay_123", "")


def test_valid_signature_marks_paid(settlement, gateway, customer, online_order):
    gid = online_order.gateway_order_id
    order = settlement.confirm_payment(online_order.id, gid, "pay_1", gateway.sign(gid, "pay_1"))

    assert order.payment_status == PAYMENT_PAID
    assert order.gateway_payment_id == "pay_1"
    assert Notification.query.filter_by(user_id=customer.id, title="Payment received").count() == 1


def test_confirmation_replay_is_a_no_op(settlement, gateway, customer, online_order):
    gid = online_order.gateway_order_id
    settlement.confirm_payment(online_order.id, gid, "pay_1", gateway.sign(gid, "pay_1"))

    again = settlement.confirm_payment(online_order.id, gid, "pay_2", "garbage")
    assert again.payment_status == PAYMENT_PAID
    assert again.gateway_payment_id == "pay_1"
    assert Notification.query.filter_by(user_id=customer.id).count() == 1


def test_bad_signature_marks_failed(settlement, gateway, online_order):
    gid = online_order.gateway_order_id
    with pytest.raises(SignatureMismatchError):
        settlement.confirm_payment(online_order.id, gid, "pay_1", "0" * 64)

    order = reload(online_order)
    assert order.payment_status == PAYMENT_FAILED
    assert order.gateway_payment_id is None

    # FAILED is terminal too
    later = settlement.confirm_payment(order.id, gid, "pay_1", gateway.sign(gid, "pay_1"))
    assert later.payment_status == PAYMENT_FAILED


def test_gateway_order_mismatch_changes_nothing(settlement, gateway, online_order):
    with pytest.raises(ValidationError):
        settlement.confirm_payment(online_order.id, "order_other", "pay_1", gateway.sign("order_other", "pay_1"))
    assert reload(online_order).payment_status == PAYMENT_PENDING


def test_cod_orders_need_no_confirmation(settlement, gateway, customer, products):
    order = settlement.place_order(customer.id, [{"product_id": products["pen"], "quantity": 1}], ADDRESS, "COD")
    with pytest.raises(PaymentMethodError):
        settlement.confirm_payment(order.id, "order_x", "pay_1", gateway.sign("order_x", "pay_1"))


def test_unknown_order(settlement):
    with pytest.raises(OrderNotFoundError):
        settlement.confirm_payment(424242, "order_x", "pay_1", "sig")
    with pytest.raises(OrderNotFoundError):
        settlement.find_by_gateway_order("order_missing")


def test_find_by_gateway_order(settlement, online_order):
    assert settlement.find_by_gateway_order(online_order.gateway_order_id).id == online_order.id
