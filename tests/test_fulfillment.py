import pytest

from storefront.errors import InvalidTransitionError, ValidationError
from storefront.extensions import db
from storefront.model import Notification, OrderStatusHistory
from storefront.model.order import CANCELLED, DELIVERED, ImmutableRecordError

from .conftest import ADDRESS, stock_of


@pytest.fixture
def order(settlement, customer, products):
    return settlement.place_order(customer.id, [{"product_id": products["pen"], "quantity": 2}], ADDRESS, "COD")


def test_transitions_append_history(settlement, customer, order):
    for status in ("CONFIRMED", "processing", "SHIPPED", "DELIVERED"):
        updated = settlement.transition_fulfillment(order.id, status)

    assert updated.status == DELIVERED
    assert [h.status for h in updated.status_history] == ["ORDERED", "CONFIRMED", "PROCESSING", "SHIPPED", "DELIVERED"]
    assert Notification.query.filter_by(user_id=customer.id, title="Order update").count() == 4


def test_any_non_terminal_move_is_allowed(settlement, order):
    settlement.transition_fulfillment(order.id, "SHIPPED")
    back = settlement.transition_fulfillment(order.id, "CONFIRMED")
    assert back.status == "CONFIRMED"


@pytest.mark.parametrize("terminal", [DELIVERED, CANCELLED])
def test_terminal_states_are_final(settlement, order, terminal):
    settlement.transition_fulfillment(order.id, terminal)
    with pytest.raises(InvalidTransitionError) as exc:
        settlement.transition_fulfillment(order.id, "PROCESSING")
    assert exc.value.data == {"current_status": terminal, "requested_status": "PROCESSING"}

    fresh = settlement.get_order(order.id)
    assert fresh.status == terminal
    assert len(fresh.status_history) == 2


def test_cancel_does_not_restock(settlement, products, order):
    settlement.transition_fulfillment(order.id, CANCELLED)
    assert stock_of(products["pen"]) == 3


def test_unknown_status(settlement, order):
    with pytest.raises(ValidationError):
        settlement.transition_fulfillment(order.id, "LOST")


def test_history_is_append_only(settlement, order):
    entry = OrderStatusHistory.query.filter_by(order_id=order.id).first()

    entry.status = "DELIVERED"
    with pytest.raises(ImmutableRecordError):
        db.session.commit()
    db.session.rollback()

    db.session.delete(db.session.get(OrderStatusHistory, entry.id))
    with pytest.raises(ImmutableRecordError):
        db.session.commit()
    db.session.rollback()

    assert [h.status for h in settlement.get_order(order.id).status_history] == ["ORDERED"]


def test_order_items_are_snapshots(settlement, order):
    line = order.items[0]
    line.unit_price = 1
    with pytest.raises(ImmutableRecordError):
        db.session.commit()
    db.session.rollback()
    db.session.expire_all()
    assert settlement.get_order(order.id).items[0].unit_price == 25000
