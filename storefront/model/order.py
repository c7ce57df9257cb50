# storefront/model/order.py
from sqlalchemy import event

from ..extensions import db
from ..utils.clock import utcnow

# fulfillment status (merchant driven)
ORDERED = "ORDERED"
CONFIRMED = "CONFIRMED"
PROCESSING = "PROCESSING"
SHIPPED = "SHIPPED"
DELIVERED = "DELIVERED"
CANCELLED = "CANCELLED"

ORDER_STATUSES = (ORDERED, CONFIRMED, PROCESSING, SHIPPED, DELIVERED, CANCELLED)
TERMINAL_ORDER_STATUSES = (DELIVERED, CANCELLED)

# payment
COD = "COD"
ONLINE = "ONLINE"
PAYMENT_METHODS = (COD, ONLINE)

PAYMENT_PENDING = "PENDING"
PAYMENT_PAID = "PAID"
PAYMENT_FAILED = "FAILED"
PAYMENT_NOT_REQUIRED = "NOT_REQUIRED"   # COD: settled on placement, no verification
TERMINAL_PAYMENT_STATUSES = (PAYMENT_PAID, PAYMENT_FAILED)


class ImmutableRecordError(RuntimeError):
    pass


class Order(db.Model):
    __tablename__ = "orders"

    id = db.Column(db.Integer, primary_key=True)
    code = db.Column(db.String(32), unique=True, index=True, nullable=False)  # e.g. "ORD-20251022-9f2c1a"
    customer_id = db.Column(db.Integer, nullable=False, index=True)

    # money snapshot, minor units
    subtotal = db.Column(db.Integer, nullable=False)
    discount_amount = db.Column(db.Integer, nullable=False, default=0)
    delivery_charge = db.Column(db.Integer, nullable=False, default=0)
    total = db.Column(db.Integer, nullable=False)
    currency = db.Column(db.String(3), nullable=False, default="INR")

    coupon_codes = db.Column(db.JSON, nullable=False, default=list)
    delivery_address = db.Column(db.JSON, nullable=False)

    payment_method = db.Column(db.String(10), nullable=False)
    payment_status = db.Column(db.String(16), nullable=False, index=True)
    gateway_order_id = db.Column(db.String(64), unique=True, index=True, nullable=True)
    gateway_payment_id = db.Column(db.String(64), nullable=True)

    status = db.Column(db.String(20), nullable=False, default=ORDERED, index=True)

    created_at = db.Column(db.DateTime, default=utcnow, index=True)
    updated_at = db.Column(db.DateTime, default=utcnow, onupdate=utcnow)

    items = db.relationship(
        "OrderItem",
        backref="order",
        cascade="save-update, merge",
        lazy="selectin",
        order_by="OrderItem.id.asc()",
    )
    status_history = db.relationship(
        "OrderStatusHistory",
        backref="order",
        cascade="save-update, merge",
        lazy="selectin",
        order_by="OrderStatusHistory.id.asc()",
    )

    def as_api(self):
        return {
            "id": self.id,
            "code": self.code,
            "customer_id": self.customer_id,
            "status": self.status,
            "items": [i.as_api() for i in self.items],
            "money": {
                "currency": self.currency,
                "subtotal": self.subtotal,
                "discount_amount": self.discount_amount,
                "delivery_charge": self.delivery_charge,
                "total": self.total,
            },
            "coupon_codes": list(self.coupon_codes or []),
            "delivery_address": self.delivery_address,
            "payment": {
                "method": self.payment_method,
                "status": self.payment_status,
                "gateway_order_id": self.gateway_order_id,
                "payment_id": self.gateway_payment_id,
            },
            "status_history": [h.as_api() for h in self.status_history],
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }


class OrderItem(db.Model):
    """Price/name captured at order time; never re-joined to the live catalog."""
    __tablename__ = "order_items"

    id = db.Column(db.Integer, primary_key=True)
    order_id = db.Column(db.Integer, db.ForeignKey("orders.id"), nullable=False, index=True)

    product_id = db.Column(db.Integer, nullable=False, index=True)
    name = db.Column(db.String(255), nullable=False)
    unit_price = db.Column(db.Integer, nullable=False)
    quantity = db.Column(db.Integer, nullable=False)
    line_total = db.Column(db.Integer, nullable=False)

    def as_api(self):
        return {
            "product_id": self.product_id,
            "name": self.name,
            "unit_price": self.unit_price,
            "quantity": self.quantity,
            "line_total": self.line_total,
        }


class OrderStatusHistory(db.Model):
    """Append-only audit log of fulfillment status changes."""
    __tablename__ = "order_status_history"

    id = db.Column(db.Integer, primary_key=True)
    order_id = db.Column(db.Integer, db.ForeignKey("orders.id"), nullable=False, index=True)
    status = db.Column(db.String(20), nullable=False)
    created_at = db.Column(db.DateTime, default=utcnow, nullable=False)

    def as_api(self):
        return {
            "status": self.status,
            "updated_at": self.created_at.isoformat() if self.created_at else None,
        }


@event.listens_for(OrderItem, "before_update")
def _order_item_is_immutable(mapper, connection, target):
    raise ImmutableRecordError("order line items are price snapshots and cannot change")


@event.listens_for(OrderStatusHistory, "before_update")
def _history_no_update(mapper, connection, target):
    raise ImmutableRecordError("status history is append-only")


@event.listens_for(OrderStatusHistory, "before_delete")
def _history_no_delete(mapper, connection, target):
    raise ImmutableRecordError("status history is append-only")
