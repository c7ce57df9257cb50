# storefront/services/settlement.py
"""
Order settlement: cart -> priced, stock-committed, payment-reconciled order.

place_order runs as a saga. Coupon claims come before stock reservations,
then the optional payment intent, then the single write of the Order row.
Any failure unwinds what was already done, newest first, so a failed
checkout leaves stock and coupon counters exactly as it found them.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable, List, Optional
from uuid import uuid4

from sqlalchemy import select, update
from sqlalchemy.exc import SQLAlchemyError

from ..errors import (
    AddressValidationError,
    CartValidationError,
    InsufficientStockError,
    InvalidTransitionError,
    OrderNotFoundError,
    OutOfStockError,
    PaymentGatewayUnavailableError,
    PaymentMethodError,
    PersistenceError,
    ProductNotFoundError,
    SettlementError,
    SignatureMismatchError,
    ValidationError,
)
from ..extensions import db
from ..gateway import PaymentGateway, PaymentIntent
from ..model import Order, OrderItem, OrderStatusHistory, Product
from ..model.order import (
    ONLINE,
    ORDER_STATUSES,
    ORDERED,
    PAYMENT_FAILED,
    PAYMENT_METHODS,
    PAYMENT_NOT_REQUIRED,
    PAYMENT_PAID,
    PAYMENT_PENDING,
    TERMINAL_ORDER_STATUSES,
    TERMINAL_PAYMENT_STATUSES,
)
from ..utils.clock import utcnow
from ..utils.money import format_money
from .coupon_service import find_coupons
from .coupon_tracker import Claim, CouponTracker
from .inventory import InventoryLedger, Reservation
from .notifier import MerchantNotifier
from .pricing import MAX_LINE_QUANTITY, Pricing, normalize_coupon_codes, resolve
from .saga import Saga, Step

logger = logging.getLogger(__name__)

# (field, minimum length, message) as the storefront form enforces them
_ADDRESS_RULES = (
    ("street", 5, "Street address is required"),
    ("city", 2, "City is required"),
    ("state", 2, "State is required"),
    ("pincode", 6, "Pincode must be 6 digits"),
)

_MAX_PRODUCT_ID = 2**31 - 1


def _gen_order_code(now: datetime) -> str:
    return f"ORD-{now:%Y%m%d}-{uuid4().hex[:8]}"


def normalize_items(items) -> list[tuple[int, int]]:
    """[{product_id, quantity}] -> [(product_id, quantity)], repeated products merged."""
    if not isinstance(items, (list, tuple)) or not items:
        raise CartValidationError("Order must contain at least one item")
    merged: dict[int, int] = {}
    for raw in items:
        if not isinstance(raw, dict):
            raise CartValidationError("Each item needs product_id and quantity")
        pid, qty = raw.get("product_id"), raw.get("quantity")
        if isinstance(pid, bool) or not isinstance(pid, int) or not 0 < pid <= _MAX_PRODUCT_ID:
            raise CartValidationError("product_id must be a positive integer", product_id=pid)
        if isinstance(qty, bool) or not isinstance(qty, int) or qty < 1:
            raise CartValidationError("Quantity must be a positive integer", product_id=pid)
        merged[pid] = merged.get(pid, 0) + qty
        if merged[pid] > MAX_LINE_QUANTITY:
            raise CartValidationError(f"Quantity must not exceed {MAX_LINE_QUANTITY}", product_id=pid)
    return list(merged.items())


def normalize_address(address) -> dict:
    if not isinstance(address, dict):
        raise AddressValidationError("Delivery address is required")
    clean = {}
    for key, min_len, message in _ADDRESS_RULES:
        value = str(address.get(key) or "").strip()
        if len(value) < min_len:
            raise AddressValidationError(message, field=key)
        clean[key] = value
    landmark = str(address.get("landmark") or "").strip()
    if landmark:
        clean["landmark"] = landmark
    return clean


@dataclass(slots=True)
class Settlement:
    """Working state of one place_order attempt."""

    code: str
    customer_id: int
    customer_name: Optional[str]
    address: dict
    payment_method: str
    pricing: Pricing
    currency: str
    now: datetime
    claims: List[Claim] = field(default_factory=list)
    reservations: List[Reservation] = field(default_factory=list)
    intent: Optional[PaymentIntent] = None
    order: Optional[Order] = None


# ---- saga steps ------------------------------------------------------------

class ClaimCoupons(Step):
    name = "ClaimCoupons"

    def __init__(self, s: Settlement, tracker: CouponTracker):
        super().__init__(s.code)
        self.s = s
        self.tracker = tracker

    def execute(self) -> None:
        self.s.claims = self.tracker.claim_all(self.s.pricing.coupon_codes)

    def compensate(self) -> None:
        self.tracker.release_all(self.s.claims)


class ReserveStock(Step):
    name = "ReserveStock"

    def __init__(self, s: Settlement, ledger: InventoryLedger):
        super().__init__(s.code)
        self.s = s
        self.ledger = ledger

    def execute(self) -> None:
        lines = [(l.product_id, l.quantity) for l in self.s.pricing.lines]
        try:
            self.s.reservations = self.ledger.reserve_all(lines)
        except OutOfStockError as e:
            name = next((l.name for l in self.s.pricing.lines if l.product_id == e.product_id), str(e.product_id))
            raise InsufficientStockError(e.product_id, name, e.requested, e.available) from e

    def compensate(self) -> None:
        self.ledger.release_all(self.s.reservations)


class OpenPaymentIntent(Step):
    name = "OpenPaymentIntent"

    def __init__(self, s: Settlement, gateway: PaymentGateway):
        super().__init__(s.code)
        self.s = s
        self.gateway = gateway

    def execute(self) -> None:
        try:
            self.s.intent = self.gateway.create_intent(self.s.pricing.total, self.s.currency, self.s.code)
        except PaymentGatewayUnavailableError:
            raise
        except Exception as e:
            # timeouts and transport errors from any adapter count as "gateway down"
            raise PaymentGatewayUnavailableError(reason=str(e)) from e

    def compensate(self) -> None:
        # unpaid remote intents expire on the provider side
        logger.info("[order=%s] payment intent %s abandoned", self.s.code,
                    self.s.intent.gateway_order_id if self.s.intent else None)


class PersistOrder(Step):
    name = "PersistOrder"

    def __init__(self, s: Settlement, session):
        super().__init__(s.code)
        self.s = s
        self.session = session

    def execute(self) -> None:
        order = build_order(self.s)
        try:
            self.session.add(order)
            self.session.commit()
        except SQLAlchemyError as e:
            self.session.rollback()
            logger.exception(
                "[order=%s] persisting order failed customer=%s total=%s coupons=%s reservations=%s",
                self.s.code, self.s.customer_id, self.s.pricing.total,
                list(self.s.pricing.coupon_codes),
                [(r.product_id, r.quantity) for r in self.s.reservations],
            )
            raise PersistenceError() from e
        except Exception:
            self.session.rollback()
            raise
        self.s.order = order


def build_order(s: Settlement) -> Order:
    online = s.payment_method == ONLINE
    order = Order(
        code=s.code,
        customer_id=s.customer_id,
        subtotal=s.pricing.subtotal,
        discount_amount=s.pricing.discount,
        delivery_charge=s.pricing.delivery_charge,
        total=s.pricing.total,
        currency=s.currency,
        coupon_codes=list(s.pricing.coupon_codes),
        delivery_address=s.address,
        payment_method=s.payment_method,
        payment_status=PAYMENT_PENDING if online else PAYMENT_NOT_REQUIRED,
        gateway_order_id=s.intent.gateway_order_id if s.intent else None,
        status=ORDERED,
        created_at=s.now,
        updated_at=s.now,
    )
    order.items = [
        OrderItem(
            product_id=l.product_id,
            name=l.name,
            unit_price=l.unit_price,
            quantity=l.quantity,
            line_total=l.line_total,
        )
        for l in s.pricing.lines
    ]
    order.status_history = [OrderStatusHistory(status=ORDERED, created_at=s.now)]
    return order


# ---- orchestrator ----------------------------------------------------------

class SettlementOrchestrator:
    def __init__(
        self,
        gateway: PaymentGateway,
        session=None,
        ledger: Optional[InventoryLedger] = None,
        tracker: Optional[CouponTracker] = None,
        notifier: Optional[MerchantNotifier] = None,
        clock: Optional[Callable[[], datetime]] = None,
        base_delivery_charge: int = 0,
        currency: str = "INR",
        online_payment_enabled: bool = True,
    ):
        self.session = session or db.session
        self.gateway = gateway
        self.clock = clock or utcnow
        self.ledger = ledger or InventoryLedger(self.session)
        self.tracker = tracker or CouponTracker(self.session, clock=self.clock)
        self.notifier = notifier or MerchantNotifier(self.session)
        self.base_delivery_charge = base_delivery_charge
        self.currency = currency
        self.online_payment_enabled = online_payment_enabled

    # -- quoting -----------------------------------------------------------

    def _load_lines(self, items):
        lines = normalize_items(items)
        ids = [pid for pid, _ in lines]
        rows = self.session.execute(select(Product).where(Product.id.in_(ids))).scalars()
        products = {p.id: p for p in rows}
        loaded = []
        for pid, qty in lines:
            p = products.get(pid)
            if not p or not p.active:
                raise ProductNotFoundError(pid)
            loaded.append((p, qty))
        return loaded

    def quote(self, items, coupon_codes=None, now: Optional[datetime] = None) -> Pricing:
        """Price a cart against live catalog and coupon state. No side effects."""
        if coupon_codes is not None and not isinstance(coupon_codes, (list, tuple)):
            raise ValidationError("coupon_codes must be a list")
        now = now or self.clock()
        lines = self._load_lines(items)
        coupons = find_coupons(normalize_coupon_codes(coupon_codes), session=self.session)
        return resolve(lines, coupon_codes, coupons, self.base_delivery_charge, now)

    # -- PlaceOrder --------------------------------------------------------

    def place_order(
        self,
        customer_id: int,
        items,
        delivery_address,
        payment_method: str,
        coupon_codes=None,
        customer_name: Optional[str] = None,
    ) -> Order:
        method = payment_method.strip().upper() if isinstance(payment_method, str) else ""
        if method not in PAYMENT_METHODS:
            raise PaymentMethodError("Payment method must be COD or ONLINE")
        if method == ONLINE and not self.online_payment_enabled:
            raise PaymentMethodError("Online payment is currently disabled")
        address = normalize_address(delivery_address)

        now = self.clock()
        pricing = self.quote(items, coupon_codes, now=now)

        s = Settlement(
            code=_gen_order_code(now),
            customer_id=customer_id,
            customer_name=customer_name,
            address=address,
            payment_method=method,
            pricing=pricing,
            currency=self.currency,
            now=now,
        )
        logger.info(
            "[order=%s] SETTLEMENT START customer=%s method=%s subtotal=%s discount=%s delivery=%s total=%s coupons=%s",
            s.code, customer_id, method, pricing.subtotal, pricing.discount,
            pricing.delivery_charge, pricing.total, list(pricing.coupon_codes),
        )

        steps: List[Step] = []
        if pricing.coupon_codes:
            steps.append(ClaimCoupons(s, self.tracker))
        steps.append(ReserveStock(s, self.ledger))
        if method == ONLINE:
            steps.append(OpenPaymentIntent(s, self.gateway))
        steps.append(PersistOrder(s, self.session))

        try:
            Saga(s.code, steps).execute()
        except SettlementError:
            raise
        except Exception as e:
            logger.exception("[order=%s] unexpected settlement failure", s.code)
            raise PersistenceError() from e

        for reservation in s.reservations:
            self.ledger.commit(reservation)

        self._best_effort(self.notifier.notify_merchant, {
            "title": "New Order Received!",
            "message": f"Order #{s.code} placed by {customer_name or 'a customer'} "
                       f"for {format_money(pricing.total, self.currency)}",
            "url": f"/merchant/orders/{s.order.id}",
            "order_code": s.code,
        })
        return s.order

    # -- ConfirmPayment ----------------------------------------------------

    def get_order(self, order_id: int) -> Order:
        order = self.session.get(Order, order_id)
        if order is None:
            raise OrderNotFoundError(order_id)
        return order

    def find_by_gateway_order(self, gateway_order_id: str) -> Order:
        order = None
        if isinstance(gateway_order_id, str) and gateway_order_id:
            order = self.session.execute(
                select(Order).where(Order.gateway_order_id == gateway_order_id)
            ).scalar_one_or_none()
        if order is None:
            raise OrderNotFoundError(gateway_order_id)
        return order

    def confirm_payment(self, order_id: int, gateway_order_id: str, payment_id: str, signature: str) -> Order:
        """
        Idempotent: once the order's payment is PAID or FAILED every further
        confirmation returns it unchanged.
        """
        order = self.get_order(order_id)
        if order.payment_method != ONLINE:
            raise PaymentMethodError("Order payment method is not online")
        if order.payment_status in TERMINAL_PAYMENT_STATUSES:
            logger.info("[order=%s] payment confirmation replay ignored (%s)", order.code, order.payment_status)
            return order
        if not gateway_order_id or gateway_order_id != order.gateway_order_id:
            raise ValidationError("Gateway order id does not match this order")

        valid = self.gateway.verify_signature(gateway_order_id, payment_id, signature)
        values = {"payment_status": PAYMENT_PAID if valid else PAYMENT_FAILED, "updated_at": self.clock()}
        if valid:
            values["gateway_payment_id"] = payment_id
        result = self.session.execute(
            update(Order)
            .where(Order.id == order.id, Order.payment_status == PAYMENT_PENDING)
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        self.session.commit()
        self.session.refresh(order)

        if result.rowcount != 1:
            logger.info("[order=%s] payment already settled concurrently (%s)", order.code, order.payment_status)
            return order

        logger.info("[order=%s] payment %s payment_id=%s", order.code, order.payment_status, payment_id)
        if valid:
            self._best_effort(self.notifier.notify_customer, order.customer_id, "Payment received",
                              f"Payment for order #{order.code} was successful", f"/orders/{order.id}")
            return order

        self._best_effort(self.notifier.notify_customer, order.customer_id, "Payment failed",
                          f"Payment for order #{order.code} could not be verified", f"/orders/{order.id}")
        raise SignatureMismatchError(order.code)

    # -- TransitionFulfillment ---------------------------------------------

    def transition_fulfillment(self, order_id: int, new_status: str) -> Order:
        status = new_status.strip().upper() if isinstance(new_status, str) else ""
        if status not in ORDER_STATUSES:
            raise ValidationError(f"status must be one of {', '.join(ORDER_STATUSES)}", field="status")
        order = self.get_order(order_id)

        now = self.clock()
        result = self.session.execute(
            update(Order)
            .where(Order.id == order.id, Order.status.notin_(TERMINAL_ORDER_STATUSES))
            .values(status=status, updated_at=now)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            self.session.rollback()
            raise InvalidTransitionError(order.status, status)
        self.session.add(OrderStatusHistory(order_id=order.id, status=status, created_at=now))
        self.session.commit()
        self.session.refresh(order)
        logger.info("[order=%s] status -> %s", order.code, status)

        self._best_effort(self.notifier.notify_customer, order.customer_id, "Order update",
                          f"Order #{order.code} is now {status.lower()}", f"/orders/{order.id}")
        return order

    # -- helpers -----------------------------------------------------------

    def _best_effort(self, fn, *args) -> None:
        try:
            fn(*args)
        except Exception:
            self.session.rollback()
            logger.exception("notification failed (%s)", getattr(fn, "__name__", fn))


def build_settlement() -> SettlementOrchestrator:
    """Orchestrator wired from the current app's config and gateway."""
    from flask import current_app
    from ..gateway import get_gateway

    cfg = current_app.config
    return SettlementOrchestrator(
        gateway=get_gateway(),
        base_delivery_charge=int(cfg.get("DEFAULT_DELIVERY_CHARGE", 0)),
        currency=cfg.get("PAYMENT_CURRENCY", "INR"),
        online_payment_enabled=bool(cfg.get("ONLINE_PAYMENT_ENABLED", True)),
    )
