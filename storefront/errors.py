# storefront/errors.py
"""
Typed failures raised by the settlement core.

Every error carries the HTTP status the API layer should answer with and a
small JSON-able payload, so routes never have to parse messages.

    ValidationError   400  bad input, nothing touched
    ConflictError     409  stock / coupon race lost, partial claims released
    GatewayError      502  payment provider trouble or bad signature
    PersistenceError  500  storage write failed, reservations released
"""
from __future__ import annotations


class SettlementError(Exception):
    http_status = 500
    code = "settlement_error"

    def __init__(self, message: str, **data):
        super().__init__(message)
        self.message = message
        self.data = data

    def as_api(self) -> dict:
        return {"error": self.code, **self.data}


# ---- 4xx: client input ------------------------------------------------------

class ValidationError(SettlementError):
    http_status = 400
    code = "validation_error"


class CartValidationError(ValidationError):
    code = "invalid_cart"


class AddressValidationError(ValidationError):
    code = "invalid_address"


class PaymentMethodError(ValidationError):
    code = "invalid_payment_method"


class ProductNotFoundError(ValidationError):
    code = "product_not_found"

    def __init__(self, product_id):
        super().__init__(f"Product {product_id} not found", product_id=product_id)
        self.product_id = product_id


class CouponError(ValidationError):
    code = "invalid_coupon"

    def __init__(self, message: str, coupon_code: str, **data):
        super().__init__(message, coupon_code=coupon_code, **data)
        self.coupon_code = coupon_code


class CouponNotFoundError(CouponError):
    code = "coupon_not_found"

    def __init__(self, coupon_code: str):
        super().__init__(f"Coupon {coupon_code} is invalid", coupon_code)


class CouponExpiredError(CouponError):
    code = "coupon_expired"

    def __init__(self, coupon_code: str):
        super().__init__(f"Coupon {coupon_code} has expired", coupon_code)


class CouponMinimumOrderError(CouponError):
    code = "coupon_minimum_order"

    def __init__(self, coupon_code: str, min_order_amount: int):
        super().__init__(
            f"Coupon {coupon_code} requires a minimum order of {min_order_amount}",
            coupon_code,
            min_order_amount=min_order_amount,
        )


class CouponLimitReachedError(CouponError):
    code = "coupon_limit_reached"

    def __init__(self, coupon_code: str):
        super().__init__(f"Coupon {coupon_code} usage limit reached", coupon_code)


class TooManyCouponsError(ValidationError):
    code = "too_many_coupons"

    def __init__(self, codes):
        super().__init__("Maximum 2 coupons allowed per order", coupon_codes=list(codes))


class CouponCombinationError(ValidationError):
    code = "coupon_combination"

    def __init__(self, message: str, codes):
        super().__init__(message, coupon_codes=list(codes))
        self.codes = list(codes)


class OrderNotFoundError(SettlementError):
    http_status = 404
    code = "order_not_found"

    def __init__(self, order_ref):
        super().__init__("Order not found", order=order_ref)


class InvalidTransitionError(SettlementError):
    http_status = 409
    code = "invalid_transition"

    def __init__(self, current: str, requested: str):
        super().__init__(
            f"Order is {current}; cannot move to {requested}",
            current_status=current,
            requested_status=requested,
        )


# ---- 409: resource conflicts ------------------------------------------------

class ConflictError(SettlementError):
    http_status = 409
    code = "conflict"


class OutOfStockError(ConflictError):
    code = "out_of_stock"

    def __init__(self, product_id, requested: int, available: int, message: str | None = None, **data):
        super().__init__(
            message or f"Insufficient stock for product {product_id}. Available: {available}",
            product_id=product_id,
            requested=requested,
            available=available,
            **data,
        )
        self.product_id = product_id
        self.requested = requested
        self.available = available


class InsufficientStockError(OutOfStockError):
    code = "insufficient_stock"

    def __init__(self, product_id, product_name: str, requested: int, available: int):
        super().__init__(
            product_id,
            requested,
            available,
            message=f"Insufficient stock for {product_name}. Available: {available}",
            product_name=product_name,
        )
        self.product_name = product_name


class CouponLimitExceededError(ConflictError):
    code = "coupon_limit_exceeded"

    def __init__(self, coupon_code: str):
        super().__init__(f"Coupon {coupon_code} usage limit reached", coupon_code=coupon_code)
        self.coupon_code = coupon_code


# ---- 5xx: gateway / storage -------------------------------------------------

class GatewayError(SettlementError):
    http_status = 502
    code = "gateway_error"


class PaymentGatewayUnavailableError(GatewayError):
    http_status = 503
    code = "payment_gateway_unavailable"

    def __init__(self, message: str = "Payment service unavailable", **data):
        super().__init__(message, **data)


class SignatureMismatchError(GatewayError):
    http_status = 400
    code = "signature_mismatch"

    def __init__(self, order_ref):
        super().__init__("Payment verification failed", order=order_ref)


class PersistenceError(SettlementError):
    http_status = 500
    code = "server_error"

    def __init__(self, message: str = "Internal server error"):
        super().__init__(message)
