"""Payment gateway factory.

The active adapter lives on the Flask app (``app.extensions``):
- FakeGateway for development and testing
- RazorpayGateway for production
"""

from flask import current_app

from .fake_adapter import FakeGateway
from .port import PaymentGateway, PaymentIntent, compute_signature
from .razorpay_adapter import RazorpayGateway

EXTENSION_KEY = "payment_gateway"


def build_gateway(config) -> PaymentGateway:
    kind = (config.get("PAYMENT_GATEWAY") or "fake").lower()
    if kind == "razorpay":
        return RazorpayGateway(
            key_id=config.get("PAYMENT_KEY_ID", ""),
            key_secret=config.get("PAYMENT_KEY_SECRET", ""),
            timeout=float(config.get("PAYMENT_TIMEOUT_SECONDS", 10)),
        )
    if kind == "fake":
        return FakeGateway(key_secret=config.get("PAYMENT_KEY_SECRET") or "fake-secret")
    raise ValueError(f"unknown PAYMENT_GATEWAY {kind!r}")


def init_gateway(app) -> None:
    app.extensions[EXTENSION_KEY] = build_gateway(app.config)


def get_gateway() -> PaymentGateway:
    return current_app.extensions[EXTENSION_KEY]


def set_gateway(gateway: PaymentGateway) -> None:
    """Override the active payment gateway (useful for tests)."""
    current_app.extensions[EXTENSION_KEY] = gateway


__all__ = [
    "PaymentGateway",
    "PaymentIntent",
    "FakeGateway",
    "RazorpayGateway",
    "build_gateway",
    "compute_signature",
    "init_gateway",
    "get_gateway",
    "set_gateway",
]
