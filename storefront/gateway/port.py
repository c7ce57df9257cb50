"""Payment gateway port (abstract interface).

Settlement talks to the payment provider only through this contract, so the
real adapter and the in-process fake are interchangeable.
"""

import hashlib
import hmac
from abc import ABC, abstractmethod
from dataclasses import dataclass


@dataclass(frozen=True)
class PaymentIntent:
    """A remote order/intent the shopper pays against."""

    gateway_order_id: str
    amount: int
    currency: str
    receipt_id: str


def compute_signature(secret: str, gateway_order_id: str, payment_id: str) -> str:
    """Hex HMAC-SHA256 over ``"<gateway_order_id>|<payment_id>"``."""
    message = f"{gateway_order_id}|{payment_id}".encode()
    return hmac.new(secret.encode(), message, hashlib.sha256).hexdigest()


class PaymentGateway(ABC):
    """Abstract payment gateway interface."""

    key_id: str = ""

    def __init__(self, key_secret: str) -> None:
        self.key_secret = key_secret

    @abstractmethod
    def create_intent(self, amount_minor: int, currency: str, receipt_id: str) -> PaymentIntent:
        """Open a payment intent for ``amount_minor``.

        Raises PaymentGatewayUnavailableError when the provider cannot be reached.
        """
        ...

    def verify_signature(self, gateway_order_id: str, payment_id: str, signature: str) -> bool:
        """Constant-time check of a signed payment confirmation."""
        if not (gateway_order_id and payment_id and signature):
            return False
        expected = compute_signature(self.key_secret, gateway_order_id, payment_id)
        return hmac.compare_digest(expected, str(signature))
