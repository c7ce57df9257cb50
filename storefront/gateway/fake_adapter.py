"""Configurable fake payment gateway for development and testing.

Simulates the provider without any external calls. It signs with the same
algorithm as the real adapter, so tests can build valid confirmations with
``sign()``.
"""

from uuid import uuid4

from ..errors import PaymentGatewayUnavailableError
from .port import PaymentGateway, PaymentIntent, compute_signature


class FakeGateway(PaymentGateway):
    """Configurable fake payment gateway."""

    key_id = "fake_key"

    def __init__(self, key_secret: str = "fake-secret") -> None:
        super().__init__(key_secret)
        self.should_succeed: bool = True
        self.failure_reason: str = "Gateway timeout"
        self.calls: list[dict] = []

    def configure(self, should_succeed: bool, failure_reason: str = "Gateway timeout") -> None:
        """Configure gateway behavior at runtime."""
        self.should_succeed = should_succeed
        self.failure_reason = failure_reason

    def create_intent(self, amount_minor: int, currency: str, receipt_id: str) -> PaymentIntent:
        self.calls.append(
            {
                "method": "create_intent",
                "amount": amount_minor,
                "currency": currency,
                "receipt_id": receipt_id,
            }
        )
        if not self.should_succeed:
            raise PaymentGatewayUnavailableError(reason=self.failure_reason)
        return PaymentIntent(
            gateway_order_id=f"order_fake_{uuid4().hex[:14]}",
            amount=amount_minor,
            currency=currency,
            receipt_id=receipt_id,
        )

    def sign(self, gateway_order_id: str, payment_id: str) -> str:
        return compute_signature(self.key_secret, gateway_order_id, payment_id)
