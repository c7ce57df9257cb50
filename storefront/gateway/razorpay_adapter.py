"""Razorpay payment gateway adapter.

Creates orders through the Razorpay REST API with ``requests``. Any transport
error, timeout or non-2xx answer surfaces as PaymentGatewayUnavailableError,
which settlement treats as "gateway down" and compensates.
"""

import logging

import requests

from ..errors import PaymentGatewayUnavailableError
from .port import PaymentGateway, PaymentIntent

logger = logging.getLogger(__name__)

API_BASE = "https://api.razorpay.com/v1"


class RazorpayGateway(PaymentGateway):
    """Production gateway adapter."""

    def __init__(self, key_id: str, key_secret: str, timeout: float = 10.0, session=None) -> None:
        super().__init__(key_secret)
        self.key_id = key_id
        self.timeout = timeout
        self.http = session or requests.Session()

    def create_intent(self, amount_minor: int, currency: str, receipt_id: str) -> PaymentIntent:
        if not self.key_id or not self.key_secret:
            raise PaymentGatewayUnavailableError("Payment gateway credentials not configured")
        payload = {
            "amount": amount_minor,
            "currency": currency,
            "receipt": receipt_id,
            "notes": {"order_code": receipt_id},
        }
        try:
            resp = self.http.post(
                f"{API_BASE}/orders",
                json=payload,
                auth=(self.key_id, self.key_secret),
                timeout=self.timeout,
            )
            resp.raise_for_status()
            body = resp.json()
        except requests.Timeout as e:
            logger.warning("razorpay timeout creating order receipt=%s", receipt_id)
            raise PaymentGatewayUnavailableError(reason="timeout") from e
        except (requests.RequestException, ValueError) as e:
            logger.warning("razorpay error creating order receipt=%s: %s", receipt_id, e)
            raise PaymentGatewayUnavailableError(reason=str(e)) from e

        gateway_order_id = body.get("id")
        if not gateway_order_id:
            raise PaymentGatewayUnavailableError(reason="missing order id in gateway response")
        return PaymentIntent(
            gateway_order_id=gateway_order_id,
            amount=int(body.get("amount", amount_minor)),
            currency=body.get("currency", currency),
            receipt_id=receipt_id,
        )
