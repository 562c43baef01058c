"""
Razorpay payment gateway client.

Only the calls the booking flow needs: order creation, refunds and checkout
signature verification. Without a key pair the client refuses to take payments,
unless PAYMENT_EMULATION_ENABLED is set, in which case it emulates orders so the
API stays usable in development.
"""
import hashlib
import hmac
import logging
import uuid
from typing import Dict, Optional

import httpx
from fastapi import Request

from .config import Settings
from .schemas import PaymentOrder

logger = logging.getLogger("payment_gateway")


class PaymentGatewayError(Exception):
    """Raised when the gateway cannot be reached or rejects a request."""


class RazorpayGateway:
    def __init__(self, settings: Settings, http_client: Optional[httpx.Client] = None):
        self.key_id = settings.RAZORPAY_KEY_ID
        self.key_secret = settings.RAZORPAY_KEY_SECRET
        self.emulation_enabled = settings.PAYMENT_EMULATION_ENABLED
        self._client = http_client or httpx.Client(
            base_url=settings.RAZORPAY_BASE_URL,
            auth=(self.key_id, self.key_secret),
            timeout=settings.PAYMENT_GATEWAY_TIMEOUT_SECONDS,
        )

    @property
    def emulated(self) -> bool:
        return not (self.key_id and self.key_secret)

    def _require_emulation(self, action: str):
        if not self.emulation_enabled:
            logger.error(f"Payment gateway credentials missing, cannot {action}")
            raise PaymentGatewayError("Payment gateway is not configured")

    def _post(self, path: str, payload: dict) -> dict:
        try:
            response = self._client.post(path, json=payload)
            response.raise_for_status()
            return response.json()
        except httpx.HTTPStatusError as e:
            logger.error(f"Gateway rejected {path}: {e.response.status_code} {e.response.text}")
            raise PaymentGatewayError(f"Gateway returned {e.response.status_code}") from e
        except httpx.HTTPError as e:
            logger.error(f"Gateway request {path} failed: {e}")
            raise PaymentGatewayError("Gateway unreachable") from e

    def create_order(
            self,
            amount: int,
            currency: str,
            receipt: str,
            notes: Optional[Dict[str, str]] = None,
    ) -> PaymentOrder:
        """
        Creates an order for `amount` minor units.
        """
        if self.emulated:
            self._require_emulation("create order")
            order_id = f"order_{uuid.uuid4().hex[:14]}"
            logger.warning(f"Payment gateway credentials missing, emulating order {order_id}")
            return PaymentOrder(id=order_id, amount=amount, currency=currency, receipt=receipt)

        data = self._post("/orders", {
            "amount": amount,
            "currency": currency,
            "receipt": receipt,
            "notes": notes or {},
        })
        logger.info(f"Created gateway order {data.get('id')} for {amount} {currency}")
        return PaymentOrder(
            id=data["id"],
            amount=data["amount"],
            currency=data["currency"],
            receipt=data.get("receipt"),
            status=data.get("status", "created"),
        )

    def refund(self, payment_id: str, amount: int) -> str:
        """Refunds `amount` minor units of a captured payment, returns the refund id."""
        if self.emulated:
            self._require_emulation("refund")
            refund_id = f"rfnd_{uuid.uuid4().hex[:14]}"
            logger.warning(f"Payment gateway credentials missing, emulating refund {refund_id}")
            return refund_id

        data = self._post(f"/payments/{payment_id}/refund", {"amount": amount})
        return data["id"]

    def verify_signature(self, order_id: str, payment_id: str, signature: str) -> bool:
        if self.emulated:
            if not self.emulation_enabled:
                logger.error(f"Payment gateway credentials missing, rejecting payment {payment_id}")
                return False
            logger.warning(f"Payment gateway credentials missing, checking {payment_id} against an empty key")

        # Checkout signs "<order_id>|<payment_id>" with the key secret
        expected = hmac.new(
            self.key_secret.encode("utf-8"),
            f"{order_id}|{payment_id}".encode("utf-8"),
            hashlib.sha256,
        ).hexdigest()
        return hmac.compare_digest(expected.encode("utf-8"), signature.encode("utf-8"))

    def close(self):
        self._client.close()


def get_payment_gateway(request: Request) -> RazorpayGateway:
    return request.app.state.payment_gateway
