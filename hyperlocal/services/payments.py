# hyperlocal/services/payments.py
"""
Razorpay integration: order creation and payment signature verification.
"""

import hashlib
import hmac
import logging
from typing import Optional

import httpx

from hyperlocal.core.exceptions import (
    BookingNotFoundError,
    PaymentGatewayError,
    PaymentVerificationError,
)
from hyperlocal.schemas.bookings import BookingStatus, PaymentStatus

logger = logging.getLogger(__name__)


class RazorpayGateway:
    """Creates gateway orders through the Razorpay Orders API."""

    def __init__(
        self,
        key_id: Optional[str],
        key_secret: Optional[str],
        api_url: str = "https://api.razorpay.com/v1",
        timeout: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.key_id = key_id
        self.key_secret = key_secret
        self._client = httpx.AsyncClient(base_url=api_url, timeout=timeout, transport=transport)

    @property
    def configured(self) -> bool:
        return bool(self.key_id and self.key_secret)

    async def create_order(self, amount: int, currency: str, receipt: str) -> dict:
        """
        Create an order for ``amount`` minor units (paise for INR).

        Raises:
            PaymentGatewayError: If the gateway is not configured or the call fails
        """
        if not self.configured:
            raise PaymentGatewayError("Payment gateway is not configured")
        if amount <= 0:
            raise PaymentGatewayError(f"Invalid order amount: {amount}")

        try:
            response = await self._client.post(
                "/orders",
                json={
                    "amount": amount,
                    "currency": currency,
                    "receipt": receipt,
                    "payment_capture": 1,
                },
                auth=(self.key_id, self.key_secret),
            )
            response.raise_for_status()
            order = response.json()
        except httpx.HTTPStatusError as e:
            logger.error("Razorpay rejected order %s: %s", receipt, e.response.text)
            raise PaymentGatewayError(f"Failed to create payment order: {e.response.status_code}") from e
        except (httpx.HTTPError, ValueError) as e:
            logger.error("Razorpay order %s failed: %s", receipt, e)
            raise PaymentGatewayError("Failed to create payment order") from e

        if not order.get("id"):
            raise PaymentGatewayError("Failed to create Razorpay order. Please check Razorpay keys.")
        logger.info("Created Razorpay order %s for %s", order["id"], receipt)
        return order

    async def aclose(self) -> None:
        await self._client.aclose()


def sign_payment(secret: str, order_id: str, payment_id: str) -> str:
    """HMAC-SHA256 hex digest Razorpay sends back for ``order_id|payment_id``."""
    message = f"{order_id}|{payment_id}".encode("utf-8")
    return hmac.new(secret.encode("utf-8"), message, hashlib.sha256).hexdigest()


class PaymentVerifier:
    def __init__(self, secret: Optional[str], bookings):
        self.secret = secret
        self.bookings = bookings

    def signature_matches(self, order_id: str, payment_id: str, signature: str) -> bool:
        if not self.secret or not signature:
            return False
        expected = sign_payment(self.secret, order_id, payment_id)
        return hmac.compare_digest(expected.encode("utf-8"), signature.encode("utf-8"))

    async def verify(self, order_id: str, payment_id: str, signature: str) -> dict:
        """
        Check the checkout callback and move the booking out of payment_pending.

        Returns:
            The updated booking

        Raises:
            BookingNotFoundError: No booking carries this order id
            PaymentVerificationError: Signature mismatch. An unpaid booking is
                marked failed; a settled one is left untouched
        """
        booking = await self.bookings.get_by_order_id(order_id)
        if booking is None:
            raise BookingNotFoundError()

        status = str(booking.get("status", "")).lower()
        if not self.signature_matches(order_id, payment_id, signature):
            if status == BookingStatus.PAYMENT_PENDING.value:
                await self.bookings.update_by_order_id(
                    order_id, {"payment_status": PaymentStatus.FAILED.value}
                )
            logger.warning("Payment verification failed for order %s (booking %s)", order_id, status)
            raise PaymentVerificationError()

        if booking.get("payment_status") == PaymentStatus.PAID.value and status != BookingStatus.PAYMENT_PENDING.value:
            logger.info("Order %s already verified", order_id)
            return booking

        fields = {
            "razorpay_payment_id": payment_id,
            "razorpay_signature": signature,
            "payment_status": PaymentStatus.PAID.value,
        }
        if status == BookingStatus.PAYMENT_PENDING.value:
            fields["status"] = BookingStatus.PENDING.value
        else:
            logger.warning("Order %s paid while booking is %s; status left unchanged", order_id, status)

        updated = await self.bookings.update_by_order_id(order_id, fields)
        if updated is None:
            raise BookingNotFoundError()
        logger.info("Payment verified for order %s, booking %s", order_id, updated["id"])
        return updated
