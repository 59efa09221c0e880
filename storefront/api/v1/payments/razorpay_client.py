"""
Razorpay payment gateway integration
"""

import razorpay
import hmac
import hashlib
from functools import lru_cache
from typing import Dict, Any, Optional, Union
import logging

from storefront.core.config import settings
from storefront.core.exceptions import UpstreamFailureException

logger = logging.getLogger(__name__)

def hmac_sha256_hex(secret: str, message: Union[str, bytes]) -> str:
    """Hex HMAC-SHA256, the signature format Razorpay uses everywhere"""
    if isinstance(message, str):
        message = message.encode("utf-8")
    return hmac.new(secret.encode("utf-8"), message, hashlib.sha256).hexdigest()

class RazorpayClient:
    """Razorpay API client wrapper"""

    def __init__(
        self,
        key_id: Optional[str] = None,
        key_secret: Optional[str] = None,
        webhook_secret: Optional[str] = None
    ):
        self.key_id = key_id or settings.RAZORPAY_KEY_ID
        self.key_secret = key_secret or settings.RAZORPAY_KEY_SECRET
        self.webhook_secret = webhook_secret or settings.RAZORPAY_WEBHOOK_SECRET
        self.client = razorpay.Client(auth=(self.key_id, self.key_secret))

    def create_order(
        self,
        amount: int,
        currency: str = "INR",
        receipt: Optional[str] = None,
        notes: Optional[Dict[str, Any]] = None
    ) -> Dict[str, Any]:
        """
        Create Razorpay order

        Args:
            amount: Amount in smallest currency unit (paise for INR)
            currency: Currency code
            receipt: Receipt number, our order id
            notes: Additional notes

        Returns:
            Razorpay order details
        """
        try:
            order_data = {
                "amount": amount,
                "currency": currency,
                "receipt": receipt or "",
                "notes": notes or {}
            }

            return self.client.order.create(data=order_data)

        except Exception as e:
            logger.error(f"Razorpay order creation failed: {str(e)}")
            raise UpstreamFailureException("Failed to create payment order")

    def fetch_payment(self, payment_id: str) -> Dict[str, Any]:
        """
        Fetch payment details

        Args:
            payment_id: Razorpay payment ID

        Returns:
            Payment details
        """
        try:
            return self.client.payment.fetch(payment_id)
        except Exception as e:
            logger.error(f"Razorpay payment fetch failed for {payment_id}: {str(e)}")
            raise UpstreamFailureException("Failed to fetch payment")

    def verify_payment_signature(
        self,
        order_id: str,
        payment_id: str,
        signature: str
    ) -> bool:
        """Check the checkout callback signature over "order_id|payment_id" """
        expected_signature = hmac_sha256_hex(self.key_secret, f"{order_id}|{payment_id}")
        return hmac.compare_digest(expected_signature, signature or "")

    def verify_webhook_signature(self, body: bytes, signature: Optional[str]) -> bool:
        """
        Verify webhook signature

        The signature covers the raw request body exactly as delivered,
        re-serialising the parsed JSON would not reproduce it.
        """
        if not signature:
            return False
        expected_signature = hmac_sha256_hex(self.webhook_secret, body)
        return hmac.compare_digest(expected_signature, signature)

@lru_cache()
def _default_client() -> RazorpayClient:
    return RazorpayClient()

def get_payment_gateway() -> RazorpayClient:
    """FastAPI dependency for the shared gateway client"""
    return _default_client()
