"""Razorpay API client for hosted rent checkout."""
import hashlib
import hmac
from decimal import Decimal, ROUND_HALF_UP
from typing import Dict, Any, Optional

import requests
from flask import current_app


def to_paise(amount) -> int:
    """Convert a rupee amount to the integer paise Razorpay expects."""
    return int((Decimal(str(amount)) * 100).quantize(Decimal('1'), rounding=ROUND_HALF_UP))


def _hmac_sha256(secret: str, message: bytes) -> str:
    return hmac.new(secret.encode('utf-8'), message, hashlib.sha256).hexdigest()


class RazorpayClient:
    """Client for the Razorpay Orders API."""

    BASE_URL = "https://api.razorpay.com/v1"

    def __init__(self, key_id: Optional[str] = None, key_secret: Optional[str] = None,
                 webhook_secret: Optional[str] = None):
        """
        Initialize the Razorpay client.

        Args:
            key_id: API key id. If None, read from RAZORPAY_KEY_ID
            key_secret: API key secret. If None, read from RAZORPAY_KEY_SECRET
            webhook_secret: Secret used to sign webhooks (RAZORPAY_WEBHOOK_SECRET)
        """
        cfg = current_app.config
        self.key_id = key_id or cfg.get('RAZORPAY_KEY_ID')
        self.key_secret = key_secret or cfg.get('RAZORPAY_KEY_SECRET')
        self.webhook_secret = webhook_secret or cfg.get('RAZORPAY_WEBHOOK_SECRET')
        if not self.key_id or not self.key_secret:
            raise ValueError("RAZORPAY_KEY_ID and RAZORPAY_KEY_SECRET are required")

        self.auth = (self.key_id, self.key_secret)

    def create_order(
        self,
        amount,
        receipt: str,
        currency: str = 'INR',
        notes: Optional[Dict[str, str]] = None
    ) -> Dict[str, Any]:
        """
        Create an order for the checkout widget.

        Args:
            amount: Amount in rupees (converted to paise)
            receipt: Our reference for the order (max 40 chars)
            currency: ISO currency code
            notes: Extra key/value pairs stored on the order

        Returns:
            Order dict including 'id', 'amount' and 'status'

        Raises:
            requests.HTTPError: If Razorpay returns an error
        """
        url = f"{self.BASE_URL}/orders"
        payload = {
            "amount": to_paise(amount),
            "currency": currency,
            "receipt": receipt[:40],
            "notes": notes or {},
        }

        current_app.logger.info(f"[RAZORPAY] Creating order {receipt} for {amount} {currency}")

        try:
            response = requests.post(url, json=payload, auth=self.auth, timeout=10)
            response.raise_for_status()
            data = response.json()
            current_app.logger.info(f"[RAZORPAY] Order created: {data.get('id')}")
            return data
        except requests.HTTPError as e:
            current_app.logger.error(f"[RAZORPAY] Error creating order: {e.response.text}")
            raise
        except requests.RequestException as e:
            current_app.logger.error(f"[RAZORPAY] Unexpected error: {str(e)}")
            raise

    def verify_payment_signature(self, order_id: str, payment_id: str, signature: str) -> bool:
        """Check the checkout callback signature (HMAC of 'order_id|payment_id')."""
        if not (order_id and payment_id and signature):
            return False
        expected = _hmac_sha256(self.key_secret, f"{order_id}|{payment_id}".encode('utf-8'))
        return hmac.compare_digest(expected, signature)

    def verify_webhook_signature(self, body: bytes, signature: str) -> bool:
        """Check the X-Razorpay-Signature header against the raw body."""
        if not self.webhook_secret or not signature:
            return False
        expected = _hmac_sha256(self.webhook_secret, body)
        return hmac.compare_digest(expected, signature)


def get_razorpay_client() -> RazorpayClient:
    return RazorpayClient()
