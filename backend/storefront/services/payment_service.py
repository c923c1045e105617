"""
Razorpay gateway wrapper and UPI QR helpers.

Flow:
1. Customer places an order -> /payment/razorpay/create-order returns a Razorpay order id
2. Frontend opens Razorpay checkout with that id
3. Checkout hands back payment id + signature -> /payment/verify checks the HMAC
4. Razorpay webhook -> backup confirmation if the browser never came back
"""
import asyncio
import hashlib
import hmac
from decimal import Decimal
from typing import Any, Dict, Optional
from urllib.parse import quote, urlencode

import razorpay

from storefront.core.config import settings
from storefront.core.exceptions import PaymentError, PaymentGatewayUnavailableError
from storefront.core.logging_config import logger
from storefront.services.pricing import money


def _hmac_sha256(secret: str, message: bytes) -> str:
    return hmac.new(secret.encode(), message, hashlib.sha256).hexdigest()


def verify_payment_signature(razorpay_order_id: str, razorpay_payment_id: str, signature: str,
                             secret: Optional[str] = None) -> bool:
    """Checkout signature: HMAC-SHA256 of "<order_id>|<payment_id>" with the key secret"""
    secret = secret if secret is not None else settings.RAZORPAY_KEY_SECRET
    if not secret or not signature:
        return False
    expected = _hmac_sha256(secret, f"{razorpay_order_id}|{razorpay_payment_id}".encode())
    return hmac.compare_digest(expected, signature)


def verify_webhook_signature(body: bytes, signature: Optional[str], secret: Optional[str] = None) -> bool:
    """Webhook signature: HMAC-SHA256 of the raw request body with the webhook secret"""
    secret = secret if secret is not None else settings.RAZORPAY_WEBHOOK_SECRET
    if not secret or not signature:
        return False
    return hmac.compare_digest(_hmac_sha256(secret, body), signature)


def build_upi_string(order_id: str, amount: Decimal,
                     upi_id: Optional[str] = None, merchant_name: Optional[str] = None) -> str:
    """upi://pay deep link rendered as a QR code by the frontend"""
    params = {
        "pa": upi_id or settings.UPI_ID,
        "pn": merchant_name or settings.MERCHANT_NAME,
        "am": str(money(amount)),
        "cu": "INR",
        "tn": f"Payment for Order {order_id}",
    }
    return "upi://pay?" + urlencode(params, quote_via=quote)


class RazorpayGateway:
    """Lazily builds the SDK client so missing keys only fail payment routes"""

    def __init__(self):
        self._client: Optional[razorpay.Client] = None

    @property
    def is_configured(self) -> bool:
        return settings.razorpay_configured

    @property
    def client(self) -> razorpay.Client:
        if not self.is_configured:
            raise PaymentGatewayUnavailableError()
        if self._client is None:
            self._client = razorpay.Client(auth=(settings.RAZORPAY_KEY_ID, settings.RAZORPAY_KEY_SECRET))
        return self._client

    async def create_order(self, amount_paise: int, receipt: str, notes: Dict[str, Any]) -> Dict[str, Any]:
        client = self.client
        order_data = {
            "amount": amount_paise,
            "currency": "INR",
            "receipt": receipt[:40],  # Razorpay receipt limit
            "notes": notes,
        }
        try:
            # SDK is synchronous
            razorpay_order = await asyncio.to_thread(client.order.create, data=order_data)
        except Exception as e:
            logger.error(f"[Payment] Razorpay order creation failed for receipt {receipt}: {e}")
            raise PaymentError("Failed to create payment order. Please try again.")

        logger.log_payment_event("razorpay_order_created", receipt, amount=amount_paise,
                                 razorpay_order_id=razorpay_order.get("id"))
        return razorpay_order


razorpay_gateway = RazorpayGateway()
