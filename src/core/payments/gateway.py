"""
Payment gateway signature checks (Razorpay style).

    payment signature = HMAC_SHA256(key_secret, "<order_id>|<payment_id>")
    webhook signature = HMAC_SHA256(webhook_secret, raw request body)

Both are hex digests compared in constant time. With no secret
configured the check is disabled, which is how local development runs.
"""

import hashlib
import hmac
import logging
from typing import Optional


logger = logging.getLogger(__name__)


def sign(secret: str, message: bytes) -> str:
    return hmac.new(secret.encode(), message, hashlib.sha256).hexdigest()


class HmacSignatureVerifier:
    """
    Example:
        verifier = HmacSignatureVerifier(key_secret="s3cr3t")
        verifier.verify_payment("order_1", "pay_1", sign("s3cr3t", b"order_1|pay_1"))
    """

    def __init__(self, key_secret: Optional[str] = None, webhook_secret: Optional[str] = None):
        self.key_secret = key_secret or None
        self.webhook_secret = webhook_secret or None

    def verify_payment(self, order_id: str, payment_id: str, signature: Optional[str]) -> bool:
        if not self.key_secret:
            logger.debug("Payment signature check disabled (no key secret)")
            return True
        if not signature or not order_id or not payment_id:
            return False
        expected = sign(self.key_secret, f"{order_id}|{payment_id}".encode())
        return hmac.compare_digest(expected, signature)

    def verify_webhook(self, body: bytes, signature: Optional[str]) -> bool:
        if not self.webhook_secret:
            logger.debug("Webhook signature check disabled (no webhook secret)")
            return True
        if not signature:
            return False
        return hmac.compare_digest(sign(self.webhook_secret, body), signature)
