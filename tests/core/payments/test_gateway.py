"""
Unit tests for the HMAC gateway signature checks.
"""

import hashlib
import hmac

from src.core.payments.gateway import HmacSignatureVerifier, sign


class TestSign:

    def test_hex_sha256(self):
        expected = hmac.new(b"secret", b"order_1|pay_1", hashlib.sha256).hexdigest()

        assert sign("secret", b"order_1|pay_1") == expected


class TestHmacSignatureVerifier:

    def test_valid_payment_signature(self):
        verifier = HmacSignatureVerifier(key_secret="secret")

        assert verifier.verify_payment("order_1", "pay_1", sign("secret", b"order_1|pay_1"))

    def test_tampered_payment_signature(self):
        verifier = HmacSignatureVerifier(key_secret="secret")

        assert not verifier.verify_payment("order_1", "pay_2", sign("secret", b"order_1|pay_1"))
        assert not verifier.verify_payment("order_1", "pay_1", None)

    def test_webhook_signature(self):
        verifier = HmacSignatureVerifier(webhook_secret="hook")
        body = b'{"event": "payment.captured"}'

        assert verifier.verify_webhook(body, sign("hook", body))
        assert not verifier.verify_webhook(body, sign("other", body))
        assert not verifier.verify_webhook(body, "")

    def test_checks_disabled_without_secrets(self):
        verifier = HmacSignatureVerifier(key_secret="", webhook_secret=None)

        assert verifier.verify_payment("order_1", "pay_1", None)
        assert verifier.verify_webhook(b"{}", None)
