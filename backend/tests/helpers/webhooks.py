"""Shared secrets and signing helpers for webhook tests."""

import hashlib
import hmac

PAYSTACK_TEST_SECRET = "sk_test_paystack_secret"
STRIPE_TEST_SECRET = "whsec_test_secret"
PAYPAL_TEST_WEBHOOK_ID = "WH-TEST-0001"


def paystack_signature(body: bytes, secret: str = PAYSTACK_TEST_SECRET) -> str:
    return hmac.new(secret.encode(), body, hashlib.sha512).hexdigest()


def stripe_v1(body: bytes, timestamp: int, secret: str = STRIPE_TEST_SECRET) -> str:
    signed = f"{timestamp}.{body.decode()}".encode()
    return hmac.new(secret.encode(), signed, hashlib.sha256).hexdigest()


def stripe_header(body: bytes, timestamp: int, secret: str = STRIPE_TEST_SECRET) -> str:
    return f"t={timestamp},v1={stripe_v1(body, timestamp, secret)}"
