# backend/iqraquest/services/webhook_verification.py
"""
Inbound webhook signature verification.

Every payment provider callback must pass its provider's check before any
business logic sees it. Verifiers never raise for a bad request: they return
a rejected ``VerificationResult`` carrying a reason for the logs. The reason
is never sent back to the caller.

Providers:
- Paystack: HMAC-SHA512 of the raw body, hex encoded, in ``x-paystack-signature``
- Stripe: timestamped HMAC-SHA256 in ``stripe-signature`` (``t=...,v1=...``)
- PayPal: remote check through PayPal's verify-webhook-signature API
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
import hashlib
import hmac
import json
import logging
import time
from typing import Any, Callable, Dict, Mapping, Optional, Protocol

from pydantic import SecretStr
import stripe

from ..core.config import secret_value, settings
from ..integrations.paypal_client import PayPalClient, PayPalError, get_paypal_client
from ..monitoring.prometheus_metrics import prometheus_metrics

logger = logging.getLogger(__name__)

PAYSTACK_SIGNATURE_HEADER = "x-paystack-signature"
STRIPE_SIGNATURE_HEADER = "stripe-signature"
PAYPAL_TRANSMISSION_ID_HEADER = "paypal-transmission-id"
PAYPAL_TRANSMISSION_TIME_HEADER = "paypal-transmission-time"
PAYPAL_TRANSMISSION_SIG_HEADER = "paypal-transmission-sig"
PAYPAL_CERT_URL_HEADER = "paypal-cert-url"
PAYPAL_AUTH_ALGO_HEADER = "paypal-auth-algo"


class WebhookProvider(str, Enum):
    PAYSTACK = "paystack"
    STRIPE = "stripe"
    PAYPAL = "paypal"


@dataclass(frozen=True)
class WebhookVerificationContext:
    """An inbound request as the verifiers see it. Never persisted."""

    provider: WebhookProvider
    headers: Mapping[str, str]
    raw_body: bytes
    _lowered: Dict[str, str] = field(init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        lowered = {str(key).lower(): value for key, value in self.headers.items()}
        object.__setattr__(self, "_lowered", lowered)

    def header(self, name: str) -> Optional[str]:
        """Case-insensitive header lookup; blank values count as missing."""
        value = self._lowered.get(name.lower())
        if value is None:
            return None
        value = value.strip()
        return value or None


@dataclass(frozen=True)
class VerificationResult:
    accepted: bool
    reason: Optional[str] = None

    @classmethod
    def accept(cls) -> "VerificationResult":
        return cls(accepted=True)

    @classmethod
    def reject(cls, reason: str) -> "VerificationResult":
        return cls(accepted=False, reason=reason)


class WebhookVerifier(Protocol):
    provider: WebhookProvider

    def verify(self, context: WebhookVerificationContext) -> VerificationResult:
        ...


def _resolve_secret(explicit: str | SecretStr | None, configured: Any) -> str:
    if explicit is not None:
        return secret_value(explicit)
    return secret_value(configured)


class PaystackWebhookVerifier:
    """Shared-secret HMAC-SHA512 over the raw body."""

    provider = WebhookProvider.PAYSTACK

    def __init__(self, secret: str | SecretStr | None = None) -> None:
        self._secret = secret

    def verify(self, context: WebhookVerificationContext) -> VerificationResult:
        secret = _resolve_secret(self._secret, settings.paystack_secret_key)
        if not secret:
            return VerificationResult.reject("Paystack secret key not configured")

        signature = context.header(PAYSTACK_SIGNATURE_HEADER)
        if signature is None:
            return VerificationResult.reject("Missing x-paystack-signature header")

        expected = hmac.new(secret.encode("utf-8"), context.raw_body, hashlib.sha512).hexdigest()
        if not hmac.compare_digest(expected, signature):
            return VerificationResult.reject("Paystack signature mismatch")
        return VerificationResult.accept()


def parse_stripe_signature_header(header: str) -> tuple[list[str], list[str]]:
    """Split ``t=...,v1=...,v1=...,v0=...`` into the timestamps and v1 signatures."""
    timestamps: list[str] = []
    signatures: list[str] = []
    for item in header.split(","):
        key, sep, value = item.strip().partition("=")
        if not sep:
            continue
        if key == "t":
            timestamps.append(value)
        elif key == "v1" and value:
            signatures.append(value)
    return timestamps, signatures


class StripeWebhookVerifier:
    """Timestamped HMAC-SHA256, delegated to stripe's ``WebhookSignature``."""

    provider = WebhookProvider.STRIPE

    def __init__(
        self,
        secret: str | SecretStr | None = None,
        tolerance_seconds: Optional[int] = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._secret = secret
        self._tolerance = tolerance_seconds
        self._clock = clock

    @property
    def tolerance_seconds(self) -> int:
        if self._tolerance is not None:
            return self._tolerance
        return settings.stripe_signature_tolerance_seconds

    def verify(self, context: WebhookVerificationContext) -> VerificationResult:
        secret = _resolve_secret(self._secret, settings.stripe_webhook_secret)
        if not secret:
            return VerificationResult.reject("Stripe webhook secret not configured")

        header = context.header(STRIPE_SIGNATURE_HEADER)
        if header is None:
            return VerificationResult.reject("Missing stripe-signature header")

        timestamps, signatures = parse_stripe_signature_header(header)
        if not timestamps:
            return VerificationResult.reject("Stripe signature header has no timestamp")
        # The signed payload must use the same timestamp that is checked for freshness.
        if len(timestamps) > 1:
            return VerificationResult.reject("Stripe signature header has more than one timestamp")
        raw_timestamp = timestamps[0]
        if not signatures:
            return VerificationResult.reject("Stripe signature header has no v1 signature")
        try:
            timestamp = int(raw_timestamp)
        except ValueError:
            return VerificationResult.reject("Stripe signature timestamp is not an integer")

        tolerance = self.tolerance_seconds
        if abs(self._clock() - timestamp) > tolerance:
            return VerificationResult.reject("Stripe signature timestamp outside tolerance")

        try:
            payload = context.raw_body.decode("utf-8")
        except UnicodeDecodeError:
            return VerificationResult.reject("Stripe payload is not valid UTF-8")

        try:
            # Freshness is checked above against the injected clock.
            stripe.WebhookSignature.verify_header(payload, header, secret, None)
        except stripe.SignatureVerificationError:
            return VerificationResult.reject("Stripe signature mismatch")
        return VerificationResult.accept()


class PayPalWebhookVerifier:
    """Remote verification through PayPal; any failure rejects."""

    provider = WebhookProvider.PAYPAL

    def __init__(
        self,
        client: Optional[PayPalClient] = None,
        webhook_id: Optional[str] = None,
    ) -> None:
        self._client = client
        self._webhook_id = webhook_id

    def _resolve_client(self) -> PayPalClient:
        return self._client or get_paypal_client()

    def verify(self, context: WebhookVerificationContext) -> VerificationResult:
        transmission_id = context.header(PAYPAL_TRANSMISSION_ID_HEADER)
        transmission_sig = context.header(PAYPAL_TRANSMISSION_SIG_HEADER)
        webhook_id = (
            self._webhook_id if self._webhook_id is not None else settings.paypal_webhook_id
        )

        if transmission_id is None:
            return VerificationResult.reject("Missing paypal-transmission-id header")
        if transmission_sig is None:
            return VerificationResult.reject("Missing paypal-transmission-sig header")
        if not webhook_id:
            return VerificationResult.reject("PayPal webhook id not configured")

        try:
            webhook_event = json.loads(context.raw_body)
        except (ValueError, UnicodeDecodeError):
            return VerificationResult.reject("PayPal event body is not valid JSON")
        if not isinstance(webhook_event, dict):
            return VerificationResult.reject("PayPal event body is not a JSON object")

        try:
            client = self._resolve_client()
        except ValueError:
            return VerificationResult.reject("PayPal API credentials not configured")

        verification = {
            "auth_algo": context.header(PAYPAL_AUTH_ALGO_HEADER),
            "cert_url": context.header(PAYPAL_CERT_URL_HEADER),
            "transmission_id": transmission_id,
            "transmission_sig": transmission_sig,
            "transmission_time": context.header(PAYPAL_TRANSMISSION_TIME_HEADER),
            "webhook_id": webhook_id,
            "webhook_event": webhook_event,
        }
        try:
            response = client.verify_webhook_signature(verification)
        except PayPalError as exc:
            return VerificationResult.reject(f"PayPal verification call failed: {exc}")

        status = response.get("verification_status")
        if status != "SUCCESS":
            return VerificationResult.reject(f"PayPal verification status {status!r}")
        return VerificationResult.accept()


_VERIFIER_REGISTRY: Dict[WebhookProvider, Callable[[], WebhookVerifier]] = {
    WebhookProvider.PAYSTACK: PaystackWebhookVerifier,
    WebhookProvider.STRIPE: StripeWebhookVerifier,
    WebhookProvider.PAYPAL: PayPalWebhookVerifier,
}


def get_verifier(provider: WebhookProvider | str) -> WebhookVerifier:
    """Return the verifier for ``provider``; unknown providers raise ``ValueError``."""
    return _VERIFIER_REGISTRY[WebhookProvider(provider)]()


def verify_webhook(
    context: WebhookVerificationContext,
    verifier: Optional[WebhookVerifier] = None,
) -> VerificationResult:
    """Run the provider's verifier; an exception inside a verifier counts as a rejection."""
    active = verifier or get_verifier(context.provider)
    try:
        result = active.verify(context)
    except Exception as exc:
        logger.exception(
            "Webhook verifier raised",
            extra={"provider": context.provider.value},
        )
        result = VerificationResult.reject(f"Verifier error: {type(exc).__name__}")

    prometheus_metrics.record_webhook_verification(context.provider.value, result.accepted)
    if not result.accepted:
        logger.warning(
            "Webhook signature rejected",
            extra={"provider": context.provider.value, "reason": result.reason},
        )
    return result
