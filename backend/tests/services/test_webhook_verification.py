"""Signature checks for the Paystack, Stripe and PayPal webhook verifiers."""

import json
from typing import Any, Callable, Dict, List

import httpx
import pytest

from iqraquest.integrations.paypal_client import PayPalClient
from iqraquest.services.webhook_verification import (
    PayPalWebhookVerifier,
    PaystackWebhookVerifier,
    StripeWebhookVerifier,
    VerificationResult,
    WebhookProvider,
    WebhookVerificationContext,
    get_verifier,
    parse_stripe_signature_header,
    verify_webhook,
)
from tests.helpers.webhooks import PAYPAL_TEST_WEBHOOK_ID, paystack_signature, stripe_v1

BODY = b'{"event":"transfer.success","data":{"id":42,"reference":"APR-1"}}'
NOW = 1_700_000_000


def _context(provider: WebhookProvider, headers: Dict[str, str], body: bytes = BODY):
    return WebhookVerificationContext(provider=provider, headers=headers, raw_body=body)


# ---------------------------------------------------------------------------
# Paystack
# ---------------------------------------------------------------------------


def test_paystack_accepts_valid_signature():
    headers = {"x-paystack-signature": paystack_signature(BODY)}
    context = _context(WebhookProvider.PAYSTACK, headers)
    assert PaystackWebhookVerifier().verify(context).accepted


def test_paystack_header_lookup_is_case_insensitive():
    headers = {"X-Paystack-Signature": paystack_signature(BODY)}
    context = _context(WebhookProvider.PAYSTACK, headers)
    assert PaystackWebhookVerifier().verify(context).accepted


@pytest.mark.parametrize("position", [0, 17, 127])
def test_paystack_rejects_single_character_mutation(position: int):
    signature = paystack_signature(BODY)
    flipped = "0" if signature[position] != "0" else "1"
    mutated = signature[:position] + flipped + signature[position + 1 :]
    result = PaystackWebhookVerifier().verify(
        _context(WebhookProvider.PAYSTACK, {"x-paystack-signature": mutated})
    )
    assert not result.accepted


def test_paystack_rejects_modified_body():
    signature = paystack_signature(BODY)
    result = PaystackWebhookVerifier().verify(
        _context(WebhookProvider.PAYSTACK, {"x-paystack-signature": signature}, BODY + b" ")
    )
    assert not result.accepted


@pytest.mark.parametrize(
    "headers", [{}, {"x-paystack-signature": ""}, {"x-paystack-signature": "  "}]
)
def test_paystack_rejects_missing_or_blank_header(headers: Dict[str, str]):
    result = PaystackWebhookVerifier().verify(_context(WebhookProvider.PAYSTACK, headers))
    assert not result.accepted
    assert "Missing" in (result.reason or "")


def test_paystack_rejects_when_secret_not_configured():
    headers = {"x-paystack-signature": paystack_signature(BODY)}
    context = _context(WebhookProvider.PAYSTACK, headers)
    result = PaystackWebhookVerifier(secret="").verify(context)
    assert not result.accepted


def test_paystack_rejects_signature_made_with_other_secret():
    context = _context(
        WebhookProvider.PAYSTACK,
        {"x-paystack-signature": paystack_signature(BODY, secret="sk_live_other")},
    )
    assert not PaystackWebhookVerifier().verify(context).accepted


# ---------------------------------------------------------------------------
# Stripe
# ---------------------------------------------------------------------------


def _stripe_verifier() -> StripeWebhookVerifier:
    return StripeWebhookVerifier(tolerance_seconds=300, clock=lambda: float(NOW))


def _verify_stripe(header: str, body: bytes = BODY) -> VerificationResult:
    context = _context(WebhookProvider.STRIPE, {"stripe-signature": header}, body)
    return _stripe_verifier().verify(context)


def test_stripe_accepts_fresh_signature():
    header = f"t={NOW},v1={stripe_v1(BODY, NOW)}"
    result = _verify_stripe(header)
    assert result.accepted


@pytest.mark.parametrize("offset", [-299, 299])
def test_stripe_accepts_timestamps_inside_tolerance(offset: int):
    timestamp = NOW + offset
    header = f"t={timestamp},v1={stripe_v1(BODY, timestamp)}"
    result = _verify_stripe(header)
    assert result.accepted


@pytest.mark.parametrize("offset", [-301, 301])
def test_stripe_rejects_timestamps_outside_tolerance(offset: int):
    timestamp = NOW + offset
    header = f"t={timestamp},v1={stripe_v1(BODY, timestamp)}"
    result = _verify_stripe(header)
    assert not result.accepted
    assert "tolerance" in (result.reason or "")


def test_stripe_accepts_when_any_v1_signature_matches():
    good = stripe_v1(BODY, NOW)
    header = f"t={NOW},v1={'0' * 64},v1={good},v0=legacy"
    result = _verify_stripe(header)
    assert result.accepted


def test_stripe_rejects_when_no_v1_signature_matches():
    header = f"t={NOW},v1={'0' * 64},v1={'f' * 64}"
    result = _verify_stripe(header)
    assert not result.accepted


@pytest.mark.parametrize(
    "header",
    [
        "garbage",
        f"v1={'a' * 64}",
        f"t={NOW}",
        f"t=soon,v1={'a' * 64}",
        f"t={NOW},v0={'a' * 64}",
    ],
)
def test_stripe_rejects_malformed_headers(header: str):
    result = _verify_stripe(header)
    assert not result.accepted


def test_stripe_rejects_missing_header():
    assert not _stripe_verifier().verify(_context(WebhookProvider.STRIPE, {})).accepted


@pytest.mark.parametrize("fresh_position", ["after", "before"])
def test_stripe_rejects_expired_signature_with_extra_timestamp(fresh_position: str):
    expired = NOW - 3600
    captured = f"t={expired},v1={stripe_v1(BODY, expired)}"
    if fresh_position == "after":
        header = f"{captured},t={NOW}"
    else:
        header = f"t={NOW},{captured}"
    result = _verify_stripe(header)
    assert not result.accepted
    assert "more than one timestamp" in (result.reason or "")


def test_stripe_rejects_repeated_timestamp_even_when_identical():
    header = f"t={NOW},v1={stripe_v1(BODY, NOW)},t={NOW}"
    assert not _verify_stripe(header).accepted


def test_stripe_rejects_tampered_body():
    header = f"t={NOW},v1={stripe_v1(BODY, NOW)}"
    result = _verify_stripe(header, BODY.replace(b"42", b"43"))
    assert not result.accepted


def test_parse_stripe_signature_header_collects_all_v1_values():
    timestamps, signatures = parse_stripe_signature_header("t=12, v1=aa ,v1=bb,v0=cc,junk")
    assert timestamps == ["12"]
    assert signatures == ["aa", "bb"]


# ---------------------------------------------------------------------------
# PayPal
# ---------------------------------------------------------------------------

PAYPAL_HEADERS = {
    "paypal-transmission-id": "tx-123",
    "paypal-transmission-time": "2026-10-19T10:00:00Z",
    "paypal-transmission-sig": "c2lnbmF0dXJl",
    "paypal-cert-url": "https://api.paypal.com/v1/notifications/certs/CERT-1",
    "paypal-auth-algo": "SHA256withRSA",
}
PAYPAL_BODY = json.dumps(
    {"id": "WH-EVT-1", "event_type": "PAYMENT.PAYOUTS-ITEM.SUCCEEDED", "resource": {}}
).encode()


def _paypal_client(handler: Callable[[httpx.Request], httpx.Response]) -> PayPalClient:
    return PayPalClient(
        client_id="client-id",
        client_secret="client-secret",
        base_url="https://api-m.sandbox.paypal.com",
        transport=httpx.MockTransport(handler),
    )


def _paypal_handler(
    status: str, seen: List[httpx.Request]
) -> Callable[[httpx.Request], httpx.Response]:
    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        if request.url.path == "/v1/oauth2/token":
            return httpx.Response(200, json={"access_token": "A21AA", "expires_in": 32400})
        return httpx.Response(200, json={"verification_status": status})

    return handler


def test_paypal_accepts_success_status_and_sends_expected_payload():
    seen: List[httpx.Request] = []
    verifier = PayPalWebhookVerifier(client=_paypal_client(_paypal_handler("SUCCESS", seen)))
    result = verifier.verify(_context(WebhookProvider.PAYPAL, PAYPAL_HEADERS, PAYPAL_BODY))

    assert result.accepted
    verify_call = seen[-1]
    assert verify_call.url.path == "/v1/notifications/verify-webhook-signature"
    assert verify_call.headers["Authorization"] == "Bearer A21AA"
    sent: Dict[str, Any] = json.loads(verify_call.content)
    assert sent["webhook_id"] == PAYPAL_TEST_WEBHOOK_ID
    assert sent["transmission_id"] == "tx-123"
    assert sent["transmission_sig"] == "c2lnbmF0dXJl"
    assert sent["auth_algo"] == "SHA256withRSA"
    assert sent["webhook_event"]["id"] == "WH-EVT-1"


def test_paypal_rejects_failure_status():
    verifier = PayPalWebhookVerifier(client=_paypal_client(_paypal_handler("FAILURE", [])))
    result = verifier.verify(_context(WebhookProvider.PAYPAL, PAYPAL_HEADERS, PAYPAL_BODY))
    assert not result.accepted


@pytest.mark.parametrize("missing", ["paypal-transmission-id", "paypal-transmission-sig"])
def test_paypal_rejects_missing_required_headers_without_calling_api(missing: str):
    seen: List[httpx.Request] = []
    headers = {k: v for k, v in PAYPAL_HEADERS.items() if k != missing}
    verifier = PayPalWebhookVerifier(client=_paypal_client(_paypal_handler("SUCCESS", seen)))
    result = verifier.verify(_context(WebhookProvider.PAYPAL, headers, PAYPAL_BODY))
    assert not result.accepted
    assert seen == []


def test_paypal_rejects_when_webhook_id_not_configured():
    seen: List[httpx.Request] = []
    verifier = PayPalWebhookVerifier(
        client=_paypal_client(_paypal_handler("SUCCESS", seen)), webhook_id=""
    )
    result = verifier.verify(_context(WebhookProvider.PAYPAL, PAYPAL_HEADERS, PAYPAL_BODY))
    assert not result.accepted
    assert seen == []


def test_paypal_rejects_on_timeout():
    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.path == "/v1/oauth2/token":
            return httpx.Response(200, json={"access_token": "A21AA", "expires_in": 32400})
        raise httpx.ReadTimeout("timed out", request=request)

    verifier = PayPalWebhookVerifier(client=_paypal_client(handler))
    result = verifier.verify(_context(WebhookProvider.PAYPAL, PAYPAL_HEADERS, PAYPAL_BODY))
    assert not result.accepted
    assert "timed out" in (result.reason or "")


@pytest.mark.parametrize("status_code", [400, 401, 500, 503])
def test_paypal_rejects_non_2xx_responses(status_code: int):
    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.path == "/v1/oauth2/token":
            return httpx.Response(200, json={"access_token": "A21AA", "expires_in": 32400})
        return httpx.Response(status_code, json={"name": "ERROR"})

    verifier = PayPalWebhookVerifier(client=_paypal_client(handler))
    result = verifier.verify(_context(WebhookProvider.PAYPAL, PAYPAL_HEADERS, PAYPAL_BODY))
    assert not result.accepted


def test_paypal_rejects_when_token_request_fails():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(401, json={"error": "invalid_client"})

    verifier = PayPalWebhookVerifier(client=_paypal_client(handler))
    result = verifier.verify(_context(WebhookProvider.PAYPAL, PAYPAL_HEADERS, PAYPAL_BODY))
    assert not result.accepted


def test_paypal_rejects_non_json_body():
    seen: List[httpx.Request] = []
    verifier = PayPalWebhookVerifier(client=_paypal_client(_paypal_handler("SUCCESS", seen)))
    result = verifier.verify(_context(WebhookProvider.PAYPAL, PAYPAL_HEADERS, b"not json"))
    assert not result.accepted
    assert seen == []


# ---------------------------------------------------------------------------
# Dispatch
# ---------------------------------------------------------------------------


def test_get_verifier_returns_provider_specific_instances():
    assert isinstance(get_verifier("paystack"), PaystackWebhookVerifier)
    assert isinstance(get_verifier(WebhookProvider.STRIPE), StripeWebhookVerifier)
    assert isinstance(get_verifier("paypal"), PayPalWebhookVerifier)


def test_get_verifier_rejects_unknown_provider():
    with pytest.raises(ValueError):
        get_verifier("flutterwave")


def test_verify_webhook_treats_verifier_exception_as_rejection():
    class ExplodingVerifier:
        provider = WebhookProvider.PAYSTACK

        def verify(self, context: WebhookVerificationContext) -> VerificationResult:
            raise RuntimeError("boom")

    context = _context(WebhookProvider.PAYSTACK, {})
    result = verify_webhook(context, verifier=ExplodingVerifier())
    assert not result.accepted
    assert "RuntimeError" in (result.reason or "")


def test_verify_webhook_uses_registry_by_default():
    headers = {"x-paystack-signature": paystack_signature(BODY)}
    context = _context(WebhookProvider.PAYSTACK, headers)
    assert verify_webhook(context).accepted
