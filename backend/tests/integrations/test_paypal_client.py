"""PayPalClient OAuth token caching and error mapping."""

from typing import List

import httpx
import pytest

from iqraquest.integrations.paypal_client import PayPalClient, PayPalError


class FakeClock:
    def __init__(self, start: float = 1000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now


def _client(handler, clock=None) -> PayPalClient:
    return PayPalClient(
        client_id="client-id",
        client_secret="client-secret",
        base_url="https://api-m.sandbox.paypal.com/",
        transport=httpx.MockTransport(handler),
        clock=clock or FakeClock(),
    )


def _token_handler(calls: List[httpx.Request], expires_in: int = 3600):
    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(request)
        return httpx.Response(
            200, json={"access_token": f"token-{len(calls)}", "expires_in": expires_in}
        )

    return handler


def test_token_request_uses_basic_auth_and_client_credentials():
    calls: List[httpx.Request] = []
    token = _client(_token_handler(calls)).get_access_token()

    assert token == "token-1"
    request = calls[0]
    assert request.method == "POST"
    assert str(request.url) == "https://api-m.sandbox.paypal.com/v1/oauth2/token"
    assert request.headers["Authorization"].startswith("Basic ")
    assert request.content == b"grant_type=client_credentials"


def test_token_is_cached_until_shortly_before_expiry():
    calls: List[httpx.Request] = []
    clock = FakeClock()
    client = _client(_token_handler(calls, expires_in=3600), clock=clock)

    assert client.get_access_token() == "token-1"
    clock.now += 3600 - 61
    assert client.get_access_token() == "token-1"
    assert len(calls) == 1

    clock.now += 2
    assert client.get_access_token() == "token-2"
    assert len(calls) == 2


def test_clear_token_forces_refresh():
    calls: List[httpx.Request] = []
    client = _client(_token_handler(calls))
    client.get_access_token()
    client.clear_token()
    client.get_access_token()
    assert len(calls) == 2


def test_missing_access_token_raises():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={"expires_in": 3600})

    with pytest.raises(PayPalError):
        _client(handler).get_access_token()


def test_http_error_maps_to_paypal_error_with_status():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(503, text="unavailable")

    with pytest.raises(PayPalError) as exc_info:
        _client(handler).request("GET", "/v1/anything")
    assert exc_info.value.status_code == 503
    assert exc_info.value.error_body == "unavailable"


def test_connection_error_maps_to_paypal_error():
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("refused", request=request)

    with pytest.raises(PayPalError) as exc_info:
        _client(handler).request("GET", "/v1/anything")
    assert exc_info.value.status_code is None


def test_malformed_json_maps_to_paypal_error():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, content=b"<html>", headers={"content-type": "text/html"})

    with pytest.raises(PayPalError):
        _client(handler).request("GET", "/v1/anything")


@pytest.mark.parametrize("client_id,secret", [("", "secret"), ("id", "")])
def test_missing_credentials_rejected(client_id: str, secret: str):
    with pytest.raises(ValueError):
        PayPalClient(client_id=client_id, client_secret=secret)
