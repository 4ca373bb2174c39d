"""Minimal PayPal REST client for webhook signature verification."""

from __future__ import annotations

from functools import lru_cache
import json
import logging
import threading
import time
from typing import Any, Callable, Dict, Optional, cast

import httpx
from pydantic import SecretStr

from ..core.config import secret_value, settings

logger = logging.getLogger(__name__)

# Refresh this many seconds before PayPal's stated expiry.
TOKEN_EXPIRY_MARGIN_SECONDS = 60


class PayPalError(RuntimeError):
    """Raised when the PayPal API cannot be reached or responds with an error."""

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        *,
        error_body: Any | None = None,
    ) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.error_body = error_body


class PayPalClient:
    """Thin client for the PayPal OAuth and notifications endpoints."""

    def __init__(
        self,
        *,
        client_id: str,
        client_secret: str | SecretStr,
        base_url: str = "https://api-m.sandbox.paypal.com",
        timeout: float = 10.0,
        transport: httpx.BaseTransport | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        secret = (
            client_secret.get_secret_value()
            if isinstance(client_secret, SecretStr)
            else client_secret
        )
        if not client_id or not secret:
            raise ValueError("PayPal client id and secret must be provided")

        self._client_id = client_id
        self._client_secret = secret
        self._base_url = base_url.rstrip("/")
        self._timeout = timeout
        self._transport = transport
        self._clock = clock
        self._token: Optional[str] = None
        self._token_expires_at = 0.0
        self._token_lock = threading.Lock()

    def get_access_token(self) -> str:
        """Return a cached OAuth token, fetching a new one when it is about to expire."""
        with self._token_lock:
            if self._token and self._clock() < self._token_expires_at:
                return self._token

            payload = self.request(
                "POST",
                "/v1/oauth2/token",
                form_body={"grant_type": "client_credentials"},
                auth=httpx.BasicAuth(self._client_id, self._client_secret),
            )
            token = payload.get("access_token")
            if not isinstance(token, str) or not token:
                raise PayPalError("PayPal token response did not include an access token")
            try:
                expires_in = int(payload.get("expires_in", 0))
            except (TypeError, ValueError):
                expires_in = 0
            self._token = token
            self._token_expires_at = self._clock() + max(
                expires_in - TOKEN_EXPIRY_MARGIN_SECONDS, 0
            )
            logger.debug("Fetched PayPal access token", extra={"expires_in": expires_in})
            return token

    def clear_token(self) -> None:
        with self._token_lock:
            self._token = None
            self._token_expires_at = 0.0

    def verify_webhook_signature(self, verification: Dict[str, Any]) -> Dict[str, Any]:
        """Call ``/v1/notifications/verify-webhook-signature`` and return the parsed reply."""
        token = self.get_access_token()
        return self.request(
            "POST",
            "/v1/notifications/verify-webhook-signature",
            json_body=verification,
            headers={"Authorization": f"Bearer {token}"},
        )

    def request(
        self,
        method: str,
        path: str,
        *,
        json_body: Dict[str, Any] | None = None,
        form_body: Dict[str, str] | None = None,
        headers: Dict[str, str] | None = None,
        auth: httpx.Auth | None = None,
    ) -> Dict[str, Any]:
        """Perform a raw PayPal API request and return the parsed JSON payload."""

        url = f"{self._base_url}{path}"
        with httpx.Client(
            timeout=self._timeout,
            transport=self._transport,
            headers={"Accept": "application/json"},
        ) as client:
            try:
                response = client.request(
                    method,
                    url,
                    json=json_body,
                    data=form_body,
                    headers=headers,
                    auth=auth,
                )
                response.raise_for_status()
            except httpx.HTTPStatusError as exc:
                status = exc.response.status_code
                logger.error(
                    "PayPal API error %s for %s %s: %s",
                    status,
                    method,
                    path,
                    exc.response.text[:500],
                )
                raise PayPalError(
                    f"PayPal API responded with status {status}",
                    status_code=status,
                    error_body=exc.response.text[:500],
                ) from exc
            except httpx.TimeoutException as exc:
                logger.error("PayPal request timed out for %s %s", method, path)
                raise PayPalError("PayPal request timed out") from exc
            except httpx.RequestError as exc:
                logger.error("PayPal request failure for %s %s: %s", method, path, str(exc))
                raise PayPalError("Failed to reach PayPal API") from exc

        try:
            payload = response.json()
        except json.JSONDecodeError as exc:
            logger.error("Invalid JSON from PayPal for %s %s", method, path)
            raise PayPalError("Received malformed JSON from PayPal") from exc
        if not isinstance(payload, dict):
            raise PayPalError("Unexpected PayPal response shape")
        return cast(Dict[str, Any], payload)


@lru_cache(maxsize=1)
def get_paypal_client() -> PayPalClient:
    """Process-wide client so the OAuth token cache is shared between requests."""
    return PayPalClient(
        client_id=settings.paypal_client_id,
        client_secret=secret_value(settings.paypal_client_secret),
        base_url=settings.paypal_base_url,
        timeout=settings.paypal_timeout_seconds,
    )
