# backend/iqraquest/routes/v1/payment_webhooks.py
"""
Payment provider webhook endpoints (v1).

Mounted under /api/v1/webhooks. Every endpoint sits behind the
``verified_webhook`` signature gate; a request that fails verification is
answered with 401 before the handler body runs.
"""

from __future__ import annotations

import json
import logging
from typing import Any

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from ...api.dependencies.services import get_payment_webhook_service
from ...api.dependencies.webhooks import verified_webhook
from ...schemas.webhook_responses import WebhookAckResponse, WebhookErrorResponse
from ...services.payment_webhook_service import InvalidWebhookPayload, PaymentWebhookService
from ...services.webhook_verification import WebhookProvider, WebhookVerificationContext

logger = logging.getLogger(__name__)

# v1 router - mounted under /api/v1/webhooks
router = APIRouter(tags=["webhooks"])

_ERROR_RESPONSES: dict[int | str, dict[str, Any]] = {
    400: {"model": WebhookErrorResponse},
    401: {"model": WebhookErrorResponse},
    500: {"model": WebhookErrorResponse},
}


def _error(status_code: int, message: str) -> JSONResponse:
    return JSONResponse({"error": message}, status_code=status_code)


def _handle(
    context: WebhookVerificationContext, service: PaymentWebhookService
) -> WebhookAckResponse | JSONResponse:
    provider = context.provider
    try:
        payload = json.loads(context.raw_body)
    except (ValueError, UnicodeDecodeError):
        logger.warning("Webhook body is not valid JSON", extra={"provider": provider.value})
        return _error(400, "Invalid payload")
    if not isinstance(payload, dict):
        return _error(400, "Invalid payload")

    try:
        result = service.handle_event(provider, payload, headers=context.headers)
    except InvalidWebhookPayload as exc:
        logger.warning(
            "Webhook payload rejected",
            extra={"provider": provider.value, "error": exc.message},
        )
        return _error(400, "Invalid payload")
    except Exception:
        logger.exception("Webhook processing failed", extra={"provider": provider.value})
        return _error(500, "Processing failed")

    return WebhookAckResponse(ok=True, status=result.status)  # type: ignore[arg-type]


@router.post("/paystack", response_model=WebhookAckResponse, responses=_ERROR_RESPONSES)
def paystack_webhook(
    context: WebhookVerificationContext = Depends(verified_webhook(WebhookProvider.PAYSTACK)),
    service: PaymentWebhookService = Depends(get_payment_webhook_service),
) -> WebhookAckResponse | JSONResponse:
    """Paystack transfer events, signed with HMAC-SHA512."""
    return _handle(context, service)


@router.post("/stripe", response_model=WebhookAckResponse, responses=_ERROR_RESPONSES)
def stripe_webhook(
    context: WebhookVerificationContext = Depends(verified_webhook(WebhookProvider.STRIPE)),
    service: PaymentWebhookService = Depends(get_payment_webhook_service),
) -> WebhookAckResponse | JSONResponse:
    """Stripe payout and transfer events."""
    return _handle(context, service)


@router.post("/paypal", response_model=WebhookAckResponse, responses=_ERROR_RESPONSES)
def paypal_webhook(
    context: WebhookVerificationContext = Depends(verified_webhook(WebhookProvider.PAYPAL)),
    service: PaymentWebhookService = Depends(get_payment_webhook_service),
) -> WebhookAckResponse | JSONResponse:
    """PayPal payout item events, verified remotely."""
    return _handle(context, service)
