# backend/iqraquest/api/dependencies/webhooks.py
"""
Signature gate for inbound payment webhooks.

Usage:
    @router.post("/paystack")
    def paystack_webhook(
        context: WebhookVerificationContext = Depends(verified_webhook(WebhookProvider.PAYSTACK)),
    ): ...

The dependency runs before the endpoint body, so no business logic executes
for a request that fails verification.
"""

import logging
from typing import Awaitable, Callable

from fastapi import Request
from starlette.concurrency import run_in_threadpool

from ...core.exceptions import WebhookVerificationError
from ...services.webhook_verification import (
    WebhookProvider,
    WebhookVerificationContext,
    verify_webhook,
)

logger = logging.getLogger(__name__)


def verified_webhook(
    provider: WebhookProvider,
) -> Callable[[Request], Awaitable[WebhookVerificationContext]]:
    """Build a dependency that verifies ``provider``'s signature on the raw body."""

    async def dependency(request: Request) -> WebhookVerificationContext:
        raw_body = await request.body()
        context = WebhookVerificationContext(
            provider=provider,
            headers=dict(request.headers),
            raw_body=raw_body,
        )
        # PayPal verification does blocking network I/O.
        result = await run_in_threadpool(verify_webhook, context)
        if not result.accepted:
            raise WebhookVerificationError(provider.value, result.reason)
        logger.debug("Webhook signature verified", extra={"provider": provider.value})
        return context

    return dependency
