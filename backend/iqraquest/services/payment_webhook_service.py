# backend/iqraquest/services/payment_webhook_service.py
"""
Downstream handling for verified payment provider webhooks.

Events are recorded in the webhook ledger once per ``(source, event_id)``.
Transfer and payout outcome events settle or release the matching payout
request; all other event types are recorded as ignored.
"""

from __future__ import annotations

from dataclasses import dataclass
import logging
import time
from typing import Any, Mapping, Optional

from sqlalchemy.orm import Session

from ..core.exceptions import BusinessRuleException
from ..models.payout_request import PayoutRequest, PayoutStatus
from ..models.webhook_event import WebhookEvent, WebhookEventStatus
from ..repositories.factory import RepositoryFactory
from .base import BaseService
from .payout_service import PayoutService
from .webhook_ledger_service import WebhookLedgerService
from .webhook_verification import WebhookProvider

logger = logging.getLogger(__name__)

PAYSTACK_SUCCESS_EVENTS = frozenset({"transfer.success"})
PAYSTACK_FAILURE_EVENTS = frozenset({"transfer.failed", "transfer.reversed"})
STRIPE_SUCCESS_EVENTS = frozenset({"payout.paid", "transfer.paid"})
STRIPE_FAILURE_EVENTS = frozenset({"payout.failed", "payout.canceled", "transfer.failed"})
PAYPAL_SUCCESS_EVENTS = frozenset({"PAYMENT.PAYOUTS-ITEM.SUCCEEDED", "PAYOUT-ITEM.SUCCEEDED"})
PAYPAL_FAILURE_EVENTS = frozenset(
    {
        "PAYMENT.PAYOUTS-ITEM.FAILED",
        "PAYMENT.PAYOUTS-ITEM.BLOCKED",
        "PAYMENT.PAYOUTS-ITEM.RETURNED",
        "PAYOUT-ITEM.FAILED",
        "PAYOUT-ITEM.BLOCKED",
    }
)

RESULT_PROCESSED = "processed"
RESULT_IGNORED = "ignored"
RESULT_DUPLICATE = "duplicate"


class InvalidWebhookPayload(BusinessRuleException):
    """A verified webhook whose body lacks the fields needed to record it."""

    def __init__(self, provider: str, message: str) -> None:
        super().__init__(message, code="INVALID_WEBHOOK_PAYLOAD", details={"provider": provider})


@dataclass(frozen=True)
class PayoutOutcome:
    reference: str
    succeeded: bool
    failure_reason: Optional[str] = None


@dataclass(frozen=True)
class ParsedWebhookEvent:
    event_id: str
    event_type: str
    outcome: Optional[PayoutOutcome] = None


@dataclass(frozen=True)
class WebhookHandleResult:
    status: str
    event_id: str
    payout_request_id: Optional[str] = None


def _as_dict(value: Any) -> dict[str, Any]:
    return value if isinstance(value, dict) else {}


def _parse_paystack(payload: Mapping[str, Any]) -> ParsedWebhookEvent:
    event_type = payload.get("event")
    data = _as_dict(payload.get("data"))
    if not event_type:
        raise InvalidWebhookPayload("paystack", "Paystack event has no type")
    identifier = data.get("id") or data.get("reference") or data.get("transfer_code")
    if not identifier:
        raise InvalidWebhookPayload("paystack", "Paystack event has no identifier")
    reference = data.get("reference")
    outcome = None
    if reference and event_type in PAYSTACK_SUCCESS_EVENTS:
        outcome = PayoutOutcome(reference=str(reference), succeeded=True)
    elif reference and event_type in PAYSTACK_FAILURE_EVENTS:
        outcome = PayoutOutcome(
            reference=str(reference),
            succeeded=False,
            failure_reason=data.get("reason") or data.get("message") or "Transfer failed",
        )
    return ParsedWebhookEvent(
        event_id=f"{event_type}:{identifier}", event_type=str(event_type), outcome=outcome
    )


def _parse_stripe(payload: Mapping[str, Any]) -> ParsedWebhookEvent:
    event_id = payload.get("id")
    event_type = payload.get("type")
    if not event_id or not event_type:
        raise InvalidWebhookPayload("stripe", "Stripe event has no id or type")
    obj = _as_dict(_as_dict(payload.get("data")).get("object"))
    metadata = _as_dict(obj.get("metadata"))
    reference = metadata.get("payout_request_uuid") or obj.get("id")
    outcome = None
    if reference and event_type in STRIPE_SUCCESS_EVENTS:
        outcome = PayoutOutcome(reference=str(reference), succeeded=True)
    elif reference and event_type in STRIPE_FAILURE_EVENTS:
        outcome = PayoutOutcome(
            reference=str(reference),
            succeeded=False,
            failure_reason=obj.get("failure_message") or "Payout failed",
        )
    return ParsedWebhookEvent(event_id=str(event_id), event_type=str(event_type), outcome=outcome)


def _parse_paypal(payload: Mapping[str, Any]) -> ParsedWebhookEvent:
    event_id = payload.get("id")
    event_type = payload.get("event_type")
    if not event_id or not event_type:
        raise InvalidWebhookPayload("paypal", "PayPal event has no id or event_type")
    resource = _as_dict(payload.get("resource"))
    item = _as_dict(resource.get("payout_item"))
    reference = item.get("sender_item_id") or resource.get("payout_item_id")
    outcome = None
    if reference and event_type in PAYPAL_SUCCESS_EVENTS:
        outcome = PayoutOutcome(reference=str(reference), succeeded=True)
    elif reference and event_type in PAYPAL_FAILURE_EVENTS:
        errors = resource.get("errors")
        message = None
        if isinstance(errors, dict):
            message = errors.get("message")
        elif isinstance(errors, list) and errors and isinstance(errors[0], dict):
            message = errors[0].get("message")
        outcome = PayoutOutcome(
            reference=str(reference),
            succeeded=False,
            failure_reason=message or "Payout failed",
        )
    return ParsedWebhookEvent(event_id=str(event_id), event_type=str(event_type), outcome=outcome)


_PARSERS = {
    WebhookProvider.PAYSTACK: _parse_paystack,
    WebhookProvider.STRIPE: _parse_stripe,
    WebhookProvider.PAYPAL: _parse_paypal,
}


def parse_webhook_event(
    provider: WebhookProvider, payload: Mapping[str, Any]
) -> ParsedWebhookEvent:
    return _PARSERS[provider](payload)


class PaymentWebhookService(BaseService):
    """Records verified webhooks and applies payout outcomes."""

    def __init__(
        self,
        db: Session,
        payout_service: Optional[PayoutService] = None,
        ledger_service: Optional[WebhookLedgerService] = None,
    ) -> None:
        super().__init__(db)
        self.payout_service = payout_service or PayoutService(db)
        self.ledger_service = ledger_service or WebhookLedgerService(db)
        self.payout_repository = RepositoryFactory.create_payout_request_repository(db)

    @BaseService.measure_operation("payment_webhooks.handle_event")
    def handle_event(
        self,
        provider: WebhookProvider,
        payload: dict[str, Any],
        headers: Optional[Mapping[str, str]] = None,
    ) -> WebhookHandleResult:
        """
        Record and process one verified event.

        Raises:
            InvalidWebhookPayload: the body cannot be identified
            Exception: processing failed; the event is stored as failed first
        """
        parsed = parse_webhook_event(provider, payload)

        with self.transaction():
            event = self.ledger_service.log_received(
                source=provider.value,
                event_type=parsed.event_type,
                event_id=parsed.event_id,
                payload=payload,
                headers=dict(headers) if headers else None,
            )
            if self.ledger_service.is_settled(event):
                logger.info(
                    "Webhook already processed",
                    extra={"provider": provider.value, "event_id": parsed.event_id},
                )
                return WebhookHandleResult(status=RESULT_DUPLICATE, event_id=parsed.event_id)
            self.ledger_service.mark_processing(event)

        start = time.monotonic()
        try:
            return self._apply(event, parsed, start)
        except Exception as exc:
            self.db.rollback()
            with self.transaction():
                self.ledger_service.mark_failed(
                    event, error=str(exc), duration_ms=self.ledger_service.elapsed_ms(start)
                )
            logger.error(
                "Webhook processing failed",
                extra={
                    "provider": provider.value,
                    "event_id": parsed.event_id,
                    "error": str(exc),
                },
            )
            raise

    def _apply(
        self, event: WebhookEvent, parsed: ParsedWebhookEvent, start: float
    ) -> WebhookHandleResult:
        outcome = parsed.outcome
        if outcome is None:
            return self._finish(
                event, parsed, start, status=RESULT_IGNORED, note="Unhandled event type"
            )

        request = self.payout_repository.get_by_reference(outcome.reference)
        if request is None:
            return self._finish(
                event, parsed, start, status=RESULT_IGNORED, note="No matching payout request"
            )
        if not request.is_open:
            return self._finish(
                event,
                parsed,
                start,
                status=RESULT_IGNORED,
                note=f"Payout request already {request.status}",
                request=request,
            )

        if outcome.succeeded:
            if request.status == PayoutStatus.PENDING.value:
                self.payout_service.mark_processing(request.request_uuid)
            external_reference = (
                outcome.reference if outcome.reference != request.request_uuid else None
            )
            self.payout_service.complete(
                request.request_uuid, external_reference=external_reference
            )
        else:
            self.payout_service.reject(
                request.request_uuid, reason=outcome.failure_reason or "Payout failed"
            )
        return self._finish(event, parsed, start, status=RESULT_PROCESSED, request=request)

    def _finish(
        self,
        event: WebhookEvent,
        parsed: ParsedWebhookEvent,
        start: float,
        *,
        status: str,
        note: Optional[str] = None,
        request: Optional[PayoutRequest] = None,
    ) -> WebhookHandleResult:
        with self.transaction():
            self.ledger_service.mark_processed(
                event,
                related_entity_type="payout_request" if request is not None else None,
                related_entity_id=request.id if request is not None else None,
                duration_ms=self.ledger_service.elapsed_ms(start),
                status=(
                    WebhookEventStatus.PROCESSED
                    if status == RESULT_PROCESSED
                    else WebhookEventStatus.IGNORED
                ),
                note=note,
            )
        return WebhookHandleResult(
            status=status,
            event_id=parsed.event_id,
            payout_request_id=request.id if request is not None else None,
        )
