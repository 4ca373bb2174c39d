"""Service for recording inbound payment webhooks."""

from __future__ import annotations

from datetime import datetime, timezone
import time
from typing import Any

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ..core.exceptions import RepositoryException
from ..models.webhook_event import WebhookEvent, WebhookEventStatus
from ..repositories.factory import RepositoryFactory
from .base import BaseService

_SENSITIVE_HEADERS = {
    "authorization",
    "stripe-signature",
    "x-paystack-signature",
    "paypal-transmission-sig",
}

SETTLED_STATUSES = frozenset({WebhookEventStatus.PROCESSED, WebhookEventStatus.IGNORED})


def _now_utc() -> datetime:
    return datetime.now(timezone.utc)


class WebhookLedgerService(BaseService):
    """Business logic for webhook ledger entries."""

    def __init__(self, db: Session) -> None:
        super().__init__(db)
        self.repository = RepositoryFactory.create_webhook_event_repository(db)

    @BaseService.measure_operation("webhook_ledger.log_received")
    def log_received(
        self,
        *,
        source: str,
        event_type: str,
        payload: dict[str, Any],
        event_id: str | None = None,
        headers: dict[str, Any] | None = None,
    ) -> WebhookEvent:
        """
        Log a received webhook before processing.

        A redelivered ``(source, event_id)`` returns the existing row with its
        retry counter bumped instead of creating a second one.
        """
        safe_headers = self._sanitize_headers(headers) if headers else None
        now = _now_utc()
        existing = (
            self.repository.find_by_source_and_event_id(source, event_id) if event_id else None
        )
        if existing is not None:
            return self._bump_retry(existing, now)

        try:
            return self.repository.create(
                source=source,
                event_type=event_type or "unknown",
                event_id=event_id,
                payload=payload,
                headers=safe_headers,
                status=WebhookEventStatus.RECEIVED,
                received_at=now,
                retry_count=0,
            )
        except RepositoryException as exc:
            # Another worker stored the same event first.
            if isinstance(exc.__cause__, IntegrityError) and event_id:
                existing = self.repository.find_by_source_and_event_id(source, event_id)
                if existing is not None:
                    return self._bump_retry(existing, now)
            raise

    def is_settled(self, event: WebhookEvent) -> bool:
        return event.status in SETTLED_STATUSES

    @BaseService.measure_operation("webhook_ledger.mark_processing")
    def mark_processing(self, event: WebhookEvent) -> WebhookEvent:
        event.status = WebhookEventStatus.PROCESSING
        event.processing_error = None
        self.repository.flush()
        return event

    @BaseService.measure_operation("webhook_ledger.mark_processed")
    def mark_processed(
        self,
        event: WebhookEvent,
        *,
        related_entity_type: str | None = None,
        related_entity_id: str | None = None,
        duration_ms: int | None = None,
        status: str = WebhookEventStatus.PROCESSED,
        note: str | None = None,
    ) -> WebhookEvent:
        """Mark webhook as handled (processed, or ignored with a note)."""
        event.status = status
        event.processed_at = _now_utc()
        event.related_entity_type = related_entity_type
        event.related_entity_id = related_entity_id
        event.processing_duration_ms = duration_ms
        event.processing_error = note
        self.repository.flush()
        return event

    @BaseService.measure_operation("webhook_ledger.mark_failed")
    def mark_failed(
        self,
        event: WebhookEvent,
        *,
        error: str,
        duration_ms: int | None = None,
    ) -> WebhookEvent:
        event.status = WebhookEventStatus.FAILED
        event.processing_error = error
        event.processed_at = _now_utc()
        event.processing_duration_ms = duration_ms
        self.repository.flush()
        return event

    def get_stats(self, *, since_hours: int = 24, recent_failure_limit: int = 10) -> dict[str, Any]:
        """Health snapshot used by the webhook monitor command."""
        total = self.repository.count_events()
        window_total = self.repository.count_events(since_hours=since_hours)
        # Ignored events were handled successfully; they just needed no action.
        settled = self.repository.count_events(statuses=SETTLED_STATUSES)
        window_settled = self.repository.count_events(
            since_hours=since_hours, statuses=SETTLED_STATUSES
        )
        return {
            "total": total,
            "last_window": window_total,
            "last_hour": self.repository.count_events(since_hours=1),
            "processed": self.repository.count_events(status=WebhookEventStatus.PROCESSED),
            "failed": self.repository.count_events(status=WebhookEventStatus.FAILED),
            "pending": self.repository.count_events(status=WebhookEventStatus.RECEIVED),
            "ignored": self.repository.count_events(status=WebhookEventStatus.IGNORED),
            "success_rate": self._success_rate(settled, total),
            "success_rate_window": self._success_rate(window_settled, window_total),
            "by_source": self.repository.summarize_by_source(),
            "recent_failures": self.repository.get_failed_events(
                since_hours=since_hours, limit=recent_failure_limit
            ),
            "last_received_at": self.repository.latest_received_at(),
        }

    @staticmethod
    def _success_rate(processed: int, total: int) -> float:
        if total == 0:
            return 100.0
        return round(processed / total * 100, 2)

    def _bump_retry(self, event: WebhookEvent, now: datetime) -> WebhookEvent:
        event.retry_count = (event.retry_count or 0) + 1
        event.last_retry_at = now
        self.repository.flush()
        return event

    def _sanitize_headers(self, headers: dict[str, Any]) -> dict[str, Any]:
        return {
            key: ("***" if key.lower() in _SENSITIVE_HEADERS else value)
            for key, value in headers.items()
        }

    @staticmethod
    def elapsed_ms(start: float) -> int:
        return int((time.monotonic() - start) * 1000)
