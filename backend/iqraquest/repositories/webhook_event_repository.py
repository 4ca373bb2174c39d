"""Repository helpers for the webhook event ledger."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
import logging
from typing import Collection, Optional, cast

from sqlalchemy import case, func
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..core.exceptions import RepositoryException
from ..models.webhook_event import WebhookEvent, WebhookEventStatus
from .base_repository import BaseRepository

logger = logging.getLogger(__name__)


def _now_utc() -> datetime:
    return datetime.now(timezone.utc)


class WebhookEventRepository(BaseRepository[WebhookEvent]):
    """Repository for webhook ledger queries."""

    def __init__(self, db: Session) -> None:
        super().__init__(db, WebhookEvent)

    @staticmethod
    def _cutoff(since_hours: int) -> datetime:
        return _now_utc() - timedelta(hours=since_hours)

    def find_by_source_and_event_id(self, source: str, event_id: str) -> Optional[WebhookEvent]:
        """Find webhook event by source and provider event ID."""
        result = (
            self.db.query(WebhookEvent)
            .filter(WebhookEvent.source == source, WebhookEvent.event_id == event_id)
            .first()
        )
        return cast(Optional[WebhookEvent], result)

    def count_events(
        self,
        *,
        since_hours: int | None = None,
        status: str | None = None,
        statuses: Collection[str] | None = None,
    ) -> int:
        query = self.db.query(func.count(WebhookEvent.id))
        if since_hours is not None:
            query = query.filter(WebhookEvent.received_at >= self._cutoff(since_hours))
        if status is not None:
            query = query.filter(WebhookEvent.status == status)
        if statuses is not None:
            query = query.filter(WebhookEvent.status.in_(list(statuses)))
        try:
            return int(query.scalar() or 0)
        except SQLAlchemyError as exc:
            self.logger.error("Failed to count webhook events: %s", str(exc))
            raise RepositoryException("Failed to count webhook events") from exc

    def summarize_by_source(self, *, since_hours: int | None = None) -> dict[str, dict[str, int]]:
        """Per-source totals with processed and failed counts."""
        processed = func.sum(
            case((WebhookEvent.status == WebhookEventStatus.PROCESSED, 1), else_=0)
        )
        failed = func.sum(case((WebhookEvent.status == WebhookEventStatus.FAILED, 1), else_=0))
        query = self.db.query(
            WebhookEvent.source, func.count(WebhookEvent.id), processed, failed
        )
        if since_hours is not None:
            query = query.filter(WebhookEvent.received_at >= self._cutoff(since_hours))
        try:
            rows = query.group_by(WebhookEvent.source).all()
        except SQLAlchemyError as exc:
            self.logger.error("Failed to summarize webhook source counts: %s", str(exc))
            raise RepositoryException("Failed to summarize webhook source counts") from exc
        return {
            row[0] or "unknown": {
                "total": int(row[1] or 0),
                "processed": int(row[2] or 0),
                "failed": int(row[3] or 0),
            }
            for row in rows
        }

    def get_failed_events(self, *, since_hours: int = 24, limit: int = 10) -> list[WebhookEvent]:
        query = (
            self._build_query()
            .filter(
                WebhookEvent.status == WebhookEventStatus.FAILED,
                WebhookEvent.received_at >= self._cutoff(since_hours),
            )
            .order_by(WebhookEvent.received_at.desc())
            .limit(limit)
        )
        return self._execute_query(query)

    def latest_received_at(self) -> Optional[datetime]:
        value = self.db.query(func.max(WebhookEvent.received_at)).scalar()
        return cast(Optional[datetime], value)
