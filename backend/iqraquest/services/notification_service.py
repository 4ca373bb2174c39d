"""In-app and email notification records."""

from __future__ import annotations

from datetime import datetime, timezone
import logging
from typing import Any, Iterable, Optional, Sequence

from sqlalchemy.orm import Session

from ..core.constants import NOTIFICATION_SENDER_SYSTEM
from ..models.notification import Notification
from ..repositories.factory import RepositoryFactory
from .base import BaseService

logger = logging.getLogger(__name__)


class NotificationService(BaseService):
    """Creates notification rows with one recipient row per user and channel."""

    def __init__(self, db: Session) -> None:
        super().__init__(db)
        self.repository = RepositoryFactory.create_notification_repository(db)

    @BaseService.measure_operation("notifications.create")
    def create_notification(
        self,
        *,
        title: str,
        body: str,
        notification_type: str,
        user_ids: Iterable[str],
        channels: Sequence[str],
        data: Optional[dict[str, Any]] = None,
        sender_type: str = NOTIFICATION_SENDER_SYSTEM,
    ) -> Notification:
        recipients = list(dict.fromkeys(user_ids))
        if not recipients:
            raise ValueError("Notification requires at least one recipient")
        if not channels:
            raise ValueError("Notification requires at least one channel")

        with self.transaction():
            notification = self.repository.create(
                title=title,
                body=body,
                notification_type=notification_type,
                sender_type=sender_type,
                channels=list(channels),
                data=data,
                status="sent",
                sent_at=datetime.now(timezone.utc),
            )
            for user_id in recipients:
                for channel in channels:
                    self.repository.add_recipient(notification, user_id=user_id, channel=channel)

        logger.info(
            "Notification created",
            extra={
                "notification_id": notification.id,
                "notification_type": notification_type,
                "recipient_count": len(recipients),
            },
        )
        return notification

    def list_for_user(self, user_id: str) -> list[Notification]:
        return self.repository.list_for_user(user_id)
