"""Repository for notifications and their recipients."""

from __future__ import annotations

from sqlalchemy import select
from sqlalchemy.orm import Session

from ..models.notification import Notification, NotificationRecipient
from .base_repository import BaseRepository


class NotificationRepository(BaseRepository[Notification]):
    def __init__(self, db: Session) -> None:
        super().__init__(db, Notification)

    def add_recipient(
        self, notification: Notification, *, user_id: str, channel: str
    ) -> NotificationRecipient:
        recipient = NotificationRecipient(
            notification_id=notification.id, user_id=user_id, channel=channel
        )
        self.db.add(recipient)
        return recipient

    def list_for_user(self, user_id: str) -> list[Notification]:
        recipient_of = select(NotificationRecipient.notification_id).where(
            NotificationRecipient.user_id == user_id
        )
        query = (
            self._build_query()
            .filter(Notification.id.in_(recipient_of))
            .order_by(Notification.created_at.desc())
        )
        return self._execute_query(query)
