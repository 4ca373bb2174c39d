"""In-app notification models."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, List, Optional

import sqlalchemy as sa
from sqlalchemy import DateTime, ForeignKey, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy.types import JSON
import ulid

from ..database import Base


def _now_utc() -> datetime:
    return datetime.now(timezone.utc)


class Notification(Base):
    __tablename__ = "notifications"

    id: Mapped[str] = mapped_column(String(26), primary_key=True, default=lambda: str(ulid.ULID()))
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    body: Mapped[str] = mapped_column(Text, nullable=False)
    notification_type: Mapped[str] = mapped_column(String(50), nullable=False)
    sender_type: Mapped[str] = mapped_column(String(20), nullable=False, default="system")
    sender_id: Mapped[Optional[str]] = mapped_column(String(26))
    channels: Mapped[list[str]] = mapped_column(JSON, nullable=False, default=list)
    data: Mapped[Optional[dict[str, Any]]] = mapped_column(JSON)
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="sent")
    sent_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=_now_utc
    )

    recipients: Mapped[List["NotificationRecipient"]] = relationship(
        "NotificationRecipient",
        back_populates="notification",
        cascade="all, delete-orphan",
    )

    __table_args__ = (sa.Index("ix_notifications_type", "notification_type"),)


class NotificationRecipient(Base):
    """Per-user delivery row for a notification."""

    __tablename__ = "notification_recipients"

    id: Mapped[str] = mapped_column(String(26), primary_key=True, default=lambda: str(ulid.ULID()))
    notification_id: Mapped[str] = mapped_column(
        String(26), ForeignKey("notifications.id", ondelete="CASCADE"), nullable=False
    )
    user_id: Mapped[str] = mapped_column(String(26), ForeignKey("users.id"), nullable=False)
    channel: Mapped[str] = mapped_column(String(20), nullable=False)
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="delivered")
    read_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=_now_utc
    )

    notification: Mapped[Notification] = relationship("Notification", back_populates="recipients")

    __table_args__ = (
        sa.Index("ix_notification_recipients_user", "user_id"),
        sa.UniqueConstraint(
            "notification_id", "user_id", "channel", name="uq_notification_recipient_channel"
        ),
    )
