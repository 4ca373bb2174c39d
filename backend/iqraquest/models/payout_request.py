"""Payout request model and status workflow."""

from __future__ import annotations

from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import TYPE_CHECKING, Any, Optional

import sqlalchemy as sa
from sqlalchemy import Boolean, DateTime, ForeignKey, Numeric, String, Text
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy.types import JSON
import ulid

from ..core.constants import AUTO_PAYOUT_REQUEST_PREFIX, MANUAL_PAYOUT_REQUEST_PREFIX
from ..core.exceptions import InvalidPayoutTransitionException
from ..database import Base

if TYPE_CHECKING:
    from .user import User


def _now_utc() -> datetime:
    return datetime.now(timezone.utc)


class PayoutStatus(str, Enum):
    PENDING = "pending"
    PROCESSING = "processing"
    APPROVED = "approved"
    REJECTED = "rejected"
    COMPLETED = "completed"


OPEN_PAYOUT_STATUSES: frozenset[str] = frozenset(
    {PayoutStatus.PENDING.value, PayoutStatus.PROCESSING.value, PayoutStatus.APPROVED.value}
)
TERMINAL_PAYOUT_STATUSES: frozenset[str] = frozenset(
    {PayoutStatus.REJECTED.value, PayoutStatus.COMPLETED.value}
)

# Forward-only workflow; terminal states have no exits.
ALLOWED_TRANSITIONS: dict[str, frozenset[str]] = {
    PayoutStatus.PENDING.value: frozenset(
        {PayoutStatus.APPROVED.value, PayoutStatus.PROCESSING.value, PayoutStatus.REJECTED.value}
    ),
    PayoutStatus.APPROVED.value: frozenset(
        {PayoutStatus.PROCESSING.value, PayoutStatus.COMPLETED.value, PayoutStatus.REJECTED.value}
    ),
    PayoutStatus.PROCESSING.value: frozenset(
        {PayoutStatus.COMPLETED.value, PayoutStatus.REJECTED.value}
    ),
    PayoutStatus.REJECTED.value: frozenset(),
    PayoutStatus.COMPLETED.value: frozenset(),
}


def generate_request_uuid(*, automatic: bool = False, now: datetime | None = None) -> str:
    """Human-inspectable request id, e.g. ``APR-250114-01HV...``."""
    prefix = AUTO_PAYOUT_REQUEST_PREFIX if automatic else MANUAL_PAYOUT_REQUEST_PREFIX
    stamp = (now or _now_utc()).strftime("%y%m%d")
    return f"{prefix}-{stamp}-{ulid.ULID()}"


_OPEN_STATUS_SQL = "status IN ('pending', 'processing', 'approved')"


class PayoutRequest(Base):
    """One teacher's request to withdraw accumulated funds."""

    __tablename__ = "payout_requests"

    id: Mapped[str] = mapped_column(String(26), primary_key=True, default=lambda: str(ulid.ULID()))
    request_uuid: Mapped[str] = mapped_column(
        String(64), nullable=False, unique=True, default=generate_request_uuid
    )
    user_id: Mapped[str] = mapped_column(String(26), ForeignKey("users.id"), nullable=False)
    user_type: Mapped[str] = mapped_column(String(20), nullable=False, default="teacher")
    amount: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False)
    currency: Mapped[str] = mapped_column(String(3), nullable=False, default="NGN")
    payment_method: Mapped[str] = mapped_column(String(20), nullable=False)
    payment_details: Mapped[dict[str, Any]] = mapped_column(
        JSONB().with_variant(JSON(), "sqlite"), nullable=False, default=dict
    )
    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default=PayoutStatus.PENDING.value
    )
    is_automatic: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    request_date: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=_now_utc
    )
    processed_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))
    processed_by_id: Mapped[Optional[str]] = mapped_column(String(26), ForeignKey("users.id"))
    completed_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))
    notes: Mapped[Optional[str]] = mapped_column(Text)
    external_reference: Mapped[Optional[str]] = mapped_column(String(255), index=True)
    failure_reason: Mapped[Optional[str]] = mapped_column(Text)

    user: Mapped["User"] = relationship(
        "User", back_populates="payout_requests", foreign_keys=[user_id]
    )

    __table_args__ = (
        sa.Index("ix_payout_requests_user_id", "user_id"),
        sa.Index("ix_payout_requests_status", "status"),
        # At most one open request per teacher, enforced by the database.
        sa.Index(
            "uq_payout_requests_one_open_per_user",
            "user_id",
            unique=True,
            postgresql_where=sa.text(_OPEN_STATUS_SQL),
            sqlite_where=sa.text(_OPEN_STATUS_SQL),
        ),
        sa.CheckConstraint("amount > 0", name="ck_payout_requests_amount_positive"),
    )

    @property
    def is_open(self) -> bool:
        return self.status in OPEN_PAYOUT_STATUSES

    def transition_to(self, target: PayoutStatus | str) -> None:
        """Move to ``target`` or raise ``InvalidPayoutTransitionException``."""
        target_value = target.value if isinstance(target, PayoutStatus) else str(target)
        allowed = ALLOWED_TRANSITIONS.get(self.status, frozenset())
        if target_value not in allowed:
            raise InvalidPayoutTransitionException(self.status, target_value)
        self.status = target_value

    def __repr__(self) -> str:  # pragma: no cover - repr is trivial
        return f"<PayoutRequest {self.request_uuid} status={self.status} amount={self.amount}>"
