"""Teacher earnings ledger model.

The earnings record is the authoritative accounting view used by payout
logic. ``TeacherWallet`` mirrors the same numbers for other read paths and is
kept consistent by the wallet sync jobs.
"""

from __future__ import annotations

from datetime import datetime, timezone
from decimal import Decimal
from typing import TYPE_CHECKING

from sqlalchemy import CheckConstraint, DateTime, ForeignKey, Numeric, String
from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy.sql import func
import ulid

from ..core.exceptions import InsufficientBalanceException
from ..database import Base

if TYPE_CHECKING:
    from .user import User

ZERO = Decimal("0.00")
MONEY = Numeric(14, 2)


def _now_utc() -> datetime:
    return datetime.now(timezone.utc)


def to_money(value: object) -> Decimal:
    """Coerce a numeric value to a two-place Decimal."""
    if value is None:
        return ZERO
    if not isinstance(value, Decimal):
        value = Decimal(str(value))
    return value.quantize(Decimal("0.01"))


class BalanceFieldsMixin:
    """Columns shared by the two balance representations."""

    total_earned: Mapped[Decimal] = mapped_column(MONEY, nullable=False, default=ZERO)
    total_withdrawn: Mapped[Decimal] = mapped_column(MONEY, nullable=False, default=ZERO)
    pending_payouts: Mapped[Decimal] = mapped_column(MONEY, nullable=False, default=ZERO)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=_now_utc, server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=_now_utc,
        onupdate=_now_utc,
        server_default=func.now(),
    )


class TeacherEarning(BalanceFieldsMixin, Base):
    """Accumulated financial state of one teacher."""

    __tablename__ = "teacher_earnings"

    id: Mapped[str] = mapped_column(String(26), primary_key=True, default=lambda: str(ulid.ULID()))
    user_id: Mapped[str] = mapped_column(
        String(26), ForeignKey("users.id"), nullable=False, unique=True, index=True
    )
    wallet_balance: Mapped[Decimal] = mapped_column(MONEY, nullable=False, default=ZERO)

    user: Mapped["User"] = relationship("User", back_populates="earnings")

    __table_args__ = (
        CheckConstraint("pending_payouts >= 0", name="ck_teacher_earnings_pending_non_negative"),
    )

    def balance_snapshot(self) -> dict[str, Decimal]:
        return {
            "balance": to_money(self.wallet_balance),
            "total_earned": to_money(self.total_earned),
            "total_withdrawn": to_money(self.total_withdrawn),
            "pending_payouts": to_money(self.pending_payouts),
        }

    def credit(self, amount: Decimal) -> None:
        """Record a session payment."""
        amount = to_money(amount)
        if amount <= ZERO:
            raise ValueError("Amount must be greater than zero")
        self.wallet_balance = to_money(self.wallet_balance) + amount
        self.total_earned = to_money(self.total_earned) + amount

    def reserve_payout(self, amount: Decimal) -> None:
        """Move ``amount`` from the withdrawable balance into pending payouts."""
        amount = to_money(amount)
        available = to_money(self.wallet_balance)
        if amount <= ZERO or available < amount:
            raise InsufficientBalanceException(available=available, requested=amount)
        self.wallet_balance = available - amount
        self.pending_payouts = to_money(self.pending_payouts) + amount

    def settle_payout(self, amount: Decimal) -> None:
        """A reserved payout was paid out."""
        amount = to_money(amount)
        pending = to_money(self.pending_payouts)
        if pending < amount:
            raise InsufficientBalanceException(available=pending, requested=amount)
        self.pending_payouts = pending - amount
        self.total_withdrawn = to_money(self.total_withdrawn) + amount

    def release_payout(self, amount: Decimal) -> None:
        """A reserved payout was rejected; restore the withdrawable balance."""
        amount = to_money(amount)
        pending = to_money(self.pending_payouts)
        if pending < amount:
            raise InsufficientBalanceException(available=pending, requested=amount)
        self.pending_payouts = pending - amount
        self.wallet_balance = to_money(self.wallet_balance) + amount

    def __repr__(self) -> str:  # pragma: no cover - repr is trivial
        return f"<TeacherEarning user_id={self.user_id} balance={self.wallet_balance}>"
