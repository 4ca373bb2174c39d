"""Teacher wallet model (secondary balance representation)."""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import TYPE_CHECKING, Optional

from sqlalchemy import DateTime, ForeignKey, String
from sqlalchemy.orm import Mapped, mapped_column, relationship
import ulid

from ..database import Base
from .earnings import MONEY, ZERO, BalanceFieldsMixin, to_money

if TYPE_CHECKING:
    from .user import User


class TeacherWallet(BalanceFieldsMixin, Base):
    """Wallet view read by the teacher header and earnings pages."""

    __tablename__ = "teacher_wallets"

    id: Mapped[str] = mapped_column(String(26), primary_key=True, default=lambda: str(ulid.ULID()))
    user_id: Mapped[str] = mapped_column(
        String(26), ForeignKey("users.id"), nullable=False, unique=True, index=True
    )
    balance: Mapped[Decimal] = mapped_column(MONEY, nullable=False, default=ZERO)
    last_sync_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))

    user: Mapped["User"] = relationship("User", back_populates="wallet")

    def balance_snapshot(self) -> dict[str, Decimal]:
        return {
            "balance": to_money(self.balance),
            "total_earned": to_money(self.total_earned),
            "total_withdrawn": to_money(self.total_withdrawn),
            "pending_payouts": to_money(self.pending_payouts),
        }

    def __repr__(self) -> str:  # pragma: no cover - repr is trivial
        return f"<TeacherWallet user_id={self.user_id} balance={self.balance}>"
