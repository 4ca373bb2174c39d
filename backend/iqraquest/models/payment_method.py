"""Teacher payout destinations."""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import TYPE_CHECKING, Any, Optional

from sqlalchemy import Boolean, DateTime, ForeignKey, Index, String
from sqlalchemy.orm import Mapped, mapped_column, relationship
import ulid

from ..database import Base

if TYPE_CHECKING:
    from .user import User


def _now_utc() -> datetime:
    return datetime.now(timezone.utc)


class PaymentMethodType(str, Enum):
    BANK_TRANSFER = "bank_transfer"
    PAYPAL = "paypal"
    MOBILE_MONEY = "mobile_money"
    OTHER = "other"


class PaymentMethod(Base):
    """A bank account, PayPal address or mobile wallet a teacher can be paid to."""

    __tablename__ = "payment_methods"

    id: Mapped[str] = mapped_column(String(26), primary_key=True, default=lambda: str(ulid.ULID()))
    user_id: Mapped[str] = mapped_column(String(26), ForeignKey("users.id"), nullable=False)
    type: Mapped[str] = mapped_column(
        String(20), nullable=False, default=PaymentMethodType.BANK_TRANSFER.value
    )
    name: Mapped[Optional[str]] = mapped_column(String(255))
    bank_name: Mapped[Optional[str]] = mapped_column(String(255))
    account_number: Mapped[Optional[str]] = mapped_column(String(64))
    account_name: Mapped[Optional[str]] = mapped_column(String(255))
    paypal_email: Mapped[Optional[str]] = mapped_column(String(255))
    is_default: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=_now_utc
    )

    user: Mapped["User"] = relationship("User", back_populates="payment_methods")

    __table_args__ = (Index("ix_payment_methods_user_active", "user_id", "is_active"),)

    @property
    def masked_account_number(self) -> Optional[str]:
        if not self.account_number:
            return None
        digits = self.account_number.strip()
        if len(digits) <= 4:
            return digits
        return "*" * (len(digits) - 4) + digits[-4:]

    def details_snapshot(self) -> dict[str, Any]:
        """Display details copied onto a payout request at creation time."""
        return {
            "payment_method_id": self.id,
            "bank_name": self.bank_name,
            "account_number": self.masked_account_number,
            "account_name": self.account_name,
            "paypal_email": self.paypal_email,
        }

    def __repr__(self) -> str:  # pragma: no cover - repr is trivial
        return f"<PaymentMethod id={self.id} type={self.type} default={self.is_default}>"
