# backend/iqraquest/models/user.py
"""
User model for the IqraQuest platform.

Students, guardians and teachers share one table and are distinguished by
``role``. Only teachers accumulate earnings and receive payouts.
"""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import TYPE_CHECKING, List, Optional

from sqlalchemy import DateTime, String
from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy.sql import func
import ulid

from ..database import Base

if TYPE_CHECKING:
    from .earnings import TeacherEarning
    from .payment_method import PaymentMethod
    from .payout_request import PayoutRequest
    from .wallet import TeacherWallet


class UserRole(str, Enum):
    """Platform roles."""

    TEACHER = "teacher"
    STUDENT = "student"
    GUARDIAN = "guardian"
    ADMIN = "admin"


class User(Base):
    """Account record for any platform participant."""

    __tablename__ = "users"

    id: Mapped[str] = mapped_column(String(26), primary_key=True, default=lambda: str(ulid.ULID()))
    email: Mapped[str] = mapped_column(String(255), nullable=False, unique=True, index=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    role: Mapped[str] = mapped_column(
        String(20), nullable=False, default=UserRole.STUDENT.value, index=True
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now()
    )

    earnings: Mapped[Optional["TeacherEarning"]] = relationship(
        "TeacherEarning", back_populates="user", uselist=False
    )
    wallet: Mapped[Optional["TeacherWallet"]] = relationship(
        "TeacherWallet", back_populates="user", uselist=False
    )
    payment_methods: Mapped[List["PaymentMethod"]] = relationship(
        "PaymentMethod", back_populates="user", order_by="PaymentMethod.created_at"
    )
    payout_requests: Mapped[List["PayoutRequest"]] = relationship(
        "PayoutRequest",
        back_populates="user",
        foreign_keys="PayoutRequest.user_id",
    )

    @property
    def is_teacher(self) -> bool:
        return self.role == UserRole.TEACHER.value

    def __repr__(self) -> str:  # pragma: no cover - repr is trivial
        return f"<User id={self.id} role={self.role}>"
