"""Repository for teacher payment methods."""

from __future__ import annotations

from typing import Optional, cast

from sqlalchemy.orm import Session

from ..models.payment_method import PaymentMethod
from .base_repository import BaseRepository


class PaymentMethodRepository(BaseRepository[PaymentMethod]):
    def __init__(self, db: Session) -> None:
        super().__init__(db, PaymentMethod)

    def get_default_active(self, user_id: str) -> Optional[PaymentMethod]:
        query = self._build_query().filter(
            PaymentMethod.user_id == user_id,
            PaymentMethod.is_default.is_(True),
            PaymentMethod.is_active.is_(True),
        )
        return cast(Optional[PaymentMethod], query.order_by(PaymentMethod.created_at).first())

    def get_first_active(self, user_id: str) -> Optional[PaymentMethod]:
        query = self._build_query().filter(
            PaymentMethod.user_id == user_id,
            PaymentMethod.is_active.is_(True),
        )
        return cast(
            Optional[PaymentMethod],
            query.order_by(PaymentMethod.created_at, PaymentMethod.id).first(),
        )

    def resolve_payout_method(self, user_id: str) -> Optional[PaymentMethod]:
        """Default active method, else the earliest-created active one."""
        return self.get_default_active(user_id) or self.get_first_active(user_id)
