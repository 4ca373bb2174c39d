"""Repository for teacher wallet records."""

from __future__ import annotations

from typing import Optional, cast

from sqlalchemy.orm import Session

from ..models.wallet import TeacherWallet
from .base_repository import BaseRepository


class TeacherWalletRepository(BaseRepository[TeacherWallet]):
    def __init__(self, db: Session) -> None:
        super().__init__(db, TeacherWallet)

    def get_by_user_id(self, user_id: str, *, for_update: bool = False) -> Optional[TeacherWallet]:
        query = self._build_query().filter(TeacherWallet.user_id == user_id)
        if for_update:
            query = query.with_for_update()
        return cast(Optional[TeacherWallet], query.first())
