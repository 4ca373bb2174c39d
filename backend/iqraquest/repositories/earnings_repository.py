"""Repository for teacher earnings records."""

from __future__ import annotations

from typing import Optional, cast

from sqlalchemy.orm import Session

from ..models.earnings import TeacherEarning
from .base_repository import BaseRepository


class TeacherEarningRepository(BaseRepository[TeacherEarning]):
    def __init__(self, db: Session) -> None:
        super().__init__(db, TeacherEarning)

    def get_by_user_id(self, user_id: str, *, for_update: bool = False) -> Optional[TeacherEarning]:
        """Return the teacher's earnings row, row-locked when ``for_update`` is set."""
        query = self._build_query().filter(TeacherEarning.user_id == user_id)
        if for_update:
            query = query.with_for_update()
        return cast(Optional[TeacherEarning], query.first())

    def list_ids(self) -> list[str]:
        rows = self.db.query(TeacherEarning.id).order_by(TeacherEarning.id).all()
        return [row[0] for row in rows]
