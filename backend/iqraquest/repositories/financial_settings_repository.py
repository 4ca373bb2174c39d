"""Repository for financial settings records."""

from __future__ import annotations

from datetime import datetime
from typing import Any, Optional, cast

from sqlalchemy.orm import Session

from ..models.financial_setting import FinancialSetting


class FinancialSettingsRepository:
    """Data access helper for financial key/value records."""

    def __init__(self, db: Session) -> None:
        self.db = db

    def get_by_key(self, key: str) -> Optional[FinancialSetting]:
        result = self.db.query(FinancialSetting).filter(FinancialSetting.key == key).first()
        return cast(Optional[FinancialSetting], result)

    def upsert(self, *, key: str, value: Any, updated_at: datetime) -> FinancialSetting:
        record = self.get_by_key(key)
        if record is None:
            record = FinancialSetting(key=key, value_json=value, updated_at=updated_at)
            self.db.add(record)
        else:
            record.value_json = value
            record.updated_at = updated_at
        self.db.flush()
        return record


__all__ = ["FinancialSettingsRepository"]
