"""Service helpers for financial settings."""

from __future__ import annotations

from datetime import datetime, timezone
from decimal import Decimal, InvalidOperation
import logging
from typing import Any, Optional

from sqlalchemy.orm import Session

from ..core.config import settings
from ..core.constants import AUTO_PAYOUT_THRESHOLD_KEY
from ..models.earnings import to_money
from ..repositories.factory import RepositoryFactory

logger = logging.getLogger(__name__)


def _coerce_decimal(raw: Any) -> Optional[Decimal]:
    if isinstance(raw, dict):
        raw = raw.get("value")
    if raw is None or isinstance(raw, bool):
        return None
    try:
        return Decimal(str(raw))
    except (InvalidOperation, ValueError):
        return None


class FinancialSettingsService:
    """Business logic for reading/writing financial configuration."""

    def __init__(self, db: Session, default_threshold: Decimal | None = None) -> None:
        self.db = db
        self.repo = RepositoryFactory.create_financial_settings_repository(db)
        self.default_threshold = to_money(
            default_threshold
            if default_threshold is not None
            else settings.auto_payout_default_threshold
        )

    def get_auto_payout_threshold(self) -> Decimal:
        """Stored threshold, falling back to the configured default."""
        record = self.repo.get_by_key(AUTO_PAYOUT_THRESHOLD_KEY)
        if record is None:
            return self.default_threshold
        value = _coerce_decimal(record.value_json)
        if value is None:
            logger.warning(
                "Unparsable auto-payout threshold setting; using default",
                extra={"raw_value": repr(record.value_json)},
            )
            return self.default_threshold
        return to_money(value)

    def set_auto_payout_threshold(self, value: Decimal) -> Decimal:
        amount = to_money(value)
        self.repo.upsert(
            key=AUTO_PAYOUT_THRESHOLD_KEY,
            value=str(amount),
            updated_at=datetime.now(timezone.utc),
        )
        return amount

    def commit(self) -> None:
        self.db.commit()
