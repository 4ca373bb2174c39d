"""Celery tasks for automatic payout requests."""

from __future__ import annotations

from decimal import Decimal
import logging
from typing import Any, Dict, Optional

from iqraquest.database import get_db_session
from iqraquest.services.payout_service import PayoutService
from iqraquest.tasks.celery_app import celery_app

logger = logging.getLogger(__name__)


@celery_app.task(  # type: ignore[misc]
    bind=True,
    name="iqraquest.tasks.payout_tasks.process_auto_payouts",
)
def process_auto_payouts(self: Any, threshold: Optional[str] = None) -> Dict[str, Any]:
    """
    Create payout requests for every teacher at or above the threshold.

    Args:
        threshold: Optional decimal string overriding the stored setting

    Returns:
        The run report as a JSON-serializable dict
    """
    override = Decimal(threshold) if threshold is not None else None
    with get_db_session() as db:
        report = PayoutService(db).process_auto_payouts(threshold=override)

    result = report.to_dict()
    logger.info(
        "Auto-payout task finished: eligible=%s succeeded=%s failed=%s",
        report.eligible,
        report.succeeded,
        report.failed,
    )
    return result
