"""
Celery tasks keeping ``TeacherWallet`` and ``TeacherEarning`` in step.

Both single-record tasks are idempotent, so ``BaseTask`` autoretry is safe.
"""

from __future__ import annotations

import logging
from typing import Any, Dict

from iqraquest.database import get_db_session
from iqraquest.services.wallet_sync_service import WalletSyncService
from iqraquest.tasks.celery_app import celery_app

logger = logging.getLogger(__name__)


def _serialize(snapshot: Dict[str, Any]) -> Dict[str, str]:
    return {key: str(value) for key, value in snapshot.items()}


@celery_app.task(  # type: ignore[misc]
    bind=True,
    name="iqraquest.tasks.wallet_sync_tasks.sync_wallet_from_earnings",
)
def sync_wallet_from_earnings(self: Any, earning_id: str) -> Dict[str, str]:
    try:
        with get_db_session() as db:
            snapshot = WalletSyncService(db).sync_wallet_from_earnings(earning_id)
    except Exception as exc:
        logger.error(
            "Wallet sync from earnings failed for %s: %s",
            earning_id,
            exc,
            extra={"earning_id": earning_id},
        )
        raise
    return _serialize(snapshot)


@celery_app.task(  # type: ignore[misc]
    bind=True,
    name="iqraquest.tasks.wallet_sync_tasks.sync_earnings_from_wallet",
)
def sync_earnings_from_wallet(self: Any, wallet_id: str) -> Dict[str, str]:
    try:
        with get_db_session() as db:
            snapshot = WalletSyncService(db).sync_earnings_from_wallet(wallet_id)
    except Exception as exc:
        logger.error(
            "Earnings sync from wallet failed for %s: %s",
            wallet_id,
            exc,
            extra={"wallet_id": wallet_id},
        )
        raise
    return _serialize(snapshot)


@celery_app.task(  # type: ignore[misc]
    bind=True,
    name="iqraquest.tasks.wallet_sync_tasks.sync_all_wallets",
    autoretry_for=(),
)
def sync_all_wallets(self: Any) -> Dict[str, int]:
    """Nightly sweep; individual failures are counted in the report."""
    with get_db_session() as db:
        report = WalletSyncService(db).sync_all_wallets_from_earnings()
    return dict(report)
