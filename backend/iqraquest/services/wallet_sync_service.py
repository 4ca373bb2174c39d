# backend/iqraquest/services/wallet_sync_service.py
"""
Wallet synchronization between the two balance representations.

``TeacherEarning`` is authoritative for payout logic; ``TeacherWallet`` is
what the teacher header and earnings pages read. Each sync overwrites all
four balance fields of the target from the source in a single transaction,
so running it twice leaves the same state as running it once.
"""

from __future__ import annotations

from datetime import datetime, timezone
from decimal import Decimal
import logging
from typing import TypedDict

from sqlalchemy.orm import Session

from ..core.exceptions import NotFoundException
from ..models.earnings import TeacherEarning
from ..models.wallet import TeacherWallet
from ..monitoring.prometheus_metrics import prometheus_metrics
from ..repositories.factory import RepositoryFactory
from .base import BaseService

logger = logging.getLogger(__name__)


class SweepReport(TypedDict):
    total: int
    synced: int
    failed: int


def _now_utc() -> datetime:
    return datetime.now(timezone.utc)


class WalletSyncService(BaseService):
    def __init__(self, db: Session) -> None:
        super().__init__(db)
        self.wallet_repository = RepositoryFactory.create_wallet_repository(db)
        self.earnings_repository = RepositoryFactory.create_earnings_repository(db)

    @BaseService.measure_operation("wallet_sync.earnings_from_wallet")
    def sync_earnings_from_wallet(self, wallet_id: str) -> dict[str, Decimal]:
        """Copy a wallet's balances onto the teacher's earnings record."""
        with self.transaction():
            wallet = self.wallet_repository.get_by_id(wallet_id, for_update=True)
            if wallet is None:
                raise NotFoundException(
                    "Teacher wallet not found",
                    code="WALLET_NOT_FOUND",
                    details={"wallet_id": wallet_id},
                )
            earnings = self.earnings_repository.get_by_user_id(wallet.user_id, for_update=True)
            if earnings is None:
                earnings = self.earnings_repository.create(user_id=wallet.user_id)
            earnings.wallet_balance = wallet.balance
            earnings.total_earned = wallet.total_earned
            earnings.total_withdrawn = wallet.total_withdrawn
            earnings.pending_payouts = wallet.pending_payouts
            snapshot = earnings.balance_snapshot()

        prometheus_metrics.record_wallet_sync("earnings_from_wallet", "success")
        logger.info(
            "Synced earnings from wallet",
            extra={"wallet_id": wallet_id, "user_id": wallet.user_id},
        )
        return snapshot

    @BaseService.measure_operation("wallet_sync.wallet_from_earnings")
    def sync_wallet_from_earnings(self, earning_id: str) -> dict[str, Decimal]:
        """Copy an earnings record's balances onto the teacher's wallet."""
        with self.transaction():
            earnings = self.earnings_repository.get_by_id(earning_id, for_update=True)
            if earnings is None:
                raise NotFoundException(
                    "Earnings record not found",
                    code="EARNINGS_NOT_FOUND",
                    details={"earning_id": earning_id},
                )
            wallet = self.wallet_repository.get_by_user_id(earnings.user_id, for_update=True)
            if wallet is None:
                wallet = self.wallet_repository.create(user_id=earnings.user_id)
            self._copy_to_wallet(earnings, wallet)
            snapshot = wallet.balance_snapshot()

        prometheus_metrics.record_wallet_sync("wallet_from_earnings", "success")
        logger.info(
            "Synced wallet from earnings",
            extra={"earning_id": earning_id, "user_id": earnings.user_id},
        )
        return snapshot

    @BaseService.measure_operation("wallet_sync.sync_all")
    def sync_all_wallets_from_earnings(self) -> SweepReport:
        """Re-sync every wallet from its earnings record; failures are counted, not raised."""
        earning_ids = self.earnings_repository.list_ids()
        report: SweepReport = {"total": len(earning_ids), "synced": 0, "failed": 0}
        for earning_id in earning_ids:
            try:
                self.sync_wallet_from_earnings(earning_id)
                report["synced"] += 1
            except Exception as exc:
                report["failed"] += 1
                prometheus_metrics.record_wallet_sync("wallet_from_earnings", "error")
                logger.error(
                    "Failed to sync teacher wallet",
                    extra={"earning_id": earning_id, "error": str(exc)},
                )
        logger.info("Wallet sweep finished", extra=dict(report))
        return report

    @staticmethod
    def _copy_to_wallet(earnings: TeacherEarning, wallet: TeacherWallet) -> None:
        wallet.balance = earnings.wallet_balance
        wallet.total_earned = earnings.total_earned
        wallet.total_withdrawn = earnings.total_withdrawn
        wallet.pending_payouts = earnings.pending_payouts
        wallet.last_sync_at = _now_utc()
