# backend/iqraquest/services/ledger_service.py
"""
Earnings ledger operations.

The earnings record is the single writer for balances. Every mutation here
keeps ``wallet_balance = total_earned - total_withdrawn - pending_payouts`` and
schedules a wallet sync once the change is committed.
"""

from __future__ import annotations

from decimal import Decimal
import logging
from typing import Any, Callable, Optional

from sqlalchemy.orm import Session

from ..core.exceptions import NotFoundException
from ..models.earnings import TeacherEarning, to_money
from ..repositories.factory import RepositoryFactory
from .base import BaseService

logger = logging.getLogger(__name__)

SYNC_WALLET_FROM_EARNINGS_TASK = "iqraquest.tasks.wallet_sync_tasks.sync_wallet_from_earnings"

Enqueuer = Callable[..., Any]


def default_enqueue(task_name: str, args: tuple[Any, ...] = (), **kwargs: Any) -> Any:
    from ..tasks.enqueue import enqueue_task

    return enqueue_task(task_name, args=args, **kwargs)


class LedgerService(BaseService):
    """Credits, reservations and settlements on ``TeacherEarning``."""

    def __init__(self, db: Session, enqueue: Optional[Enqueuer] = None) -> None:
        super().__init__(db)
        self.earnings_repository = RepositoryFactory.create_earnings_repository(db)
        self.enqueue = enqueue or default_enqueue

    def get_or_create_earnings(self, user_id: str) -> TeacherEarning:
        """Return the teacher's earnings row, creating an empty one if needed."""
        earnings = self.earnings_repository.get_by_user_id(user_id, for_update=True)
        if earnings is None:
            earnings = self.earnings_repository.create(user_id=user_id)
        return earnings

    @BaseService.measure_operation("ledger.credit_session_payment")
    def credit_session_payment(self, user_id: str, amount: Decimal) -> TeacherEarning:
        """Record money earned from a completed session."""
        with self.transaction():
            earnings = self.get_or_create_earnings(user_id)
            earnings.credit(amount)
        logger.info(
            "Credited teacher earnings",
            extra={"user_id": user_id, "amount": str(to_money(amount))},
        )
        self.schedule_wallet_sync(earnings.id)
        return earnings

    def settle(self, user_id: str, amount: Decimal) -> TeacherEarning:
        """Move a reserved amount to ``total_withdrawn``. Caller owns the transaction."""
        earnings = self._require_earnings(user_id)
        earnings.settle_payout(amount)
        return earnings

    def release(self, user_id: str, amount: Decimal) -> TeacherEarning:
        """Return a reserved amount to the withdrawable balance. Caller owns the transaction."""
        earnings = self._require_earnings(user_id)
        earnings.release_payout(amount)
        return earnings

    def schedule_wallet_sync(self, earning_id: str) -> None:
        """Enqueue the wallet sync; the periodic sweep covers a failed enqueue."""
        try:
            self.enqueue(SYNC_WALLET_FROM_EARNINGS_TASK, args=(earning_id,))
        except Exception as exc:
            logger.warning(
                "Failed to enqueue wallet sync",
                extra={"earning_id": earning_id, "error": str(exc)},
            )

    def _require_earnings(self, user_id: str) -> TeacherEarning:
        earnings = self.earnings_repository.get_by_user_id(user_id, for_update=True)
        if earnings is None:
            raise NotFoundException(
                "Earnings record not found", code="EARNINGS_NOT_FOUND", details={"user_id": user_id}
            )
        return earnings
