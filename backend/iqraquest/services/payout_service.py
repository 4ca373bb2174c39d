# backend/iqraquest/services/payout_service.py
"""
Payout Service for IqraQuest

Owns the payout request lifecycle:
- Periodic auto-payout run that turns threshold-reaching balances into
  payout requests (at most one open request per teacher)
- Status workflow (approve, mark processing, complete, reject) with the
  matching ledger movement on the teacher's earnings record

Each teacher is processed in its own transaction so one failure never
blocks the rest of the batch. Notifications and wallet sync are scheduled
only after the payout request is committed.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from decimal import Decimal
import logging
from typing import Any, Optional

from sqlalchemy.orm import Session

from ..core.config import settings
from ..core.constants import AUTO_PAYOUT_NOTE, NOTIFICATION_TYPE_PAYOUT
from ..core.exceptions import (
    BusinessRuleException,
    NotFoundException,
    OpenPayoutRequestExistsException,
    PaymentMethodUnavailableException,
)
from ..models.earnings import ZERO, to_money
from ..models.payout_request import PayoutRequest, PayoutStatus, generate_request_uuid
from ..monitoring.prometheus_metrics import prometheus_metrics
from ..repositories.factory import RepositoryFactory
from .base import BaseService
from .financial_settings_service import FinancialSettingsService
from .ledger_service import Enqueuer, LedgerService
from .notification_service import NotificationService

logger = logging.getLogger(__name__)

ATTEMPT_CREATED = "created"
ATTEMPT_FAILED = "failed"

_CURRENCY_SYMBOLS = {"NGN": "₦", "USD": "$", "GBP": "£", "EUR": "€"}


def _now_utc() -> datetime:
    return datetime.now(timezone.utc)


def format_amount(amount: Decimal, currency: str) -> str:
    symbol = _CURRENCY_SYMBOLS.get(currency.upper())
    if symbol:
        return f"{symbol}{amount:,.2f}"
    return f"{currency.upper()} {amount:,.2f}"


@dataclass
class PayoutAttempt:
    """Outcome of processing one eligible teacher."""

    user_id: str
    status: str
    amount: Optional[Decimal] = None
    request_uuid: Optional[str] = None
    error: Optional[str] = None

    @property
    def succeeded(self) -> bool:
        return self.status == ATTEMPT_CREATED


@dataclass
class AutoPayoutReport:
    threshold: Decimal
    eligible: int = 0
    succeeded: int = 0
    failed: int = 0
    attempts: list[PayoutAttempt] = field(default_factory=list)

    def record(self, attempt: PayoutAttempt) -> None:
        self.attempts.append(attempt)
        if attempt.succeeded:
            self.succeeded += 1
        else:
            self.failed += 1

    def to_dict(self) -> dict[str, Any]:
        return {
            "threshold": str(self.threshold),
            "eligible": self.eligible,
            "succeeded": self.succeeded,
            "failed": self.failed,
            "attempts": [
                {
                    **asdict(attempt),
                    "amount": str(attempt.amount) if attempt.amount is not None else None,
                }
                for attempt in self.attempts
            ],
        }


class PayoutService(BaseService):
    """Payout request creation and lifecycle."""

    def __init__(
        self,
        db: Session,
        settings_service: Optional[FinancialSettingsService] = None,
        notification_service: Optional[NotificationService] = None,
        enqueue: Optional[Enqueuer] = None,
        currency: Optional[str] = None,
    ):
        super().__init__(db)
        self.settings_service = settings_service or FinancialSettingsService(db)
        self.notification_service = notification_service or NotificationService(db)
        self.ledger = LedgerService(db, enqueue=enqueue)
        self.currency = (currency or settings.payout_currency).upper()
        self.payout_repository = RepositoryFactory.create_payout_request_repository(db)
        self.earnings_repository = RepositoryFactory.create_earnings_repository(db)
        self.payment_method_repository = RepositoryFactory.create_payment_method_repository(db)

    # ------------------------------------------------------------------
    # Auto-payout run
    # ------------------------------------------------------------------

    @BaseService.measure_operation("payouts.process_auto_payouts")
    def process_auto_payouts(self, threshold: Optional[Decimal] = None) -> AutoPayoutReport:
        """
        Create a pending payout request for every teacher whose withdrawable
        balance reached the threshold and who has no open request.

        Args:
            threshold: Override for the stored ``auto_payout_threshold`` setting

        Returns:
            AutoPayoutReport with eligible/succeeded/failed counts
        """
        resolved = (
            to_money(threshold)
            if threshold is not None
            else self.settings_service.get_auto_payout_threshold()
        )
        report = AutoPayoutReport(threshold=resolved)
        if resolved <= ZERO:
            logger.info("Auto-payout threshold is not positive; skipping run")
            return report

        candidates = self.payout_repository.find_auto_payout_candidates(resolved)
        report.eligible = len(candidates)
        logger.info(
            "Starting auto-payout run",
            extra={"threshold": str(resolved), "eligible": report.eligible},
        )

        for user_id in candidates:
            try:
                attempt = self._create_auto_payout(user_id, resolved)
            except Exception as exc:
                logger.error(
                    "Failed to create auto-payout",
                    extra={"user_id": user_id, "error": str(exc)},
                    exc_info=True,
                )
                attempt = PayoutAttempt(user_id=user_id, status=ATTEMPT_FAILED, error=str(exc))
            report.record(attempt)
            prometheus_metrics.record_auto_payout_attempt(attempt.status)

        logger.info(
            "Auto-payout run finished",
            extra={
                "eligible": report.eligible,
                "succeeded": report.succeeded,
                "failed": report.failed,
            },
        )
        return report

    def _create_auto_payout(self, user_id: str, threshold: Decimal) -> PayoutAttempt:
        with self.transaction():
            earnings = self.earnings_repository.get_by_user_id(user_id, for_update=True)
            if earnings is None:
                raise NotFoundException(
                    "Earnings record not found",
                    code="EARNINGS_NOT_FOUND",
                    details={"user_id": user_id},
                )
            amount = to_money(earnings.wallet_balance)
            if amount < threshold:
                raise BusinessRuleException(
                    "Balance fell below the auto-payout threshold",
                    code="BELOW_THRESHOLD",
                    details={"user_id": user_id, "balance": str(amount)},
                )
            if self.payout_repository.has_open_request(user_id):
                raise OpenPayoutRequestExistsException(user_id)

            method = self.payment_method_repository.resolve_payout_method(user_id)
            if method is None:
                raise PaymentMethodUnavailableException(user_id)

            now = _now_utc()
            request = self.payout_repository.create_request(
                request_uuid=generate_request_uuid(automatic=True, now=now),
                user_id=user_id,
                user_type="teacher",
                amount=amount,
                currency=self.currency,
                payment_method=method.type,
                payment_details=method.details_snapshot(),
                status=PayoutStatus.PENDING.value,
                is_automatic=True,
                request_date=now,
                notes=AUTO_PAYOUT_NOTE,
            )
            earnings.reserve_payout(amount)
            earning_id = earnings.id

        logger.info(
            "Auto-payout request created",
            extra={
                "user_id": user_id,
                "request_uuid": request.request_uuid,
                "amount": str(amount),
            },
        )
        self.ledger.schedule_wallet_sync(earning_id)
        self._notify_auto_payout(request)
        return PayoutAttempt(
            user_id=user_id,
            status=ATTEMPT_CREATED,
            amount=amount,
            request_uuid=request.request_uuid,
        )

    def _notify_auto_payout(self, request: PayoutRequest) -> None:
        amount = to_money(request.amount)
        try:
            self.notification_service.create_notification(
                title="Auto-Payout Request Created",
                body=(
                    f"An automatic payout request of {format_amount(amount, request.currency)} "
                    "has been created for you."
                ),
                notification_type=NOTIFICATION_TYPE_PAYOUT,
                user_ids=[request.user_id],
                channels=settings.auto_payout_notification_channels,
                data={"payout_request_id": request.id, "request_uuid": request.request_uuid},
            )
        except Exception as exc:
            logger.warning(
                "Failed to send auto-payout notification",
                extra={
                    "user_id": request.user_id,
                    "request_uuid": request.request_uuid,
                    "error": str(exc),
                },
            )

    # ------------------------------------------------------------------
    # Status workflow
    # ------------------------------------------------------------------

    def get_request(self, request_uuid: str) -> PayoutRequest:
        request = self.payout_repository.get_by_request_uuid(request_uuid)
        if request is None:
            raise NotFoundException(
                "Payout request not found",
                code="PAYOUT_REQUEST_NOT_FOUND",
                details={"request_uuid": request_uuid},
            )
        return request

    @BaseService.measure_operation("payouts.approve")
    def approve(self, request_uuid: str, *, processed_by_id: Optional[str] = None) -> PayoutRequest:
        with self.transaction():
            request = self._lock_request(request_uuid)
            request.transition_to(PayoutStatus.APPROVED)
            request.processed_at = _now_utc()
            request.processed_by_id = processed_by_id
        return request

    @BaseService.measure_operation("payouts.mark_processing")
    def mark_processing(
        self,
        request_uuid: str,
        *,
        external_reference: Optional[str] = None,
        processed_by_id: Optional[str] = None,
    ) -> PayoutRequest:
        with self.transaction():
            request = self._lock_request(request_uuid)
            request.transition_to(PayoutStatus.PROCESSING)
            request.processed_at = _now_utc()
            if processed_by_id is not None:
                request.processed_by_id = processed_by_id
            if external_reference:
                request.external_reference = external_reference
        return request

    @BaseService.measure_operation("payouts.complete")
    def complete(
        self, request_uuid: str, *, external_reference: Optional[str] = None
    ) -> PayoutRequest:
        """Mark the request paid and move its amount to ``total_withdrawn``."""
        with self.transaction():
            request = self._lock_request(request_uuid)
            request.transition_to(PayoutStatus.COMPLETED)
            request.completed_at = _now_utc()
            if external_reference:
                request.external_reference = external_reference
            earnings = self.ledger.settle(request.user_id, request.amount)
            earning_id = earnings.id
        logger.info("Payout request completed", extra={"request_uuid": request_uuid})
        self.ledger.schedule_wallet_sync(earning_id)
        return request

    @BaseService.measure_operation("payouts.reject")
    def reject(
        self,
        request_uuid: str,
        *,
        reason: str,
        processed_by_id: Optional[str] = None,
    ) -> PayoutRequest:
        """Reject the request and return its amount to the withdrawable balance."""
        with self.transaction():
            request = self._lock_request(request_uuid)
            request.transition_to(PayoutStatus.REJECTED)
            request.failure_reason = reason
            request.processed_at = _now_utc()
            if processed_by_id is not None:
                request.processed_by_id = processed_by_id
            earnings = self.ledger.release(request.user_id, request.amount)
            earning_id = earnings.id
        logger.info(
            "Payout request rejected",
            extra={"request_uuid": request_uuid, "reason": reason},
        )
        self.ledger.schedule_wallet_sync(earning_id)
        return request

    def _lock_request(self, request_uuid: str) -> PayoutRequest:
        request = self.payout_repository.get_by_request_uuid(request_uuid, for_update=True)
        if request is None:
            raise NotFoundException(
                "Payout request not found",
                code="PAYOUT_REQUEST_NOT_FOUND",
                details={"request_uuid": request_uuid},
            )
        return request
