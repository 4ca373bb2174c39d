# backend/iqraquest/repositories/factory.py
"""
Repository Factory for the payouts backend.

Services obtain repositories here so tests can swap implementations.
"""

from typing import TYPE_CHECKING

from sqlalchemy.orm import Session

from .base_repository import BaseRepository

if TYPE_CHECKING:
    from .earnings_repository import TeacherEarningRepository
    from .financial_settings_repository import FinancialSettingsRepository
    from .notification_repository import NotificationRepository
    from .payment_method_repository import PaymentMethodRepository
    from .payout_request_repository import PayoutRequestRepository
    from .wallet_repository import TeacherWalletRepository
    from .webhook_event_repository import WebhookEventRepository


class RepositoryFactory:
    """Centralized creation of repository instances."""

    @staticmethod
    def create_base_repository(db: Session, model) -> BaseRepository:
        return BaseRepository(db, model)

    @staticmethod
    def create_earnings_repository(db: Session) -> "TeacherEarningRepository":
        from .earnings_repository import TeacherEarningRepository

        return TeacherEarningRepository(db)

    @staticmethod
    def create_wallet_repository(db: Session) -> "TeacherWalletRepository":
        from .wallet_repository import TeacherWalletRepository

        return TeacherWalletRepository(db)

    @staticmethod
    def create_payment_method_repository(db: Session) -> "PaymentMethodRepository":
        from .payment_method_repository import PaymentMethodRepository

        return PaymentMethodRepository(db)

    @staticmethod
    def create_payout_request_repository(db: Session) -> "PayoutRequestRepository":
        from .payout_request_repository import PayoutRequestRepository

        return PayoutRequestRepository(db)

    @staticmethod
    def create_financial_settings_repository(db: Session) -> "FinancialSettingsRepository":
        from .financial_settings_repository import FinancialSettingsRepository

        return FinancialSettingsRepository(db)

    @staticmethod
    def create_notification_repository(db: Session) -> "NotificationRepository":
        from .notification_repository import NotificationRepository

        return NotificationRepository(db)

    @staticmethod
    def create_webhook_event_repository(db: Session) -> "WebhookEventRepository":
        from .webhook_event_repository import WebhookEventRepository

        return WebhookEventRepository(db)
