# backend/iqraquest/repositories/__init__.py
"""
Repository layer for the payouts backend.

Usage:
    from iqraquest.repositories import RepositoryFactory

    repository = RepositoryFactory.create_payout_request_repository(db)
    teacher_ids = repository.find_auto_payout_candidates(threshold)
"""

from .base_repository import BaseRepository
from .earnings_repository import TeacherEarningRepository
from .factory import RepositoryFactory
from .financial_settings_repository import FinancialSettingsRepository
from .notification_repository import NotificationRepository
from .payment_method_repository import PaymentMethodRepository
from .payout_request_repository import PayoutRequestRepository
from .wallet_repository import TeacherWalletRepository
from .webhook_event_repository import WebhookEventRepository

__all__ = [
    "BaseRepository",
    "FinancialSettingsRepository",
    "NotificationRepository",
    "PaymentMethodRepository",
    "PayoutRequestRepository",
    "RepositoryFactory",
    "TeacherEarningRepository",
    "TeacherWalletRepository",
    "WebhookEventRepository",
]
