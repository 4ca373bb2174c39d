# backend/iqraquest/models/__init__.py
"""
SQLAlchemy models for the IqraQuest payouts backend.

Importing this package registers every table on ``Base.metadata``.
"""

from .earnings import TeacherEarning
from .financial_setting import FinancialSetting
from .notification import Notification, NotificationRecipient
from .payment_method import PaymentMethod, PaymentMethodType
from .payout_request import OPEN_PAYOUT_STATUSES, PayoutRequest, PayoutStatus
from .user import User, UserRole
from .wallet import TeacherWallet
from .webhook_event import WebhookEvent, WebhookEventStatus

__all__ = [
    "FinancialSetting",
    "Notification",
    "NotificationRecipient",
    "OPEN_PAYOUT_STATUSES",
    "PaymentMethod",
    "PaymentMethodType",
    "PayoutRequest",
    "PayoutStatus",
    "TeacherEarning",
    "TeacherWallet",
    "User",
    "UserRole",
    "WebhookEvent",
    "WebhookEventStatus",
]
