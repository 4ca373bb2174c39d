# backend/iqraquest/api/dependencies/__init__.py
"""
Central export point for all dependencies.
"""

from .database import get_db
from .services import get_payment_webhook_service
from .webhooks import verified_webhook

__all__ = [
    "get_db",
    "get_payment_webhook_service",
    "verified_webhook",
]
