# backend/iqraquest/tasks/__init__.py
"""
Celery tasks package for IqraQuest.

- Automatic payout requests
- Wallet and earnings synchronization
"""

from iqraquest.tasks.celery_app import BaseTask, celery_app
from iqraquest.tasks.payout_tasks import process_auto_payouts
from iqraquest.tasks.wallet_sync_tasks import (
    sync_all_wallets,
    sync_earnings_from_wallet,
    sync_wallet_from_earnings,
)

__all__ = [
    "celery_app",
    "BaseTask",
    "process_auto_payouts",
    "sync_all_wallets",
    "sync_earnings_from_wallet",
    "sync_wallet_from_earnings",
]
