# backend/iqraquest/tasks/beat_schedule.py
"""
Celery Beat schedule for IqraQuest.

The auto-payout run is the periodic trigger for payout reconciliation. The
nightly wallet sweep repairs any wallet whose event-driven sync was lost.
"""

from typing import Any

from celery.schedules import crontab

PROCESS_AUTO_PAYOUTS_TASK = "iqraquest.tasks.payout_tasks.process_auto_payouts"
SYNC_ALL_WALLETS_TASK = "iqraquest.tasks.wallet_sync_tasks.sync_all_wallets"

CELERYBEAT_SCHEDULE: dict[str, dict[str, Any]] = {
    # Auto-payouts - daily at 6:00 AM Lagos time
    "process-auto-payouts": {
        "task": PROCESS_AUTO_PAYOUTS_TASK,
        "schedule": crontab(hour=6, minute=0),
        "options": {"queue": "payments", "priority": 8},
    },
    # Wallet reconciliation sweep - daily at 3:15 AM
    "sync-all-teacher-wallets": {
        "task": SYNC_ALL_WALLETS_TASK,
        "schedule": crontab(hour=3, minute=15),
        "options": {"queue": "payments", "priority": 3},
    },
}

# Environment-specific overrides
SCHEDULE_CONFIG: dict[str, dict[str, dict[str, Any]]] = {
    "development": {
        "process-auto-payouts": {
            "task": PROCESS_AUTO_PAYOUTS_TASK,
            "schedule": crontab(minute=0),  # Hourly
            "options": {"queue": "payments"},
        },
    },
    "local": {
        "process-auto-payouts": {
            "task": PROCESS_AUTO_PAYOUTS_TASK,
            "schedule": crontab(minute="*/15"),
            "options": {"queue": "payments"},
        },
    },
}


def get_beat_schedule(environment: str = "production") -> dict[str, dict[str, Any]]:
    """
    Get the beat schedule for the specified environment.

    Args:
        environment: The environment name (production, development, local, ...)

    Returns:
        Mapping of schedule entry name to Celery beat configuration dict
    """
    base: dict[str, dict[str, Any]] = dict(CELERYBEAT_SCHEDULE)
    overrides = SCHEDULE_CONFIG.get(environment)
    if overrides:
        base.update(overrides)
    return base
