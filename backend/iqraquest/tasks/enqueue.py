"""
Centralized task enqueue helper.

Always use enqueue_task() instead of task.delay() or task.apply_async() so the
request id of the originating HTTP request travels with the task.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Optional, Tuple

from iqraquest.core.request_context import get_request_id

logger = logging.getLogger(__name__)


def enqueue_task(
    task_name: str,
    args: Optional[Tuple[Any, ...]] = None,
    kwargs: Optional[Dict[str, Any]] = None,
    **options: Any,
) -> Any:
    """
    Enqueue a Celery task by name.

    Args:
        task_name: Fully qualified task name
            (e.g., "iqraquest.tasks.wallet_sync_tasks.sync_wallet_from_earnings")
        args: Positional arguments for the task
        kwargs: Keyword arguments for the task
        **options: Additional Celery send options (countdown, eta, queue, ...)

    Returns:
        AsyncResult from Celery
    """
    from iqraquest.tasks.celery_app import celery_app

    headers = options.pop("headers", None) or {}
    request_id = get_request_id()
    if request_id:
        headers.setdefault("request_id", request_id)

    logger.debug("Enqueueing task %s", task_name)
    return celery_app.send_task(
        task_name, args=args or (), kwargs=kwargs or {}, headers=headers, **options
    )
