# backend/iqraquest/routes/v1/__init__.py
"""
API v1 routes.

All routes in this package are mounted under /api/v1.
"""

from . import payment_webhooks

__all__ = ["payment_webhooks"]
