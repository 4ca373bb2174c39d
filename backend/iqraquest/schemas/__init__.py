# backend/iqraquest/schemas/__init__.py
"""Pydantic schemas for API responses."""

from ._strict_base import StrictModel
from .health import HealthResponse
from .webhook_responses import WebhookAckResponse, WebhookErrorResponse

__all__ = ["HealthResponse", "StrictModel", "WebhookAckResponse", "WebhookErrorResponse"]
