"""Pydantic models for webhook endpoint responses."""

from typing import Literal, Optional

from ._strict_base import StrictModel


class WebhookAckResponse(StrictModel):
    """Acknowledgement returned to a provider once its event is recorded."""

    ok: bool = True
    status: Optional[Literal["processed", "ignored", "duplicate"]] = None


class WebhookErrorResponse(StrictModel):
    error: str


__all__ = ["WebhookAckResponse", "WebhookErrorResponse"]
