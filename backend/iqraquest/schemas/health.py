"""Health check response schema."""

from ._strict_base import StrictModel


class HealthResponse(StrictModel):
    status: str
    service: str
    environment: str
