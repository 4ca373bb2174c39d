# backend/iqraquest/main.py
"""
FastAPI application for the IqraQuest payouts backend.

Exposes the payment provider webhooks under /api/v1/webhooks plus health and
Prometheus endpoints. Background work (auto-payouts, wallet sync) runs in
Celery; see ``iqraquest.tasks``.
"""

import logging
from typing import Awaitable, Callable

from fastapi import APIRouter, FastAPI, Request, Response
import ulid

from .core.config import settings
from .core.constants import BRAND_NAME
from .core.request_context import attach_request_id_filter, reset_request_id, set_request_id
from .errors import register_error_handlers
from .monitoring.prometheus_metrics import prometheus_metrics
from .routes.v1 import payment_webhooks as payment_webhooks_v1
from .schemas.health import HealthResponse

# Configure logging
logging.basicConfig(
    level=logging.INFO, format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)

attach_request_id_filter()

logger = logging.getLogger(__name__)

API_TITLE = f"{BRAND_NAME} Payouts API"
API_VERSION = "1.0.0"


def create_app() -> FastAPI:
    app = FastAPI(
        title=API_TITLE,
        description="Payment webhooks and payout reconciliation for IqraQuest teachers",
        version=API_VERSION,
        docs_url="/docs",
        redoc_url="/redoc",
    )
    register_error_handlers(app)

    @app.middleware("http")
    async def request_id_middleware(
        request: Request, call_next: Callable[[Request], Awaitable[Response]]
    ) -> Response:
        request_id = request.headers.get("x-request-id") or str(ulid.ULID())
        token = set_request_id(request_id)
        try:
            response = await call_next(request)
        finally:
            reset_request_id(token)
        response.headers["X-Request-ID"] = request_id
        return response

    api_v1 = APIRouter(prefix="/api/v1")
    api_v1.include_router(payment_webhooks_v1.router, prefix="/webhooks")
    app.include_router(api_v1)

    @app.get("/health", response_model=HealthResponse)
    def health_check() -> HealthResponse:
        return HealthResponse(
            status="healthy",
            service=f"{BRAND_NAME.lower()}-payouts",
            environment=settings.environment,
        )

    @app.get("/metrics", include_in_schema=False)
    def metrics() -> Response:
        return Response(
            content=prometheus_metrics.get_metrics(),
            media_type=prometheus_metrics.get_content_type(),
        )

    logger.info("Application configured", extra={"environment": settings.environment})
    return app


app = create_app()
