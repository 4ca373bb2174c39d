"""
Prometheus metrics for the IqraQuest payouts backend.

Metrics live on a private registry so tests and multiple app instances do not
collide with the default process collectors.
"""

from typing import Optional

from prometheus_client import (
    CONTENT_TYPE_LATEST,
    CollectorRegistry,
    Counter,
    Histogram,
    generate_latest,
)

REGISTRY = CollectorRegistry()

service_operation_duration_seconds = Histogram(
    "iqraquest_service_operation_duration_seconds",
    "Service operation duration in seconds",
    ["service", "operation"],
    registry=REGISTRY,
    buckets=(0.001, 0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5),
)

service_operations_total = Counter(
    "iqraquest_service_operations_total",
    "Total number of service operations",
    ["service", "operation", "status"],
    registry=REGISTRY,
)

errors_total = Counter(
    "iqraquest_errors_total",
    "Total number of errors",
    ["service", "operation", "error_type"],
    registry=REGISTRY,
)

webhook_verifications_total = Counter(
    "iqraquest_webhook_verifications_total",
    "Inbound webhook signature checks",
    ["provider", "outcome"],  # outcome: accepted | rejected
    registry=REGISTRY,
)

auto_payout_attempts_total = Counter(
    "iqraquest_auto_payout_attempts_total",
    "Per-teacher auto-payout attempts",
    ["status"],  # created | failed
    registry=REGISTRY,
)

wallet_sync_total = Counter(
    "iqraquest_wallet_sync_total",
    "Balance synchronization runs",
    ["direction", "status"],
    registry=REGISTRY,
)


class PrometheusMetrics:
    """Thin facade used by services and routes."""

    @staticmethod
    def record_service_operation(
        service: str,
        operation: str,
        duration: float,
        status: str = "success",
        error_type: Optional[str] = None,
    ) -> None:
        """
        Record service operation metrics from @measure_operation decorator.

        Args:
            service: Service name (e.g., 'PayoutService')
            operation: Operation name (e.g., 'payouts.process_auto_payouts')
            duration: Operation duration in seconds
            status: Operation status ('success' or 'error')
            error_type: Type of error if status is 'error'
        """
        service_operation_duration_seconds.labels(service=service, operation=operation).observe(
            duration
        )
        service_operations_total.labels(service=service, operation=operation, status=status).inc()
        if status == "error" and error_type:
            errors_total.labels(service=service, operation=operation, error_type=error_type).inc()

    @staticmethod
    def record_webhook_verification(provider: str, accepted: bool) -> None:
        outcome = "accepted" if accepted else "rejected"
        webhook_verifications_total.labels(provider=provider, outcome=outcome).inc()

    @staticmethod
    def record_auto_payout_attempt(status: str) -> None:
        auto_payout_attempts_total.labels(status=status).inc()

    @staticmethod
    def record_wallet_sync(direction: str, status: str) -> None:
        wallet_sync_total.labels(direction=direction, status=status).inc()

    @staticmethod
    def get_metrics() -> bytes:
        return generate_latest(REGISTRY)

    @staticmethod
    def get_content_type() -> str:
        return CONTENT_TYPE_LATEST


prometheus_metrics = PrometheusMetrics()
