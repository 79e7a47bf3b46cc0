"""
Prometheus metrics module for CombatBooking.

Service timings come from the @measure_operation decorator; the payment
counters are incremented by the booking, webhook and notification services.
"""

from typing import Optional

from prometheus_client import CONTENT_TYPE_LATEST, CollectorRegistry, Counter, Histogram, generate_latest

# Custom registry so test runs and reloads don't collide with the default one
REGISTRY = CollectorRegistry()

service_operation_duration_seconds = Histogram(
    "combatbooking_service_operation_duration_seconds",
    "Service operation duration in seconds",
    ["service", "operation"],
    registry=REGISTRY,
    buckets=(0.001, 0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0),
)

service_operations_total = Counter(
    "combatbooking_service_operations_total",
    "Total number of service operations",
    ["service", "operation", "status"],
    registry=REGISTRY,
)

errors_total = Counter(
    "combatbooking_errors_total",
    "Total number of service errors",
    ["service", "operation", "error_type"],
    registry=REGISTRY,
)

payment_captures_total = Counter(
    "combatbooking_payment_captures_total",
    "Capture attempts by outcome (captured, already_captured, skipped, failed)",
    ["outcome"],
    registry=REGISTRY,
)

booking_confirmations_total = Counter(
    "combatbooking_booking_confirmations_total",
    "Confirm transitions by source and whether this caller won the update",
    ["source", "result"],
    registry=REGISTRY,
)

webhook_events_total = Counter(
    "combatbooking_webhook_events_total",
    "Payment webhook events received",
    ["event_type", "result"],
    registry=REGISTRY,
)

emails_total = Counter(
    "combatbooking_emails_total",
    "Transactional email sends by template and status",
    ["template", "status"],
    registry=REGISTRY,
)


class PrometheusMetrics:
    """Static helpers around the module-level collectors."""

    @staticmethod
    def record_service_operation(
        service: str,
        operation: str,
        duration: float,
        status: str = "success",
        error_type: Optional[str] = None,
    ) -> None:
        service_operation_duration_seconds.labels(service=service, operation=operation).observe(
            duration
        )
        service_operations_total.labels(service=service, operation=operation, status=status).inc()
        if status == "error" and error_type:
            errors_total.labels(service=service, operation=operation, error_type=error_type).inc()

    @staticmethod
    def record_capture(outcome: str) -> None:
        payment_captures_total.labels(outcome=outcome).inc()

    @staticmethod
    def record_confirmation(source: str, won: bool) -> None:
        booking_confirmations_total.labels(
            source=source, result="confirmed" if won else "already_confirmed"
        ).inc()

    @staticmethod
    def record_webhook_event(event_type: str, result: str) -> None:
        webhook_events_total.labels(event_type=event_type, result=result).inc()

    @staticmethod
    def record_email(template: str, sent: bool) -> None:
        emails_total.labels(template=template, status="sent" if sent else "failed").inc()

    @staticmethod
    def get_metrics() -> bytes:
        return generate_latest(REGISTRY)

    @staticmethod
    def get_content_type() -> str:
        return CONTENT_TYPE_LATEST


prometheus_metrics = PrometheusMetrics()
