"""
Metrics instrumentation for observability.
Exposes Prometheus-compatible metrics at /metrics endpoint.
"""

from prometheus_client import Counter, Histogram, generate_latest, CONTENT_TYPE_LATEST
from fastapi import Response

# Reservation metrics
booking_attempts = Counter(
    'booking_attempts_total',
    'Total reservation attempts',
    ['status']  # success, conflict, rejected, error
)

booking_latency = Histogram(
    'booking_latency_seconds',
    'Reservation latency',
    buckets=[0.001, 0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0]
)

holds_expired = Counter(
    'holds_expired_total',
    'Soft-holds swept to cancelled after their expiry'
)

# Ledger metrics
credit_operations = Counter(
    'credit_operations_total',
    'Credit ledger operations',
    ['operation', 'result']  # deduct/refund, success/noop/failure
)

# Notification metrics
notifications = Counter(
    'notifications_total',
    'Notifications handed to the emitter',
    ['result']  # queued, logged, failed
)

# HTTP metrics
request_latency = Histogram(
    'http_request_duration_seconds',
    'Request latency by route template',
    ['method', 'route', 'status_code'],
    buckets=[0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5]
)

# Cache metrics
cache_operations = Counter(
    'cache_operations_total',
    'Cache operations',
    ['operation', 'result']  # get/set, hit/miss
)


def metrics_endpoint() -> Response:
    """Prometheus metrics endpoint."""
    return Response(
        content=generate_latest(),
        media_type=CONTENT_TYPE_LATEST
    )


def record_booking_attempt(status: str):
    """Record reservation attempt. Status: success, conflict, rejected, error"""
    booking_attempts.labels(status=status).inc()


def record_holds_expired(count: int):
    if count:
        holds_expired.inc(count)


def record_credit_operation(operation: str, result: str):
    """Record ledger operation. Operation: deduct, refund"""
    credit_operations.labels(operation=operation, result=result).inc()


def record_notification(result: str):
    notifications.labels(result=result).inc()


def record_request(method: str, route: str, status_code: int, seconds: float):
    request_latency.labels(method=method, route=route, status_code=str(status_code)).observe(seconds)


def record_cache_operation(operation: str, hit: bool):
    """Record cache operation."""
    result = "hit" if hit else "miss"
    cache_operations.labels(operation=operation, result=result).inc()
