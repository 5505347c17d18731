"""
Metrics instrumentation for observability.
Exposes Prometheus-compatible metrics at /metrics endpoint.
"""

from prometheus_client import Counter, Histogram, generate_latest, CONTENT_TYPE_LATEST
from fastapi import Response

# Reservation metrics
reservation_outcomes = Counter(
    'reservation_outcomes_total',
    'Reservation coordinator outcomes',
    ['operation', 'outcome']  # create/edit/cancel/refund x success/conflict/rejected/error
)

reservation_latency = Histogram(
    'reservation_latency_seconds',
    'Reservation coordinator latency, lock wait included',
    ['operation'],
    buckets=[0.001, 0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5]
)

# Concurrency control metrics
optimistic_retries = Counter(
    'reservation_optimistic_retries_total',
    'Retries caused by seat inventory version conflicts'
)

lock_wait = Histogram(
    'reservation_lock_wait_seconds',
    'Time spent waiting for per-(bus, date) locks',
    buckets=[0.0001, 0.001, 0.005, 0.01, 0.05, 0.1, 0.5, 1.0, 5.0]
)

lock_timeouts = Counter(
    'reservation_lock_timeouts_total',
    'Critical sections abandoned because a lock was not acquired in time'
)

# Ledger health
seat_map_violations = Counter(
    'seat_map_consistency_violations_total',
    'Seats found held by more than one non-cancelled booking'
)

redis_connection_errors = Counter(
    'redis_connection_errors_total',
    'Redis connection errors'
)


def metrics_endpoint() -> Response:
    """
    Prometheus metrics endpoint.

    Usage:
        @app.get("/metrics")
        def metrics():
            return metrics_endpoint()
    """
    return Response(
        content=generate_latest(),
        media_type=CONTENT_TYPE_LATEST
    )


def record_outcome(operation: str, outcome: str):
    """Record coordinator outcome. Outcome: success, conflict, rejected, error"""
    reservation_outcomes.labels(operation=operation, outcome=outcome).inc()
