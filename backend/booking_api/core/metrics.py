"""
Metrics instrumentation for observability.
Exposes Prometheus-compatible metrics at /metrics endpoint.
"""

from prometheus_client import Counter, Histogram, generate_latest, CONTENT_TYPE_LATEST
from fastapi import Response

# Booking metrics
booking_attempts = Counter(
    'booking_attempts_total',
    'Booking workflow operations by outcome',
    ['operation', 'outcome']  # create/cancel/status, success or error code
)

booking_latency = Histogram(
    'booking_latency_seconds',
    'Booking workflow latency',
    ['operation'],
    buckets=[0.001, 0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5]
)

seats_moved = Counter(
    'booking_seats_total',
    'Seats reserved or released through the inventory ledger',
    ['direction']  # reserved, released
)

# Database metrics
db_operations = Counter(
    'db_operations_total',
    'Total database operations',
    ['operation']  # read, write, lock
)

lock_conflicts = Counter(
    'db_lock_conflicts_total',
    'Transactions aborted by lock contention',
    ['kind']  # lock_timeout, conflict
)

# Cache metrics
cache_operations = Counter(
    'cache_operations_total',
    'Cache operations',
    ['operation', 'result']  # get/set, hit/miss
)


def metrics_endpoint() -> Response:
    """Render the default registry in the Prometheus text format."""
    return Response(
        content=generate_latest(),
        media_type=CONTENT_TYPE_LATEST
    )


def record_booking_attempt(operation: str, outcome: str):
    """Record a booking workflow outcome. Outcome: success or an error code."""
    booking_attempts.labels(operation=operation, outcome=outcome).inc()


def record_seats(direction: str, count: int):
    seats_moved.labels(direction=direction).inc(count)


def record_db_operation(operation: str):
    """Record database operation. Operation: read, write, lock"""
    db_operations.labels(operation=operation).inc()


def record_lock_conflict(kind: str):
    lock_conflicts.labels(kind=kind).inc()


def record_cache_operation(operation: str, hit: bool):
    """Record cache operation."""
    result = "hit" if hit else "miss"
    cache_operations.labels(operation=operation, result=result).inc()
