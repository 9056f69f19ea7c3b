"""
Metrics instrumentation for observability.
Exposes Prometheus-compatible metrics at the /metrics endpoint.
"""

from prometheus_client import Counter, Histogram, Gauge, generate_latest, CONTENT_TYPE_LATEST
from fastapi import Response

# Registration metrics
registration_attempts = Counter(
    'registration_attempts_total',
    'Total event registration attempts',
    ['result']  # created, or the error code (AlreadyRegistered, Ineligible, ...)
)

registration_latency = Histogram(
    'registration_latency_seconds',
    'Event registration latency',
    buckets=[0.001, 0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0]
)

status_transitions = Counter(
    'registration_status_transitions_total',
    'Registration status transitions applied',
    ['from_status', 'to_status']
)

# Concurrency metrics
participant_count_conflicts = Counter(
    'participant_count_conflicts_total',
    'Compare-and-swap conflicts on events.current_participants'
)

participant_count_drift = Counter(
    'participant_count_drift_total',
    'Reconciliations that found a drifted participant count'
)

event_lock_acquisitions = Counter(
    'event_lock_acquisitions_total',
    'Per-event registration lock acquisitions',
    ['backend']  # redis, local
)

# Cache metrics
cache_operations = Counter(
    'cache_operations_total',
    'Cache operations',
    ['operation', 'result']  # get/set, hit/miss
)

redis_connection_errors = Counter(
    'redis_connection_errors_total',
    'Redis connection errors'
)

redis_circuit_breaker_open = Gauge(
    'redis_circuit_breaker_open',
    'Redis circuit breaker state (1=open, 0=closed)'
)


def metrics_endpoint() -> Response:
    """Prometheus metrics endpoint body."""
    return Response(
        content=generate_latest(),
        media_type=CONTENT_TYPE_LATEST
    )


def record_registration_attempt(result: str):
    """Record registration outcome: created, or the error code of the rejection."""
    registration_attempts.labels(result=result).inc()


def record_status_transition(from_status: str, to_status: str):
    status_transitions.labels(from_status=from_status, to_status=to_status).inc()


def record_lock_acquisition(backend: str):
    """Record a per-event lock acquisition. Backend: redis, local"""
    event_lock_acquisitions.labels(backend=backend).inc()


def record_cache_operation(operation: str, hit: bool):
    """Record cache operation."""
    result = "hit" if hit else "miss"
    cache_operations.labels(operation=operation, result=result).inc()
