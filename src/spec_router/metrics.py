# Prometheus metrics for routed requests

from prometheus_client import Counter, Histogram

REQUEST_COUNT = Counter(
    "spec_router_requests_total",
    "Requests handled by spec routes",
    ["method", "status"],
)
REQUEST_DURATION = Histogram(
    "spec_router_request_duration_seconds",
    "Time spent in the spec route pipeline",
    ["method"],
)
VALIDATION_FAILURES = Counter(
    "spec_router_validation_failures_total",
    "Body parse, input and output validation failures",
    ["phase", "category"],
)


def record_validation_failure(phase: str, category: str):
    """Count a failure. Phase is parse, input or output."""
    VALIDATION_FAILURES.labels(phase=phase, category=category).inc()


def record_request(method: str, status: int, duration: float):
    REQUEST_COUNT.labels(method=method, status=str(status)).inc()
    REQUEST_DURATION.labels(method=method).observe(duration)
