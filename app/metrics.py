"""
Prometheus counters for requests, submissions and SMS notifications.

Everything lives in the default prometheus-client registry and is served
from /metrics.
"""

from prometheus_client import Counter, Histogram, generate_latest, CONTENT_TYPE_LATEST


http_requests_total = Counter(
    "http_requests_total",
    "HTTP requests by method, path and status",
    labelnames=["method", "path", "status"]
)

request_latency_seconds = Histogram(
    "request_latency_seconds",
    "Time spent serving a request",
    labelnames=["method", "path"]
)

# result: created, validation_error, error
submissions_total = Counter(
    "submissions_total",
    "Registration submissions by outcome",
    labelnames=["result"]
)

# result: sent, failed, error
sms_dispatch_total = Counter(
    "sms_dispatch_total",
    "Detached SMS notifications by outcome",
    labelnames=["result"]
)


def record_http_request(method: str, path: str, status: int, latency_seconds: float) -> None:
    path = path.split("?")[0]
    http_requests_total.labels(method=method, path=path, status=str(status)).inc()
    request_latency_seconds.labels(method=method, path=path).observe(latency_seconds)


def record_submission_outcome(result: str) -> None:
    submissions_total.labels(result=result).inc()


def record_sms_dispatch(result: str) -> None:
    """
    Count a finished notification.

    "sent" and "failed" follow the provider's verdict; "error" means the
    task crashed or its sms_status could not be written.
    """
    sms_dispatch_total.labels(result=result).inc()


def get_metrics() -> bytes:
    return generate_latest()


def get_metrics_content_type() -> str:
    return CONTENT_TYPE_LATEST
