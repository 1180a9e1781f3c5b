# Centralized Prometheus metrics. Middleware below records timing and
# counts for every request; the gateway client and the connection proxy
# record their own outcomes so dashboards can spot a flaky gateway.

from time import monotonic

from fastapi import Request
from prometheus_client import Counter, Histogram
from starlette.middleware.base import BaseHTTPMiddleware


REQUEST_DURATION_MS = Histogram(
    "request_duration_ms",
    "API request duration in milliseconds",
    ["method", "route"],
    buckets=[5, 10, 25, 50, 100, 250, 500, 1000, 2000, 5000, 10000, 20000],
)
REQUESTS_TOTAL = Counter(
    "requests_total",
    "Total API requests",
    ["method", "route", "status_code"],
)

# Every outbound gateway call, labeled by logical operation and outcome
# (ok, http_error, invalid_token, timeout, network_error).
GATEWAY_REQUESTS_TOTAL = Counter(
    "gateway_requests_total",
    "Outbound WhatsApp gateway calls",
    ["provider", "operation", "outcome"],
)
GATEWAY_LATENCY_SECONDS = Histogram(
    "gateway_request_latency_seconds",
    "Latency of WhatsApp gateway calls in seconds",
    ["provider", "operation"],
    buckets=[0.05, 0.1, 0.25, 0.5, 1, 2, 5, 10, 15, 30],
)

# Stored status transitions written by the proxy.
CONNECTION_TRANSITIONS_TOTAL = Counter(
    "whatsapp_connection_transitions_total",
    "Integration record status transitions",
    ["from_status", "to_status"],
)
CREDENTIAL_INVALIDATIONS_TOTAL = Counter(
    "whatsapp_credential_invalidations_total",
    "Gateway tokens cleared after an authentication failure",
    ["source"],
)

JOB_RUN_TOTAL = Counter(
    "job_run_total",
    "Background job runs",
    ["job_name", "status"],
)


def _label(value: object | None, default: str = "unknown") -> str:
    if value is None:
        return default
    if isinstance(value, str) and not value.strip():
        return default
    return str(value)


class MetricsMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):
        start = monotonic()
        response = await call_next(request)
        duration_ms = (monotonic() - start) * 1000.0

        route = request.scope.get("route")
        route_path = getattr(route, "path", None) or request.url.path
        REQUEST_DURATION_MS.labels(request.method, route_path).observe(duration_ms)
        REQUESTS_TOTAL.labels(request.method, route_path, str(response.status_code)).inc()
        return response


def record_gateway_call(
    *,
    provider: str,
    operation: str,
    outcome: str,
    duration_seconds: float | None = None,
) -> None:
    GATEWAY_REQUESTS_TOTAL.labels(
        provider=_label(provider),
        operation=_label(operation),
        outcome=_label(outcome),
    ).inc()
    if duration_seconds is not None:
        GATEWAY_LATENCY_SECONDS.labels(
            provider=_label(provider),
            operation=_label(operation),
        ).observe(duration_seconds)


def record_status_transition(from_status: str | None, to_status: str) -> None:
    if from_status == to_status:
        return
    CONNECTION_TRANSITIONS_TOTAL.labels(
        from_status=_label(from_status, "none"),
        to_status=_label(to_status),
    ).inc()


def record_credential_invalidation(source: str) -> None:
    CREDENTIAL_INVALIDATIONS_TOTAL.labels(source=_label(source)).inc()


def record_job_run(*, job_name: str, success: bool) -> None:
    JOB_RUN_TOTAL.labels(
        job_name=_label(job_name),
        status="success" if success else "failure",
    ).inc()
