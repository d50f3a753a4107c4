"""
Prometheus metrics definitions and FastAPI instrumentation.

Defines the service's custom metrics, small recording helpers used by the
API layer and background tasks, and a ``setup_metrics`` function that wires
automatic request tracking into any FastAPI application.
"""

from __future__ import annotations

import time
from contextlib import contextmanager
from typing import TYPE_CHECKING, Iterable, Iterator

from fastapi import FastAPI, Request, Response
from prometheus_client import (
    CONTENT_TYPE_LATEST,
    REGISTRY,
    Counter,
    Histogram,
    generate_latest,
)
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.responses import Response as StarletteResponse

if TYPE_CHECKING:
    from domain.models.anomaly import AnomalyFinding
    from domain.models.simulation import SimulationResult


# ======================================================================
# Custom metrics (module-level singletons)
# ======================================================================

api_requests_total = Counter(
    "api_requests_total",
    "Total number of API requests",
    labelnames=["method", "endpoint", "status"],
    registry=REGISTRY,
)

api_request_duration_seconds = Histogram(
    "api_request_duration_seconds",
    "Request latency in seconds",
    labelnames=["method", "endpoint"],
    buckets=(0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0),
    registry=REGISTRY,
)

anomaly_findings_total = Counter(
    "anomaly_findings_total",
    "Anomaly findings produced by detection runs",
    labelnames=["type", "severity"],
    registry=REGISTRY,
)

simulation_runs_total = Counter(
    "simulation_runs_total",
    "What-if simulation runs",
    labelnames=["basis", "outcome"],
    registry=REGISTRY,
)

core_run_duration_seconds = Histogram(
    "core_run_duration_seconds",
    "Duration of detection and simulation runs in seconds",
    labelnames=["operation"],
    buckets=(0.001, 0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5),
    registry=REGISTRY,
)


# ======================================================================
# Recording helpers
# ======================================================================


def record_findings(findings: Iterable[AnomalyFinding]) -> None:
    for finding in findings:
        anomaly_findings_total.labels(
            type=finding.type.value,
            severity=finding.severity.value,
        ).inc()


def record_simulation(result: SimulationResult) -> None:
    """Count a simulation by basis and whether it saves, costs or is neutral."""
    if result.saving > 0:
        outcome = "saving"
    elif result.saving < 0:
        outcome = "increase"
    else:
        outcome = "neutral"
    simulation_runs_total.labels(basis=result.basis.value, outcome=outcome).inc()


@contextmanager
def timed(operation: str) -> Iterator[None]:
    start = time.perf_counter()
    try:
        yield
    finally:
        core_run_duration_seconds.labels(operation=operation).observe(time.perf_counter() - start)


# ======================================================================
# Middleware for automatic request instrumentation
# ======================================================================

class PrometheusMiddleware(BaseHTTPMiddleware):
    """Middleware that records request count and latency per endpoint."""

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        method = request.method
        endpoint = self._get_path_template(request)

        start = time.perf_counter()
        response: Response = await call_next(request)
        duration = time.perf_counter() - start

        api_requests_total.labels(
            method=method,
            endpoint=endpoint,
            status=str(response.status_code),
        ).inc()

        api_request_duration_seconds.labels(
            method=method,
            endpoint=endpoint,
        ).observe(duration)

        return response

    @staticmethod
    def _get_path_template(request: Request) -> str:
        """
        Attempt to resolve the route template (e.g. ``/anomalies/{user_id}``)
        so that cardinality stays bounded.
        """
        route = request.scope.get("route")
        if route and hasattr(route, "path"):
            return route.path
        return request.url.path


# ======================================================================
# Setup helper
# ======================================================================

def setup_metrics(app: FastAPI) -> None:
    """
    Instrument a FastAPI application with Prometheus metrics.

    * Adds the ``PrometheusMiddleware`` for automatic request tracking.
    * Registers a ``/metrics`` endpoint that serves the Prometheus
      exposition format.
    """

    app.add_middleware(PrometheusMiddleware)

    @app.get("/metrics", include_in_schema=False)
    async def metrics_endpoint() -> StarletteResponse:
        body = generate_latest(REGISTRY)
        return StarletteResponse(
            content=body,
            media_type=CONTENT_TYPE_LATEST,
        )
