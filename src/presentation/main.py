"""FastAPI application factory for the bill insights service."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any

import httpx
from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from domain.exceptions import PROBLEM_BASE, DomainError
from infrastructure.container import get_container
from infrastructure.observability.logging_config import setup_logging
from infrastructure.observability.metrics import setup_metrics
from infrastructure.settings import get_settings

from .api.v1 import anomalies, simulation
from .middleware.request_logging import RequestLoggingMiddleware

if TYPE_CHECKING:
    from collections.abc import AsyncGenerator

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Lifespan (startup / shutdown)
# ---------------------------------------------------------------------------


@asynccontextmanager
async def _lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    container = get_container()
    setup_logging(container.settings.log_level, container.settings.service_name)
    app.state.container = container
    yield
    container.close()


# ---------------------------------------------------------------------------
# Exception handlers (RFC 9457 Problem Details)
# ---------------------------------------------------------------------------


def _problem_json(
    status_code: int,
    title: str,
    detail: str,
    *,
    error_type: str,
    instance: str,
    errors: list[dict[str, Any]] | None = None,
) -> JSONResponse:
    body: dict[str, Any] = {
        "type": error_type,
        "title": title,
        "status": status_code,
        "detail": detail,
        "instance": instance,
    }
    if errors:
        body["errors"] = errors
    return JSONResponse(
        status_code=status_code,
        content=body,
        media_type="application/problem+json",
    )


async def _domain_exception_handler(request: Request, exc: DomainError) -> JSONResponse:
    return _problem_json(
        status_code=exc.status_code,
        title=exc.title,
        detail=exc.detail,
        error_type=exc.error_type,
        instance=request.url.path,
    )


async def _validation_exception_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    errors = [
        {
            "field": " -> ".join(str(loc) for loc in err.get("loc", [])),
            "message": err.get("msg", ""),
            "type": err.get("type", ""),
        }
        for err in exc.errors()
    ]
    return _problem_json(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        title="Validation Error",
        detail="The request body or parameters failed validation.",
        error_type=f"{PROBLEM_BASE}/validation-error",
        instance=request.url.path,
        errors=errors,
    )


async def _upstream_exception_handler(request: Request, exc: httpx.HTTPError) -> JSONResponse:
    logger.warning("Upstream call failed on %s %s: %s", request.method, request.url.path, exc)
    return _problem_json(
        status_code=status.HTTP_502_BAD_GATEWAY,
        title="Upstream Unavailable",
        detail="The billing or catalog service could not be reached.",
        error_type=f"{PROBLEM_BASE}/upstream-unavailable",
        instance=request.url.path,
    )


# ---------------------------------------------------------------------------
# Application factory
# ---------------------------------------------------------------------------

API_V1_PREFIX = "/api/v1"


def create_app() -> FastAPI:
    settings = get_settings()
    app = FastAPI(
        title="Bill Insights",
        version=settings.version,
        description=(
            "Bill anomaly detection and what-if cost simulation for telecom "
            "subscribers. Detects unusual charges against a user's billing "
            "history and re-rates bills under hypothetical plans, add-ons and "
            "service changes."
        ),
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
        lifespan=_lifespan,
    )

    # -- CORS
    app.add_middleware(
        CORSMiddleware,
        allow_origins=[o.strip() for o in settings.cors_origins.split(",")],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=["X-Request-ID"],
    )

    # -- Custom middleware
    app.add_middleware(RequestLoggingMiddleware)
    setup_metrics(app)

    # -- API routers
    app.include_router(anomalies.router, prefix=API_V1_PREFIX)
    app.include_router(simulation.router, prefix=API_V1_PREFIX)

    # -- Exception handlers
    app.add_exception_handler(DomainError, _domain_exception_handler)
    app.add_exception_handler(RequestValidationError, _validation_exception_handler)  # type: ignore[arg-type]
    app.add_exception_handler(httpx.HTTPError, _upstream_exception_handler)  # type: ignore[arg-type]

    return app


app = create_app()


@app.get("/health", tags=["Operations"], summary="Health check", response_model=dict)
async def health_check() -> dict[str, Any]:
    return {
        "status": "healthy",
        "service": get_settings().service_name,
        "version": app.version,
        "timestamp": datetime.now(UTC).isoformat(),
    }
