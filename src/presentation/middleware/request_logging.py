"""
Structured JSON request logging middleware.

Every request/response cycle is logged as a single ``http_request`` event
with method, route, status code, duration, the user the request is about
(when the path names one) and a request id. The request id is also bound to
the logging context, so service-level log lines of the same request carry it.
"""

from __future__ import annotations

import time
import uuid
from typing import Any

from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.responses import Response

from infrastructure.observability.logging_config import (
    bind_run_context,
    clear_run_context,
    get_logger,
)

logger = get_logger("bill_insights.request")

REQUEST_ID_HEADER = "X-Request-ID"


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Logs every HTTP request/response with structured JSON fields.

    Captured fields:
        - ``request_id``  -- caller-supplied ``X-Request-ID`` or a fresh UUID
        - ``method``      -- HTTP method
        - ``path``        -- request path
        - ``status_code`` -- response status
        - ``duration_ms`` -- wall-clock duration in milliseconds
        - ``user_id``     -- user path parameter (if any)
    """

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        request_id = request.headers.get(REQUEST_ID_HEADER) or str(uuid.uuid4())
        request.state.request_id = request_id

        clear_run_context()
        bind_run_context(request_id=request_id)
        start = time.perf_counter()

        try:
            response: Response = await call_next(request)
        except Exception:
            self._log_request(
                request=request,
                request_id=request_id,
                status_code=500,
                duration_ms=round((time.perf_counter() - start) * 1000, 2),
                level="error",
            )
            raise
        finally:
            clear_run_context()

        duration_ms = round((time.perf_counter() - start) * 1000, 2)
        response.headers[REQUEST_ID_HEADER] = request_id

        level = "info" if response.status_code < 400 else "warning"
        if response.status_code >= 500:
            level = "error"

        self._log_request(
            request=request,
            request_id=request_id,
            status_code=response.status_code,
            duration_ms=duration_ms,
            level=level,
        )
        return response

    @staticmethod
    def _log_request(
        *,
        request: Request,
        request_id: str,
        status_code: int,
        duration_ms: float,
        level: str = "info",
    ) -> None:
        event_data: dict[str, Any] = {
            "request_id": request_id,
            "method": request.method,
            "path": str(request.url.path),
            "query": str(request.url.query) if request.url.query else None,
            "status_code": status_code,
            "duration_ms": duration_ms,
            "user_id": request.path_params.get("user_id"),
        }

        log_method = getattr(logger, level, logger.info)
        log_method("http_request", **event_data)
