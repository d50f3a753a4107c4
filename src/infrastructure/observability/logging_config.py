"""
Structured logging configuration using structlog.

Every log line is a JSON object carrying the service name, level, logger,
ISO timestamp and whatever request or run context is bound at the time
(``request_id``, ``user_id``, ``period``). Stdlib ``logging`` calls made by
the application services go through the same renderer.
"""

from __future__ import annotations

import logging
import sys
from typing import Any

import structlog

SERVICE_NAME: str = "bill-insights"

_service_name = SERVICE_NAME


# ======================================================================
# Custom processors
# ======================================================================


def add_service_name(logger: Any, method_name: str, event_dict: dict[str, Any]) -> dict[str, Any]:
    """Inject the service name into every log event."""
    event_dict.setdefault("service", _service_name)
    return event_dict


# ======================================================================
# Setup
# ======================================================================


def setup_logging(log_level: str = "INFO", service_name: str = SERVICE_NAME) -> None:
    """
    Configure structlog and the stdlib logging bridge for JSON output.

    Parameters
    ----------
    log_level:
        Minimum severity level (``DEBUG``, ``INFO``, ``WARNING``, ...).
        Unknown names fall back to ``INFO``.
    service_name:
        Value of the ``service`` key on every event.
    """

    global _service_name
    _service_name = service_name
    numeric_level = getattr(logging, log_level.upper(), logging.INFO)

    shared_processors: list[structlog.types.Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        add_service_name,  # type: ignore[list-item]
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
    ]

    structlog.configure(
        processors=[
            *shared_processors,
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    # Records from plain ``logging.getLogger`` calls get the same enrichment.
    formatter = structlog.stdlib.ProcessorFormatter(
        foreign_pre_chain=shared_processors,
        processors=[
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            structlog.processors.JSONRenderer(),
        ],
    )

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(formatter)

    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.addHandler(handler)
    root_logger.setLevel(numeric_level)


# ======================================================================
# Context helpers
# ======================================================================


def bind_run_context(**values: Any) -> None:
    """Bind key/values onto every event logged from the current context."""
    structlog.contextvars.bind_contextvars(**values)


def clear_run_context() -> None:
    structlog.contextvars.clear_contextvars()


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    """
    Return a bound structlog logger pre-populated with the given *name*.

    Additional context can be attached via ``.bind()``::

        log = get_logger("simulation")
        log = log.bind(user_id="u-123")
        log.info("simulation_completed", saving="29.90")
    """
    return structlog.get_logger(name)  # type: ignore[no-any-return]
