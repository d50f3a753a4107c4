"""Celery application configuration for the bill insights service.

Sets up the broker, result backend, serialisation, task routing and retry
policies. Broker and backend URLs come from :class:`AppSettings`.
"""

from __future__ import annotations

from celery import Celery

from infrastructure.settings import get_settings

_settings = get_settings()

app = Celery("bill_insights")

# ---------------------------------------------------------------------------
# Broker and result backend
# ---------------------------------------------------------------------------

app.conf.broker_url = _settings.celery_broker_url
app.conf.result_backend = _settings.celery_result_backend

# ---------------------------------------------------------------------------
# Serialisation
# ---------------------------------------------------------------------------

app.conf.accept_content = ["json"]
app.conf.task_serializer = "json"
app.conf.result_serializer = "json"

# ---------------------------------------------------------------------------
# Task routing
# ---------------------------------------------------------------------------

app.conf.task_routes = {
    "application.tasks.anomaly_tasks.*": {"queue": "anomalies"},
}

# ---------------------------------------------------------------------------
# Default retry policy
# ---------------------------------------------------------------------------

app.conf.task_annotations = {
    "*": {
        "max_retries": 3,
        "default_retry_delay": 60,
        "retry_backoff": True,
        "retry_backoff_max": 600,
        "retry_jitter": True,
    },
}

# ---------------------------------------------------------------------------
# Miscellaneous
# ---------------------------------------------------------------------------

app.conf.task_acks_late = True
app.conf.worker_prefetch_multiplier = 1
app.conf.task_track_started = True
app.conf.task_time_limit = 1800  # hard limit: 30 minutes
app.conf.task_soft_time_limit = 1500  # soft limit: 25 minutes
app.conf.timezone = "UTC"

# ---------------------------------------------------------------------------
# Autodiscovery
# ---------------------------------------------------------------------------

app.autodiscover_tasks(["application.tasks.anomaly_tasks"])
