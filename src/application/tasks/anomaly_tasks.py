"""Background Celery tasks for bill anomaly detection."""

from __future__ import annotations

import logging
from typing import Any

from application.tasks.celery_app import app

logger = logging.getLogger(__name__)


@app.task(  # type: ignore[untyped-decorator]
    name="application.tasks.anomaly_tasks.detect_period_anomalies",
    bind=True,
    max_retries=2,
    default_retry_delay=60,
)
def detect_period_anomalies(self: Any, user_ids: list[str], period: str) -> dict[str, Any]:
    """Run detection on a closed period for many users.

    Each user is processed independently: a user without a bill is skipped,
    a failing user is reported in ``errors`` and the sweep carries on.
    """
    from domain.exceptions import BillNotFoundError
    from domain.models.billing import Period
    from infrastructure.container import get_container
    from infrastructure.observability.logging_config import bind_run_context, clear_run_context
    from infrastructure.observability.metrics import record_findings, timed

    target = Period.parse(period)
    logger.info("Anomaly sweep for %s over %d users", target, len(user_ids))

    try:
        container = get_container()
        checked = 0
        skipped = 0
        total_findings = 0
        errors: list[str] = []

        for user_id in user_ids:
            bind_run_context(user_id=user_id, period=str(target))
            try:
                with timed("detect_anomalies"):
                    findings = container.anomaly_service.detect_anomalies(user_id, target)
            except BillNotFoundError:
                skipped += 1
                continue
            except Exception as exc:
                logger.exception("Anomaly detection failed for user %s period %s", user_id, target)
                errors.append(f"{user_id}: {exc}")
                continue
            record_findings(findings)
            total_findings += len(findings)
            checked += 1
        clear_run_context()

        logger.info(
            "Anomaly sweep %s: %d checked, %d skipped, %d findings, %d errors",
            target,
            checked,
            skipped,
            total_findings,
            len(errors),
        )
        return {
            "period": str(target),
            "users_checked": checked,
            "users_skipped": skipped,
            "findings": total_findings,
            "errors": errors,
        }

    except Exception as exc:
        logger.exception("Anomaly sweep for %s failed", target)
        raise self.retry(exc=exc) from exc
