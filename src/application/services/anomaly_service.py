"""Anomaly application service.

Loads a user's bill and its history from the billing store, runs the
:class:`AnomalyDetector` and keeps the resulting findings in the anomaly
repository. Detection is idempotent: re-running it for the same bill yields
the same finding ids, and the stored status of a finding survives.
"""

from __future__ import annotations

import logging
import statistics
from collections import Counter
from dataclasses import replace
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Callable, Optional
from uuid import UUID

from domain.exceptions import BillNotFoundError, ComputationError, FindingNotFoundError
from domain.models.anomaly import AnomalyFinding, AnomalyStatus, AnomalySummary
from domain.models.billing import Period

if TYPE_CHECKING:
    from application.services.ports import AnomalyRepository, BillingStore
    from domain.services.anomaly_detector import AnomalyDetector

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(UTC)


class AnomalyService:
    """Orchestrates bill anomaly detection and the findings it stores."""

    def __init__(
        self,
        billing_store: BillingStore,
        anomaly_repo: AnomalyRepository,
        detector: AnomalyDetector,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._billing = billing_store
        self._anomaly_repo = anomaly_repo
        self._detector = detector
        self._clock = clock

    # -- public API -------------------------------------------------------

    def detect_anomalies(self, user_id: str, period: Period) -> list[AnomalyFinding]:
        """Detect anomalies on the user's bill for *period*.

        Raises :class:`BillNotFoundError` when no bill exists for the period.
        Returns the findings of this run, ordered by category then type.
        """
        bill = self._billing.get_bill(user_id, period)
        if bill is None:
            raise BillNotFoundError(user_id, period)

        history = self._billing.get_bill_history(user_id, period)
        logger.info(
            "Detecting anomalies for user %s period %s against %d prior bills",
            user_id,
            period,
            len(history),
        )

        try:
            findings = self._detector.detect(bill, history, self._clock())
        except (ArithmeticError, statistics.StatisticsError) as exc:
            raise ComputationError("anomaly detection", str(exc)) from exc

        findings = [self._carry_over(finding) for finding in findings]
        if findings:
            self._anomaly_repo.save_many(findings)

        logger.info(
            "Anomaly detection for user %s period %s: %d findings",
            user_id,
            period,
            len(findings),
        )
        return findings

    def list_findings(self, user_id: str, period: Optional[Period] = None) -> list[AnomalyFinding]:
        """Stored findings for a user, most recent period first."""
        findings = self._anomaly_repo.list_by_user(user_id, period)
        return sorted(findings, key=lambda f: f.period, reverse=True)

    def get_anomaly_summary(self, user_id: str) -> AnomalySummary:
        findings = self._anomaly_repo.list_by_user(user_id)
        by_type = Counter(f.type.value for f in findings)
        by_severity = Counter(f.severity.value for f in findings)
        return AnomalySummary(
            user_id=user_id,
            total=len(findings),
            active=sum(1 for f in findings if f.status is AnomalyStatus.ACTIVE),
            by_type=dict(by_type),
            by_severity=dict(by_severity),
        )

    def update_status(self, finding_id: UUID, status: AnomalyStatus) -> AnomalyFinding:
        """Move a finding through the resolution workflow."""
        finding = self._anomaly_repo.get_by_id(finding_id)
        if finding is None:
            raise FindingNotFoundError(finding_id)
        if finding.status is status:
            return finding

        updated = self._anomaly_repo.update(replace(finding, status=status))
        logger.info(
            "Finding %s status changed from %s to %s",
            finding_id,
            finding.status.value,
            status.value,
        )
        return updated

    # -- helpers ----------------------------------------------------------

    def _carry_over(self, finding: AnomalyFinding) -> AnomalyFinding:
        """Keep the workflow status and first detection time of a stored finding."""
        stored = self._anomaly_repo.get_by_id(finding.id)
        if stored is None:
            return finding
        return replace(finding, status=stored.status, detected_at=stored.detected_at)
