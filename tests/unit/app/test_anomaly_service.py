"""Unit tests for AnomalyService: detection runs, stored findings, workflow."""

from __future__ import annotations

import uuid
from datetime import datetime, timezone

import pytest

from conftest import NOW, PERIOD, USER_ID, build_bill, data_history, line
from application.services.anomaly_service import AnomalyService
from domain.exceptions import BillNotFoundError, ComputationError, FindingNotFoundError
from domain.models.anomaly import AnomalyStatus, AnomalyType
from domain.models.billing import ItemCategory, Period


@pytest.fixture
def svc(billing_store, anomaly_repo, detector, clock):
    for bill in data_history(["100", "102", "98"]):
        billing_store.save(bill)
    return AnomalyService(
        billing_store=billing_store,
        anomaly_repo=anomaly_repo,
        detector=detector,
        clock=clock,
    )


@pytest.fixture
def spiky_bill(billing_store):
    return billing_store.save(
        build_bill(
            PERIOD,
            [line(ItemCategory.DATA, "108.00"), line(ItemCategory.ROAMING, "15.00", subtype="EU")],
        )
    )


class TestDetectAnomalies:

    def test_missing_bill_raises(self, svc):
        with pytest.raises(BillNotFoundError):
            svc.detect_anomalies(USER_ID, PERIOD)

    def test_findings_are_stored(self, svc, spiky_bill, anomaly_repo):
        findings = svc.detect_anomalies(USER_ID, PERIOD)
        assert [f.type for f in findings] == [AnomalyType.SPIKE, AnomalyType.ROAMING_ACTIVATION]
        assert all(f.detected_at == NOW for f in findings)
        assert len(anomaly_repo.list_by_user(USER_ID)) == 2

    def test_quiet_bill_stores_nothing(self, svc, billing_store, anomaly_repo):
        billing_store.save(build_bill(PERIOD, [line(ItemCategory.DATA, "100.00")]))
        assert svc.detect_anomalies(USER_ID, PERIOD) == []
        assert anomaly_repo.list_by_user(USER_ID) == []

    def test_rerun_is_idempotent(self, svc, spiky_bill, anomaly_repo):
        first = svc.detect_anomalies(USER_ID, PERIOD)
        second = svc.detect_anomalies(USER_ID, PERIOD)
        assert [f.id for f in first] == [f.id for f in second]
        assert len(anomaly_repo.list_by_user(USER_ID)) == 2

    def test_rerun_keeps_workflow_status(self, spiky_bill, billing_store, anomaly_repo, detector):
        times = iter([NOW, datetime(2024, 7, 1, tzinfo=timezone.utc)])
        svc = AnomalyService(billing_store, anomaly_repo, detector, clock=lambda: next(times))
        for bill in data_history(["100", "102", "98"]):
            billing_store.save(bill)

        spike = svc.detect_anomalies(USER_ID, PERIOD)[0]
        svc.update_status(spike.id, AnomalyStatus.INVESTIGATING)

        rerun = svc.detect_anomalies(USER_ID, PERIOD)[0]
        assert rerun.id == spike.id
        assert rerun.status is AnomalyStatus.INVESTIGATING
        assert rerun.detected_at == NOW

    def test_history_window_respected(self, billing_store, anomaly_repo, detector, clock):
        # Only the last six bills count; the older outlier must not widen the baseline.
        billing_store.save(build_bill(Period(2023, 1), [line(ItemCategory.DATA, "900.00")]))
        for bill in data_history(["100", "102", "98", "100", "102", "98"]):
            billing_store.save(bill)
        billing_store.save(build_bill(PERIOD, [line(ItemCategory.DATA, "108.00")]))

        svc = AnomalyService(billing_store, anomaly_repo, detector, clock=clock)
        [finding] = svc.detect_anomalies(USER_ID, PERIOD)
        assert finding.baseline_mean is not None
        assert str(finding.baseline_mean) == "100.00"

    def test_roaming_billed_before_the_window_is_known(
        self, billing_store, anomaly_repo, detector, clock
    ):
        billing_store.save(
            build_bill(
                Period(2023, 9),
                [line(ItemCategory.DATA, "100.00"), line(ItemCategory.ROAMING, "40.00", subtype="EU")],
            )
        )
        for bill in data_history(["100", "102", "98", "100", "102", "98", "100"]):
            billing_store.save(bill)
        billing_store.save(
            build_bill(
                PERIOD,
                [line(ItemCategory.DATA, "100.00"), line(ItemCategory.ROAMING, "15.00", subtype="EU")],
            )
        )

        svc = AnomalyService(billing_store, anomaly_repo, detector, clock=clock)
        findings = svc.detect_anomalies(USER_ID, PERIOD)
        assert not any(f.type is AnomalyType.ROAMING_ACTIVATION for f in findings)

    def test_arithmetic_failure_is_wrapped(self, svc, spiky_bill, monkeypatch):
        def boom(*args, **kwargs):
            raise ZeroDivisionError("division by zero")

        monkeypatch.setattr(svc._detector, "detect", boom)
        with pytest.raises(ComputationError):
            svc.detect_anomalies(USER_ID, PERIOD)


class TestListAndSummary:

    def test_list_newest_period_first(self, svc, billing_store, spiky_bill):
        svc.detect_anomalies(USER_ID, PERIOD)
        june = Period(2024, 6)
        billing_store.save(
            build_bill(
                june,
                [line(ItemCategory.DATA, "100.00"), line(ItemCategory.ONE_OFF, "5.00", subtype="ONE_TIME")],
            )
        )
        svc.detect_anomalies(USER_ID, june)

        periods = [f.period for f in svc.list_findings(USER_ID)]
        assert periods[0] == june
        assert periods == sorted(periods, reverse=True)
        assert all(f.period == PERIOD for f in svc.list_findings(USER_ID, PERIOD))

    def test_summary_counts(self, svc, spiky_bill):
        findings = svc.detect_anomalies(USER_ID, PERIOD)
        svc.update_status(findings[0].id, AnomalyStatus.RESOLVED)

        summary = svc.get_anomaly_summary(USER_ID)
        assert summary.total == 2
        assert summary.active == 1
        assert summary.by_type == {"SPIKE": 1, "ROAMING_ACTIVATION": 1}
        assert summary.by_severity == {"HIGH": 1, "LOW": 1}

    def test_summary_for_unknown_user_is_empty(self, svc):
        summary = svc.get_anomaly_summary("nobody")
        assert summary.total == 0
        assert summary.by_type == {}


class TestUpdateStatus:

    def test_unknown_finding(self, svc):
        with pytest.raises(FindingNotFoundError):
            svc.update_status(uuid.uuid4(), AnomalyStatus.RESOLVED)

    def test_transition_persisted(self, svc, spiky_bill, anomaly_repo):
        finding = svc.detect_anomalies(USER_ID, PERIOD)[0]
        updated = svc.update_status(finding.id, AnomalyStatus.RESOLVED)
        assert updated.status is AnomalyStatus.RESOLVED
        assert anomaly_repo.get_by_id(finding.id).status is AnomalyStatus.RESOLVED

    def test_same_status_is_noop(self, svc, spiky_bill):
        finding = svc.detect_anomalies(USER_ID, PERIOD)[0]
        assert svc.update_status(finding.id, AnomalyStatus.ACTIVE) == finding
