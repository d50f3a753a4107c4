"""
Bill anomaly detection.

Compares one closed bill against the user's prior bills, category by
category, and classifies what stands out:

* ``SPIKE`` - the amount is a statistical outlier (z-score) or, where the
  history is too short or perfectly flat, a rule-based deviation from the mean.
* ``NEW_ITEM`` - a category, or a category/subtype pair, never billed before.
* ``ROAMING_ACTIVATION`` - first roaming charges ever.
* ``PREMIUM_SMS_INCREASE`` / ``VAS_INCREASE`` - the percentage rise over the
  mean crosses the configured threshold; replaces a ``SPIKE`` on that category.

Means and deviations use the most recent ``history_window`` bills; first
occurrences are judged against every earlier bill. When no category stands
out, the bill total gets the same ``SPIKE`` test, with ``category`` None on
the finding.

The detector is pure: identical inputs give identical findings.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import Sequence

from domain.models.anomaly import (
    AnomalyFinding,
    AnomalyType,
    CategoryBaseline,
    Severity,
    finding_id,
)
from domain.models.billing import BillingPeriodRecord, ItemCategory, to_money
from domain.services.baseline import BaselineBuilder, detection_total

# Below this the history is treated as flat.
_FLAT_STDDEV = 1e-9


@dataclass(frozen=True)
class DetectionRules:
    """Tunable thresholds. Loaded from settings; the defaults are starting points."""

    spike_z_threshold: float = 2.0
    high_z_threshold: float = 3.0
    medium_percentage: float = 30.0
    high_percentage: float = 100.0
    increase_threshold_percentage: float = 50.0
    high_value_amount: Decimal = Decimal("50")
    min_history: int = 3
    history_window: int = 6
    excluded_categories: frozenset[ItemCategory] = field(
        default_factory=lambda: frozenset({ItemCategory.TAX})
    )

    def __post_init__(self) -> None:
        if self.high_z_threshold < self.spike_z_threshold:
            raise ValueError("high_z_threshold must be >= spike_z_threshold")
        if self.high_percentage < self.medium_percentage:
            raise ValueError("high_percentage must be >= medium_percentage")
        if self.history_window < self.min_history:
            raise ValueError("history_window must be >= min_history")


RECOMMENDATIONS: dict[tuple[AnomalyType, Severity], tuple[str, ...]] = {
    (AnomalyType.SPIKE, Severity.HIGH): ("Review data package", "Check usage limits"),
    (AnomalyType.SPIKE, Severity.MEDIUM): (
        "Check usage limits",
        "Compare with last month's usage",
    ),
    (AnomalyType.SPIKE, Severity.LOW): ("Keep an eye on usage next period",),
    (AnomalyType.NEW_ITEM, Severity.HIGH): (
        "Verify the new charge on your bill",
        "Cancel services you did not subscribe to",
    ),
    (AnomalyType.NEW_ITEM, Severity.MEDIUM): (
        "Verify the new charge on your bill",
        "Check recent subscriptions",
    ),
    (AnomalyType.NEW_ITEM, Severity.LOW): ("Verify the new charge on your bill",),
    (AnomalyType.ROAMING_ACTIVATION, Severity.HIGH): (
        "Check roaming usage",
        "Disable roaming when not travelling",
        "Consider a roaming package",
    ),
    (AnomalyType.ROAMING_ACTIVATION, Severity.MEDIUM): (
        "Check roaming usage",
        "Consider a roaming package",
    ),
    (AnomalyType.ROAMING_ACTIVATION, Severity.LOW): (
        "Check roaming usage",
        "Disable roaming if not needed",
    ),
    (AnomalyType.PREMIUM_SMS_INCREASE, Severity.HIGH): (
        "Block premium SMS",
        "Review premium SMS subscriptions",
    ),
    (AnomalyType.PREMIUM_SMS_INCREASE, Severity.MEDIUM): (
        "Review premium SMS subscriptions",
        "Consider blocking premium SMS",
    ),
    (AnomalyType.PREMIUM_SMS_INCREASE, Severity.LOW): ("Review premium SMS subscriptions",),
    (AnomalyType.VAS_INCREASE, Severity.HIGH): (
        "Cancel unused value-added services",
        "Review VAS subscriptions",
    ),
    (AnomalyType.VAS_INCREASE, Severity.MEDIUM): ("Review VAS subscriptions",),
    (AnomalyType.VAS_INCREASE, Severity.LOW): ("Review VAS subscriptions",),
}

TOTAL_RECOMMENDATIONS: dict[Severity, tuple[str, ...]] = {
    Severity.HIGH: ("Review the bill breakdown", "Compare with last month's bill"),
    Severity.MEDIUM: ("Compare with last month's bill",),
    Severity.LOW: ("Keep an eye on usage next period",),
}

_SPECIFIC_INCREASE: dict[ItemCategory, AnomalyType] = {
    ItemCategory.PREMIUM_SMS: AnomalyType.PREMIUM_SMS_INCREASE,
    ItemCategory.VAS: AnomalyType.VAS_INCREASE,
}

_NEW_ITEM_TYPES = frozenset({AnomalyType.NEW_ITEM, AnomalyType.ROAMING_ACTIVATION})

_CATEGORY_ORDER: dict[ItemCategory | None, int] = {
    category: index for index, category in enumerate(ItemCategory)
}
_CATEGORY_ORDER[None] = len(_CATEGORY_ORDER)
_TYPE_ORDER = {anomaly_type: index for index, anomaly_type in enumerate(AnomalyType)}


def classify_severity(
    anomaly_type: AnomalyType,
    z_score: float | None,
    percentage: float | None,
    amount: Decimal,
    rules: DetectionRules,
) -> Severity:
    """Deterministic severity for a triggered candidate."""

    abs_z = abs(z_score) if z_score is not None else None
    if anomaly_type in _NEW_ITEM_TYPES and amount >= rules.high_value_amount:
        return Severity.HIGH
    if abs_z is not None and abs_z >= rules.high_z_threshold:
        return Severity.HIGH
    if percentage is not None and percentage >= rules.high_percentage:
        return Severity.HIGH
    if abs_z is not None and abs_z >= rules.spike_z_threshold:
        return Severity.MEDIUM
    if percentage is not None and percentage >= rules.medium_percentage:
        return Severity.MEDIUM
    return Severity.LOW


@dataclass(frozen=True)
class _Candidate:
    type: AnomalyType
    category: ItemCategory | None
    amount: Decimal
    description: str
    mean: float | None = None
    z_score: float | None = None
    percentage: float | None = None


class AnomalyDetector:
    """Classifies one bill's deviations from its history."""

    def __init__(
        self,
        rules: DetectionRules | None = None,
        baseline_builder: BaselineBuilder | None = None,
    ) -> None:
        self.rules = rules or DetectionRules()
        self._baselines = baseline_builder or BaselineBuilder(self.rules.min_history)

    def detect(
        self,
        bill: BillingPeriodRecord,
        history: Sequence[BillingPeriodRecord],
        detected_at: datetime,
    ) -> list[AnomalyFinding]:
        """
        Return the findings for *bill*, ordered by category then type.

        Parameters
        ----------
        bill:
            The bill under evaluation.
        history:
            The user's earlier bills, as far back as available. Records at or
            after ``bill.period`` are ignored.
        detected_at:
            Timestamp stamped on every finding of this run.
        """

        rules = self.rules
        prior = sorted(
            (record for record in history if record.period < bill.period),
            key=lambda record: record.period,
        )
        recent = prior[-rules.history_window:]
        current = bill.detection_amounts
        categories = [
            category
            for category in ItemCategory
            if category not in rules.excluded_categories and current.get(category, 0) > 0
        ]
        baselines = self._baselines.build(recent, categories)

        billed: set[ItemCategory] = set()
        seen: set[tuple[ItemCategory, str]] = set()
        for record in prior:
            billed |= {c for c, amount in record.detection_amounts.items() if amount > 0}
            seen |= record.subtypes()

        candidates: dict[tuple[AnomalyType, ItemCategory | None], _Candidate] = {}
        for category in categories:
            found = self._check_category(
                bill, category, current[category], baselines[category], billed, seen
            )
            for candidate in found:
                candidates.setdefault((candidate.type, candidate.category), candidate)

        if not candidates:
            total = self._total_check(bill, recent)
            if total is not None:
                candidates[(total.type, None)] = total

        findings = [self._to_finding(bill, c, detected_at) for c in candidates.values()]
        findings.sort(key=lambda f: (_CATEGORY_ORDER[f.category], _TYPE_ORDER[f.type]))
        return findings

    # ------------------------------------------------------------------
    # Checks
    # ------------------------------------------------------------------

    def _check_category(
        self,
        bill: BillingPeriodRecord,
        category: ItemCategory,
        amount: Decimal,
        baseline: CategoryBaseline,
        billed: set[ItemCategory],
        seen: set[tuple[ItemCategory, str]],
    ) -> list[_Candidate]:
        found: list[_Candidate] = []

        new_item = self._new_item_check(bill, category, amount, billed, seen)
        if new_item is not None:
            found.append(new_item)

        # No ratio against a zero mean; first occurrences are covered above.
        if baseline.mean > 0:
            deviation = self._deviation_check(category, amount, baseline)
            if deviation is not None:
                found.append(deviation)
        return found

    def _total_check(
        self,
        bill: BillingPeriodRecord,
        recent: Sequence[BillingPeriodRecord],
    ) -> _Candidate | None:
        excluded = self.rules.excluded_categories
        baseline = self._baselines.build_total(recent, excluded)
        if baseline.mean <= 0:
            return None
        return self._deviation_check(None, detection_total(bill, excluded), baseline)

    def _new_item_check(
        self,
        bill: BillingPeriodRecord,
        category: ItemCategory,
        amount: Decimal,
        billed: set[ItemCategory],
        seen: set[tuple[ItemCategory, str]],
    ) -> _Candidate | None:
        label = _label(category)
        if category not in billed:
            if category is ItemCategory.ROAMING:
                return _Candidate(
                    type=AnomalyType.ROAMING_ACTIVATION,
                    category=category,
                    amount=amount,
                    description=(
                        f"Roaming charges of {amount} appeared; no roaming was billed "
                        "in any earlier period"
                    ),
                )
            return _Candidate(
                type=AnomalyType.NEW_ITEM,
                category=category,
                amount=amount,
                description=f"{label} charges of {amount} appear for the first time",
            )

        new_subtypes = sorted(
            subtype
            for item_category, subtype in bill.subtypes()
            if item_category is category and (item_category, subtype) not in seen
        )
        new_amount = sum(
            (
                item.amount
                for item in bill.detection_items
                if item.category is category and item.subtype in new_subtypes
            ),
            Decimal("0"),
        )
        if new_amount <= 0:
            return None
        return _Candidate(
            type=AnomalyType.NEW_ITEM,
            category=category,
            amount=new_amount,
            description=f"New {label} charges ({', '.join(new_subtypes)}) totalling {new_amount}",
        )

    def _deviation_check(
        self,
        category: ItemCategory | None,
        amount: Decimal,
        baseline: CategoryBaseline,
    ) -> _Candidate | None:
        rules = self.rules
        value = float(amount)
        mean = baseline.mean
        percentage = round((value - mean) / mean * 100, 4)
        z_score: float | None = None

        if not baseline.sufficient:
            # Too little history for statistics: rule-based rise over the mean.
            is_spike = percentage >= rules.medium_percentage
        elif baseline.standard_deviation < _FLAT_STDDEV:
            # Flat history: any real change is a deviation.
            is_spike = not math.isclose(value, mean, rel_tol=0.0, abs_tol=0.005)
        else:
            z_score = round((value - mean) / baseline.standard_deviation, 4)
            is_spike = abs(z_score) >= rules.spike_z_threshold

        label = _label(category)
        mean_text = to_money(mean)

        specific = _SPECIFIC_INCREASE.get(category)
        if specific is not None and percentage > rules.increase_threshold_percentage:
            return _Candidate(
                type=specific,
                category=category,
                amount=amount,
                mean=mean,
                z_score=z_score,
                percentage=percentage,
                description=(
                    f"{label} charges rose {percentage:.1f}% to {amount} against an "
                    f"average of {mean_text}"
                ),
            )

        if not is_spike:
            return None

        description = (
            f"{label} charges of {amount} are {percentage:+.1f}% against the "
            f"{baseline.count}-period average of {mean_text}"
        )
        if z_score is not None:
            description += f" (z-score {z_score:.2f})"
        return _Candidate(
            type=AnomalyType.SPIKE,
            category=category,
            amount=amount,
            mean=mean,
            z_score=z_score,
            percentage=percentage,
            description=description,
        )

    # ------------------------------------------------------------------
    # Assembly
    # ------------------------------------------------------------------

    def _to_finding(
        self,
        bill: BillingPeriodRecord,
        candidate: _Candidate,
        detected_at: datetime,
    ) -> AnomalyFinding:
        severity = classify_severity(
            candidate.type,
            candidate.z_score,
            candidate.percentage,
            candidate.amount,
            self.rules,
        )
        return AnomalyFinding(
            id=finding_id(bill.user_id, bill.bill_id, candidate.type, candidate.category, bill.period),
            user_id=bill.user_id,
            bill_id=bill.bill_id,
            period=bill.period,
            category=candidate.category,
            type=candidate.type,
            severity=severity,
            description=candidate.description,
            amount=candidate.amount,
            baseline_mean=to_money(candidate.mean) if candidate.mean is not None else None,
            z_score=candidate.z_score,
            percentage_difference=candidate.percentage,
            recommendations=(
                RECOMMENDATIONS[(candidate.type, severity)]
                if candidate.category is not None
                else TOTAL_RECOMMENDATIONS[severity]
            ),
            detected_at=detected_at,
        )


def _label(category: ItemCategory | None) -> str:
    if category is None:
        return "Total"
    return category.value.replace("_", " ").title().replace("Sms", "SMS").replace("Vas", "VAS")
