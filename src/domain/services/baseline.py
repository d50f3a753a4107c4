"""
Per-category historical baselines for bill anomaly detection.

Each category's baseline is the mean and sample standard deviation of its
pre-tax amount across the prior billing periods. A period in which a category
did not appear contributes 0, so every category is measured over the same
number of periods. The bill-total baseline uses the same statistics over the
sum of the compared categories.
"""

from __future__ import annotations

import statistics
from decimal import Decimal
from typing import Iterable, Sequence

from domain.models.anomaly import CategoryBaseline
from domain.models.billing import ZERO, BillingPeriodRecord, ItemCategory


class BaselineBuilder:
    """Pure function object turning bill history into category baselines."""

    def __init__(self, min_history: int = 3) -> None:
        if min_history < 1:
            raise ValueError("min_history must be positive")
        self.min_history = min_history

    def build(
        self,
        history: Sequence[BillingPeriodRecord],
        categories: Iterable[ItemCategory] | None = None,
    ) -> dict[ItemCategory, CategoryBaseline]:
        """
        Compute a baseline for each category.

        Parameters
        ----------
        history:
            Prior periods only; the period under evaluation must be excluded.
        categories:
            Categories to build for. Defaults to every category.
        """

        wanted = list(categories) if categories is not None else list(ItemCategory)
        per_period = [record.detection_amounts for record in history]

        baselines: dict[ItemCategory, CategoryBaseline] = {}
        for category in wanted:
            values = [float(amounts.get(category, 0)) for amounts in per_period]
            baselines[category] = self._baseline(category, values)
        return baselines

    def build_total(
        self,
        history: Sequence[BillingPeriodRecord],
        excluded: Iterable[ItemCategory] = (),
    ) -> CategoryBaseline:
        """Baseline of the bill total, leaving out the *excluded* categories."""
        skip = frozenset(excluded)
        values = [float(detection_total(record, skip)) for record in history]
        return self._baseline(None, values)

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _baseline(self, category: ItemCategory | None, values: list[float]) -> CategoryBaseline:
        count = len(values)
        mean = float(statistics.mean(values)) if values else 0.0
        # Sample (N - 1) formula; undefined below two points.
        stdev = float(statistics.stdev(values)) if count >= 2 else 0.0
        return CategoryBaseline(
            category=category,
            mean=mean,
            standard_deviation=stdev,
            count=count,
            sufficient=count >= self.min_history,
        )


def detection_total(
    record: BillingPeriodRecord,
    excluded: frozenset[ItemCategory] = frozenset(),
) -> Decimal:
    """Sum of the record's detection amounts outside *excluded*."""
    return sum(
        (amount for category, amount in record.detection_amounts.items() if category not in excluded),
        ZERO,
    )
