"""Adapter implementations bridging infrastructure to application-layer ports.

In-memory stores back the unit tests and local runs. When base URLs are
configured the container uses the HTTP clients instead.
"""

from __future__ import annotations

from typing import Iterable, Optional
from uuid import UUID

from domain.models.anomaly import AnomalyFinding
from domain.models.billing import BillingPeriodRecord, Period, SubscriptionConfiguration, UsageRecord
from domain.models.catalog import AddOn, CatalogEntry, CatalogKind, Plan, PremiumSms, Vas


# ---------------------------------------------------------------------------
# In-memory adapters (swap for the HTTP clients in production)
# ---------------------------------------------------------------------------

class InMemoryBillingStore:
    """Closed bills keyed by user and period."""

    def __init__(self, bills: Iterable[BillingPeriodRecord] = ()) -> None:
        self._bills: dict[tuple[str, Period], BillingPeriodRecord] = {}
        for bill in bills:
            self.save(bill)

    def save(self, bill: BillingPeriodRecord) -> BillingPeriodRecord:
        self._bills[(bill.user_id, bill.period)] = bill
        return bill

    def get_bill(self, user_id: str, period: Period) -> Optional[BillingPeriodRecord]:
        return self._bills.get((user_id, period))

    def get_bill_history(
        self,
        user_id: str,
        before: Period,
        limit: Optional[int] = None,
    ) -> list[BillingPeriodRecord]:
        prior = sorted(
            (b for (uid, period), b in self._bills.items() if uid == user_id and period < before),
            key=lambda b: b.period,
        )
        if limit is None:
            return prior
        return prior[-limit:] if limit > 0 else []


class InMemoryUsageStore:
    """Daily usage records."""

    def __init__(self, records: Iterable[UsageRecord] = ()) -> None:
        self._records: list[UsageRecord] = list(records)

    def save(self, record: UsageRecord) -> UsageRecord:
        self._records.append(record)
        return record

    def get_usage(self, user_id: str, period: Period) -> list[UsageRecord]:
        return [r for r in self._records if r.user_id == user_id and period.contains(r.date)]


_KIND_OF: dict[type, CatalogKind] = {
    Plan: CatalogKind.PLAN,
    AddOn: CatalogKind.ADD_ON,
    Vas: CatalogKind.VAS,
    PremiumSms: CatalogKind.PREMIUM_SMS,
}


class InMemoryCatalog:
    """Static product catalog."""

    def __init__(self, entries: Iterable[CatalogEntry] = ()) -> None:
        self._entries: dict[tuple[CatalogKind, str], CatalogEntry] = {}
        for entry in entries:
            self.add(entry)

    def add(self, entry: CatalogEntry) -> CatalogEntry:
        self._entries[(_KIND_OF[type(entry)], entry.id)] = entry
        return entry

    def resolve_catalog_entry(self, kind: CatalogKind, entry_id: str) -> Optional[CatalogEntry]:
        return self._entries.get((kind, entry_id))

    def list_catalog_entries(self, kind: CatalogKind) -> list[CatalogEntry]:
        return [entry for (k, _), entry in self._entries.items() if k is kind]


class InMemorySubscriptionDirectory:
    """Live subscription configuration per user."""

    def __init__(self, configurations: dict[str, SubscriptionConfiguration] | None = None) -> None:
        self._configurations: dict[str, SubscriptionConfiguration] = dict(configurations or {})

    def set_configuration(self, user_id: str, configuration: SubscriptionConfiguration) -> None:
        self._configurations[user_id] = configuration

    def get_user_current_configuration(self, user_id: str) -> Optional[SubscriptionConfiguration]:
        return self._configurations.get(user_id)


class InMemoryAnomalyRepository:
    """Findings keyed by their deterministic id."""

    def __init__(self) -> None:
        self._findings: dict[UUID, AnomalyFinding] = {}

    def save_many(self, findings: list[AnomalyFinding]) -> list[AnomalyFinding]:
        for finding in findings:
            self._findings[finding.id] = finding
        return findings

    def get_by_id(self, finding_id: UUID) -> Optional[AnomalyFinding]:
        return self._findings.get(finding_id)

    def list_by_user(self, user_id: str, period: Optional[Period] = None) -> list[AnomalyFinding]:
        return [
            f
            for f in self._findings.values()
            if f.user_id == user_id and (period is None or f.period == period)
        ]

    def update(self, finding: AnomalyFinding) -> AnomalyFinding:
        self._findings[finding.id] = finding
        return finding
