"""Ports to the external stores the bill-insight services read from.

Every collaborator is read-only from this service's point of view except
:class:`AnomalyRepository`, which owns the stored findings.
"""

from __future__ import annotations

from typing import Optional, Protocol, Sequence
from uuid import UUID

from domain.models.anomaly import AnomalyFinding
from domain.models.billing import BillingPeriodRecord, Period, SubscriptionConfiguration, UsageRecord
from domain.models.catalog import CatalogEntry, CatalogKind


class BillingStore(Protocol):
    """Port: closed bills."""

    def get_bill(self, user_id: str, period: Period) -> Optional[BillingPeriodRecord]: ...

    def get_bill_history(
        self,
        user_id: str,
        before: Period,
        limit: Optional[int] = None,
    ) -> list[BillingPeriodRecord]:
        """Bills strictly before *before*, oldest first; the *limit* most recent when given."""
        ...


class UsageStore(Protocol):
    """Port: metered usage."""

    def get_usage(self, user_id: str, period: Period) -> list[UsageRecord]: ...


class CatalogSource(Protocol):
    """Port: the product catalog (current prices and quotas)."""

    def resolve_catalog_entry(self, kind: CatalogKind, entry_id: str) -> Optional[CatalogEntry]: ...

    def list_catalog_entries(self, kind: CatalogKind) -> Sequence[CatalogEntry]: ...


class SubscriptionDirectory(Protocol):
    """Port: what a user is subscribed to right now."""

    def get_user_current_configuration(self, user_id: str) -> Optional[SubscriptionConfiguration]: ...


class AnomalyRepository(Protocol):
    """Port: persistence for anomaly findings."""

    def save_many(self, findings: list[AnomalyFinding]) -> list[AnomalyFinding]:
        """Insert or replace findings by id."""
        ...

    def get_by_id(self, finding_id: UUID) -> Optional[AnomalyFinding]: ...

    def list_by_user(
        self,
        user_id: str,
        period: Optional[Period] = None,
    ) -> list[AnomalyFinding]: ...

    def update(self, finding: AnomalyFinding) -> AnomalyFinding: ...
