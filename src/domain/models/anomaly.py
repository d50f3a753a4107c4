from __future__ import annotations

import enum
from dataclasses import dataclass, field
from datetime import UTC, datetime
from decimal import Decimal
from uuid import NAMESPACE_URL, UUID, uuid5

from domain.models.billing import ZERO, ItemCategory, Period


class AnomalyType(enum.Enum):
    SPIKE = "SPIKE"
    NEW_ITEM = "NEW_ITEM"
    ROAMING_ACTIVATION = "ROAMING_ACTIVATION"
    PREMIUM_SMS_INCREASE = "PREMIUM_SMS_INCREASE"
    VAS_INCREASE = "VAS_INCREASE"


class Severity(enum.Enum):
    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"


class AnomalyStatus(enum.Enum):
    ACTIVE = "ACTIVE"
    INVESTIGATING = "INVESTIGATING"
    RESOLVED = "RESOLVED"


_FINDING_NAMESPACE = uuid5(NAMESPACE_URL, "urn:bill-insights:anomaly-finding")

# Dedup scope of findings about the whole bill rather than one category.
BILL_TOTAL = "TOTAL"


def finding_id(
    user_id: str,
    bill_id: str,
    anomaly_type: AnomalyType,
    category: ItemCategory | None,
    period: Period,
) -> UUID:
    """Deterministic id derived from the finding's dedup key."""
    scope = category.value if category is not None else BILL_TOTAL
    key = "|".join((user_id, bill_id, anomaly_type.value, scope, str(period)))
    return uuid5(_FINDING_NAMESPACE, key)


@dataclass(frozen=True)
class CategoryBaseline:
    """Statistics of one category, or of the bill total when ``category`` is None."""

    category: ItemCategory | None
    mean: float
    standard_deviation: float
    count: int
    sufficient: bool


@dataclass(frozen=True)
class AnomalyFinding:
    id: UUID
    user_id: str
    bill_id: str
    period: Period
    category: ItemCategory | None  # None: the bill total
    type: AnomalyType
    severity: Severity
    description: str
    amount: Decimal = ZERO
    baseline_mean: Decimal | None = None
    z_score: float | None = None
    percentage_difference: float | None = None
    recommendations: tuple[str, ...] = ()
    status: AnomalyStatus = AnomalyStatus.ACTIVE
    detected_at: datetime = field(default_factory=lambda: datetime.now(UTC))


@dataclass(frozen=True)
class AnomalySummary:
    user_id: str
    total: int
    active: int
    by_type: dict[str, int] = field(default_factory=dict)
    by_severity: dict[str, int] = field(default_factory=dict)
