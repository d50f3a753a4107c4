from domain.models.anomaly import (
    AnomalyFinding,
    AnomalyStatus,
    AnomalySummary,
    AnomalyType,
    CategoryBaseline,
    Severity,
)
from domain.models.billing import (
    BillingPeriodRecord,
    ItemCategory,
    LineItem,
    Period,
    SubscriptionConfiguration,
    UsageRecord,
    UsageSummary,
)
from domain.models.catalog import AddOn, CatalogEntry, CatalogKind, Dimension, Plan, PremiumSms, Vas
from domain.models.simulation import (
    CategoryDelta,
    Scenario,
    ScenarioComparison,
    SimulationBasis,
    SimulationResult,
)

__all__ = [
    "AddOn",
    "AnomalyFinding",
    "AnomalyStatus",
    "AnomalySummary",
    "AnomalyType",
    "BillingPeriodRecord",
    "CatalogEntry",
    "CatalogKind",
    "CategoryBaseline",
    "CategoryDelta",
    "Dimension",
    "ItemCategory",
    "LineItem",
    "Period",
    "Plan",
    "PremiumSms",
    "Scenario",
    "ScenarioComparison",
    "Severity",
    "SimulationBasis",
    "SimulationResult",
    "SubscriptionConfiguration",
    "UsageRecord",
    "UsageSummary",
    "Vas",
]
