from __future__ import annotations

import enum
from dataclasses import dataclass, field
from decimal import Decimal

from domain.models.billing import ZERO, Period


class SimulationBasis(enum.Enum):
    BILL = "BILL"  # current total taken from the recorded bill
    USAGE = "USAGE"  # current total re-rated from usage and the live configuration


@dataclass(frozen=True)
class Scenario:
    """Hypothetical changes to a user's configuration. Empty means "keep as-is"."""

    plan_id: str | None = None
    add_addon_ids: tuple[str, ...] = ()
    disable_vas: bool = False
    block_premium_sms: bool = False
    description: str = ""

    @property
    def is_empty(self) -> bool:
        return (
            self.plan_id is None
            and not self.add_addon_ids
            and not self.disable_vas
            and not self.block_premium_sms
        )


@dataclass(frozen=True)
class CategoryDelta:
    """Per-lever change (``new - current``, tax included). Negative is cheaper."""

    plan_change: Decimal = ZERO
    add_ons: Decimal = ZERO
    vas: Decimal = ZERO
    premium_sms: Decimal = ZERO

    @property
    def total(self) -> Decimal:
        return self.plan_change + self.add_ons + self.vas + self.premium_sms


@dataclass(frozen=True)
class SimulationResult:
    user_id: str
    period: Period
    scenario: Scenario
    basis: SimulationBasis
    current_total: Decimal
    new_total: Decimal
    saving: Decimal
    per_category_delta: CategoryDelta = field(default_factory=CategoryDelta)
    recommendations: tuple[str, ...] = ()
    currency: str = "TRY"


@dataclass(frozen=True)
class ScenarioComparison:
    scenario: Scenario
    result: SimulationResult

    @property
    def saving(self) -> Decimal:
        return self.result.saving
