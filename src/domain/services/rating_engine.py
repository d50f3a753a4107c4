"""
Rating engine for telecom bills.

Turns a usage profile and a catalog configuration into priced line items and
a category breakdown. Used both to reproduce a user's current charges and to
re-rate them under a hypothetical configuration.

Charges are grouped into *levers* - the parts of a bill a scenario can change:
the plan (monthly fee plus overage), add-on packs, value-added services and
premium SMS. Everything else (roaming, one-off charges, explicit tax lines) is
carried forward unchanged.

Simulation approximations: add-on fees are charged for the full period
(no proration), and premium SMS is never re-priced, only kept or blocked.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from decimal import ROUND_CEILING, Decimal
from typing import TYPE_CHECKING

from domain.models.billing import (
    ADDON,
    OVERAGE,
    PACKAGE,
    ZERO,
    ItemCategory,
    LineItem,
    UsageSummary,
    category_amounts,
)
from domain.models.catalog import AddOn, Dimension, Plan, Vas

if TYPE_CHECKING:
    from collections.abc import Iterable, Sequence

# ======================================================================
# Levers
# ======================================================================


class Lever(enum.Enum):
    PLAN = "plan_change"
    ADD_ONS = "add_ons"
    VAS = "vas"
    PREMIUM_SMS = "premium_sms"
    OTHER = "other"


_PLAN_CATEGORIES = frozenset({ItemCategory.DATA, ItemCategory.VOICE, ItemCategory.SMS})


def lever_of(item: LineItem) -> Lever:
    """Which lever a recorded line item belongs to."""
    if item.is_plan_fee:
        return Lever.PLAN
    if item.subtype == ADDON:
        return Lever.ADD_ONS
    if item.category is ItemCategory.PREMIUM_SMS:
        return Lever.PREMIUM_SMS
    if item.subtype in (PACKAGE, OVERAGE) and item.category in _PLAN_CATEGORIES:
        return Lever.PLAN
    if item.category is ItemCategory.VAS:
        return Lever.VAS
    return Lever.OTHER


# ======================================================================
# Tax policy
# ======================================================================


@dataclass(frozen=True)
class TaxPolicy:
    """Tax rate (fraction) per category for freshly rated lines."""

    default_rate: Decimal = ZERO
    rates: dict[ItemCategory, Decimal] = field(default_factory=dict)

    @classmethod
    def from_items(cls, items: Iterable[LineItem], default_rate: Decimal = ZERO) -> TaxPolicy:
        """Adopt the rate each category already carries on a bill."""
        rates: dict[ItemCategory, Decimal] = {}
        for item in items:
            rates.setdefault(item.category, item.tax_rate)
        return cls(default_rate=default_rate, rates=rates)

    def rate_for(self, category: ItemCategory) -> Decimal:
        return self.rates.get(category, self.default_rate)


# ======================================================================
# Request / result
# ======================================================================


@dataclass(frozen=True)
class RatingRequest:
    """
    What to rate.

    ``recorded_items`` are charges already on a bill; each lever keeps its
    recorded lines unless the request re-rates it.

    * ``plan`` set: the plan lever is re-rated from ``usage``. Quota from both
      ``billed_addons`` and ``addons`` is credited.
    * ``billed_addons``: add-ons whose fees are already among the recorded
      lines. They only contribute quota.
    * ``addons`` / ``vas``: charged fresh, on top of recorded lines.
    """

    usage: UsageSummary = field(default_factory=UsageSummary)
    tax_policy: TaxPolicy = field(default_factory=TaxPolicy)
    recorded_items: tuple[LineItem, ...] = ()
    plan: Plan | None = None
    billed_addons: tuple[AddOn, ...] = ()
    addons: tuple[AddOn, ...] = ()
    vas: tuple[Vas, ...] = ()
    disable_vas: bool = False
    block_premium_sms: bool = False


@dataclass(frozen=True)
class RatedBill:
    items: tuple[LineItem, ...]
    removed_items: tuple[LineItem, ...] = ()

    @property
    def subtotal(self) -> Decimal:
        return sum((item.amount for item in self.items), ZERO)

    @property
    def tax(self) -> Decimal:
        return sum((item.tax_amount for item in self.items), ZERO)

    @property
    def total(self) -> Decimal:
        return sum((item.gross_amount for item in self.items), ZERO)

    @property
    def category_amounts(self) -> dict[ItemCategory, Decimal]:
        return category_amounts(self.items)

    def lever_total(self, lever: Lever) -> Decimal:
        return sum((item.gross_amount for item in self.items if lever_of(item) is lever), ZERO)

    def removed_total(self, lever: Lever) -> Decimal:
        return sum(
            (item.gross_amount for item in self.removed_items if lever_of(item) is lever),
            ZERO,
        )


# ======================================================================
# Engine
# ======================================================================


def _usage_for(usage: UsageSummary, dimension: Dimension) -> Decimal:
    if dimension is Dimension.DATA:
        return usage.data_gb
    if dimension is Dimension.VOICE:
        return usage.voice_minutes
    return usage.sms_count


def billable_overage(used: Decimal, quota: Decimal, block: Decimal | None = None) -> Decimal:
    """Usage beyond *quota*, rounded up to whole *block*s when block billing applies."""
    overage = used - quota
    if overage <= 0:
        return ZERO
    if block:
        blocks = (overage / block).to_integral_value(rounding=ROUND_CEILING)
        return blocks * block
    return overage


class RatingEngine:
    """Stateless calculator producing priced line items."""

    def rate_plan(
        self,
        plan: Plan,
        usage: UsageSummary,
        tax_policy: TaxPolicy,
        addons: Sequence[AddOn] = (),
    ) -> list[LineItem]:
        """Monthly fee plus overage per quota-bearing dimension."""

        fee_category = ItemCategory.DATA
        items = [
            LineItem.priced(
                category=fee_category,
                subtype=PACKAGE,
                unit_price=plan.monthly_fee,
                quantity=Decimal("1"),
                tax_rate=tax_policy.rate_for(fee_category),
                description=plan.name,
            )
        ]

        for dimension in Dimension:
            quota = plan.quota(dimension) + sum(
                (addon.extra_quota for addon in addons if addon.dimension is dimension),
                ZERO,
            )
            overage = billable_overage(
                _usage_for(usage, dimension),
                quota,
                plan.billing_blocks.get(dimension),
            )
            rate = plan.overage_rate(dimension)
            if overage <= 0 or rate <= 0:
                continue
            items.append(
                LineItem.priced(
                    category=dimension.category,
                    subtype=OVERAGE,
                    unit_price=rate,
                    quantity=overage,
                    tax_rate=tax_policy.rate_for(dimension.category),
                    description=f"{plan.name} {dimension.value.lower()} overage",
                )
            )
        return items

    def rate_addons(self, addons: Sequence[AddOn], tax_policy: TaxPolicy) -> list[LineItem]:
        """Flat full-period fee per add-on pack."""
        return [
            LineItem.priced(
                category=addon.dimension.category,
                subtype=ADDON,
                unit_price=addon.price,
                quantity=Decimal("1"),
                tax_rate=tax_policy.rate_for(addon.dimension.category),
                description=addon.name,
            )
            for addon in addons
        ]

    def rate_vas(self, services: Sequence[Vas], tax_policy: TaxPolicy) -> list[LineItem]:
        return [
            LineItem.priced(
                category=ItemCategory.VAS,
                subtype=service.id,
                unit_price=service.monthly_fee,
                quantity=Decimal("1"),
                tax_rate=tax_policy.rate_for(ItemCategory.VAS),
                description=service.name,
            )
            for service in services
        ]

    def rate(self, request: RatingRequest) -> RatedBill:
        """Compose a full rated bill from recorded lines and fresh charges."""

        recorded: dict[Lever, list[LineItem]] = {lever: [] for lever in Lever}
        for item in request.recorded_items:
            recorded[lever_of(item)].append(item)

        policy = request.tax_policy
        items: list[LineItem] = []
        removed: list[LineItem] = []

        if request.plan is not None:
            items += self.rate_plan(
                request.plan,
                request.usage,
                policy,
                (*request.billed_addons, *request.addons),
            )
        else:
            items += recorded[Lever.PLAN]

        items += recorded[Lever.ADD_ONS]
        items += self.rate_addons(request.addons, policy)

        vas_items = recorded[Lever.VAS] + self.rate_vas(request.vas, policy)
        if request.disable_vas:
            removed += vas_items
        else:
            items += vas_items

        if request.block_premium_sms:
            removed += recorded[Lever.PREMIUM_SMS]
        else:
            items += recorded[Lever.PREMIUM_SMS]

        items += recorded[Lever.OTHER]
        return RatedBill(items=tuple(items), removed_items=tuple(removed))
