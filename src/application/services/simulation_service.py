"""What-if simulation application service.

Prices a user's period twice - as it was billed and as it would be under a
hypothetical :class:`Scenario` - and explains the difference lever by lever.

When the user has a bill for the period, the current total is that bill and
the hypothetical total is the bill with the scenario's overrides layered on
top. Without a bill, both totals are re-rated from the period's usage and the
user's live configuration.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from decimal import Decimal
from typing import TYPE_CHECKING, Optional, Sequence

from application.services.catalog_lookup import CatalogLookup
from domain.exceptions import (
    CatalogEntryNotFoundError,
    InvalidScenarioError,
    NoDataError,
    UserNotFoundError,
)
from domain.models.billing import (
    ZERO,
    BillingPeriodRecord,
    Period,
    SubscriptionConfiguration,
    UsageSummary,
)
from domain.models.catalog import AddOn, CatalogKind, Plan
from domain.models.simulation import (
    CategoryDelta,
    Scenario,
    ScenarioComparison,
    SimulationBasis,
    SimulationResult,
)
from domain.services.rating_engine import (
    Lever,
    RatedBill,
    RatingEngine,
    RatingRequest,
    TaxPolicy,
    lever_of,
)

if TYPE_CHECKING:
    from application.services.ports import (
        BillingStore,
        CatalogSource,
        SubscriptionDirectory,
        UsageStore,
    )

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Settings / recommendation templates
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class SimulationSettings:
    significant_saving_ratio: Decimal = Decimal("0.20")
    default_tax_rate: Decimal = ZERO
    currency: str = "TRY"


_LEVER_TEMPLATES: dict[Lever, str] = {
    Lever.PLAN: "Changing the plan saves {amount} {currency} per month",
    Lever.ADD_ONS: (
        "Adding the selected packs saves {amount} {currency} by covering usage "
        "beyond the plan quota"
    ),
    Lever.VAS: "Cancelling value-added services saves {amount} {currency} per month",
    Lever.PREMIUM_SMS: "Blocking premium SMS saves {amount} {currency} per month",
}

_SIGNIFICANT_TEMPLATE = (
    "Total saving of {amount} {currency} ({ratio:.0f}% of the current bill) is significant"
)
_INCREASE_TEMPLATE = (
    "This scenario increases the bill by {amount} {currency}; "
    "keeping the current configuration is cheaper"
)


# ---------------------------------------------------------------------------
# Service
# ---------------------------------------------------------------------------


@dataclass
class _Run:
    """State shared by the simulations of one request."""

    user_id: str
    period: Period
    lookup: CatalogLookup
    bill: Optional[BillingPeriodRecord]
    usage: Optional[UsageSummary] = None
    configuration: Optional[SubscriptionConfiguration] = None
    configuration_loaded: bool = False


class SimulationService:
    """Orchestrates current vs. hypothetical rating for what-if scenarios."""

    def __init__(
        self,
        billing_store: BillingStore,
        usage_store: UsageStore,
        catalog: CatalogSource,
        directory: SubscriptionDirectory,
        engine: RatingEngine,
        settings: SimulationSettings | None = None,
    ) -> None:
        self._billing = billing_store
        self._usage = usage_store
        self._catalog = catalog
        self._directory = directory
        self._engine = engine
        self._settings = settings or SimulationSettings()

    # -- public API -------------------------------------------------------

    def run_simulation(self, user_id: str, period: Period, scenario: Scenario) -> SimulationResult:
        """Simulate *scenario* for the user's *period*.

        Raises :class:`InvalidScenarioError` for unknown catalog ids in the
        scenario and :class:`NoDataError` when neither a bill nor usage exists.
        """
        run = self._start(user_id, period)
        return self._simulate(run, scenario)

    def compare_scenarios(
        self,
        user_id: str,
        period: Period,
        scenarios: Sequence[Scenario],
    ) -> list[ScenarioComparison]:
        """Simulate every scenario; best saving first."""
        run = self._start(user_id, period)
        comparisons = [ScenarioComparison(s, self._simulate(run, s)) for s in scenarios]
        comparisons.sort(key=lambda c: c.saving, reverse=True)
        return comparisons

    def suggest_scenarios(self, user_id: str, period: Period, limit: int = 5) -> list[ScenarioComparison]:
        """Generate scenarios from the catalog and return those that save money.

        Candidates: every other plan, every add-on not already active,
        cancelling VAS, blocking premium SMS and both together.
        """
        if limit < 1:
            raise ValueError("limit must be positive")

        run = self._start(user_id, period)
        # Surfaces NoDataError before any candidate is tried.
        self._simulate(run, Scenario())

        comparisons: list[ScenarioComparison] = []
        for scenario in self._candidates(run):
            try:
                result = self._simulate(run, scenario)
            except NoDataError as exc:
                logger.info("Skipping suggestion '%s': %s", scenario.description, exc.detail)
                continue
            if result.saving > 0:
                comparisons.append(ScenarioComparison(scenario, result))

        comparisons.sort(key=lambda c: c.saving, reverse=True)
        logger.info(
            "Suggested %d of %d scenarios for user %s period %s",
            min(limit, len(comparisons)),
            len(comparisons),
            user_id,
            period,
        )
        return comparisons[:limit]

    # -- simulation -------------------------------------------------------

    def _start(self, user_id: str, period: Period) -> _Run:
        return _Run(
            user_id=user_id,
            period=period,
            lookup=CatalogLookup(self._catalog),
            bill=self._billing.get_bill(user_id, period),
        )

    def _simulate(self, run: _Run, scenario: Scenario) -> SimulationResult:
        plan, addons = self._resolve_scenario(run.lookup, scenario)

        if run.bill is not None:
            basis = SimulationBasis.BILL
            currency = run.bill.currency
            current, new = self._rate_from_bill(run, run.bill, scenario, plan, addons)
        else:
            basis = SimulationBasis.USAGE
            currency = self._settings.currency
            current, new = self._rate_from_configuration(run, scenario, plan, addons)

        saving = current.total - new.total
        delta = _delta(current, new)
        result = SimulationResult(
            user_id=run.user_id,
            period=run.period,
            scenario=scenario,
            basis=basis,
            current_total=current.total,
            new_total=new.total,
            saving=saving,
            per_category_delta=delta,
            recommendations=self._recommendations(current.total, saving, delta, currency),
            currency=currency,
        )
        logger.info(
            "Simulation for user %s period %s (%s basis): current %s new %s saving %s",
            run.user_id,
            run.period,
            basis.value,
            result.current_total,
            result.new_total,
            result.saving,
        )
        return result

    def _resolve_scenario(
        self,
        lookup: CatalogLookup,
        scenario: Scenario,
    ) -> tuple[Optional[Plan], tuple[AddOn, ...]]:
        try:
            plan = lookup.plan(scenario.plan_id) if scenario.plan_id else None
            addons = lookup.addons(scenario.add_addon_ids)
        except CatalogEntryNotFoundError as exc:
            raise InvalidScenarioError(f"unknown {exc.kind} '{exc.entry_id}'") from exc
        return plan, addons

    def _rate_from_bill(
        self,
        run: _Run,
        bill: BillingPeriodRecord,
        scenario: Scenario,
        plan: Optional[Plan],
        addons: tuple[AddOn, ...],
    ) -> tuple[RatedBill, RatedBill]:
        current = RatedBill(items=bill.line_items)
        request = RatingRequest(
            tax_policy=TaxPolicy.from_items(bill.line_items, self._settings.default_tax_rate),
            recorded_items=bill.line_items,
            addons=addons,
            disable_vas=scenario.disable_vas,
            block_premium_sms=scenario.block_premium_sms,
        )

        # A new plan or extra quota changes the plan charges; re-rate them
        # from usage. Otherwise the recorded plan lines stand.
        if plan is not None or addons:
            configuration = bill.configuration or self._configuration(run)
            if plan is None:
                if configuration is None:
                    raise NoDataError(run.user_id, run.period, "no recorded plan to re-rate")
                plan = run.lookup.plan(configuration.plan_id)
            billed = run.lookup.addons(configuration.addon_ids) if configuration else ()
            request = replace(
                request,
                usage=self._usage_summary(run),
                plan=plan,
                billed_addons=billed,
            )

        return current, self._engine.rate(request)

    def _rate_from_configuration(
        self,
        run: _Run,
        scenario: Scenario,
        plan: Optional[Plan],
        addons: tuple[AddOn, ...],
    ) -> tuple[RatedBill, RatedBill]:
        usage = self._usage_summary(run)
        configuration = self._configuration(run)
        if configuration is None:
            raise UserNotFoundError(run.user_id)

        live_plan = run.lookup.plan(configuration.plan_id)
        live_addons = run.lookup.addons(configuration.addon_ids)
        services = run.lookup.services(configuration.vas_ids)
        policy = TaxPolicy(default_rate=self._settings.default_tax_rate)

        current_request = RatingRequest(
            usage=usage,
            tax_policy=policy,
            plan=live_plan,
            addons=live_addons,
            vas=services,
        )
        new_request = replace(
            current_request,
            plan=plan or live_plan,
            addons=live_addons + addons,
            disable_vas=scenario.disable_vas,
            block_premium_sms=scenario.block_premium_sms,
        )
        return self._engine.rate(current_request), self._engine.rate(new_request)

    # -- collaborators ----------------------------------------------------

    def _usage_summary(self, run: _Run) -> UsageSummary:
        if run.usage is None:
            run.usage = UsageSummary.from_records(self._usage.get_usage(run.user_id, run.period))
        if run.usage.is_empty:
            raise NoDataError(run.user_id, run.period, "no usage records")
        return run.usage

    def _configuration(self, run: _Run) -> Optional[SubscriptionConfiguration]:
        if not run.configuration_loaded:
            run.configuration = self._directory.get_user_current_configuration(run.user_id)
            run.configuration_loaded = True
        return run.configuration

    def _candidates(self, run: _Run) -> list[Scenario]:
        configuration = (run.bill.configuration if run.bill else None) or self._configuration(run)
        current_plan = configuration.plan_id if configuration else None
        active_addons = set(configuration.addon_ids) if configuration else set()

        scenarios: list[Scenario] = []
        plans = sorted(run.lookup.listing(CatalogKind.PLAN), key=lambda p: p.monthly_fee)
        for plan in plans:
            if plan.id != current_plan:
                scenarios.append(Scenario(plan_id=plan.id, description=f"Switch to {plan.name}"))
        for addon in run.lookup.listing(CatalogKind.ADD_ON):
            if addon.id not in active_addons:
                scenarios.append(Scenario(add_addon_ids=(addon.id,), description=f"Add {addon.name}"))

        has_vas, has_premium = self._optional_charges(run, configuration)
        if has_vas:
            scenarios.append(Scenario(disable_vas=True, description="Cancel value-added services"))
        if has_premium:
            scenarios.append(Scenario(block_premium_sms=True, description="Block premium SMS"))
        if has_vas and has_premium:
            scenarios.append(
                Scenario(
                    disable_vas=True,
                    block_premium_sms=True,
                    description="Cancel value-added services and block premium SMS",
                )
            )
        return scenarios

    @staticmethod
    def _optional_charges(
        run: _Run,
        configuration: Optional[SubscriptionConfiguration],
    ) -> tuple[bool, bool]:
        if run.bill is not None:
            levers = {lever_of(item) for item in run.bill.line_items if item.amount > 0}
            return Lever.VAS in levers, Lever.PREMIUM_SMS in levers
        return bool(configuration and configuration.vas_ids), False

    # -- explanation ------------------------------------------------------

    def _recommendations(
        self,
        current_total: Decimal,
        saving: Decimal,
        delta: CategoryDelta,
        currency: str,
    ) -> tuple[str, ...]:
        contributions = [
            (Lever.PLAN, -delta.plan_change),
            (Lever.ADD_ONS, -delta.add_ons),
            (Lever.VAS, -delta.vas),
            (Lever.PREMIUM_SMS, -delta.premium_sms),
        ]
        ranked = sorted((c for c in contributions if c[1] > 0), key=lambda c: c[1], reverse=True)
        lines = [_LEVER_TEMPLATES[lever].format(amount=amount, currency=currency) for lever, amount in ranked]

        if current_total > 0 and saving > current_total * self._settings.significant_saving_ratio:
            lines.append(
                _SIGNIFICANT_TEMPLATE.format(
                    amount=saving,
                    currency=currency,
                    ratio=saving / current_total * 100,
                )
            )
        elif saving < 0:
            lines.append(_INCREASE_TEMPLATE.format(amount=-saving, currency=currency))
        return tuple(lines)


def _delta(current: RatedBill, new: RatedBill) -> CategoryDelta:
    def change(lever: Lever) -> Decimal:
        return new.lever_total(lever) - current.lever_total(lever)

    return CategoryDelta(
        plan_change=change(Lever.PLAN),
        add_ons=change(Lever.ADD_ONS),
        vas=change(Lever.VAS),
        premium_sms=change(Lever.PREMIUM_SMS),
    )
