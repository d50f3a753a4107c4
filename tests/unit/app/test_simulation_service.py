"""Unit tests for SimulationService: bill and usage basis, comparison, suggestions."""

from __future__ import annotations

from dataclasses import replace
from decimal import Decimal

import pytest

from conftest import PERIOD, USER_ID, build_bill, line
from application.services.simulation_service import SimulationService, SimulationSettings
from domain.exceptions import (
    CatalogEntryNotFoundError,
    InvalidScenarioError,
    NoDataError,
    UserNotFoundError,
)
from domain.models.billing import OVERAGE, PLAN_FEE, ItemCategory, SubscriptionConfiguration
from domain.models.catalog import Dimension, Plan
from domain.models.simulation import Scenario, SimulationBasis

MINI_PLAN = Plan(
    id="plan-mini",
    name="Mini 15GB",
    monthly_fee=Decimal("60.00"),
    quotas={Dimension.DATA: Decimal("15"), Dimension.VOICE: Decimal("300")},
    overage_rates={Dimension.DATA: Decimal("12.00")},
)


@pytest.fixture
def svc(billing_store, usage_store, catalog, directory, rating_engine):
    return SimulationService(
        billing_store=billing_store,
        usage_store=usage_store,
        catalog=catalog,
        directory=directory,
        engine=rating_engine,
    )


@pytest.fixture
def billed(billing_store, current_bill):
    return billing_store.save(current_bill)


@pytest.fixture
def usage(usage_store, usage_records):
    for record in usage_records:
        usage_store.save(record)
    return usage_records


class TestBillBasis:

    def test_disable_vas(self, svc, billed):
        result = svc.run_simulation(USER_ID, PERIOD, Scenario(disable_vas=True))

        assert result.basis is SimulationBasis.BILL
        assert result.current_total == Decimal("150.00")
        assert result.new_total == Decimal("120.10")
        assert result.saving == Decimal("29.90")
        assert result.per_category_delta.vas == Decimal("-29.90")
        assert result.per_category_delta.plan_change == Decimal("0")
        assert result.recommendations == (
            "Cancelling value-added services saves 29.90 TRY per month",
        )

    def test_empty_scenario_changes_nothing(self, svc, billed):
        result = svc.run_simulation(USER_ID, PERIOD, Scenario())
        assert result.saving == Decimal("0")
        assert result.new_total == result.current_total
        assert result.recommendations == ()

    def test_significant_saving(self, svc, billed):
        result = svc.run_simulation(
            USER_ID, PERIOD, Scenario(disable_vas=True, block_premium_sms=True)
        )
        assert result.saving == Decimal("39.90")
        assert result.recommendations == (
            "Cancelling value-added services saves 29.90 TRY per month",
            "Blocking premium SMS saves 10.00 TRY per month",
            "Total saving of 39.90 TRY (27% of the current bill) is significant",
        )

    def test_cheaper_plan(self, svc, billed, usage, catalog):
        catalog.add(MINI_PLAN)
        result = svc.run_simulation(USER_ID, PERIOD, Scenario(plan_id=MINI_PLAN.id))

        assert result.new_total == Decimal("99.90")
        assert result.saving == Decimal("50.10")
        assert result.per_category_delta.plan_change == Decimal("-50.10")
        assert result.recommendations[0] == "Changing the plan saves 50.10 TRY per month"

    def test_more_expensive_plan_warns(self, svc, billed, usage):
        result = svc.run_simulation(USER_ID, PERIOD, Scenario(plan_id="plan-plus"))

        assert result.new_total == Decimal("169.90")
        assert result.saving == Decimal("-19.90")
        assert result.per_category_delta.plan_change == Decimal("19.90")
        assert result.recommendations == (
            "This scenario increases the bill by 19.90 TRY; "
            "keeping the current configuration is cheaper",
        )

    def test_addon_absorbs_overage(self, svc, billed, usage):
        result = svc.run_simulation(USER_ID, PERIOD, Scenario(add_addon_ids=("addon-5gb",)))

        assert result.per_category_delta.plan_change == Decimal("-10.10")
        assert result.per_category_delta.add_ons == Decimal("25.00")
        assert result.new_total == Decimal("164.90")

    def test_plan_change_needs_usage(self, svc, billed):
        with pytest.raises(NoDataError):
            svc.run_simulation(USER_ID, PERIOD, Scenario(plan_id="plan-plus"))

    def test_addon_without_any_configuration(self, svc, billing_store, current_bill, usage):
        billing_store.save(replace(current_bill, configuration=None))
        with pytest.raises(NoDataError):
            svc.run_simulation(USER_ID, PERIOD, Scenario(add_addon_ids=("addon-5gb",)))

    @pytest.mark.parametrize(
        "scenario",
        [Scenario(plan_id="plan-missing"), Scenario(add_addon_ids=("addon-missing",))],
    )
    def test_unknown_catalog_ids(self, svc, billed, scenario):
        with pytest.raises(InvalidScenarioError):
            svc.run_simulation(USER_ID, PERIOD, scenario)

    def test_addon_id_used_as_plan_is_invalid(self, svc, billed):
        with pytest.raises(InvalidScenarioError):
            svc.run_simulation(USER_ID, PERIOD, Scenario(plan_id="addon-5gb"))

    def test_bill_currency_used(self, svc, billing_store, current_bill):
        billing_store.save(replace(current_bill, currency="EUR"))
        result = svc.run_simulation(USER_ID, PERIOD, Scenario(disable_vas=True))
        assert result.currency == "EUR"
        assert "EUR" in result.recommendations[0]


class TestStoreRecordedPlanFee:

    @pytest.fixture
    def store_bill(self, billing_store, configuration):
        return billing_store.save(
            build_bill(
                PERIOD,
                [
                    line(ItemCategory.VAS, "100.00", subtype=PLAN_FEE),
                    line(ItemCategory.VAS, "29.90", subtype="vas-music"),
                    line(ItemCategory.VOICE, "20.10", subtype=OVERAGE),
                ],
                configuration=configuration,
            )
        )

    def test_disable_vas_leaves_plan_fee(self, svc, store_bill):
        result = svc.run_simulation(USER_ID, PERIOD, Scenario(disable_vas=True))

        assert result.current_total == Decimal("150.00")
        assert result.new_total == Decimal("120.10")
        assert result.saving == Decimal("29.90")
        assert result.per_category_delta.vas == Decimal("-29.90")
        assert result.recommendations[0] == (
            "Cancelling value-added services saves 29.90 TRY per month"
        )

    def test_plan_change_drops_old_fee(self, svc, store_bill, usage):
        result = svc.run_simulation(USER_ID, PERIOD, Scenario(plan_id="plan-plus"))

        assert result.new_total == Decimal("159.90")
        assert result.saving == Decimal("-9.90")
        assert result.per_category_delta.plan_change == Decimal("9.90")
        assert result.per_category_delta.vas == Decimal("0")

    def test_plan_fee_alone_is_not_a_vas_suggestion(self, svc, billing_store, configuration):
        billing_store.save(
            build_bill(
                PERIOD,
                [
                    line(ItemCategory.VAS, "100.00", subtype=PLAN_FEE),
                    line(ItemCategory.VOICE, "20.10", subtype=OVERAGE),
                ],
                configuration=configuration,
            )
        )
        assert svc.suggest_scenarios(USER_ID, PERIOD) == []


class TestUsageBasis:

    @pytest.fixture
    def live(self, directory, configuration):
        directory.set_configuration(USER_ID, configuration)
        return configuration

    def test_current_total_rerated(self, svc, usage, live):
        result = svc.run_simulation(USER_ID, PERIOD, Scenario())
        assert result.basis is SimulationBasis.USAGE
        assert result.current_total == Decimal("149.90")
        assert result.saving == Decimal("0")

    def test_disable_vas(self, svc, usage, live):
        result = svc.run_simulation(USER_ID, PERIOD, Scenario(disable_vas=True))
        assert result.new_total == Decimal("120.00")
        assert result.per_category_delta.vas == Decimal("-29.90")

    def test_plan_change(self, svc, usage, live):
        result = svc.run_simulation(USER_ID, PERIOD, Scenario(plan_id="plan-plus"))
        assert result.new_total == Decimal("159.90")
        assert result.saving == Decimal("-10.00")

    def test_tax_and_currency_from_settings(
        self, billing_store, usage_store, catalog, directory, rating_engine, usage, live
    ):
        svc = SimulationService(
            billing_store,
            usage_store,
            catalog,
            directory,
            rating_engine,
            SimulationSettings(default_tax_rate=Decimal("0.20"), currency="EUR"),
        )
        result = svc.run_simulation(USER_ID, PERIOD, Scenario())
        assert result.current_total == Decimal("179.88")
        assert result.currency == "EUR"

    def test_no_usage(self, svc, live):
        with pytest.raises(NoDataError):
            svc.run_simulation(USER_ID, PERIOD, Scenario())

    def test_unknown_user(self, svc, usage):
        with pytest.raises(UserNotFoundError):
            svc.run_simulation(USER_ID, PERIOD, Scenario())

    def test_stale_configuration_entry(self, svc, usage, directory):
        directory.set_configuration(USER_ID, SubscriptionConfiguration(plan_id="plan-gone"))
        with pytest.raises(CatalogEntryNotFoundError):
            svc.run_simulation(USER_ID, PERIOD, Scenario())


class TestCompareScenarios:

    def test_sorted_by_saving(self, svc, billed, usage):
        scenarios = [
            Scenario(description="as is"),
            Scenario(plan_id="plan-plus", description="plus"),
            Scenario(disable_vas=True, description="no vas"),
        ]
        comparisons = svc.compare_scenarios(USER_ID, PERIOD, scenarios)
        assert [c.scenario.description for c in comparisons] == ["no vas", "as is", "plus"]
        assert [c.saving for c in comparisons] == [
            Decimal("29.90"),
            Decimal("0"),
            Decimal("-19.90"),
        ]

    def test_invalid_scenario_fails_the_comparison(self, svc, billed):
        with pytest.raises(InvalidScenarioError):
            svc.compare_scenarios(USER_ID, PERIOD, [Scenario(), Scenario(plan_id="nope")])


class TestSuggestScenarios:

    def test_only_savings_best_first(self, svc, billed, usage):
        suggestions = svc.suggest_scenarios(USER_ID, PERIOD)
        assert [c.scenario.description for c in suggestions] == [
            "Cancel value-added services and block premium SMS",
            "Cancel value-added services",
            "Block premium SMS",
        ]
        assert all(c.saving > 0 for c in suggestions)

    def test_cheaper_plan_is_suggested(self, svc, billed, usage, catalog):
        catalog.add(MINI_PLAN)
        best = svc.suggest_scenarios(USER_ID, PERIOD, limit=1)
        assert [c.scenario.plan_id for c in best] == [MINI_PLAN.id]

    def test_limit(self, svc, billed, usage):
        assert len(svc.suggest_scenarios(USER_ID, PERIOD, limit=2)) == 2

    def test_candidates_without_usage_are_skipped(self, svc, billed):
        suggestions = svc.suggest_scenarios(USER_ID, PERIOD)
        assert all(c.scenario.plan_id is None for c in suggestions)
        assert len(suggestions) == 3

    def test_no_data_at_all(self, svc):
        with pytest.raises(NoDataError):
            svc.suggest_scenarios(USER_ID, PERIOD)

    def test_limit_must_be_positive(self, svc, billed):
        with pytest.raises(ValueError):
            svc.suggest_scenarios(USER_ID, PERIOD, limit=0)
