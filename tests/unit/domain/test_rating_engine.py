"""Tests for domain.services.rating_engine."""

from __future__ import annotations

from dataclasses import replace
from decimal import Decimal

import pytest

from conftest import BASIC_PLAN, DATA_PACK, MUSIC_VAS, line
from domain.models.billing import (
    ADDON,
    OVERAGE,
    PACKAGE,
    PLAN_FEE,
    ItemCategory,
    UsageSummary,
)
from domain.models.catalog import Dimension
from domain.services.rating_engine import (
    Lever,
    RatingRequest,
    TaxPolicy,
    billable_overage,
    lever_of,
)

TWELVE_GB = UsageSummary(
    data_gb=Decimal("12"),
    voice_minutes=Decimal("240"),
    sms_count=Decimal("24"),
    record_count=12,
)

# Lines as the billing store records them: the plan fee is filed under VAS.
STORE_ITEMS = (
    line(ItemCategory.VAS, "100.00", subtype=PLAN_FEE),
    line(ItemCategory.VAS, "29.90", subtype=MUSIC_VAS.id),
    line(ItemCategory.VOICE, "20.10", subtype=OVERAGE),
)


class TestLeverOf:

    @pytest.mark.parametrize(
        ("category", "subtype", "lever"),
        [
            (ItemCategory.DATA, PACKAGE, Lever.PLAN),
            (ItemCategory.VAS, PLAN_FEE, Lever.PLAN),
            (ItemCategory.VOICE, OVERAGE, Lever.PLAN),
            (ItemCategory.DATA, ADDON, Lever.ADD_ONS),
            (ItemCategory.VAS, "vas-music", Lever.VAS),
            (ItemCategory.PREMIUM_SMS, "7777", Lever.PREMIUM_SMS),
            (ItemCategory.ROAMING, OVERAGE, Lever.OTHER),
            (ItemCategory.ROAMING, PACKAGE, Lever.OTHER),
            (ItemCategory.ONE_OFF, "ONE_TIME", Lever.OTHER),
            (ItemCategory.TAX, "STAMP", Lever.OTHER),
        ],
    )
    def test_mapping(self, category, subtype, lever):
        assert lever_of(line(category, "1.00", subtype=subtype)) is lever


class TestBillableOverage:

    def test_within_quota(self):
        assert billable_overage(Decimal("8"), Decimal("10")) == Decimal("0")

    def test_exact_overage(self):
        assert billable_overage(Decimal("12.5"), Decimal("10")) == Decimal("2.5")

    def test_rounded_up_to_blocks(self):
        assert billable_overage(Decimal("11"), Decimal("10"), Decimal("5")) == Decimal("5")
        assert billable_overage(Decimal("20.5"), Decimal("10"), Decimal("5")) == Decimal("15")


class TestTaxPolicy:

    def test_adopts_bill_rates(self):
        policy = TaxPolicy.from_items(
            [line(ItemCategory.VAS, "10.00", subtype="v", tax_rate="0.25")],
            default_rate=Decimal("0.20"),
        )
        assert policy.rate_for(ItemCategory.VAS) == Decimal("0.25")
        assert policy.rate_for(ItemCategory.DATA) == Decimal("0.20")


class TestRatePlan:

    def test_fee_and_data_overage(self, rating_engine):
        items = rating_engine.rate_plan(BASIC_PLAN, TWELVE_GB, TaxPolicy())
        assert [(i.category, i.subtype, i.amount) for i in items] == [
            (ItemCategory.DATA, PACKAGE, Decimal("100.00")),
            (ItemCategory.DATA, OVERAGE, Decimal("20.00")),
        ]
        assert items[0].description == BASIC_PLAN.name

    def test_addon_quota_absorbs_overage(self, rating_engine):
        items = rating_engine.rate_plan(BASIC_PLAN, TWELVE_GB, TaxPolicy(), [DATA_PACK])
        assert [i.subtype for i in items] == [PACKAGE]

    def test_block_billing(self, rating_engine):
        plan = replace(BASIC_PLAN, billing_blocks={Dimension.DATA: Decimal("5")})
        items = rating_engine.rate_plan(plan, TWELVE_GB, TaxPolicy())
        assert items[1].quantity == Decimal("5")
        assert items[1].amount == Decimal("50.00")

    def test_voice_and_sms_overage(self, rating_engine):
        usage = UsageSummary(voice_minutes=Decimal("510"), sms_count=Decimal("104"), record_count=1)
        items = rating_engine.rate_plan(BASIC_PLAN, usage, TaxPolicy())
        overage = {i.category: i.amount for i in items if i.subtype == OVERAGE}
        assert overage == {ItemCategory.VOICE: Decimal("5.00"), ItemCategory.SMS: Decimal("1.00")}

    def test_tax_applied(self, rating_engine):
        items = rating_engine.rate_plan(BASIC_PLAN, UsageSummary(), TaxPolicy(default_rate=Decimal("0.20")))
        assert items[0].gross_amount == Decimal("120.00")


class TestRate:

    def test_recorded_items_pass_through(self, rating_engine, current_bill):
        rated = rating_engine.rate(RatingRequest(recorded_items=current_bill.line_items))
        assert rated.total == current_bill.total_amount
        assert rated.removed_items == ()

    def test_disable_vas(self, rating_engine, current_bill):
        rated = rating_engine.rate(
            RatingRequest(recorded_items=current_bill.line_items, disable_vas=True)
        )
        assert rated.total == Decimal("120.10")
        assert rated.lever_total(Lever.VAS) == Decimal("0")
        assert rated.removed_total(Lever.VAS) == Decimal("29.90")

    def test_block_premium_sms(self, rating_engine, current_bill):
        rated = rating_engine.rate(
            RatingRequest(recorded_items=current_bill.line_items, block_premium_sms=True)
        )
        assert rated.total == Decimal("140.00")
        assert rated.removed_total(Lever.PREMIUM_SMS) == Decimal("10.00")

    def test_plan_rerated_from_usage(self, rating_engine, current_bill):
        rated = rating_engine.rate(
            RatingRequest(
                usage=TWELVE_GB,
                recorded_items=current_bill.line_items,
                plan=BASIC_PLAN,
                addons=(DATA_PACK,),
            )
        )
        assert rated.lever_total(Lever.PLAN) == Decimal("100.00")
        assert rated.lever_total(Lever.ADD_ONS) == Decimal("25.00")
        assert rated.total == Decimal("164.90")

    def test_billed_addons_only_credit_quota(self, rating_engine):
        rated = rating_engine.rate(
            RatingRequest(usage=TWELVE_GB, plan=BASIC_PLAN, billed_addons=(DATA_PACK,))
        )
        assert rated.total == Decimal("100.00")

    def test_fresh_vas(self, rating_engine):
        rated = rating_engine.rate(RatingRequest(plan=BASIC_PLAN, vas=(MUSIC_VAS,)))
        assert rated.lever_total(Lever.VAS) == Decimal("29.90")
        assert rated.category_amounts[ItemCategory.VAS] == Decimal("29.90")

    def test_other_lines_carried(self, rating_engine):
        roaming = line(ItemCategory.ROAMING, "15.00", subtype="EU")
        rated = rating_engine.rate(
            RatingRequest(recorded_items=(roaming,), disable_vas=True, block_premium_sms=True)
        )
        assert rated.items == (roaming,)

    def test_subtotal_and_tax(self, rating_engine):
        rated = rating_engine.rate(
            RatingRequest(plan=BASIC_PLAN, tax_policy=TaxPolicy(default_rate=Decimal("0.20")))
        )
        assert rated.subtotal == Decimal("100.00")
        assert rated.tax == Decimal("20.00")
        assert rated.total == Decimal("120.00")


class TestRateStoreRecordedBill:

    def test_disable_vas_keeps_plan_fee(self, rating_engine):
        rated = rating_engine.rate(RatingRequest(recorded_items=STORE_ITEMS, disable_vas=True))
        assert rated.total == Decimal("120.10")
        assert rated.removed_total(Lever.VAS) == Decimal("29.90")
        assert rated.lever_total(Lever.PLAN) == Decimal("120.10")

    def test_plan_change_replaces_plan_fee(self, rating_engine):
        rated = rating_engine.rate(
            RatingRequest(usage=TWELVE_GB, recorded_items=STORE_ITEMS, plan=BASIC_PLAN)
        )
        assert not any(item.is_plan_fee for item in rated.items)
        assert rated.lever_total(Lever.PLAN) == Decimal("120.00")
        assert rated.total == Decimal("149.90")

    def test_roaming_package_survives_plan_change(self, rating_engine):
        roaming = line(ItemCategory.ROAMING, "15.00")
        rated = rating_engine.rate(
            RatingRequest(recorded_items=(roaming,), usage=UsageSummary(), plan=BASIC_PLAN)
        )
        assert roaming in rated.items
        assert rated.total == Decimal("115.00")
