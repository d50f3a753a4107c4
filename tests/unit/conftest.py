"""Shared fixtures for unit tests."""

from __future__ import annotations

import sys
from datetime import date, datetime, timezone
from decimal import Decimal
from pathlib import Path
from typing import Callable, Optional

import pytest

# Ensure src is importable
sys.path.insert(0, str(Path(__file__).resolve().parents[2] / "src"))

from domain.models.billing import (
    OVERAGE,
    PACKAGE,
    BillingPeriodRecord,
    ItemCategory,
    LineItem,
    Period,
    SubscriptionConfiguration,
    UsageRecord,
)
from domain.models.catalog import AddOn, Dimension, Plan, PremiumSms, Vas
from domain.services.anomaly_detector import AnomalyDetector, DetectionRules
from domain.services.rating_engine import RatingEngine
from infrastructure.adapters import (
    InMemoryAnomalyRepository,
    InMemoryBillingStore,
    InMemoryCatalog,
    InMemorySubscriptionDirectory,
    InMemoryUsageStore,
)

USER_ID = "u-1001"
PERIOD = Period(2024, 5)
NOW = datetime(2024, 6, 3, 9, 30, 0, tzinfo=timezone.utc)

BASIC_PLAN = Plan(
    id="plan-basic",
    name="Basic 10GB",
    monthly_fee=Decimal("100.00"),
    quotas={
        Dimension.DATA: Decimal("10"),
        Dimension.VOICE: Decimal("500"),
        Dimension.SMS: Decimal("100"),
    },
    overage_rates={
        Dimension.DATA: Decimal("10.00"),
        Dimension.VOICE: Decimal("0.50"),
        Dimension.SMS: Decimal("0.25"),
    },
)
PLUS_PLAN = Plan(
    id="plan-plus",
    name="Plus 20GB",
    monthly_fee=Decimal("130.00"),
    quotas={
        Dimension.DATA: Decimal("20"),
        Dimension.VOICE: Decimal("1000"),
        Dimension.SMS: Decimal("500"),
    },
    overage_rates={
        Dimension.DATA: Decimal("8.00"),
        Dimension.VOICE: Decimal("0.40"),
        Dimension.SMS: Decimal("0.20"),
    },
)
DATA_PACK = AddOn(
    id="addon-5gb",
    name="Extra 5GB",
    dimension=Dimension.DATA,
    price=Decimal("25.00"),
    extra_quota=Decimal("5"),
)
MUSIC_VAS = Vas(id="vas-music", name="Music Stream", monthly_fee=Decimal("29.90"), provider="Tunes")
QUIZ_SMS = PremiumSms(id="7777", provider="QuizCo", unit_price=Decimal("2.50"))


# ---------------------------------------------------------------------------
# Builders
# ---------------------------------------------------------------------------


def line(
    category: ItemCategory,
    amount: str,
    subtype: str = PACKAGE,
    tax_rate: str = "0",
    description: str = "",
) -> LineItem:
    return LineItem(
        category=category,
        subtype=subtype,
        description=description,
        unit_price=Decimal(amount),
        amount=Decimal(amount),
        tax_rate=Decimal(tax_rate),
    )


def build_bill(
    period: Period,
    items: list[LineItem],
    user_id: str = USER_ID,
    configuration: Optional[SubscriptionConfiguration] = None,
) -> BillingPeriodRecord:
    return BillingPeriodRecord(
        user_id=user_id,
        bill_id=f"bill-{user_id}-{period}",
        period=period,
        line_items=tuple(items),
        issued_at=NOW,
        configuration=configuration,
    )


def data_history(amounts: list[str], end: Period = PERIOD) -> list[BillingPeriodRecord]:
    """Bills with a single DATA line each, for the periods just before *end*."""
    periods: list[Period] = []
    period = end
    for _ in amounts:
        period = period.previous()
        periods.append(period)
    periods.reverse()
    return [build_bill(p, [line(ItemCategory.DATA, a)]) for p, a in zip(periods, amounts)]


@pytest.fixture
def make_line() -> Callable[..., LineItem]:
    return line


@pytest.fixture
def make_bill() -> Callable[..., BillingPeriodRecord]:
    return build_bill


@pytest.fixture
def make_history() -> Callable[..., list[BillingPeriodRecord]]:
    return data_history


# ---------------------------------------------------------------------------
# Sample data
# ---------------------------------------------------------------------------


@pytest.fixture
def period() -> Period:
    return PERIOD


@pytest.fixture
def clock() -> Callable[[], datetime]:
    return lambda: NOW


@pytest.fixture
def basic_plan() -> Plan:
    return BASIC_PLAN


@pytest.fixture
def plus_plan() -> Plan:
    return PLUS_PLAN


@pytest.fixture
def data_pack() -> AddOn:
    return DATA_PACK


@pytest.fixture
def music_vas() -> Vas:
    return MUSIC_VAS


@pytest.fixture
def configuration() -> SubscriptionConfiguration:
    return SubscriptionConfiguration(plan_id=BASIC_PLAN.id, vas_ids=(MUSIC_VAS.id,))


@pytest.fixture
def usage_records() -> list[UsageRecord]:
    """12 GB of data over the period: 2 GB beyond the basic plan."""
    return [
        UsageRecord(
            user_id=USER_ID,
            date=date(2024, 5, day),
            data_mb=Decimal("1024"),
            voice_minutes=Decimal("20"),
            sms_count=Decimal("2"),
        )
        for day in range(1, 13)
    ]


@pytest.fixture
def current_bill(configuration) -> BillingPeriodRecord:
    """Basic plan with 2 GB overage, one VAS and some premium SMS; 150.00 untaxed."""
    return build_bill(
        PERIOD,
        [
            line(ItemCategory.DATA, "100.00", description=BASIC_PLAN.name),
            line(ItemCategory.DATA, "10.10", subtype=OVERAGE),
            line(ItemCategory.VAS, "29.90", subtype=MUSIC_VAS.id),
            line(ItemCategory.PREMIUM_SMS, "10.00", subtype=QUIZ_SMS.id),
        ],
        configuration=configuration,
    )


# ---------------------------------------------------------------------------
# Adapters
# ---------------------------------------------------------------------------


@pytest.fixture
def billing_store() -> InMemoryBillingStore:
    return InMemoryBillingStore()


@pytest.fixture
def usage_store() -> InMemoryUsageStore:
    return InMemoryUsageStore()


@pytest.fixture
def catalog() -> InMemoryCatalog:
    return InMemoryCatalog([BASIC_PLAN, PLUS_PLAN, DATA_PACK, MUSIC_VAS, QUIZ_SMS])


@pytest.fixture
def directory() -> InMemorySubscriptionDirectory:
    return InMemorySubscriptionDirectory()


@pytest.fixture
def anomaly_repo() -> InMemoryAnomalyRepository:
    return InMemoryAnomalyRepository()


@pytest.fixture
def rules() -> DetectionRules:
    return DetectionRules()


@pytest.fixture
def detector(rules) -> AnomalyDetector:
    return AnomalyDetector(rules)


@pytest.fixture
def rating_engine() -> RatingEngine:
    return RatingEngine()

