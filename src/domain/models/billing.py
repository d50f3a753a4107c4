from __future__ import annotations

import enum
import re
from dataclasses import dataclass, field
from datetime import UTC, date, datetime
from decimal import ROUND_HALF_UP, Decimal
from typing import Sequence

CENT = Decimal("0.01")
ZERO = Decimal("0")

_PERIOD_RE = re.compile(r"^(\d{4})-(\d{2})$")


def to_money(value: Decimal | int | float | str) -> Decimal:
    """Quantize *value* to currency precision (2 places, half-up)."""
    return Decimal(str(value)).quantize(CENT, rounding=ROUND_HALF_UP)


class ItemCategory(enum.Enum):
    DATA = "DATA"
    VOICE = "VOICE"
    SMS = "SMS"
    ROAMING = "ROAMING"
    PREMIUM_SMS = "PREMIUM_SMS"
    VAS = "VAS"
    ONE_OFF = "ONE_OFF"
    TAX = "TAX"


# Well-known line item subtypes. Subtypes are free-form strings on the bill;
# VAS lines use the service id. The billing store files the monthly plan fee
# under VAS with the PLAN_FEE subtype.
PACKAGE = "PACKAGE"
OVERAGE = "OVERAGE"
ONE_TIME = "ONE_TIME"
ADDON = "ADDON"
PLAN_FEE = "plan_fee"


@dataclass(frozen=True, order=True)
class Period:
    """A billing period (calendar month)."""

    year: int
    month: int

    def __post_init__(self) -> None:
        if not 1 <= self.month <= 12:
            raise ValueError(f"month must be in 1..12, got {self.month}")

    @classmethod
    def parse(cls, value: str) -> Period:
        match = _PERIOD_RE.match(value.strip())
        if match is None:
            raise ValueError(f"period must be in YYYY-MM format, got {value!r}")
        return cls(int(match.group(1)), int(match.group(2)))

    @classmethod
    def of(cls, day: date) -> Period:
        return cls(day.year, day.month)

    def previous(self) -> Period:
        if self.month == 1:
            return Period(self.year - 1, 12)
        return Period(self.year, self.month - 1)

    def contains(self, day: date) -> bool:
        return day.year == self.year and day.month == self.month

    def __str__(self) -> str:
        return f"{self.year:04d}-{self.month:02d}"


@dataclass(frozen=True)
class LineItem:
    category: ItemCategory
    subtype: str
    description: str = ""
    unit_price: Decimal = ZERO
    quantity: Decimal = Decimal("1")
    amount: Decimal = ZERO
    tax_rate: Decimal = ZERO

    def __post_init__(self) -> None:
        if self.amount < 0:
            raise ValueError(f"line item amount must be non-negative, got {self.amount}")
        if not ZERO <= self.tax_rate <= 1:
            raise ValueError(f"tax_rate must be a fraction in [0, 1], got {self.tax_rate}")

    @classmethod
    def priced(
        cls,
        category: ItemCategory,
        subtype: str,
        unit_price: Decimal,
        quantity: Decimal,
        tax_rate: Decimal = ZERO,
        description: str = "",
    ) -> LineItem:
        """Build a line whose amount is ``unit_price * quantity``."""
        return cls(
            category=category,
            subtype=subtype,
            description=description,
            unit_price=unit_price,
            quantity=quantity,
            amount=to_money(unit_price * quantity),
            tax_rate=tax_rate,
        )

    @property
    def tax_amount(self) -> Decimal:
        return to_money(self.amount * self.tax_rate)

    @property
    def gross_amount(self) -> Decimal:
        return self.amount + self.tax_amount

    @property
    def is_plan_fee(self) -> bool:
        return self.subtype == PLAN_FEE


def category_amounts(items: Sequence[LineItem]) -> dict[ItemCategory, Decimal]:
    """Pre-tax amount per category, with all line taxes folded into ``TAX``.

    The values always sum to the gross total of *items*.
    """
    amounts: dict[ItemCategory, Decimal] = {}
    tax = ZERO
    for item in items:
        amounts[item.category] = amounts.get(item.category, ZERO) + item.amount
        tax += item.tax_amount
    if tax:
        amounts[ItemCategory.TAX] = amounts.get(ItemCategory.TAX, ZERO) + tax
    return amounts


@dataclass(frozen=True)
class SubscriptionConfiguration:
    plan_id: str
    addon_ids: tuple[str, ...] = ()
    vas_ids: tuple[str, ...] = ()


@dataclass(frozen=True)
class BillingPeriodRecord:
    """One user's closed bill for one period. Read-only to this service."""

    user_id: str
    bill_id: str
    period: Period
    line_items: tuple[LineItem, ...] = ()
    currency: str = "TRY"
    issued_at: datetime = field(default_factory=lambda: datetime.now(UTC))
    configuration: SubscriptionConfiguration | None = None

    @property
    def total_amount(self) -> Decimal:
        return sum((item.gross_amount for item in self.line_items), ZERO)

    @property
    def tax_amount(self) -> Decimal:
        return sum((item.tax_amount for item in self.line_items), ZERO)

    @property
    def per_category_amounts(self) -> dict[ItemCategory, Decimal]:
        return category_amounts(self.line_items)

    @property
    def detection_items(self) -> tuple[LineItem, ...]:
        """Lines compared against history; the plan fee is not a value-added service."""
        return tuple(
            item
            for item in self.line_items
            if not (item.category is ItemCategory.VAS and item.is_plan_fee)
        )

    @property
    def detection_amounts(self) -> dict[ItemCategory, Decimal]:
        return category_amounts(self.detection_items)

    def amount_for(self, category: ItemCategory) -> Decimal:
        return self.per_category_amounts.get(category, ZERO)

    def subtypes(self) -> set[tuple[ItemCategory, str]]:
        return {(item.category, item.subtype) for item in self.detection_items}


@dataclass(frozen=True)
class UsageRecord:
    user_id: str
    date: date
    data_mb: Decimal = ZERO
    voice_minutes: Decimal = ZERO
    sms_count: Decimal = ZERO
    roaming_mb: Decimal = ZERO


@dataclass(frozen=True)
class UsageSummary:
    """Usage totals for one period."""

    data_gb: Decimal = ZERO
    voice_minutes: Decimal = ZERO
    sms_count: Decimal = ZERO
    roaming_mb: Decimal = ZERO
    record_count: int = 0

    @classmethod
    def from_records(cls, records: Sequence[UsageRecord]) -> UsageSummary:
        data_mb = sum((r.data_mb for r in records), ZERO)
        return cls(
            data_gb=data_mb / Decimal(1024),
            voice_minutes=sum((r.voice_minutes for r in records), ZERO),
            sms_count=sum((r.sms_count for r in records), ZERO),
            roaming_mb=sum((r.roaming_mb for r in records), ZERO),
            record_count=len(records),
        )

    @property
    def is_empty(self) -> bool:
        return self.record_count == 0
