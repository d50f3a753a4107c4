from __future__ import annotations

import enum
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Union

from domain.models.billing import ZERO, ItemCategory


class CatalogKind(enum.Enum):
    PLAN = "PLAN"
    ADD_ON = "ADD_ON"
    VAS = "VAS"
    PREMIUM_SMS = "PREMIUM_SMS"


class Dimension(enum.Enum):
    """Quota-bearing usage dimensions of a plan."""

    DATA = "DATA"  # unit: GB
    VOICE = "VOICE"  # unit: minute
    SMS = "SMS"  # unit: message

    @property
    def category(self) -> ItemCategory:
        return ItemCategory[self.value]


@dataclass(frozen=True)
class Plan:
    id: str
    name: str
    monthly_fee: Decimal
    quotas: dict[Dimension, Decimal] = field(default_factory=dict)
    overage_rates: dict[Dimension, Decimal] = field(default_factory=dict)
    # Optional block size per dimension; overage is rounded up to whole blocks.
    billing_blocks: dict[Dimension, Decimal] = field(default_factory=dict)

    def __post_init__(self) -> None:
        if self.monthly_fee < 0 or any(rate < 0 for rate in self.overage_rates.values()):
            raise ValueError(f"plan {self.id} has a negative price")

    def quota(self, dimension: Dimension) -> Decimal:
        return self.quotas.get(dimension, ZERO)

    def overage_rate(self, dimension: Dimension) -> Decimal:
        return self.overage_rates.get(dimension, ZERO)


@dataclass(frozen=True)
class AddOn:
    id: str
    name: str
    dimension: Dimension
    price: Decimal
    extra_quota: Decimal = ZERO

    def __post_init__(self) -> None:
        if self.price < 0:
            raise ValueError(f"add-on {self.id} has a negative price")


@dataclass(frozen=True)
class Vas:
    id: str
    name: str
    monthly_fee: Decimal
    provider: str = ""

    def __post_init__(self) -> None:
        if self.monthly_fee < 0:
            raise ValueError(f"VAS {self.id} has a negative fee")


@dataclass(frozen=True)
class PremiumSms:
    id: str  # shortcode
    provider: str
    unit_price: Decimal

    def __post_init__(self) -> None:
        if self.unit_price < 0:
            raise ValueError(f"premium SMS {self.id} has a negative price")


CatalogEntry = Union[Plan, AddOn, Vas, PremiumSms]
