"""
HTTP adapter for the external billing store.

One :class:`HttpBillingGateway` serves three ports: closed bills, daily
usage and the user's live subscription configuration. Payloads are
validated with Pydantic models mirroring the billing store's camelCase
JSON, then converted into domain records.

The billing store expresses ``taxRate`` in percent (``20`` = 20 %); it is
converted to a fraction here. A 404 maps to "absent" (``None`` or an empty
list); every other error status raises :class:`httpx.HTTPStatusError`.
"""

from __future__ import annotations

import calendar
from datetime import UTC, date, datetime, time
from decimal import Decimal
from typing import Any, Optional

from pydantic import Field

from domain.models.billing import (
    BillingPeriodRecord,
    ItemCategory,
    LineItem,
    Period,
    SubscriptionConfiguration,
    UsageRecord,
)
from infrastructure.clients.base import JsonClient, WireModel

_PERCENT = Decimal("100")


# ======================================================================
# Wire models
# ======================================================================


class ConfigurationPayload(WireModel):
    plan_id: str = Field(alias="planId")
    addon_ids: list[str] = Field(default_factory=list, alias="addonIds")
    vas_ids: list[str] = Field(default_factory=list, alias="vasIds")

    def to_domain(self) -> SubscriptionConfiguration:
        return SubscriptionConfiguration(
            plan_id=self.plan_id,
            addon_ids=tuple(self.addon_ids),
            vas_ids=tuple(self.vas_ids),
        )


class BillItemPayload(WireModel):
    category: ItemCategory
    subtype: str
    description: str = ""
    amount: Decimal = Field(ge=0)
    unit_price: Decimal = Field(default=Decimal("0"), alias="unitPrice")
    quantity: Decimal = Decimal("1")
    tax_rate: Decimal = Field(default=Decimal("0"), alias="taxRate", ge=0, le=100)

    def to_domain(self) -> LineItem:
        return LineItem(
            category=self.category,
            subtype=self.subtype,
            description=self.description,
            unit_price=self.unit_price,
            quantity=self.quantity,
            amount=self.amount,
            tax_rate=self.tax_rate / _PERCENT,
        )


class BillPayload(WireModel):
    bill_id: str = Field(alias="billId")
    user_id: str = Field(alias="userId")
    period_start: date = Field(alias="periodStart")
    issue_date: Optional[date] = Field(default=None, alias="issueDate")
    currency: str = "TRY"
    items: list[BillItemPayload] = Field(default_factory=list)
    configuration: Optional[ConfigurationPayload] = None

    def to_domain(self) -> BillingPeriodRecord:
        extra: dict[str, Any] = {}
        if self.issue_date is not None:
            extra["issued_at"] = datetime.combine(self.issue_date, time.min, tzinfo=UTC)
        return BillingPeriodRecord(
            user_id=self.user_id,
            bill_id=self.bill_id,
            period=Period.of(self.period_start),
            line_items=tuple(item.to_domain() for item in self.items),
            currency=self.currency,
            configuration=self.configuration.to_domain() if self.configuration else None,
            **extra,
        )


class UsagePayload(WireModel):
    day: date = Field(alias="date")
    mb_used: Decimal = Field(default=Decimal("0"), alias="mbUsed", ge=0)
    minutes_used: Decimal = Field(default=Decimal("0"), alias="minutesUsed", ge=0)
    sms_used: Decimal = Field(default=Decimal("0"), alias="smsUsed", ge=0)
    roaming_mb: Decimal = Field(default=Decimal("0"), alias="roamingMb", ge=0)

    def to_domain(self, user_id: str) -> UsageRecord:
        return UsageRecord(
            user_id=user_id,
            date=self.day,
            data_mb=self.mb_used,
            voice_minutes=self.minutes_used,
            sms_count=self.sms_used,
            roaming_mb=self.roaming_mb,
        )


# ======================================================================
# Gateway
# ======================================================================


class HttpBillingGateway(JsonClient):
    """Synchronous client for the billing store REST API."""

    # -- BillingStore -----------------------------------------------------

    def get_bill(self, user_id: str, period: Period) -> Optional[BillingPeriodRecord]:
        data = self._get(f"/bills/user/{user_id}/period", params={"period": str(period)})
        if data is None:
            return None
        return BillPayload.model_validate(data).to_domain()

    def get_bill_history(
        self,
        user_id: str,
        before: Period,
        limit: Optional[int] = None,
    ) -> list[BillingPeriodRecord]:
        params: dict[str, Any] = {"before": str(before)}
        if limit is not None:
            params["limit"] = limit
        data = self._get(f"/bills/{user_id}/recent", params=params)
        if not data:
            return []
        bills = [BillPayload.model_validate(entry).to_domain() for entry in data]
        prior = sorted((b for b in bills if b.period < before), key=lambda b: b.period)
        if limit is None:
            return prior
        return prior[-limit:] if limit > 0 else []

    # -- UsageStore -------------------------------------------------------

    def get_usage(self, user_id: str, period: Period) -> list[UsageRecord]:
        last_day = calendar.monthrange(period.year, period.month)[1]
        data = self._get(
            f"/usage/{user_id}/daily/range",
            params={
                "startDate": date(period.year, period.month, 1).isoformat(),
                "endDate": date(period.year, period.month, last_day).isoformat(),
            },
        )
        if not data:
            return []
        records = [UsagePayload.model_validate(entry).to_domain(user_id) for entry in data]
        return [record for record in records if period.contains(record.date)]

    # -- SubscriptionDirectory --------------------------------------------

    def get_user_current_configuration(self, user_id: str) -> Optional[SubscriptionConfiguration]:
        data = self._get(f"/users/{user_id}/configuration")
        if data is None:
            return None
        return ConfigurationPayload.model_validate(data).to_domain()
