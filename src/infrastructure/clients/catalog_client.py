"""HTTP adapter for the product catalog service."""

from __future__ import annotations

from decimal import Decimal
from typing import Optional

from pydantic import Field

from domain.models.catalog import AddOn, CatalogEntry, CatalogKind, Dimension, Plan, PremiumSms, Vas
from infrastructure.clients.base import JsonClient, WireModel

_ZERO = Decimal("0")


class PlanPayload(WireModel):
    plan_id: str = Field(alias="planId")
    plan_name: str = Field(alias="planName")
    monthly_price: Decimal = Field(alias="monthlyPrice", ge=0)
    quota_gb: Decimal = Field(default=_ZERO, alias="quotaGb", ge=0)
    quota_min: Decimal = Field(default=_ZERO, alias="quotaMin", ge=0)
    quota_sms: Decimal = Field(default=_ZERO, alias="quotaSms", ge=0)
    overage_gb: Decimal = Field(default=_ZERO, alias="overageGb", ge=0)
    overage_min: Decimal = Field(default=_ZERO, alias="overageMin", ge=0)
    overage_sms: Decimal = Field(default=_ZERO, alias="overageSms", ge=0)
    billing_block_gb: Optional[Decimal] = Field(default=None, alias="billingBlockGb", gt=0)
    billing_block_min: Optional[Decimal] = Field(default=None, alias="billingBlockMin", gt=0)

    def to_domain(self) -> Plan:
        blocks = {
            dimension: block
            for dimension, block in (
                (Dimension.DATA, self.billing_block_gb),
                (Dimension.VOICE, self.billing_block_min),
            )
            if block is not None
        }
        return Plan(
            id=self.plan_id,
            name=self.plan_name,
            monthly_fee=self.monthly_price,
            quotas={
                Dimension.DATA: self.quota_gb,
                Dimension.VOICE: self.quota_min,
                Dimension.SMS: self.quota_sms,
            },
            overage_rates={
                Dimension.DATA: self.overage_gb,
                Dimension.VOICE: self.overage_min,
                Dimension.SMS: self.overage_sms,
            },
            billing_blocks=blocks,
        )


class AddOnPayload(WireModel):
    addon_id: str = Field(alias="addonId")
    name: str
    type: Dimension
    price: Decimal = Field(ge=0)
    extra_gb: Decimal = Field(default=_ZERO, alias="extraGb", ge=0)
    extra_min: Decimal = Field(default=_ZERO, alias="extraMin", ge=0)
    extra_sms: Decimal = Field(default=_ZERO, alias="extraSms", ge=0)

    def to_domain(self) -> AddOn:
        extra = {
            Dimension.DATA: self.extra_gb,
            Dimension.VOICE: self.extra_min,
            Dimension.SMS: self.extra_sms,
        }[self.type]
        return AddOn(
            id=self.addon_id,
            name=self.name,
            dimension=self.type,
            price=self.price,
            extra_quota=extra,
        )


class VasPayload(WireModel):
    vas_id: str = Field(alias="vasId")
    name: str
    monthly_fee: Decimal = Field(alias="monthlyFee", ge=0)
    provider: str = ""

    def to_domain(self) -> Vas:
        return Vas(id=self.vas_id, name=self.name, monthly_fee=self.monthly_fee, provider=self.provider)


class PremiumSmsPayload(WireModel):
    shortcode: str
    provider: str = ""
    unit_price: Decimal = Field(alias="unitPrice", ge=0)

    def to_domain(self) -> PremiumSms:
        return PremiumSms(id=self.shortcode, provider=self.provider, unit_price=self.unit_price)


_ROUTES: dict[CatalogKind, tuple[str, type[WireModel]]] = {
    CatalogKind.PLAN: ("/catalog/plans", PlanPayload),
    CatalogKind.ADD_ON: ("/catalog/addons", AddOnPayload),
    CatalogKind.VAS: ("/catalog/vas", VasPayload),
    CatalogKind.PREMIUM_SMS: ("/catalog/premium-sms", PremiumSmsPayload),
}


class HttpCatalogClient(JsonClient):
    """Read-through client; caching is left to the caller's run scope."""

    def resolve_catalog_entry(self, kind: CatalogKind, entry_id: str) -> Optional[CatalogEntry]:
        path, payload = _ROUTES[kind]
        data = self._get(f"{path}/{entry_id}")
        if data is None:
            return None
        return payload.model_validate(data).to_domain()  # type: ignore[attr-defined]

    def list_catalog_entries(self, kind: CatalogKind) -> list[CatalogEntry]:
        path, payload = _ROUTES[kind]
        data = self._get(path) or []
        return [payload.model_validate(entry).to_domain() for entry in data]  # type: ignore[attr-defined]
