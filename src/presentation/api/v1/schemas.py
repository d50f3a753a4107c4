"""
Pydantic v2 request/response schemas for the bill insights API.

Money travels as decimal strings, periods as ``YYYY-MM``, and errors follow
RFC 9457 Problem Details.
"""

from __future__ import annotations

import uuid
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

from domain.models.billing import Period

# ---------------------------------------------------------------------------
# Enumerations
# ---------------------------------------------------------------------------


class AnomalyType(str, Enum):
    SPIKE = "SPIKE"
    NEW_ITEM = "NEW_ITEM"
    ROAMING_ACTIVATION = "ROAMING_ACTIVATION"
    PREMIUM_SMS_INCREASE = "PREMIUM_SMS_INCREASE"
    VAS_INCREASE = "VAS_INCREASE"


class AnomalySeverity(str, Enum):
    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"


class AnomalyStatus(str, Enum):
    ACTIVE = "ACTIVE"
    INVESTIGATING = "INVESTIGATING"
    RESOLVED = "RESOLVED"


class SimulationBasis(str, Enum):
    BILL = "BILL"
    USAGE = "USAGE"


# ---------------------------------------------------------------------------
# Base / shared
# ---------------------------------------------------------------------------


class _Model(BaseModel):
    """Base model; snake_case field names throughout."""

    model_config = ConfigDict(
        populate_by_name=True,
        from_attributes=True,
        json_schema_extra={"$schema": "https://json-schema.org/draft/2020-12/schema"},
    )


def _check_period(value: str) -> str:
    Period.parse(value)
    return value


class PaginationMeta(BaseModel):
    """Pagination metadata included in every list response."""

    page: int = Field(..., description="Current page number.")
    page_size: int = Field(..., description="Requested page size.")
    total_items: int = Field(..., description="Total number of items.")
    total_pages: int = Field(..., description="Total number of pages.")


# ---------------------------------------------------------------------------
# RFC 9457 Problem Details error response
# ---------------------------------------------------------------------------


class ErrorResponse(_Model):
    """Error response following RFC 9457 Problem Details for HTTP APIs.

    See https://www.rfc-editor.org/rfc/rfc9457
    """

    type: str = Field(
        default="about:blank",
        description="A URI reference that identifies the problem type.",
        examples=["https://api.bill-insights.example/problems/not-found"],
    )
    title: str = Field(..., examples=["Bill Not Found"])
    status: int = Field(..., examples=[404])
    detail: str = Field(..., examples=["No bill for user u-1 in period 2024-05"])
    instance: str | None = Field(default=None, examples=["/api/v1/anomalies"])
    errors: list[dict[str, Any]] | None = Field(
        default=None,
        description="Validation error details (when status is 422).",
    )


# ---------------------------------------------------------------------------
# Anomaly schemas
# ---------------------------------------------------------------------------


class DetectAnomaliesRequest(_Model):
    """Request body for running anomaly detection on one bill."""

    user_id: str = Field(..., min_length=1, examples=["u-1001"])
    period: str = Field(..., examples=["2024-05"], description="Billing period, YYYY-MM.")

    @field_validator("period")
    @classmethod
    def check_period(cls, value: str) -> str:
        return _check_period(value)


class AnomalyFindingResponse(_Model):
    id: uuid.UUID
    user_id: str
    bill_id: str
    period: str
    category: str | None = Field(
        ..., examples=["DATA"], description="Item category; null for the bill total."
    )
    type: AnomalyType
    severity: AnomalySeverity
    status: AnomalyStatus
    description: str
    amount: Decimal
    baseline_mean: Decimal | None = None
    z_score: float | None = None
    percentage_difference: float | None = None
    recommendations: list[str] = Field(default_factory=list)
    detected_at: datetime


class DetectAnomaliesResponse(_Model):
    user_id: str
    period: str
    findings: list[AnomalyFindingResponse]


class AnomalyListResponse(_Model):
    """Paginated list of stored findings."""

    items: list[AnomalyFindingResponse]
    pagination: PaginationMeta


class AnomalySummaryResponse(_Model):
    user_id: str
    total: int
    active: int
    by_type: dict[str, int] = Field(default_factory=dict)
    by_severity: dict[str, int] = Field(default_factory=dict)


class FindingStatusUpdate(_Model):
    status: AnomalyStatus


# ---------------------------------------------------------------------------
# Simulation schemas
# ---------------------------------------------------------------------------


class ScenarioSchema(_Model):
    """Hypothetical changes; every field is optional and absence keeps things as-is."""

    plan_id: str | None = Field(default=None, examples=["plan-30gb"])
    add_addon_ids: list[str] = Field(default_factory=list, examples=[["addon-5gb"]])
    disable_vas: bool = False
    block_premium_sms: bool = False
    description: str = Field(default="", max_length=200)


class SimulationRequest(_Model):
    user_id: str = Field(..., min_length=1, examples=["u-1001"])
    period: str = Field(..., examples=["2024-05"])
    scenario: ScenarioSchema = Field(default_factory=ScenarioSchema)

    @field_validator("period")
    @classmethod
    def check_period(cls, value: str) -> str:
        return _check_period(value)


class CompareRequest(_Model):
    user_id: str = Field(..., min_length=1)
    period: str = Field(..., examples=["2024-05"])
    scenarios: list[ScenarioSchema] = Field(..., min_length=1, max_length=20)

    @field_validator("period")
    @classmethod
    def check_period(cls, value: str) -> str:
        return _check_period(value)


class CategoryDeltaSchema(_Model):
    """Change per lever (new - current, tax included). Negative is cheaper."""

    plan_change: Decimal
    add_ons: Decimal
    vas: Decimal
    premium_sms: Decimal


class SimulationResponse(_Model):
    user_id: str
    period: str
    basis: SimulationBasis
    currency: str
    scenario: ScenarioSchema
    current_total: Decimal
    new_total: Decimal
    saving: Decimal = Field(
        ...,
        description="current_total - new_total; negative means a cost increase.",
    )
    per_category_delta: CategoryDeltaSchema
    recommendations: list[str] = Field(default_factory=list)


class ScenarioComparisonResponse(_Model):
    rank: int
    result: SimulationResponse


class ComparisonListResponse(_Model):
    user_id: str
    period: str
    items: list[ScenarioComparisonResponse]
