"""Bill anomaly API endpoints."""

from __future__ import annotations

import math
import uuid
from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, Path, Query, status

from application.services.anomaly_service import AnomalyService
from domain.models.anomaly import AnomalyFinding
from domain.models.anomaly import AnomalyStatus as DomainAnomalyStatus
from domain.models.billing import Period
from infrastructure.container import get_anomaly_service
from infrastructure.observability.metrics import record_findings, timed

from .schemas import (
    AnomalyFindingResponse,
    AnomalyListResponse,
    AnomalySummaryResponse,
    DetectAnomaliesRequest,
    DetectAnomaliesResponse,
    ErrorResponse,
    FindingStatusUpdate,
    PaginationMeta,
)

router = APIRouter(prefix="/anomalies", tags=["Anomalies"])

UserID = Annotated[str, Path(min_length=1, description="User identifier.")]


def _finding_to_response(finding: AnomalyFinding) -> AnomalyFindingResponse:
    """Map a domain AnomalyFinding to the API response schema."""
    return AnomalyFindingResponse(
        id=finding.id,
        user_id=finding.user_id,
        bill_id=finding.bill_id,
        period=str(finding.period),
        category=finding.category.value if finding.category is not None else None,
        type=finding.type.value,
        severity=finding.severity.value,
        status=finding.status.value,
        description=finding.description,
        amount=finding.amount,
        baseline_mean=finding.baseline_mean,
        z_score=finding.z_score,
        percentage_difference=finding.percentage_difference,
        recommendations=list(finding.recommendations),
        detected_at=finding.detected_at,
    )


def _parse_period(value: str | None) -> Period | None:
    if value is None:
        return None
    try:
        return Period.parse(value)
    except ValueError as exc:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail=str(exc),
        ) from exc


@router.post(
    "",
    response_model=DetectAnomaliesResponse,
    summary="Detect anomalies on a bill",
    responses={
        200: {"description": "Findings of this detection run."},
        404: {"description": "No bill for the user and period.", "model": ErrorResponse},
        422: {"description": "Validation error.", "model": ErrorResponse},
    },
)
async def detect_anomalies(
    body: DetectAnomaliesRequest,
    service: AnomalyService = Depends(get_anomaly_service),
) -> DetectAnomaliesResponse:
    period = Period.parse(body.period)
    with timed("detect_anomalies"):
        findings = service.detect_anomalies(body.user_id, period)
    record_findings(findings)
    return DetectAnomaliesResponse(
        user_id=body.user_id,
        period=str(period),
        findings=[_finding_to_response(f) for f in findings],
    )


@router.get("/{user_id}", response_model=AnomalyListResponse, summary="List stored findings")
async def list_findings(
    user_id: UserID,
    period: str | None = Query(None, description="Restrict to one period, YYYY-MM."),
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
    service: AnomalyService = Depends(get_anomaly_service),
) -> AnomalyListResponse:
    findings = service.list_findings(user_id, _parse_period(period))
    start = (page - 1) * page_size
    return AnomalyListResponse(
        items=[_finding_to_response(f) for f in findings[start : start + page_size]],
        pagination=PaginationMeta(
            page=page,
            page_size=page_size,
            total_items=len(findings),
            total_pages=math.ceil(len(findings) / page_size),
        ),
    )


@router.get("/{user_id}/summary", response_model=AnomalySummaryResponse, summary="Finding counts")
async def get_anomaly_summary(
    user_id: UserID,
    service: AnomalyService = Depends(get_anomaly_service),
) -> AnomalySummaryResponse:
    summary = service.get_anomaly_summary(user_id)
    return AnomalySummaryResponse(
        user_id=summary.user_id,
        total=summary.total,
        active=summary.active,
        by_type=summary.by_type,
        by_severity=summary.by_severity,
    )


@router.patch(
    "/findings/{finding_id}",
    response_model=AnomalyFindingResponse,
    summary="Update a finding's status",
    responses={404: {"description": "Finding not found.", "model": ErrorResponse}},
)
async def update_finding_status(
    finding_id: Annotated[uuid.UUID, Path(description="Finding identifier.")],
    body: FindingStatusUpdate,
    service: AnomalyService = Depends(get_anomaly_service),
) -> AnomalyFindingResponse:
    finding = service.update_status(finding_id, DomainAnomalyStatus(body.status.value))
    return _finding_to_response(finding)
