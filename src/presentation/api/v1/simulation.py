"""What-if simulation API endpoints."""

from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, Path, Query, status

from application.services.simulation_service import SimulationService
from domain.models.billing import Period
from domain.models.simulation import Scenario, SimulationResult
from infrastructure.container import get_simulation_service
from infrastructure.observability.metrics import record_simulation, timed

from .schemas import (
    CategoryDeltaSchema,
    CompareRequest,
    ComparisonListResponse,
    ErrorResponse,
    ScenarioComparisonResponse,
    ScenarioSchema,
    SimulationRequest,
    SimulationResponse,
)

router = APIRouter(prefix="/whatif", tags=["What-if Simulation"])

_ERRORS = {
    404: {"description": "Unknown user or catalog entry.", "model": ErrorResponse},
    422: {"description": "Invalid scenario or no data for the period.", "model": ErrorResponse},
}


def _to_scenario(schema: ScenarioSchema) -> Scenario:
    return Scenario(
        plan_id=schema.plan_id or None,
        add_addon_ids=tuple(schema.add_addon_ids),
        disable_vas=schema.disable_vas,
        block_premium_sms=schema.block_premium_sms,
        description=schema.description,
    )


def _result_to_response(result: SimulationResult) -> SimulationResponse:
    scenario = result.scenario
    delta = result.per_category_delta
    return SimulationResponse(
        user_id=result.user_id,
        period=str(result.period),
        basis=result.basis.value,
        currency=result.currency,
        scenario=ScenarioSchema(
            plan_id=scenario.plan_id,
            add_addon_ids=list(scenario.add_addon_ids),
            disable_vas=scenario.disable_vas,
            block_premium_sms=scenario.block_premium_sms,
            description=scenario.description,
        ),
        current_total=result.current_total,
        new_total=result.new_total,
        saving=result.saving,
        per_category_delta=CategoryDeltaSchema(
            plan_change=delta.plan_change,
            add_ons=delta.add_ons,
            vas=delta.vas,
            premium_sms=delta.premium_sms,
        ),
        recommendations=list(result.recommendations),
    )


@router.post(
    "/simulate",
    response_model=SimulationResponse,
    summary="Simulate a scenario",
    responses=_ERRORS,
)
async def simulate(
    body: SimulationRequest,
    service: SimulationService = Depends(get_simulation_service),
) -> SimulationResponse:
    with timed("run_simulation"):
        result = service.run_simulation(
            body.user_id,
            Period.parse(body.period),
            _to_scenario(body.scenario),
        )
    record_simulation(result)
    return _result_to_response(result)


@router.post(
    "/compare",
    response_model=ComparisonListResponse,
    summary="Compare scenarios",
    responses=_ERRORS,
)
async def compare(
    body: CompareRequest,
    service: SimulationService = Depends(get_simulation_service),
) -> ComparisonListResponse:
    period = Period.parse(body.period)
    with timed("compare_scenarios"):
        comparisons = service.compare_scenarios(
            body.user_id,
            period,
            [_to_scenario(s) for s in body.scenarios],
        )
    for comparison in comparisons:
        record_simulation(comparison.result)
    return ComparisonListResponse(
        user_id=body.user_id,
        period=str(period),
        items=[
            ScenarioComparisonResponse(rank=rank, result=_result_to_response(c.result))
            for rank, c in enumerate(comparisons, start=1)
        ],
    )


@router.get(
    "/{user_id}/suggestions",
    response_model=ComparisonListResponse,
    summary="Suggest money-saving scenarios",
    responses=_ERRORS,
)
async def suggest(
    user_id: Annotated[str, Path(min_length=1, description="User identifier.")],
    period: str = Query(..., description="Billing period, YYYY-MM."),
    limit: int = Query(5, ge=1, le=20),
    service: SimulationService = Depends(get_simulation_service),
) -> ComparisonListResponse:
    try:
        target = Period.parse(period)
    except ValueError as exc:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail=str(exc),
        ) from exc

    with timed("suggest_scenarios"):
        comparisons = service.suggest_scenarios(user_id, target, limit)
    return ComparisonListResponse(
        user_id=user_id,
        period=str(target),
        items=[
            ScenarioComparisonResponse(rank=rank, result=_result_to_response(c.result))
            for rank, c in enumerate(comparisons, start=1)
        ],
    )
