"""Performance telemetry endpoints."""

import dataclasses

from fastapi import APIRouter, Depends, status

from report_insights.application.schemas import PerformanceSnapshotResponse
from report_insights.application.services import AnalysisEngine
from report_insights.infrastructure.dependencies import get_analysis_engine

router = APIRouter(prefix="/performance", tags=["Performance"])


@router.get("", response_model=PerformanceSnapshotResponse)
async def get_performance(
    engine: AnalysisEngine = Depends(get_analysis_engine),
) -> PerformanceSnapshotResponse:
    """Aggregated request statistics, per-model stats and recent requests."""
    snapshot = engine.get_performance_snapshot()
    return PerformanceSnapshotResponse.model_validate(dataclasses.asdict(snapshot))


@router.post("/reset", status_code=status.HTTP_204_NO_CONTENT)
async def reset_performance(
    engine: AnalysisEngine = Depends(get_analysis_engine),
) -> None:
    engine.reset_performance_data()
