"""Result cache endpoint."""

from fastapi import APIRouter, Depends

from report_insights.application.services import AnalysisEngine
from report_insights.infrastructure.dependencies import get_analysis_engine

router = APIRouter(prefix="/cache", tags=["Cache"])


@router.delete("")
async def clear_cache(
    fingerprint: str | None = None,
    engine: AnalysisEngine = Depends(get_analysis_engine),
) -> dict:
    """Evict one cached result by fingerprint, or everything when omitted."""
    engine.clear_cache(fingerprint)
    return {
        "cleared": fingerprint or "all",
        "remaining": engine.cache.size(),
    }
