"""V1 API router — aggregates all v1 endpoint routers."""

from fastapi import APIRouter

from report_insights.presentation.api.v1.endpoints.health import router as health_router
from report_insights.presentation.api.v1.endpoints.analysis import router as analysis_router
from report_insights.presentation.api.v1.endpoints.performance import router as performance_router
from report_insights.presentation.api.v1.endpoints.cache import router as cache_router
from report_insights.presentation.api.v1.endpoints.models import router as models_router

router = APIRouter(prefix="/v1")
router.include_router(health_router)
router.include_router(analysis_router)
router.include_router(performance_router)
router.include_router(cache_router)
router.include_router(models_router)
