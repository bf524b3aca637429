"""FastAPI dependency injection — wires infrastructure to application layer.

The engine holds the cache, telemetry and request status, so every
provider here is a process-wide singleton.
"""

from functools import lru_cache

import httpx

from report_insights.config import get_settings
from report_insights.application.interfaces import KeyValueStore
from report_insights.application.services import (
    AnalysisEngine,
    FingerprintCache,
    MonitorConfig,
    PerformanceMonitor,
    RequestDispatcher,
)
from report_insights.infrastructure.chat_api import ChatCompletionClient
from report_insights.infrastructure.model_config import SettingsModelConfigProvider
from report_insights.infrastructure.storage import (
    InMemoryKeyValueStore,
    JsonFileKeyValueStore,
)


@lru_cache
def get_http_client() -> httpx.AsyncClient:
    """Shared outbound client; per-attempt timeouts are applied by the transport."""
    return httpx.AsyncClient(timeout=None)


@lru_cache
def get_chat_completion_client() -> ChatCompletionClient:
    settings = get_settings()
    return ChatCompletionClient(
        http_client=get_http_client(),
        app_name=settings.analysis_app_name,
    )


@lru_cache
def get_model_provider() -> SettingsModelConfigProvider:
    return SettingsModelConfigProvider(get_settings())


@lru_cache
def get_telemetry_store() -> KeyValueStore:
    """File-backed store when persistence is enabled, in-memory otherwise."""
    settings = get_settings()
    if settings.monitor_persist_data:
        return JsonFileKeyValueStore(settings.monitor_storage_file)
    return InMemoryKeyValueStore()


@lru_cache
def get_performance_monitor() -> PerformanceMonitor:
    settings = get_settings()
    config = MonitorConfig(
        enabled=settings.monitor_enabled,
        max_recent_requests=settings.monitor_max_recent_requests,
        persist_data=settings.monitor_persist_data,
        storage_key=settings.monitor_storage_key,
    )
    return PerformanceMonitor(config, store=get_telemetry_store())


@lru_cache
def get_result_cache() -> FingerprintCache:
    return FingerprintCache(max_entries=get_settings().cache_max_entries)


@lru_cache
def get_analysis_engine() -> AnalysisEngine:
    """Provides the AnalysisEngine with transport, models, cache and monitor wired up."""
    return AnalysisEngine(
        transport=get_chat_completion_client(),
        model_provider=get_model_provider(),
        cache=get_result_cache(),
        monitor=get_performance_monitor(),
        default_options=get_settings().request_options(),
    )


@lru_cache
def get_request_dispatcher() -> RequestDispatcher:
    engine = get_analysis_engine()
    return RequestDispatcher(
        engine.analyze,
        max_concurrent=engine.default_options.max_concurrent_requests,
    )


@lru_cache
def get_queue_results() -> dict[str, dict]:
    """Outcomes of queued requests, keyed by request id."""
    return {}


async def close_dependencies() -> None:
    """Release shared resources on application shutdown."""
    if get_http_client.cache_info().currsize:
        await get_http_client().aclose()
        get_http_client.cache_clear()
