"""Pydantic v2 schemas (DTOs) for analysis requests, status and telemetry."""

from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field

from report_insights.domain.entities import RequestStatus


# ── Request options ──


class AnalysisOptionsSchema(BaseModel):
    """Per-call overrides; unset fields fall back to the configured defaults."""

    max_retries: int | None = Field(default=None, ge=0)
    retry_delay_ms: int | None = Field(default=None, ge=0)
    exponential_backoff: bool | None = None
    timeout_ms: int | None = Field(default=None, gt=0)
    use_cache: bool | None = None
    cache_ttl_ms: int | None = Field(default=None, ge=0)
    model_fallback: bool | None = None
    max_fallback_attempts: int | None = Field(default=None, ge=0)
    max_concurrent_requests: int | None = Field(default=None, ge=1)
    stream_response: bool | None = None
    force_refresh: bool | None = None


# ── Requests ──


class AnalysisRequest(BaseModel):
    """Request schema for single, streaming and queued analyses."""

    prompt: str = Field(..., min_length=1, description="Prompt built from report data")
    options: AnalysisOptionsSchema | None = None
    data_version: str | int | float | None = Field(
        default=None, description="Changes whenever the underlying data changes"
    )


class BatchItemSchema(BaseModel):
    prompt: str = Field(..., min_length=1)
    options: AnalysisOptionsSchema | None = None


class BatchAnalysisRequest(BaseModel):
    """Several prompts analysed with bounded concurrency."""

    items: list[str | BatchItemSchema] = Field(..., min_length=1)
    options: AnalysisOptionsSchema | None = None


class SwitchModelRequest(BaseModel):
    model_id: str = Field(..., min_length=1)

    model_config = {"protected_namespaces": ()}


class ModelConfigUpdateRequest(BaseModel):
    """Partial update of the active model configuration."""

    temperature: float | None = Field(default=None, ge=0.0, le=2.0)
    max_tokens: int | None = Field(default=None, gt=0)
    system_prompt: str | None = None


# ── Responses ──


class AnalysisResponse(BaseModel):
    """A successful analysis; ``result`` is parsed JSON or the raw text."""

    result: Any
    fingerprint: str
    missing_fields: list[str] = Field(default_factory=list)


class BatchAnalysisResponse(BaseModel):
    results: list[Any]
    succeeded: int
    failed: int


class QueuedRequestResponse(BaseModel):
    request_id: str
    active: int
    queued: int


class QueueStateResponse(BaseModel):
    active: int
    queued: int
    max_concurrent: int
    queued_ids: list[str] = Field(default_factory=list)


class QueueResultResponse(BaseModel):
    """Outcome of a queued request; ``status`` is queued, running, success or error."""

    request_id: str
    status: str
    result: Any = None
    error: str | None = None


class RequestStatusResponse(BaseModel):
    in_progress: bool
    active_requests: int
    last_request_time: datetime | None
    request_count: int
    success_count: int
    failure_count: int
    cache_hits: int
    cache_misses: int
    model_switch_count: int
    current_model: str | None
    last_error_kind: str | None
    last_error_message: str | None


class ActiveModelConfigResponse(BaseModel):
    model: str
    endpoint_url: str
    temperature: float
    max_tokens: int
    system_prompt: str


class ModelResponse(BaseModel):
    id: str
    display_name: str
    provider: str
    endpoint_url: str
    max_tokens: int
    is_primary: bool
    is_active: bool = False


# ── Performance telemetry ──


class RequestTokenUsageSchema(BaseModel):
    prompt: int = 0
    completion: int = 0
    total: int = 0


class RecentRequestSchema(BaseModel):
    id: str
    model_id: str | None
    timestamp: str
    duration_ms: int
    status: RequestStatus
    prompt_preview: str
    prompt_length: int
    cache_hit: bool
    retry_count: int
    fallback_count: int
    stream_response: bool
    token_usage: RequestTokenUsageSchema
    error_message: str | None = None

    model_config = {"protected_namespaces": ()}


class OverallStatsSchema(BaseModel):
    total_requests: int
    successful_requests: int
    failed_requests: int
    total_response_time_ms: int
    average_response_time_ms: float
    min_response_time_ms: int | None
    max_response_time_ms: int
    total_retries: int
    total_model_fallbacks: int


class ModelStatsSchema(BaseModel):
    total_requests: int
    successful_requests: int
    failed_requests: int
    total_response_time_ms: int
    average_response_time_ms: float
    total_tokens: int


class TokenUsageStatsSchema(BaseModel):
    total_prompt_tokens: int
    total_completion_tokens: int
    total_tokens: int


class CacheStatsSchema(BaseModel):
    hits: int
    misses: int
    hit_rate: float


class PerformanceSnapshotResponse(BaseModel):
    """Read-only copy of the aggregated performance statistics."""

    overall: OverallStatsSchema
    model_performance: dict[str, ModelStatsSchema]
    token_usage: TokenUsageStatsSchema
    cache_stats: CacheStatsSchema
    recent_requests: list[RecentRequestSchema]

    model_config = {"protected_namespaces": ()}
