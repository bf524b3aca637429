"""Domain entities for request telemetry and aggregated performance statistics."""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any


class RequestStatus(str, Enum):
    """Lifecycle states of a monitored request."""

    PENDING = "pending"
    SUCCESS = "success"
    ERROR = "error"


@dataclass
class RequestTokenUsage:
    """Token counts attributed to one request."""

    prompt: int = 0
    completion: int = 0
    total: int = 0


@dataclass
class RequestRecord:
    """An in-flight (or just finished) monitored request.

    Created by ``PerformanceMonitor.start_request`` and mutated only by the
    monitor's recording calls.
    """

    id: str
    prompt_preview: str
    prompt_length: int
    model_id: str | None
    start_ms: float
    started_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    end_ms: float | None = None
    duration_ms: int | None = None
    status: RequestStatus = RequestStatus.PENDING
    retry_count: int = 0
    fallback_count: int = 0
    cache_hit: bool = False
    stream_response: bool = False
    token_usage: RequestTokenUsage = field(default_factory=RequestTokenUsage)
    error_message: str | None = None


@dataclass
class RecentRequest:
    """Trimmed copy of a finished request kept in the recent-history list."""

    id: str
    model_id: str | None
    timestamp: str  # ISO 8601 start time
    duration_ms: int
    status: RequestStatus
    prompt_preview: str
    prompt_length: int
    cache_hit: bool
    retry_count: int
    fallback_count: int
    stream_response: bool
    token_usage: RequestTokenUsage
    error_message: str | None = None


@dataclass
class OverallStats:
    total_requests: int = 0
    successful_requests: int = 0
    failed_requests: int = 0
    total_response_time_ms: int = 0
    average_response_time_ms: float = 0.0
    min_response_time_ms: int | None = None
    max_response_time_ms: int = 0
    total_retries: int = 0
    total_model_fallbacks: int = 0


@dataclass
class ModelStats:
    total_requests: int = 0
    successful_requests: int = 0
    failed_requests: int = 0
    total_response_time_ms: int = 0
    average_response_time_ms: float = 0.0
    total_tokens: int = 0


@dataclass
class TokenUsageStats:
    total_prompt_tokens: int = 0
    total_completion_tokens: int = 0
    total_tokens: int = 0


@dataclass
class CacheStats:
    hits: int = 0
    misses: int = 0
    hit_rate: float = 0.0

    def recompute_hit_rate(self) -> None:
        attempts = self.hits + self.misses
        self.hit_rate = self.hits / attempts if attempts > 0 else 0.0


@dataclass
class PerformanceAggregate:
    """Process-wide performance statistics owned by the PerformanceMonitor."""

    overall: OverallStats = field(default_factory=OverallStats)
    model_performance: dict[str, ModelStats] = field(default_factory=dict)
    token_usage: TokenUsageStats = field(default_factory=TokenUsageStats)
    cache_stats: CacheStats = field(default_factory=CacheStats)
    recent_requests: list[RecentRequest] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "PerformanceAggregate":
        """Rebuild from a serialized blob, keeping defaults for missing parts."""
        aggregate = cls()
        aggregate.overall = _merge(OverallStats, data.get("overall"))
        aggregate.token_usage = _merge(TokenUsageStats, data.get("token_usage"))
        aggregate.cache_stats = _merge(CacheStats, data.get("cache_stats"))
        aggregate.model_performance = {
            model_id: _merge(ModelStats, stats)
            for model_id, stats in (data.get("model_performance") or {}).items()
        }
        aggregate.recent_requests = [
            RecentRequest(
                **{
                    **item,
                    "status": RequestStatus(item["status"]),
                    "token_usage": _merge(RequestTokenUsage, item.get("token_usage")),
                }
            )
            for item in data.get("recent_requests") or []
        ]
        return aggregate


def _merge(cls, values: dict[str, Any] | None):
    """Instantiate *cls* from *values*, ignoring keys it does not know."""
    known = {f for f in cls.__dataclass_fields__}
    return cls(**{k: v for k, v in (values or {}).items() if k in known})
