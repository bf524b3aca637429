"""Performance monitor — single entry point for request telemetry.

Tracks every analysis request from start to end (retries, model fallbacks,
cache hits, token usage) and folds finished requests into running
statistics. Recording calls never raise: telemetry must not be able to
break the analysis path.
"""

import copy
import json
import logging
import math
import time
import uuid
from collections import deque
from collections.abc import Callable, Mapping
from dataclasses import asdict, dataclass, replace
from typing import Any

from report_insights.application.interfaces import KeyValueStore
from report_insights.domain.entities import (
    ModelStats,
    PerformanceAggregate,
    RecentRequest,
    RequestOptions,
    RequestRecord,
    RequestStatus,
    RequestTokenUsage,
    TokenUsage,
)

logger = logging.getLogger(__name__)

PROMPT_PREVIEW_LENGTH = 100


@dataclass(frozen=True)
class MonitorConfig:
    enabled: bool = True
    max_recent_requests: int = 50
    persist_data: bool = False
    storage_key: str = "report_insights_performance_data"


def _monotonic_ms() -> float:
    return time.monotonic() * 1000


def estimate_token_count(text: str | None) -> int:
    """Rough token estimate: about four characters per token."""
    if not text:
        return 0
    return math.ceil(len(text) / 4)


def format_duration(ms: float) -> str:
    """Format a millisecond duration for log output."""
    if ms < 1000:
        return f"{int(ms)}ms"
    if ms < 60000:
        return f"{ms / 1000:.2f}s"
    minutes = int(ms // 60000)
    seconds = (ms % 60000) / 1000
    return f"{minutes}m {seconds:.2f}s"


class PerformanceMonitor:
    """Collects request lifecycle events and aggregates them.

    Usage:
        monitor = PerformanceMonitor()
        request_id = monitor.start_request(prompt, options, "qwen-14b")
        monitor.record_retry(request_id)
        monitor.end_request(request_id, RequestStatus.SUCCESS, result,
                            metadata={"token_usage": usage})
        snapshot = monitor.get_snapshot()
    """

    def __init__(
        self,
        config: MonitorConfig | None = None,
        *,
        store: KeyValueStore | None = None,
        clock: Callable[[], float] = _monotonic_ms,
    ) -> None:
        self._config = config or MonitorConfig()
        self._store = store
        self._clock = clock
        self._active: dict[str, RequestRecord] = {}
        self._data = PerformanceAggregate()
        self._recent: deque[RecentRequest] = deque(maxlen=self._config.max_recent_requests)

        if self._config.enabled and self._config.persist_data:
            self._load()

    @property
    def config(self) -> MonitorConfig:
        return self._config

    @property
    def active_count(self) -> int:
        return len(self._active)

    def configure(self, **options: Any) -> MonitorConfig:
        """Replace monitor settings; reloads persisted data when enabled."""
        self._config = replace(MonitorConfig(), **options)
        self._recent = deque(self._recent, maxlen=self._config.max_recent_requests)
        if self._config.enabled and self._config.persist_data:
            self._load()
        return self._config

    # ── Recording ──────────────────────────────────────────────────

    def start_request(
        self,
        prompt: str,
        options: RequestOptions | None = None,
        model_id: str | None = None,
    ) -> str | None:
        """Open a request record and return its id (None when disabled)."""
        if not self._config.enabled:
            return None

        request_id = uuid.uuid4().hex
        prompt = prompt or ""
        self._active[request_id] = RequestRecord(
            id=request_id,
            prompt_preview=prompt[:PROMPT_PREVIEW_LENGTH],
            prompt_length=len(prompt),
            model_id=model_id,
            start_ms=self._clock(),
            stream_response=bool(options and options.stream_response),
            token_usage=RequestTokenUsage(prompt=estimate_token_count(prompt)),
        )
        return request_id

    def end_request(
        self,
        request_id: str | None,
        status: RequestStatus | str,
        result: Any = None,
        error: BaseException | None = None,
        metadata: Mapping[str, Any] | None = None,
    ) -> None:
        """Close a request and fold it into the aggregate statistics."""
        record = self._lookup(request_id)
        if record is None:
            return

        try:
            record.end_ms = self._clock()
            record.duration_ms = max(0, int(round(record.end_ms - record.start_ms)))
            record.status = RequestStatus(status)
            if error is not None:
                record.error_message = str(error)

            metadata = metadata or {}
            if metadata.get("model_id"):
                record.model_id = metadata["model_id"]
            if metadata.get("cache_hit"):
                record.cache_hit = True
            usage = metadata.get("token_usage")
            if usage is not None:
                self._apply_token_usage(record, usage)

            del self._active[record.id]
            self._update_stats(record)
        except Exception:
            logger.exception("Failed to record end of request %s", request_id)
            self._active.pop(record.id, None)
            return

        logger.info(
            "Analysis [%s] model=%s tokens=%d retries=%d fallbacks=%d cache=%s %s",
            record.status.value,
            record.model_id,
            record.token_usage.total,
            record.retry_count,
            record.fallback_count,
            "hit" if record.cache_hit else "miss",
            format_duration(record.duration_ms),
        )

        if self._config.persist_data:
            self._persist()

    def record_retry(self, request_id: str | None) -> None:
        record = self._lookup(request_id)
        if record is not None:
            record.retry_count += 1

    def record_model_fallback(self, request_id: str | None, new_model_id: str) -> None:
        record = self._lookup(request_id)
        if record is not None:
            record.fallback_count += 1
            record.model_id = new_model_id

    def record_cache_hit(self, request_id: str | None) -> None:
        record = self._lookup(request_id)
        if record is None:
            return
        record.cache_hit = True
        self._data.cache_stats.hits += 1
        self._data.cache_stats.recompute_hit_rate()

    def record_cache_miss(self) -> None:
        if not self._config.enabled:
            return
        self._data.cache_stats.misses += 1
        self._data.cache_stats.recompute_hit_rate()

    # ── Snapshot / reset ───────────────────────────────────────────

    def get_snapshot(self) -> PerformanceAggregate:
        """Return a deep copy of the aggregate, safe for the caller to keep."""
        snapshot = copy.deepcopy(self._data)
        snapshot.recent_requests = copy.deepcopy(list(self._recent))
        return snapshot

    def reset(self) -> None:
        """Clear all statistics and any persisted copy."""
        self._data = PerformanceAggregate()
        self._recent = deque(maxlen=self._config.max_recent_requests)

        if self._config.persist_data and self._store is not None:
            try:
                self._store.delete(self._config.storage_key)
            except Exception:
                logger.exception("Could not clear persisted performance data")

    # ── Internals ──────────────────────────────────────────────────

    def _lookup(self, request_id: str | None) -> RequestRecord | None:
        if not self._config.enabled or not request_id:
            return None
        return self._active.get(request_id)

    @staticmethod
    def _apply_token_usage(record: RequestRecord, usage: TokenUsage | Mapping[str, Any]) -> None:
        if isinstance(usage, TokenUsage):
            usage = asdict(usage)
        prompt = int(usage.get("prompt_tokens") or 0)
        completion = int(usage.get("completion_tokens") or 0)
        if prompt:
            record.token_usage.prompt = prompt
        record.token_usage.completion = completion
        record.token_usage.total = record.token_usage.prompt + completion

    def _update_stats(self, record: RequestRecord) -> None:
        overall = self._data.overall
        overall.total_requests += 1
        duration = record.duration_ms or 0
        succeeded = record.status is RequestStatus.SUCCESS

        if succeeded:
            overall.successful_requests += 1
            overall.total_response_time_ms += duration
            overall.average_response_time_ms = (
                overall.total_response_time_ms / overall.successful_requests
            )
            if overall.min_response_time_ms is None:
                overall.min_response_time_ms = duration
            else:
                overall.min_response_time_ms = min(overall.min_response_time_ms, duration)
            overall.max_response_time_ms = max(overall.max_response_time_ms, duration)
        else:
            overall.failed_requests += 1

        overall.total_retries += record.retry_count
        overall.total_model_fallbacks += record.fallback_count

        if record.model_id:
            stats = self._data.model_performance.setdefault(record.model_id, ModelStats())
            stats.total_requests += 1
            if succeeded:
                stats.successful_requests += 1
                stats.total_response_time_ms += duration
                stats.average_response_time_ms = (
                    stats.total_response_time_ms / stats.successful_requests
                )
            else:
                stats.failed_requests += 1
            stats.total_tokens += record.token_usage.total

        tokens = self._data.token_usage
        tokens.total_prompt_tokens += record.token_usage.prompt
        tokens.total_completion_tokens += record.token_usage.completion
        tokens.total_tokens += record.token_usage.total

        self._recent.appendleft(
            RecentRequest(
                id=record.id,
                model_id=record.model_id,
                timestamp=record.started_at.isoformat(),
                duration_ms=duration,
                status=record.status,
                prompt_preview=record.prompt_preview,
                prompt_length=record.prompt_length,
                cache_hit=record.cache_hit,
                retry_count=record.retry_count,
                fallback_count=record.fallback_count,
                stream_response=record.stream_response,
                token_usage=copy.copy(record.token_usage),
                error_message=record.error_message,
            )
        )

    def _persist(self) -> None:
        if self._store is None:
            return
        try:
            self._store.set(
                self._config.storage_key, json.dumps(asdict(self.get_snapshot()))
            )
        except Exception:
            logger.exception("Could not persist performance data")

    def _load(self) -> None:
        if self._store is None:
            return
        try:
            raw = self._store.get(self._config.storage_key)
            if not raw:
                return
            loaded = PerformanceAggregate.from_dict(json.loads(raw))
        except Exception:
            logger.exception("Could not load persisted performance data")
            return

        self._data = loaded
        self._recent = deque(loaded.recent_requests, maxlen=self._config.max_recent_requests)
        self._data.recent_requests = []
        logger.info(
            "Loaded persisted performance data (%d requests)",
            loaded.overall.total_requests,
        )
