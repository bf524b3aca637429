"""Analysis engine — orchestrates cache, retries, model fallback and telemetry.

This is the entry point the host calls. It is transport-agnostic: it
receives an AnalysisTransport and a ModelConfigProvider via dependency
injection and hands the retry handler a fetcher for the chosen mode
(buffered or streaming).
"""

import asyncio
import dataclasses
import inspect
import json
import logging
from collections.abc import Awaitable, Callable, Mapping, Sequence
from datetime import datetime, timezone
from typing import Any

from report_insights.application.interfaces import (
    AnalysisTransport,
    ChunkCallback,
    ModelConfigProvider,
)
from report_insights.application.services.fingerprint import generate_fingerprint
from report_insights.application.services.performance_monitor import (
    PerformanceMonitor,
    estimate_token_count,
)
from report_insights.application.services.request_cache import FingerprintCache
from report_insights.application.services.request_dispatcher import (
    run_with_concurrency_limit,
)
from report_insights.application.services.result_parser import (
    extract_message_content,
    extract_token_usage,
    parse_analysis_content,
    split_into_chunks,
)
from report_insights.application.services.retry_handler import execute_with_retry
from report_insights.domain.entities import (
    ChatMessage,
    CompletionOutcome,
    ModelConfig,
    ModelDescriptor,
    PerformanceAggregate,
    RequestOptions,
    RequestStatus,
    RequestStatusSnapshot,
    TokenUsage,
)
from report_insights.domain.exceptions import AnalysisError
from report_insights.infrastructure.logging.colored_logger import Stage, StageLogger

logger = logging.getLogger(__name__)
slog = StageLogger("AnalysisEngine")

OptionsLike = RequestOptions | Mapping[str, Any] | None
ErrorHook = Callable[[BaseException], Any]
CompleteCallback = Callable[[Any], Any]
Fetch = Callable[[ModelConfig], Awaitable[CompletionOutcome]]


def build_request_body(config: ModelConfig, prompt: str, *, stream: bool) -> dict[str, Any]:
    """Build the chat-completion request body for one attempt."""
    messages: list[ChatMessage] = []
    if config.system_prompt:
        messages.append(ChatMessage(role="system", content=config.system_prompt))
    messages.append(ChatMessage(role="user", content=prompt))
    return {
        "model": config.model,
        "messages": [m.to_payload() for m in messages],
        "temperature": config.temperature,
        "max_tokens": config.max_tokens,
        "stream": stream,
    }


def _fingerprint(
    config: ModelConfig, prompt: str, data_version: str | int | float | None
) -> str:
    return generate_fingerprint(
        prompt, config.model, config.temperature, config.max_tokens, data_version
    )


class AnalysisEngine:
    """Application service — turns a prompt into a reliable analysis result.

    Failures never propagate out of ``analyze``/``stream_analyze``: they are
    recorded, reported through ``on_error`` and the call returns ``None``.
    """

    def __init__(
        self,
        transport: AnalysisTransport,
        model_provider: ModelConfigProvider,
        *,
        cache: FingerprintCache | None = None,
        monitor: PerformanceMonitor | None = None,
        default_options: RequestOptions | None = None,
        on_error: ErrorHook | None = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ):
        self._transport = transport
        self._models = model_provider
        self._cache = cache if cache is not None else FingerprintCache()
        self._monitor = monitor if monitor is not None else PerformanceMonitor()
        self._defaults = default_options or RequestOptions()
        self._on_error = on_error
        self._sleep = sleep
        self._status = RequestStatusSnapshot(
            current_model=model_provider.get_current_config().model
        )

    @property
    def cache(self) -> FingerprintCache:
        return self._cache

    @property
    def monitor(self) -> PerformanceMonitor:
        return self._monitor

    @property
    def default_options(self) -> RequestOptions:
        return self._defaults

    def resolve_options(self, options: OptionsLike = None) -> RequestOptions:
        return self._defaults.merged(options)

    # ── Public API ─────────────────────────────────────────────────

    async def analyze(
        self,
        prompt: str,
        options: OptionsLike = None,
        data_version: str | int | float | None = None,
    ) -> Any | None:
        """Run a buffered (non-streaming) analysis.

        Returns:
            The parsed analysis payload, or None if the analysis failed.
        """
        config = self.resolve_options(options)

        async def fetch(model_config: ModelConfig) -> CompletionOutcome:
            body = build_request_body(model_config, prompt, stream=False)
            response = await self._transport.send_buffered(
                model_config.endpoint_url,
                model_config.api_key,
                body,
                config.timeout_ms,
            )
            return CompletionOutcome(
                content=extract_message_content(response),
                model=response.get("model") or model_config.model,
                usage=extract_token_usage(response),
            )

        return await self._run(prompt, config, data_version, fetch)

    async def stream_analyze(
        self,
        prompt: str,
        options: OptionsLike = None,
        on_chunk: ChunkCallback | None = None,
        on_complete: CompleteCallback | None = None,
        data_version: str | int | float | None = None,
    ) -> Any | None:
        """Run a streaming analysis, delivering text deltas to *on_chunk*.

        A cached answer is replayed through *on_chunk* in small pieces so
        the host renders it the same way as a live stream. *on_complete*
        receives the final payload (or None) once everything is done.
        """
        config = self.resolve_options(options)

        async def fetch(model_config: ModelConfig) -> CompletionOutcome:
            body = build_request_body(model_config, prompt, stream=True)
            slog.step_start(Stage.STREAM, "Streaming response", model=model_config.model)
            text = await self._transport.send_streaming(
                model_config.endpoint_url,
                model_config.api_key,
                body,
                config.timeout_ms,
                on_chunk,
            )
            return CompletionOutcome(
                content=text,
                model=model_config.model,
                usage=TokenUsage(completion_tokens=estimate_token_count(text)),
                streamed=True,
            )

        def replay(cached: Any) -> None:
            if on_chunk is None:
                return
            text = cached if isinstance(cached, str) else json.dumps(cached, ensure_ascii=False)
            for piece in split_into_chunks(text):
                on_chunk(piece)

        result = await self._run(prompt, config, data_version, fetch, on_cache_hit=replay)

        if on_complete is not None:
            try:
                outcome = on_complete(result)
                if inspect.isawaitable(outcome):
                    await outcome
            except Exception:
                logger.exception("on_complete callback failed")

        return result

    async def batch_analyze(
        self,
        prompts: Sequence[str | Mapping[str, Any]],
        options: OptionsLike = None,
    ) -> list[Any | None]:
        """Analyze several prompts with bounded concurrency.

        Each item is a prompt string or ``{"prompt": ..., "options": {...}}``;
        per-item options are applied over *options*.
        """
        if not prompts:
            raise ValueError("prompts must not be empty")

        config = self.resolve_options(options)
        factories = []
        for item in prompts:
            if isinstance(item, str):
                prompt, item_options = item, None
            else:
                prompt, item_options = item["prompt"], item.get("options")
            item_config = config.merged(item_options)
            factories.append(
                lambda p=prompt, c=item_config: self.analyze(p, c)
            )

        return await run_with_concurrency_limit(factories, config.max_concurrent_requests)

    def fingerprint_for(
        self, prompt: str, data_version: str | int | float | None = None
    ) -> str:
        """Cache key the engine would use for *prompt* with the active model."""
        return _fingerprint(self._models.get_current_config(), prompt, data_version)

    def get_request_status(self) -> RequestStatusSnapshot:
        return dataclasses.replace(
            self._status, current_model=self._models.get_current_config().model
        )

    def get_performance_snapshot(self) -> PerformanceAggregate:
        return self._monitor.get_snapshot()

    def reset_performance_data(self) -> None:
        self._monitor.reset()

    def clear_cache(self, fingerprint: str | None = None) -> None:
        self._cache.evict(fingerprint)

    # ── Orchestration core ─────────────────────────────────────────

    async def _run(
        self,
        prompt: str,
        config: RequestOptions,
        data_version: str | int | float | None,
        fetch: Fetch,
        on_cache_hit: Callable[[Any], None] | None = None,
    ) -> Any | None:
        current = self._models.get_current_config()
        fallbacks = self._fallback_candidates(current)
        request_id = self._monitor.start_request(prompt, config, current.model)
        self._begin()

        slog.step_start(
            Stage.REQUEST,
            "Analysis started",
            model=current.model,
            prompt_chars=len(prompt),
        )

        try:
            fingerprint = _fingerprint(current, prompt, data_version)

            if config.use_cache and not config.force_refresh:
                cached = self._cache.get(fingerprint, config.cache_ttl_ms)
                if cached is not None:
                    self._monitor.record_cache_hit(request_id)
                    self._status.cache_hits += 1
                    slog.step_complete(Stage.CACHE, "Served from cache", key=fingerprint[:12])
                    if on_cache_hit is not None:
                        on_cache_hit(cached)
                    self._monitor.end_request(
                        request_id,
                        RequestStatus.SUCCESS,
                        cached,
                        metadata={"cache_hit": True},
                    )
                    self._status.success_count += 1
                    return cached
                self._monitor.record_cache_miss()
                self._status.cache_misses += 1
                slog.detail("Cache miss", key=fingerprint[:12])

            outcome = await execute_with_retry(
                current,
                fallbacks,
                config,
                fetch,
                on_retry=lambda: self._on_retry(request_id),
                on_fallback=lambda model_id: self._on_fallback(
                    request_id, model_id, current, fallbacks
                ),
                sleep=self._sleep,
            )

            payload = parse_analysis_content(outcome.content)
            if config.use_cache:
                self._cache.put(fingerprint, payload)

            self._monitor.end_request(
                request_id,
                RequestStatus.SUCCESS,
                payload,
                metadata={"token_usage": outcome.usage, "model_id": outcome.model},
            )
            self._status.success_count += 1
            slog.step_complete(
                Stage.COMPLETE,
                "Analysis finished",
                model=outcome.model,
                tokens=outcome.usage.total_tokens,
                streamed=outcome.streamed,
            )
            return payload

        except Exception as e:
            self._record_failure(request_id, e)
            return None

        finally:
            self._status.active_requests -= 1
            self._status.in_progress = self._status.active_requests > 0

    def _begin(self) -> None:
        self._status.active_requests += 1
        self._status.in_progress = True
        self._status.request_count += 1
        self._status.last_request_time = datetime.now(timezone.utc)

    def _on_retry(self, request_id: str | None) -> None:
        self._monitor.record_retry(request_id)
        slog.step_warning(Stage.RETRY, "Retrying request")

    def _fallback_candidates(self, current: ModelConfig) -> list[ModelDescriptor]:
        """Fallbacks for a call starting on *current*.

        When another model is active, the primary leads the list so a
        recovered primary is picked up again.
        """
        fallbacks = [m for m in self._models.get_fallback_models() if m.id != current.model]
        primary = self._models.get_primary_model()
        if primary is not None and primary.id != current.model:
            fallbacks.insert(0, primary)
        return fallbacks

    def _on_fallback(
        self,
        request_id: str | None,
        model_id: str,
        current: ModelConfig,
        fallbacks: list[ModelDescriptor],
    ) -> ModelConfig:
        """Configuration for *model_id*, used for the rest of this call only.

        The provider's active model is left alone, so the next call starts
        from it again.
        """
        self._monitor.record_model_fallback(request_id, model_id)
        self._status.model_switch_count += 1
        slog.step_warning(Stage.FALLBACK, "Falling back", to=model_id)

        descriptor = next(m for m in fallbacks if m.id == model_id)
        return dataclasses.replace(
            current,
            model=descriptor.id,
            endpoint_url=descriptor.endpoint_url,
            max_tokens=descriptor.max_tokens,
        )

    def _record_failure(self, request_id: str | None, error: Exception) -> None:
        if isinstance(error, AnalysisError):
            slog.step_error(Stage.ERROR, "Analysis failed", error=error)
            kind = error.kind.value
            message = error.message
        else:
            logger.exception("Unexpected error during analysis")
            kind = None
            message = str(error)

        self._monitor.end_request(request_id, RequestStatus.ERROR, error=error)
        self._status.failure_count += 1
        self._status.last_error_kind = kind
        self._status.last_error_message = message

        if self._on_error is not None:
            try:
                self._on_error(error)
            except Exception:
                logger.exception("on_error hook failed")
