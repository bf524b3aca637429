"""Retry and model-fallback handling for analysis requests.

Drives a caller-supplied fetcher through a bounded retry loop per model and
moves to the next fallback model once the retry budget of the current one
is used up on retriable errors. Fatal errors abort everything at once.
"""

import asyncio
import inspect
import logging
from collections.abc import Awaitable, Callable, Sequence
from typing import Any, Protocol, TypeVar

from report_insights.domain.entities import RequestOptions
from report_insights.domain.exceptions import AllModelsExhaustedError, is_retriable

logger = logging.getLogger(__name__)

T = TypeVar("T")


class ModelCandidate(Protocol):
    @property
    def id(self) -> str: ...


Fetcher = Callable[[Any], Awaitable[T]]
RetryHook = Callable[[], Any]
FallbackHook = Callable[[str], Any]
Sleeper = Callable[[float], Awaitable[Any]]


async def execute_with_retry(
    primary: ModelCandidate,
    fallbacks: Sequence[ModelCandidate],
    options: RequestOptions,
    fetcher: Fetcher[T],
    *,
    on_retry: RetryHook | None = None,
    on_fallback: FallbackHook | None = None,
    sleep: Sleeper = asyncio.sleep,
) -> T:
    """Run *fetcher* against *primary*, then each fallback, until one succeeds.

    Args:
        primary: The active model configuration, passed to the fetcher as is.
        fallbacks: Ordered fallback models (used only if ``model_fallback``).
        options: Retry budget, delays and fallback settings.
        fetcher: Async callable issuing one attempt for a model config.
        on_retry: Called before every retry, ahead of the delay.
        on_fallback: Called with the next model id before its first attempt.
            Its (optionally awaitable) return value is the config handed to
            the fetcher; ``None`` means "use the candidate itself".
        sleep: Awaitable sleep in seconds, injectable for tests.

    Returns:
        The first successful fetcher result.

    Raises:
        AnalysisError: A fatal error, or the last retriable error once every
            candidate is exhausted.
        AllModelsExhaustedError: No candidate produced a result and no error
            was captured.
    """
    candidates: list[ModelCandidate] = [primary]
    if options.model_fallback:
        candidates.extend(list(fallbacks)[: options.max_fallback_attempts])

    last_error: BaseException | None = None
    max_attempts = options.max_retries + 1

    for index, candidate in enumerate(candidates):
        model_config: Any = candidate
        if index > 0:
            logger.warning(
                "Falling back to model %s (%d/%d)",
                candidate.id,
                index,
                len(candidates) - 1,
            )
            if on_fallback is not None:
                resolved = await _maybe_await(on_fallback(candidate.id))
                if resolved is not None:
                    model_config = resolved

        for attempt in range(1, max_attempts + 1):
            if attempt > 1:
                delay_ms = options.retry_delay_for(attempt)
                if on_retry is not None:
                    await _maybe_await(on_retry())
                logger.info(
                    "Retrying model %s in %d ms (attempt %d/%d)",
                    candidate.id,
                    delay_ms,
                    attempt,
                    max_attempts,
                )
                await sleep(delay_ms / 1000)

            try:
                return await fetcher(model_config)
            except Exception as e:
                last_error = e
                if not is_retriable(e):
                    logger.error("Fatal error from model %s: %s", candidate.id, e)
                    raise
                logger.warning(
                    "Attempt %d/%d on model %s failed: %s",
                    attempt,
                    max_attempts,
                    candidate.id,
                    e,
                )

        logger.warning("Model %s exhausted its retry budget", candidate.id)

    if last_error is not None:
        raise last_error
    raise AllModelsExhaustedError()


async def _maybe_await(value: Any) -> Any:
    if inspect.isawaitable(value):
        return await value
    return value
