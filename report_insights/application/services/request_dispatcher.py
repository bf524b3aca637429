"""Request dispatcher — FIFO queue with a bound on concurrent analyses."""

import asyncio
import inspect
import logging
import time
import uuid
from collections import deque
from collections.abc import Awaitable, Callable, Sequence
from dataclasses import dataclass, field
from typing import Any

logger = logging.getLogger(__name__)

AnalysisHandler = Callable[[str, Any], Awaitable[Any]]
CompletionCallback = Callable[[str, Any, BaseException | None], Any]


@dataclass
class QueuedRequest:
    prompt: str
    options: Any = None
    callback: CompletionCallback | None = None
    id: str = field(default_factory=lambda: uuid.uuid4().hex)
    enqueued_at: float = field(default_factory=time.time)


class RequestDispatcher:
    """Admits at most ``max_concurrent`` analyses at a time, queuing the rest.

    Requests start in the order they were enqueued. When an in-flight
    request finishes (successfully or not) its slot is released and the
    next queued request is started. Must be used from a running event loop.

    Usage:
        dispatcher = RequestDispatcher(engine.analyze, max_concurrent=2)
        request_id = dispatcher.enqueue(prompt, {"use_cache": False}, on_done)
        await dispatcher.join()
    """

    def __init__(self, handler: AnalysisHandler, max_concurrent: int = 2) -> None:
        if max_concurrent < 1:
            raise ValueError("max_concurrent must be at least 1")
        self._handler = handler
        self._max_concurrent = max_concurrent
        self._queue: deque[QueuedRequest] = deque()
        self._active = 0
        self._tasks: set[asyncio.Task] = set()

    @property
    def max_concurrent(self) -> int:
        return self._max_concurrent

    @property
    def active_count(self) -> int:
        return self._active

    @property
    def queued_count(self) -> int:
        return len(self._queue)

    def queued_ids(self) -> list[str]:
        return [request.id for request in self._queue]

    def enqueue(
        self,
        prompt: str,
        options: Any = None,
        callback: CompletionCallback | None = None,
    ) -> str:
        """Queue an analysis and return its request id.

        ``callback(request_id, result, error)`` runs when the request
        finishes; it may be a coroutine function.
        """
        request = QueuedRequest(prompt=prompt, options=options, callback=callback)
        self._queue.append(request)
        logger.debug("Queued request %s (%d waiting)", request.id[:8], len(self._queue))
        self._pump()
        return request.id

    def cancel(self, request_id: str) -> bool:
        """Drop a request that has not started yet."""
        for request in self._queue:
            if request.id == request_id:
                self._queue.remove(request)
                logger.info("Cancelled queued request %s", request_id[:8])
                return True
        return False

    def clear(self) -> int:
        """Drop every queued request; in-flight requests keep running."""
        dropped = len(self._queue)
        self._queue.clear()
        return dropped

    async def join(self) -> None:
        """Wait until the queue is empty and nothing is in flight."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    def _pump(self) -> None:
        while self._queue and self._active < self._max_concurrent:
            request = self._queue.popleft()
            self._active += 1
            logger.info(
                "Starting request %s (active=%d/%d)",
                request.id[:8],
                self._active,
                self._max_concurrent,
            )
            task = asyncio.get_running_loop().create_task(self._run(request))
            self._tasks.add(task)
            task.add_done_callback(self._tasks.discard)

    async def _run(self, request: QueuedRequest) -> None:
        result: Any = None
        error: BaseException | None = None
        try:
            try:
                result = await self._handler(request.prompt, request.options)
            except Exception as e:
                error = e
                logger.exception("Request %s failed", request.id[:8])

            if request.callback is not None:
                try:
                    outcome = request.callback(request.id, result, error)
                    if inspect.isawaitable(outcome):
                        await outcome
                except Exception:
                    logger.exception("Callback for request %s failed", request.id[:8])
        finally:
            self._active -= 1
            logger.debug(
                "Request %s finished (active=%d)", request.id[:8], self._active
            )
            self._pump()


async def run_with_concurrency_limit(
    factories: Sequence[Callable[[], Awaitable[Any]]],
    limit: int,
) -> list[Any]:
    """Run coroutine factories with at most *limit* in flight.

    Results keep the input order; a factory that raises yields ``None``.
    """
    semaphore = asyncio.Semaphore(max(1, limit))

    async def run(index: int, factory: Callable[[], Awaitable[Any]]) -> Any:
        async with semaphore:
            try:
                return await factory()
            except Exception:
                logger.exception("Batch item %d failed", index + 1)
                return None

    return list(
        await asyncio.gather(*(run(i, factory) for i, factory in enumerate(factories)))
    )
