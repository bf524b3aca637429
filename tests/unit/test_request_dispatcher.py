"""Unit tests for the RequestDispatcher and bounded batch execution."""

import asyncio

import pytest

from report_insights.application.services import (
    RequestDispatcher,
    run_with_concurrency_limit,
)


class GatedHandler:
    """Handler that blocks each prompt until the test releases it."""

    def __init__(self):
        self.started: list[str] = []
        self.gates: dict[str, asyncio.Event] = {}
        self.max_active = 0
        self._active = 0

    def release(self, prompt: str) -> None:
        self.gates.setdefault(prompt, asyncio.Event()).set()

    async def __call__(self, prompt: str, options) -> str:
        self.started.append(prompt)
        self._active += 1
        self.max_active = max(self.max_active, self._active)
        try:
            await self.gates.setdefault(prompt, asyncio.Event()).wait()
            if prompt == "explode":
                raise RuntimeError("handler failed")
            return f"result:{prompt}"
        finally:
            self._active -= 1


async def _settle() -> None:
    for _ in range(5):
        await asyncio.sleep(0)


@pytest.mark.asyncio
async def test_dispatcher_bounds_concurrency_and_keeps_fifo_order():
    handler = GatedHandler()
    dispatcher = RequestDispatcher(handler, max_concurrent=2)
    finished: list[tuple[str, str]] = []

    def on_done(request_id, result, error):
        finished.append((request_id, result))

    for prompt in ["a", "b", "c", "d"]:
        dispatcher.enqueue(prompt, None, on_done)
    await _settle()

    assert handler.started == ["a", "b"]
    assert dispatcher.active_count == 2
    assert dispatcher.queued_count == 2

    handler.release("b")
    await _settle()
    assert handler.started == ["a", "b", "c"]

    for prompt in ["a", "c", "d"]:
        handler.release(prompt)
    await dispatcher.join()

    assert handler.started == ["a", "b", "c", "d"]
    assert handler.max_active == 2
    assert dispatcher.active_count == 0
    assert sorted(r for _, r in finished) == ["result:a", "result:b", "result:c", "result:d"]


@pytest.mark.asyncio
async def test_failure_releases_slot_and_reports_error():
    handler = GatedHandler()
    dispatcher = RequestDispatcher(handler, max_concurrent=1)
    outcomes: dict[str, BaseException | None] = {}

    async def on_done(request_id, result, error):
        outcomes[result or "failed"] = error

    dispatcher.enqueue("explode", callback=on_done)
    dispatcher.enqueue("next", callback=on_done)
    handler.release("explode")
    handler.release("next")
    await dispatcher.join()

    assert isinstance(outcomes["failed"], RuntimeError)
    assert outcomes["result:next"] is None
    assert dispatcher.active_count == 0


@pytest.mark.asyncio
async def test_cancel_removes_only_queued_requests():
    handler = GatedHandler()
    dispatcher = RequestDispatcher(handler, max_concurrent=1)

    running = dispatcher.enqueue("a")
    waiting = dispatcher.enqueue("b")
    await _settle()

    assert dispatcher.cancel(waiting) is True
    assert dispatcher.cancel(running) is False
    assert dispatcher.queued_ids() == []

    handler.release("a")
    await dispatcher.join()
    assert handler.started == ["a"]


@pytest.mark.asyncio
async def test_clear_drops_waiting_requests():
    handler = GatedHandler()
    dispatcher = RequestDispatcher(handler, max_concurrent=1)
    for prompt in ["a", "b", "c"]:
        dispatcher.enqueue(prompt)

    assert dispatcher.clear() == 2

    handler.release("a")
    await dispatcher.join()
    assert handler.started == ["a"]


@pytest.mark.asyncio
async def test_failing_callback_does_not_leak_slot():
    handler = GatedHandler()
    dispatcher = RequestDispatcher(handler, max_concurrent=1)

    def on_done(request_id, result, error):
        raise ValueError("callback broke")

    dispatcher.enqueue("a", callback=on_done)
    dispatcher.enqueue("b")
    handler.release("a")
    handler.release("b")
    await dispatcher.join()

    assert handler.started == ["a", "b"]
    assert dispatcher.active_count == 0


def test_invalid_concurrency_rejected():
    with pytest.raises(ValueError):
        RequestDispatcher(GatedHandler(), max_concurrent=0)


@pytest.mark.asyncio
async def test_run_with_concurrency_limit_preserves_order():
    active = 0
    peak = 0

    async def job(value: int) -> int:
        nonlocal active, peak
        active += 1
        peak = max(peak, active)
        await asyncio.sleep(0)
        active -= 1
        if value == 2:
            raise RuntimeError("bad item")
        return value * 10

    results = await run_with_concurrency_limit(
        [lambda v=v: job(v) for v in range(5)], limit=2
    )

    assert results == [0, 10, None, 30, 40]
    assert peak <= 2
