"""Analysis endpoints — buffered, streaming, batch and queued analyses."""

import asyncio
import dataclasses
import json
import logging
from typing import Any

from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.responses import StreamingResponse

from report_insights.application.schemas import (
    AnalysisOptionsSchema,
    AnalysisRequest,
    AnalysisResponse,
    BatchAnalysisRequest,
    BatchAnalysisResponse,
    QueuedRequestResponse,
    QueueResultResponse,
    QueueStateResponse,
    RequestStatusResponse,
)
from report_insights.application.services import AnalysisEngine, RequestDispatcher
from report_insights.application.services.result_parser import validate_analysis_data
from report_insights.infrastructure.dependencies import (
    get_analysis_engine,
    get_queue_results,
    get_request_dispatcher,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/analysis", tags=["Analysis"])

_MAX_QUEUE_RESULTS = 200


def _options(schema: AnalysisOptionsSchema | None) -> dict[str, Any] | None:
    if schema is None:
        return None
    return schema.model_dump(exclude_none=True)


def _failure_detail(engine: AnalysisEngine) -> dict[str, Any]:
    snapshot = engine.get_request_status()
    return {
        "error_kind": snapshot.last_error_kind,
        "message": snapshot.last_error_message or "Analysis failed",
    }


def _sse(payload: Any) -> str:
    return f"data: {json.dumps(payload, ensure_ascii=False)}\n\n"


@router.post("", response_model=AnalysisResponse)
async def analyze(
    request: AnalysisRequest,
    engine: AnalysisEngine = Depends(get_analysis_engine),
) -> AnalysisResponse:
    """Run a buffered analysis.

    Served from the fingerprint cache when an identical request was answered
    recently; otherwise retried and routed to fallback models as configured.
    """
    # Read before the call: the key must match the model the call starts on.
    fingerprint = engine.fingerprint_for(request.prompt, request.data_version)
    result = await engine.analyze(request.prompt, _options(request.options), request.data_version)
    if result is None:
        raise HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail=_failure_detail(engine),
        )

    return AnalysisResponse(
        result=result,
        fingerprint=fingerprint,
        missing_fields=validate_analysis_data(result).missing_fields,
    )


@router.post("/stream")
async def analyze_stream(
    request: AnalysisRequest,
    engine: AnalysisEngine = Depends(get_analysis_engine),
) -> StreamingResponse:
    """Run a streaming analysis via Server-Sent Events (SSE).

    Emits ``data: {"delta": ...}`` for every text fragment, then
    ``data: {"result": ...}`` (or ``data: {"error": ...}``) and finally
    ``data: [DONE]``.
    """
    queue: asyncio.Queue[str | None] = asyncio.Queue()

    def on_chunk(delta: str) -> None:
        queue.put_nowait(_sse({"delta": delta}))

    async def run() -> None:
        try:
            result = await engine.stream_analyze(
                request.prompt,
                _options(request.options),
                on_chunk=on_chunk,
                data_version=request.data_version,
            )
            if result is None:
                queue.put_nowait(_sse({"error": _failure_detail(engine)}))
            else:
                queue.put_nowait(_sse({"result": result}))
            queue.put_nowait("data: [DONE]\n\n")
        finally:
            queue.put_nowait(None)

    async def event_generator():
        task = asyncio.create_task(run())
        try:
            while True:
                event = await queue.get()
                if event is None:
                    break
                yield event
        finally:
            if not task.done():
                task.cancel()

    return StreamingResponse(
        event_generator(),
        media_type="text/event-stream",
        headers={
            "Cache-Control": "no-cache",
            "Connection": "keep-alive",
            "X-Accel-Buffering": "no",
        },
    )


@router.post("/batch", response_model=BatchAnalysisResponse)
async def analyze_batch(
    request: BatchAnalysisRequest,
    engine: AnalysisEngine = Depends(get_analysis_engine),
) -> BatchAnalysisResponse:
    """Analyze several prompts; failed items come back as ``null``."""
    items: list[str | dict[str, Any]] = [
        item if isinstance(item, str)
        else {"prompt": item.prompt, "options": _options(item.options)}
        for item in request.items
    ]
    results = await engine.batch_analyze(items, _options(request.options))
    succeeded = sum(1 for r in results if r is not None)
    return BatchAnalysisResponse(
        results=results,
        succeeded=succeeded,
        failed=len(results) - succeeded,
    )


@router.post(
    "/queue",
    response_model=QueuedRequestResponse,
    status_code=status.HTTP_202_ACCEPTED,
)
async def enqueue_analysis(
    request: AnalysisRequest,
    dispatcher: RequestDispatcher = Depends(get_request_dispatcher),
    engine: AnalysisEngine = Depends(get_analysis_engine),
    results: dict[str, dict] = Depends(get_queue_results),
) -> QueuedRequestResponse:
    """Queue an analysis behind the concurrency limit and return its id."""

    def on_done(request_id: str, result: Any, error: BaseException | None) -> None:
        if error is None and result is not None:
            results[request_id] = {"status": "success", "result": result}
        else:
            message = str(error) if error else _failure_detail(engine)["message"]
            results[request_id] = {"status": "error", "error": message}

    request_id = dispatcher.enqueue(request.prompt, _options(request.options), on_done)
    results[request_id] = {"status": "queued"}
    while len(results) > _MAX_QUEUE_RESULTS:
        results.pop(next(iter(results)))

    return QueuedRequestResponse(
        request_id=request_id,
        active=dispatcher.active_count,
        queued=dispatcher.queued_count,
    )


@router.get("/queue", response_model=QueueStateResponse)
async def get_queue_state(
    dispatcher: RequestDispatcher = Depends(get_request_dispatcher),
) -> QueueStateResponse:
    return QueueStateResponse(
        active=dispatcher.active_count,
        queued=dispatcher.queued_count,
        max_concurrent=dispatcher.max_concurrent,
        queued_ids=dispatcher.queued_ids(),
    )


@router.get("/queue/{request_id}", response_model=QueueResultResponse)
async def get_queued_result(
    request_id: str,
    dispatcher: RequestDispatcher = Depends(get_request_dispatcher),
    results: dict[str, dict] = Depends(get_queue_results),
) -> QueueResultResponse:
    entry = results.get(request_id)
    if entry is None:
        raise HTTPException(status_code=404, detail="Unknown request id")

    state = entry["status"]
    if state == "queued" and request_id not in dispatcher.queued_ids():
        state = "running"
    return QueueResultResponse(
        request_id=request_id,
        status=state,
        result=entry.get("result"),
        error=entry.get("error"),
    )


@router.delete("/queue/{request_id}", status_code=status.HTTP_204_NO_CONTENT)
async def cancel_queued_request(
    request_id: str,
    dispatcher: RequestDispatcher = Depends(get_request_dispatcher),
    results: dict[str, dict] = Depends(get_queue_results),
) -> None:
    """Cancel a request that has not started yet."""
    if not dispatcher.cancel(request_id):
        raise HTTPException(status_code=404, detail="Request is not queued")
    results.pop(request_id, None)


@router.delete("/queue")
async def clear_queue(
    dispatcher: RequestDispatcher = Depends(get_request_dispatcher),
    results: dict[str, dict] = Depends(get_queue_results),
) -> dict:
    """Drop every request still waiting; in-flight requests keep running."""
    for request_id in dispatcher.queued_ids():
        results.pop(request_id, None)
    return {"cancelled": dispatcher.clear()}


@router.get("/status", response_model=RequestStatusResponse)
async def get_request_status(
    engine: AnalysisEngine = Depends(get_analysis_engine),
) -> RequestStatusResponse:
    return RequestStatusResponse(**dataclasses.asdict(engine.get_request_status()))
