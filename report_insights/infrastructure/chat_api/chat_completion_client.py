"""Chat-completion HTTP client — implements the AnalysisTransport interface.

Talks to any OpenAI-compatible ``/v1/chat/completions`` endpoint (vLLM,
OpenRouter, OpenAI) using httpx for both buffered JSON responses and SSE
streaming. Every failure is translated into a classified AnalysisError.
"""

import asyncio
import json
import logging
from collections.abc import AsyncIterator
from typing import Any

import httpx

from report_insights.application.interfaces import AnalysisTransport
from report_insights.domain.exceptions import (
    HTTPStatusError,
    NetworkError,
    RequestTimeoutError,
    ResponseParseError,
)

logger = logging.getLogger(__name__)

DONE_SENTINEL = "[DONE]"
_DATA_PREFIX = "data: "


class ChatCompletionClient(AnalysisTransport):
    """Infrastructure adapter — sends analysis requests over HTTP.

    Uses an injected ``httpx.AsyncClient`` (connection pooling) when one
    is given; otherwise a short-lived client is created per call.
    """

    def __init__(
        self,
        http_client: httpx.AsyncClient | None = None,
        app_name: str = "Report Insights",
    ):
        self._http_client = http_client
        self._app_name = app_name

    def _get_headers(self, api_key: str | None, *, stream: bool = False) -> dict[str, str]:
        headers = {
            "Content-Type": "application/json",
            "X-Title": self._app_name,
        }
        if api_key:
            headers["Authorization"] = f"Bearer {api_key}"
        if stream:
            headers["Accept"] = "text/event-stream"
        return headers

    def _get_client(self) -> httpx.AsyncClient:
        """Return the injected client or create a new one."""
        if self._http_client is not None:
            return self._http_client
        # Deadlines are enforced per attempt by asyncio.timeout.
        return httpx.AsyncClient(timeout=None)

    async def send_buffered(
        self,
        endpoint_url: str,
        api_key: str | None,
        body: dict[str, Any],
        timeout_ms: int,
    ) -> dict[str, Any]:
        """Send a non-streaming chat completion and return the JSON body."""
        client = self._get_client()
        should_close = self._http_client is None

        try:
            async with asyncio.timeout(timeout_ms / 1000):
                response = await client.post(
                    endpoint_url, headers=self._get_headers(api_key), json=body
                )

            if not response.is_success:
                raise HTTPStatusError(response.status_code, response.text)

            try:
                return response.json()
            except ValueError as e:
                raise ResponseParseError(f"Response body is not valid JSON: {e}") from e

        except (TimeoutError, httpx.TimeoutException) as e:
            raise RequestTimeoutError(timeout_ms) from e
        except httpx.TransportError as e:
            raise NetworkError(f"{type(e).__name__}: {e}") from e
        finally:
            if should_close:
                await client.aclose()

    async def stream_deltas(
        self,
        endpoint_url: str,
        api_key: str | None,
        body: dict[str, Any],
    ) -> AsyncIterator[str]:
        """Yield content deltas from an SSE chat-completion stream.

        Skips blank lines and keep-alive comments (``: ...``). Malformed
        records are logged and skipped. Stops at ``data: [DONE]``.
        """
        client = self._get_client()
        should_close = self._http_client is None

        try:
            async with client.stream(
                "POST",
                endpoint_url,
                headers=self._get_headers(api_key, stream=True),
                json=body,
            ) as response:
                if not response.is_success:
                    raw = await response.aread()
                    raise HTTPStatusError(
                        response.status_code, raw.decode("utf-8", errors="replace")
                    )

                async for line in response.aiter_lines():
                    if not line.startswith(_DATA_PREFIX):
                        continue

                    data = line[len(_DATA_PREFIX):].strip()
                    if data == DONE_SENTINEL:
                        break

                    delta = self._parse_delta(data)
                    if delta:
                        yield delta

        except httpx.TimeoutException as e:
            raise RequestTimeoutError(0, f"Stream timed out: {e}") from e
        except httpx.TransportError as e:
            raise NetworkError(f"{type(e).__name__}: {e}") from e
        finally:
            if should_close:
                await client.aclose()

    @staticmethod
    def _parse_delta(data: str) -> str:
        """Extract ``choices[0].delta.content`` from one SSE record."""
        try:
            chunk = json.loads(data)
        except json.JSONDecodeError:
            logger.warning("Skipping malformed stream record: %.200s", data)
            return ""

        try:
            return chunk["choices"][0]["delta"].get("content") or ""
        except (KeyError, IndexError, TypeError, AttributeError):
            return ""
