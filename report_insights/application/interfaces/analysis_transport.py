"""Abstract transport interface — port for the chat-completion wire adapter.

The engine builds the request body; the transport only moves it over the
wire, enforces the per-attempt timeout and classifies failures.
"""

import asyncio
from abc import ABC, abstractmethod
from collections.abc import AsyncIterator, Callable
from contextlib import aclosing
from typing import Any

from report_insights.domain.exceptions import RequestTimeoutError

ChunkCallback = Callable[[str], None]


class AnalysisTransport(ABC):
    """Port — issues one outbound call in buffered or streaming mode."""

    @abstractmethod
    async def send_buffered(
        self,
        endpoint_url: str,
        api_key: str | None,
        body: dict[str, Any],
        timeout_ms: int,
    ) -> dict[str, Any]:
        """Send the request and return the full parsed JSON body.

        Raises:
            RequestTimeoutError: The attempt exceeded ``timeout_ms``.
            NetworkError: The connection failed.
            HTTPStatusError: The service answered with a non-2xx status.
            ResponseParseError: The body was not valid JSON.
        """
        ...

    @abstractmethod
    def stream_deltas(
        self,
        endpoint_url: str,
        api_key: str | None,
        body: dict[str, Any],
    ) -> AsyncIterator[str]:
        """Yield incremental content deltas from an event-stream response.

        The sequence is lazy, ordered, finite (it ends at the terminal
        sentinel record) and cannot be restarted.
        """
        ...

    async def send_streaming(
        self,
        endpoint_url: str,
        api_key: str | None,
        body: dict[str, Any],
        timeout_ms: int,
        on_chunk: ChunkCallback | None = None,
    ) -> str:
        """Consume ``stream_deltas`` under a deadline and return the full text.

        ``on_chunk`` is invoked synchronously with every delta, in order.
        """
        parts: list[str] = []
        try:
            async with asyncio.timeout(timeout_ms / 1000):
                async with aclosing(self.stream_deltas(endpoint_url, api_key, body)) as deltas:
                    async for delta in deltas:
                        parts.append(delta)
                        if on_chunk is not None:
                            on_chunk(delta)
        except TimeoutError as e:
            raise RequestTimeoutError(timeout_ms) from e
        return "".join(parts)
