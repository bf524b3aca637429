"""Per-call request options — defaults merged with caller overrides once per call."""

from collections.abc import Mapping
from dataclasses import asdict, dataclass, fields, replace
from typing import Any


@dataclass(frozen=True)
class RequestOptions:
    """Resolved configuration for one orchestrated call.

    Attributes:
        max_retries: Extra attempts per model after the first one.
        retry_delay_ms: Base delay before a retry.
        exponential_backoff: Double the delay on every further retry.
        timeout_ms: Hard deadline for a single network attempt.
        use_cache: Read from and write to the fingerprint cache.
        cache_ttl_ms: Maximum age of a cached result.
        model_fallback: Try fallback models once the primary is exhausted.
        max_fallback_attempts: Upper bound on fallback models tried.
        max_concurrent_requests: Concurrency limit for batch submission.
        stream_response: Caller prefers a streamed answer.
        force_refresh: Skip the cache lookup (the fresh result is still stored).
    """

    max_retries: int = 3
    retry_delay_ms: int = 1000
    exponential_backoff: bool = True
    timeout_ms: int = 30000
    use_cache: bool = True
    cache_ttl_ms: int = 300000
    model_fallback: bool = True
    max_fallback_attempts: int = 2
    max_concurrent_requests: int = 2
    stream_response: bool = True
    force_refresh: bool = False

    def __post_init__(self) -> None:
        for name in ("max_retries", "retry_delay_ms", "cache_ttl_ms", "max_fallback_attempts"):
            if getattr(self, name) < 0:
                raise ValueError(f"{name} must not be negative")
        if self.timeout_ms <= 0:
            raise ValueError("timeout_ms must be positive")
        if self.max_concurrent_requests < 1:
            raise ValueError("max_concurrent_requests must be at least 1")

    def merged(
        self, overrides: "RequestOptions | Mapping[str, Any] | None" = None
    ) -> "RequestOptions":
        """Return a copy with *overrides* applied.

        ``None`` values in a mapping are ignored so partially filled request
        schemas can be passed straight through. Unknown keys raise TypeError.
        """
        if overrides is None:
            return self
        if isinstance(overrides, RequestOptions):
            return overrides
        changes = {k: v for k, v in overrides.items() if v is not None}
        unknown = set(changes) - _FIELD_NAMES
        if unknown:
            raise TypeError(f"Unknown request options: {', '.join(sorted(unknown))}")
        return replace(self, **changes)

    def retry_delay_for(self, attempt: int) -> int:
        """Delay in milliseconds to wait before *attempt* (1-based, > 1)."""
        if not self.exponential_backoff:
            return self.retry_delay_ms
        return self.retry_delay_ms * 2 ** (attempt - 2)

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


_FIELD_NAMES = frozenset(f.name for f in fields(RequestOptions))
