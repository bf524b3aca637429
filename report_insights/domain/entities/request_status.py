"""Domain entity for the engine's live request status."""

from dataclasses import dataclass
from datetime import datetime


@dataclass
class RequestStatusSnapshot:
    """Counters the host polls to show what the engine is doing."""

    in_progress: bool = False
    active_requests: int = 0
    last_request_time: datetime | None = None
    request_count: int = 0
    success_count: int = 0
    failure_count: int = 0
    cache_hits: int = 0
    cache_misses: int = 0
    model_switch_count: int = 0
    current_model: str | None = None
    last_error_kind: str | None = None
    last_error_message: str | None = None
