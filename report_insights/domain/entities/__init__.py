from .chat_message import ChatMessage, CompletionOutcome, TokenUsage
from .model_descriptor import ModelConfig, ModelDescriptor
from .performance import (
    CacheStats,
    ModelStats,
    OverallStats,
    PerformanceAggregate,
    RecentRequest,
    RequestRecord,
    RequestStatus,
    RequestTokenUsage,
    TokenUsageStats,
)
from .request_options import RequestOptions
from .request_status import RequestStatusSnapshot

__all__ = [
    "ChatMessage",
    "CompletionOutcome",
    "TokenUsage",
    "ModelConfig",
    "ModelDescriptor",
    "CacheStats",
    "ModelStats",
    "OverallStats",
    "PerformanceAggregate",
    "RecentRequest",
    "RequestRecord",
    "RequestStatus",
    "RequestTokenUsage",
    "TokenUsageStats",
    "RequestOptions",
    "RequestStatusSnapshot",
]
