from .analysis import (
    ActiveModelConfigResponse,
    AnalysisOptionsSchema,
    AnalysisRequest,
    AnalysisResponse,
    BatchAnalysisRequest,
    BatchAnalysisResponse,
    BatchItemSchema,
    ModelConfigUpdateRequest,
    ModelResponse,
    PerformanceSnapshotResponse,
    QueuedRequestResponse,
    QueueResultResponse,
    QueueStateResponse,
    RequestStatusResponse,
    SwitchModelRequest,
)

__all__ = [
    "ActiveModelConfigResponse",
    "AnalysisOptionsSchema",
    "AnalysisRequest",
    "AnalysisResponse",
    "BatchAnalysisRequest",
    "BatchAnalysisResponse",
    "BatchItemSchema",
    "ModelConfigUpdateRequest",
    "ModelResponse",
    "PerformanceSnapshotResponse",
    "QueuedRequestResponse",
    "QueueResultResponse",
    "QueueStateResponse",
    "RequestStatusResponse",
    "SwitchModelRequest",
]
