from .analysis_transport import AnalysisTransport, ChunkCallback
from .key_value_store import KeyValueStore
from .model_config_provider import ModelConfigProvider

__all__ = [
    "AnalysisTransport",
    "ChunkCallback",
    "KeyValueStore",
    "ModelConfigProvider",
]
