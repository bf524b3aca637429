from .analysis_engine import AnalysisEngine, build_request_body
from .fingerprint import generate_fingerprint
from .performance_monitor import MonitorConfig, PerformanceMonitor
from .request_cache import FingerprintCache
from .request_dispatcher import RequestDispatcher, run_with_concurrency_limit
from .retry_handler import execute_with_retry

__all__ = [
    "AnalysisEngine",
    "build_request_body",
    "generate_fingerprint",
    "MonitorConfig",
    "PerformanceMonitor",
    "FingerprintCache",
    "RequestDispatcher",
    "run_with_concurrency_limit",
    "execute_with_retry",
]
