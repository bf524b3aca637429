import json
import logging
from pathlib import Path

from pydantic import BaseModel
from pydantic_settings import BaseSettings
from functools import lru_cache

from report_insights.domain.entities import RequestOptions

_config_logger = logging.getLogger(__name__)

_SETTINGS_FILE = Path("data/settings.json")
_PACKAGE_DIR = Path(__file__).resolve().parents[1]
_ENV_FILES = (
    _PACKAGE_DIR / ".env",
    ".env",
)
_MODEL_KEYS = frozenset({
    "analysis_model",
})

_DEFAULT_API_URL = "http://localhost:8000/v1/chat/completions"


class ModelSettings(BaseModel):
    """One entry of the model catalogue (JSON list in AVAILABLE_MODELS)."""

    id: str
    name: str = ""
    provider: str = ""
    url: str = ""  # Empty → analysis_api_url
    max_tokens: int = 2000
    is_primary: bool = False


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    app_title: str = "Report Insights API"
    app_version: str = "0.1.0"
    app_env: str = "development"
    cors_origins: list[str] = ["http://localhost:3020"]

    # Chat-completion service
    analysis_api_url: str = _DEFAULT_API_URL
    analysis_api_key: str = ""
    analysis_app_name: str = "Report Insights"
    analysis_model: str = "Qwen/Qwen2.5-14B-Instruct"
    analysis_temperature: float = 0.3
    analysis_max_tokens: int = 2000
    analysis_system_prompt: str = (
        "You are a data analyst. Identify highlights, trends and anomalies in "
        "the report data and summarise them in a clear, structured report "
        "that supports business decisions."
    )

    # Model catalogue — first is_primary entry is the primary model
    available_models: list[ModelSettings] = [
        ModelSettings(
            id="Qwen/Qwen2.5-14B-Instruct",
            name="Qwen2.5-14B-Instruct",
            provider="Qwen",
            max_tokens=2000,
            is_primary=True,
        ),
        ModelSettings(
            id="meta-llama/Llama-3.1-8B-Instruct",
            name="Llama-3.1-8B-Instruct",
            provider="meta-llama",
            max_tokens=1500,
        ),
        ModelSettings(
            id="mistralai/Mistral-7B-Instruct-v0.3",
            name="Mistral-7B-Instruct",
            provider="mistralai",
            max_tokens=1500,
        ),
    ]

    # Request defaults (overridable per call)
    request_max_retries: int = 3
    request_retry_delay_ms: int = 1000
    request_exponential_backoff: bool = True
    request_timeout_ms: int = 30000
    request_use_cache: bool = True
    request_cache_ttl_ms: int = 300000  # 5 minutes
    request_model_fallback: bool = True
    request_max_fallback_attempts: int = 2
    request_max_concurrent: int = 2
    request_stream_response: bool = True

    # Result cache
    cache_max_entries: int | None = None  # None → unbounded

    # Performance monitor
    monitor_enabled: bool = True
    monitor_max_recent_requests: int = 50
    monitor_persist_data: bool = False
    monitor_storage_key: str = "report_insights_performance_data"
    monitor_storage_file: str = "data/performance.json"

    # Logging — per-category log levels (DEBUG, INFO, WARNING, ERROR, CRITICAL)
    log_level: str = "INFO"                  # Root / app-wide
    log_level_http: str = "WARNING"          # httpx / httpcore — outbound HTTP
    log_level_uvicorn: str = "INFO"          # uvicorn.access / uvicorn.error
    log_level_engine: str = "INFO"           # Analysis engine, retries, transport

    model_config = {
        "env_file": _ENV_FILES,
        "env_file_encoding": "utf-8",
    }

    def model_post_init(self, __context: object) -> None:
        """Merge runtime overrides from data/settings.json into model settings."""
        if _SETTINGS_FILE.exists():
            try:
                overrides = json.loads(_SETTINGS_FILE.read_text("utf-8"))
                for key in _MODEL_KEYS:
                    if key in overrides and isinstance(overrides[key], str):
                        object.__setattr__(self, key, overrides[key])
            except Exception as exc:
                _config_logger.warning("Could not load settings overrides: %s", exc)

    def request_options(self) -> RequestOptions:
        """Default per-call options derived from the request_* settings."""
        return RequestOptions(
            max_retries=self.request_max_retries,
            retry_delay_ms=self.request_retry_delay_ms,
            exponential_backoff=self.request_exponential_backoff,
            timeout_ms=self.request_timeout_ms,
            use_cache=self.request_use_cache,
            cache_ttl_ms=self.request_cache_ttl_ms,
            model_fallback=self.request_model_fallback,
            max_fallback_attempts=self.request_max_fallback_attempts,
            max_concurrent_requests=self.request_max_concurrent,
            stream_response=self.request_stream_response,
        )


@lru_cache
def get_settings() -> Settings:
    """Cached settings instance — reads .env once."""
    return Settings()
