"""Model configuration provider backed by application settings."""

import dataclasses
import logging
from typing import Any

from report_insights.application.interfaces import ModelConfigProvider
from report_insights.config import Settings
from report_insights.domain.entities import ModelConfig, ModelDescriptor

logger = logging.getLogger(__name__)


class SettingsModelConfigProvider(ModelConfigProvider):
    """Keeps the active model configuration in memory, seeded from Settings.

    The model catalogue comes from ``Settings.available_models``; models not
    flagged as primary are the fallbacks, in declaration order.
    """

    def __init__(self, settings: Settings):
        self._models = [
            ModelDescriptor(
                id=m.id,
                display_name=m.name or m.id,
                endpoint_url=m.url or settings.analysis_api_url,
                max_tokens=m.max_tokens,
                is_primary=m.is_primary,
                provider=m.provider,
            )
            for m in settings.available_models
        ]
        self._default = ModelConfig(
            model=settings.analysis_model,
            endpoint_url=settings.analysis_api_url,
            api_key=settings.analysis_api_key or None,
            temperature=settings.analysis_temperature,
            max_tokens=settings.analysis_max_tokens,
            system_prompt=settings.analysis_system_prompt,
        )
        self._current = self._default

    def get_current_config(self) -> ModelConfig:
        return self._current

    def get_available_models(self) -> list[ModelDescriptor]:
        return list(self._models)

    def get_primary_model(self) -> ModelDescriptor | None:
        for model in self._models:
            if model.is_primary:
                return model
        return self._models[0] if self._models else None

    def get_fallback_models(self) -> list[ModelDescriptor]:
        return [m for m in self._models if not m.is_primary]

    def switch_active_model(self, model_id: str) -> bool:
        model = next((m for m in self._models if m.id == model_id), None)
        if model is None:
            logger.warning("Cannot switch to unknown model %s", model_id)
            return False

        self._current = dataclasses.replace(
            self._current,
            model=model.id,
            endpoint_url=model.endpoint_url,
            max_tokens=model.max_tokens,
        )
        logger.info("Active model switched to %s", model.id)
        return True

    def update_config(self, **changes: Any) -> ModelConfig:
        """Override fields of the active configuration (e.g. temperature)."""
        self._current = dataclasses.replace(self._current, **changes)
        return self._current

    def reset_config(self) -> ModelConfig:
        self._current = self._default
        return self._current
