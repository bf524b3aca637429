"""Abstract model configuration provider — port for the model catalogue."""

from abc import ABC, abstractmethod

from report_insights.domain.entities import ModelConfig, ModelDescriptor


class ModelConfigProvider(ABC):
    """Port — tells the engine which model is active and what to fall back to."""

    @abstractmethod
    def get_current_config(self) -> ModelConfig:
        """Return a copy of the currently active model configuration."""
        ...

    @abstractmethod
    def get_primary_model(self) -> ModelDescriptor | None:
        """Return the model flagged as primary (first in the catalogue if none is)."""
        ...

    @abstractmethod
    def get_fallback_models(self) -> list[ModelDescriptor]:
        """Return fallback models in the order they should be tried."""
        ...

    @abstractmethod
    def switch_active_model(self, model_id: str) -> bool:
        """Make *model_id* the active model.

        Returns:
            False if the model is unknown, True otherwise.
        """
        ...

    @abstractmethod
    def get_available_models(self) -> list[ModelDescriptor]:
        """Return every model the provider knows about."""
        ...
