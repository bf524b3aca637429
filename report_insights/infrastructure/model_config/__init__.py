from .settings_model_provider import SettingsModelConfigProvider

__all__ = ["SettingsModelConfigProvider"]
