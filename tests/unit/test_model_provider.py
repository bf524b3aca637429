"""Unit tests for the settings-backed model configuration provider."""

from report_insights.config import ModelSettings, Settings
from report_insights.infrastructure.model_config import SettingsModelConfigProvider


def _settings() -> Settings:
    return Settings(
        analysis_api_url="http://vllm.test/v1/chat/completions",
        analysis_api_key="",
        analysis_model="primary-model",
        analysis_max_tokens=2000,
        analysis_system_prompt="Analyse.",
        available_models=[
            ModelSettings(id="primary-model", name="Primary", is_primary=True),
            ModelSettings(id="fallback-1", max_tokens=1500, url="http://other/v1/chat/completions"),
            ModelSettings(id="fallback-2", max_tokens=1000),
        ],
    )


def test_current_config_comes_from_analysis_settings():
    config = SettingsModelConfigProvider(_settings()).get_current_config()

    assert config.model == "primary-model"
    assert config.endpoint_url == "http://vllm.test/v1/chat/completions"
    assert config.api_key is None
    assert config.system_prompt == "Analyse."


def test_fallbacks_exclude_primary_and_keep_order():
    provider = SettingsModelConfigProvider(_settings())

    fallbacks = provider.get_fallback_models()

    assert [m.id for m in fallbacks] == ["fallback-1", "fallback-2"]
    assert fallbacks[0].endpoint_url == "http://other/v1/chat/completions"
    assert fallbacks[1].endpoint_url == "http://vllm.test/v1/chat/completions"
    assert fallbacks[1].display_name == "fallback-2"


def test_switch_active_model_keeps_prompt_settings():
    provider = SettingsModelConfigProvider(_settings())

    assert provider.switch_active_model("fallback-1") is True

    config = provider.get_current_config()
    assert config.model == "fallback-1"
    assert config.max_tokens == 1500
    assert config.endpoint_url == "http://other/v1/chat/completions"
    assert config.system_prompt == "Analyse."


def test_switch_to_unknown_model_is_refused():
    provider = SettingsModelConfigProvider(_settings())

    assert provider.switch_active_model("missing") is False
    assert provider.get_current_config().model == "primary-model"


def test_reset_config_restores_default():
    provider = SettingsModelConfigProvider(_settings())
    provider.switch_active_model("fallback-2")

    assert provider.reset_config().model == "primary-model"


def test_primary_model_is_flagged_entry():
    assert SettingsModelConfigProvider(_settings()).get_primary_model().id == "primary-model"


def test_update_config_overrides_active_fields():
    provider = SettingsModelConfigProvider(_settings())

    config = provider.update_config(temperature=0.9, system_prompt="Be brief.")

    assert config.temperature == 0.9
    assert config.system_prompt == "Be brief."
    assert provider.get_current_config().model == "primary-model"
