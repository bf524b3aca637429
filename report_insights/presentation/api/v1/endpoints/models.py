"""Model catalogue endpoints — list models and switch the active one."""

from fastapi import APIRouter, Depends, HTTPException

from report_insights.application.schemas import (
    ActiveModelConfigResponse,
    ModelConfigUpdateRequest,
    ModelResponse,
    SwitchModelRequest,
)
from report_insights.domain.entities import ModelDescriptor
from report_insights.infrastructure.dependencies import get_model_provider
from report_insights.infrastructure.model_config import SettingsModelConfigProvider

router = APIRouter(prefix="/models", tags=["Models"])


def _to_response(model: ModelDescriptor, active_id: str) -> ModelResponse:
    return ModelResponse(
        id=model.id,
        display_name=model.display_name,
        provider=model.provider,
        endpoint_url=model.endpoint_url,
        max_tokens=model.max_tokens,
        is_primary=model.is_primary,
        is_active=model.id == active_id,
    )


@router.get("", response_model=list[ModelResponse])
async def list_models(
    provider: SettingsModelConfigProvider = Depends(get_model_provider),
) -> list[ModelResponse]:
    active_id = provider.get_current_config().model
    return [_to_response(m, active_id) for m in provider.get_available_models()]


@router.put("/active", response_model=ModelResponse)
async def switch_active_model(
    request: SwitchModelRequest,
    provider: SettingsModelConfigProvider = Depends(get_model_provider),
) -> ModelResponse:
    """Route subsequent analyses to another catalogued model."""
    if not provider.switch_active_model(request.model_id):
        raise HTTPException(status_code=404, detail=f"Unknown model '{request.model_id}'")

    active_id = provider.get_current_config().model
    model = next(m for m in provider.get_available_models() if m.id == active_id)
    return _to_response(model, active_id)


@router.delete("/active", response_model=ModelResponse | None)
async def reset_active_model(
    provider: SettingsModelConfigProvider = Depends(get_model_provider),
) -> ModelResponse | None:
    """Return to the configured default model."""
    active_id = provider.reset_config().model
    model = next((m for m in provider.get_available_models() if m.id == active_id), None)
    return _to_response(model, active_id) if model else None


@router.patch("/active", response_model=ActiveModelConfigResponse)
async def update_active_model_config(
    request: ModelConfigUpdateRequest,
    provider: SettingsModelConfigProvider = Depends(get_model_provider),
) -> ActiveModelConfigResponse:
    """Adjust sampling settings of the active model without switching it."""
    config = provider.update_config(**request.model_dump(exclude_none=True))
    return ActiveModelConfigResponse(
        model=config.model,
        endpoint_url=config.endpoint_url,
        temperature=config.temperature,
        max_tokens=config.max_tokens,
        system_prompt=config.system_prompt,
    )
