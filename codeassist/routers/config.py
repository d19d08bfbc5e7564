"""Configuration API endpoints"""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, HTTPException
from pydantic import BaseModel

from ..services.config_manager import PROVIDER_FAMILIES, ConfigManager, mask_key
from ..services.errors import AssistError
from ..services.llm_service import LLMService

router = APIRouter()


class ConfigUpdateRequest(BaseModel):
    """Request to update configuration"""

    provider: str | None = None
    anthropic: dict | None = None
    openai: dict | None = None
    local: dict | None = None
    systemPromptExtra: str | None = None
    maxTokens: int | None = None


class ConfigResponse(BaseModel):
    """Configuration response"""

    provider: str
    anthropic: dict
    openai: dict
    local: dict
    systemPromptExtra: str
    maxTokens: int


class ValidateResponse(BaseModel):
    """Validation response"""

    valid: bool
    message: str
    provider: str


@router.get("", response_model=ConfigResponse)
async def get_config() -> ConfigResponse:
    """Get current configuration with API keys masked"""
    config = ConfigManager.get_instance().get_config()

    sections = {}
    for name in PROVIDER_FAMILIES:
        section = dict(config.get(name, {}))
        section["apiKey"] = mask_key(section.get("apiKey", ""))
        sections[name] = section

    return ConfigResponse(
        provider=config.get("provider", "openai"),
        systemPromptExtra=config.get("systemPromptExtra", ""),
        maxTokens=config.get("maxTokens", 4096),
        **sections,
    )


@router.put("")
async def update_config(request: ConfigUpdateRequest) -> dict[str, Any]:
    """Update configuration"""
    config_manager = ConfigManager.get_instance()
    current_config = config_manager.get_config()

    if request.provider:
        if request.provider not in PROVIDER_FAMILIES:
            raise HTTPException(status_code=400, detail=f"Unsupported provider: {request.provider}")
        current_config["provider"] = request.provider
    for name in PROVIDER_FAMILIES:
        update = getattr(request, name)
        if update:
            current = current_config.get(name, {})
            if "apiKey" in update and update["apiKey"] == mask_key(current.get("apiKey", "")):
                # Masked key echoed back from GET
                update = {k: v for k, v in update.items() if k != "apiKey"}
            current_config[name] = {**current, **update}
    if request.systemPromptExtra is not None:
        current_config["systemPromptExtra"] = request.systemPromptExtra
    if request.maxTokens is not None:
        current_config["maxTokens"] = request.maxTokens

    config_manager.save_config(current_config)

    return {"status": "success", "message": "Configuration updated"}


@router.post("/validate", response_model=ValidateResponse)
async def validate_config() -> ValidateResponse:
    """Validate current configuration by testing LLM connection"""
    config = ConfigManager.get_instance().get_config()
    provider = config.get("provider", "openai")

    try:
        response = await LLMService(config).test_connection()
    except AssistError as e:
        return ValidateResponse(valid=False, message=f"Connection failed: {e}", provider=provider)

    if response:
        return ValidateResponse(valid=True, message=f"Successfully connected to {provider}", provider=provider)
    return ValidateResponse(valid=False, message="Received empty response from LLM", provider=provider)
