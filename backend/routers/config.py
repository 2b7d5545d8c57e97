"""Configuration API endpoints"""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter
from pydantic import BaseModel

from services.config_manager import ConfigManager
from services.llm_service import LLMService, LLMServiceError

router = APIRouter()


class ConfigUpdateRequest(BaseModel):
    """Request to update configuration"""

    provider: str | None = None
    gemini: dict | None = None
    openai: dict | None = None
    vllm: dict | None = None
    optimize: dict | None = None
    diff: dict | None = None


class ConfigResponse(BaseModel):
    """Configuration response"""

    provider: str
    gemini: dict
    openai: dict
    vllm: dict
    optimize: dict
    diff: dict


class ValidateResponse(BaseModel):
    """Validation response"""

    valid: bool
    message: str
    provider: str


def mask_key(key: str) -> str:
    if not key:
        return ""
    if len(key) <= 8:
        return "*" * len(key)
    return key[:4] + "*" * (len(key) - 8) + key[-4:]


@router.get("", response_model=ConfigResponse)
async def get_config() -> ConfigResponse:
    """Get current configuration with API keys masked"""
    config = ConfigManager.get_instance().get_config()

    providers = {}
    for name in ("gemini", "openai", "vllm"):
        section = dict(config.get(name, {}))
        section["apiKey"] = mask_key(section.get("apiKey", ""))
        providers[name] = section

    return ConfigResponse(
        provider=config.get("provider", "openai"),
        optimize=config.get("optimize", {}),
        diff=config.get("diff", {}),
        **providers,
    )


@router.put("")
async def update_config(request: ConfigUpdateRequest) -> dict[str, Any]:
    """Update configuration"""
    config_manager = ConfigManager.get_instance()
    current_config = config_manager.get_config()

    # Update only provided fields
    if request.provider:
        current_config["provider"] = request.provider
    for name in ("gemini", "openai", "vllm", "optimize", "diff"):
        section = getattr(request, name)
        if section:
            current_config[name] = {**current_config.get(name, {}), **section}

    config_manager.save_config(current_config)

    return {"status": "success", "message": "Configuration updated"}


@router.post("/validate", response_model=ValidateResponse)
async def validate_config() -> ValidateResponse:
    """Validate current configuration by testing LLM connection"""
    config = ConfigManager.get_instance().get_config()
    provider = config.get("provider", "openai")

    try:
        response = await LLMService(config).generate_response("Say 'OK' if you can hear me.")
    except LLMServiceError as e:
        return ValidateResponse(valid=False, message=f"Connection failed: {e}", provider=provider)

    if response:
        return ValidateResponse(valid=True, message=f"Successfully connected to {provider}", provider=provider)
    return ValidateResponse(valid=False, message="Received empty response from LLM", provider=provider)
