"""Configuration API endpoints"""

from __future__ import annotations

import logging
from typing import Any

from fastapi import APIRouter, HTTPException
from pydantic import BaseModel, ValidationError

from suggestion_backend.services.config_manager import ConfigManager, SuggestionSettings
from suggestion_backend.services.llm_service import LLMService

logger = logging.getLogger(__name__)

router = APIRouter()


class ConfigUpdateRequest(BaseModel):
    """Request to update configuration"""

    provider: str | None = None
    gemini: dict | None = None
    openai: dict | None = None
    vllm: dict | None = None
    suggestions: dict | None = None
    logLevel: str | None = None


class ConfigResponse(BaseModel):
    """Configuration response"""

    provider: str
    gemini: dict
    openai: dict
    vllm: dict
    suggestions: SuggestionSettings
    logLevel: str


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
    config_manager = ConfigManager.get_instance()
    config = config_manager.get_config()

    providers = {}
    for name in ("gemini", "openai", "vllm"):
        section = config.get(name, {}).copy()
        section["apiKey"] = mask_key(section.get("apiKey", ""))
        providers[name] = section

    return ConfigResponse(
        provider=config.get("provider", "gemini"),
        suggestions=config_manager.get_suggestion_settings(),
        logLevel=config.get("logLevel", "INFO"),
        **providers,
    )


@router.put("")
async def update_config(request: ConfigUpdateRequest) -> dict[str, Any]:
    """Update configuration; dict sections are merged into the stored ones"""
    config_manager = ConfigManager.get_instance()
    current_config = config_manager.get_config()

    if request.provider:
        current_config["provider"] = request.provider
    if request.logLevel:
        current_config["logLevel"] = request.logLevel.upper()
    for name in ("gemini", "openai", "vllm", "suggestions"):
        section = getattr(request, name)
        if section:
            current_config[name] = {**current_config.get(name, {}), **section}

    try:
        SuggestionSettings.model_validate(current_config.get("suggestions") or {})
    except ValidationError as e:
        raise HTTPException(status_code=400, detail=f"Invalid suggestions settings: {e}") from e

    config_manager.save_config(current_config)
    logger.info("[Config] Configuration updated")
    return {"status": "success", "message": "Configuration updated"}


@router.post("/validate", response_model=ValidateResponse)
async def validate_config() -> ValidateResponse:
    """Validate current configuration by testing LLM connection"""
    config = ConfigManager.get_instance().get_config()
    provider = config.get("provider", "gemini")

    try:
        response = await LLMService(config).generate_response("Say 'OK' if you can hear me.")
    except Exception as e:
        logger.warning(f"[Config] Validation against {provider} failed: {e}")
        return ValidateResponse(valid=False, message=f"Connection failed: {e}", provider=provider)

    if not response:
        return ValidateResponse(valid=False, message="Received empty response from LLM", provider=provider)
    return ValidateResponse(valid=True, message=f"Successfully connected to {provider}", provider=provider)
