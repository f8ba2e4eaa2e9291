"""
Configuration Manager - Handle backend settings persistence
"""

from __future__ import annotations

import json
import logging
import os
import tempfile
from pathlib import Path
from typing import Any

from pydantic import BaseModel, Field

logger = logging.getLogger(__name__)

CONFIG_DIR_ENV = "SUGGESTION_BACKEND_CONFIG_DIR"


class SuggestionSettings(BaseModel):
    """Tunables of the suggestion workflow (the "suggestions" config section)"""

    contextChars: int = Field(default=40, ge=1)
    maxContextChars: int = Field(default=240, ge=1)
    minFingerprintScore: float = Field(default=0.6, ge=0.0, le=1.0)
    historyLimit: int | None = Field(default=100, ge=1)
    granularity: str = "word"


class ConfigManager:
    """Manage configuration persistence"""

    _instance = None
    _config_file = None

    def __init__(self):
        # 1. environment, 2. ~/.suggestion_backend, 3. temp dir
        config_dir = os.environ.get(CONFIG_DIR_ENV) or os.path.expanduser("~/.suggestion_backend")

        try:
            config_path = Path(config_dir)
            config_path.mkdir(parents=True, exist_ok=True)
            self._config_file = config_path / "config.json"
        except OSError as e:
            logger.warning(f"[Config] Cannot write to {config_dir}: {e}")
            tmp_dir = Path(tempfile.gettempdir()) / "suggestion_backend"
            tmp_dir.mkdir(parents=True, exist_ok=True)
            self._config_file = tmp_dir / "config.json"
            logger.info(f"[Config] Using temporary config path: {self._config_file}")

        self._config = self._load_config()

    @classmethod
    def get_instance(cls) -> "ConfigManager":
        """Get singleton instance"""
        if cls._instance is None:
            cls._instance = ConfigManager()
        return cls._instance

    @property
    def config_file(self) -> Path:
        return self._config_file

    def _load_config(self) -> dict[str, Any]:
        """Load configuration from file, filling missing sections with defaults"""
        defaults = self._default_config()
        if not self._config_file.exists():
            return defaults

        try:
            with open(self._config_file) as f:
                stored = json.load(f)
        except (json.JSONDecodeError, OSError) as e:
            logger.error(f"[Config] Error loading config: {e}")
            return defaults
        return {**defaults, **stored}

    def _default_config(self) -> dict[str, Any]:
        """Get default configuration"""
        return {
            "provider": "gemini",
            "gemini": {"apiKey": "", "model": "gemini-2.5-flash"},
            "vllm": {
                "endpoint": "http://localhost:8000",
                "apiKey": "",
                "model": "meta-llama/Llama-2-7b-chat-hf",
            },
            "openai": {"apiKey": "", "model": "gpt-4o-mini"},
            "server": {"host": "0.0.0.0", "port": 8000},
            "suggestions": SuggestionSettings().model_dump(),
            "logLevel": "INFO",
        }

    def get_config(self) -> dict[str, Any]:
        """Get current configuration"""
        # Reload config from file to ensure we have the latest
        self._config = self._load_config()
        return self._config.copy()

    def save_config(self, config: dict[str, Any]):
        """Save configuration to file"""
        self._config.update(config)
        self._config_file.parent.mkdir(parents=True, exist_ok=True)

        try:
            with open(self._config_file, "w") as f:
                json.dump(self._config, f, indent=2)
        except OSError as e:
            raise RuntimeError(f"Failed to save config: {e}") from e

    def get(self, key: str, default=None):
        """Get specific config value"""
        return self._config.get(key, default)

    def set(self, key: str, value: Any):
        """Set specific config value"""
        self._config[key] = value
        self.save_config(self._config)

    def get_suggestion_settings(self) -> SuggestionSettings:
        return SuggestionSettings.model_validate(self.get_config().get("suggestions") or {})
