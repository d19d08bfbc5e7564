"""
Configuration Manager - Handle backend settings persistence
"""

from __future__ import annotations

import copy
import json
import logging
import os
import tempfile
from pathlib import Path
from typing import Any

from ..models.provider import ProviderConfig, ProviderFamily
from .errors import ConfigurationError

logger = logging.getLogger(__name__)

CONFIG_DIR_ENV = "CODEASSIST_CONFIG_DIR"

# Preset name -> envelope family
PROVIDER_FAMILIES: dict[str, ProviderFamily] = {
    "anthropic": ProviderFamily.A_STYLE,
    "openai": ProviderFamily.OPENAI_COMPATIBLE,
    "local": ProviderFamily.OPENAI_COMPATIBLE,
}


def default_config() -> dict[str, Any]:
    """Get default configuration"""
    return {
        "provider": "openai",
        "anthropic": {
            "endpoint": "https://api.anthropic.com/v1/messages",
            "apiKey": "",
            "model": "claude-sonnet-4-20250514",
        },
        "openai": {
            "endpoint": "https://api.openai.com/v1/chat/completions",
            "apiKey": "",
            "model": "gpt-4o",
        },
        "local": {
            "endpoint": "http://localhost:11434/v1/chat/completions",
            "apiKey": "",
            "model": "qwen2.5-coder:7b",
        },
        "systemPromptExtra": "",
        "maxTokens": 4096,
        "timeoutSeconds": 120,
        "digest": {"maxChars": 4000, "ttlSeconds": 30},
        "server": {"host": "127.0.0.1", "port": 8000},
    }


def provider_config(config: dict[str, Any], provider: str | None = None) -> ProviderConfig:
    """Resolve the active preset into a ProviderConfig value for one request"""
    name = provider or config.get("provider", "openai")
    family = PROVIDER_FAMILIES.get(name)
    if family is None:
        raise ConfigurationError(f"Unsupported provider: {name}")
    section = {**default_config().get(name, {}), **config.get(name, {})}
    endpoint = section.get("endpoint")
    if not endpoint:
        raise ConfigurationError(f"No endpoint configured for {name}")
    return ProviderConfig(
        family=family,
        endpoint=endpoint,
        api_key=section.get("apiKey", "") or "",
        model=section.get("model", ""),
        system_prompt_extra=config.get("systemPromptExtra", "") or "",
        max_tokens=int(config.get("maxTokens", 4096)),
    )


def mask_key(key: str) -> str:
    if not key:
        return ""
    if len(key) <= 8:
        return "*" * len(key)
    return key[:4] + "*" * (len(key) - 8) + key[-4:]


class ConfigManager:
    """Manage configuration persistence"""

    _instance = None
    _config_file = None

    def __init__(self, config_dir: str | None = None):
        # explicit argument, then env var, then ~/.codeassist
        config_dir = config_dir or os.environ.get(CONFIG_DIR_ENV) or os.path.expanduser("~/.codeassist")

        config_path = Path(config_dir)
        try:
            config_path.mkdir(parents=True, exist_ok=True)
            self._config_file = config_path / "config.json"
        except OSError as e:
            logger.warning("Cannot write to %s: %s", config_dir, e)
            tmp_dir = Path(tempfile.gettempdir()) / "codeassist"
            tmp_dir.mkdir(parents=True, exist_ok=True)
            self._config_file = tmp_dir / "config.json"
            logger.info("Using temporary config path: %s", self._config_file)

        self._config = self._load_config()

    @classmethod
    def get_instance(cls) -> "ConfigManager":
        """Get singleton instance"""
        if cls._instance is None:
            cls._instance = ConfigManager()
        return cls._instance

    @classmethod
    def reset_instance(cls) -> None:
        cls._instance = None

    def _load_config(self) -> dict[str, Any]:
        """Load configuration from file, layered over the defaults"""
        config = default_config()
        if not self._config_file.exists():
            return config

        try:
            with open(self._config_file) as f:
                stored = json.load(f)
        except (json.JSONDecodeError, OSError) as e:
            logger.warning("Error loading config: %s", e)
            return config

        if not isinstance(stored, dict):
            return config
        for key, value in stored.items():
            if isinstance(value, dict) and isinstance(config.get(key), dict):
                config[key] = {**config[key], **value}
            else:
                config[key] = value
        return config

    def get_config(self) -> dict[str, Any]:
        """Get current configuration"""
        # Reload config from file to ensure we have the latest
        self._config = self._load_config()
        return copy.deepcopy(self._config)

    def save_config(self, config: dict[str, Any]):
        """Save configuration to file"""
        self._config.update(config)
        self._config_file.parent.mkdir(parents=True, exist_ok=True)

        try:
            with open(self._config_file, "w") as f:
                json.dump(self._config, f, indent=2)
        except OSError as e:
            raise RuntimeError(f"Failed to save config: {e}")

    def get(self, key: str, default=None):
        """Get specific config value"""
        return self._config.get(key, default)
