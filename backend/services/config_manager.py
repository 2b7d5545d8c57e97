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

logger = logging.getLogger(__name__)

CONFIG_DIR_ENV = "PROMPT_LIBRARY_CONFIG_DIR"
DATA_DIR_ENV = "PROMPT_LIBRARY_DATA_DIR"


class ConfigManager:
    """Manage configuration persistence"""

    _instance = None
    _config_file = None

    def __init__(self):
        try:
            # 1. environment variable
            config_dir = os.environ.get(CONFIG_DIR_ENV)

            # 2. ~/.prompt_library
            if not config_dir:
                config_dir = os.path.expanduser("~/.prompt_library")

            config_path = Path(config_dir)
            try:
                config_path.mkdir(parents=True, exist_ok=True)
                self._config_file = config_path / "config.json"
            except OSError as e:
                logger.warning("[ConfigManager] Cannot write to %s: %s", config_dir, e)
                self._config_file = None

            # 3. temp dir when the preferred location is not writable
            if not self._config_file:
                tmp_dir = Path(tempfile.gettempdir()) / "prompt_library"
                tmp_dir.mkdir(parents=True, exist_ok=True)
                self._config_file = tmp_dir / "config.json"
                logger.info("[ConfigManager] Using temporary config path: %s", self._config_file)

        except OSError as e:
            logger.error("[ConfigManager] Critical error in init: %s", e)
            self._config_file = Path(tempfile.gettempdir()) / "prompt_library_config_fallback.json"

        self._config = self._load_config()

    @classmethod
    def get_instance(cls) -> "ConfigManager":
        """Get singleton instance"""
        if cls._instance is None:
            cls._instance = ConfigManager()
        return cls._instance

    @classmethod
    def reset_instance(cls) -> None:
        """Drop the singleton so the next access re-reads the environment"""
        cls._instance = None

    @property
    def config_dir(self) -> Path:
        return self._config_file.parent

    def _load_config(self) -> dict[str, Any]:
        """Load configuration from file, filling in defaults"""
        config = self._default_config()
        if not self._config_file.exists():
            return config

        try:
            with open(self._config_file, encoding="utf-8") as f:
                loaded = json.load(f)
        except (json.JSONDecodeError, OSError) as e:
            logger.error("[ConfigManager] Error loading config: %s", e)
            return config

        return _deep_merge(config, loaded)

    def _default_config(self) -> dict[str, Any]:
        """Get default configuration"""
        data_dir = Path(os.environ.get(DATA_DIR_ENV) or self.config_dir / "data")
        return {
            "provider": "openai",
            "gemini": {
                "apiKey": "",
                "model": "gemini-2.5-flash",
            },
            "vllm": {
                "endpoint": "http://localhost:8000",
                "apiKey": "",
                "model": "Qwen/Qwen2.5-7B-Instruct",
            },
            "openai": {
                "endpoint": "https://api.openai.com/v1",
                "apiKey": "",
                "model": "gpt-4o-mini",
            },
            "optimize": {
                "temperature": 0.7,
                "topP": 0.9,
                "maxTokens": 4096,
                "timeoutSeconds": 120,
            },
            "storage": {
                "promptsDir": str(data_dir / "prompts"),
                "recycleDir": str(data_dir / "recycle_bin"),
            },
            "diff": {
                "maxLines": 1000,
                "maxChars": 2000,
            },
            "server": {"host": "127.0.0.1", "port": 3000},
        }

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
            with open(self._config_file, "w", encoding="utf-8") as f:
                json.dump(self._config, f, indent=2, ensure_ascii=False)
        except OSError as e:
            raise RuntimeError(f"Failed to save config: {e}")


def _deep_merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    merged = dict(base)
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = _deep_merge(merged[key], value)
        else:
            merged[key] = value
    return merged
