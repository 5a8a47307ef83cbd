"""
pagesmith Configuration

Settings come from environment variables (and ``.env``), falling back to an
optional sectioned YAML file (``server``/``model``/``openai``/``ollama``).
Environment variables always win over the YAML file.
"""
from __future__ import annotations
import os
from functools import lru_cache
from pathlib import Path
from typing import Any, Dict, List, Tuple, Type

import yaml
from pydantic.fields import FieldInfo
from pydantic_settings import BaseSettings, PydanticBaseSettingsSource

CONFIG_PATH_ENV = "PAGESMITH_CONFIG"
DEFAULT_CONFIG_PATH = "config.yaml"

DEFAULT_REASONING_MODELS = [
    "deepseek-r1-distill",
    "mercury-coder",
    "mercury",
    "sonar-reasoning-pro",
    "sonar-reasoning",
    "gemini-2.5-flash-lite-preview-06-17",
    "gemini-2.5-flash",
    "r1-1776",
    "qwen3",
    "deepseek",
    "qwen",
]


def load_yaml_config(path: Path) -> Dict[str, Any]:
    """Flatten a sectioned YAML config file into settings field names."""
    if not path.exists():
        return {}

    with open(path) as f:
        config = yaml.safe_load(f) or {}

    server = config.get("server") or {}
    model = config.get("model") or {}
    values: Dict[str, Any] = {
        "host": server.get("address"),
        "port": server.get("port"),
        "prompts_dir": server.get("prompts_dir"),
        "public_dir": server.get("public_dir"),
        "debug": server.get("debug"),
        "ai_backend": model.get("backend"),
        "ai_model": model.get("name"),
        "reasoning_models": model.get("reasoning_models"),
    }

    # Credentials live in the section of the selected backend
    backend_section = config.get(model.get("backend") or "openai") or {}
    values["ai_api_key"] = backend_section.get("api_key") or None
    values["ai_api_base"] = backend_section.get("api_base")

    return {key: value for key, value in values.items() if value is not None}


class YamlConfigSource(PydanticBaseSettingsSource):
    """Settings source backed by the sectioned YAML config file."""

    def __init__(self, settings_cls: Type[BaseSettings]):
        super().__init__(settings_cls)
        path = Path(os.environ.get(CONFIG_PATH_ENV, DEFAULT_CONFIG_PATH))
        self._values = load_yaml_config(path)

    def get_field_value(self, field: FieldInfo, field_name: str) -> Tuple[Any, str, bool]:
        return self._values.get(field_name), field_name, False

    def __call__(self) -> Dict[str, Any]:
        return {
            name: value for name, value in self._values.items()
            if name in self.settings_cls.model_fields
        }


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # AI Configuration
    ai_backend: str = "openai"  # "openai" (any OpenAI-compatible API) or "ollama"
    ai_api_key: str = ""
    ai_api_base: str = ""
    ai_model: str = "gpt-4.1-nano"

    # Model name substrings that support reasoning output; checked in order,
    # so list the most specific patterns first
    reasoning_models: List[str] = DEFAULT_REASONING_MODELS

    # Backend timeouts. Full pages can reach hundreds of kilobytes and
    # generation is slow, so reads and writes get minutes, not seconds.
    connect_timeout_seconds: float = 30.0
    read_timeout_seconds: float = 300.0
    write_timeout_seconds: float = 300.0
    fallback_timeout_seconds: float = 120.0

    # Prompts and static files
    prompts_dir: str = "./prompts"
    public_dir: str = "./public"

    # Application Configuration
    app_name: str = "pagesmith"
    debug: bool = False
    log_level: str = "INFO"

    # Server Configuration
    host: str = "127.0.0.1"
    port: int = 8000

    # CORS Configuration
    cors_origins: List[str] = ["*"]

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: Type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> Tuple[PydanticBaseSettingsSource, ...]:
        return (
            init_settings,
            env_settings,
            dotenv_settings,
            YamlConfigSource(settings_cls),
            file_secret_settings,
        )

    @property
    def api_key(self) -> str:
        """Configured key, or the backend's conventional environment variable."""
        if self.ai_api_key:
            return self.ai_api_key
        env_name = "OLLAMA_API_KEY" if self.ai_backend == "ollama" else "OPENAI_API_KEY"
        return os.environ.get(env_name, "")

    @property
    def api_base(self) -> str:
        if self.ai_api_base:
            return self.ai_api_base.rstrip("/")
        if self.ai_backend == "ollama":
            return "http://localhost:11434"
        return "https://api.openai.com/v1"


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
