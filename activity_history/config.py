"""Configuration loading and validation."""
from __future__ import annotations

from pathlib import Path
from typing import Any, Dict, Optional

import yaml
from pydantic import Field
from pydantic_settings import BaseSettings, PydanticBaseSettingsSource, SettingsConfigDict

from .types import BaseToken


class YAMLConfigSettingsSource(PydanticBaseSettingsSource):
    """Load settings from a YAML configuration file."""

    def __init__(self, settings_cls: type[BaseSettings], config_path: Optional[Path]):
        super().__init__(settings_cls)
        self.config_path = Path(config_path) if config_path is not None else None

    def get_field_value(self, field: Any, field_name: str) -> tuple[Any, str, bool]:
        return None, field_name, False

    def __call__(self) -> Dict[str, Any]:
        if self.config_path is None or not self.config_path.exists():
            return {}
        data = yaml.safe_load(self.config_path.read_text())
        if not isinstance(data, dict):
            return {}
        return data


class AppSettings(BaseSettings):
    """Application configuration resolved from CLI/env/YAML."""

    model_config = SettingsConfigDict(
        env_prefix="ACTIVITY_",
        env_file=".env",
        env_nested_delimiter="__",
        extra="ignore",
    )

    config_path: Optional[Path] = Field(default=None, exclude=True)

    account: str = ""
    base_token: BaseToken = Field(default_factory=BaseToken)
    metadata_cache_path: Optional[Path] = None
    log_level: str = "WARNING"
    recent_limit: int = Field(default=3, ge=1, le=10)

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        # ``init_settings`` exposes ``init_kwargs`` attribute with the raw values passed
        init_kwargs = getattr(init_settings, "init_kwargs", {})  # type: ignore[attr-defined]
        yaml_source = YAMLConfigSettingsSource(settings_cls, init_kwargs.get("config_path"))
        # Precedence: CLI (init) > environment > .env > YAML > file secrets
        return (
            init_settings,
            env_settings,
            dotenv_settings,
            yaml_source,
            file_secret_settings,
        )


def load_settings(config_path: Optional[Path] = None, overrides: Optional[Dict[str, Any]] = None) -> AppSettings:
    overrides = overrides or {}
    if config_path is not None:
        overrides.setdefault("config_path", config_path)
    return AppSettings(**overrides)
