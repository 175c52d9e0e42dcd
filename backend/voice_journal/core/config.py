"""Application configuration handling."""

from __future__ import annotations

import os
from functools import lru_cache
from pathlib import Path
from typing import Any, Mapping

import yaml
from pydantic import BaseModel, Field, field_validator

ENV_PREFIX = "VJ_"
DEFAULT_CONFIG_PATH = Path("~/.config/voice-journal/config.yaml")
DEFAULT_HOME = Path.home() / ".voice-journal"

_YAML_KEY_MAP: Mapping[tuple[str, ...], str] = {
    ("storage", "db_path"): "db_path",
    ("storage", "media_dir"): "media_dir",
    ("storage", "media_extension"): "media_extension",
    ("storage", "min_free_mb"): "min_free_storage_mb",
    ("recording", "sample_rate"): "sample_rate",
    ("recording", "channels"): "channels",
    ("enrichment", "api_key"): "openai_api_key",
    ("enrichment", "base_url"): "openai_base_url",
    ("enrichment", "transcription_model"): "transcription_model",
    ("enrichment", "summary_model"): "summary_model",
    ("enrichment", "summary_max_tokens"): "summary_max_tokens",
    ("enrichment", "summary_temperature"): "summary_temperature",
    ("enrichment", "language"): "transcription_language",
    ("enrichment", "timeout"): "request_timeout",
    ("enrichment", "workers"): "enrichment_workers",
    ("enrichment", "use_keychain"): "use_keychain",
    ("errors", "log_size"): "error_log_size",
    ("server", "cors_origins"): "cors_origins",
}


class Settings(BaseModel):
    """Runtime configuration loaded from YAML file and environment variables."""

    db_path: Path = Field(default=DEFAULT_HOME / "journal.db")
    media_dir: Path = Field(default=DEFAULT_HOME / "recordings")
    media_extension: str = ".wav"
    min_free_storage_mb: int = Field(default=10, ge=0)
    sample_rate: int = 44100
    channels: int = Field(default=1, ge=1)
    openai_api_key: str | None = None
    openai_base_url: str = "https://api.openai.com/v1"
    transcription_model: str = "whisper-1"
    summary_model: str = "gpt-3.5-turbo"
    summary_max_tokens: int = 150
    summary_temperature: float = 0.3
    transcription_language: str | None = None
    request_timeout: float = 60.0
    enrichment_workers: int = Field(default=2, ge=1)
    use_keychain: bool = True
    error_log_size: int = Field(default=100, ge=1)
    cors_origins: list[str] = Field(default_factory=list)

    model_config = {
        "validate_assignment": True,
        "extra": "ignore",
    }

    @field_validator("db_path", "media_dir", mode="before")
    @classmethod
    def _expand_path(cls, value: Any) -> Path:
        if isinstance(value, Path):
            return value.expanduser()
        if isinstance(value, str):
            return Path(value).expanduser()
        raise TypeError("path settings must be a path or string")

    @field_validator("media_extension")
    @classmethod
    def _dotted_extension(cls, value: str) -> str:
        value = value.strip().lower()
        return value if value.startswith(".") else f".{value}"

    @field_validator("cors_origins", mode="before")
    @classmethod
    def _split_origins(cls, value: Any) -> Any:
        if isinstance(value, str):
            return [origin.strip() for origin in value.split(",") if origin.strip()]
        return value

    @field_validator("transcription_language")
    @classmethod
    def _auto_language(cls, value: str | None) -> str | None:
        # "auto" lets the transcription service detect the language
        if value is None or value.strip().lower() in {"", "auto"}:
            return None
        return value.strip().lower()

    @classmethod
    def from_yaml(cls, path: Path | None = None) -> "Settings":
        """Load YAML config and overlay env vars; fall back to defaults."""
        config_path = cls._resolve_config_path(path)
        data: dict[str, Any] = {}
        if config_path and config_path.exists():
            with config_path.open("r", encoding="utf-8") as fh:
                raw = yaml.safe_load(fh) or {}
            data.update(_flatten_yaml(raw))
        data.update(_load_env_overrides())
        return cls(**data)

    @staticmethod
    def _resolve_config_path(path: Path | None) -> Path | None:
        if path is not None:
            return path.expanduser()
        env_path = os.environ.get(f"{ENV_PREFIX}CONFIG")
        if env_path:
            return Path(env_path).expanduser()
        resolved_default = DEFAULT_CONFIG_PATH.expanduser()
        return resolved_default if resolved_default.exists() else None


def _flatten_yaml(raw: Mapping[str, Any], prefix: tuple[str, ...] = ()) -> dict[str, Any]:
    """Flatten nested YAML configuration to Settings field names."""
    flat: dict[str, Any] = {}
    for key, value in raw.items():
        next_prefix = prefix + (key,)
        if isinstance(value, Mapping):
            flat.update(_flatten_yaml(value, prefix=next_prefix))
        else:
            mapped_key = _YAML_KEY_MAP.get(next_prefix)
            if mapped_key:
                flat[mapped_key] = value
            elif key in Settings.model_fields:
                flat[key] = value
    return flat


def _load_env_overrides() -> dict[str, Any]:
    """Map environment variables with VJ_ prefix into Settings fields."""
    overrides: dict[str, Any] = {}
    for key, value in os.environ.items():
        if not key.startswith(ENV_PREFIX):
            continue
        field_name = key[len(ENV_PREFIX) :].lower()
        if field_name in Settings.model_fields:
            overrides[field_name] = value
    return overrides


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Cached settings accessor for dependency injection."""
    return Settings.from_yaml()


__all__ = ["Settings", "get_settings"]
