"""Application configuration handling."""

from __future__ import annotations

import os
from functools import lru_cache
from pathlib import Path
from typing import Any, Literal, Mapping

import yaml
from pydantic import BaseModel, Field, field_validator, model_validator

ENV_PREFIX = "DDC_"
DEFAULT_CONFIG_PATH = Path("~/.config/dedup-cache/config.yaml")

_YAML_KEY_MAP: Mapping[tuple[str, ...], str] = {
    ("storage", "backend"): "store_backend",
    ("storage", "db_path"): "db_path",
    ("upload", "max_bytes"): "max_upload_bytes",
    ("listing", "default_limit"): "list_default_limit",
    ("listing", "max_limit"): "list_max_limit",
    ("processing", "workers"): "processing_workers",
    ("processing", "max_attempts"): "processing_max_attempts",
    ("processing", "retry_backoff_seconds"): "processing_retry_backoff_seconds",
    ("processing", "timeout_seconds"): "processing_timeout_seconds",
    ("processing", "simulate_delay"): "simulate_processing_delay",
    ("watchdog", "interval_seconds"): "watchdog_interval_seconds",
    ("logging", "level"): "log_level",
    ("logging", "json"): "log_json",
}


class Settings(BaseModel):
    """Runtime configuration loaded from YAML file and environment variables."""

    store_backend: Literal["memory", "sqlite"] = "sqlite"
    db_path: Path = Field(default=Path.home() / ".dedup-cache" / "files.db")
    max_upload_bytes: int = Field(default=100 * 1024 * 1024, ge=1)
    list_default_limit: int = Field(default=50, ge=1)
    list_max_limit: int = Field(default=100, ge=1)
    processing_workers: int = Field(default=4, ge=1)
    processing_max_attempts: int = Field(default=3, ge=1)
    processing_retry_backoff_seconds: float = Field(default=0.5, ge=0)
    processing_timeout_seconds: float = Field(default=300.0, gt=0)
    simulate_processing_delay: bool = True
    watchdog_interval_seconds: float = Field(default=30.0, gt=0)
    log_level: str = "INFO"
    log_json: bool = True

    model_config = {
        "validate_assignment": True,
        "extra": "ignore",
    }

    @field_validator("db_path", mode="before")
    @classmethod
    def _expand_db_path(cls, value: Any) -> Path:
        if isinstance(value, Path):
            return value.expanduser()
        if isinstance(value, str):
            return Path(value).expanduser()
        raise TypeError("db_path must be a path or string")

    @field_validator("log_level", mode="before")
    @classmethod
    def _upper_level(cls, value: Any) -> str:
        return str(value).upper()

    @model_validator(mode="after")
    def _check_limits(self) -> "Settings":
        if self.list_default_limit > self.list_max_limit:
            raise ValueError("list_default_limit cannot exceed list_max_limit")
        return self

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
    """Flatten nested YAML sections to Settings field names."""
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
    """Map environment variables with DDC_ prefix into Settings fields."""
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
    """Cached settings accessor for the process entry point."""
    return Settings.from_yaml()


__all__ = ["Settings", "get_settings"]
