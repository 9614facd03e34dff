"""Configuration loading for Sugarlift."""

from __future__ import annotations

import sys
from collections.abc import Mapping
from dataclasses import dataclass, field
from importlib import resources
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

DEFAULT_CONFIG_PATH = Path("config/default.yaml")
LOCAL_CONFIG_PATH = Path("config/local.yaml")


class LoggingSettings(BaseModel):
    """Logging configuration."""

    model_config = ConfigDict(extra="forbid")

    path: Path | None = None
    level: str = Field(default="info")

    @field_validator("level", mode="before")
    @classmethod
    def _normalize_level(cls, value: str) -> str:
        if not isinstance(value, str):
            raise TypeError("Logging level must be a string.")
        normalized = value.strip().lower()
        if normalized not in {"debug", "info", "warn", "warning", "error", "critical"}:
            raise ValueError(f"Unsupported logging level: {value!r}")
        return normalized


class SolanaSettings(BaseModel):
    """Solana RPC endpoint and uploader wallet."""

    model_config = ConfigDict(extra="forbid")

    rpc_url: str = "https://api.devnet.solana.com"
    keypair: Path = Path("~/.config/solana/id.json")
    cli_path: str = "solana"

    @field_validator("rpc_url", mode="before")
    @classmethod
    def _normalize_rpc_url(cls, value: Any) -> str:
        if not isinstance(value, str) or not value.strip():
            raise ValueError("rpc_url must be a non-empty string.")
        return value.strip().rstrip("/")


class BundlrSettings(BaseModel):
    """Bundlr node selection; `node` overrides cluster detection when set."""

    model_config = ConfigDict(extra="forbid")

    node: str | None = None
    timeout_seconds: float = Field(default=60.0, ge=0.1)

    @field_validator("node", mode="before")
    @classmethod
    def _normalize_node(cls, value: Any) -> str | None:
        if value is None:
            return None
        if not isinstance(value, str):
            raise TypeError("Bundlr node must be a URL string or null.")
        stripped = value.strip().rstrip("/")
        return stripped or None


class UploadSettings(BaseModel):
    """Upload pipeline tuning."""

    model_config = ConfigDict(extra="forbid")

    parallel_limit: int = Field(default=45, ge=1)
    header_size: int = Field(default=2000, ge=0)
    minimum_size: int = Field(default=10000, ge=0)
    mock_uri_size: int = Field(default=100, ge=1)
    fee_multiplier: float = Field(default=1.1, ge=1.0)
    funding_max_attempts: int = Field(default=120, ge=1)
    funding_poll_seconds: float = Field(default=1.0, ge=0.0)
    max_retries: int = Field(default=1, ge=1)
    backoff_min_seconds: float = Field(default=1.0, ge=0.0)
    backoff_max_seconds: float = Field(default=10.0, ge=0.0)


class StorageSettings(BaseModel):
    """Asset and cache locations."""

    model_config = ConfigDict(extra="forbid")

    assets_dir: Path = Path("assets")
    cache_path: Path = Path("cache.json")


class ConfigModel(BaseModel):
    """Root configuration model."""

    model_config = ConfigDict(extra="forbid")

    version: int = 1
    logging: LoggingSettings = Field(default_factory=LoggingSettings)
    solana: SolanaSettings = Field(default_factory=SolanaSettings)
    bundlr: BundlrSettings = Field(default_factory=BundlrSettings)
    upload: UploadSettings = Field(default_factory=UploadSettings)
    storage: StorageSettings = Field(default_factory=StorageSettings)


@dataclass(slots=True)
class Config:
    """Validated configuration with convenience accessors."""

    model: ConfigModel
    raw: Mapping[str, Any] = field(repr=False)
    loaded_from: tuple[str, ...] = field(default_factory=tuple, repr=False)

    @property
    def logging(self) -> LoggingSettings:
        return self.model.logging

    @property
    def solana(self) -> SolanaSettings:
        return self.model.solana

    @property
    def bundlr(self) -> BundlrSettings:
        return self.model.bundlr

    @property
    def upload(self) -> UploadSettings:
        return self.model.upload

    @property
    def storage(self) -> StorageSettings:
        return self.model.storage

    def model_dump(self) -> Mapping[str, Any]:
        """Expose the parsed configuration as a mapping."""

        return self.model.model_dump()


def load_config(path: Path | None = None) -> Config:
    """Load configuration from defaults/local overrides, or from an explicit config document."""

    merged: dict[str, Any] = {}
    loaded_from: list[str] = []

    if path is not None:
        override_path = _resolve_path(path)
        if not override_path.exists():
            raise FileNotFoundError(f"Configuration file not found: {path}")
        merged = _merge_dicts(merged, _read_yaml(override_path))
        loaded_from.append(str(override_path))
    else:
        default_candidate = _resolve_path(DEFAULT_CONFIG_PATH)
        packaged_default = _resolve_packaged_path(DEFAULT_CONFIG_PATH)
        if default_candidate.exists():
            merged = _merge_dicts(merged, _read_yaml(default_candidate))
            loaded_from.append(str(default_candidate))
        elif packaged_default and packaged_default.exists():
            merged = _merge_dicts(merged, _read_yaml(packaged_default))
            loaded_from.append(str(packaged_default))
        else:
            packaged_payload = _read_packaged_yaml("sugarlift.config", "default.yaml")
            if packaged_payload is not None:
                merged = _merge_dicts(merged, packaged_payload)
                loaded_from.append("sugarlift.config:default.yaml")

        local_candidate = _resolve_path(LOCAL_CONFIG_PATH)
        if local_candidate.exists():
            merged = _merge_dicts(merged, _read_yaml(local_candidate))
            loaded_from.append(str(local_candidate))

    if not merged:
        raise FileNotFoundError("No configuration data could be loaded.")

    try:
        model = ConfigModel.model_validate(merged)
    except ValidationError as exc:
        raise ValueError(f"Invalid configuration: {exc}") from exc

    return Config(model=model, raw=merged, loaded_from=tuple(loaded_from))


def _resolve_path(path: Path) -> Path:
    """Resolve configuration paths relative to the current working directory."""

    return path if path.is_absolute() else Path.cwd() / path


def _resolve_packaged_path(path: Path) -> Path | None:
    """Resolve paths embedded in frozen binaries (e.g., PyInstaller)."""

    base = getattr(sys, "_MEIPASS", None)
    if not base:
        return None
    return Path(base) / path


def _read_yaml(path: Path) -> dict[str, Any]:
    content = path.read_text(encoding="utf-8")
    data = yaml.safe_load(content) or {}
    if not isinstance(data, dict):
        raise ValueError(f"Configuration file {path} must define a mapping at the top level.")
    return data


def _read_packaged_yaml(package: str, name: str) -> dict[str, Any] | None:
    """Read YAML embedded in a Python package via importlib.resources."""

    try:
        content = resources.files(package).joinpath(name).read_text(encoding="utf-8")
    except FileNotFoundError:
        return None
    data = yaml.safe_load(content) or {}
    if not isinstance(data, dict):
        raise ValueError(
            f"Packaged configuration {package}:{name} must define a mapping at the top level."
        )
    return data


def _merge_dicts(base: Mapping[str, Any], override: Mapping[str, Any]) -> dict[str, Any]:
    """Deep-merge two dictionaries, with override values taking precedence."""

    result: dict[str, Any] = dict(base)
    for key, value in override.items():
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            result[key] = _merge_dicts(result[key], value)
        else:
            result[key] = value
    return result
