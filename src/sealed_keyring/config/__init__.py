"""Configuration loader for sealed-keyring.

Loads settings from a YAML file with built-in defaults. Supports environment
variable overrides using the SEALED_KEYRING_ prefix with double-underscore
nesting (e.g., SEALED_KEYRING_KEYRING__SERVICE_NAME=com.example.app).

The loader only parses values. Policy names are checked when a backend is
constructed, so a bad factor name surfaces as ``InvalidConfiguration``.
"""

from __future__ import annotations

import os
import pathlib
from datetime import timedelta
from typing import Any

import yaml
from pydantic import BaseModel, Field, field_validator


# ---------------------------------------------------------------------------
# Config sub-models
# ---------------------------------------------------------------------------

class KeyringConfig(BaseModel):
    service_name: str = "sealed-keyring"
    policy: str = "flags"
    access_control_flags: list[str] = Field(default_factory=list)
    protection_constraint: str = ""
    biometrics_reuse_duration: timedelta = timedelta(0)
    synchronizable: bool = False
    # Only read by the legacy policy strategy.
    accessible_when_unlocked: bool = False

    @field_validator("access_control_flags", mode="before")
    @classmethod
    def _split_flag_names(cls, value: Any) -> Any:
        if isinstance(value, str):
            return [part.strip() for part in value.split(",") if part.strip()]
        return value

    @field_validator("biometrics_reuse_duration", mode="before")
    @classmethod
    def _seconds_from_string(cls, value: Any) -> Any:
        """Accept a plain number of seconds given as a string."""
        if isinstance(value, str):
            try:
                return float(value)
            except ValueError:
                return value
        return value


class StorageConfig(BaseModel):
    path: str = "./data/keyring.enc"
    passphrase: str = "sealed-keyring-default"


# ---------------------------------------------------------------------------
# Top-level settings
# ---------------------------------------------------------------------------

class Settings(BaseModel):
    keyring: KeyringConfig = Field(default_factory=KeyringConfig)
    storage: StorageConfig = Field(default_factory=StorageConfig)


# ---------------------------------------------------------------------------
# Deep merge helper
# ---------------------------------------------------------------------------

def _deep_merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    """Recursively merge *override* into *base*, returning a new dict."""
    merged = dict(base)
    for key, value in override.items():
        if key in merged and isinstance(merged[key], dict) and isinstance(value, dict):
            merged[key] = _deep_merge(merged[key], value)
        else:
            merged[key] = value
    return merged


# ---------------------------------------------------------------------------
# Environment variable overrides
# ---------------------------------------------------------------------------

_ENV_PREFIX = "SEALED_KEYRING_"


def _collect_env_overrides() -> dict[str, Any]:
    """Collect SEALED_KEYRING_* env vars and build a nested dict.

    Double-underscore separates nesting levels.
    Example: SEALED_KEYRING_KEYRING__SYNCHRONIZABLE=true
    becomes  {"keyring": {"synchronizable": "true"}}

    Values stay strings; pydantic converts them for typed fields.
    """
    overrides: dict[str, Any] = {}
    for key, value in os.environ.items():
        if not key.startswith(_ENV_PREFIX):
            continue
        parts = key[len(_ENV_PREFIX) :].lower().split("__")
        current = overrides
        for part in parts[:-1]:
            current = current.setdefault(part, {})
        current[parts[-1]] = value
    return overrides


# ---------------------------------------------------------------------------
# Loader
# ---------------------------------------------------------------------------

def load_settings(config_path: pathlib.Path | None = None) -> Settings:
    """Load settings with layered precedence: defaults < file < env vars.

    Parameters
    ----------
    config_path:
        Path to a YAML config file. If ``None`` or the file does not exist,
        built-in defaults are used.
    """
    base: dict[str, Any] = {}

    if config_path is not None and config_path.exists():
        with open(config_path) as fh:
            file_data = yaml.safe_load(fh)
        if isinstance(file_data, dict):
            base = _deep_merge(base, file_data)

    env_overrides = _collect_env_overrides()
    if env_overrides:
        base = _deep_merge(base, env_overrides)

    return Settings(**base)
