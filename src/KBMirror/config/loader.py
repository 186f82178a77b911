"""
Configuration loading with file/env/CLI precedence.

1. **File level** (YAML/JSON): base configuration
2. **Environment level**: KBM_* prefixed variables override file
3. **CLI level**: programmatic overrides win

Environment variables use double-underscore notation:
  KBM_HTTP__USER_AGENT="Custom UA"  ->  http.user_agent="Custom UA"
  KBM_IGNORE_IMAGES=true            ->  ignore_images=True
"""

from __future__ import annotations

import json
import logging
import os
from collections.abc import Mapping
from pathlib import Path
from typing import Any

import yaml

from .models import MirrorConfig

_LOGGER = logging.getLogger(__name__)

DEFAULT_ENV_PREFIX = "KBM_"
CONFIG_PATH_ENV_VAR = "KBM_CONFIG"


def _read_file(path: str | Path) -> dict[str, Any]:
    """
    Read a YAML or JSON config file.

    Raises:
        ValueError: If the file cannot be read or parsed
    """
    p = Path(path)
    if not p.exists():
        raise ValueError(f"Config file not found: {path}")

    try:
        text = p.read_text(encoding="utf-8")
    except OSError as e:
        raise ValueError(f"Cannot read config file {path}: {e}") from e

    suffix = p.suffix.lower()
    if suffix in (".yaml", ".yml"):
        try:
            data = yaml.safe_load(text) or {}
        except yaml.YAMLError as e:
            raise ValueError(f"Invalid YAML in {path}: {e}") from e
    elif suffix == ".json":
        try:
            data = json.loads(text)
        except json.JSONDecodeError as e:
            raise ValueError(f"Invalid JSON in {path}: {e}") from e
    else:
        raise ValueError(f"Unsupported file format: {suffix}. Use .yaml or .json")

    if not isinstance(data, dict):
        raise ValueError(f"Config file {path} must contain a mapping at the top level")
    return data


def _assign_nested(data: dict[str, Any], dotted_key: str, value: Any) -> None:
    keys = dotted_key.split(".")
    current = data
    for key in keys[:-1]:
        if not isinstance(current.get(key), dict):
            current[key] = {}
        current = current[key]
    current[keys[-1]] = value


def _coerce_env_value(value: str) -> Any:
    """Parse JSON literals (lists, numbers, booleans), falling back to the raw string."""
    try:
        return json.loads(value)
    except (json.JSONDecodeError, ValueError):
        pass
    if value.lower() in ("true", "false"):
        return value.lower() == "true"
    return value


def _merge_env_overrides(data: dict[str, Any], env_prefix: str) -> dict[str, Any]:
    for env_key, env_value in os.environ.items():
        if not env_key.startswith(env_prefix) or env_key == CONFIG_PATH_ENV_VAR:
            continue
        dotted_key = env_key[len(env_prefix) :].lower().replace("__", ".")
        if not dotted_key:
            continue
        coerced = _coerce_env_value(env_value)
        _assign_nested(data, dotted_key, coerced)
        _LOGGER.debug("Environment override: %s -> %s = %r", env_key, dotted_key, coerced)
    return data


def _merge_cli_overrides(
    data: dict[str, Any], cli_overrides: Mapping[str, Any] | None
) -> dict[str, Any]:
    """Recursively merge CLI overrides; ``None`` values mean "not given" and are dropped."""
    if not cli_overrides:
        return data
    for key, value in cli_overrides.items():
        if value is None:
            continue
        if isinstance(value, Mapping) and isinstance(data.get(key), dict):
            data[key] = _merge_cli_overrides(data[key], value)
        else:
            data[key] = dict(value) if isinstance(value, Mapping) else value
        _LOGGER.debug("CLI override: %s = %r", key, value)
    return data


def load_config(
    path: str | Path | None = None,
    env_prefix: str = DEFAULT_ENV_PREFIX,
    cli_overrides: Mapping[str, Any] | None = None,
) -> MirrorConfig:
    """
    Load MirrorConfig from file, environment, and CLI with proper precedence.

    Raises:
        ValueError: If the file cannot be read or the merged config is invalid
            (pydantic's ``ValidationError`` is a ``ValueError``)
    """
    data: dict[str, Any] = {}
    if path:
        data = _read_file(path)
        _LOGGER.info("Loaded config from %s", path)

    data = _merge_env_overrides(data, env_prefix)
    data = _merge_cli_overrides(data, cli_overrides)

    config = MirrorConfig.model_validate(data)
    _LOGGER.debug("Configuration validated. Config hash: %s...", config.config_hash()[:8])
    return config


def export_config_schema() -> dict[str, Any]:
    """JSON Schema for MirrorConfig (Pydantic v2 format)."""
    return MirrorConfig.model_json_schema()
