"""
Settings loading.

Layers, lowest to highest precedence: field defaults in settings.py, an
optional YAML file, then ``REGWATCH__SECTION__KEY`` environment
variables, e.g. ``REGWATCH__SCHEDULER__MAX_RETRIES=5``.
"""

import os
from functools import lru_cache
from pathlib import Path
from typing import Any

import yaml
from pydantic import ValidationError

from regwatch.config.settings import Settings
from regwatch.core.exceptions import ConfigurationError


ENV_PREFIX = "REGWATCH"

_cached: Settings | None = None


def _merge(into: dict[str, Any], layer: dict[str, Any]) -> dict[str, Any]:
    merged = dict(into)
    for key, value in layer.items():
        below = merged.get(key)
        merged[key] = _merge(below, value) if isinstance(below, dict) and isinstance(value, dict) else value
    return merged


def _parse_env_value(value: str) -> Any:
    """
    Interpret an environment value as a YAML scalar.

    ``"7"`` becomes 7, ``"false"`` becomes False and ``"DEBUG"`` stays a
    string. Text YAML cannot parse is kept verbatim.
    """
    if not value.strip():
        return None
    try:
        return yaml.safe_load(value)
    except yaml.YAMLError:
        return value


def _env_layer(prefix: str) -> dict[str, Any]:
    layer: dict[str, Any] = {}
    marker = f"{prefix}__"
    for name, raw in os.environ.items():
        if not name.startswith(marker):
            continue
        *sections, key = name[len(marker):].lower().split("__")
        if not sections:
            # Top-level keys are not settable from the environment
            continue
        target = layer
        for section in sections:
            target = target.setdefault(section, {})
        target[key] = _parse_env_value(raw)
    return layer


def _yaml_layer(path: Path) -> dict[str, Any]:
    try:
        text = path.read_text(encoding="utf-8")
    except FileNotFoundError:
        raise ConfigurationError("Configuration file not found", details={"path": str(path)}) from None
    except OSError as e:
        raise ConfigurationError(
            f"Cannot read configuration file: {e}", details={"path": str(path)}
        ) from e

    try:
        data = yaml.safe_load(text)
    except yaml.YAMLError as e:
        raise ConfigurationError(
            f"Invalid YAML in configuration file: {e}", details={"path": str(path)}
        ) from e

    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigurationError(
            f"Configuration file must be a mapping, not {type(data).__name__}",
            details={"path": str(path)},
        )
    return data


def load_config(
    config_path: Path | str | None = None,
    env_prefix: str = ENV_PREFIX,
) -> Settings:
    """
    Build validated Settings from defaults, ``config_path`` and the environment.

    Raises:
        ConfigurationError: If the file cannot be used or a value fails validation
    """
    data = _yaml_layer(Path(config_path)) if config_path is not None else {}
    data = _merge(data, _env_layer(env_prefix))

    try:
        return Settings(**data)
    except ValidationError as e:
        raise ConfigurationError(
            f"Invalid configuration: {e.error_count()} error(s)",
            details={"errors": e.errors(include_url=False)},
        ) from e


def get_settings(config_path: Path | str | None = None, reload: bool = False) -> Settings:
    """Process-wide Settings, loaded on first call or when ``reload`` is set."""
    global _cached
    if _cached is None or reload:
        _cached = load_config(config_path or get_default_config_path())
    return _cached


def reset_settings() -> None:
    global _cached
    _cached = None


@lru_cache(maxsize=1)
def get_default_config_path() -> Path | None:
    """First existing of ./regwatch.yaml, ./config/regwatch.yaml and ~/.regwatch/config.yaml."""
    candidates = (
        Path.cwd() / "regwatch.yaml",
        Path.cwd() / "config" / "regwatch.yaml",
        Path.home() / ".regwatch" / "config.yaml",
    )
    return next((path for path in candidates if path.is_file()), None)
