"""Configuration defaults, YAML loading, and typed pipeline settings."""

from __future__ import annotations

import copy
from collections.abc import Mapping
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Optional

import yaml

from .errors import ConfigError

__all__ = [
    "DEFAULT_CONFIG",
    "DEFAULT_CONFIG_NAME",
    "PipelineSettings",
    "TRIM_POLICIES",
    "default_config",
    "load_config",
    "write_config",
]

DEFAULT_CONFIG_NAME = "tourgen.yaml"

TRIM_POLICIES = ("prefix", "first-per-chunk")

DEFAULT_CONFIG: Dict[str, Any] = {
    "project": {
        "name": "",
        "description": "",
    },
    "pipeline": {
        "target_steps": 15,
        "max_steps": 20,
        "files_per_chunk": 5,
        "lines_per_file": 25,
        "parallel_chunks": 10,
        "window_delay": 1.0,
        "trim_policy": "prefix",
    },
    "overview": {
        "max_key_files": 10,
        "preview_lines": 40,
        "readme_excerpt_chars": 2000,
        "readme_clean_limit": 500,
    },
    "models": {
        "default": "gpt-4o-mini",
        "base_url": "https://api.openai.com/v1/chat/completions",
        "timeout": 60,
        "max_attempts": 3,
        "retry_delay": 0.5,
    },
    "paths": {
        "logs": "",
        "tours": ".tours",
    },
    "logging": {
        "level": "INFO",
    },
}


def default_config() -> Dict[str, Any]:
    """Return a deep copy of the default configuration."""
    return copy.deepcopy(DEFAULT_CONFIG)


def _merge(base: Dict[str, Any], override: Mapping[str, Any]) -> Dict[str, Any]:
    for key, value in override.items():
        current = base.get(key)
        if isinstance(current, dict) and isinstance(value, Mapping):
            base[key] = _merge(current, value)
        else:
            base[key] = copy.deepcopy(value)
    return base


def load_config(config_path: Optional[Path]) -> Dict[str, Any]:
    """Load YAML configuration and merge it over the defaults.

    A missing ``config_path`` (``None``) yields the defaults; a path that does
    not exist is an error.
    """
    config = default_config()
    if config_path is None:
        return config
    if not config_path.exists():
        raise ConfigError(f"Config file not found: {config_path}")

    try:
        with config_path.open("r", encoding="utf-8") as handle:
            data = yaml.safe_load(handle) or {}
    except yaml.YAMLError as error:
        raise ConfigError(f"Failed to parse config: {error}") from error

    if not isinstance(data, dict):
        raise ConfigError("Configuration must be a mapping at the top level.")
    return _merge(config, data)


def write_config(config_path: Path, config_data: Mapping[str, Any]) -> None:
    """Persist configuration data to disk with stable formatting."""
    config_path.parent.mkdir(parents=True, exist_ok=True)
    with config_path.open("w", encoding="utf-8") as handle:
        yaml.safe_dump(dict(config_data), handle, sort_keys=False)


def _section(config: Mapping[str, Any], name: str) -> Mapping[str, Any]:
    value = config.get(name) or {}
    if not isinstance(value, Mapping):
        raise ConfigError(f"Config section '{name}' must be a mapping.")
    return value


def _positive_int(section: Mapping[str, Any], key: str, default: int, where: str) -> int:
    value = section.get(key, default)
    if isinstance(value, bool) or not isinstance(value, int) or value < 1:
        raise ConfigError(f"{where}.{key} must be a positive integer, got {value!r}")
    return value


def _non_negative_float(section: Mapping[str, Any], key: str, default: float, where: str) -> float:
    value = section.get(key, default)
    if isinstance(value, bool) or not isinstance(value, (int, float)) or value < 0:
        raise ConfigError(f"{where}.{key} must be a non-negative number, got {value!r}")
    return float(value)


@dataclass(slots=True, frozen=True)
class PipelineSettings:
    """Tunables for chunking, scheduling, trimming and the overview digest."""

    target_steps: int = 15
    max_steps: int = 20
    files_per_chunk: int = 5
    lines_per_file: int = 25
    parallel_chunks: int = 10
    window_delay: float = 1.0
    trim_policy: str = "prefix"
    max_key_files: int = 10
    preview_lines: int = 40
    readme_excerpt_chars: int = 2000
    readme_clean_limit: int = 500

    @classmethod
    def from_config(cls, config: Mapping[str, Any]) -> "PipelineSettings":
        pipeline = _section(config, "pipeline")
        overview = _section(config, "overview")
        trim_policy = pipeline.get("trim_policy", "prefix")
        if trim_policy not in TRIM_POLICIES:
            raise ConfigError(
                f"pipeline.trim_policy must be one of {', '.join(TRIM_POLICIES)}, got {trim_policy!r}"
            )
        return cls(
            target_steps=_positive_int(pipeline, "target_steps", 15, "pipeline"),
            max_steps=_positive_int(pipeline, "max_steps", 20, "pipeline"),
            files_per_chunk=_positive_int(pipeline, "files_per_chunk", 5, "pipeline"),
            lines_per_file=_positive_int(pipeline, "lines_per_file", 25, "pipeline"),
            parallel_chunks=_positive_int(pipeline, "parallel_chunks", 10, "pipeline"),
            window_delay=_non_negative_float(pipeline, "window_delay", 1.0, "pipeline"),
            trim_policy=str(trim_policy),
            max_key_files=_positive_int(overview, "max_key_files", 10, "overview"),
            preview_lines=_positive_int(overview, "preview_lines", 40, "overview"),
            readme_excerpt_chars=_positive_int(overview, "readme_excerpt_chars", 2000, "overview"),
            readme_clean_limit=_positive_int(overview, "readme_clean_limit", 500, "overview"),
        )
