"""
Configuration Loader - Bridge Between JSON Config and AppSettings
================================================================
Loads an optional config.json and overlays it on the environment-driven
AppSettings. Values may reference environment variables as ${VAR} or
${VAR:-default}.
"""

import json
import os
import re
from pathlib import Path
from typing import Any, Dict

from dotenv import load_dotenv
from pydantic import ValidationError

from .settings import AppSettings

load_dotenv()

ENV_VAR_PATTERN = re.compile(r"\$\{(\w+)(?::-([^}]*))?\}")

# Sections of config.json that map onto AppSettings fields
_SECTIONS = ("logging", "database", "collaboration", "server")


def _resolve_env_vars(data: Any) -> Any:
    """Recursively resolves ${VAR} / ${VAR:-default} placeholders."""
    if isinstance(data, dict):
        return {k: _resolve_env_vars(v) for k, v in data.items()}
    if isinstance(data, list):
        return [_resolve_env_vars(i) for i in data]
    if isinstance(data, str):
        return ENV_VAR_PATTERN.sub(lambda m: os.getenv(m.group(1), m.group(2) or ""), data)
    return data


def load_app_settings_from_json(config_path: str = "config/config.json") -> AppSettings:
    """
    Load AppSettings from a JSON configuration file.

    Each known section is merged over the environment-derived defaults, so a
    key absent from the file keeps its environment or default value.

    Args:
        config_path: Path to config.json

    Returns:
        Configured AppSettings instance (defaults if the file is unusable)
    """
    try:
        with open(config_path, 'r', encoding='utf-8') as f:
            config_data = json.load(f)
    except (OSError, json.JSONDecodeError) as e:
        print(f"[WARNING] Failed to load JSON config from {config_path}: {e}")
        print("[INFO] Using default AppSettings configuration")
        return AppSettings()

    resolved: Dict[str, Any] = _resolve_env_vars(config_data)
    base = AppSettings()

    overrides: Dict[str, Any] = {}
    try:
        for section in _SECTIONS:
            if isinstance(resolved.get(section), dict):
                current = getattr(base, section).model_dump()
                current.update(resolved[section])
                overrides[section] = type(getattr(base, section))(**current)
    except ValidationError as e:
        print(f"[WARNING] Invalid configuration in {config_path}: {e}")
        return base

    for key in ("app_name", "debug"):
        if key in resolved:
            overrides[key] = resolved[key]

    return base.model_copy(update=overrides)


def get_settings_from_working_directory() -> AppSettings:
    """
    Load settings from config.json relative to the current working directory.

    Returns:
        Configured AppSettings instance
    """
    possible_paths = [
        os.getenv("SCHEMAFORGE_CONFIG", ""),
        "config/config.json",
        "../config/config.json",
    ]

    for config_path in possible_paths:
        if config_path and Path(config_path).exists():
            return load_app_settings_from_json(config_path)

    return AppSettings()
