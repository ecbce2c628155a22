"""
Lead Conversation Hub — Analytics Configuration
=================================================

Defaults for the dashboard analytics, overridable from the environment
(``.env`` is loaded on first use) and then from explicit overrides.

Environment variables:
  TREND_WINDOW_DAYS            days in the conversation trend series
  RESPONSE_TREND_WINDOW_DAYS   days in the response-time trend series
  TREND_STABLE_THRESHOLD       |% change| below which a trend is "stable"
"""
from __future__ import annotations

import os
from pathlib import Path
from typing import Any, Dict, Optional

from dotenv import load_dotenv

from scripts.lib.errors import ConfigError

BASE_DIR = Path(__file__).resolve().parent.parent.parent

DEFAULT_CONFIG: Dict[str, Any] = {
    "trend_window_days": 30,
    "response_trend_window_days": 30,
    "trend_stable_threshold_percent": 1.0,
    "default_source_label": "Unknown",
}

_ENV_KEYS = {
    "TREND_WINDOW_DAYS": ("trend_window_days", int),
    "RESPONSE_TREND_WINDOW_DAYS": ("response_trend_window_days", int),
    "TREND_STABLE_THRESHOLD": ("trend_stable_threshold_percent", float),
}


def _coerce(key: str, value: Any, cast) -> Any:
    try:
        result = cast(value)
    except (TypeError, ValueError) as e:
        raise ConfigError(f"Invalid value for {key}: {value!r}", key=key) from e
    if key.endswith("_days") and result < 1:
        raise ConfigError(f"{key} must be at least 1, got {result}", key=key)
    if result < 0:
        raise ConfigError(f"{key} must not be negative, got {result}", key=key)
    return result


def load_config(overrides: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
    """
    Build the analytics configuration.

    Precedence: explicit overrides > environment (.env included) > DEFAULT_CONFIG.

    Raises:
        ConfigError: a value cannot be converted or is out of range.
    """
    load_dotenv(BASE_DIR / ".env")
    config = dict(DEFAULT_CONFIG)

    for env_name, (key, cast) in _ENV_KEYS.items():
        raw = os.getenv(env_name)
        if raw is not None and raw.strip():
            config[key] = _coerce(key, raw.strip(), cast)

    for key, value in (overrides or {}).items():
        if key not in DEFAULT_CONFIG:
            raise ConfigError(f"Unknown config key: {key}", key=key)
        default = DEFAULT_CONFIG[key]
        if isinstance(default, (int, float)) and not isinstance(default, bool):
            value = _coerce(key, value, type(default))
        config[key] = value

    return config
