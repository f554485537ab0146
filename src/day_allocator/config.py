from __future__ import annotations

import math
import os
from collections.abc import Mapping
from dataclasses import dataclass

ENV_PREFIX = "DAYALLOC_"

DEFAULT_SETTINGS: dict[str, str] = {
    "min_duration": "0.5",
    "snap_step": "0.5",
    "min_range_span": "1",
    "range_start": "0",
    "range_end": "24",
    "default_category": "Default",
    "default_color": "#9e9e9e",
}

ALLOWED_SETTING_KEYS: set[str] = set(DEFAULT_SETTINGS)

_POSITIVE_FLOAT_KEYS: set[str] = {"min_duration", "snap_step", "min_range_span"}
_FLOAT_KEYS: set[str] = {"range_start", "range_end"}
_NON_EMPTY_KEYS: set[str] = {"default_category", "default_color"}


class SettingsError(ValueError):
    """Raised when an engine setting is unknown or has an invalid value."""


@dataclass(frozen=True)
class EngineSettings:
    min_duration: float = 0.5
    snap_step: float = 0.5
    min_range_span: float = 1.0
    range_start: float = 0.0
    range_end: float = 24.0
    default_category: str = "Default"
    default_color: str = "#9e9e9e"


def validate_setting(key: str, value: str) -> None:
    if key not in ALLOWED_SETTING_KEYS:
        allowed = ", ".join(sorted(ALLOWED_SETTING_KEYS))
        raise SettingsError(f"Unknown setting key: {key}. Allowed keys: {allowed}.")

    if key in _POSITIVE_FLOAT_KEYS:
        parsed = _parse_float(value, key)
        if parsed <= 0:
            raise SettingsError(f"Invalid value for {key}: must be a number > 0.")
        return

    if key in _FLOAT_KEYS:
        _parse_float(value, key)
        return

    if key in _NON_EMPTY_KEYS:
        if not value.strip():
            raise SettingsError(f"Invalid value for {key}: must not be empty.")
        return


def load_settings(env: Mapping[str, str] | None = None) -> EngineSettings:
    """Build settings from DAYALLOC_* variables, falling back to defaults."""
    source = os.environ if env is None else env
    raw_settings: dict[str, str] = {}
    for key, default in DEFAULT_SETTINGS.items():
        value = source.get(f"{ENV_PREFIX}{key.upper()}", default).strip()
        validate_setting(key, value)
        raw_settings[key] = value

    settings = EngineSettings(
        min_duration=float(raw_settings["min_duration"]),
        snap_step=float(raw_settings["snap_step"]),
        min_range_span=float(raw_settings["min_range_span"]),
        range_start=float(raw_settings["range_start"]),
        range_end=float(raw_settings["range_end"]),
        default_category=raw_settings["default_category"],
        default_color=raw_settings["default_color"],
    )
    _validate_cross_fields(settings)
    return settings


def _validate_cross_fields(settings: EngineSettings) -> None:
    if settings.min_range_span < settings.min_duration:
        raise SettingsError(
            "Invalid settings: min_range_span must be >= min_duration "
            f"({settings.min_range_span} < {settings.min_duration})."
        )
    if settings.range_end - settings.range_start < settings.min_range_span:
        raise SettingsError(
            "Invalid settings: range_end - range_start must be >= min_range_span."
        )


def _parse_float(value: str, key: str) -> float:
    try:
        parsed = float(value)
    except ValueError as exc:
        raise SettingsError(f"Invalid value for {key}: must be a number.") from exc
    if not math.isfinite(parsed):
        raise SettingsError(f"Invalid value for {key}: must be a finite number.")
    return parsed
