"""Configuration dataclasses and loading helpers for the timelapse maker."""

from __future__ import annotations

import json
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Mapping, Optional, Tuple
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from timelapse_maker.errors import ConfigError
from timelapse_maker.windows import TimelapseWindow

DEFAULT_TIMEZONE = "Europe/Moscow"
DEFAULT_LOG_FILE = "timelapse_maker.log"
CRON_FIELDS = frozenset(
    {"year", "month", "day", "week", "day_of_week", "hour", "minute", "second"}
)

# Cron fields per window: (acquisition, assembly).
DEFAULT_SCHEDULES: Dict[TimelapseWindow, Tuple[Dict[str, str], Dict[str, str]]] = {
    TimelapseWindow.DAY: (
        {"second": "0", "minute": "*/2", "hour": "8-20"},
        {"second": "0", "minute": "20", "hour": "22"},
    ),
    TimelapseWindow.WEEK: (
        {"second": "0", "minute": "*/15", "hour": "8-20"},
        {"second": "0", "minute": "15", "hour": "22", "day_of_week": "sun"},
    ),
    TimelapseWindow.MONTH: (
        {"second": "0", "minute": "0", "hour": "8-20"},
        {"second": "0", "minute": "10", "hour": "22", "day": "last"},
    ),
    TimelapseWindow.QUARTER: (
        {"second": "0", "minute": "0", "hour": "8,12,16,20"},
        {"second": "0", "minute": "5", "hour": "22", "day": "last", "month": "3,6,9,12"},
    ),
}


def _parse_bool(value: Any, default: bool) -> bool:
    """Parse truthy/falsy values from multiple input types."""
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        return value.strip().lower() in {"1", "true", "yes", "on"}
    if isinstance(value, (int, float)):
        return value != 0
    return default


def _parse_positive_float(value: Any, default: float) -> float:
    """Parse a positive floating point number with fallback to default."""
    try:
        parsed = float(value)
    except (TypeError, ValueError):
        return default
    return parsed if parsed > 0 else default


def _require(value: Any, name: str) -> str:
    text = str(value).strip() if value is not None else ""
    if not text:
        raise ConfigError(f"Required configuration value '{name}' is not set")
    return text


def _parse_timezone(value: Any) -> str:
    name = str(value or DEFAULT_TIMEZONE).strip() or DEFAULT_TIMEZONE
    try:
        ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError) as exc:
        raise ConfigError(f"Unknown timezone '{name}'") from exc
    return name


@dataclass(frozen=True)
class WindowSchedule:
    """Cron fields driving acquisition and assembly for one window."""

    window: TimelapseWindow
    acquisition: Mapping[str, str]
    assembly: Mapping[str, str]
    enabled: bool = True


@dataclass(frozen=True)
class GlobalSettings:
    """Settings shared by every window."""

    image_url: str
    base_directory: Path
    catalog_path: Path
    timezone: str = DEFAULT_TIMEZONE
    cache_ttl_seconds: float = 30.0
    http_timeout_seconds: float = 10.0
    log_file: Optional[Path] = Path(DEFAULT_LOG_FILE)

    @property
    def images_directory(self) -> Path:
        return self.base_directory / "images"

    @property
    def videos_directory(self) -> Path:
        return self.base_directory / "videos"

    def tzinfo(self) -> ZoneInfo:
        return ZoneInfo(self.timezone)


@dataclass(frozen=True)
class Config:
    """Root configuration object for the timelapse maker."""

    global_settings: GlobalSettings
    schedules: Tuple[WindowSchedule, ...] = field(default_factory=tuple)

    def enabled_schedules(self) -> Tuple[WindowSchedule, ...]:
        return tuple(schedule for schedule in self.schedules if schedule.enabled)


def _parse_cron_fields(raw: Any, default: Mapping[str, str], context: str) -> Dict[str, str]:
    if raw is None:
        return dict(default)
    if not isinstance(raw, Mapping):
        raise ConfigError(f"Schedule for {context} must be an object of cron fields")
    unknown = set(raw) - CRON_FIELDS
    if unknown:
        raise ConfigError(
            f"Unknown cron fields for {context}: {', '.join(sorted(unknown))}"
        )
    return {str(key): str(value) for key, value in raw.items()}


def _parse_schedules(raw: Any) -> Tuple[WindowSchedule, ...]:
    overrides: Mapping[str, Any] = raw if isinstance(raw, Mapping) else {}
    by_window: Dict[TimelapseWindow, Mapping[str, Any]] = {}
    for name, value in overrides.items():
        try:
            window = TimelapseWindow.from_name(name)
        except ValueError as exc:
            raise ConfigError(str(exc)) from exc
        by_window[window] = value if isinstance(value, Mapping) else {}

    schedules = []
    for window in TimelapseWindow:
        acquisition_default, assembly_default = DEFAULT_SCHEDULES[window]
        entry = by_window.get(window, {})
        schedules.append(
            WindowSchedule(
                window=window,
                acquisition=_parse_cron_fields(
                    entry.get("acquisition"),
                    acquisition_default,
                    f"{window.name} acquisition",
                ),
                assembly=_parse_cron_fields(
                    entry.get("assembly"),
                    assembly_default,
                    f"{window.name} assembly",
                ),
                enabled=_parse_bool(entry.get("enabled"), True),
            )
        )
    return tuple(schedules)


def _parse_global_settings(data: Mapping[str, Any]) -> GlobalSettings:
    image_url = _require(data.get("image_url"), "image_url")
    base_directory = Path(_require(data.get("base_directory"), "base_directory"))
    catalog_raw = data.get("catalog_path")
    catalog_path = Path(catalog_raw) if catalog_raw else base_directory / "catalog.sqlite3"
    log_raw = data.get("log_file", DEFAULT_LOG_FILE)

    return GlobalSettings(
        image_url=image_url,
        base_directory=base_directory,
        catalog_path=catalog_path,
        timezone=_parse_timezone(data.get("timezone")),
        cache_ttl_seconds=_parse_positive_float(data.get("cache_ttl_seconds"), 30.0),
        http_timeout_seconds=_parse_positive_float(data.get("http_timeout_seconds"), 10.0),
        log_file=Path(log_raw) if log_raw else None,
    )


def _load_env_config(env: Mapping[str, str]) -> Config:
    """Configuration derived from environment variables."""
    data = {
        "image_url": env.get("IMAGE_URL"),
        "base_directory": env.get("BASE_DIRECTORY"),
        "catalog_path": env.get("CATALOG_PATH"),
        "timezone": env.get("TIMEZONE"),
        "cache_ttl_seconds": env.get("CACHE_TTL_SECONDS"),
        "http_timeout_seconds": env.get("HTTP_TIMEOUT_SECONDS"),
        "log_file": env.get("LOG_FILE", DEFAULT_LOG_FILE),
    }
    return Config(
        global_settings=_parse_global_settings(data),
        schedules=_parse_schedules({}),
    )


def load_config(config_path: Path | str, env: Mapping[str, str] | None = None) -> Config:
    """Load configuration from a JSON file, falling back to the environment."""
    source_env = env if env is not None else os.environ
    path = Path(config_path)

    if path.exists():
        try:
            with path.open("r", encoding="utf-8") as handle:
                data = json.load(handle)
        except (OSError, json.JSONDecodeError) as exc:
            raise ConfigError(f"Failed to read configuration from {path}: {exc}") from exc
        if not isinstance(data, Mapping):
            raise ConfigError(f"Configuration in {path} must be a JSON object")
        global_raw = data.get("global_settings") or {}
        if not isinstance(global_raw, Mapping):
            raise ConfigError(f"'global_settings' in {path} must be a JSON object")
        return Config(
            global_settings=_parse_global_settings(global_raw),
            schedules=_parse_schedules(data.get("schedules", {})),
        )

    return _load_env_config(source_env)


__all__ = [
    "Config",
    "DEFAULT_SCHEDULES",
    "GlobalSettings",
    "WindowSchedule",
    "load_config",
    "_parse_bool",
]
