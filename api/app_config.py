"""
Application configuration for the repository analytics backend.

Settings are resolved in this order (later wins):
1. Built-in defaults (``DashboardSettings``)
2. A JSON settings file:
   - path from the REPO_ANALYTICS_CONFIG environment variable, or
   - ``dashboard_settings.json`` in the platform config directory
     (e.g. ~/.config/repo-analytics/ on Linux)
3. ``REPO_ANALYTICS_<FIELD>`` environment variables, e.g.
   REPO_ANALYTICS_WORKER_TIMEOUT=10

Only settings are read from disk; repository data stays in memory.
"""

import json
import logging
import os
from dataclasses import asdict, dataclass, fields
from pathlib import Path
from typing import Any, Dict, Optional

import platformdirs

from .shared.decimation import ReductionThresholds

APP_NAME = "repo-analytics"
APP_AUTHOR = "repo-analytics"
ENV_PREFIX = "REPO_ANALYTICS_"
_SETTINGS_FILE_NAME = "dashboard_settings.json"

# Logging is configured from these settings, so use the plain module logger
logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DashboardSettings:
    """Tunable parameters of the analytics pipeline."""

    log_level: str = "INFO"

    # Execution shell
    worker_timeout: float = 30.0
    max_workers: int = 2
    offload_threshold: int = 1000
    progressive_enabled: bool = True
    progressive_batch_size: int = 100
    progressive_batch_delay: float = 0.01

    # Histogram
    default_bin_policy: str = "sturges"

    # Data reduction
    passthrough_limit: int = 2000
    sample_target: int = 2000
    lttb_threshold: int = 5000
    lttb_target: int = 2000
    lttb_heavy_threshold: int = 10000
    lttb_heavy_target: int = 1500
    dedup_tolerance: float = 1.0

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any], base: Optional["DashboardSettings"] = None) -> "DashboardSettings":
        """Overlay known keys of ``data`` on ``base`` (defaults if omitted).

        Unknown keys and values that cannot be coerced are logged and skipped.
        """
        values = (base or cls()).to_dict()
        for f in fields(cls):
            if f.name not in data:
                continue
            try:
                values[f.name] = _coerce(data[f.name], type(values[f.name]))
            except (TypeError, ValueError):
                logger.warning("Ignoring invalid setting %s=%r", f.name, data[f.name])

        unknown = set(data) - {f.name for f in fields(cls)}
        if unknown:
            logger.warning("Ignoring unknown settings: %s", ", ".join(sorted(unknown)))
        return cls(**values)

    @property
    def thresholds(self) -> ReductionThresholds:
        return ReductionThresholds(
            passthrough_limit=self.passthrough_limit,
            sample_target=self.sample_target,
            lttb_threshold=self.lttb_threshold,
            lttb_target=self.lttb_target,
            lttb_heavy_threshold=self.lttb_heavy_threshold,
            lttb_heavy_target=self.lttb_heavy_target,
            dedup_tolerance=self.dedup_tolerance,
        )


def _coerce(value: Any, target: type) -> Any:
    if target is bool:
        if isinstance(value, bool):
            return value
        text = str(value).strip().lower()
        if text in ("1", "true", "yes", "on"):
            return True
        if text in ("0", "false", "no", "off"):
            return False
        raise ValueError(f"not a boolean: {value!r}")
    return target(value)


def get_settings_path() -> Path:
    """Location of the optional JSON settings file."""
    override = os.environ.get(f"{ENV_PREFIX}CONFIG")
    if override:
        return Path(override).expanduser()
    return Path(platformdirs.user_config_dir(APP_NAME, APP_AUTHOR)) / _SETTINGS_FILE_NAME


def _load_file(path: Path) -> Dict[str, Any]:
    if not path.exists():
        return {}
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)
    except (OSError, json.JSONDecodeError) as e:
        logger.warning("Failed to read settings file %s: %s", path, e)
        return {}
    if not isinstance(data, dict):
        logger.warning("Settings file %s does not contain a JSON object", path)
        return {}
    return data


def _load_env(environ: Dict[str, str]) -> Dict[str, Any]:
    values = {}
    for f in fields(DashboardSettings):
        key = f"{ENV_PREFIX}{f.name.upper()}"
        if key in environ:
            values[f.name] = environ[key]
    return values


def load_settings(environ: Optional[Dict[str, str]] = None) -> DashboardSettings:
    """Build settings from defaults, the settings file and the environment."""
    environ = dict(os.environ if environ is None else environ)
    settings = DashboardSettings.from_dict(_load_file(get_settings_path()))
    return DashboardSettings.from_dict(_load_env(environ), base=settings)


_settings: Optional[DashboardSettings] = None


def get_settings() -> DashboardSettings:
    """Cached process-wide settings."""
    global _settings
    if _settings is None:
        _settings = load_settings()
    return _settings


def reload_settings() -> DashboardSettings:
    """Drop the cache and re-read the settings sources."""
    global _settings
    _settings = load_settings()
    return _settings
