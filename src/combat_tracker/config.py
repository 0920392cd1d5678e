"""Configuration helpers for tracker options persistence."""
from __future__ import annotations

import json
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict

_DEFAULT_LOG_LEVEL = "INFO"
_LOG_LEVELS = ("TRACE", "DEBUG", "INFO", "SUCCESS", "WARNING", "ERROR", "CRITICAL")


def get_user_data_dir() -> Path:
    """Return the per-user data directory."""
    if os.name == "nt":
        base = os.environ.get("APPDATA")
        if base:
            return Path(base) / "CombatTracker"
        return Path.home() / "CombatTracker"
    return Path.home() / ".config" / "combat_tracker"


def get_default_config_path() -> Path:
    """Return the default per-user config path."""
    return get_user_data_dir() / "config.json"


def get_encounter_dir() -> Path:
    """Return the default directory for stored encounters."""
    return get_user_data_dir() / "encounters"


@dataclass(frozen=True, slots=True)
class TrackerConfig:
    """User options for a tracker session."""

    data_dir: Path
    autosave: bool = True
    log_level: str = _DEFAULT_LOG_LEVEL
    rng_seed: int | None = None


def default_config() -> TrackerConfig:
    return TrackerConfig(data_dir=get_encounter_dir())


def _normalize_log_level(value: object) -> str:
    if isinstance(value, str) and value.upper() in _LOG_LEVELS:
        return value.upper()
    return _DEFAULT_LOG_LEVEL


def _normalize_seed(value: object) -> int | None:
    if isinstance(value, bool) or not isinstance(value, int):
        return None
    return value


def _from_mapping(raw: Dict[str, Any]) -> TrackerConfig:
    data_dir = raw.get("data_dir")
    autosave = raw.get("autosave")
    return TrackerConfig(
        data_dir=Path(data_dir) if isinstance(data_dir, str) and data_dir.strip() else get_encounter_dir(),
        autosave=autosave if isinstance(autosave, bool) else True,
        log_level=_normalize_log_level(raw.get("log_level")),
        rng_seed=_normalize_seed(raw.get("rng_seed")),
    )


def load_config(path: Path | None = None) -> TrackerConfig:
    """Load config from disk or return defaults."""
    config_path = path or get_default_config_path()
    try:
        raw = json.loads(config_path.read_text(encoding="utf-8"))
    except FileNotFoundError:
        return default_config()
    except (OSError, ValueError):
        return default_config()
    if not isinstance(raw, dict):
        return default_config()
    return _from_mapping(raw)


def save_config(config: TrackerConfig, path: Path | None = None) -> None:
    """Persist config to disk."""
    config_path = path or get_default_config_path()
    config_path.parent.mkdir(parents=True, exist_ok=True)
    payload = {
        "data_dir": str(config.data_dir),
        "autosave": bool(config.autosave),
        "log_level": _normalize_log_level(config.log_level),
        "rng_seed": _normalize_seed(config.rng_seed),
    }
    config_path.write_text(json.dumps(payload, indent=2, sort_keys=True), encoding="utf-8")
