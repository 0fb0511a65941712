"""Load settings, profile and env configuration."""
from __future__ import annotations

import copy
import os
from pathlib import Path
from typing import Any

import yaml
from dotenv import load_dotenv

from jobfill.log import get_logger

log = get_logger(__name__)

load_dotenv()

PROJECT_ROOT: Path = Path(__file__).resolve().parent.parent
CONFIG_DIR: Path = Path(os.environ.get("JOBFILL_CONFIG_DIR", PROJECT_ROOT / "config"))
SETTINGS_PATH: Path = CONFIG_DIR / "settings.yaml"
PROFILE_PATH: Path = CONFIG_DIR / "profile.yaml"
DATA_DIR: Path = Path(os.environ.get("JOBFILL_DATA_DIR", PROJECT_ROOT / "data"))
REPORTS_DIR: Path = PROJECT_ROOT / "reports"

DEFAULT_SETTINGS: dict[str, Any] = {
    "detector": {
        "cache_ttl_seconds": 5.0,
    },
    "cache": {
        "path": "answer_cache.json",
        "similarity_floor": 0.6,
    },
    "autofill": {
        "simulate_typing": True,
        "delay_ms": 30,
        "skip_filled": False,
    },
    "backend": {
        "url": "",
        "timeout_seconds": 30,
        "model": "llama-3.3-70b-versatile",
        "max_tokens": 400,
    },
}


def _merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    out = copy.deepcopy(base)
    for key, value in (override or {}).items():
        if isinstance(value, dict) and isinstance(out.get(key), dict):
            out[key] = _merge(out[key], value)
        else:
            out[key] = value
    return out


def load_settings(path: Path | None = None) -> dict[str, Any]:
    """Defaults overlaid with settings.yaml when present."""
    path = path or SETTINGS_PATH
    if not path.exists():
        return copy.deepcopy(DEFAULT_SETTINGS)
    with open(path, "r", encoding="utf-8") as f:
        data = yaml.safe_load(f) or {}
    if not isinstance(data, dict):
        log.warning("Ignoring %s: expected a mapping, got %s", path.name, type(data).__name__)
        return copy.deepcopy(DEFAULT_SETTINGS)
    return _merge(DEFAULT_SETTINGS, data)


def load_profile(path: Path | None = None) -> dict[str, Any]:
    path = path or PROFILE_PATH
    if not path.exists():
        log.debug("No profile at %s, using empty profile", path)
        return {}
    with open(path, "r", encoding="utf-8") as f:
        data = yaml.safe_load(f) or {}

    # Older profiles nest everything under "profile:"
    if "profile" in data and isinstance(data["profile"], dict):
        nested = data.pop("profile")
        for key, value in nested.items():
            data.setdefault(key, value)

    return data


def get_env(key: str, default: str = "") -> str:
    return os.environ.get(key, default).strip()


def ensure_dirs() -> None:
    for d in (REPORTS_DIR, DATA_DIR):
        d.mkdir(parents=True, exist_ok=True)


def cache_path(settings: dict[str, Any]) -> Path:
    """Resolve the answer cache file; relative paths live under DATA_DIR."""
    p = Path(settings.get("cache", {}).get("path", "answer_cache.json"))
    return p if p.is_absolute() else DATA_DIR / p
