"""Runtime settings loaded from ``config.yaml``.

Values not present in the file keep their defaults so a fresh install runs
without any configuration at all.
"""
from __future__ import annotations

import os
from dataclasses import dataclass, fields
from pathlib import Path
from typing import Any, Dict, Optional, Tuple

import yaml

from common.errors import SettingsError
from common.paths import get_metadata_dir

CONFIG_ENV = "KRAIT_CONFIG"
CONFIG_FILENAME = "config.yaml"


@dataclass(frozen=True)
class Settings:
    """Generation and fetch parameters."""

    fetch_base: str = "https://raw.githubusercontent.com"
    providers: Tuple[str, ...] = ("github.com",)
    packages_dir: str = "packages"
    manifest_name: str = "manifest.lua"
    descriptor_name: str = "manifest.lua"
    max_script_steps: int = 1_000_000
    max_script_memory: int = 64 * 1024 * 1024
    dedupe_by_path: bool = True
    fetch_timeout: float = 30.0

    @classmethod
    def from_raw(cls, raw: Optional[Dict[str, Any]]) -> "Settings":
        raw = raw or {}
        known = {item.name for item in fields(cls)}
        unknown = sorted(set(raw) - known)
        if unknown:
            raise SettingsError("Unknown settings: " + ", ".join(unknown))
        defaults = cls()
        return cls(
            fetch_base=_as_str(raw, "fetch_base", defaults.fetch_base),
            providers=_as_hosts(raw.get("providers", defaults.providers)),
            packages_dir=_as_str(raw, "packages_dir", defaults.packages_dir),
            manifest_name=_as_str(raw, "manifest_name", defaults.manifest_name),
            descriptor_name=_as_str(raw, "descriptor_name", defaults.descriptor_name),
            max_script_steps=_as_int(raw, "max_script_steps", defaults.max_script_steps),
            max_script_memory=_as_int(raw, "max_script_memory", defaults.max_script_memory),
            dedupe_by_path=_as_bool(raw, "dedupe_by_path", defaults.dedupe_by_path),
            fetch_timeout=_as_float(raw, "fetch_timeout", defaults.fetch_timeout),
        )


def _as_str(raw: Dict[str, Any], key: str, default: str) -> str:
    value = raw.get(key, default)
    if not isinstance(value, str) or not value.strip():
        raise SettingsError(f"{key} must be a non-empty string")
    return value.strip()


def _as_int(raw: Dict[str, Any], key: str, default: int) -> int:
    value = raw.get(key, default)
    if isinstance(value, bool) or not isinstance(value, int) or value < 0:
        raise SettingsError(f"{key} must be a non-negative integer")
    return value


def _as_float(raw: Dict[str, Any], key: str, default: float) -> float:
    value = raw.get(key, default)
    if isinstance(value, bool) or not isinstance(value, (int, float)) or value <= 0:
        raise SettingsError(f"{key} must be a positive number")
    return float(value)


def _as_bool(raw: Dict[str, Any], key: str, default: bool) -> bool:
    value = raw.get(key, default)
    if not isinstance(value, bool):
        raise SettingsError(f"{key} must be true or false")
    return value


def _as_hosts(value: Any) -> Tuple[str, ...]:
    if isinstance(value, str):
        value = [value]
    if not isinstance(value, (list, tuple)):
        raise SettingsError("providers must be a list of host names")
    hosts = []
    for entry in value:
        if not isinstance(entry, str) or not entry.strip():
            raise SettingsError("providers must be a list of host names")
        hosts.append(entry.strip().lower())
    return tuple(hosts)


def config_path(path: Path | str | None = None) -> Path:
    if path:
        return Path(path)
    env = os.environ.get(CONFIG_ENV)
    if env:
        return Path(env)
    return get_metadata_dir() / CONFIG_FILENAME


def load_settings(path: Path | str | None = None) -> Settings:
    """Load settings from ``path`` (or the default location)."""

    target = config_path(path)
    if not target.exists():
        return Settings()
    try:
        data = yaml.safe_load(target.read_text(encoding="utf-8"))
    except yaml.YAMLError as exc:
        raise SettingsError(f"Config file {target} is not valid YAML: {exc}") from exc
    except OSError as exc:
        raise SettingsError(f"Cannot read config file {target}: {exc}") from exc
    if data is None:
        return Settings()
    if not isinstance(data, dict):
        raise SettingsError(f"Config file {target} must contain a mapping")
    return Settings.from_raw(data)


__all__ = ["CONFIG_ENV", "Settings", "config_path", "load_settings"]
