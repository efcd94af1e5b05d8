"""Path helpers to keep directory layout consistent."""
from __future__ import annotations

import os
from pathlib import Path


def get_metadata_dir() -> Path:
    override = os.environ.get("KRAIT_HOME")
    if override:
        return Path(override).expanduser()
    return Path.home() / ".krait"


def get_cache_dir() -> Path:
    return get_metadata_dir() / "cache"


def get_local_manifest_path(name: str = "manifest.lua") -> Path:
    return get_metadata_dir() / name


def ensure_dir(path: Path) -> Path:
    path.mkdir(parents=True, exist_ok=True)
    return path
