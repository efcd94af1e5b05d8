"""Read and write manifest files on disk."""
from __future__ import annotations

import os
from pathlib import Path
from typing import Optional

from common.errors import FileAccessError
from common.logging import get_logger

from .backend import ScriptBackend
from .codec import parse, serialize
from .model import Manifest

LOGGER = get_logger(__name__)


def load_manifest(path: Path, *, backend: Optional[ScriptBackend] = None) -> Manifest:
    path = Path(path)
    try:
        text = path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as exc:
        raise FileAccessError(f"Cannot read manifest {path}: {exc}") from exc
    manifest = parse(text, backend=backend)
    LOGGER.debug("Manifest loaded from %s (%d packages)", path, len(manifest.packages))
    return manifest


def load_or_default(path: Path, *, backend: Optional[ScriptBackend] = None) -> Manifest:
    """Load ``path`` if it exists, otherwise return an empty manifest."""

    if Path(path).exists():
        return load_manifest(path, backend=backend)
    return Manifest()


def save_manifest(manifest: Manifest, path: Path) -> Path:
    """Write ``manifest`` next to ``path`` and rename it into place."""

    path = Path(path)
    tmp = path.with_name(path.name + ".tmp")
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        tmp.write_text(serialize(manifest), encoding="utf-8")
        os.replace(tmp, path)
    except (OSError, UnicodeError) as exc:
        if tmp.exists():
            tmp.unlink()
        raise FileAccessError(f"Cannot write manifest {path}: {exc}") from exc
    LOGGER.info("Manifest written to %s", path)
    return path


__all__ = ["load_manifest", "load_or_default", "save_manifest"]
