"""Per-package descriptor files.

Each package directory carries a small Lua script declaring at least::

    version = "1.0.0"
"""
from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Optional

from common.errors import FileAccessError, ManifestParseError, MissingPackageDescriptor

from .backend import ROOT_TABLE, LuaBackend, ScriptBackend

DEFAULT_DESCRIPTOR = "manifest.lua"


@dataclass(frozen=True)
class PackageDescriptor:
    version: str
    fields: Dict[str, Any] = field(default_factory=dict)


def read_descriptor(
    package_dir: Path,
    *,
    name: str = DEFAULT_DESCRIPTOR,
    backend: Optional[ScriptBackend] = None,
) -> PackageDescriptor:
    path = Path(package_dir) / name
    if not path.is_file():
        raise MissingPackageDescriptor(f"{path} not found")
    try:
        source = path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as exc:
        raise FileAccessError(f"Cannot read {path}: {exc}") from exc
    result = (backend or LuaBackend()).execute(source, f"{path.parent.name}/{name}")
    declared = {key: value for key, value in result.namespace.items() if key != ROOT_TABLE}
    version = declared.get("version")
    if isinstance(version, float) and version.is_integer():
        version = int(version)
    if version is not None and (isinstance(version, bool) or not isinstance(version, (str, int, float))):
        raise ManifestParseError(f"{path}: version must be a string")
    version = "" if version is None else str(version).strip()
    if not version:
        raise MissingPackageDescriptor(f"{path} declares no version")
    return PackageDescriptor(version=version, fields=declared)


__all__ = ["DEFAULT_DESCRIPTOR", "PackageDescriptor", "read_descriptor"]
