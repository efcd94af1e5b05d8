"""In-memory manifest types and the merge engine.

``merge`` and ``upsert`` never mutate their input: they return a new
``Manifest`` in which only the touched ``packages[name][version]`` list
differs from the original.
"""
from __future__ import annotations

from copy import deepcopy
from dataclasses import asdict, dataclass, field
from typing import Any, Dict, List


@dataclass
class ContentFile:
    """One file inside a package directory."""

    name: str
    path: str
    digest: str
    url: str


@dataclass
class PackageEntry:
    """One scanned package directory for one version."""

    path: str
    commit: str
    contents: List[ContentFile] = field(default_factory=list)


@dataclass
class Manifest:
    """Root record describing every package a repository publishes."""

    repository_url: str = ""
    latest_commit: str = ""
    last_update: int = 0
    packages: Dict[str, Dict[str, List[PackageEntry]]] = field(default_factory=dict)

    def versions(self, package_name: str) -> List[str]:
        return sorted(self.packages.get(package_name, {}))

    def entries(self, package_name: str, version: str) -> List[PackageEntry]:
        return list(self.packages.get(package_name, {}).get(version, []))

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def merge(existing: Manifest, package_name: str, version: str, entry: PackageEntry) -> Manifest:
    """Append ``entry`` under ``packages[package_name][version]``.

    Entries are never replaced or deduplicated here; see ``upsert`` for the
    path-keyed variant used by generation.
    """

    merged = deepcopy(existing)
    append_entry(merged, package_name, version, deepcopy(entry))
    return merged


def upsert(existing: Manifest, package_name: str, version: str, entry: PackageEntry) -> Manifest:
    """Replace the entry with the same ``path`` in place, or append if there is none."""

    updated = deepcopy(existing)
    replace_entry(updated, package_name, version, deepcopy(entry))
    return updated


def append_entry(manifest: Manifest, package_name: str, version: str, entry: PackageEntry) -> None:
    """In-place ``merge``: ``manifest`` is modified and ``entry`` is stored as given."""

    manifest.packages.setdefault(package_name, {}).setdefault(version, []).append(entry)


def replace_entry(manifest: Manifest, package_name: str, version: str, entry: PackageEntry) -> None:
    """In-place ``upsert``."""

    current = manifest.packages.get(package_name, {}).get(version, [])
    for index, candidate in enumerate(current):
        if candidate.path == entry.path:
            current[index] = entry
            return
    append_entry(manifest, package_name, version, entry)


__all__ = ["ContentFile", "Manifest", "PackageEntry", "append_entry", "merge", "replace_entry", "upsert"]
