"""GENERATE stage: scan ``packages/`` and merge it into the repository manifest.

The whole manifest is built in memory first; nothing is written unless every
package directory scanned cleanly.
"""
from __future__ import annotations

import shutil
from copy import deepcopy
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional
from urllib.parse import quote

from common.config import Settings
from common.digest import file_digest
from common.errors import FileAccessError, NoPackagesDirectory, UnsupportedNestedContent
from common.logging import get_logger
from common.paths import ensure_dir, get_local_manifest_path
from manifest.backend import LuaBackend, ScriptBackend
from manifest.descriptor import read_descriptor
from manifest.model import ContentFile, Manifest, PackageEntry, append_entry, replace_entry
from manifest.store import load_or_default, save_manifest
from repository.inspector import RepositoryInspector, repository_path

LOGGER = get_logger(__name__)


@dataclass(frozen=True)
class ScannedPackage:
    name: str
    version: str
    entry: PackageEntry


def fetch_url(fetch_base: str, repository_url: str, branch: str, path: str) -> str:
    """``<fetch_base>/<repository_url>/<branch>/<path>``"""

    return "/".join(
        [
            fetch_base.rstrip("/"),
            repository_url.strip("/"),
            quote(branch, safe="/"),
            quote(path, safe="/"),
        ]
    )


def package_dirs(repo_root: Path, settings: Settings) -> List[Path]:
    packages_root = Path(repo_root) / settings.packages_dir
    if not packages_root.is_dir():
        raise NoPackagesDirectory(f"{packages_root} does not exist")
    dirs = []
    for child in sorted(packages_root.iterdir(), key=lambda item: item.name):
        if child.is_dir():
            dirs.append(child)
        else:
            LOGGER.debug("Skipping %s: not a package directory", child)
    return dirs


def script_backend(settings: Settings) -> LuaBackend:
    return LuaBackend(step_limit=settings.max_script_steps, memory_limit=settings.max_script_memory)


def _check_name(path: Path) -> None:
    # Undecodable bytes surface as lone surrogates and cannot go into a URL or the manifest.
    try:
        path.name.encode("utf-8")
    except UnicodeEncodeError as exc:
        raise FileAccessError(f"{path!r} has a name that is not valid UTF-8") from exc


def scan_package(
    package_dir: Path,
    *,
    repo_root: Path,
    repository_url: str,
    branch: str,
    inspector: RepositoryInspector,
    settings: Settings,
    backend: ScriptBackend,
) -> ScannedPackage:
    """Describe one package directory; every file is hashed from disk."""

    _check_name(package_dir)
    descriptor = read_descriptor(package_dir, name=settings.descriptor_name, backend=backend)
    rel_dir = package_dir.relative_to(repo_root).as_posix()

    files: List[Path] = []
    for child in sorted(package_dir.iterdir(), key=lambda item: item.name):
        if child.is_dir():
            raise UnsupportedNestedContent(f"{rel_dir} contains directory {child.name}")
        if child.name == settings.descriptor_name:
            continue
        _check_name(child)
        files.append(child)

    commit = inspector.last_commit_touching(rel_dir)
    contents = []
    for child in files:
        rel_path = child.relative_to(repo_root).as_posix()
        contents.append(
            ContentFile(
                name=child.name,
                path=rel_path,
                digest=file_digest(child),
                url=fetch_url(settings.fetch_base, repository_url, branch, rel_path),
            )
        )
    entry = PackageEntry(path=rel_dir, commit=commit, contents=contents)
    LOGGER.info("Scanned %s %s (%d files)", package_dir.name, descriptor.version, len(contents))
    return ScannedPackage(name=package_dir.name, version=descriptor.version, entry=entry)


def generate(
    repo_root: Path,
    existing: Optional[Manifest] = None,
    *,
    settings: Optional[Settings] = None,
    inspector: Optional[RepositoryInspector] = None,
    backend: Optional[ScriptBackend] = None,
) -> Manifest:
    """Return ``existing`` (or an empty manifest) merged with the packages on disk."""

    repo_root = Path(repo_root)
    settings = settings or Settings()
    inspector = inspector or RepositoryInspector(repo_root, providers=settings.providers)
    backend = backend or script_backend(settings)
    manifest = existing if existing is not None else Manifest()
    add = replace_entry if settings.dedupe_by_path else append_entry

    dirs = package_dirs(repo_root, settings)

    repository_url = manifest.repository_url
    if not repository_url:
        repository_url = repository_path(inspector.primary_remote_url())
    latest_commit, last_update = inspector.head_commit()
    branch = inspector.current_branch()

    scanned = [
        scan_package(
            package_dir,
            repo_root=repo_root,
            repository_url=repository_url,
            branch=branch,
            inspector=inspector,
            settings=settings,
            backend=backend,
        )
        for package_dir in dirs
    ]

    result = Manifest(
        repository_url=repository_url,
        latest_commit=latest_commit,
        last_update=last_update,
        packages=deepcopy(manifest.packages),
    )
    for package in scanned:
        add(result, package.name, package.version, package.entry)
    return result


def run_generation(
    repo_root: Path,
    *,
    output: Optional[Path] = None,
    settings: Optional[Settings] = None,
    install_local: bool = False,
) -> Path:
    """Load the current manifest, regenerate it and write it back."""

    repo_root = Path(repo_root)
    settings = settings or Settings()
    backend = script_backend(settings)
    manifest_path = Path(output) if output else repo_root / settings.manifest_name
    existing = load_or_default(manifest_path, backend=backend)
    manifest = generate(repo_root, existing, settings=settings, backend=backend)
    save_manifest(manifest, manifest_path)
    if install_local:
        local_path = get_local_manifest_path(settings.manifest_name)
        try:
            ensure_dir(local_path.parent)
            shutil.copyfile(manifest_path, local_path)
        except OSError as exc:
            raise FileAccessError(f"Cannot copy manifest to {local_path}: {exc}") from exc
        LOGGER.info("Manifest copied to %s", local_path)
    return manifest_path


__all__ = ["ScannedPackage", "fetch_url", "generate", "package_dirs", "run_generation", "scan_package", "script_backend"]
