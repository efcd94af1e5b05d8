"""Fetch package contents listed in a manifest and verify their digests."""
from __future__ import annotations

import os
from pathlib import Path
from typing import BinaryIO, Iterable, Iterator, List, Optional, Tuple

import requests

from common.digest import CHUNK_SIZE, digest_chunks
from common.errors import DigestMismatch, FetchError, FileAccessError
from common.logging import get_logger
from common.paths import ensure_dir, get_cache_dir
from manifest.model import ContentFile, Manifest, PackageEntry

LOGGER = get_logger(__name__)


def resolve(manifest: Manifest, name: str, version: Optional[str] = None) -> Tuple[str, List[PackageEntry]]:
    """Return ``(version, entries)`` for a package.

    Without ``version`` the package must publish exactly one version.
    """

    versions = manifest.versions(name)
    if not versions:
        raise FetchError(f"Package {name} is not in the manifest")
    if version is None:
        if len(versions) != 1:
            raise FetchError(f"Package {name} has several versions, pick one of: {', '.join(versions)}")
        version = versions[0]
    if version not in versions:
        raise FetchError(f"{name}@{version} not found; available: {', '.join(versions)}")
    return version, manifest.entries(name, version)


class ContentFetcher:
    """Download ``ContentFile`` urls into a cache directory."""

    def __init__(
        self,
        *,
        cache_dir: Optional[Path] = None,
        timeout: float = 30.0,
        session: Optional[requests.Session] = None,
    ) -> None:
        self.cache_dir = Path(cache_dir) if cache_dir else get_cache_dir()
        self.timeout = timeout
        self.session = session or requests.Session()

    def fetch(self, item: ContentFile, destination: Path) -> Path:
        """Download ``item`` to ``destination``; the file only appears if its digest matches."""

        destination = Path(destination)
        ensure_dir(destination.parent)
        tmp = destination.with_name(destination.name + ".part")
        try:
            with self.session.get(item.url, stream=True, timeout=self.timeout) as response:
                response.raise_for_status()
                with tmp.open("wb") as handle:
                    actual = digest_chunks(_written(response.iter_content(chunk_size=CHUNK_SIZE), handle))
        except requests.RequestException as exc:
            _discard(tmp)
            raise FetchError(f"Failed to download {item.url}: {exc}") from exc
        except OSError as exc:
            _discard(tmp)
            raise FileAccessError(f"Cannot write {tmp}: {exc}") from exc

        if actual != item.digest:
            _discard(tmp)
            raise DigestMismatch(f"{item.path}: expected {item.digest}, got {actual}")
        os.replace(tmp, destination)
        LOGGER.debug("Fetched %s -> %s", item.url, destination)
        return destination

    def fetch_package(self, manifest: Manifest, name: str, version: Optional[str] = None) -> List[Path]:
        """Fetch every file of ``name``@``version`` into ``<cache>/<name>/<version>/``.

        Names come from the manifest, so each one must be a single plain path
        segment and the final path must stay inside the cache.
        """

        version, entries = resolve(manifest, name, version)
        target_dir = self.cache_dir / _segment(name, "package name") / _segment(version, "version")
        targets = [
            (item, self._inside_cache(target_dir / _segment(item.name, "file name")))
            for entry in entries
            for item in entry.contents
        ]
        fetched = [self.fetch(item, target) for item, target in targets]
        LOGGER.info("Fetched %s@%s (%d files) into %s", name, version, len(fetched), target_dir)
        return fetched

    def _inside_cache(self, path: Path) -> Path:
        root = self.cache_dir.resolve()
        resolved = path.resolve()
        if resolved != root and root not in resolved.parents:
            raise FetchError(f"{path} resolves outside the cache directory {root}")
        return path


def _segment(value: str, what: str) -> str:
    """Return ``value`` if it is usable as one file name component."""

    if (
        not value
        or value in (".", "..")
        or "/" in value
        or "\\" in value
        or "\0" in value
        or Path(value).is_absolute()
    ):
        raise FetchError(f"Refusing unsafe {what} {value!r}")
    return value


def _written(chunks: Iterable[bytes], handle: BinaryIO) -> Iterator[bytes]:
    for chunk in chunks:
        handle.write(chunk)
        yield chunk


def _discard(path: Path) -> None:
    if path.exists():
        path.unlink()


__all__ = ["ContentFetcher", "resolve"]
