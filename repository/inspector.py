"""Git-backed repository inspector.

All queries shell out to the ``git`` executable against a checkout rooted at
``root``. Failures are reported as ``KraitError`` subclasses, never as raw
``CalledProcessError``.
"""
from __future__ import annotations

import re
import shutil
import subprocess
from pathlib import Path
from typing import Dict, Iterable, List, Tuple
from urllib.parse import urlparse

from common.errors import DetachedHead, NoSuchRevision, NoValidRemote, NotARepository
from common.logging import get_logger

LOGGER = get_logger(__name__)
DEFAULT_PROVIDERS = ("github.com",)
PREFERRED_REMOTE = "origin"

# user@host:owner/repo.git
_SCP_REMOTE = re.compile(r"^(?:[\w.+-]+@)?(?P<host>[\w.-]+):(?P<path>[^/\\].*)$")


def parse_remote(url: str) -> Tuple[str, str]:
    """Split a remote URL into ``(host, owner/repo)``; empty strings if unparseable."""

    url = (url or "").strip()
    parsed = urlparse(url)
    if parsed.scheme and parsed.netloc:
        host = parsed.hostname or ""
        path = parsed.path
    else:
        match = _SCP_REMOTE.match(url)
        if not match:
            return "", ""
        host = match.group("host")
        path = match.group("path")
    path = path.strip("/")
    if path.endswith(".git"):
        path = path[: -len(".git")]
    if not host or not path:
        return "", ""
    return host.lower(), path


def repository_path(url: str) -> str:
    """Return the canonical ``owner/repo`` location of a remote URL."""

    return parse_remote(url)[1]


class RepositoryInspector:
    """Read branch, commit and remote information from a git checkout."""

    def __init__(
        self,
        root: Path,
        *,
        providers: Iterable[str] = DEFAULT_PROVIDERS,
        git_bin: str | None = None,
    ) -> None:
        self.root = Path(root)
        self.providers = tuple(host.lower() for host in providers)
        self.git_bin = git_bin or shutil.which("git")
        self._checked = False

    def _git(self, *args: str) -> subprocess.CompletedProcess:
        if self.git_bin is None:
            raise NotARepository("git executable not available")
        cmd = [self.git_bin, "-C", str(self.root), *args]
        LOGGER.debug("Running command: %s", " ".join(cmd))
        try:
            return subprocess.run(cmd, capture_output=True, text=True, check=False)
        except OSError as exc:
            raise NotARepository(f"Cannot run git in {self.root}: {exc}") from exc

    def ensure_repository(self) -> None:
        if self._checked:
            return
        if not self.root.is_dir():
            raise NotARepository(f"{self.root} is not a directory")
        proc = self._git("rev-parse", "--is-inside-work-tree")
        if proc.returncode != 0 or proc.stdout.strip() != "true":
            raise NotARepository(f"{self.root} is not under version control")
        self._checked = True

    def current_branch(self) -> str:
        self.ensure_repository()
        proc = self._git("symbolic-ref", "--quiet", "--short", "HEAD")
        branch = proc.stdout.strip()
        if proc.returncode != 0 or not branch:
            raise DetachedHead(f"HEAD of {self.root} is not on a branch")
        return branch

    def head_commit(self) -> Tuple[str, int]:
        """Return ``(commit id, commit timestamp)`` of HEAD."""

        self.ensure_repository()
        proc = self._git("log", "-1", "--format=%H %ct", "HEAD")
        parts = proc.stdout.split()
        if proc.returncode != 0 or len(parts) != 2:
            raise NoSuchRevision(f"HEAD of {self.root} has no commits")
        return parts[0], int(parts[1])

    def last_commit_touching(self, subpath: str) -> str:
        self.ensure_repository()
        proc = self._git("log", "-1", "--format=%H", "--", subpath)
        commit = proc.stdout.strip()
        if proc.returncode != 0 or not commit:
            raise NoSuchRevision(f"{subpath} has no history in {self.root}")
        return commit

    def remotes(self) -> Dict[str, str]:
        """Return configured remotes as ``{name: fetch url}``."""

        self.ensure_repository()
        proc = self._git("remote")
        remotes: Dict[str, str] = {}
        for name in proc.stdout.split():
            url_proc = self._git("remote", "get-url", name)
            if url_proc.returncode == 0 and url_proc.stdout.strip():
                remotes[name] = url_proc.stdout.strip()
        return remotes

    def primary_remote_url(self) -> str:
        """Return the first remote hosted on a supported provider, ``origin`` first."""

        remotes = self.remotes()
        ordered: List[str] = sorted(remotes, key=lambda name: (name != PREFERRED_REMOTE, name))
        for name in ordered:
            host, path = parse_remote(remotes[name])
            if host in self.providers and path:
                LOGGER.debug("Using remote %s (%s)", name, remotes[name])
                return remotes[name]
        supported = ", ".join(self.providers) or "none"
        raise NoValidRemote(f"No remote of {self.root} points at a supported provider ({supported})")


__all__ = ["DEFAULT_PROVIDERS", "RepositoryInspector", "parse_remote", "repository_path"]
