from __future__ import annotations

import os
import shutil
import subprocess
import sys
from pathlib import Path
from typing import Dict

import pytest

REPO_ROOT = Path(__file__).resolve().parents[1]
if str(REPO_ROOT) not in sys.path:
    sys.path.insert(0, str(REPO_ROOT))

GIT_BIN = shutil.which("git")
COMMIT_DATE = "@1704067200 +0000"
COMMIT_TIMESTAMP = 1704067200


class GitRepo:
    """Throwaway git checkout used by inspector and generation tests."""

    def __init__(self, root: Path) -> None:
        self.root = root
        self.env = os.environ.copy()
        self.env.update(
            {
                "GIT_AUTHOR_NAME": "krait tests",
                "GIT_AUTHOR_EMAIL": "tests@example.com",
                "GIT_COMMITTER_NAME": "krait tests",
                "GIT_COMMITTER_EMAIL": "tests@example.com",
                "GIT_AUTHOR_DATE": COMMIT_DATE,
                "GIT_COMMITTER_DATE": COMMIT_DATE,
                "GIT_CONFIG_NOSYSTEM": "1",
                "GIT_CONFIG_GLOBAL": os.devnull,
            }
        )

    def git(self, *args: str) -> str:
        proc = subprocess.run(
            [GIT_BIN, "-c", "commit.gpgsign=false", "-C", str(self.root), *args],
            capture_output=True,
            text=True,
            env=self.env,
            check=True,
        )
        return proc.stdout.strip()

    def write(self, rel_path: str, text: str) -> Path:
        path = self.root / rel_path
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(text, encoding="utf-8")
        return path

    def add_package(self, name: str, version: str, files: Dict[str, str]) -> Path:
        self.write(f"packages/{name}/manifest.lua", f'version = "{version}"\n')
        for filename, text in files.items():
            self.write(f"packages/{name}/{filename}", text)
        return self.root / "packages" / name

    def commit(self, message: str = "update") -> str:
        self.git("add", "-A")
        self.git("commit", "-q", "-m", message)
        return self.git("rev-parse", "HEAD")


@pytest.fixture
def git_repo(tmp_path: Path) -> GitRepo:
    if GIT_BIN is None:
        pytest.skip("git is not installed")
    root = tmp_path / "repo"
    root.mkdir()
    repo = GitRepo(root)
    repo.git("init", "-q")
    repo.git("symbolic-ref", "HEAD", "refs/heads/main")
    repo.git("remote", "add", "origin", "https://github.com/example/pkgs.git")
    return repo


@pytest.fixture(autouse=True)
def isolated_home(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    home = tmp_path / "krait-home"
    monkeypatch.setenv("KRAIT_HOME", str(home))
    monkeypatch.delenv("KRAIT_CONFIG", raising=False)
    return home
