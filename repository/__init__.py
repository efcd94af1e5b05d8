"""Version-control metadata for local package repositories."""

from .inspector import RepositoryInspector, parse_remote, repository_path

__all__ = ["RepositoryInspector", "parse_remote", "repository_path"]
