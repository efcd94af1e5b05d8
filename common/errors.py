"""Structured error kinds raised by the krait core.

Every failure carries a ``kind`` (stable, machine readable) and a ``detail``
string. The core only raises; the command line boundary decides exit codes.
"""
from __future__ import annotations


class KraitError(RuntimeError):
    kind = "KraitError"

    def __init__(self, detail: str) -> None:
        super().__init__(detail)
        self.detail = detail

    def __str__(self) -> str:
        return f"{self.kind}: {self.detail}"


class NotARepository(KraitError):
    kind = "NotARepository"


class DetachedHead(KraitError):
    kind = "DetachedHead"


class NoSuchRevision(KraitError):
    kind = "NoSuchRevision"


class NoValidRemote(KraitError):
    kind = "NoValidRemote"


class NoPackagesDirectory(KraitError):
    kind = "NoPackagesDirectory"


class MissingPackageDescriptor(KraitError):
    kind = "MissingPackageDescriptor"


class UnsupportedNestedContent(KraitError):
    kind = "UnsupportedNestedContent"


class FileAccessError(KraitError):
    """File open/read/write failure."""

    kind = "IOError"


class ManifestParseError(KraitError):
    kind = "ManifestParseError"


class SettingsError(KraitError):
    kind = "SettingsError"


class FetchError(KraitError):
    kind = "FetchError"


class DigestMismatch(FetchError):
    kind = "DigestMismatch"


__all__ = [
    "DetachedHead",
    "DigestMismatch",
    "FetchError",
    "FileAccessError",
    "KraitError",
    "ManifestParseError",
    "MissingPackageDescriptor",
    "NoPackagesDirectory",
    "NoSuchRevision",
    "NoValidRemote",
    "NotARepository",
    "SettingsError",
    "UnsupportedNestedContent",
]
