"""Tests for the fetch-and-verify client."""
from __future__ import annotations

import hashlib
import tempfile
from pathlib import Path
from typing import Iterator, List
from unittest import TestCase
from unittest.mock import MagicMock

import requests

from client.fetch import ContentFetcher, resolve
from common.errors import DigestMismatch, FetchError
from manifest.model import ContentFile, Manifest, PackageEntry


class _FakeResponse:
    def __init__(self, chunks: List[bytes], status_error: Exception | None = None) -> None:
        self.chunks = chunks
        self.status_error = status_error

    def __enter__(self) -> "_FakeResponse":
        return self

    def __exit__(self, *exc_info: object) -> None:
        return None

    def raise_for_status(self) -> None:
        if self.status_error is not None:
            raise self.status_error

    def iter_content(self, chunk_size: int = 1) -> Iterator[bytes]:
        return iter(self.chunks)


def _content(payload: bytes, name: str = "a.txt") -> ContentFile:
    return ContentFile(
        name=name,
        path=f"packages/foo/{name}",
        digest=hashlib.sha1(payload).hexdigest(),
        url=f"https://raw.example.com/o/r/main/packages/foo/{name}",
    )


def _manifest(*versions: str) -> Manifest:
    entry = PackageEntry(path="packages/foo", commit="c", contents=[_content(b"hi")])
    return Manifest(packages={"foo": {version: [entry] for version in versions}})


class ResolveTests(TestCase):
    def test_single_version_is_implicit(self) -> None:
        version, entries = resolve(_manifest("1.0.0"), "foo")
        self.assertEqual(version, "1.0.0")
        self.assertEqual(entries[0].path, "packages/foo")

    def test_ambiguous_version_lists_choices(self) -> None:
        with self.assertRaises(FetchError) as ctx:
            resolve(_manifest("1.0.0", "2.0.0"), "foo")
        self.assertIn("1.0.0, 2.0.0", ctx.exception.detail)

    def test_unknown_package_and_version(self) -> None:
        with self.assertRaises(FetchError):
            resolve(_manifest("1.0.0"), "bar")
        with self.assertRaises(FetchError):
            resolve(_manifest("1.0.0"), "foo", "9.9")


class ContentFetcherTests(TestCase):
    def setUp(self) -> None:
        tmp = tempfile.TemporaryDirectory()
        self.addCleanup(tmp.cleanup)
        self.cache = Path(tmp.name) / "cache"
        self.session = MagicMock()

    def _fetcher(self) -> ContentFetcher:
        return ContentFetcher(cache_dir=self.cache, timeout=5.0, session=self.session)

    def test_fetch_writes_verified_file(self) -> None:
        self.session.get.return_value = _FakeResponse([b"h", b"i"])
        target = self.cache / "a.txt"
        result = self._fetcher().fetch(_content(b"hi"), target)
        self.assertEqual(result, target)
        self.assertEqual(target.read_bytes(), b"hi")
        self.session.get.assert_called_once_with(
            "https://raw.example.com/o/r/main/packages/foo/a.txt", stream=True, timeout=5.0
        )

    def test_digest_mismatch_leaves_nothing_behind(self) -> None:
        self.session.get.return_value = _FakeResponse([b"tampered"])
        target = self.cache / "a.txt"
        with self.assertRaises(DigestMismatch):
            self._fetcher().fetch(_content(b"hi"), target)
        self.assertFalse(target.exists())
        self.assertEqual(list(self.cache.iterdir()), [])

    def test_http_error_becomes_fetch_error(self) -> None:
        self.session.get.return_value = _FakeResponse([], status_error=requests.HTTPError("404 Not Found"))
        with self.assertRaises(FetchError) as ctx:
            self._fetcher().fetch(_content(b"hi"), self.cache / "a.txt")
        self.assertNotIsInstance(ctx.exception, DigestMismatch)
        self.assertIn("404", ctx.exception.detail)

    def test_connection_error_becomes_fetch_error(self) -> None:
        self.session.get.side_effect = requests.ConnectionError("offline")
        with self.assertRaises(FetchError):
            self._fetcher().fetch(_content(b"hi"), self.cache / "a.txt")

    def test_fetch_package_places_files_under_name_and_version(self) -> None:
        self.session.get.return_value = _FakeResponse([b"hi"])
        paths = self._fetcher().fetch_package(_manifest("1.0.0"), "foo")
        self.assertEqual(paths, [self.cache / "foo" / "1.0.0" / "a.txt"])
        self.assertEqual(paths[0].read_bytes(), b"hi")

    def _manifest_with(self, name: str = "foo", version: str = "1.0.0", file_name: str = "a.txt") -> Manifest:
        entry = PackageEntry(path="packages/foo", commit="c", contents=[_content(b"pwned", name=file_name)])
        return Manifest(packages={name: {version: [entry]}})

    def test_file_name_escaping_the_cache_is_rejected(self) -> None:
        self.session.get.return_value = _FakeResponse([b"pwned"])
        with self.assertRaises(FetchError):
            self._fetcher().fetch_package(self._manifest_with(file_name="../../../escaped.txt"), "foo")
        self.session.get.assert_not_called()
        self.assertFalse((self.cache.parent / "escaped.txt").exists())

    def test_unsafe_package_name_and_version_are_rejected(self) -> None:
        self.session.get.return_value = _FakeResponse([b"pwned"])
        for name, version in (("..", "1.0.0"), ("foo", "../../x"), ("/tmp/foo", "1.0.0"), ("foo", "a\\b")):
            with self.subTest(name=name, version=version):
                with self.assertRaises(FetchError):
                    self._fetcher().fetch_package(self._manifest_with(name=name, version=version), name)
        self.session.get.assert_not_called()

    def test_symlinked_package_dir_outside_cache_is_rejected(self) -> None:
        outside = self.cache.parent / "outside"
        outside.mkdir()
        self.cache.mkdir()
        (self.cache / "foo").symlink_to(outside, target_is_directory=True)
        self.session.get.return_value = _FakeResponse([b"pwned"])
        with self.assertRaises(FetchError):
            self._fetcher().fetch_package(self._manifest_with(), "foo")
        self.assertEqual(list(outside.iterdir()), [])
