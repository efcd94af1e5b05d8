"""krait command line.

This is the only place that maps ``KraitError`` to an exit status.
"""
from __future__ import annotations

import argparse
import json
import shutil
import sys
from dataclasses import replace
from pathlib import Path
from typing import List, Optional

from client.fetch import ContentFetcher
from common.config import load_settings
from common.errors import FileAccessError, KraitError
from common.logging import configure_logging, get_logger
from common.paths import get_cache_dir
from manifest.model import Manifest
from manifest.store import load_manifest
from orchestrator.generate import run_generation, script_backend

LOGGER = get_logger(__name__)


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(prog="krait", description="Package repository manifest tool")
    parser.add_argument("--config", type=Path, help="Settings file (default: $KRAIT_CONFIG or ~/.krait/config.yaml)")
    parser.add_argument("--log-level", default=None, help="Logging level (default: $KRAIT_LOG_LEVEL or INFO)")
    sub = parser.add_subparsers(dest="command", required=True)

    gen = sub.add_parser("generate", help="Scan packages/ and update the repository manifest")
    gen.add_argument("--repo", type=Path, default=Path("."), help="Repository root (default: current directory)")
    gen.add_argument("--output", type=Path, help="Manifest path (default: <repo>/manifest.lua)")
    gen.add_argument("--append", action="store_true", help="Append entries even when the same path is already listed")
    gen.add_argument("--install-local", action="store_true", help="Also copy the manifest to the local metadata directory")

    show = sub.add_parser("show", help="Print packages listed in a manifest")
    show.add_argument("name", nargs="?", help="Package name")
    show.add_argument("version", nargs="?", help="Package version")
    show.add_argument("--manifest", type=Path, help="Manifest file (default: manifest_name setting in the current directory)")
    show.add_argument("--json", action="store_true", help="Emit JSON instead of text")

    fetch = sub.add_parser("fetch", help="Download and verify a package's files")
    fetch.add_argument("name", help="Package name")
    fetch.add_argument("version", nargs="?", help="Package version")
    fetch.add_argument("--manifest", type=Path, help="Manifest file (default: manifest_name setting in the current directory)")
    fetch.add_argument("--dest", type=Path, help="Cache directory (default: ~/.krait/cache)")

    sub.add_parser("clean", help="Remove the local package cache")
    return parser.parse_args(argv)


def _show(manifest: Manifest, args: argparse.Namespace) -> None:
    packages = manifest.to_dict()["packages"]
    if args.name:
        packages = {args.name: packages.get(args.name, {})}
        if args.version:
            packages[args.name] = {args.version: packages[args.name].get(args.version, [])}
    if args.json:
        print(json.dumps(packages, indent=2, sort_keys=True, ensure_ascii=False))
        return
    print(f"repository: {manifest.repository_url or '(unset)'} @ {manifest.latest_commit or '(none)'}")
    for name in sorted(packages):
        for version in sorted(packages[name]):
            for entry in packages[name][version]:
                print(f"{name} {version}  {entry['path']}  ({len(entry['contents'])} files, commit {entry['commit'][:12]})")
                if args.version:
                    for item in entry["contents"]:
                        print(f"    {item['digest']}  {item['url']}")


def run(args: argparse.Namespace) -> int:
    settings = load_settings(args.config)
    if args.command == "generate":
        if args.append:
            settings = replace(settings, dedupe_by_path=False)
        path = run_generation(args.repo, output=args.output, settings=settings, install_local=args.install_local)
        print(path)
        return 0
    if args.command == "clean":
        cache_dir = get_cache_dir()
        if cache_dir.exists():
            try:
                shutil.rmtree(cache_dir)
            except OSError as exc:
                raise FileAccessError(f"Cannot remove {cache_dir}: {exc}") from exc
        LOGGER.info("Cache cleaned: %s", cache_dir)
        return 0

    manifest_path = args.manifest or Path(settings.manifest_name)
    manifest = load_manifest(manifest_path, backend=script_backend(settings))
    if args.command == "show":
        _show(manifest, args)
        return 0
    fetcher = ContentFetcher(cache_dir=args.dest, timeout=settings.fetch_timeout)
    for path in fetcher.fetch_package(manifest, args.name, args.version):
        print(path)
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    args = parse_args(argv)
    configure_logging(args.log_level)
    try:
        return run(args)
    except KraitError as exc:
        LOGGER.error("%s", exc)
        return 1


if __name__ == "__main__":
    sys.exit(main())
