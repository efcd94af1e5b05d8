"""Convert manifests to and from their Lua script form.

The text form is a list of assignments against ``krait.manifest``::

    krait.manifest.repository_url = "owner/repo"
    krait.manifest.packages["foo"]["1.0.0"] = { { path = ..., contents = {...} } }

``parse(serialize(m)) == m`` holds for every manifest built by generation.
"""
from __future__ import annotations

from typing import Any, Dict, List, Optional

from common.errors import ManifestParseError

from .backend import MANIFEST_FIELD, ROOT_TABLE, LuaBackend, ScriptBackend
from .model import ContentFile, Manifest, PackageEntry

HEADER = (
    "-- This file is generated by krait. Do not edit it by hand.",
    "-- Regenerate it with `krait generate` from the repository root.",
)
ROOT = f"{ROOT_TABLE}.{MANIFEST_FIELD}"
CHUNK_NAME = "manifest"

_ESCAPES = {
    "\\": "\\\\",
    '"': '\\"',
    "\n": "\\n",
    "\r": "\\r",
    "\t": "\\t",
}


# Parsing ---------------------------------------------------------------


def parse(text: str, *, backend: Optional[ScriptBackend] = None) -> Manifest:
    """Run a manifest script and coerce what it produced into a ``Manifest``."""

    backend = backend or LuaBackend()
    result = backend.execute(text, CHUNK_NAME)
    if isinstance(result.returned, dict):
        raw = result.returned
    else:
        root = result.namespace.get(ROOT_TABLE)
        raw = root.get(MANIFEST_FIELD) if isinstance(root, dict) else None
    return _coerce_manifest(raw)


def _coerce_manifest(raw: Any) -> Manifest:
    data = _mapping(raw, ROOT)
    packages: Dict[str, Dict[str, List[PackageEntry]]] = {}
    for name, versions in _mapping(data.get("packages"), f"{ROOT}.packages").items():
        name = _key(name, f"{ROOT}.packages")
        where = f"{ROOT}.packages[{_quote(name)}]"
        packages[name] = {}
        for version, entries in _mapping(versions, where).items():
            version = _key(version, where)
            entry_where = f"{where}[{_quote(version)}]"
            packages[name][version] = [
                _coerce_entry(item, f"{entry_where}[{index}]")
                for index, item in enumerate(_sequence(entries, entry_where), start=1)
            ]
    return Manifest(
        repository_url=_string(data.get("repository_url"), f"{ROOT}.repository_url"),
        latest_commit=_string(data.get("latest_commit"), f"{ROOT}.latest_commit"),
        last_update=_integer(data.get("last_update"), f"{ROOT}.last_update"),
        packages=packages,
    )


def _coerce_entry(raw: Any, where: str) -> PackageEntry:
    data = _mapping(raw, where)
    contents_where = f"{where}.contents"
    contents = []
    for index, item in enumerate(_sequence(data.get("contents"), contents_where), start=1):
        file_where = f"{contents_where}[{index}]"
        fields = _mapping(item, file_where)
        contents.append(
            ContentFile(
                name=_string(fields.get("name"), f"{file_where}.name"),
                path=_string(fields.get("path"), f"{file_where}.path"),
                digest=_string(fields.get("digest"), f"{file_where}.digest"),
                url=_string(fields.get("url"), f"{file_where}.url"),
            )
        )
    return PackageEntry(
        path=_string(data.get("path"), f"{where}.path"),
        commit=_string(data.get("commit"), f"{where}.commit"),
        contents=contents,
    )


def _type_name(value: Any) -> str:
    if isinstance(value, bool):
        return "boolean"
    if isinstance(value, (int, float)):
        return "number"
    if isinstance(value, str):
        return "string"
    if isinstance(value, (dict, list)):
        return "table"
    return type(value).__name__


def _mapping(value: Any, where: str) -> Dict[Any, Any]:
    if value is None:
        return {}
    if isinstance(value, dict):
        return value
    raise ManifestParseError(f"{where}: expected table, got {_type_name(value)}")


def _sequence(value: Any, where: str) -> List[Any]:
    if value is None:
        return []
    if isinstance(value, list):
        return [item for item in value if item is not None]
    if not isinstance(value, dict):
        raise ManifestParseError(f"{where}: expected list, got {_type_name(value)}")
    indices = []
    for key in value:
        if isinstance(key, float) and key.is_integer():
            key = int(key)
        if isinstance(key, bool) or not isinstance(key, int) or key < 1:
            raise ManifestParseError(f"{where}: expected list, found key {key!r}")
        indices.append(key)
    return [value[index] for index in sorted(indices) if value[index] is not None]


def _string(value: Any, where: str) -> str:
    if value is None:
        return ""
    if isinstance(value, str):
        return value
    if isinstance(value, bool):
        raise ManifestParseError(f"{where}: expected string, got boolean")
    if isinstance(value, int):
        return str(value)
    if isinstance(value, float):
        return str(int(value)) if value.is_integer() else repr(value)
    raise ManifestParseError(f"{where}: expected string, got {_type_name(value)}")


def _integer(value: Any, where: str) -> int:
    if value is None:
        return 0
    if isinstance(value, bool):
        raise ManifestParseError(f"{where}: expected integer, got boolean")
    if isinstance(value, int):
        return value
    if isinstance(value, float) and value.is_integer():
        return int(value)
    if isinstance(value, str):
        try:
            return int(value.strip())
        except ValueError:
            pass
    raise ManifestParseError(f"{where}: expected integer, got {_type_name(value)} {value!r}")


def _key(value: Any, where: str) -> str:
    if isinstance(value, str):
        return value
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return _string(value, where)
    raise ManifestParseError(f"{where}: keys must be strings, found {value!r}")


# Serialization ---------------------------------------------------------


def _quote(value: str) -> str:
    """Render ``value`` as a double-quoted Lua string literal."""

    out = ['"']
    for char in value:
        escaped = _ESCAPES.get(char)
        if escaped is not None:
            out.append(escaped)
        elif ord(char) < 0x20 or ord(char) == 0x7F:
            out.append("\\%03d" % ord(char))
        else:
            out.append(char)
    out.append('"')
    return "".join(out)


def _content_line(item: ContentFile) -> str:
    return (
        f"      {{ name = {_quote(item.name)}, path = {_quote(item.path)}, "
        f"digest = {_quote(item.digest)}, url = {_quote(item.url)} }},"
    )


def serialize(manifest: Manifest) -> str:
    """Render ``manifest`` as Lua. Keys are sorted so output is byte-stable."""

    lines = list(HEADER)
    lines.append("")
    lines.append(f"{ROOT}.repository_url = {_quote(manifest.repository_url)}")
    lines.append(f"{ROOT}.latest_commit = {_quote(manifest.latest_commit)}")
    lines.append(f"{ROOT}.last_update = {int(manifest.last_update)}")
    lines.append(f"{ROOT}.packages = {{}}")
    for name in sorted(manifest.packages):
        package = f"{ROOT}.packages[{_quote(name)}]"
        lines.append("")
        lines.append(f"{package} = {{}}")
        versions = manifest.packages[name]
        for version in sorted(versions):
            lines.append(f"{package}[{_quote(version)}] = {{")
            for entry in versions[version]:
                lines.append("  {")
                lines.append(f"    path = {_quote(entry.path)},")
                lines.append(f"    commit = {_quote(entry.commit)},")
                lines.append("    contents = {")
                lines.extend(_content_line(item) for item in entry.contents)
                lines.append("    },")
                lines.append("  },")
            lines.append("}")
    return "\n".join(lines) + "\n"


__all__ = ["CHUNK_NAME", "HEADER", "ROOT", "parse", "serialize"]
