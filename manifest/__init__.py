"""Manifest model, merge engine and Lua codec."""

from .backend import LuaBackend, ScriptBackend, ScriptResult
from .codec import parse, serialize
from .descriptor import PackageDescriptor, read_descriptor
from .model import ContentFile, Manifest, PackageEntry, append_entry, merge, replace_entry, upsert
from .store import load_manifest, load_or_default, save_manifest

__all__ = [
    "ContentFile",
    "LuaBackend",
    "Manifest",
    "PackageDescriptor",
    "PackageEntry",
    "ScriptBackend",
    "ScriptResult",
    "append_entry",
    "load_manifest",
    "load_or_default",
    "merge",
    "parse",
    "read_descriptor",
    "replace_entry",
    "save_manifest",
    "serialize",
    "upsert",
]
