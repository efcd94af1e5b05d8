from __future__ import annotations

import pytest

from common.errors import ManifestParseError
from manifest.backend import ROOT_TABLE, LuaBackend


def test_namespace_holds_only_script_globals_and_root_table() -> None:
    result = LuaBackend().execute('name = "foo"\nlocal hidden = 1\nlabel = string.upper(name)')
    assert set(result.namespace) == {ROOT_TABLE, "name", "label"}
    assert result.namespace["label"] == "FOO"
    assert result.namespace[ROOT_TABLE] == {"manifest": {}}


def test_shared_tables_stay_shared() -> None:
    result = LuaBackend().execute("a = { 1, 2 }\nb = a")
    assert result.namespace["a"] is result.namespace["b"]
    assert result.namespace["a"] == {1: 1, 2: 2}


def test_each_call_gets_a_fresh_interpreter() -> None:
    backend = LuaBackend()
    backend.execute("leaked = 1")
    assert "leaked" not in backend.execute("").namespace


def test_error_detail_names_the_chunk() -> None:
    with pytest.raises(ManifestParseError) as excinfo:
        LuaBackend().execute("x = = 1", "packages/foo/manifest.lua")
    assert "packages/foo/manifest.lua" in excinfo.value.detail


def test_zero_step_limit_disables_the_hook() -> None:
    result = LuaBackend(step_limit=0).execute("n = 0\nfor i = 1, 50000 do n = n + 1 end")
    assert result.namespace["n"] == 50000


def test_memory_limit_stops_huge_allocations() -> None:
    with pytest.raises(ManifestParseError) as excinfo:
        LuaBackend(memory_limit=16 * 1024 * 1024).execute('blob = string.rep("x", 2^28)', "big.lua")
    assert "memory" in excinfo.value.detail


def test_memory_limit_leaves_ordinary_scripts_alone() -> None:
    result = LuaBackend(memory_limit=16 * 1024 * 1024).execute('blob = string.rep("x", 1024)')
    assert len(result.namespace["blob"]) == 1024
