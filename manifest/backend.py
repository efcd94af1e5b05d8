"""Script configuration backends.

Manifests and package descriptors are small Lua scripts. A backend runs such
a script in isolation and hands back the values it defined as plain Python
data (dicts, strings, numbers, booleans). The codec only depends on the
``ScriptBackend`` protocol, so the interpreter can be swapped.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Protocol, Tuple

from lupa import lua54

from common.errors import ManifestParseError
from common.logging import get_logger

LOGGER = get_logger(__name__)

ROOT_TABLE = "krait"
MANIFEST_FIELD = "manifest"
STEP_LIMIT_MESSAGE = "script execution exceeded limit"
DEFAULT_STEP_LIMIT = 1_000_000
DEFAULT_MEMORY_LIMIT = 64 * 1024 * 1024

_UNSUPPORTED = object()

# The chunk sees a fresh environment holding only the root table; pure
# helpers are reachable through __index so they never show up in the result.
_RUNNER = """
function(source, chunk_name, step_limit, limit_message)
  local safe = {
    pairs = pairs, ipairs = ipairs, next = next, select = select,
    type = type, tostring = tostring, tonumber = tonumber,
    string = string, table = table, math = math,
  }
  local env = setmetatable({ krait = { manifest = {} } }, { __index = safe })
  local chunk, err = load(source, "=" .. chunk_name, "t", env)
  if not chunk then
    return false, tostring(err), env
  end
  local exceeded = false
  if step_limit > 0 then
    debug.sethook(function()
      exceeded = true
      error(limit_message, 0)
    end, "", step_limit)
  end
  local ok, result = pcall(chunk)
  debug.sethook()
  if exceeded then
    return false, limit_message, env
  end
  if not ok then
    return false, tostring(result), env
  end
  return true, result, env
end
"""

_IDENTIFY = """
function()
  local ids = setmetatable({}, { __mode = "k" })
  local count = 0
  return function(value)
    local id = ids[value]
    if id == nil then
      count = count + 1
      ids[value] = count
      id = count
    end
    return id
  end
end
"""


@dataclass
class ScriptResult:
    """Globals a script defined, plus whatever the chunk returned."""

    namespace: Dict[str, Any] = field(default_factory=dict)
    returned: Any = None


class ScriptBackend(Protocol):
    """Runs a configuration script and returns the data it produced."""

    def execute(self, source: str, chunk_name: str = "script") -> ScriptResult:
        """Run ``source``; raise ``ManifestParseError`` if it fails."""
        ...


class LuaBackend:
    """Sandboxed Lua 5.x interpreter built on ``lupa`` (Lua 5.4).

    Each ``execute`` call creates and owns its own ``LuaRuntime``; instances
    of this class hold configuration only and can be shared freely.
    ``step_limit`` caps executed instructions and ``memory_limit`` caps the
    bytes the interpreter may allocate; 0 disables either cap.
    """

    def __init__(self, *, step_limit: int = DEFAULT_STEP_LIMIT, memory_limit: int = DEFAULT_MEMORY_LIMIT) -> None:
        self.step_limit = max(0, int(step_limit))
        self.memory_limit = max(0, int(memory_limit))

    def execute(self, source: str, chunk_name: str = "script") -> ScriptResult:
        runtime = lua54.LuaRuntime(
            register_eval=False,
            register_builtins=False,
            unpack_returned_tuples=False,
            max_memory=self.memory_limit or None,
        )
        try:
            runner = runtime.eval(_RUNNER)
            ok, returned, env = runner(source, chunk_name, self.step_limit, STEP_LIMIT_MESSAGE)
            if not ok:
                if returned == STEP_LIMIT_MESSAGE:
                    raise ManifestParseError(STEP_LIMIT_MESSAGE)
                raise ManifestParseError(f"{chunk_name}: {returned}")
            identify = runtime.eval(_IDENTIFY)()
            namespace = self._to_python(env, identify)
            result = self._to_python(returned, identify)
        except lua54.LuaError as exc:
            raise ManifestParseError(f"{chunk_name}: {exc}") from exc
        except UnicodeDecodeError as exc:
            raise ManifestParseError(f"{chunk_name}: string is not valid UTF-8 ({exc})") from exc
        if not isinstance(namespace, dict):
            namespace = {}
        return ScriptResult(namespace=namespace, returned=None if result is _UNSUPPORTED else result)

    def _to_python(self, value: Any, identify: Callable[[Any], int]) -> Any:
        """Convert a Lua value without recursion; shared/cyclic tables stay shared."""

        if lua54.lua_type(value) != "table":
            return self._scalar(value)
        root: Dict[Any, Any] = {}
        memo: Dict[int, Dict[Any, Any]] = {identify(value): root}
        pending: List[Tuple[Any, Dict[Any, Any]]] = [(value, root)]
        while pending:
            table, target = pending.pop()
            for key, item in table.items():
                key = self._scalar(key)
                if key is _UNSUPPORTED:
                    continue
                if lua54.lua_type(item) == "table":
                    ident = identify(item)
                    child = memo.get(ident)
                    if child is None:
                        child = {}
                        memo[ident] = child
                        pending.append((item, child))
                    target[key] = child
                    continue
                converted = self._scalar(item)
                if converted is not _UNSUPPORTED:
                    target[key] = converted
        return root

    @staticmethod
    def _scalar(value: Any) -> Any:
        if value is None or isinstance(value, (bool, int, float, str)):
            return value
        if isinstance(value, bytes):
            return value.decode("utf-8")
        LOGGER.debug("Ignoring unsupported script value of type %s", lua54.lua_type(value) or type(value).__name__)
        return _UNSUPPORTED


__all__ = [
    "DEFAULT_MEMORY_LIMIT",
    "DEFAULT_STEP_LIMIT",
    "LuaBackend",
    "MANIFEST_FIELD",
    "ROOT_TABLE",
    "STEP_LIMIT_MESSAGE",
    "ScriptBackend",
    "ScriptResult",
]
