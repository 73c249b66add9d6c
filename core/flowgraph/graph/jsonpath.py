"""
JSONPath evaluation and deep assignment helpers.

Queries go through jsonpath-ng's extended parser (filters, arithmetic,
``len``); compiled expressions are cached because loop bodies evaluate
the same paths once per item.

``set_path`` assigns into nested dicts/lists using dotted/bracket property
paths (``a.b[0].c``, ``a["odd.key"]``), creating intermediate containers
as it goes: a list when the next key is an index, a dict otherwise.
"""

import re
from functools import lru_cache
from typing import Any

from jsonpath_ng import JSONPath
from jsonpath_ng.ext import parse as _parse_jsonpath

_MISSING = object()

_PROPERTY_PATTERN = re.compile(r"""[^.[\]]+|\[(?:(-?\d+)|(["'])((?:(?!\2)[^\\]|\\.)*?)\2)\]""")
_INDEX_PATTERN = re.compile(r"^(?:0|[1-9]\d*)$")


class JsonPathError(ValueError):
    """A JSONPath expression could not be parsed or evaluated."""


@lru_cache(maxsize=512)
def compile_path(path: str) -> JSONPath:
    """Parse a JSONPath expression, raising JsonPathError when malformed."""
    if not path or not path.strip():
        raise JsonPathError("JSONPath expression is empty")
    try:
        return _parse_jsonpath(path.strip())
    except Exception as e:
        raise JsonPathError(f"Invalid JSONPath '{path}': {e}") from e


def find_all(path: str, data: Any) -> list[Any]:
    """Return the values of every match of ``path`` in ``data``."""
    expression = compile_path(path)
    try:
        return [match.value for match in expression.find(data)]
    except Exception as e:
        raise JsonPathError(f"Error evaluating JSONPath '{path}': {e}") from e


def find_first(path: str, data: Any, default: Any = None) -> Any:
    """Return the first match of ``path`` in ``data``, or ``default``."""
    matches = find_all(path, data)
    return matches[0] if matches else default


def find_unwrapped(path: str, data: Any) -> Any:
    """
    Query without wrapping single results.

    No match gives ``None``, one match gives the value itself, several
    matches give the list of values.
    """
    matches = find_all(path, data)
    if not matches:
        return None
    if len(matches) == 1:
        return matches[0]
    return matches


# ---------------------------------------------------------------------------
# Deep assignment
# ---------------------------------------------------------------------------


def parse_property_path(path: str) -> list[str]:
    """Split ``a.b[0]["c.d"]`` into ``['a', 'b', '0', 'c.d']``."""
    keys: list[str] = []
    for match in _PROPERTY_PATTERN.finditer(path):
        number, quote, quoted = match.group(1), match.group(2), match.group(3)
        if number is not None:
            keys.append(number)
        elif quote:
            keys.append(re.sub(r"\\(.)", r"\1", quoted))
        else:
            keys.append(match.group(0))
    if not keys:
        raise JsonPathError(f"Invalid property path '{path}'")
    return keys


def _is_index(key: str) -> bool:
    return bool(_INDEX_PATTERN.match(key))


def _read(container: Any, key: str) -> Any:
    if isinstance(container, dict):
        return container.get(key, _MISSING)
    if isinstance(container, list) and _is_index(key) and int(key) < len(container):
        return container[int(key)]
    return _MISSING


def _write(container: Any, key: str, value: Any) -> None:
    if isinstance(container, dict):
        container[key] = value
        return
    if not _is_index(key):
        raise JsonPathError(f"Cannot set non-index key '{key}' on a list")
    index = int(key)
    if index >= len(container):
        container.extend([None] * (index + 1 - len(container)))
    container[index] = value


def set_path(target: dict | list, path: str, value: Any) -> dict | list:
    """Assign ``value`` at ``path`` inside ``target`` and return ``target``."""
    keys = parse_property_path(path)
    current: Any = target
    for position, key in enumerate(keys[:-1]):
        existing = _read(current, key)
        if not isinstance(existing, dict | list):
            existing = [] if _is_index(keys[position + 1]) else {}
            _write(current, key, existing)
        current = existing
    _write(current, keys[-1], value)
    return target
