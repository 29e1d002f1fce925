"""Path-based access into untyped JSON documents.

Hook requests have no fixed schema.  Fields are addressed by dotted path
(``tool_input.file_path``, ``edits.0.new_string``) and resolved by plain
recursive descent; anything missing resolves to a default, never an error.
"""

from __future__ import annotations

from typing import Any


def _split_path(path: str) -> list[str]:
    return [segment for segment in path.strip().lstrip(".").split(".") if segment]


def _descend(node: Any, segments: list[str]) -> tuple[bool, Any]:
    if not segments:
        return True, node

    head, rest = segments[0], segments[1:]
    if isinstance(node, dict):
        if head not in node:
            return False, None
        return _descend(node[head], rest)
    if isinstance(node, list):
        try:
            index = int(head)
        except ValueError:
            return False, None
        if not -len(node) <= index < len(node):
            return False, None
        return _descend(node[index], rest)
    # Scalars have no children
    return False, None


def get_field(doc: Any, path: str, default: Any = None) -> Any:
    """Resolve a dotted *path* inside *doc*.

    Args:
        doc: Parsed JSON tree (dicts, lists, scalars).
        path: Dot-separated keys; numeric segments index into lists.
            An empty path returns *doc* itself.
        default: Returned when any segment is missing.

    Returns:
        The value at *path*, or *default*.

    Example:
        >>> get_field({"tool_input": {"file_path": "a.ts"}}, "tool_input.file_path")
        'a.ts'
        >>> get_field({"tool_input": {}}, "tool_input.file_path") is None
        True
    """
    found, value = _descend(doc, _split_path(path))
    return value if found else default


def get_str(doc: Any, path: str) -> str:
    """Like :func:`get_field` but always returns a string.

    Missing fields and JSON ``null`` become ``""``; containers are not
    stringified (they also become ``""``), scalars are converted with
    ``str()`` (booleans as ``true``/``false``).
    """
    value = get_field(doc, path)
    if value is None or isinstance(value, (dict, list)):
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def has_field(doc: Any, path: str) -> bool:
    found, _ = _descend(doc, _split_path(path))
    return found
