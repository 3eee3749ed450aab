"""Dotted-path access into loosely shaped state dicts."""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from typing import Any


def get_path(obj: Any, path: str | None) -> Any:
    """Follow ``a.b.c`` through nested mappings; list segments may be indices.

    Returns ``None`` as soon as a segment is missing.
    """
    if obj is None or not path:
        return None
    current = obj
    for key in path.split("."):
        if isinstance(current, Mapping):
            current = current.get(key)
        elif isinstance(current, Sequence) and not isinstance(current, str) and key.lstrip("-").isdigit():
            index = int(key)
            current = current[index] if -len(current) <= index < len(current) else None
        else:
            return None
        if current is None:
            return None
    return current
