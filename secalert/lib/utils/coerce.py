from __future__ import annotations

from typing import Any

_TRUE = {"true", "t", "yes", "y", "on", "1"}
_FALSE = {"false", "f", "no", "n", "off", "0"}


def to_bool(value: Any, *, default: bool = False) -> bool:
    """Interpret YAML/JSON flags, including string spellings such as ``"no"``."""
    if value is None:
        return default
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)):
        return bool(value)
    if isinstance(value, str):
        normalized = value.strip().lower()
        if normalized in _TRUE:
            return True
        if normalized in _FALSE:
            return False
        if not normalized:
            return default
    return bool(value)
