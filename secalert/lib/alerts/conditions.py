"""Condition evaluation: rule conditions x event -> match.

Evaluation fails closed. Unknown operators, missing fields and values that
cannot be coerced for the requested comparison all resolve to ``False``;
nothing in this module raises.
"""

from __future__ import annotations

import json
import math
from typing import Any, Callable, Dict, Iterable, Optional

from .models import Condition, SecurityEvent

__all__ = ["matches", "evaluate_condition", "OPERATORS"]


class _Missing:
    def __repr__(self) -> str:
        return "<missing>"


MISSING: Any = _Missing()

_TRUE_STRINGS = {"true", "yes", "1"}
_FALSE_STRINGS = {"false", "no", "0"}


def _to_text(value: Any) -> Optional[str]:
    if value is MISSING:
        return None
    if isinstance(value, bool):
        return "true" if value else "false"
    if value is None:
        return "null"
    if isinstance(value, str):
        return value
    if isinstance(value, (dict, list, tuple)):
        try:
            return json.dumps(value, separators=(",", ":"), sort_keys=True, default=str)
        except (TypeError, ValueError):
            return None
    return str(value)


def _to_number(value: Any) -> Optional[float]:
    if value is MISSING or value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        number = float(value)
    elif isinstance(value, str):
        stripped = value.strip()
        if not stripped:
            return None
        try:
            number = float(stripped)
        except ValueError:
            return None
    else:
        return None
    if math.isnan(number):
        return None
    return number


def _to_bool(value: Any) -> Optional[bool]:
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)) and value in (0, 1):
        return bool(value)
    if isinstance(value, str):
        lowered = value.strip().lower()
        if lowered in _TRUE_STRINGS:
            return True
        if lowered in _FALSE_STRINGS:
            return False
    return None


def _equals(actual: Any, expected: Any) -> bool:
    if actual is MISSING:
        return False
    # Coerce the event value to the condition value's type.
    if isinstance(expected, bool):
        coerced = _to_bool(actual)
        return coerced is not None and coerced == expected
    if isinstance(expected, (int, float)):
        left = _to_number(actual)
        right = _to_number(expected)
        return left is not None and right is not None and left == right
    if isinstance(expected, str):
        if actual is None:
            return False
        return _to_text(actual) == expected
    if expected is None:
        return actual is None
    return actual == expected


def _contains(actual: Any, expected: Any) -> bool:
    haystack = _to_text(actual)
    needle = _to_text(expected)
    if haystack is None or needle is None or expected is None:
        return False
    return needle in haystack


def _greater_than(actual: Any, expected: Any) -> bool:
    left = _to_number(actual)
    right = _to_number(expected)
    return left is not None and right is not None and left > right


def _less_than(actual: Any, expected: Any) -> bool:
    left = _to_number(actual)
    right = _to_number(expected)
    return left is not None and right is not None and left < right


OPERATORS: Dict[str, Callable[[Any, Any], bool]] = {
    "equals": _equals,
    "contains": _contains,
    "greater_than": _greater_than,
    "less_than": _less_than,
}


def evaluate_condition(condition: Condition, event: SecurityEvent) -> bool:
    try:
        operator = OPERATORS.get(condition.operator)
        if operator is None:
            return False
        actual = event.data.get(condition.field, MISSING)
        if actual is MISSING:
            return False
        return bool(operator(actual, condition.value))
    except Exception:  # noqa: BLE001 - malformed input never matches
        return False


def matches(conditions: Optional[Iterable[Condition]], event: SecurityEvent) -> bool:
    """Return True when every condition holds for ``event`` (logical AND)."""
    if not conditions:
        return True
    try:
        return all(evaluate_condition(condition, event) for condition in conditions)
    except TypeError:
        return False
