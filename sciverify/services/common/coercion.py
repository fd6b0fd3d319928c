"""
Total accessors for untyped claim records.

Agent-submitted results are arbitrary JSON. Nothing here raises on a type
mismatch; every helper falls back to a safe default instead.
"""

from __future__ import annotations

import math
import re
from typing import Any, Dict, List, Mapping, Optional

_LIST_SPLIT_RE = re.compile(r"[,;\s]+")


def round4(value: float) -> float:
    return round(float(value), 4)


def to_str(value: Any, default: str = "") -> str:
    """String form of a scalar; containers and None give ``default``."""
    if value is None or isinstance(value, (dict, list, tuple, set)):
        return default
    if isinstance(value, bool):
        return "true" if value else "false"
    return value if isinstance(value, str) else str(value)


def to_num(value: Any, default: Optional[float] = None) -> Optional[float]:
    """Finite float from a number or numeric string, else ``default``."""
    if value is None or isinstance(value, bool):
        return default
    if not isinstance(value, (int, float, str)):
        return default
    try:
        number = float(value.strip() if isinstance(value, str) else value)
    except (ValueError, OverflowError):
        return default
    return number if math.isfinite(number) else default


def as_string_array(value: Any) -> List[str]:
    if isinstance(value, (list, tuple)):
        return [to_str(v) for v in value if v is not None and to_str(v)]
    if isinstance(value, str):
        return [part for part in _LIST_SPLIT_RE.split(value) if part]
    return []


def as_dict(value: Any) -> Dict[str, Any]:
    return value if isinstance(value, dict) else {}


def as_dict_list(value: Any) -> List[Dict[str, Any]]:
    if not isinstance(value, (list, tuple)):
        return []
    return [item for item in value if isinstance(item, dict)]


def as_number_list(value: Any) -> List[float]:
    """Finite numeric members of a list; anything else is dropped."""
    if not isinstance(value, (list, tuple)):
        return []
    numbers = []
    for item in value:
        if isinstance(item, (int, float)):
            number = to_num(item)
            if number is not None:
                numbers.append(number)
    return numbers


def extract_nested(obj: Any, path: str) -> Any:
    """Walk a dotted path through nested dicts, returning None on any miss."""
    current = obj
    for key in path.split("."):
        if not isinstance(current, dict):
            return None
        current = current.get(key)
    return current


def first_present(record: Mapping[str, Any], *keys: str) -> Any:
    """First non-null value among ``keys`` (an ``a ?? b ?? c`` chain)."""
    for key in keys:
        if record.get(key) is not None:
            return record[key]
    return None


def first_str(record: Mapping[str, Any], *keys: str) -> str:
    """First non-empty string form among ``keys``."""
    for key in keys:
        value = to_str(record.get(key))
        if value:
            return value
    return ""


_SQUASH_RE = re.compile(r"[\s_-]+")


def squash(value: str) -> str:
    """Lowercase and drop whitespace, underscores and hyphens for loose matching."""
    return _SQUASH_RE.sub("", value.lower())
