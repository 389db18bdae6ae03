"""Defensive accessors for loosely-typed diagnostic documents."""

import math
from collections.abc import Mapping
from typing import Any, List, Optional


def get_numeric_value(value: Any) -> Optional[float]:
    """
    Interpret a diagnostic field as a non-negative float.

    Integers of any width (including bson Int64) and floats are accepted.
    Booleans, non-numeric values, NaN and negative readings are rejected,
    since no counter reported by the server is legitimately negative.

    Args:
        value: Raw field value from a diagnostic document

    Returns:
        Optional[float]: The value as float, or None when it is not usable
    """
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None

    number = float(value)
    if math.isnan(number) or number < 0:
        return None
    return number


def validate_metric_value(value: Any) -> bool:
    """Return True when *value* would be published as an observation."""
    return get_numeric_value(value) is not None


def get_value(doc: Any, *keys: str) -> Any:
    """
    Walk nested mappings and return the value at *keys*.

    Args:
        doc: Root document
        *keys: Path components, one per nesting level

    Returns:
        The value found, or None if any level is missing or not a mapping
    """
    current = doc
    for key in keys:
        if not isinstance(current, Mapping):
            return None
        current = current.get(key)
        if current is None:
            return None
    return current


def get_document(doc: Any, *keys: str) -> Optional[Mapping]:
    """Return the sub-document at *keys* or None."""
    value = get_value(doc, *keys)
    return value if isinstance(value, Mapping) else None


def get_list(doc: Any, *keys: str) -> Optional[List[Any]]:
    """Return the array at *keys* or None."""
    value = get_value(doc, *keys)
    return list(value) if isinstance(value, (list, tuple)) else None


def get_string(doc: Any, *keys: str) -> Optional[str]:
    """Return the string at *keys* or None."""
    value = get_value(doc, *keys)
    return value if isinstance(value, str) else None


def get_int(doc: Any, *keys: str) -> Optional[int]:
    """Return the integer at *keys* (any sign, booleans excluded) or None."""
    value = get_value(doc, *keys)
    if isinstance(value, bool) or not isinstance(value, int):
        return None
    return int(value)


def get_float(doc: Any, *keys: str) -> Optional[float]:
    """Return any numeric value at *keys* as a float (any sign) or None."""
    value = get_value(doc, *keys)
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    return float(value)


def get_bool(doc: Any, *keys: str) -> Optional[bool]:
    """Return the boolean at *keys* or None."""
    value = get_value(doc, *keys)
    return value if isinstance(value, bool) else None


def get_number(doc: Any, *keys: str) -> Optional[float]:
    """Shortcut for ``get_numeric_value(get_value(doc, *keys))``."""
    return get_numeric_value(get_value(doc, *keys))
