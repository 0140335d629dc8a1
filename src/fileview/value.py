"""Helpers for the generic value model shared by all formats.

A value is one of ``None``, ``bool``, ``int``/``float``, ``str``, ``list``
(sequence) or ``dict`` with string keys (mapping, insertion ordered).
"""

from __future__ import annotations

import base64
import datetime
from typing import Any, Union

Value = Union[None, bool, int, float, str, list, dict]

NULL = "null"
BOOLEAN = "boolean"
NUMBER = "number"
STRING = "string"
SEQUENCE = "sequence"
MAPPING = "mapping"


def value_kind(value: Any) -> str:
    """Return the kind name of a value.

    Raises:
        TypeError: If the object is not part of the value model.
    """
    if value is None:
        return NULL
    # bool before int: bool is an int subclass
    if isinstance(value, bool):
        return BOOLEAN
    if isinstance(value, (int, float)):
        return NUMBER
    if isinstance(value, str):
        return STRING
    if isinstance(value, list):
        return SEQUENCE
    if isinstance(value, dict):
        return MAPPING
    raise TypeError(f"Not a value: {type(value).__name__}")


def sort_keys(value: Value) -> Value:
    """Return a copy of value with mapping keys sorted at every level."""
    if isinstance(value, list):
        return [sort_keys(item) for item in value]
    if isinstance(value, dict):
        return {key: sort_keys(value[key]) for key in sorted(value)}
    return value


def scalar_text(value: Value) -> str:
    """Spell a scalar the way JSON would (``null``, ``true``, ``1.5``)."""
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def to_value(obj: Any) -> Value:
    """Normalize a parser's native output into the value model.

    Dates and times become ISO strings, bytes become base64 text, tuples
    and sets become sequences and non-string mapping keys are spelled
    with :func:`scalar_text`.
    """
    if obj is None or isinstance(obj, (bool, int, float, str)):
        return obj
    if isinstance(obj, (datetime.date, datetime.time)):
        return obj.isoformat()
    if isinstance(obj, (bytes, bytearray)):
        return base64.b64encode(bytes(obj)).decode("ascii")
    if isinstance(obj, dict):
        return {
            (k if isinstance(k, str) else scalar_text(to_value(k))): to_value(v)
            for k, v in obj.items()
        }
    if isinstance(obj, (list, tuple)):
        return [to_value(item) for item in obj]
    if isinstance(obj, (set, frozenset)):
        return [to_value(item) for item in sorted(obj, key=repr)]
    return str(obj)


def summarize(value: Value) -> dict[str, Any]:
    """Describe the top level of a value (type and item/key count)."""
    if isinstance(value, list):
        return {"type": "array", "items": len(value)}
    if isinstance(value, dict):
        return {"type": "object", "keys": len(value)}
    return {"type": value_kind(value)}
