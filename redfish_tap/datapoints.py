from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any


class ValueType(str, Enum):
    BOOLEAN = "boolean"
    NUMBER = "number"
    STRING = "string"
    OBJECT = "object"
    ARRAY = "array"

    @property
    def default(self) -> Any:
        if self is ValueType.NUMBER:
            return 0
        if self is ValueType.BOOLEAN:
            return False
        return ""


def classify_value(value: Any) -> ValueType:
    # bool is a subclass of int, so it has to be checked first
    if isinstance(value, bool):
        return ValueType.BOOLEAN
    if isinstance(value, (int, float)):
        return ValueType.NUMBER
    if isinstance(value, dict):
        return ValueType.OBJECT
    if isinstance(value, (list, tuple)):
        return ValueType.ARRAY
    return ValueType.STRING


def scalar_type(value: Any) -> ValueType:
    """Like classify_value, but containers fall back to STRING."""
    value_type = classify_value(value)
    if value_type in (ValueType.OBJECT, ValueType.ARRAY):
        return ValueType.STRING
    return value_type


@dataclass(frozen=True)
class DataPointMeta:
    name: str
    type: ValueType
    role: str = "text"
    unit: str | None = None
    read: bool = True
    write: bool = False


@dataclass(frozen=True)
class DataPoint:
    path: str
    meta: DataPointMeta
    value: Any

    @property
    def default(self) -> Any:
        return self.meta.type.default


def join_path(prefix: str, *segments: str) -> str:
    # Empty segments are kept so an unusable identifier yields an invalid
    # path instead of silently landing on its parent.
    if not prefix:
        return ".".join(segments)
    return ".".join((prefix, *segments))


def dig(obj: Any, *keys: str | int) -> Any:
    """Walk nested dicts/lists, returning None as soon as a level is missing."""
    current = obj
    for key in keys:
        if isinstance(key, int):
            if not isinstance(current, list) or not -len(current) <= key < len(current):
                return None
            current = current[key]
        else:
            if not isinstance(current, dict):
                return None
            current = current.get(key)
        if current is None:
            return None
    return current
