"""
Typed value model for structured (JSON-like) record data.

Records exchanged with the engine are plain Python values restricted to the
JSON data model:

    null    -> None
    bool    -> bool
    number  -> int | float (finite)
    string  -> str
    array   -> list | tuple
    map     -> dict with str keys

Equality is structural and recursive. Maps compare independent of key
order, arrays compare element-wise in order, ``1 == 1.0`` holds but a bool
is never equal to a number (``True != 1``), which plain ``==`` gets wrong.

MISSING marks an absent value (a key that does not exist on one side of a
comparison). It is distinct from None, which is JSON null.
"""

from __future__ import annotations

import copy
import json
import math
from enum import Enum
from typing import Any

from sitio_review.config.settings import settings
from sitio_review.core.errors import MalformedProposedDataError


class _Missing:
    """Singleton marker for an absent value."""

    _instance = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "MISSING"

    def __bool__(self) -> bool:
        return False

    def __copy__(self):
        return self

    def __deepcopy__(self, memo):
        return self


MISSING: Any = _Missing()


class ValueKind(str, Enum):
    NULL = "null"
    BOOL = "bool"
    NUMBER = "number"
    STRING = "string"
    ARRAY = "array"
    MAP = "map"


def kind_of(value: Any) -> ValueKind:
    """Classify a value; raises MalformedProposedDataError for non-JSON types."""
    if value is None:
        return ValueKind.NULL
    # bool first: bool is a subclass of int
    if isinstance(value, bool):
        return ValueKind.BOOL
    if isinstance(value, (int, float)):
        return ValueKind.NUMBER
    if isinstance(value, str):
        return ValueKind.STRING
    if isinstance(value, (list, tuple)):
        return ValueKind.ARRAY
    if isinstance(value, dict):
        return ValueKind.MAP
    raise MalformedProposedDataError(
        f"Unsupported value type {type(value).__name__!r}"
    )


def is_plain_map(value: Any) -> bool:
    return isinstance(value, dict)


def structurally_equal(a: Any, b: Any) -> bool:
    """Recursive structural equality over the typed value model."""
    if a is MISSING or b is MISSING:
        return a is b

    kind_a = kind_of(a)
    if kind_a is not kind_of(b):
        return False

    if kind_a is ValueKind.ARRAY:
        if len(a) != len(b):
            return False
        return all(structurally_equal(x, y) for x, y in zip(a, b))

    if kind_a is ValueKind.MAP:
        if a.keys() != b.keys():
            return False
        return all(structurally_equal(a[k], b[k]) for k in a)

    # null, bool, number, string
    return a == b


def validate_structured(value: Any, path: str = "", depth: int = 0) -> None:
    """
    Check that *value* only contains JSON-representable data nested at most
    settings.max_nesting_depth levels deep.

    Raises:
        MalformedProposedDataError: naming the offending path.
    """
    where = path or "<root>"
    if depth > settings.max_nesting_depth:
        raise MalformedProposedDataError(
            f"Nesting deeper than {settings.max_nesting_depth} levels at {where}"
        )
    try:
        kind = kind_of(value)
    except MalformedProposedDataError as exc:
        raise MalformedProposedDataError(f"{exc} at {where}") from None

    if kind is ValueKind.NUMBER and not math.isfinite(value):
        raise MalformedProposedDataError(f"Non-finite number at {where}")
    if kind is ValueKind.ARRAY:
        for idx, item in enumerate(value):
            validate_structured(item, f"{path}[{idx}]", depth + 1)
    elif kind is ValueKind.MAP:
        for key, item in value.items():
            if not isinstance(key, str):
                raise MalformedProposedDataError(
                    f"Map key {key!r} at {where} is not a string"
                )
            validate_structured(item, f"{path}.{key}" if path else key, depth + 1)


def parse_structured(payload: Any) -> dict:
    """
    Turn a submitted payload into a validated structured map.

    Accepts a dict, or JSON text (str/bytes) that decodes to an object.
    The returned value is a deep copy, so later mutation of the caller's
    object cannot leak into a stored record.
    """
    if isinstance(payload, (bytes, bytearray)):
        try:
            payload = payload.decode("utf-8")
        except UnicodeDecodeError as exc:
            raise MalformedProposedDataError(f"Payload is not UTF-8: {exc}") from exc
    if isinstance(payload, str):
        try:
            payload = json.loads(payload)
        except json.JSONDecodeError as exc:
            raise MalformedProposedDataError(f"Payload is not valid JSON: {exc}") from exc
        except RecursionError:
            raise MalformedProposedDataError("Payload is nested too deeply to decode") from None

    if not is_plain_map(payload):
        raise MalformedProposedDataError(
            f"Payload must be a JSON object, got {type(payload).__name__!r}"
        )
    validate_structured(payload)
    return copy.deepcopy(payload)


def dumps(value: Any) -> str:
    """Serialize a structured value for storage (stable key order, no NaN)."""
    return json.dumps(value, ensure_ascii=False, sort_keys=True, allow_nan=False)


def to_jsonable(value: Any) -> Any:
    """Map MISSING to None so diff/conflict values can be serialized."""
    return None if value is MISSING else value
