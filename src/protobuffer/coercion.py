"""Conversion between host Python values and the typed values stored in messages.

Typed values are plain Python objects: int for every integer kind and for
enums, float for float/double (float rounded to single precision), bool, and
bytes for both string (UTF-8 encoded) and bytes fields. Message values are
built by DynamicMessage, which owns message construction.
"""

from __future__ import annotations

import math
import numbers
import struct
from collections.abc import Sequence
from typing import Any, Dict, List, Tuple

from protobuffer.errors import TypeMismatchError
from protobuffer.models import FieldDescriptor, ValueType

INTEGER_RANGES: Dict[ValueType, Tuple[int, int]] = {
    ValueType.INT32: (-(1 << 31), (1 << 31) - 1),
    ValueType.SINT32: (-(1 << 31), (1 << 31) - 1),
    ValueType.SFIXED32: (-(1 << 31), (1 << 31) - 1),
    ValueType.INT64: (-(1 << 63), (1 << 63) - 1),
    ValueType.SINT64: (-(1 << 63), (1 << 63) - 1),
    ValueType.SFIXED64: (-(1 << 63), (1 << 63) - 1),
    ValueType.UINT32: (0, (1 << 32) - 1),
    ValueType.FIXED32: (0, (1 << 32) - 1),
    ValueType.UINT64: (0, (1 << 64) - 1),
    ValueType.FIXED64: (0, (1 << 64) - 1),
    ValueType.ENUM: (-(1 << 31), (1 << 31) - 1),
}

FLOAT32_MAX = 3.4028234663852886e38

_FLOAT32 = struct.Struct("<f")

_DEFAULTS: Dict[ValueType, Any] = {
    ValueType.BOOL: False,
    ValueType.STRING: "",
    ValueType.BYTES: b"",
    ValueType.FLOAT: 0.0,
    ValueType.DOUBLE: 0.0,
}


def _mismatch(field: FieldDescriptor, value: Any, detail: str = "") -> TypeMismatchError:
    return TypeMismatchError(field.name, field.type_label, type(value).__name__, detail)


def round_to_float32(value: float) -> float:
    return _FLOAT32.unpack(_FLOAT32.pack(value))[0]


def is_sequence(value: Any) -> bool:
    """True for list-like host values; str and bytes do not count."""
    return isinstance(value, Sequence) and not isinstance(value, (str, bytes, bytearray))


def to_typed(value: Any, field: FieldDescriptor) -> Any:
    """Coerce one host value to the typed value of a (non-message) field.

    For repeated fields this converts a single element. Raises
    TypeMismatchError if the value does not fit the field's type.
    """
    vt = field.value_type
    if vt is ValueType.ENUM:
        return _to_enum(value, field)
    if vt in INTEGER_RANGES:
        return _to_integer(value, field)
    if vt in (ValueType.FLOAT, ValueType.DOUBLE):
        return _to_float(value, field)
    if vt is ValueType.BOOL:
        if not isinstance(value, bool):
            raise _mismatch(field, value)
        return value
    if vt is ValueType.STRING:
        if not isinstance(value, str):
            raise _mismatch(field, value)
        try:
            return value.encode("utf-8")
        except UnicodeEncodeError:
            raise _mismatch(field, value, "not encodable as UTF-8") from None
    if vt is ValueType.BYTES:
        if not isinstance(value, (bytes, bytearray, memoryview)):
            raise _mismatch(field, value)
        return bytes(value)
    raise _mismatch(field, value)


def to_typed_list(values: Any, field: FieldDescriptor) -> List[Any]:
    """Coerce a host sequence for a repeated field, element by element."""
    if not is_sequence(values):
        raise _mismatch(field, values, "a repeated field takes a list or tuple")
    return [to_typed(v, field) for v in values]


def from_typed(value: Any, field: FieldDescriptor) -> Any:
    """Convert a stored typed value back to its host representation."""
    if field.value_type is ValueType.STRING:
        return value.decode("utf-8")
    return value


def default_value(field: FieldDescriptor) -> Any:
    """The proto3 default returned for an unset singular field."""
    if field.is_repeated:
        return []
    vt = field.value_type
    if vt is ValueType.MESSAGE:
        return None
    if vt is ValueType.ENUM:
        return field.enum_type.default_value if field.enum_type is not None else 0
    return _DEFAULTS.get(vt, 0)


def _to_integer(value: Any, field: FieldDescriptor) -> int:
    if isinstance(value, bool):
        raise _mismatch(field, value)
    if isinstance(value, numbers.Integral):
        result = int(value)
    elif isinstance(value, numbers.Real):
        as_float = float(value)
        if not as_float.is_integer():
            raise _mismatch(field, value, f"{value!r} has a fractional part")
        result = int(as_float)
    else:
        raise _mismatch(field, value)

    low, high = INTEGER_RANGES[field.value_type]
    if not low <= result <= high:
        raise _mismatch(field, value, f"{result} is outside [{low}, {high}]")
    return result


def _to_float(value: Any, field: FieldDescriptor) -> float:
    if isinstance(value, bool) or not isinstance(value, numbers.Real):
        raise _mismatch(field, value)
    try:
        result = float(value)
    except OverflowError:
        raise _mismatch(field, value, f"{value!r} is too large for a double") from None
    if field.value_type is ValueType.FLOAT:
        if math.isfinite(result) and abs(result) > FLOAT32_MAX:
            raise _mismatch(field, value, f"{value!r} is too large for a float")
        result = round_to_float32(result)
    return result


def _to_enum(value: Any, field: FieldDescriptor) -> int:
    if isinstance(value, str):
        enum_type = field.enum_type
        if enum_type is None or value not in enum_type.values:
            raise _mismatch(field, value, f"{value!r} is not a value of the enum")
        return enum_type.values[value]
    return _to_integer(value, field)
