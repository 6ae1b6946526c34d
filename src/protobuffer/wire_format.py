"""Primitives of the protobuf binary wire format."""

from __future__ import annotations

import struct
from typing import Tuple

from protobuffer.errors import DecodeError, TruncatedInputError
from protobuffer.models import WireType

UINT64_MASK = (1 << 64) - 1
UINT32_MASK = (1 << 32) - 1
# A 64-bit value needs at most ten 7-bit groups.
MAX_VARINT_BYTES = 10
# Deepest chain of nested messages accepted when decoding, encoding or
# building a message from a mapping, same as the C++ protobuf runtime.
MAX_NESTING_DEPTH = 100


def encode_varint(value: int) -> bytes:
    """Encode a non-negative integer as a base-128 varint.

    Negative numbers must be converted first, either with zig-zag encoding
    or to 64-bit two's complement (see to_unsigned64).
    """
    if value < 0:
        raise ValueError(f"Varint value must be non-negative, got {value}")
    result = bytearray()
    while True:
        bits = value & 0x7F
        value >>= 7
        if value:
            result.append(0x80 | bits)
        else:
            result.append(bits)
            return bytes(result)


def decode_varint(data: bytes, pos: int) -> Tuple[int, int]:
    """Read a varint at pos. Returns (value, position after the varint)."""
    result = 0
    shift = 0
    n = len(data)
    start = pos
    while True:
        if pos >= n:
            raise TruncatedInputError(f"Input ends inside a varint at offset {start}")
        byte = data[pos]
        pos += 1
        result |= (byte & 0x7F) << shift
        if not byte & 0x80:  # High bit tells whether to continue
            return result & UINT64_MASK, pos
        shift += 7
        if pos - start >= MAX_VARINT_BYTES:
            raise DecodeError(f"Varint at offset {start} is longer than {MAX_VARINT_BYTES} bytes")


def to_unsigned64(value: int) -> int:
    """Two's complement representation of a signed value in 64 bits."""
    return value & UINT64_MASK


def to_signed(value: int, bits: int) -> int:
    """Interpret the low `bits` bits of value as a two's complement integer."""
    value &= (1 << bits) - 1
    if value >> (bits - 1):
        value -= 1 << bits
    return value


def zigzag_encode(value: int) -> int:
    """Map signed integers to unsigned ones so small magnitudes stay small."""
    if value < 0:
        return ((value ^ -1) << 1) | 1
    return value << 1


def zigzag_decode(value: int) -> int:
    """Inverse of zigzag_encode()."""
    return (value >> 1) ^ -(value & 1)


def encode_key(number: int, wire_type: WireType) -> bytes:
    return encode_varint((number << 3) | int(wire_type))


def decode_key(data: bytes, pos: int) -> Tuple[int, int, int]:
    """Read a field key. Returns (field number, wire type, new position)."""
    key, new_pos = decode_varint(data, pos)
    number = key >> 3
    if number == 0:
        raise DecodeError(f"Invalid field number 0 at offset {pos}")
    return number, key & 0x07, new_pos


def read_fixed(data: bytes, pos: int, size: int) -> Tuple[bytes, int]:
    end = pos + size
    if end > len(data):
        raise TruncatedInputError(
            f"Input ends inside a {size}-byte value at offset {pos}"
        )
    return data[pos:end], end


def read_length_delimited(data: bytes, pos: int) -> Tuple[bytes, int]:
    """Read a length prefix and the payload it announces."""
    length, pos = decode_varint(data, pos)
    end = pos + length
    if end > len(data):
        raise TruncatedInputError(
            f"Length-delimited value at offset {pos} needs {length} bytes, "
            f"{len(data) - pos} available"
        )
    return data[pos:end], end


def skip_field(data: bytes, pos: int, wire_type: int) -> int:
    """Return the position just past a payload of the given wire type."""
    if wire_type == WireType.VARINT:
        _, pos = decode_varint(data, pos)
        return pos
    if wire_type == WireType.FIXED64:
        return read_fixed(data, pos, 8)[1]
    if wire_type == WireType.LENGTH_DELIMITED:
        return read_length_delimited(data, pos)[1]
    if wire_type == WireType.FIXED32:
        return read_fixed(data, pos, 4)[1]
    raise DecodeError(f"Unsupported wire type {int(wire_type)} at offset {pos}")


# struct formats for the fixed-width encodings, all little endian.
FIXED_FORMATS = {
    "fixed32": struct.Struct("<I"),
    "sfixed32": struct.Struct("<i"),
    "float": struct.Struct("<f"),
    "fixed64": struct.Struct("<Q"),
    "sfixed64": struct.Struct("<q"),
    "double": struct.Struct("<d"),
}
