"""Binary wire format encoder and decoder for DynamicMessage."""

from __future__ import annotations

import logging
from typing import Any, List, Tuple

from protobuffer.errors import DecodeError, EncodeError, WireTypeMismatchError
from protobuffer.models import FieldDescriptor, ValueType, WireType
from protobuffer.registry import field_by_tag
from protobuffer.wire_format import (
    FIXED_FORMATS,
    MAX_NESTING_DEPTH,
    UINT32_MASK,
    decode_key,
    decode_varint,
    encode_key,
    encode_varint,
    read_fixed,
    read_length_delimited,
    skip_field,
    to_signed,
    to_unsigned64,
    zigzag_decode,
    zigzag_encode,
)

logger = logging.getLogger(__name__)


#
# ENCODING
#


def encode(message, depth: int = 0) -> bytes:
    """Serialize every set field of message, in ascending field number order.

    Fields explicitly set to their default value are written as well: the
    runtime tracks presence, so only unset fields are omitted. Raises
    EncodeError for messages nested more than MAX_NESTING_DEPTH levels.
    """
    if depth > MAX_NESTING_DEPTH:
        raise EncodeError(
            f"Message {message.descriptor.full_name} is nested deeper than "
            f"{MAX_NESTING_DEPTH} levels"
        )
    chunks: List[bytes] = []
    for fd, value in message.list_fields():
        if fd.is_packed:
            payload = b"".join(_encode_value(v, fd, depth) for v in value)
            chunks.append(encode_key(fd.number, WireType.LENGTH_DELIMITED))
            chunks.append(encode_varint(len(payload)))
            chunks.append(payload)
        elif fd.is_repeated:
            for v in value:
                chunks.append(encode_key(fd.number, fd.wire_type))
                chunks.append(_encode_value(v, fd, depth))
        else:
            chunks.append(encode_key(fd.number, fd.wire_type))
            chunks.append(_encode_value(value, fd, depth))
    return b"".join(chunks)


def _encode_value(value: Any, fd: FieldDescriptor, depth: int) -> bytes:
    """Encode one typed value without its key."""
    vt = fd.value_type
    if vt in (ValueType.INT32, ValueType.INT64, ValueType.ENUM):
        # Negative values take all ten bytes, as in every protobuf runtime.
        return encode_varint(to_unsigned64(value))
    if vt in (ValueType.UINT32, ValueType.UINT64):
        return encode_varint(value)
    if vt in (ValueType.SINT32, ValueType.SINT64):
        return encode_varint(zigzag_encode(value))
    if vt is ValueType.BOOL:
        return b"\x01" if value else b"\x00"
    if vt.value in FIXED_FORMATS:
        return FIXED_FORMATS[vt.value].pack(value)
    if vt in (ValueType.STRING, ValueType.BYTES):
        return encode_varint(len(value)) + value
    if vt is ValueType.MESSAGE:
        body = encode(value, depth + 1)
        return encode_varint(len(body)) + body
    raise ValueError(f"Cannot encode field '{fd.name}' of type {vt.value}")


#
# DECODING
#


def merge(message, data: bytes, depth: int = 0) -> None:
    """Decode data into message, field by field, in one left-to-right scan.

    Fields whose number is not declared are skipped. Singular message fields
    seen more than once are merged; other singular fields keep the last value.
    Raises DecodeError for input nested more than MAX_NESTING_DEPTH levels.
    """
    descriptor = message.descriptor
    if depth > MAX_NESTING_DEPTH:
        raise DecodeError(
            f"Input for {descriptor.full_name} is nested deeper than "
            f"{MAX_NESTING_DEPTH} levels"
        )
    pos = 0
    n = len(data)
    while pos < n:
        number, wire_type, pos = decode_key(data, pos)
        fd = field_by_tag(descriptor, number)

        if fd is None:
            pos = skip_field(data, pos, wire_type)
            logger.debug(
                "Skipped unknown field %d (wire type %d) in %s",
                number,
                wire_type,
                descriptor.full_name,
            )
            continue

        if fd.is_packable and wire_type == WireType.LENGTH_DELIMITED:
            payload, pos = read_length_delimited(data, pos)
            p = 0
            while p < len(payload):
                value, p = _decode_value(payload, p, fd)
                message.append_typed(fd, value)
            continue

        if wire_type != fd.wire_type:
            raise WireTypeMismatchError(number, int(fd.wire_type), wire_type)

        if fd.value_type is ValueType.MESSAGE:
            payload, pos = read_length_delimited(data, pos)
            if fd.is_repeated:
                child = type(message)(fd.message_type)
                merge(child, payload, depth + 1)
                message.append_typed(fd, child)
            else:
                merge(message.mutable_child(fd), payload, depth + 1)
            continue

        value, pos = _decode_value(data, pos, fd)
        if fd.is_repeated:
            message.append_typed(fd, value)
        else:
            message.set_typed(fd, value)


def _decode_value(data: bytes, pos: int, fd: FieldDescriptor) -> Tuple[Any, int]:
    """Decode one non-message payload. Returns (typed value, new position)."""
    vt = fd.value_type

    if fd.wire_type is WireType.VARINT:
        raw, pos = decode_varint(data, pos)
        if vt in (ValueType.INT32, ValueType.ENUM):
            return to_signed(raw, 32), pos
        if vt is ValueType.INT64:
            return to_signed(raw, 64), pos
        if vt is ValueType.UINT32:
            return raw & UINT32_MASK, pos
        if vt is ValueType.SINT32:
            return zigzag_decode(raw & UINT32_MASK), pos
        if vt is ValueType.SINT64:
            return zigzag_decode(raw), pos
        if vt is ValueType.BOOL:
            return raw != 0, pos
        return raw, pos  # uint64

    if vt.value in FIXED_FORMATS:
        fmt = FIXED_FORMATS[vt.value]
        chunk, pos = read_fixed(data, pos, fmt.size)
        return fmt.unpack(chunk)[0], pos

    payload, pos = read_length_delimited(data, pos)
    if vt is ValueType.STRING:
        try:
            payload.decode("utf-8")
        except UnicodeDecodeError as e:
            raise DecodeError(f"Field '{fd.name}' holds invalid UTF-8: {e}") from None
    return payload, pos
