"""Resolved schema descriptors used by the message runtime and the codec."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum, IntEnum
from typing import Dict, List, Optional


class WireType(IntEnum):
    VARINT = 0
    FIXED64 = 1
    LENGTH_DELIMITED = 2
    START_GROUP = 3
    END_GROUP = 4
    FIXED32 = 5


class ValueType(Enum):
    INT32 = "int32"
    INT64 = "int64"
    UINT32 = "uint32"
    UINT64 = "uint64"
    SINT32 = "sint32"
    SINT64 = "sint64"
    FIXED32 = "fixed32"
    FIXED64 = "fixed64"
    SFIXED32 = "sfixed32"
    SFIXED64 = "sfixed64"
    BOOL = "bool"
    STRING = "string"
    BYTES = "bytes"
    FLOAT = "float"
    DOUBLE = "double"
    MESSAGE = "message"
    ENUM = "enum"


class Cardinality(Enum):
    SINGULAR = "singular"
    OPTIONAL = "optional"
    REPEATED = "repeated"


# Proto scalar type names; any other field type is a message or enum reference.
SCALAR_TYPES: Dict[str, ValueType] = {
    vt.value: vt for vt in ValueType if vt not in (ValueType.MESSAGE, ValueType.ENUM)
}

VALUE_TYPE_TO_WIRE_TYPE: Dict[ValueType, WireType] = {
    ValueType.INT32: WireType.VARINT,
    ValueType.INT64: WireType.VARINT,
    ValueType.UINT32: WireType.VARINT,
    ValueType.UINT64: WireType.VARINT,
    ValueType.SINT32: WireType.VARINT,
    ValueType.SINT64: WireType.VARINT,
    ValueType.BOOL: WireType.VARINT,
    ValueType.ENUM: WireType.VARINT,
    ValueType.FIXED64: WireType.FIXED64,
    ValueType.SFIXED64: WireType.FIXED64,
    ValueType.DOUBLE: WireType.FIXED64,
    ValueType.FIXED32: WireType.FIXED32,
    ValueType.SFIXED32: WireType.FIXED32,
    ValueType.FLOAT: WireType.FIXED32,
    ValueType.STRING: WireType.LENGTH_DELIMITED,
    ValueType.BYTES: WireType.LENGTH_DELIMITED,
    ValueType.MESSAGE: WireType.LENGTH_DELIMITED,
}


@dataclass(eq=False)
class EnumDescriptor:
    name: str
    full_name: str
    # Symbol -> number, in declaration order.
    values: Dict[str, int] = field(default_factory=dict)

    @property
    def default_value(self) -> int:
        """The first declared value, which proto3 requires to be zero."""
        return next(iter(self.values.values()), 0)


@dataclass(eq=False)
class FieldDescriptor:
    name: str
    number: int
    value_type: ValueType
    cardinality: Cardinality = Cardinality.SINGULAR
    # Declared type name as written in the schema, e.g. "Inner" or ".pkg.Inner".
    type_name: str = ""
    message_type: Optional[MessageDescriptor] = field(default=None, repr=False)
    enum_type: Optional[EnumDescriptor] = field(default=None, repr=False)
    oneof: Optional[str] = None
    packed: bool = True

    @property
    def wire_type(self) -> WireType:
        return VALUE_TYPE_TO_WIRE_TYPE[self.value_type]

    @property
    def is_repeated(self) -> bool:
        return self.cardinality is Cardinality.REPEATED

    @property
    def is_packable(self) -> bool:
        """Repeated numeric fields may use the packed encoding."""
        return self.is_repeated and self.wire_type is not WireType.LENGTH_DELIMITED

    @property
    def is_packed(self) -> bool:
        return self.is_packable and self.packed

    @property
    def type_label(self) -> str:
        """Human readable type, used in error messages."""
        if self.value_type is ValueType.MESSAGE and self.message_type is not None:
            base = self.message_type.full_name
        elif self.value_type is ValueType.ENUM and self.enum_type is not None:
            base = self.enum_type.full_name
        else:
            base = self.value_type.value
        if self.is_repeated:
            return f"repeated {base}"
        return base


@dataclass(eq=False)
class MessageDescriptor:
    name: str
    full_name: str
    fields: List[FieldDescriptor] = field(default_factory=list)
    fields_by_name: Dict[str, FieldDescriptor] = field(default_factory=dict, repr=False)
    fields_by_number: Dict[int, FieldDescriptor] = field(default_factory=dict, repr=False)
    # Oneof name -> member field names.
    oneofs: Dict[str, List[str]] = field(default_factory=dict)

    def add_field(self, fd: FieldDescriptor) -> None:
        self.fields.append(fd)
        self.fields_by_name[fd.name] = fd
        self.fields_by_number[fd.number] = fd
        if fd.oneof is not None:
            self.oneofs.setdefault(fd.oneof, []).append(fd.name)


@dataclass(eq=False)
class ResolvedSchema:
    """All messages and enums of one .proto source with references resolved.

    Both maps are keyed by the dotted name relative to the package, e.g.
    "Outer.Inner"; descriptor full names include the package.
    """

    source: str
    syntax: str = "proto3"
    package: str = ""
    messages: Dict[str, MessageDescriptor] = field(default_factory=dict)
    enums: Dict[str, EnumDescriptor] = field(default_factory=dict)
