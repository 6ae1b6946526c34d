"""DynamicMessage: a schema-bound record whose fields are addressed by name.

A message owns its nested messages by value. Assigning a message to a field
stores a copy, and children never point back at their parent, so a message
tree can never contain a cycle even when the schema types are recursive.
"""

from __future__ import annotations

import math
from collections.abc import Mapping
from typing import Any, Dict, List, Optional, Tuple

from protobuffer import codec
from protobuffer.coercion import default_value, from_typed, is_sequence, to_typed, to_typed_list
from protobuffer.errors import TypeMismatchError
from protobuffer.models import FieldDescriptor, MessageDescriptor, ValueType
from protobuffer.registry import field_by_name
from protobuffer.wire_format import MAX_NESTING_DEPTH


class DynamicMessage:
    """A message instance bound to one MessageDescriptor.

    Values are kept per field number; unset fields are simply absent. Every
    setter validates before it mutates, so a failed call leaves the message
    unchanged.
    """

    __slots__ = ("_descriptor", "_values")

    def __init__(self, descriptor: MessageDescriptor):
        self._descriptor = descriptor
        self._values: Dict[int, Any] = {}

    @classmethod
    def from_bytes(cls, descriptor: MessageDescriptor, data: bytes) -> DynamicMessage:
        """Decode data into a new message of the given type."""
        return cls(descriptor).decode(data)

    @property
    def descriptor(self) -> MessageDescriptor:
        return self._descriptor

    # -- field access by name --

    def set_field(self, name: str, value: Any) -> DynamicMessage:
        """Set a field, replacing any previous value.

        Repeated fields take a list or tuple, which replaces the whole
        sequence (an empty one clears the field); use add_field to append.
        Returns the message so calls can be chained.
        """
        fd = field_by_name(self._descriptor, name)
        if fd.is_repeated:
            if not is_sequence(value):
                raise TypeMismatchError(
                    fd.name,
                    fd.type_label,
                    type(value).__name__,
                    "use add_field to append a single element",
                )
            if fd.value_type is ValueType.MESSAGE:
                typed = [self._coerce(fd, v) for v in value]
            else:
                typed = to_typed_list(value, fd)
            if typed:
                self._values[fd.number] = typed
            else:
                self._values.pop(fd.number, None)
        else:
            self.set_typed(fd, self._coerce(fd, value))
        return self

    def add_field(self, name: str, value: Any) -> DynamicMessage:
        """Append one element to a repeated field."""
        fd = field_by_name(self._descriptor, name)
        if not fd.is_repeated:
            raise TypeMismatchError(
                fd.name, fd.type_label, type(value).__name__, "add_field needs a repeated field"
            )
        self.append_typed(fd, self._coerce(fd, value))
        return self

    def get_field(self, name: str) -> Any:
        """Return a field's value, or its proto3 default when unset.

        Unset message fields return None. Nested messages are returned as the
        instances owned by this message, so changing them changes this message.
        """
        fd = field_by_name(self._descriptor, name)
        if fd.number not in self._values:
            return default_value(fd)
        value = self._values[fd.number]
        if fd.value_type is ValueType.MESSAGE:
            return list(value) if fd.is_repeated else value
        if fd.is_repeated:
            return [from_typed(v, fd) for v in value]
        return from_typed(value, fd)

    def has_field(self, name: str) -> bool:
        fd = field_by_name(self._descriptor, name)
        return fd.number in self._values

    def clear_field(self, name: str) -> DynamicMessage:
        fd = field_by_name(self._descriptor, name)
        self._values.pop(fd.number, None)
        return self

    def which_oneof(self, oneof_name: str) -> Optional[str]:
        """Name of the member of a oneof group that is set, if any."""
        if oneof_name not in self._descriptor.oneofs:
            raise ValueError(f"Message '{self._descriptor.full_name}' has no oneof '{oneof_name}'")
        for member in self._descriptor.oneofs[oneof_name]:
            if self._descriptor.fields_by_name[member].number in self._values:
                return member
        return None

    def list_fields(self) -> List[Tuple[FieldDescriptor, Any]]:
        """(descriptor, typed value) pairs of the set fields, by field number."""
        fields_by_number = self._descriptor.fields_by_number
        return [(fields_by_number[n], self._values[n]) for n in sorted(self._values)]

    # -- serialization --

    def encode(self) -> bytes:
        return codec.encode(self)

    def decode(self, data: bytes) -> DynamicMessage:
        """Replace this message's fields with the ones decoded from data.

        On error the message keeps its previous contents.
        """
        if not isinstance(data, (bytes, bytearray, memoryview)):
            raise TypeError(f"decode() expects bytes, got {type(data).__name__}")
        fresh = DynamicMessage(self._descriptor)
        codec.merge(fresh, bytes(data))
        self._values = fresh._values
        return self

    # -- typed value access, used by the codec --

    def set_typed(self, fd: FieldDescriptor, value: Any) -> None:
        if fd.oneof is not None:
            for member in self._descriptor.oneofs[fd.oneof]:
                self._values.pop(self._descriptor.fields_by_name[member].number, None)
        self._values[fd.number] = value

    def append_typed(self, fd: FieldDescriptor, value: Any) -> None:
        self._values.setdefault(fd.number, []).append(value)

    def mutable_child(self, fd: FieldDescriptor) -> DynamicMessage:
        """Return the nested message stored in fd, creating it if unset."""
        child = self._values.get(fd.number)
        if child is None:
            child = DynamicMessage(fd.message_type)
            self.set_typed(fd, child)
        return child

    def _coerce(self, fd: FieldDescriptor, value: Any, _building: Tuple[int, ...] = ()) -> Any:
        if fd.value_type is not ValueType.MESSAGE:
            return to_typed(value, fd)

        if isinstance(value, DynamicMessage):
            if value.descriptor is not fd.message_type:
                raise TypeMismatchError(fd.name, fd.type_label, value.descriptor.full_name)
            return value.copy()

        if isinstance(value, Mapping):
            if id(value) in _building:
                raise TypeMismatchError(
                    fd.name, fd.type_label, type(value).__name__, "value contains itself"
                )
            if len(_building) >= MAX_NESTING_DEPTH:
                raise TypeMismatchError(
                    fd.name,
                    fd.type_label,
                    type(value).__name__,
                    f"nested deeper than {MAX_NESTING_DEPTH} levels",
                )
            child = DynamicMessage(fd.message_type)
            for name, item in value.items():
                child_fd = field_by_name(fd.message_type, name)
                building = _building + (id(value),)
                if not child_fd.is_repeated:
                    child.set_typed(child_fd, child._coerce(child_fd, item, building))
                    continue
                if child_fd.value_type is not ValueType.MESSAGE:
                    typed = to_typed_list(item, child_fd)
                elif is_sequence(item):
                    typed = [child._coerce(child_fd, v, building) for v in item]
                else:
                    raise TypeMismatchError(child_fd.name, child_fd.type_label, type(item).__name__)
                if typed:
                    child._values[child_fd.number] = typed
            return child

        raise TypeMismatchError(fd.name, fd.type_label, type(value).__name__)

    # -- conveniences --

    def copy(self) -> DynamicMessage:
        """Deep copy; nested messages are copied too."""
        result = DynamicMessage(self._descriptor)
        for number, value in self._values.items():
            if isinstance(value, list):
                value = [v.copy() if isinstance(v, DynamicMessage) else v for v in value]
            elif isinstance(value, DynamicMessage):
                value = value.copy()
            result._values[number] = value
        return result

    def to_dict(self) -> Dict[str, Any]:
        """Set fields as host values; nested messages become dicts."""
        result: Dict[str, Any] = {}
        for fd, value in self.list_fields():
            if fd.value_type is ValueType.MESSAGE:
                if fd.is_repeated:
                    result[fd.name] = [v.to_dict() for v in value]
                else:
                    result[fd.name] = value.to_dict()
            elif fd.is_repeated:
                result[fd.name] = [from_typed(v, fd) for v in value]
            else:
                result[fd.name] = from_typed(value, fd)
        return result

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, DynamicMessage):
            return NotImplemented
        if self._descriptor is not other._descriptor or self._values.keys() != other._values.keys():
            return False
        return all(_values_equal(v, other._values[n]) for n, v in self._values.items())

    def __repr__(self) -> str:
        return f"<DynamicMessage {self._descriptor.full_name} {self.to_dict()!r}>"


def _values_equal(a: Any, b: Any) -> bool:
    """Typed value equality where a NaN float equals another NaN."""
    if isinstance(a, float) and isinstance(b, float):
        return a == b or (math.isnan(a) and math.isnan(b))
    if isinstance(a, list) and isinstance(b, list):
        return len(a) == len(b) and all(_values_equal(x, y) for x, y in zip(a, b))
    return a == b
