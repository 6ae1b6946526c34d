"""AST node definitions for protobuf (.proto) files."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple


@dataclass
class ProtoField:
    """A field declaration: [repeated|optional] Type name = number [options];"""

    type_name: str
    field_name: str
    field_number: int
    is_repeated: bool = False
    is_optional: bool = False
    oneof_name: Optional[str] = None
    options: Dict[str, str] = field(default_factory=dict)
    line: int = 0
    col: int = 0


@dataclass
class ProtoEnumValue:
    name: str
    number: int
    line: int = 0
    col: int = 0


@dataclass
class ProtoEnum:
    """An enum definition with its values in declaration order."""

    name: str
    values: List[ProtoEnumValue] = field(default_factory=list)
    allow_alias: bool = False


@dataclass
class ProtoMessage:
    """A message definition, possibly containing nested messages and enums."""

    name: str
    fields: List[ProtoField] = field(default_factory=list)
    nested_messages: List[ProtoMessage] = field(default_factory=list)
    nested_enums: List[ProtoEnum] = field(default_factory=list)
    oneofs: List[str] = field(default_factory=list)
    # Inclusive (start, end) number ranges.
    reserved_ranges: List[Tuple[int, int]] = field(default_factory=list)
    reserved_names: List[str] = field(default_factory=list)


@dataclass
class ProtoFile:
    """Top-level parsed representation of a .proto file."""

    syntax: str = "proto3"
    package: str = ""
    imports: List[str] = field(default_factory=list)
    messages: List[ProtoMessage] = field(default_factory=list)
    enums: List[ProtoEnum] = field(default_factory=list)
