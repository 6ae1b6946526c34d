"""Transform proto AST nodes into resolved message and enum descriptors."""

from __future__ import annotations

from typing import List, Optional, Tuple, Union

from protobuffer.errors import UnresolvedTypeError
from protobuffer.models import (
    SCALAR_TYPES,
    Cardinality,
    EnumDescriptor,
    FieldDescriptor,
    MessageDescriptor,
    ResolvedSchema,
    ValueType,
)

from .proto_ast import ProtoEnum, ProtoField, ProtoFile, ProtoMessage

TypeDescriptor = Union[MessageDescriptor, EnumDescriptor]


def transform_proto(ast: ProtoFile, source: str) -> ResolvedSchema:
    """Transform a ProtoFile AST into a ResolvedSchema.

    Every message and enum is registered first, so fields can reference types
    declared anywhere in the file. Raises UnresolvedTypeError for references
    to types that are not declared.
    """
    schema = ResolvedSchema(source=source, syntax=ast.syntax, package=ast.package)
    pending: List[Tuple[ProtoMessage, MessageDescriptor, str]] = []

    for enum_node in ast.enums:
        _declare_enum(enum_node, "", schema)
    for msg_node in ast.messages:
        _declare_message(msg_node, "", schema, pending)

    for msg_node, desc, scope in pending:
        for f in msg_node.fields:
            desc.add_field(_transform_field(f, desc, scope, schema))

    return schema


def _qualify(schema: ResolvedSchema, relative_name: str) -> str:
    if schema.package:
        return f"{schema.package}.{relative_name}"
    return relative_name


def _declare_enum(node: ProtoEnum, parent: str, schema: ResolvedSchema) -> None:
    relative_name = f"{parent}.{node.name}" if parent else node.name
    schema.enums[relative_name] = EnumDescriptor(
        name=node.name,
        full_name=_qualify(schema, relative_name),
        values={v.name: v.number for v in node.values},
    )


def _declare_message(
    node: ProtoMessage,
    parent: str,
    schema: ResolvedSchema,
    pending: List[Tuple[ProtoMessage, MessageDescriptor, str]],
) -> None:
    """Register a message and, recursively, the types nested inside it."""
    relative_name = f"{parent}.{node.name}" if parent else node.name
    desc = MessageDescriptor(name=node.name, full_name=_qualify(schema, relative_name))
    schema.messages[relative_name] = desc
    pending.append((node, desc, relative_name))

    for enum_node in node.nested_enums:
        _declare_enum(enum_node, relative_name, schema)
    for nested_node in node.nested_messages:
        _declare_message(nested_node, relative_name, schema, pending)


def _transform_field(
    node: ProtoField,
    owner: MessageDescriptor,
    scope: str,
    schema: ResolvedSchema,
) -> FieldDescriptor:
    if node.is_repeated:
        cardinality = Cardinality.REPEATED
    elif node.is_optional:
        cardinality = Cardinality.OPTIONAL
    else:
        cardinality = Cardinality.SINGULAR

    packed_option = node.options.get("packed")
    if packed_option is None:
        # proto2 packs only on request.
        packed = schema.syntax == "proto3"
    else:
        packed = packed_option == "true"

    fd = FieldDescriptor(
        name=node.field_name,
        number=node.field_number,
        value_type=ValueType.MESSAGE,
        cardinality=cardinality,
        type_name=node.type_name,
        oneof=node.oneof_name,
        packed=packed,
    )

    scalar = SCALAR_TYPES.get(node.type_name)
    if scalar is not None:
        fd.value_type = scalar
        return fd

    target = resolve_type_reference(node.type_name, scope, schema)
    if target is None:
        raise UnresolvedTypeError(node.type_name, owner.full_name)
    if isinstance(target, EnumDescriptor):
        fd.value_type = ValueType.ENUM
        fd.enum_type = target
    else:
        fd.message_type = target
    return fd


def resolve_type_reference(
    type_name: str,
    scope: str,
    schema: ResolvedSchema,
) -> Optional[TypeDescriptor]:
    """Find the message or enum a field type refers to.

    A relative name is searched from the innermost scope (the message holding
    the field) outward to the package, like protoc does. A name starting with
    '.' is fully qualified.
    """
    if type_name.startswith("."):
        full_name = type_name[1:]
        if schema.package:
            prefix = f"{schema.package}."
            if not full_name.startswith(prefix):
                return None
            full_name = full_name[len(prefix):]
        return _lookup(full_name, schema)

    parts = scope.split(".") if scope else []
    for depth in range(len(parts), -1, -1):
        candidate = ".".join(parts[:depth] + [type_name])
        found = _lookup(candidate, schema)
        if found is not None:
            return found

    # Package-qualified reference written without the leading dot.
    if schema.package and type_name.startswith(f"{schema.package}."):
        return _lookup(type_name[len(schema.package) + 1:], schema)
    return None


def _lookup(relative_name: str, schema: ResolvedSchema) -> Optional[TypeDescriptor]:
    if relative_name in schema.messages:
        return schema.messages[relative_name]
    return schema.enums.get(relative_name)
