"""Schema registry: parses .proto sources once and answers type lookups."""

from __future__ import annotations

import logging
import threading
from pathlib import Path
from typing import Callable, Dict, Optional

from protobuffer.errors import UnknownFieldError, UnknownMessageError
from protobuffer.models import FieldDescriptor, MessageDescriptor, ResolvedSchema
from protobuffer.parser.proto_parser import parse_proto_text
from protobuffer.parser.proto_transform import transform_proto

logger = logging.getLogger(__name__)


def _read_file(path: str) -> str:
    return Path(path).read_text(encoding="utf-8")


class SchemaRegistry:
    """Cache of resolved schemas keyed by source path.

    Resolved schemas are never mutated after they are published, so lookups
    read the cache without locking; the lock only serializes first loads.
    """

    def __init__(self, reader: Optional[Callable[[str], str]] = None):
        self._reader = reader or _read_file
        self._schemas: Dict[str, ResolvedSchema] = {}
        self._lock = threading.Lock()

    def load_schema(self, path: str) -> ResolvedSchema:
        """Parse and resolve the schema at path, reusing a cached result.

        Raises FileNotFoundError if the reader cannot find path, and
        ProtoSyntaxError or UnresolvedTypeError for an invalid schema.
        """
        schema = self._schemas.get(path)
        if schema is not None:
            logger.debug("Schema cache hit for %s", path)
            return schema

        with self._lock:
            schema = self._schemas.get(path)
            if schema is None:
                schema = self.load_schema_text(self._reader(path), source=path)
                self._schemas[path] = schema
        return schema

    def load_schema_text(self, text: str, source: str = "<string>") -> ResolvedSchema:
        """Parse and resolve schema text without caching it."""
        ast = parse_proto_text(text)
        schema = transform_proto(ast, source)
        logger.debug(
            "Parsed %s: %d message(s), %d enum(s)",
            source,
            len(schema.messages),
            len(schema.enums),
        )
        return schema

    def is_cached(self, path: str) -> bool:
        return path in self._schemas

    def clear(self) -> None:
        with self._lock:
            self._schemas = {}


def resolve_message(schema: ResolvedSchema, message_name: str) -> MessageDescriptor:
    """Look up a message by simple, nested ("Outer.Inner") or qualified name."""
    name = message_name.lstrip(".")
    desc = schema.messages.get(name)
    if desc is None and schema.package and name.startswith(f"{schema.package}."):
        desc = schema.messages.get(name[len(schema.package) + 1:])
    if desc is None:
        raise UnknownMessageError(message_name)
    return desc


def field_by_name(descriptor: MessageDescriptor, name: str) -> FieldDescriptor:
    fd = descriptor.fields_by_name.get(name)
    if fd is None:
        raise UnknownFieldError(name, descriptor.full_name)
    return fd


def field_by_tag(descriptor: MessageDescriptor, number: int) -> Optional[FieldDescriptor]:
    """Return the field with the given number, or None if it is not declared."""
    return descriptor.fields_by_number.get(number)
