"""Entry point for host scripts: load a message type from a .proto file."""

from __future__ import annotations

from typing import Dict, Optional

from protobuffer.message import DynamicMessage
from protobuffer.registry import SchemaRegistry, resolve_message


class ProtoBuffer:
    """Loads dynamic messages from .proto schemas.

    Each instance owns its SchemaRegistry unless one is passed in, so
    independent schema sets can live side by side.

    Example:
        pb = ProtoBuffer()
        msg = pb.load("example.proto", "ExampleMessage")
        data = msg.set_field("field1", "test1").set_field("field2", 123).encode()
        copy = pb.load("example.proto", "ExampleMessage").decode(data)
    """

    def __init__(self, registry: Optional[SchemaRegistry] = None):
        self.registry = registry or SchemaRegistry()
        # Most recent message loaded for each message name.
        self.messages: Dict[str, DynamicMessage] = {}

    def load(self, schema_path: str, message_name: str) -> DynamicMessage:
        """Return a new, empty message of type message_name.

        Raises FileNotFoundError if the schema cannot be read, ProtoSyntaxError
        or UnresolvedTypeError if it is invalid, and UnknownMessageError if it
        does not declare message_name.
        """
        schema = self.registry.load_schema(schema_path)
        message = DynamicMessage(resolve_message(schema, message_name))
        self.messages[message_name] = message
        return message
