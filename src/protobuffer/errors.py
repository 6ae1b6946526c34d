"""Exceptions raised by the protobuffer runtime."""

from __future__ import annotations


class ProtoBufferError(Exception):
    """Base class for every error raised by this package."""


class ProtoSyntaxError(ProtoBufferError):
    """Raised when .proto source text is malformed."""

    def __init__(self, message: str, line: int, column: int):
        super().__init__(f"Line {line}:{column}: {message}")
        self.message = message
        self.line = line
        self.column = column


class UnresolvedTypeError(ProtoBufferError):
    """Raised when a field references a type not declared in the schema."""

    def __init__(self, type_name: str, in_message: str):
        super().__init__(
            f"Unresolved type '{type_name}' referenced in message '{in_message}'"
        )
        self.type_name = type_name
        self.in_message = in_message


class UnknownMessageError(ProtoBufferError):
    def __init__(self, message_name: str):
        super().__init__(f"Message type '{message_name}' not found in schema")
        self.message_name = message_name


class UnknownFieldError(ProtoBufferError):
    def __init__(self, field_name: str, message_name: str):
        super().__init__(
            f"Field '{field_name}' not found in message '{message_name}'"
        )
        self.field_name = field_name
        self.message_name = message_name


class TypeMismatchError(ProtoBufferError):
    """Raised when a host value cannot be coerced to a field's type."""

    def __init__(self, field: str, expected_type: str, got_type: str, detail: str = ""):
        message = f"Field '{field}' expects {expected_type}, got {got_type}"
        if detail:
            message = f"{message} ({detail})"
        super().__init__(message)
        self.field = field
        self.expected_type = expected_type
        self.got_type = got_type


class EncodeError(ProtoBufferError):
    """Raised when a message cannot be serialized."""


class DecodeError(ProtoBufferError):
    """Raised when binary input is not a valid encoding of the message."""


class WireTypeMismatchError(DecodeError):
    def __init__(self, tag: int, expected: int, got: int):
        super().__init__(
            f"Field number {tag} has wire type {got}, expected {expected}"
        )
        self.tag = tag
        self.expected = expected
        self.got = got


class TruncatedInputError(DecodeError):
    """Raised when the input ends in the middle of a field."""
