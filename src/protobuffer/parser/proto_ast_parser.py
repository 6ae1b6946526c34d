"""Recursive descent parser for protobuf (.proto) files.

Consumes a token stream from proto_tokenizer and produces proto AST nodes.
Declarations are checked as they are parsed (field numbers, duplicate names,
enum values), but type references are left as written: resolving them is the
job of proto_transform, so a field may refer to a type declared further down
the file.
"""

from __future__ import annotations

from typing import Dict, List, Set

from protobuffer.errors import ProtoSyntaxError

from .proto_ast import ProtoEnum, ProtoEnumValue, ProtoField, ProtoFile, ProtoMessage
from .proto_tokenizer import ProtoToken, ProtoTokenType

FIELD_NUMBER_MIN = 1
FIELD_NUMBER_MAX = (1 << 29) - 1
# Numbers reserved for the protobuf implementation itself.
RESERVED_NUMBER_RANGE = (19000, 19999)

INT32_MIN = -(1 << 31)
INT32_MAX = (1 << 31) - 1

# Keywords are contextual in .proto files: "to", "max" or "optional" are
# valid field and value names.
_KEYWORD_TYPES = {
    ProtoTokenType.MESSAGE,
    ProtoTokenType.REPEATED,
    ProtoTokenType.OPTIONAL,
    ProtoTokenType.SYNTAX,
    ProtoTokenType.PACKAGE,
    ProtoTokenType.OPTION,
    ProtoTokenType.RESERVED,
    ProtoTokenType.IMPORT,
    ProtoTokenType.ENUM,
    ProtoTokenType.ONEOF,
    ProtoTokenType.MAP,
    ProtoTokenType.SERVICE,
    ProtoTokenType.EXTEND,
    ProtoTokenType.TO,
    ProtoTokenType.MAX,
}


def parse_int_literal(tok: ProtoToken) -> int:
    """Convert a NUMBER token (decimal, hex or octal) to an int."""
    text = tok.value
    try:
        if text.lower().startswith("0x"):
            return int(text[2:], 16)
        if len(text) > 1 and text.startswith("0"):
            return int(text[1:], 8)
        return int(text, 10)
    except ValueError:
        raise ProtoSyntaxError(f"Invalid integer literal {text!r}", tok.line, tok.col) from None


class ProtoParser:
    """Recursive descent parser for .proto files."""

    def __init__(self, tokens: List[ProtoToken]):
        self._tokens = tokens
        self._pos = 0

    # -- public API --

    def parse(self) -> ProtoFile:
        """Parse the full token stream into a ProtoFile AST."""
        result = ProtoFile()
        top_level_names: Set[str] = set()

        while not self._at_end():
            tok = self._peek()
            tt = tok.type

            if tt == ProtoTokenType.MESSAGE:
                msg = self._parse_message()
                self._declare(top_level_names, msg.name, tok)
                result.messages.append(msg)
            elif tt == ProtoTokenType.ENUM:
                enum = self._parse_enum()
                self._declare(top_level_names, enum.name, tok)
                result.enums.append(enum)
            elif tt == ProtoTokenType.SYNTAX:
                result.syntax = self._parse_syntax()
            elif tt == ProtoTokenType.PACKAGE:
                self._advance()
                result.package = self._parse_type_name()
                self._expect(ProtoTokenType.SEMICOLON)
            elif tt == ProtoTokenType.IMPORT:
                result.imports.append(self._parse_import())
            elif tt == ProtoTokenType.OPTION:
                self._skip_statement()
            elif tt in (ProtoTokenType.SERVICE, ProtoTokenType.EXTEND):
                self._skip_block()
            elif tt == ProtoTokenType.SEMICOLON:
                self._advance()
            elif tt == ProtoTokenType.RBRACE:
                raise ProtoSyntaxError("Unbalanced '}'", tok.line, tok.col)
            else:
                raise ProtoSyntaxError(f"Unexpected token {tok.value!r}", tok.line, tok.col)

        return result

    # -- file-level statements --

    def _parse_syntax(self) -> str:
        """Parse: SYNTAX EQUALS STRING_LIT SEMICOLON"""
        self._expect(ProtoTokenType.SYNTAX)
        self._expect(ProtoTokenType.EQUALS)
        tok = self._expect(ProtoTokenType.STRING_LIT)
        if tok.value not in ("proto2", "proto3"):
            raise ProtoSyntaxError(f"Unsupported syntax {tok.value!r}", tok.line, tok.col)
        self._expect(ProtoTokenType.SEMICOLON)
        return tok.value

    def _parse_import(self) -> str:
        """Parse: IMPORT [public|weak] STRING_LIT SEMICOLON"""
        self._expect(ProtoTokenType.IMPORT)
        if self._peek().type == ProtoTokenType.IDENT and self._peek().value in ("public", "weak"):
            self._advance()
        tok = self._expect(ProtoTokenType.STRING_LIT)
        self._expect(ProtoTokenType.SEMICOLON)
        return tok.value

    # -- message parsing --

    def _parse_message(self) -> ProtoMessage:
        """Parse: MESSAGE IDENT LBRACE body RBRACE"""
        self._expect(ProtoTokenType.MESSAGE)
        name_tok = self._expect(ProtoTokenType.IDENT)
        self._expect(ProtoTokenType.LBRACE)
        msg = ProtoMessage(name=name_tok.value)
        self._parse_message_body(msg)
        self._expect(ProtoTokenType.RBRACE)
        self._check_fields(msg)
        return msg

    def _parse_message_body(self, msg: ProtoMessage) -> None:
        """Parse the contents between { and } of a message."""
        nested_names: Set[str] = set()

        while not self._at_end() and self._peek().type != ProtoTokenType.RBRACE:
            tok = self._peek()
            tt = tok.type

            if tt == ProtoTokenType.MESSAGE:
                nested = self._parse_message()
                self._declare(nested_names, nested.name, tok)
                msg.nested_messages.append(nested)
            elif tt == ProtoTokenType.ENUM:
                nested_enum = self._parse_enum()
                self._declare(nested_names, nested_enum.name, tok)
                msg.nested_enums.append(nested_enum)
            elif tt == ProtoTokenType.ONEOF:
                self._parse_oneof(msg)
            elif tt == ProtoTokenType.REPEATED:
                self._advance()
                msg.fields.append(self._parse_field(is_repeated=True))
            elif tt == ProtoTokenType.OPTIONAL:
                self._advance()
                msg.fields.append(self._parse_field(is_optional=True))
            elif tt == ProtoTokenType.MAP:
                raise ProtoSyntaxError("map fields are not supported", tok.line, tok.col)
            elif tt == ProtoTokenType.RESERVED:
                self._parse_reserved(msg)
            elif tt == ProtoTokenType.OPTION:
                self._skip_statement()
            elif tt == ProtoTokenType.EXTEND:
                self._skip_block()
            elif tt == ProtoTokenType.SEMICOLON:
                self._advance()
            elif (
                tt == ProtoTokenType.IDENT
                and tok.value == "extensions"
                and self._peek(1).type == ProtoTokenType.NUMBER
            ):
                self._skip_statement()
            elif tt == ProtoTokenType.IDENT and tok.value == "required":
                raise ProtoSyntaxError("required fields are not supported", tok.line, tok.col)
            elif tt in (ProtoTokenType.IDENT, ProtoTokenType.DOT):
                msg.fields.append(self._parse_field())
            else:
                raise ProtoSyntaxError(f"Unexpected token {tok.value!r}", tok.line, tok.col)

    def _parse_oneof(self, msg: ProtoMessage) -> None:
        """Parse: ONEOF IDENT LBRACE { field | option } RBRACE"""
        self._expect(ProtoTokenType.ONEOF)
        name_tok = self._expect_name()
        if name_tok.value in msg.oneofs:
            raise ProtoSyntaxError(
                f"Duplicate oneof '{name_tok.value}' in message '{msg.name}'",
                name_tok.line,
                name_tok.col,
            )
        msg.oneofs.append(name_tok.value)
        self._expect(ProtoTokenType.LBRACE)
        while not self._at_end() and self._peek().type != ProtoTokenType.RBRACE:
            tt = self._peek().type
            if tt == ProtoTokenType.OPTION:
                self._skip_statement()
            elif tt == ProtoTokenType.SEMICOLON:
                self._advance()
            else:
                field = self._parse_field()
                field.oneof_name = name_tok.value
                msg.fields.append(field)
        self._expect(ProtoTokenType.RBRACE)

    def _parse_field(self, *, is_repeated: bool = False, is_optional: bool = False) -> ProtoField:
        """Parse: Type IDENT(name) EQUALS NUMBER [options] SEMICOLON

        The cardinality keyword, if any, has already been consumed.
        """
        type_tok = self._peek()
        type_name = self._parse_type_name()
        name_tok = self._expect_name()
        self._expect(ProtoTokenType.EQUALS)
        num_tok = self._expect(ProtoTokenType.NUMBER)
        number = parse_int_literal(num_tok)
        if not FIELD_NUMBER_MIN <= number <= FIELD_NUMBER_MAX:
            raise ProtoSyntaxError(
                f"Field number {number} out of range "
                f"[{FIELD_NUMBER_MIN}, {FIELD_NUMBER_MAX}]",
                num_tok.line,
                num_tok.col,
            )
        if RESERVED_NUMBER_RANGE[0] <= number <= RESERVED_NUMBER_RANGE[1]:
            raise ProtoSyntaxError(
                f"Field number {number} is reserved for the protobuf implementation",
                num_tok.line,
                num_tok.col,
            )
        options: Dict[str, str] = {}
        if self._peek().type == ProtoTokenType.LBRACKET:
            options = self._parse_field_options()
        self._expect(ProtoTokenType.SEMICOLON)

        return ProtoField(
            type_name=type_name,
            field_name=name_tok.value,
            field_number=number,
            is_repeated=is_repeated,
            is_optional=is_optional,
            options=options,
            line=type_tok.line,
            col=type_tok.col,
        )

    def _parse_field_options(self) -> Dict[str, str]:
        """Parse: LBRACKET name EQUALS value { COMMA name EQUALS value } RBRACKET

        Option names and values are kept as the source text of their tokens.
        """
        self._expect(ProtoTokenType.LBRACKET)
        options: Dict[str, str] = {}
        while True:
            name_parts: List[str] = []
            while self._peek().type not in (ProtoTokenType.EQUALS, ProtoTokenType.EOF):
                name_parts.append(self._advance().value)
            self._expect(ProtoTokenType.EQUALS)
            value_parts: List[str] = []
            depth = 0
            while not self._at_end():
                tt = self._peek().type
                if depth == 0 and tt in (ProtoTokenType.COMMA, ProtoTokenType.RBRACKET):
                    break
                if tt == ProtoTokenType.LBRACE:
                    depth += 1
                elif tt == ProtoTokenType.RBRACE:
                    depth -= 1
                value_parts.append(self._advance().value)
            options["".join(name_parts)] = "".join(value_parts)
            if self._peek().type == ProtoTokenType.COMMA:
                self._advance()
                continue
            self._expect(ProtoTokenType.RBRACKET)
            return options

    def _parse_reserved(self, msg: ProtoMessage) -> None:
        """Parse: RESERVED (ranges | names) SEMICOLON"""
        self._expect(ProtoTokenType.RESERVED)
        while True:
            tok = self._peek()
            if tok.type == ProtoTokenType.STRING_LIT:
                msg.reserved_names.append(self._advance().value)
            else:
                start = parse_int_literal(self._expect(ProtoTokenType.NUMBER))
                end = start
                if self._peek().type == ProtoTokenType.TO:
                    self._advance()
                    if self._peek().type == ProtoTokenType.MAX:
                        self._advance()
                        end = FIELD_NUMBER_MAX
                    else:
                        end = parse_int_literal(self._expect(ProtoTokenType.NUMBER))
                if end < start:
                    raise ProtoSyntaxError(
                        f"Reserved range {start} to {end} is empty", tok.line, tok.col
                    )
                msg.reserved_ranges.append((start, end))
            if self._peek().type == ProtoTokenType.COMMA:
                self._advance()
                continue
            self._expect(ProtoTokenType.SEMICOLON)
            return

    def _check_fields(self, msg: ProtoMessage) -> None:
        """Reject duplicate or reserved field names and numbers."""
        names: Dict[str, ProtoField] = {}
        numbers: Dict[int, ProtoField] = {}
        for f in msg.fields:
            if f.field_name in names:
                raise ProtoSyntaxError(
                    f"Duplicate field name '{f.field_name}' in message '{msg.name}'",
                    f.line,
                    f.col,
                )
            if f.field_number in numbers:
                raise ProtoSyntaxError(
                    f"Field number {f.field_number} of '{f.field_name}' already used by "
                    f"'{numbers[f.field_number].field_name}' in message '{msg.name}'",
                    f.line,
                    f.col,
                )
            if f.field_name in msg.reserved_names:
                raise ProtoSyntaxError(
                    f"Field name '{f.field_name}' is reserved in message '{msg.name}'",
                    f.line,
                    f.col,
                )
            for start, end in msg.reserved_ranges:
                if start <= f.field_number <= end:
                    raise ProtoSyntaxError(
                        f"Field number {f.field_number} is reserved in message '{msg.name}'",
                        f.line,
                        f.col,
                    )
            names[f.field_name] = f
            numbers[f.field_number] = f

    # -- enum parsing --

    def _parse_enum(self) -> ProtoEnum:
        """Parse: ENUM IDENT LBRACE { value | option | reserved } RBRACE"""
        self._expect(ProtoTokenType.ENUM)
        name_tok = self._expect(ProtoTokenType.IDENT)
        self._expect(ProtoTokenType.LBRACE)
        enum = ProtoEnum(name=name_tok.value)

        while not self._at_end() and self._peek().type != ProtoTokenType.RBRACE:
            tok = self._peek()
            tt = tok.type
            if tt == ProtoTokenType.OPTION:
                if self._peek(1).value == "allow_alias":
                    self._advance()
                    self._advance()
                    self._expect(ProtoTokenType.EQUALS)
                    enum.allow_alias = self._expect_name().value == "true"
                    self._expect(ProtoTokenType.SEMICOLON)
                else:
                    self._skip_statement()
            elif tt == ProtoTokenType.RESERVED:
                self._skip_statement()
            elif tt == ProtoTokenType.SEMICOLON:
                self._advance()
            else:
                enum.values.append(self._parse_enum_value())

        self._expect(ProtoTokenType.RBRACE)
        self._check_enum_values(enum)
        return enum

    def _parse_enum_value(self) -> ProtoEnumValue:
        """Parse: IDENT EQUALS [MINUS] NUMBER [options] SEMICOLON"""
        name_tok = self._expect_name()
        self._expect(ProtoTokenType.EQUALS)
        negative = False
        if self._peek().type == ProtoTokenType.MINUS:
            self._advance()
            negative = True
        num_tok = self._expect(ProtoTokenType.NUMBER)
        number = parse_int_literal(num_tok)
        if negative:
            number = -number
        if not INT32_MIN <= number <= INT32_MAX:
            raise ProtoSyntaxError(
                f"Enum value {number} is outside the int32 range", num_tok.line, num_tok.col
            )
        if self._peek().type == ProtoTokenType.LBRACKET:
            self._parse_field_options()
        self._expect(ProtoTokenType.SEMICOLON)
        return ProtoEnumValue(name=name_tok.value, number=number, line=name_tok.line, col=name_tok.col)

    def _check_enum_values(self, enum: ProtoEnum) -> None:
        names: Set[str] = set()
        numbers: Set[int] = set()
        for value in enum.values:
            if value.name in names:
                raise ProtoSyntaxError(
                    f"Duplicate enum value '{value.name}' in enum '{enum.name}'",
                    value.line,
                    value.col,
                )
            if value.number in numbers and not enum.allow_alias:
                raise ProtoSyntaxError(
                    f"Enum value {value.number} of '{value.name}' is already used in enum "
                    f"'{enum.name}' (set option allow_alias = true to allow aliases)",
                    value.line,
                    value.col,
                )
            names.add(value.name)
            numbers.add(value.number)

    # -- skip helpers --

    def _skip_statement(self) -> None:
        """Skip tokens until (and including) the next semicolon outside braces."""
        depth = 0
        while not self._at_end():
            tok = self._advance()
            if tok.type == ProtoTokenType.LBRACE:
                depth += 1
            elif tok.type == ProtoTokenType.RBRACE:
                depth -= 1
            elif tok.type == ProtoTokenType.SEMICOLON and depth <= 0:
                return
        tok = self._peek()
        raise ProtoSyntaxError("Unexpected end of input, expected ';'", tok.line, tok.col)

    def _skip_block(self) -> None:
        """Skip a keyword + IDENT + braced block (e.g. service, extend)."""
        start = self._advance()  # keyword
        # Skip until opening brace
        while not self._at_end() and self._peek().type != ProtoTokenType.LBRACE:
            self._advance()
        self._expect(ProtoTokenType.LBRACE)
        depth = 1
        while not self._at_end() and depth > 0:
            tok = self._advance()
            if tok.type == ProtoTokenType.LBRACE:
                depth += 1
            elif tok.type == ProtoTokenType.RBRACE:
                depth -= 1
        if depth > 0:
            raise ProtoSyntaxError(
                f"Unterminated '{start.value}' block", start.line, start.col
            )

    # -- token helpers --

    def _declare(self, names: Set[str], name: str, tok: ProtoToken) -> None:
        if name in names:
            raise ProtoSyntaxError(f"Duplicate type name '{name}'", tok.line, tok.col)
        names.add(name)

    def _parse_type_name(self) -> str:
        """Parse: [DOT] IDENT { DOT IDENT }"""
        parts: List[str] = []
        if self._peek().type == ProtoTokenType.DOT:
            self._advance()
            parts.append("")
        parts.append(self._expect_name().value)
        while self._peek().type == ProtoTokenType.DOT:
            self._advance()
            parts.append(self._expect_name().value)
        return ".".join(parts)

    def _peek(self, offset: int = 0) -> ProtoToken:
        pos = min(self._pos + offset, len(self._tokens) - 1)
        return self._tokens[pos]

    def _advance(self) -> ProtoToken:
        tok = self._tokens[self._pos]
        if tok.type != ProtoTokenType.EOF:
            self._pos += 1
        return tok

    def _expect(self, expected: ProtoTokenType) -> ProtoToken:
        tok = self._peek()
        if tok.type != expected:
            if tok.type == ProtoTokenType.EOF:
                message = f"Unexpected end of input, expected {expected.name}"
            else:
                message = f"Expected {expected.name}, got {tok.type.name} ({tok.value!r})"
            raise ProtoSyntaxError(message, tok.line, tok.col)
        return self._advance()

    def _expect_name(self) -> ProtoToken:
        """Expect an identifier; keywords are accepted as names."""
        tok = self._peek()
        if tok.type in _KEYWORD_TYPES:
            return self._advance()
        return self._expect(ProtoTokenType.IDENT)

    def _at_end(self) -> bool:
        return self._tokens[self._pos].type == ProtoTokenType.EOF
