"""Tokenizer for protobuf (.proto) files."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum, auto
from typing import List

from protobuffer.errors import ProtoSyntaxError


class ProtoTokenType(Enum):
    # Keywords
    MESSAGE = auto()
    REPEATED = auto()
    OPTIONAL = auto()
    SYNTAX = auto()
    PACKAGE = auto()
    OPTION = auto()
    RESERVED = auto()
    IMPORT = auto()
    ENUM = auto()
    ONEOF = auto()
    MAP = auto()
    SERVICE = auto()
    EXTEND = auto()
    TO = auto()
    MAX = auto()

    # Delimiters
    LBRACE = auto()
    RBRACE = auto()
    LBRACKET = auto()
    RBRACKET = auto()
    LPAREN = auto()
    RPAREN = auto()
    LANGLE = auto()
    RANGLE = auto()
    SEMICOLON = auto()
    COMMA = auto()
    EQUALS = auto()
    DOT = auto()
    MINUS = auto()
    PLUS = auto()

    # Literals
    IDENT = auto()
    NUMBER = auto()
    STRING_LIT = auto()

    # Special
    EOF = auto()


_KEYWORDS = {
    "message": ProtoTokenType.MESSAGE,
    "repeated": ProtoTokenType.REPEATED,
    "optional": ProtoTokenType.OPTIONAL,
    "syntax": ProtoTokenType.SYNTAX,
    "package": ProtoTokenType.PACKAGE,
    "option": ProtoTokenType.OPTION,
    "reserved": ProtoTokenType.RESERVED,
    "import": ProtoTokenType.IMPORT,
    "enum": ProtoTokenType.ENUM,
    "oneof": ProtoTokenType.ONEOF,
    "map": ProtoTokenType.MAP,
    "service": ProtoTokenType.SERVICE,
    "extend": ProtoTokenType.EXTEND,
    "to": ProtoTokenType.TO,
    "max": ProtoTokenType.MAX,
}

_PUNCTUATION = {
    "{": ProtoTokenType.LBRACE,
    "}": ProtoTokenType.RBRACE,
    "[": ProtoTokenType.LBRACKET,
    "]": ProtoTokenType.RBRACKET,
    "(": ProtoTokenType.LPAREN,
    ")": ProtoTokenType.RPAREN,
    "<": ProtoTokenType.LANGLE,
    ">": ProtoTokenType.RANGLE,
    ";": ProtoTokenType.SEMICOLON,
    ",": ProtoTokenType.COMMA,
    "=": ProtoTokenType.EQUALS,
    ".": ProtoTokenType.DOT,
    "-": ProtoTokenType.MINUS,
    "+": ProtoTokenType.PLUS,
}


@dataclass
class ProtoToken:
    type: ProtoTokenType
    value: str
    line: int
    col: int


def tokenize_proto(text: str) -> List[ProtoToken]:
    """Tokenize a protobuf source string into a list of tokens.

    Raises ProtoSyntaxError on unterminated strings or comments and on
    characters that cannot start any token.
    """
    tokens: List[ProtoToken] = []
    i = 0
    line = 1
    col = 1
    n = len(text)

    while i < n:
        ch = text[i]

        # Whitespace
        if ch in (" ", "\t", "\r", "\f", "\v"):
            i += 1
            col += 1
            continue

        if ch == "\n":
            i += 1
            line += 1
            col = 1
            continue

        # Single-line comment
        if ch == "/" and i + 1 < n and text[i + 1] == "/":
            while i < n and text[i] != "\n":
                i += 1
            continue

        # Multi-line comment
        if ch == "/" and i + 1 < n and text[i + 1] == "*":
            start_line, start_col = line, col
            i += 2
            col += 2
            closed = False
            while i < n:
                if text[i] == "\n":
                    line += 1
                    col = 1
                elif text[i] == "*" and i + 1 < n and text[i + 1] == "/":
                    i += 2
                    col += 2
                    closed = True
                    break
                else:
                    col += 1
                i += 1
            if not closed:
                raise ProtoSyntaxError("Unterminated block comment", start_line, start_col)
            continue

        # Single-character tokens
        if ch in _PUNCTUATION:
            tokens.append(ProtoToken(_PUNCTUATION[ch], ch, line, col))
            i += 1
            col += 1
            continue

        # String literal, either quote style
        if ch in ('"', "'"):
            quote = ch
            start_col = col
            i += 1
            col += 1
            start = i
            while i < n and text[i] != quote:
                if text[i] == "\n":
                    break
                if text[i] == "\\" and i + 1 < n:
                    i += 1
                    col += 1
                i += 1
                col += 1
            if i >= n or text[i] != quote:
                raise ProtoSyntaxError("Unterminated string literal", line, start_col)
            value = text[start:i]
            i += 1  # consume closing quote
            col += 1
            tokens.append(ProtoToken(ProtoTokenType.STRING_LIT, value, line, start_col))
            continue

        # Number; hex digits, exponents and fractions are kept in the
        # literal and validated by the parser where a value is needed.
        if ch.isdigit():
            start = i
            start_col = col
            while i < n and (text[i].isalnum() or text[i] in "._"):
                if text[i] in "eE" and i + 1 < n and text[i + 1] in "+-":
                    i += 1
                    col += 1
                i += 1
                col += 1
            tokens.append(ProtoToken(ProtoTokenType.NUMBER, text[start:i], line, start_col))
            continue

        # Identifier / keyword
        if ch.isalpha() or ch == "_":
            start = i
            start_col = col
            while i < n and (text[i].isalnum() or text[i] == "_"):
                i += 1
                col += 1
            word = text[start:i]
            tok_type = _KEYWORDS.get(word, ProtoTokenType.IDENT)
            tokens.append(ProtoToken(tok_type, word, line, start_col))
            continue

        raise ProtoSyntaxError(f"Unexpected character {ch!r}", line, col)

    tokens.append(ProtoToken(ProtoTokenType.EOF, "", line, col))
    return tokens
