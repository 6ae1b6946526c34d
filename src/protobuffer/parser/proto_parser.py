from __future__ import annotations

from pathlib import Path

from .proto_ast import ProtoFile
from .proto_ast_parser import ProtoParser
from .proto_tokenizer import tokenize_proto


def parse_proto_text(text: str) -> ProtoFile:
    """Parse .proto source text into a ProtoFile AST."""
    tokens = tokenize_proto(text)
    return ProtoParser(tokens).parse()


def parse_proto_file(file_path: str) -> ProtoFile:
    """Read and parse a .proto file."""
    text = Path(file_path).read_text(encoding="utf-8")
    return parse_proto_text(text)
