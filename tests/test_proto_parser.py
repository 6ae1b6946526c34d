import os
import tempfile

import pytest

from protobuffer.errors import ProtoSyntaxError
from protobuffer.parser.proto_parser import parse_proto_file, parse_proto_text


def _write_temp_proto(content: str) -> str:
    fd, path = tempfile.mkstemp(suffix=".proto")
    os.write(fd, content.encode())
    os.close(fd)
    return path


class TestSimpleMessage:
    def test_single_message_with_primitives(self):
        proto = """\
syntax = "proto3";

message OrderInfo {
    int32 order_id = 1;
    string customer_name = 2;
    bool is_active = 3;
}
"""
        path = _write_temp_proto(proto)
        try:
            ast = parse_proto_file(path)
            assert ast.syntax == "proto3"
            assert len(ast.messages) == 1
            msg = ast.messages[0]
            assert msg.name == "OrderInfo"
            assert len(msg.fields) == 3

            assert msg.fields[0].field_name == "order_id"
            assert msg.fields[0].type_name == "int32"
            assert msg.fields[0].field_number == 1
            assert msg.fields[0].is_repeated is False

            assert msg.fields[1].field_name == "customer_name"
            assert msg.fields[1].type_name == "string"

            assert msg.fields[2].field_name == "is_active"
            assert msg.fields[2].type_name == "bool"
        finally:
            os.unlink(path)

    def test_multiple_messages(self):
        ast = parse_proto_text("""\
syntax = "proto3";

message Foo {
    int32 id = 1;
}

message Bar {
    string name = 1;
    double value = 2;
}
""")
        assert [m.name for m in ast.messages] == ["Foo", "Bar"]
        assert len(ast.messages[1].fields) == 2

    def test_whitespace_insensitive(self):
        ast = parse_proto_text("message M{int32 a=1;string b = 2 ;}")
        assert [f.field_name for f in ast.messages[0].fields] == ["a", "b"]

    def test_package_and_imports_recorded(self):
        ast = parse_proto_text("""\
syntax = "proto3";
package shop.orders;
import "google/protobuf/timestamp.proto";
import public "other.proto";
message M { int32 a = 1; }
""")
        assert ast.package == "shop.orders"
        assert ast.imports == ["google/protobuf/timestamp.proto", "other.proto"]

    def test_hex_and_octal_field_numbers(self):
        ast = parse_proto_text("message M { int32 a = 0x10; int32 b = 010; }")
        assert [f.field_number for f in ast.messages[0].fields] == [16, 8]


class TestFieldModifiers:
    def test_repeated_field(self):
        ast = parse_proto_text("""\
message Container {
    repeated string tags = 1;
    repeated int32 scores = 2;
}
""")
        fields = ast.messages[0].fields
        assert fields[0].is_repeated is True
        assert fields[0].type_name == "string"
        assert fields[1].is_repeated is True
        assert fields[1].type_name == "int32"

    def test_optional_field(self):
        ast = parse_proto_text("message M { optional int32 a = 1; int32 b = 2; }")
        fields = ast.messages[0].fields
        assert fields[0].is_optional is True
        assert fields[1].is_optional is False

    def test_field_options(self):
        ast = parse_proto_text(
            "message M { repeated int32 a = 1 [packed = false, deprecated = true]; }"
        )
        assert ast.messages[0].fields[0].options == {"packed": "false", "deprecated": "true"}

    def test_qualified_type_names(self):
        ast = parse_proto_text("message M { .pkg.Other a = 1; Outer.Inner b = 2; }")
        fields = ast.messages[0].fields
        assert fields[0].type_name == ".pkg.Other"
        assert fields[1].type_name == "Outer.Inner"

    def test_keywords_as_field_names(self):
        ast = parse_proto_text("message M { int32 max = 1; string to = 2; bool optional = 3; }")
        assert [f.field_name for f in ast.messages[0].fields] == ["max", "to", "optional"]


class TestNestedDeclarations:
    def test_nested_message(self):
        ast = parse_proto_text("""\
message Outer {
    string name = 1;
    message Inner {
        int32 value = 1;
    }
    Inner detail = 2;
}
""")
        outer = ast.messages[0]
        assert len(outer.fields) == 2
        assert outer.fields[1].type_name == "Inner"
        assert len(outer.nested_messages) == 1
        inner = outer.nested_messages[0]
        assert inner.name == "Inner"
        assert inner.fields[0].field_name == "value"

    def test_enums(self):
        ast = parse_proto_text("""\
enum Status {
    STATUS_UNKNOWN = 0;
    STATUS_OK = 1;
    STATUS_FAILED = -2;
}

message Job {
    enum Priority {
        LOW = 0;
        HIGH = 1 [deprecated = true];
    }
    Priority priority = 1;
    Status status = 2;
}
""")
        status = ast.enums[0]
        assert status.name == "Status"
        assert [(v.name, v.number) for v in status.values] == [
            ("STATUS_UNKNOWN", 0),
            ("STATUS_OK", 1),
            ("STATUS_FAILED", -2),
        ]
        priority = ast.messages[0].nested_enums[0]
        assert priority.name == "Priority"
        assert [v.number for v in priority.values] == [0, 1]

    def test_oneof(self):
        ast = parse_proto_text("""\
message Payment {
    oneof method {
        string card = 1;
        string iban = 2;
    }
    int64 amount = 3;
}
""")
        msg = ast.messages[0]
        assert msg.oneofs == ["method"]
        assert [f.oneof_name for f in msg.fields] == ["method", "method", None]

    def test_enum_alias(self):
        ast = parse_proto_text("""\
enum E {
    option allow_alias = true;
    A = 0;
    B = 0;
}
""")
        assert ast.enums[0].allow_alias is True
        assert len(ast.enums[0].values) == 2


class TestSkippedConstructs:
    def test_skips_comments_and_options(self):
        ast = parse_proto_text("""\
syntax = "proto3";

option java_package = "com.example";

// This is a comment
message Test {
    // another comment
    int32 id = 1;
    option deprecated = true;
    /* a block
       comment */
    string name = 2;
}
""")
        assert len(ast.messages) == 1
        assert len(ast.messages[0].fields) == 2

    def test_skips_services(self):
        ast = parse_proto_text("""\
message Req { string q = 1; }
service Search {
    rpc Find (Req) returns (Req) { option deprecated = true; }
}
""")
        assert [m.name for m in ast.messages] == ["Req"]

    def test_empty_message(self):
        ast = parse_proto_text("message Empty {\n}\n")
        assert len(ast.messages) == 1
        assert len(ast.messages[0].fields) == 0

    def test_reserved(self):
        ast = parse_proto_text("""\
message M {
    reserved 2, 9 to 11, 40 to max;
    reserved "old_name";
    int32 a = 1;
}
""")
        msg = ast.messages[0]
        assert msg.reserved_ranges == [(2, 2), (9, 11), (40, (1 << 29) - 1)]
        assert msg.reserved_names == ["old_name"]


class TestSyntaxErrors:
    def test_unterminated_string(self):
        with pytest.raises(ProtoSyntaxError) as exc_info:
            parse_proto_text('syntax = "proto3;\nmessage M {}\n')
        assert exc_info.value.line == 1
        assert exc_info.value.column == 10

    def test_unterminated_block_comment(self):
        with pytest.raises(ProtoSyntaxError, match="Unterminated block comment"):
            parse_proto_text("message M { /* never closed\n int32 a = 1; }")

    def test_missing_closing_brace(self):
        with pytest.raises(ProtoSyntaxError, match="end of input"):
            parse_proto_text("message M {\n  int32 a = 1;\n")

    def test_extra_closing_brace(self):
        with pytest.raises(ProtoSyntaxError) as exc_info:
            parse_proto_text("message M {\n  int32 a = 1;\n}\n}\n")
        assert exc_info.value.line == 4
        assert exc_info.value.column == 1

    def test_missing_semicolon(self):
        with pytest.raises(ProtoSyntaxError) as exc_info:
            parse_proto_text("message M {\n  int32 a = 1\n  int32 b = 2;\n}")
        assert exc_info.value.line == 3

    @pytest.mark.parametrize("number", ["0", "536870912", "19000", "19999"])
    def test_invalid_field_numbers(self, number):
        with pytest.raises(ProtoSyntaxError, match="Field number"):
            parse_proto_text(f"message M {{ int32 a = {number}; }}")

    def test_largest_field_number_is_valid(self):
        ast = parse_proto_text("message M { int32 a = 536870911; }")
        assert ast.messages[0].fields[0].field_number == (1 << 29) - 1

    def test_duplicate_field_number(self):
        with pytest.raises(ProtoSyntaxError, match="already used") as exc_info:
            parse_proto_text("message M {\n  int32 a = 1;\n  string b = 1;\n}")
        assert exc_info.value.line == 3

    def test_duplicate_field_name(self):
        with pytest.raises(ProtoSyntaxError, match="Duplicate field name 'a'"):
            parse_proto_text("message M { int32 a = 1; string a = 2; }")

    def test_reserved_number_used(self):
        with pytest.raises(ProtoSyntaxError, match="reserved"):
            parse_proto_text("message M { reserved 5 to 7; int32 a = 6; }")

    def test_reserved_name_used(self):
        with pytest.raises(ProtoSyntaxError, match="reserved"):
            parse_proto_text('message M { reserved "a"; int32 a = 1; }')

    def test_duplicate_enum_number_without_alias(self):
        with pytest.raises(ProtoSyntaxError, match="allow_alias"):
            parse_proto_text("enum E { A = 0; B = 0; }")

    def test_enum_value_out_of_range(self):
        with pytest.raises(ProtoSyntaxError, match="int32"):
            parse_proto_text("enum E { A = 0; B = 2147483648; }")

    def test_map_fields_rejected(self):
        with pytest.raises(ProtoSyntaxError, match="map fields"):
            parse_proto_text("message M { map<string, int32> counts = 1; }")

    def test_unexpected_character(self):
        with pytest.raises(ProtoSyntaxError, match="Unexpected character"):
            parse_proto_text("message M { int32 a = 1; } @")

    def test_duplicate_type_name(self):
        with pytest.raises(ProtoSyntaxError, match="Duplicate type name"):
            parse_proto_text("message M { } enum M { A = 0; }")
