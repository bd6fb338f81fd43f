"""Tests for the schema parser."""

import json

import pytest

from protowire.compiler import parse
from protowire.compiler.parser import int_literal, unescape
from protowire.compiler.types import SchemaEnum, SchemaMessage, is_scalar
from protowire.proto import SchemaSyntaxError, StructuralError


def describe_parse_header():
    def parses_package_and_syntax(expect):
        schema = parse(
            """
            syntax = "proto2";
            package foo.bar;
        """
        )
        expect(schema.syntax) == "proto2"
        expect(schema.package) == "foo.bar"

    def parses_without_package(expect):
        schema = parse("message A { optional int32 a = 1; }")
        expect(schema.package is None) == True
        expect(schema.syntax is None) == True

    def parses_file_options(expect):
        schema = parse(
            """
            option java_package = "com.example";
            option optimize_for = SPEED;
        """
        )
        expect(len(schema.options)) == 2
        expect(schema.options[0].name) == "java_package"
        expect(schema.options[0].value) == "com.example"
        expect(schema.options[0].kind) == "string"
        expect(schema.options[1].value) == "SPEED"
        expect(schema.options[1].kind) == "ident"

    def rejects_two_packages(expect):
        with pytest.raises(StructuralError) as exc:
            parse("package a; package b;")
        expect("package" in str(exc.value)) == True


def describe_parse_message():
    def parses_simple_message(expect):
        schema = parse(
            """
            package simple;
            message Test1 {
              optional string test_field = 1;
            }
        """
        )
        expect(len(schema.messages)) == 1
        message = schema.messages[0]
        expect(message.name) == "Test1"
        expect(len(message.fields)) == 1
        field = message.fields[0]
        expect(field.label) == "optional"
        expect(field.type_name) == "string"
        expect(field.name) == "test_field"
        expect(field.number) == 1
        expect(is_scalar(field)) == True

    def parses_all_labels(expect):
        schema = parse(
            """
            message M {
              required int32 a = 1;
              optional int32 b = 2;
              repeated int32 c = 3;
            }
        """
        )
        expect([f.label for f in schema.messages[0].fields]) == [
            "required",
            "optional",
            "repeated",
        ]

    def parses_all_scalar_types(expect):
        types = [
            "double",
            "float",
            "int32",
            "int64",
            "uint32",
            "uint64",
            "sint32",
            "sint64",
            "fixed32",
            "fixed64",
            "sfixed32",
            "sfixed64",
            "bool",
            "string",
            "bytes",
        ]
        body = "\n".join(f"optional {t} f{i} = {i + 1};" for i, t in enumerate(types))
        schema = parse(f"message AllTypes {{ {body} }}")

        fields = schema.messages[0].fields
        expect([f.type_name for f in fields]) == types
        expect(all(is_scalar(f) for f in fields)) == True

    def parses_nested_types(expect):
        schema = parse(
            """
            message A {
              message Sub {
                enum Payloads { P1 = 0; P2 = 1; }
                optional Payloads payload_type = 1;
              }
              repeated Sub sub1 = 1;
            }
        """
        )
        a = schema.messages[0]
        expect(isinstance(a.messages[0], SchemaMessage)) == True
        expect(a.messages[0].name) == "Sub"
        expect(isinstance(a.messages[0].enums[0], SchemaEnum)) == True
        expect(a.messages[0].enums[0].name) == "Payloads"
        expect(a.fields[0].type_name) == "Sub"
        expect(is_scalar(a.fields[0])) == False

    def parses_dotted_and_absolute_type_names(expect):
        schema = parse(
            """
            message M {
              optional other.Thing a = 1;
              optional .pkg.Thing b = 2;
            }
        """
        )
        fields = schema.messages[0].fields
        expect(fields[0].type_name) == "other.Thing"
        expect(fields[1].type_name) == ".pkg.Thing"

    def parses_integer_literals(expect):
        schema = parse(
            """
            message M {
              optional int32 a = 0x10;
              optional int32 b = 010;
              optional int32 c = 536870911;
            }
        """
        )
        expect([f.number for f in schema.messages[0].fields]) == [16, 8, 536870911]

    def parses_message_and_enum_options(expect):
        schema = parse(
            """
            message M {
              option deprecated = true;
              enum E { option allow_alias = false; A = 0; }
            }
        """
        )
        message = schema.messages[0]
        expect(message.options[0].name) == "deprecated"
        expect(message.enums[0].options[0].value) == "false"
        expect(len(message.enums[0].values)) == 1

    def accepts_empty_statements(expect):
        schema = parse("; message M { ; optional int32 a = 1; ; } ;")
        expect(len(schema.messages[0].fields)) == 1

    def ignores_comments(expect):
        schema = parse(
            """
            // line comment
            message M { /* block
              comment */ optional int32 a = 1; // trailing
            }
        """
        )
        expect(schema.messages[0].fields[0].name) == "a"


def describe_parse_field_options():
    def parses_each_constant_kind(expect):
        schema = parse(
            """
            message M {
              optional int32 a = 1 [default = -5];
              optional double b = 2 [default = 1.5e3];
              optional double c = 3 [default = -inf];
              optional string d = 4 [default = "hi"];
              optional bool e = 5 [default = true];
            }
        """
        )
        options = [f.options[0] for f in schema.messages[0].fields]
        expect([(o.value, o.kind) for o in options]) == [
            ("-5", "int"),
            ("1.5e3", "float"),
            ("-inf", "ident"),
            ("hi", "string"),
            ("true", "ident"),
        ]

    def parses_several_options(expect):
        schema = parse(
            """
            message M {
              optional int32 a = 1 [default = 3, deprecated = true, (my.ext).flag = 2];
            }
        """
        )
        field = schema.messages[0].fields[0]
        expect([o.name for o in field.options]) == ["default", "deprecated", "(my.ext).flag"]
        expect(field.option("deprecated").value) == "true"
        expect(field.option("missing") is None) == True

    def unescapes_string_literals(expect):
        schema = parse(
            r"""
            message M {
              optional string a = 1 [default = "tab\there \"quoted\" \x41\101"];
              optional string b = 2 [default = 'single'];
            }
        """
        )
        fields = schema.messages[0].fields
        expect(fields[0].options[0].value) == 'tab\there "quoted" AA'
        expect(fields[1].options[0].value) == "single"

    def parses_enum_value_options(expect):
        schema = parse("enum E { A = 0 [deprecated = true]; B = 1; }")
        expect(schema.enums[0].values[0].options[0].name) == "deprecated"
        expect(schema.enums[0].values[1].value) == 1


def describe_literals():
    def reads_decimal_hex_and_octal(expect):
        expect(int_literal("0")) == 0
        expect(int_literal("42")) == 42
        expect(int_literal("-42")) == -42
        expect(int_literal("0x1F")) == 31
        expect(int_literal("-0x10")) == -16
        expect(int_literal("017")) == 15

    def decodes_escapes(expect):
        expect(unescape(r"a\nb")) == "a\nb"
        expect(unescape(r"\\")) == "\\"
        expect(unescape(r"\x7f")) == "\x7f"
        expect(unescape(r"\0")) == "\0"

    def rejects_unknown_escapes(expect):
        with pytest.raises(StructuralError):
            unescape(r"\q")


def describe_parse_errors():
    def reports_line_and_column(expect):
        with pytest.raises(SchemaSyntaxError) as exc:
            parse(
                """message M {
  optional int32 a = 1
}"""
            )
        expect(exc.value.line) == 3
        expect(str(exc.value).startswith("line 3, column")) == True

    def rejects_unexpected_characters(expect):
        with pytest.raises(SchemaSyntaxError) as exc:
            parse("message M { optional int32 a = 1; @ }")
        expect("'@'" in str(exc.value)) == True

    def rejects_unclosed_brace(expect):
        with pytest.raises(SchemaSyntaxError):
            parse("message M { optional int32 a = 1;")

    def rejects_missing_label(expect):
        with pytest.raises(SchemaSyntaxError):
            parse("message M { int32 a = 1; }")

    def rejects_invalid_escapes_in_strings(expect):
        with pytest.raises(StructuralError):
            parse(r'message M { optional string a = 1 [default = "\q"]; }')

    def rejects_unsupported_statements(expect):
        for text in (
            'import "other.proto";',
            "service S { }",
            "message M { oneof o { int32 a = 1; } }",
        ):
            with pytest.raises(SchemaSyntaxError):
                parse(text)

    def is_a_structural_error(expect):
        with pytest.raises(StructuralError):
            parse("message {")


def describe_json():
    def serializes_the_parsed_schema(expect):
        schema = parse(
            """
            package shop;
            message Item { required string sku = 1; }
        """
        )
        data = json.loads(schema.to_json())
        expect(data["package"]) == "shop"
        expect(data["messages"][0]["fields"][0]["name"]) == "sku"
