"""Schema parser using Lark."""

import os
from dataclasses import dataclass
from typing import Any, TypeVar

from lark import Lark, Token
from lark.exceptions import (
    UnexpectedCharacters,
    UnexpectedEOF,
    UnexpectedInput,
    UnexpectedToken,
    VisitError,
)
from lark.visitors import Transformer

from ..proto.errors import SchemaSyntaxError, StructuralError
from .types import (
    Schema,
    SchemaEnum,
    SchemaEnumValue,
    SchemaField,
    SchemaMessage,
    SchemaOption,
)

_g_parser: Lark | None = None


@dataclass
class _Package:
    value: str


@dataclass
class _Syntax:
    value: str


@dataclass
class _Name:
    value: str


@dataclass
class _TypeRef:
    value: str


@dataclass
class _Constant:
    value: str
    kind: str


@dataclass
class _FieldOptions:
    options: list[SchemaOption]


TFilter = TypeVar("TFilter", bound=object)


def _filter(args: list[Any], class_type: type[TFilter]) -> list[TFilter]:
    return [v for v in args if isinstance(v, class_type)]


def _find_one(args: list[Any], class_type: type[object]) -> Any:
    filtered = _filter(args, class_type)
    if len(filtered) == 0:
        return None
    if len(filtered) > 1:
        raise StructuralError(f"Found more than one {class_type.__name__.strip('_').lower()}")

    if hasattr(filtered[0], "value"):
        return filtered[0].value
    return filtered[0]


TMany = TypeVar("TMany")


def _find_many(args: list[Any], class_type: type[TMany]) -> list[TMany]:
    return _filter(args, class_type)


def _tokens(args: list[Any], type_name: str) -> list[Token]:
    return [a for a in args if isinstance(a, Token) and a.type == type_name]


_ESCAPES = {
    "a": "\a",
    "b": "\b",
    "f": "\f",
    "n": "\n",
    "r": "\r",
    "t": "\t",
    "v": "\v",
    "\\": "\\",
    "'": "'",
    '"': '"',
    "?": "?",
}


def unescape(text: str) -> str:
    """Decode C-style escapes in a quoted literal's body."""
    out: list[str] = []
    i = 0
    while i < len(text):
        char = text[i]
        if char != "\\" or i + 1 == len(text):
            out.append(char)
            i += 1
            continue

        nxt = text[i + 1]
        if nxt in _ESCAPES:
            out.append(_ESCAPES[nxt])
            i += 2
        elif nxt in "xX":
            j = i + 2
            while j < len(text) and j < i + 4 and text[j] in "0123456789abcdefABCDEF":
                j += 1
            if j == i + 2:
                raise StructuralError(f"Invalid hex escape in {text!r}")
            out.append(chr(int(text[i + 2 : j], 16)))
            i = j
        elif nxt in "01234567":
            j = i + 1
            while j < len(text) and j < i + 4 and text[j] in "01234567":
                j += 1
            out.append(chr(int(text[i + 1 : j], 8)))
            i = j
        else:
            raise StructuralError(f"Invalid escape \\{nxt} in {text!r}")
    return "".join(out)


class TreeTransformer(Transformer):
    """Transform parse tree into schema types."""

    def start(self, args: list[Any]) -> Schema:
        return Schema(
            package=_find_one(args, _Package),
            syntax=_find_one(args, _Syntax),
            messages=_find_many(args, SchemaMessage),
            enums=_find_many(args, SchemaEnum),
            options=_find_many(args, SchemaOption),
        )

    def syntax(self, args: list[Any]) -> _Syntax:
        return _Syntax(value=unescape(str(args[0])[1:-1]))

    def package(self, args: list[Any]) -> _Package:
        return _Package(value=args[0].value)

    def option(self, args: list[Any]) -> SchemaOption:
        return self.field_option(args)

    def field_option(self, args: list[Any]) -> SchemaOption:
        name, constant = args
        return SchemaOption(name=name.value, value=constant.value, kind=constant.kind)

    def field_options(self, args: list[Any]) -> _FieldOptions:
        return _FieldOptions(options=_find_many(args, SchemaOption))

    def message(self, args: list[Any]) -> SchemaMessage:
        return SchemaMessage(
            name=str(_tokens(args, "IDENT")[0]),
            fields=_find_many(args, SchemaField),
            messages=_find_many(args, SchemaMessage),
            enums=_find_many(args, SchemaEnum),
            options=_find_many(args, SchemaOption),
        )

    def field(self, args: list[Any]) -> SchemaField:
        field_options = _find_one(args, _FieldOptions)
        return SchemaField(
            label=str(_tokens(args, "LABEL")[0]),
            type_name=_find_one(args, _TypeRef),
            name=str(_tokens(args, "IDENT")[0]),
            number=int_literal(str(_tokens(args, "INT")[0])),
            options=field_options.options if field_options else [],
        )

    def enum(self, args: list[Any]) -> SchemaEnum:
        return SchemaEnum(
            name=str(_tokens(args, "IDENT")[0]),
            values=_find_many(args, SchemaEnumValue),
            options=_find_many(args, SchemaOption),
        )

    def enum_value(self, args: list[Any]) -> SchemaEnumValue:
        field_options = _find_one(args, _FieldOptions)
        return SchemaEnumValue(
            name=str(_tokens(args, "IDENT")[0]),
            value=int_literal(str(_tokens(args, "INT")[0])),
            options=field_options.options if field_options else [],
        )

    def relative_type(self, args: list[Any]) -> _TypeRef:
        return _TypeRef(value=args[0].value)

    def absolute_type(self, args: list[Any]) -> _TypeRef:
        return _TypeRef(value="." + args[0].value)

    def full_ident(self, args: list[Any]) -> _Name:
        return _Name(value=".".join(str(a) for a in args))

    def option_name(self, args: list[Any]) -> _Name:
        parts = [f"({a.value})" if isinstance(a, _Name) else str(a) for a in args]
        return _Name(value=".".join(parts))

    def ident_constant(self, args: list[Any]) -> _Constant:
        return _Constant(value=args[0].value, kind="ident")

    def negative_ident_constant(self, args: list[Any]) -> _Constant:
        return _Constant(value="-" + str(args[0]), kind="ident")

    def int_constant(self, args: list[Any]) -> _Constant:
        return _Constant(value=str(args[0]), kind="int")

    def float_constant(self, args: list[Any]) -> _Constant:
        return _Constant(value=str(args[0]), kind="float")

    def string_constant(self, args: list[Any]) -> _Constant:
        return _Constant(value=unescape(str(args[0])[1:-1]), kind="string")


def int_literal(text: str) -> int:
    # proto literals use a bare leading 0 for octal
    sign = -1 if text.startswith("-") else 1
    digits = text.lstrip("-")
    if len(digits) > 1 and digits[0] == "0" and digits[1] not in "xX":
        return sign * int(digits, 8)
    return sign * int(digits, 0)


def _get_parser() -> Lark:
    global _g_parser

    if not _g_parser:
        with open(f"{os.path.dirname(__file__)}/schema.lark", encoding="utf-8") as f:
            grammar = f.read()

        _g_parser = Lark(grammar, parser="lalr")
    return _g_parser


def parse(text: str) -> Schema:
    """Parse schema text into a :class:`Schema`.

    Raises:
        SchemaSyntaxError: The text does not match the schema grammar.
        StructuralError: The text parses but repeats a singular statement,
            such as two ``package`` lines.
    """
    try:
        tree = _get_parser().parse(text)
    except UnexpectedToken as e:
        expected = ", ".join(sorted(e.expected))
        raise SchemaSyntaxError(
            f"Unexpected {e.token!r}, expected one of: {expected}", e.line, e.column
        ) from e
    except UnexpectedCharacters as e:
        raise SchemaSyntaxError(
            f"Unexpected character {e.char!r}", e.line, e.column
        ) from e
    except UnexpectedEOF as e:
        raise SchemaSyntaxError("Unexpected end of schema") from e
    except UnexpectedInput as e:
        raise SchemaSyntaxError(str(e), e.line, e.column) from e

    try:
        return TreeTransformer().transform(tree)
    except VisitError as e:
        if isinstance(e.orig_exc, StructuralError):
            raise e.orig_exc from None
        raise
