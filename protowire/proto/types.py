"""Runtime type descriptors for protowire messages.

These describe the structure of schema types at runtime and are what the
message runtime dispatches on when checking, encoding and decoding values.
"""

from collections.abc import Iterable, Iterator, Mapping
from dataclasses import dataclass, field
from enum import Enum, IntEnum
from types import MappingProxyType
from typing import Any

from .errors import StructuralError
from .wire import WireType


class FieldType(str, Enum):
    """Declared type of a field."""

    INT32 = "int32"
    INT64 = "int64"
    UINT32 = "uint32"
    UINT64 = "uint64"
    SINT32 = "sint32"
    SINT64 = "sint64"
    FIXED32 = "fixed32"
    FIXED64 = "fixed64"
    SFIXED32 = "sfixed32"
    SFIXED64 = "sfixed64"
    BOOL = "bool"
    FLOAT = "float"
    DOUBLE = "double"
    STRING = "string"
    BYTES = "bytes"
    ENUM = "enum"
    MESSAGE = "message"


class Label(str, Enum):
    """Cardinality of a field."""

    REQUIRED = "required"
    OPTIONAL = "optional"
    REPEATED = "repeated"


SCALAR_TYPES = frozenset(t for t in FieldType if t not in (FieldType.ENUM, FieldType.MESSAGE))

WIRE_TYPES = {
    FieldType.INT32: WireType.VARINT,
    FieldType.INT64: WireType.VARINT,
    FieldType.UINT32: WireType.VARINT,
    FieldType.UINT64: WireType.VARINT,
    FieldType.SINT32: WireType.VARINT,
    FieldType.SINT64: WireType.VARINT,
    FieldType.BOOL: WireType.VARINT,
    FieldType.ENUM: WireType.VARINT,
    FieldType.FIXED64: WireType.FIXED64,
    FieldType.SFIXED64: WireType.FIXED64,
    FieldType.DOUBLE: WireType.FIXED64,
    FieldType.STRING: WireType.LENGTH_DELIMITED,
    FieldType.BYTES: WireType.LENGTH_DELIMITED,
    FieldType.MESSAGE: WireType.LENGTH_DELIMITED,
    FieldType.FIXED32: WireType.FIXED32,
    FieldType.SFIXED32: WireType.FIXED32,
    FieldType.FLOAT: WireType.FIXED32,
}

ZERO_VALUES: dict[FieldType, Any] = {
    FieldType.INT32: 0,
    FieldType.INT64: 0,
    FieldType.UINT32: 0,
    FieldType.UINT64: 0,
    FieldType.SINT32: 0,
    FieldType.SINT64: 0,
    FieldType.FIXED32: 0,
    FieldType.FIXED64: 0,
    FieldType.SFIXED32: 0,
    FieldType.SFIXED64: 0,
    FieldType.BOOL: False,
    FieldType.FLOAT: 0.0,
    FieldType.DOUBLE: 0.0,
    FieldType.STRING: "",
    FieldType.BYTES: b"",
}


_SCALAR_NAMES = frozenset(t.value for t in SCALAR_TYPES)


def is_scalar_type_name(name: str) -> bool:
    """Check if a schema type name is a scalar keyword."""
    return name in _SCALAR_NAMES


@dataclass(frozen=True, slots=True)
class FieldDescriptor:
    """Describes one field of a message.

    For enum and message fields, ``type_name`` is the fully-qualified name of
    the referenced descriptor in the owning descriptor's pool.
    """

    number: int
    name: str
    type: FieldType
    label: Label
    default: Any = None
    type_name: str | None = None
    options: Mapping[str, Any] = field(default_factory=dict, hash=False)

    @property
    def wire_type(self) -> WireType:
        return WIRE_TYPES[self.type]

    @property
    def is_repeated(self) -> bool:
        return self.label is Label.REPEATED

    @property
    def is_required(self) -> bool:
        return self.label is Label.REQUIRED

    @property
    def is_scalar(self) -> bool:
        return self.type in SCALAR_TYPES

    @property
    def is_message(self) -> bool:
        return self.type is FieldType.MESSAGE

    @property
    def is_enum(self) -> bool:
        return self.type is FieldType.ENUM


class EnumDescriptor:
    """Ordered mapping of symbolic names to unique non-negative integers.

    Example:
        payloads = EnumDescriptor("pkg.Sub.Payloads", [("P1", 0), ("P2", 1)])
        payloads.value_for_name("P2")  # 1
        payloads.enum_class.P2         # <Payloads.P2: 1>
    """

    __slots__ = ("full_name", "_values", "_names", "_enum_class")

    def __init__(self, full_name: str, values: Iterable[tuple[str, int]]) -> None:
        self.full_name = full_name
        by_name: dict[str, int] = {}
        by_value: dict[int, str] = {}

        for name, value in values:
            if name in by_name:
                raise StructuralError(f"{full_name}: duplicate enum value name {name}")
            if not isinstance(value, int) or isinstance(value, bool) or value < 0:
                raise StructuralError(
                    f"{full_name}.{name}: enum value must be a non-negative integer, got {value!r}"
                )
            if value in by_value:
                raise StructuralError(
                    f"{full_name}.{name}: value {value} already used by {by_value[value]}"
                )
            by_name[name] = value
            by_value[value] = name

        if not by_name:
            raise StructuralError(f"{full_name}: enum must define at least one value")

        self._values = MappingProxyType(by_name)
        self._names = MappingProxyType(by_value)
        try:
            self._enum_class = IntEnum(self.name, dict(by_name))  # type: ignore[misc]
        except (TypeError, ValueError) as e:
            raise StructuralError(f"{full_name}: {e}") from e

    @property
    def name(self) -> str:
        return self.full_name.rsplit(".", 1)[-1]

    @property
    def values(self) -> Mapping[str, int]:
        return self._values

    @property
    def enum_class(self) -> type[IntEnum]:
        return self._enum_class

    @property
    def default(self) -> IntEnum:
        """The first declared value, used for unset optional enum fields."""
        return next(iter(self._enum_class))

    def value_for_name(self, name: str) -> int | None:
        return self._values.get(name)

    def name_for_value(self, value: int) -> str | None:
        return self._names.get(value)

    def is_valid(self, value: int) -> bool:
        return value in self._names

    def member(self, value: int) -> IntEnum:
        return self._enum_class(value)

    def __getattr__(self, name: str) -> IntEnum:
        # Values named like a descriptor attribute (values, default...) are
        # only reachable through enum_class or value_for_name
        if name.startswith("_"):
            raise AttributeError(name)
        try:
            return self._enum_class[name]
        except KeyError:
            raise AttributeError(f"{self.full_name} has no value {name}") from None

    def __iter__(self) -> Iterator[IntEnum]:
        return iter(self._enum_class)

    def __len__(self) -> int:
        return len(self._values)

    def __repr__(self) -> str:
        return f"<EnumDescriptor {self.full_name}>"
