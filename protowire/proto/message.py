"""Message instances: descriptor-driven values that encode to and decode from wire bytes.

Instances are not thread-safe for concurrent mutation; each one must be
owned by a single writer at a time. Their descriptors are shared and
read-only.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable, Iterator, Mapping, MutableSequence
from typing import Any

from .descriptor import MessageDescriptor
from .errors import DecodeError, EncodeError, FieldTypeError, FieldValueError, StructuralError
from .serialization import check_scalar, decode_scalar, encode_scalar
from .types import FieldDescriptor
from .wire import (
    Buffer,
    encode_tag,
    encode_varint,
    read_length_delimited,
    read_tag,
    skip_field,
)

logger = logging.getLogger(__name__)


class RepeatedField(MutableSequence):
    """List-like container for a repeated field that type-checks every element."""

    __slots__ = ("_check", "_items")

    def __init__(self, check: Callable[[Any], Any], items: Iterable[Any] = ()) -> None:
        self._check = check
        self._items: list[Any] = [check(v) for v in items]

    def __getitem__(self, index):  # type: ignore[no-untyped-def]
        return self._items[index]

    def __setitem__(self, index, value):  # type: ignore[no-untyped-def]
        if isinstance(index, slice):
            self._items[index] = [self._check(v) for v in value]
        else:
            self._items[index] = self._check(value)

    def __delitem__(self, index):  # type: ignore[no-untyped-def]
        del self._items[index]

    def __len__(self) -> int:
        return len(self._items)

    def insert(self, index: int, value: Any) -> None:
        self._items.insert(index, self._check(value))

    def extend(self, values: Iterable[Any]) -> None:
        # Check everything first so a bad element leaves the field untouched
        self._items.extend([self._check(v) for v in values])

    def __eq__(self, other: object) -> bool:
        if isinstance(other, RepeatedField):
            return self._items == other._items
        if isinstance(other, (list, tuple)):
            return self._items == list(other)
        return NotImplemented

    __hash__ = None  # type: ignore[assignment]

    def __repr__(self) -> str:
        return repr(self._items)


class Message:
    """An instance of a message type.

    Fields are read and written as attributes; the descriptor decides what
    each name means and what values it accepts. A field named like one of
    the methods below (``copy``, ``encode``, ``descriptor``...) shadows it on
    the instance; call the method through the class instead, as in
    ``Message.to_dict(msg)``.

    Example:
        msg = descriptor(field_2="b")
        msg.has_field_2()  # True
        msg.field_1 = "a"
        data = msg.encode()
        descriptor.decode(data) == msg  # True
    """

    __slots__ = ("_descriptor", "_values", "_lazy", "_unknown")

    def __init__(
        self, descriptor: MessageDescriptor, initial: Mapping[str, Any] | None = None
    ) -> None:
        descriptor.seal()
        object.__setattr__(self, "_descriptor", descriptor)
        # field number -> explicitly set value; membership is presence
        object.__setattr__(self, "_values", {})
        # field number -> empty sub-message handed out by a read of an unset field
        object.__setattr__(self, "_lazy", {})
        # (field number, raw tag and value bytes) in the order they were read
        object.__setattr__(self, "_unknown", [])

        if initial:
            for name, value in initial.items():
                field = descriptor.field_for_name(name)
                if field is None:
                    raise StructuralError(f"{descriptor.full_name} has no field {name}")
                self._set(field, value)

    @property
    def descriptor(self) -> MessageDescriptor:
        return self._descriptor

    @property
    def unknown_fields(self) -> tuple[bytes, ...]:
        """Raw bytes of fields read from the wire that the descriptor does not declare."""
        return tuple(raw for _, raw in self._unknown)

    # Field access

    def _field(self, name: str) -> FieldDescriptor:
        field = self._descriptor.field_for_name(name)
        if field is None:
            raise AttributeError(f"{self._descriptor.full_name} has no field {name}")
        return field

    def _field_for_number(self, number: int) -> FieldDescriptor:
        field = self._descriptor.field_for_number(number)
        if field is None:
            raise KeyError(f"{self._descriptor.full_name} has no field number {number}")
        return field

    def _element_checker(self, field: FieldDescriptor) -> Callable[[Any], Any]:
        descriptor = self._descriptor

        if field.is_message:
            message_type = descriptor.message_type(field)

            def check_message(value: Any) -> Message:
                if not isinstance(value, Message) or value._descriptor is not message_type:
                    raise FieldTypeError(
                        f"{field.name} requires a {message_type.full_name} message, "
                        f"got {_describe(value)}"
                    )
                return value

            return check_message

        if field.is_enum:
            enum_type = descriptor.enum_type(field)

            def check_enum(value: Any) -> Any:
                if isinstance(value, bool) or not isinstance(value, int):
                    raise FieldTypeError(
                        f"{field.name} requires a {enum_type.full_name} value, "
                        f"got {_describe(value)}"
                    )
                if not enum_type.is_valid(value):
                    raise FieldValueError(
                        f"{value} is not a valid value of {enum_type.full_name}"
                    )
                return enum_type.member(value)

            return check_enum

        def check(value: Any) -> Any:
            try:
                return check_scalar(field.type, value)
            except (FieldTypeError, FieldValueError) as e:
                raise type(e)(f"{field.name}: {e}") from None

        return check

    def _check(self, field: FieldDescriptor, value: Any) -> Any:
        check = self._element_checker(field)
        if not field.is_repeated:
            return check(value)
        if isinstance(value, (str, bytes, bytearray, Message)) or not isinstance(value, Iterable):
            raise FieldTypeError(f"{field.name} is repeated and requires an iterable of values")
        return RepeatedField(check, value)

    def _set(self, field: FieldDescriptor, value: Any) -> None:
        stored = self._check(field, value)
        self._values[field.number] = stored
        self._lazy.pop(field.number, None)

    def _get(self, field: FieldDescriptor) -> Any:
        number = field.number
        if number in self._values:
            return self._values[number]

        if field.is_repeated:
            container = RepeatedField(self._element_checker(field))
            self._values[number] = container
            return container

        if field.is_message:
            child = self._lazy.get(number)
            if child is None:
                child = Message(self._descriptor.message_type(field))
                self._lazy[number] = child
            return child

        return self._descriptor.default_value(field)

    def _has(self, field: FieldDescriptor) -> bool:
        value = self._values.get(field.number)
        if value is None:
            return False
        if field.is_repeated:
            return len(value) > 0
        return True

    def __getattribute__(self, name: str) -> Any:
        # Declared fields win over methods and properties of the same name
        if not name.startswith("__") and name not in _INTERNAL_NAMES:
            field = object.__getattribute__(self, "_descriptor").field_for_name(name)
            if field is not None:
                return object.__getattribute__(self, "_get")(field)
        return object.__getattribute__(self, name)

    def __getattr__(self, name: str) -> Any:
        if name.startswith("__") or name in _INTERNAL_NAMES:
            raise AttributeError(name)

        descriptor = self._descriptor
        if name.startswith("has_"):
            field = descriptor.field_for_name(name[4:])
            if field is not None:
                return lambda: self._has(field)

        raise AttributeError(f"{descriptor.full_name} has no field {name}")

    def __setattr__(self, name: str, value: Any) -> None:
        self._set(self._field(name), value)

    def __delattr__(self, name: str) -> None:
        self.clear_field(name)

    def __getitem__(self, name: str) -> Any:
        field = self._descriptor.field_for_name(name)
        if field is None:
            raise KeyError(name)
        return self._get(field)

    def __setitem__(self, name: str, value: Any) -> None:
        field = self._descriptor.field_for_name(name)
        if field is None:
            raise KeyError(name)
        self._set(field, value)

    def has_field(self, name: str) -> bool:
        """Whether ``name`` was explicitly assigned (or decoded)."""
        return self._has(self._field(name))

    def value_for_tag(self, number: int) -> Any:
        return self._get(self._field_for_number(number))

    def set_value_for_tag(self, number: int, value: Any) -> None:
        self._set(self._field_for_number(number), value)

    def value_for_tag_is_set(self, number: int) -> bool:
        field = self._descriptor.field_for_number(number)
        return field is not None and self._has(field)

    def clear_field(self, name: str) -> None:
        field = self._field(name)
        self._values.pop(field.number, None)
        self._lazy.pop(field.number, None)

    def list_fields(self) -> list[tuple[FieldDescriptor, Any]]:
        """Set fields and their values, ordered by field number."""
        return self._set_fields()

    def _set_fields(self) -> list[tuple[FieldDescriptor, Any]]:
        return [
            (field, self._values[field.number])
            for field in self._descriptor.fields
            if self._has(field)
        ]

    # Required fields

    def _missing(self, prefix: str) -> list[str]:
        missing = [
            prefix + field.name
            for field in self._descriptor.required_fields
            if field.number not in self._values
        ]

        for field, value in self._set_fields():
            if not field.is_message:
                continue
            if field.is_repeated:
                for i, item in enumerate(value):
                    missing.extend(item._missing(f"{prefix}{field.name}[{i}]."))
            else:
                missing.extend(value._missing(f"{prefix}{field.name}."))
        return missing

    def missing_required_fields(self) -> list[str]:
        """Dotted paths of required fields that are not set, including in sub-messages."""
        return self._missing("")

    def is_initialized(self) -> bool:
        return not self._missing("")

    # Encoding

    def encode(self) -> bytes:
        """Encode to wire bytes.

        Raises:
            EncodeError: A required field, here or in a sub-message, is not set.
        """
        missing = self._missing("")
        if missing:
            raise EncodeError(
                f"{self._descriptor.full_name}: required field {missing[0]} is not set"
            )
        buf = bytearray()
        self._encode_into(buf)
        return bytes(buf)

    __bytes__ = encode

    def _encode_into(self, buf: bytearray) -> None:
        for field, value in self._set_fields():
            tag = encode_tag(field.number, field.wire_type)
            if field.is_repeated:
                for item in value:
                    buf += tag
                    _encode_value(field, item, buf)
            else:
                buf += tag
                _encode_value(field, value, buf)

        for _, raw in self._unknown:
            buf += raw

    # Decoding

    @classmethod
    def decode(cls, descriptor: MessageDescriptor, data: Buffer) -> Message:
        """Decode wire bytes into a new instance of ``descriptor``.

        Raises:
            DecodeError: The bytes are malformed, a field has the wrong wire
                type or an undefined enum value, or a required field is
                missing.
        """
        msg = cls(descriptor)
        msg._merge_wire(memoryview(data))

        missing = msg._missing("")
        if missing:
            raise DecodeError(f"{descriptor.full_name}: required field {missing[0]} is missing")
        return msg

    def _merge_wire(self, data: memoryview) -> None:
        descriptor = self._descriptor
        offset = 0
        end = len(data)

        while offset < end:
            start = offset
            number, wire_type, offset = read_tag(data, offset)
            field = descriptor.field_for_number(number)

            if field is None:
                offset = skip_field(data, offset, wire_type)
                self._unknown.append((number, bytes(data[start:offset])))
                logger.debug(
                    "Retaining unknown field %d (wire type %d) in %s",
                    number,
                    wire_type,
                    descriptor.full_name,
                )
                continue

            if wire_type != field.wire_type:
                raise DecodeError(
                    f"{descriptor.full_name}.{field.name}: expected wire type "
                    f"{field.wire_type.name}, got {wire_type.name}"
                )

            if field.is_message:
                payload, offset = read_length_delimited(data, offset)
                value = Message(descriptor.message_type(field))
                value._merge_wire(payload)
            else:
                value, offset = decode_scalar(field.type, data, offset)
                if field.is_enum:
                    enum_type = descriptor.enum_type(field)
                    if not enum_type.is_valid(value):
                        raise DecodeError(
                            f"{descriptor.full_name}.{field.name}: {value} is not a valid "
                            f"value of {enum_type.full_name}"
                        )
                    value = enum_type.member(value)

            if field.is_repeated:
                self._get(field)._items.append(value)
            else:
                self._values[number] = value
                self._lazy.pop(number, None)

    # Comparison and copying

    def _comparable(self) -> tuple[dict[int, Any], dict[int, list[bytes]]]:
        values = {field.number: value for field, value in self._set_fields()}
        unknown: dict[int, list[bytes]] = {}
        for number, raw in self._unknown:
            unknown.setdefault(number, []).append(raw)
        return values, unknown

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Message):
            return NotImplemented
        if self._descriptor is not other._descriptor:
            return False
        return self._comparable() == other._comparable()

    __hash__ = None  # type: ignore[assignment]

    def merge_from(self, other: Message) -> None:
        """Merge set fields of ``other`` into this instance.

        Singular scalars overwrite, repeated fields extend, sub-messages merge
        recursively and unknown fields are appended.
        """
        if not isinstance(other, Message) or other._descriptor is not self._descriptor:
            raise FieldTypeError(
                f"Cannot merge {_describe(other)} into {self._descriptor.full_name}"
            )
        self._merge(other)

    def _merge(self, other: Message) -> None:
        for field, value in other._set_fields():
            if field.is_repeated:
                items = [v._copy() for v in value] if field.is_message else list(value)
                self._get(field).extend(items)
            elif field.is_message:
                if field.number in self._values:
                    self._values[field.number]._merge(value)
                else:
                    self._values[field.number] = value._copy()
                    self._lazy.pop(field.number, None)
            else:
                self._values[field.number] = value
        self._unknown.extend(other._unknown)

    def copy(self) -> Message:
        """Deep copy, including unknown fields."""
        return self._copy()

    def _copy(self) -> Message:
        duplicate = Message(self._descriptor)
        duplicate._merge(self)
        return duplicate

    def to_dict(self) -> dict[str, Any]:
        """Set fields as a dict keyed by field name, with sub-messages as dicts."""
        return self._to_dict()

    def _to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {}
        for field, value in self._set_fields():
            if field.is_message:
                if field.is_repeated:
                    result[field.name] = [v._to_dict() for v in value]
                else:
                    result[field.name] = value._to_dict()
            elif field.is_repeated:
                result[field.name] = list(value)
            else:
                result[field.name] = value
        return result

    def __iter__(self) -> Iterator[tuple[FieldDescriptor, Any]]:
        return iter(self._set_fields())

    def __repr__(self) -> str:
        fields = ", ".join(f"{f.name}={v!r}" for f, v in self._set_fields())
        return f"{self._descriptor.name}({fields})"


# Slots and private helpers; a field can never take one of these names
_INTERNAL_NAMES = frozenset(name for name in vars(Message) if name.startswith("_"))


def _encode_value(field: FieldDescriptor, value: Any, buf: bytearray) -> None:
    if field.is_message:
        body = bytearray()
        value._encode_into(body)
        buf += encode_varint(len(body))
        buf += body
    else:
        buf += encode_scalar(field.type, value)


def _describe(value: Any) -> str:
    if isinstance(value, Message):
        return f"a {value._descriptor.full_name} message"
    return type(value).__name__
