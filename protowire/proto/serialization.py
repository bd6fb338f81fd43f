"""Type checking, encoding and decoding of individual field values.

Each scalar field type maps to a checker (run on assignment), an encoder
(value to payload bytes, without the tag) and a decoder (payload read from a
buffer at an offset). Message and enum fields are handled by the message
runtime on top of these.
"""

import math
import struct
from collections.abc import Callable
from typing import Any

from .errors import DecodeError, FieldTypeError, FieldValueError
from .types import FieldType
from .wire import (
    Buffer,
    encode_fixed32,
    encode_fixed64,
    encode_length_delimited,
    encode_signed_varint,
    encode_varint,
    read_fixed32,
    read_fixed64,
    read_length_delimited,
    read_varint,
    to_signed,
    zigzag_decode,
    zigzag_encode,
)

_FLOAT = struct.Struct("<f")
_DOUBLE = struct.Struct("<d")
_SFIXED32 = struct.Struct("<i")
_SFIXED64 = struct.Struct("<q")
_UFIXED32 = struct.Struct("<I")
_UFIXED64 = struct.Struct("<Q")

INT_RANGES = {
    FieldType.INT32: (-(1 << 31), (1 << 31) - 1),
    FieldType.SINT32: (-(1 << 31), (1 << 31) - 1),
    FieldType.SFIXED32: (-(1 << 31), (1 << 31) - 1),
    FieldType.INT64: (-(1 << 63), (1 << 63) - 1),
    FieldType.SINT64: (-(1 << 63), (1 << 63) - 1),
    FieldType.SFIXED64: (-(1 << 63), (1 << 63) - 1),
    FieldType.UINT32: (0, (1 << 32) - 1),
    FieldType.FIXED32: (0, (1 << 32) - 1),
    FieldType.UINT64: (0, (1 << 64) - 1),
    FieldType.FIXED64: (0, (1 << 64) - 1),
}


def _type_name(value: Any) -> str:
    return type(value).__name__


def check_int(field_type: FieldType, value: Any) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise FieldTypeError(f"{field_type.value} field requires an int, got {_type_name(value)}")
    low, high = INT_RANGES[field_type]
    if not low <= value <= high:
        raise FieldValueError(f"{value} is out of range for {field_type.value}")
    return int(value)


def check_float(field_type: FieldType, value: Any) -> float:
    # int widens to float; float never narrows to int
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise FieldTypeError(
            f"{field_type.value} field requires a float or int, got {_type_name(value)}"
        )
    try:
        value = float(value)
    except OverflowError as e:
        raise FieldValueError(f"{value} is out of range for {field_type.value}") from e

    if field_type is FieldType.FLOAT and math.isfinite(value):
        try:
            value = _FLOAT.unpack(_FLOAT.pack(value))[0]
        except OverflowError as e:
            raise FieldValueError(f"{value} is out of range for float") from e
    return value


def check_bool(field_type: FieldType, value: Any) -> bool:
    if not isinstance(value, bool):
        raise FieldTypeError(f"bool field requires a bool, got {_type_name(value)}")
    return value


def check_string(field_type: FieldType, value: Any) -> str:
    if not isinstance(value, str):
        raise FieldTypeError(f"string field requires a str, got {_type_name(value)}")
    return value


def check_bytes(field_type: FieldType, value: Any) -> bytes:
    if not isinstance(value, (bytes, bytearray, memoryview)):
        raise FieldTypeError(f"bytes field requires bytes, got {_type_name(value)}")
    return bytes(value)


CHECKERS: dict[FieldType, Callable[[FieldType, Any], Any]] = {
    **{t: check_int for t in INT_RANGES},
    FieldType.FLOAT: check_float,
    FieldType.DOUBLE: check_float,
    FieldType.BOOL: check_bool,
    FieldType.STRING: check_string,
    FieldType.BYTES: check_bytes,
}


def check_scalar(field_type: FieldType, value: Any) -> Any:
    """Validate ``value`` for a scalar field and return the value to store."""
    return CHECKERS[field_type](field_type, value)


ENCODERS: dict[FieldType, Callable[[Any], bytes]] = {
    FieldType.INT32: encode_signed_varint,
    FieldType.INT64: encode_signed_varint,
    FieldType.UINT32: encode_varint,
    FieldType.UINT64: encode_varint,
    FieldType.SINT32: lambda v: encode_varint(zigzag_encode(v)),
    FieldType.SINT64: lambda v: encode_varint(zigzag_encode(v)),
    FieldType.BOOL: lambda v: b"\x01" if v else b"\x00",
    FieldType.ENUM: encode_signed_varint,
    FieldType.FIXED32: encode_fixed32,
    FieldType.FIXED64: encode_fixed64,
    FieldType.SFIXED32: _SFIXED32.pack,
    FieldType.SFIXED64: _SFIXED64.pack,
    FieldType.FLOAT: _FLOAT.pack,
    FieldType.DOUBLE: _DOUBLE.pack,
    FieldType.STRING: lambda v: encode_length_delimited(v.encode("utf-8")),
    FieldType.BYTES: encode_length_delimited,
}


def encode_scalar(field_type: FieldType, value: Any) -> bytes:
    """Encode a scalar or enum value without its tag."""
    return ENCODERS[field_type](value)


def _decode_string(data: Buffer, offset: int) -> tuple[str, int]:
    payload, offset = read_length_delimited(data, offset)
    try:
        return str(payload, "utf-8"), offset
    except UnicodeDecodeError as e:
        raise DecodeError(f"Invalid UTF-8 in string field: {e}") from e


def _decode_bytes(data: Buffer, offset: int) -> tuple[bytes, int]:
    payload, offset = read_length_delimited(data, offset)
    return bytes(payload), offset


def _varint_decoder(convert: Callable[[int], Any]) -> Callable[[Buffer, int], tuple[Any, int]]:
    def decode(data: Buffer, offset: int) -> tuple[Any, int]:
        value, offset = read_varint(data, offset)
        return convert(value), offset

    return decode


def _fixed_decoder(
    read: Callable[[Buffer, int], tuple[bytes, int]], fmt: struct.Struct
) -> Callable[[Buffer, int], tuple[Any, int]]:
    def decode(data: Buffer, offset: int) -> tuple[Any, int]:
        raw, offset = read(data, offset)
        return fmt.unpack(raw)[0], offset

    return decode


DECODERS: dict[FieldType, Callable[[Buffer, int], tuple[Any, int]]] = {
    FieldType.INT32: _varint_decoder(lambda v: to_signed(v, 32)),
    FieldType.INT64: _varint_decoder(lambda v: to_signed(v, 64)),
    FieldType.UINT32: _varint_decoder(lambda v: v & 0xFFFFFFFF),
    FieldType.UINT64: _varint_decoder(lambda v: v),
    FieldType.SINT32: _varint_decoder(lambda v: to_signed(zigzag_decode(v), 32)),
    FieldType.SINT64: _varint_decoder(zigzag_decode),
    FieldType.BOOL: _varint_decoder(bool),
    FieldType.ENUM: _varint_decoder(lambda v: to_signed(v, 32)),
    FieldType.FIXED32: _fixed_decoder(read_fixed32, _UFIXED32),
    FieldType.FIXED64: _fixed_decoder(read_fixed64, _UFIXED64),
    FieldType.SFIXED32: _fixed_decoder(read_fixed32, _SFIXED32),
    FieldType.SFIXED64: _fixed_decoder(read_fixed64, _SFIXED64),
    FieldType.FLOAT: _fixed_decoder(read_fixed32, _FLOAT),
    FieldType.DOUBLE: _fixed_decoder(read_fixed64, _DOUBLE),
    FieldType.STRING: _decode_string,
    FieldType.BYTES: _decode_bytes,
}


def decode_scalar(field_type: FieldType, data: Buffer, offset: int) -> tuple[Any, int]:
    """Decode a scalar or enum value at ``offset``, returning ``(value, new_offset)``."""
    return DECODERS[field_type](data, offset)
