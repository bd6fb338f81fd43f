"""Primitive encoders and decoders for the protobuf wire format.

Readers take a buffer and an offset and return ``(value, new_offset)`` so
callers can walk a message without copying it. Nothing in this module knows
about descriptors.
"""

import struct
from enum import IntEnum

from .errors import DecodeError

MAX_VARINT_BYTES = 10
UINT32_MAX = (1 << 32) - 1
UINT64_MAX = (1 << 64) - 1
MAX_FIELD_NUMBER = (1 << 29) - 1

_FIXED32 = struct.Struct("<I")
_FIXED64 = struct.Struct("<Q")

Buffer = bytes | bytearray | memoryview


class WireType(IntEnum):
    """Physical encoding of a field value, stored in the low 3 bits of a tag."""

    VARINT = 0
    FIXED64 = 1
    LENGTH_DELIMITED = 2
    FIXED32 = 5


_WIRE_TYPES = {int(w): w for w in WireType}


def encode_varint(value: int) -> bytes:
    """Encode an unsigned 64-bit integer as little-endian base-128 groups."""
    if value < 0:
        raise ValueError(f"varint value must not be negative: {value}")
    if value > UINT64_MAX:
        raise ValueError(f"varint value exceeds 64 bits: {value}")

    if value < 0x80:
        return bytes((value,))

    out = bytearray()
    while value > 0x7F:
        out.append((value & 0x7F) | 0x80)
        value >>= 7
    out.append(value)
    return bytes(out)


def read_varint(data: Buffer, offset: int = 0) -> tuple[int, int]:
    """Read a varint starting at ``offset``."""
    result = 0
    shift = 0
    end = len(data)

    for i in range(MAX_VARINT_BYTES):
        if offset >= end:
            raise DecodeError("Truncated varint")
        byte = data[offset]
        offset += 1
        result |= (byte & 0x7F) << shift
        if not byte & 0x80:
            if i == MAX_VARINT_BYTES - 1 and byte > 1:
                raise DecodeError("Varint exceeds 64 bits")
            return result, offset
        shift += 7

    raise DecodeError(f"Varint longer than {MAX_VARINT_BYTES} bytes")


def zigzag_encode(value: int) -> int:
    """Map a signed 64-bit integer onto an unsigned one, small magnitudes first."""
    return ((value << 1) ^ (value >> 63)) & UINT64_MAX


def zigzag_decode(value: int) -> int:
    """Inverse of :func:`zigzag_encode`."""
    return (value >> 1) ^ -(value & 1)


def encode_signed_varint(value: int) -> bytes:
    """Encode an int32/int64 value; negatives use 64-bit two's complement."""
    return encode_varint(value & UINT64_MAX)


def to_signed(value: int, bits: int) -> int:
    """Reinterpret the low ``bits`` of an unsigned value as two's complement."""
    value &= (1 << bits) - 1
    if value >> (bits - 1):
        value -= 1 << bits
    return value


def encode_fixed32(value: int) -> bytes:
    return _FIXED32.pack(value)


def encode_fixed64(value: int) -> bytes:
    return _FIXED64.pack(value)


def read_fixed32(data: Buffer, offset: int = 0) -> tuple[bytes, int]:
    """Read the raw 4 bytes of a fixed 32-bit value."""
    end = offset + 4
    if end > len(data):
        raise DecodeError("Truncated fixed32 value")
    return bytes(data[offset:end]), end


def read_fixed64(data: Buffer, offset: int = 0) -> tuple[bytes, int]:
    """Read the raw 8 bytes of a fixed 64-bit value."""
    end = offset + 8
    if end > len(data):
        raise DecodeError("Truncated fixed64 value")
    return bytes(data[offset:end]), end


def encode_tag(number: int, wire_type: WireType) -> bytes:
    """Pack a field number and wire type into a varint tag."""
    return encode_varint((number << 3) | wire_type)


def read_tag(data: Buffer, offset: int = 0) -> tuple[int, WireType, int]:
    """Read a tag, returning ``(field_number, wire_type, new_offset)``."""
    key, offset = read_varint(data, offset)
    number = key >> 3
    wire_type = _WIRE_TYPES.get(key & 0x7)

    if wire_type is None:
        raise DecodeError(f"Unsupported wire type {key & 0x7} for field {number}")
    if number < 1 or number > MAX_FIELD_NUMBER:
        raise DecodeError(f"Invalid field number {number}")

    return number, wire_type, offset


def encode_length_delimited(payload: bytes) -> bytes:
    return encode_varint(len(payload)) + payload


def read_length_delimited(data: Buffer, offset: int = 0) -> tuple[memoryview, int]:
    """Read a length prefix and return a view over the payload that follows."""
    length, offset = read_varint(data, offset)
    end = offset + length
    if end > len(data):
        raise DecodeError(f"Length-delimited value of {length} bytes overruns buffer")
    return memoryview(data)[offset:end], end


def skip_field(data: Buffer, offset: int, wire_type: WireType) -> int:
    """Consume one value of ``wire_type`` and return the offset after it."""
    if wire_type == WireType.VARINT:
        _, offset = read_varint(data, offset)
    elif wire_type == WireType.FIXED64:
        _, offset = read_fixed64(data, offset)
    elif wire_type == WireType.LENGTH_DELIMITED:
        _, offset = read_length_delimited(data, offset)
    elif wire_type == WireType.FIXED32:
        _, offset = read_fixed32(data, offset)
    else:
        raise DecodeError(f"Cannot skip unsupported wire type {wire_type}")
    return offset
