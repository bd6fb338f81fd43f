"""Tests for the wire codec primitives."""

from pytest import raises

from protowire.proto.errors import DecodeError
from protowire.proto.wire import (
    WireType,
    encode_fixed32,
    encode_fixed64,
    encode_length_delimited,
    encode_signed_varint,
    encode_tag,
    encode_varint,
    read_fixed32,
    read_fixed64,
    read_length_delimited,
    read_tag,
    read_varint,
    skip_field,
    to_signed,
    zigzag_decode,
    zigzag_encode,
)


def describe_varint():
    def encodes_single_byte_values(expect):
        expect(encode_varint(0)) == b"\x00"
        expect(encode_varint(1)) == b"\x01"
        expect(encode_varint(127)) == b"\x7f"

    def encodes_multi_byte_values(expect):
        expect(encode_varint(128)) == b"\x80\x01"
        expect(encode_varint(150)) == b"\x96\x01"
        expect(encode_varint(300)) == b"\xac\x02"

    def encodes_max_uint64_in_ten_bytes(expect):
        encoded = encode_varint((1 << 64) - 1)
        expect(encoded) == b"\xff" * 9 + b"\x01"

    def rejects_negative_and_oversized_values(expect):
        with raises(ValueError):
            encode_varint(-1)
        with raises(ValueError):
            encode_varint(1 << 64)

    def reads_value_and_new_offset(expect):
        value, offset = read_varint(b"\x00\xac\x02\x05", 1)
        expect(value) == 300
        expect(offset) == 3

    def reads_max_uint64(expect):
        value, offset = read_varint(b"\xff" * 9 + b"\x01")
        expect(value) == (1 << 64) - 1
        expect(offset) == 10

    def fails_on_truncated_input(expect):
        with raises(DecodeError):
            read_varint(b"\x80\x80")
        with raises(DecodeError):
            read_varint(b"")

    def fails_when_longer_than_ten_bytes(expect):
        with raises(DecodeError):
            read_varint(b"\xff" * 10 + b"\x01")

    def fails_when_tenth_byte_overflows_64_bits(expect):
        with raises(DecodeError):
            read_varint(b"\xff" * 9 + b"\x02")


def describe_zigzag():
    def maps_small_magnitudes_to_small_values(expect):
        expect([zigzag_encode(n) for n in (0, -1, 1, -2, 2)]) == [0, 1, 2, 3, 4]

    def maps_32_bit_extremes(expect):
        expect(zigzag_encode(2147483647)) == 4294967294
        expect(zigzag_encode(-2147483648)) == 4294967295

    def maps_64_bit_extremes(expect):
        expect(zigzag_encode((1 << 63) - 1)) == (1 << 64) - 2
        expect(zigzag_encode(-(1 << 63))) == (1 << 64) - 1

    def decode_inverts_encode(expect):
        for n in (0, -1, 1, -300, 300, (1 << 63) - 1, -(1 << 63)):
            expect(zigzag_decode(zigzag_encode(n))) == n


def describe_signed_varint():
    def encodes_negative_values_as_ten_bytes(expect):
        expect(encode_signed_varint(-1)) == b"\xff" * 9 + b"\x01"

    def encodes_positive_values_like_unsigned(expect):
        expect(encode_signed_varint(150)) == b"\x96\x01"

    def reinterprets_twos_complement(expect):
        expect(to_signed((1 << 64) - 1, 64)) == -1
        expect(to_signed((1 << 64) - 1, 32)) == -1
        expect(to_signed(0x7FFFFFFF, 32)) == 0x7FFFFFFF
        expect(to_signed(0x80000000, 32)) == -0x80000000


def describe_fixed():
    def writes_little_endian(expect):
        expect(encode_fixed32(1)) == b"\x01\x00\x00\x00"
        expect(encode_fixed64(0x0102)) == b"\x02\x01\x00\x00\x00\x00\x00\x00"

    def reads_raw_bytes_and_offset(expect):
        expect(read_fixed32(b"\x00\x01\x02\x03\x04", 1)) == (b"\x01\x02\x03\x04", 5)
        expect(read_fixed64(b"\x01" * 8)) == (b"\x01" * 8, 8)

    def fails_on_truncated_input(expect):
        with raises(DecodeError):
            read_fixed32(b"\x01\x02\x03")
        with raises(DecodeError):
            read_fixed64(b"\x01" * 7)


def describe_tag():
    def packs_number_and_wire_type(expect):
        expect(encode_tag(1, WireType.VARINT)) == b"\x08"
        expect(encode_tag(2, WireType.LENGTH_DELIMITED)) == b"\x12"
        expect(encode_tag(16, WireType.FIXED32)) == b"\x85\x01"

    def unpacks_number_and_wire_type(expect):
        number, wire_type, offset = read_tag(b"\x12\x07")
        expect(number) == 2
        expect(wire_type) == WireType.LENGTH_DELIMITED
        expect(offset) == 1

    def rejects_unsupported_wire_types(expect):
        for wire_type in (3, 4, 6, 7):
            with raises(DecodeError):
                read_tag(encode_varint((1 << 3) | wire_type))

    def rejects_field_number_zero(expect):
        with raises(DecodeError):
            read_tag(b"\x00")


def describe_length_delimited():
    def prefixes_payload_with_length(expect):
        expect(encode_length_delimited(b"testing")) == b"\x07testing"
        expect(encode_length_delimited(b"")) == b"\x00"

    def reads_payload_view(expect):
        payload, offset = read_length_delimited(b"\x03abcdef")
        expect(bytes(payload)) == b"abc"
        expect(offset) == 4

    def fails_when_length_overruns_buffer(expect):
        with raises(DecodeError):
            read_length_delimited(b"\x05abc")


def describe_skip_field():
    def skips_each_wire_type(expect):
        expect(skip_field(b"\xac\x02", 0, WireType.VARINT)) == 2
        expect(skip_field(b"\x00" * 8, 0, WireType.FIXED64)) == 8
        expect(skip_field(b"\x02ab", 0, WireType.LENGTH_DELIMITED)) == 3
        expect(skip_field(b"\x00" * 4, 0, WireType.FIXED32)) == 4

    def fails_on_truncated_values(expect):
        with raises(DecodeError):
            skip_field(b"\x00" * 3, 0, WireType.FIXED32)
