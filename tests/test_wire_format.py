import pytest

from protobuffer.errors import DecodeError, TruncatedInputError
from protobuffer.models import WireType
from protobuffer.wire_format import (
    decode_key,
    decode_varint,
    encode_key,
    encode_varint,
    read_length_delimited,
    skip_field,
    to_signed,
    to_unsigned64,
    zigzag_decode,
    zigzag_encode,
)


class TestVarint:
    @pytest.mark.parametrize(
        "value, encoded",
        [
            (0, b"\x00"),
            (1, b"\x01"),
            (127, b"\x7f"),
            (128, b"\x80\x01"),
            (300, b"\xac\x02"),
            ((1 << 31) - 1, b"\xff\xff\xff\xff\x07"),
            ((1 << 63) - 1, b"\xff\xff\xff\xff\xff\xff\xff\xff\x7f"),
            ((1 << 64) - 1, b"\xff\xff\xff\xff\xff\xff\xff\xff\xff\x01"),
        ],
    )
    def test_known_encodings(self, value, encoded):
        assert encode_varint(value) == encoded
        assert decode_varint(encoded, 0) == (value, len(encoded))

    def test_negative_rejected(self):
        with pytest.raises(ValueError):
            encode_varint(-1)

    def test_decode_from_offset(self):
        assert decode_varint(b"\xff\xac\x02\x05", 1) == (300, 3)

    def test_truncated(self):
        with pytest.raises(TruncatedInputError):
            decode_varint(b"\x80\x80", 0)

    def test_empty_input_is_truncated(self):
        with pytest.raises(TruncatedInputError):
            decode_varint(b"", 0)

    def test_too_long(self):
        with pytest.raises(DecodeError, match="longer than 10 bytes"):
            decode_varint(b"\x80" * 10 + b"\x01", 0)


class TestSignedConversions:
    @pytest.mark.parametrize(
        "value, encoded",
        [(0, 0), (-1, 1), (1, 2), (-2, 3), (2147483647, 4294967294), (-2147483648, 4294967295)],
    )
    def test_zigzag(self, value, encoded):
        assert zigzag_encode(value) == encoded
        assert zigzag_decode(encoded) == value

    def test_zigzag_64_bit_extremes(self):
        assert zigzag_encode(-(1 << 63)) == (1 << 64) - 1
        assert zigzag_decode((1 << 64) - 1) == -(1 << 63)

    def test_twos_complement(self):
        assert to_unsigned64(-1) == (1 << 64) - 1
        assert to_signed((1 << 64) - 1, 64) == -1
        assert to_signed((1 << 64) - 1, 32) == -1
        assert to_signed(0x7FFFFFFF, 32) == 0x7FFFFFFF


class TestKeysAndSkipping:
    def test_key_round_trip(self):
        key = encode_key(2, WireType.LENGTH_DELIMITED)
        assert key == b"\x12"
        assert decode_key(key, 0) == (2, WireType.LENGTH_DELIMITED, 1)

    def test_large_field_number(self):
        key = encode_key((1 << 29) - 1, WireType.FIXED32)
        number, wire_type, pos = decode_key(key, 0)
        assert number == (1 << 29) - 1
        assert wire_type == WireType.FIXED32
        assert pos == len(key)

    def test_field_number_zero_rejected(self):
        with pytest.raises(DecodeError, match="field number 0"):
            decode_key(b"\x02", 0)

    @pytest.mark.parametrize(
        "wire_type, payload",
        [
            (WireType.VARINT, b"\x96\x01"),
            (WireType.FIXED64, b"\x00" * 8),
            (WireType.LENGTH_DELIMITED, b"\x03abc"),
            (WireType.FIXED32, b"\x00" * 4),
        ],
    )
    def test_skip_field(self, wire_type, payload):
        data = payload + b"\xff"
        assert skip_field(data, 0, wire_type) == len(payload)

    def test_skip_truncated_fixed(self):
        with pytest.raises(TruncatedInputError):
            skip_field(b"\x00\x00", 0, WireType.FIXED32)

    def test_skip_group_rejected(self):
        with pytest.raises(DecodeError, match="wire type 3"):
            skip_field(b"", 0, WireType.START_GROUP)

    def test_length_delimited_truncated(self):
        with pytest.raises(TruncatedInputError):
            read_length_delimited(b"\x05ab", 0)
