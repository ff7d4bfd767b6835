from __future__ import annotations

import pytest

from sui_ptb.bcs import (
    ADDRESS,
    BOOL,
    BYTES,
    STRING,
    U8,
    U16,
    U64,
    U128,
    BCSDecodeError,
    BCSEncodeError,
    Deserializer,
    OptionOf,
    Serializer,
    Struct,
    Vector,
    encode_uleb128,
)


def test_integers_are_little_endian_fixed_width() -> None:
    assert U8.to_bytes(7) == b"\x07"
    assert U16.to_bytes(0x0102) == b"\x02\x01"
    assert U64.to_bytes(1) == b"\x01" + b"\x00" * 7
    assert len(U128.to_bytes(0)) == 16


@pytest.mark.parametrize(
    "value, encoded",
    [(0, b"\x00"), (127, b"\x7f"), (128, b"\x80\x01"), (300, b"\xac\x02"), (2**32 - 1, b"\xff\xff\xff\xff\x0f")],
)
def test_uleb128_encoding(value: int, encoded: bytes) -> None:
    assert encode_uleb128(value) == encoded
    assert Deserializer(encoded).uleb128() == value


def test_uleb128_rejects_out_of_range() -> None:
    with pytest.raises(BCSEncodeError):
        encode_uleb128(2**32)
    with pytest.raises(BCSEncodeError):
        encode_uleb128(-1)


def test_uleb128_rejects_non_canonical_encoding() -> None:
    with pytest.raises(BCSDecodeError):
        Deserializer(b"\x80\x00").uleb128()


def test_uleb128_rejects_u32_overflow() -> None:
    with pytest.raises(BCSDecodeError):
        Deserializer(b"\xff\xff\xff\xff\x1f").uleb128()


def test_integer_range_is_enforced() -> None:
    with pytest.raises(BCSEncodeError):
        U8.to_bytes(256)
    with pytest.raises(BCSEncodeError):
        U64.to_bytes(-1)
    with pytest.raises(BCSEncodeError):
        U64.to_bytes(True)


def test_bool_accepts_only_zero_or_one() -> None:
    assert BOOL.from_bytes(b"\x01") is True
    assert BOOL.from_bytes(b"\x00") is False
    with pytest.raises(BCSDecodeError):
        BOOL.from_bytes(b"\x02")


def test_short_read_is_reported() -> None:
    with pytest.raises(BCSDecodeError, match="unexpected end of input"):
        U64.from_bytes(b"\x01\x02")


def test_trailing_bytes_are_reported() -> None:
    with pytest.raises(BCSDecodeError, match="trailing"):
        U8.from_bytes(b"\x01\x02")


def test_strings_and_bytes_carry_length_prefix() -> None:
    assert STRING.to_bytes("hi") == b"\x02hi"
    assert BYTES.to_bytes(b"\x00\x01") == b"\x02\x00\x01"
    with pytest.raises(BCSDecodeError):
        STRING.from_bytes(b"\x01\xff")


def test_address_is_fixed_width_without_prefix() -> None:
    encoded = ADDRESS.to_bytes("0x2")
    assert encoded == b"\x00" * 31 + b"\x02"
    assert ADDRESS.from_bytes(encoded) == "0x" + "0" * 63 + "2"


def test_nested_struct_with_vectors_and_options() -> None:
    inner = Struct("Inner", [("flag", BOOL), ("amount", U64)])
    outer = Struct(
        "Outer",
        [("items", Vector(inner)), ("memo", OptionOf(STRING)), ("tag", U8)],
    )
    value = {
        "items": [{"flag": True, "amount": 5}, {"flag": False, "amount": 2**63}],
        "memo": "note",
        "tag": 9,
    }

    encoded = outer.to_bytes(value)

    assert encoded[0] == 2
    assert outer.from_bytes(encoded) == value
    assert outer.from_bytes(outer.to_bytes({**value, "memo": None}))["memo"] is None


def test_struct_encoding_requires_every_field() -> None:
    layout = Struct("Pair", [("a", U8), ("b", U8)])
    with pytest.raises(BCSEncodeError, match="missing field 'b'"):
        layout.to_bytes({"a": 1})


def test_option_rejects_lengths_above_one() -> None:
    with pytest.raises(BCSDecodeError):
        OptionOf(U8).from_bytes(b"\x02\x01\x02")


def test_serializer_sequence_writes_length_then_elements() -> None:
    ser = Serializer()
    ser.sequence([1, 2, 3], lambda s, v: s.u16(v))
    assert ser.output() == b"\x03\x01\x00\x02\x00\x03\x00"


def test_encoders_reject_values_of_the_wrong_type() -> None:
    with pytest.raises(BCSEncodeError, match="expected a string"):
        STRING.to_bytes(5)
    with pytest.raises(BCSEncodeError, match="expects a sequence"):
        Vector(U8).to_bytes(5)
    with pytest.raises(BCSEncodeError, match="expects a sequence"):
        Vector(U8).to_bytes("abc")
    with pytest.raises(BCSEncodeError, match="address string"):
        ADDRESS.to_bytes(2)
    assert Vector(U8).to_bytes(b"\x01\x02") == b"\x02\x01\x02"
