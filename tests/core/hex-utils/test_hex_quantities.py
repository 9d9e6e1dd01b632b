from hypothesis import (
    given,
    strategies as st,
)
import pytest

from evmtrace._utils.hexadecimal import (
    encode_big_int,
    encode_bytes,
    parse_big_int,
    parse_hex,
)
from evmtrace.exceptions import (
    MalformedHex,
    ValueTooLarge,
)


@pytest.mark.parametrize(
    "value,expected",
    (
        ("0x", b""),
        ("", b""),
        ("0x00", b"\x00"),
        ("0xDEADbeef", b"\xde\xad\xbe\xef"),
        ("deadbeef", b"\xde\xad\xbe\xef"),
    ),
)
def test_parse_hex(value, expected):
    assert parse_hex(value) == expected


@pytest.mark.parametrize("value", ("0x0", "0x123", "0xgg", "0x00~0f~", 12))
def test_parse_hex_rejects_malformed_input(value):
    with pytest.raises(MalformedHex):
        parse_hex(value)


def test_malformed_hex_is_a_value_error():
    with pytest.raises(ValueError):
        parse_hex("0x1")


@pytest.mark.parametrize(
    "value,expected",
    (
        ("0x", 0),
        ("0x0", 0),
        ("0x5c878", 0x5C878),
        ("0x0de0b6b3a7640000", 10**18),
        ("ff", 255),
        (42, 42),
    ),
)
def test_parse_big_int(value, expected):
    assert parse_big_int(value) == expected


@pytest.mark.parametrize(
    "value,byte_width,expected",
    (
        (0, None, "0x00"),
        (1, None, "0x01"),
        (0x5C878, None, "0x05c878"),
        (0, 1, "0x00"),
        (1, 20, "0x" + "00" * 19 + "01"),
        (2**256 - 1, 32, "0x" + "ff" * 32),
    ),
)
def test_encode_big_int(value, byte_width, expected):
    assert encode_big_int(value, byte_width) == expected


@pytest.mark.parametrize(
    "value,byte_width",
    (
        (256, 1),
        (2**160, 20),
        (2**256, 32),
    ),
)
def test_encode_big_int_too_large(value, byte_width):
    with pytest.raises(ValueTooLarge):
        encode_big_int(value, byte_width)


def test_encode_big_int_rejects_negative_values():
    with pytest.raises(ValueError):
        encode_big_int(-1)


@given(
    byte_width=st.integers(min_value=1, max_value=32),
    data=st.data(),
)
def test_fixed_width_round_trip(byte_width, data):
    value = data.draw(st.integers(min_value=0, max_value=2 ** (8 * byte_width) - 1))
    encoded = encode_big_int(value, byte_width)

    assert len(encoded) == 2 + 2 * byte_width
    assert parse_big_int(encoded) == value
    assert int.from_bytes(parse_hex(encoded), "big") == value


@given(value=st.integers(min_value=0, max_value=2**256 - 1))
def test_minimal_round_trip(value):
    assert parse_big_int(encode_big_int(value)) == value


def test_encode_bytes_honours_abbreviation_flag():
    assert encode_bytes(bytes(32)) == "0x00~1f~"
    assert encode_bytes(bytes(32), abbreviate=False) == "0x" + "00" * 32
