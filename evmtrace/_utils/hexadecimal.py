import re
from typing import (
    Union,
)

from eth_typing import (
    HexStr,
)
from eth_utils import (
    decode_hex,
    encode_hex as _encode_hex,
    remove_0x_prefix,
)

from evmtrace.constants import (
    ABBREVIATION_MARKER,
    DEFAULT_ABBREVIATION_THRESHOLD,
)
from evmtrace.exceptions import (
    MalformedHex,
    ValueTooLarge,
)

HEX_DIGITS_RE = re.compile(r"^[0-9a-fA-F]*$")


def _strip_hex(value: str) -> str:
    if not isinstance(value, str):
        raise MalformedHex(f"Expected a hex string, got {type(value).__name__}")
    digits = remove_0x_prefix(HexStr(value))
    if not HEX_DIGITS_RE.match(digits):
        raise MalformedHex(f"Invalid hex digits in {value!r}")
    return digits


#
# Plain hex
#
def parse_hex(value: str) -> bytes:
    """
    Decode an (optionally ``0x`` prefixed) hex string into bytes.  The number of
    digits must be even.
    """
    digits = _strip_hex(value)
    if len(digits) % 2 != 0:
        raise MalformedHex(f"Odd number of hex digits in {value!r}")
    return decode_hex(digits)


def encode_hex(value: bytes) -> str:
    return _encode_hex(bytes(value))


def parse_big_int(value: Union[str, int]) -> int:
    """
    Decode a hex quantity into an integer.  Unlike :func:`parse_hex` an odd
    number of digits is accepted (Geth writes quantities such as ``0x5c878``),
    and ``0x`` on its own is zero.
    """
    if isinstance(value, int) and not isinstance(value, bool):
        return value
    digits = _strip_hex(value)
    if not digits:
        return 0
    return int(digits, 16)


def encode_big_int(value: int, byte_width: int = None) -> str:
    """
    Encode a non-negative integer as a ``0x`` prefixed hex string.

    Without ``byte_width`` the shortest even-length encoding is used (so zero is
    ``0x00``).  With ``byte_width`` the result is zero padded to exactly
    ``2 * byte_width`` digits, and :class:`ValueTooLarge` is raised if the value
    does not fit.
    """
    if value < 0:
        raise ValueError(f"Cannot hex encode negative value {value}")

    if byte_width is None:
        digits = f"{value:x}"
        if len(digits) % 2:
            digits = "0" + digits
        return "0x" + digits
    elif value.bit_length() > byte_width * 8:
        raise ValueTooLarge(f"Value {value:#x} does not fit in {byte_width} bytes")
    else:
        return "0x" + format(value, f"0{byte_width * 2}x")


#
# Abbreviated hex
#
def _even_hex(value: int) -> str:
    digits = f"{value:x}"
    if len(digits) % 2:
        return "0" + digits
    return digits


def encode_abbreviated(
    value: bytes, min_run_length: int = DEFAULT_ABBREVIATION_THRESHOLD
) -> str:
    """
    Encode bytes as hex, collapsing every maximal run of a repeated byte which is
    at least ``min_run_length`` long.  The first byte of such a run is written
    as normal and followed by ``~NN~`` where ``NN`` is the number of further
    repeats, e.g. sixteen zero bytes become ``0x00~0f~``.
    """
    if min_run_length < 1:
        raise ValueError(f"Run length threshold must be positive, got {min_run_length}")

    data = bytes(value)
    pieces = ["0x"]
    index = 0
    while index < len(data):
        end = index + 1
        while end < len(data) and data[end] == data[index]:
            end += 1

        run_length = end - index
        if run_length >= min_run_length:
            pieces.append(
                f"{data[index]:02x}"
                f"{ABBREVIATION_MARKER}{_even_hex(run_length - 1)}{ABBREVIATION_MARKER}"
            )
        else:
            pieces.append(data[index:end].hex())
        index = end

    return "".join(pieces)


def decode_abbreviated(value: str) -> bytes:
    """
    Decode a string produced by :func:`encode_abbreviated`.  Plain hex strings
    decode as they would with :func:`parse_hex`.
    """
    if not isinstance(value, str):
        raise MalformedHex(f"Expected a hex string, got {type(value).__name__}")

    parts = remove_0x_prefix(HexStr(value)).split(ABBREVIATION_MARKER)
    if len(parts) % 2 == 0:
        raise MalformedHex(f"Unbalanced run-length markers in {value!r}")

    decoded = bytearray()
    for position, part in enumerate(parts):
        if position % 2 == 0:
            decoded += parse_hex(part)
        elif not part:
            raise MalformedHex(f"Empty run-length marker in {value!r}")
        elif not decoded:
            raise MalformedHex(f"Run-length marker with no preceding byte in {value!r}")
        else:
            decoded += decoded[-1:] * parse_big_int(part)

    return bytes(decoded)


def encode_bytes(value: bytes, abbreviate: bool = True) -> str:
    if abbreviate:
        return encode_abbreviated(value)
    else:
        return encode_hex(value)
