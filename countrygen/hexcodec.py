"""
countrygen/hexcodec.py

Strict fixed-length hex decoding for key material and signatures.

Only [0-9a-fA-F] is accepted: no whitespace, signs, underscores or "0x".
"""

from .errors import InvalidHexDigit, InvalidHexLength

_HEX_DIGITS = frozenset("0123456789abcdefABCDEF")


def decode_hex(value: str, length: int) -> bytes:
    """
    Decode exactly `length` bytes from `value`.

    Raises:
      - InvalidHexLength if len(value) != 2 * length
      - InvalidHexDigit  if any character is not [0-9a-fA-F]

    Decoding is all-or-nothing: no partial result is ever returned.
    """
    if len(value) != 2 * length:
        raise InvalidHexLength(2 * length, len(value))

    for i, ch in enumerate(value):
        if ch not in _HEX_DIGITS:
            raise InvalidHexDigit(i)

    return bytes.fromhex(value)
