"""hex_helper.py

Utility class that groups together the small helpers that deal with hex
formatting and with the byte values handed over by the transports.

Typical usage
-------------
>>> from hex_helper import HexHelper
>>> HexHelper.to_hex_string(b"\x01\xab")
'01:ab'
>>> HexHelper.from_hex_string("01:ab")
b'\x01\xab'
"""

import base64
import binascii
from typing import Union

BytesLike = Union[bytes, bytearray, memoryview]


class HexHelper:
    """Stateless helpers for hex conversion and characteristic decoding."""

    # ------------------------------------------------------------------
    # Hex conversion helpers
    # ------------------------------------------------------------------
    @staticmethod
    def to_hex_string(byte_array: BytesLike, sep: str = ":") -> str:
        """
        Convert a sequence of bytes to a separated lowercase hex string.

        Example
        -------
        >>> HexHelper.to_hex_string(b"\x01\xab", sep="")
        '01ab'
        """
        return sep.join(f"{c:02x}" for c in bytes(byte_array))

    @staticmethod
    def from_hex_string(text: str) -> bytes:
        """
        Parse ``"01:ab"``, ``"01 ab"`` or ``"01ab"`` back into bytes.
        Raises ``ValueError`` for anything that is not an even run of hex digits.
        """
        cleaned = "".join(ch for ch in text if ch not in ": \t\r\n-")
        return bytes.fromhex(cleaned)

    # ------------------------------------------------------------------
    # Characteristic values
    # ------------------------------------------------------------------
    @staticmethod
    def to_characteristic_bytes(value: Union[str, BytesLike]) -> bytes:
        """
        Normalise a characteristic value.  Some radio stacks hand the value
        over as a base64 string, others as raw bytes.
        """
        if isinstance(value, str):
            try:
                return base64.b64decode(value, validate=True)
            except binascii.Error as exc:
                raise ValueError(f"Characteristic value is not valid base64: {exc}") from exc
        return bytes(value)
