# errors.py
"""
Exception taxonomy for the Libre 2 protocol layer.

Structural problems (bad identifier, bad ciphertext, transport failure,
missing keys) abort the enclosing scan or poll.  Decode anomalies
(``BufferTooShort``, ``UnexpectedDataType``) are raised by the low-level
helpers and recovered locally by the radio decoder.
"""

from dataclasses import dataclass
from typing import Optional


class Libre2Error(Exception):
    """Root of every error raised by this project."""


@dataclass
class InvalidIdentifier(Libre2Error, ValueError):
    """The sensor UID is not exactly 8 bytes long."""
    length: int
    expected: int = 8

    def __str__(self) -> str:
        return f"UID must be {self.expected} bytes, got {self.length}"


@dataclass
class MalformedCiphertext(Libre2Error, ValueError):
    """Ciphertext (or plaintext) length is not a multiple of the block size."""
    length: int
    block_size: int = 16

    def __str__(self) -> str:
        return (f"Data length {self.length} is not a multiple of "
                f"the {self.block_size}-byte block size")


@dataclass
class BufferTooShort(Libre2Error, ValueError):
    """A decode input is smaller than the layout it must hold."""
    length: int
    minimum: int
    source: str = "buffer"

    def __str__(self) -> str:
        return f"{self.source} too small: {self.length} bytes, need {self.minimum}"


@dataclass
class UnexpectedDataType(Libre2Error):
    """The radio payload type byte is not the glucose record tag."""
    data_type: int
    expected: int = 0x01

    def __str__(self) -> str:
        return f"Unexpected data type: 0x{self.data_type:02X} (expected 0x{self.expected:02X})"


@dataclass
class TransportFailure(Libre2Error):
    """A tag or radio transport call failed; the cause is chained."""
    operation: str
    details: Optional[str] = None

    def __str__(self) -> str:
        if self.details:
            return f"Transport failure during {self.operation}: {self.details}"
        return f"Transport failure during {self.operation}"


class KeysUnavailable(Libre2Error):
    """A poll was attempted before a tag scan produced a KeyPair."""

    def __str__(self) -> str:
        return "Encryption keys not available. Scan the sensor first."


@dataclass
class SessionCancelled(Libre2Error):
    """The session was torn down while a sequence was in flight."""
    operation: str

    def __str__(self) -> str:
        return f"Session cancelled during {self.operation}"
