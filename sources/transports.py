# transports.py
"""
Transport boundary.

The protocol layer never touches radio or NFC hardware directly.  It talks
to two collaborators that move opaque bytes:

* ``TagTransport``   – NFC transceive of 8-byte command frames.
* ``RadioTransport`` – connect / read characteristic / disconnect.

``DumpTagTransport`` answers tag commands from a captured memory dump, so a
scan can be replayed without a sensor on the reader.
"""

import json
from pathlib import Path
from typing import Any, List, Protocol, Sequence, Union, runtime_checkable

from app_logger import get_logger
from errors import TransportFailure
from hex_helper import HexHelper
from libre_commands import (
    CMD_ACTIVATE,
    CMD_CURRENT_GLUCOSE,
    CMD_GET_UID,
    CMD_READ_BLOCK,
    CMD_SENSOR_INFO,
    FRAME_LEN,
    MAX_BLOCKS_PER_READ,
)
from sensor_decoder import BLOCK_PAYLOAD_LEN

log = get_logger("transport")

STATUS_OK = b"\x00\x00"


@runtime_checkable
class TagTransport(Protocol):
    async def transceive(self, frame: bytes) -> bytes:
        """Send one command frame, return the raw response."""
        ...

    async def release(self) -> None:
        """Drop any pending technology request."""
        ...


@runtime_checkable
class RadioTransport(Protocol):
    async def connect(self, service_uuid: str, characteristic_uuid: str) -> Any:
        """Connect to the peer exposing the service / characteristic, return a handle."""
        ...

    async def read_characteristic(self, handle: Any) -> Union[bytes, str]:
        """Read the characteristic value (raw bytes or base64 text)."""
        ...

    async def disconnect(self, handle: Any) -> None:
        ...


class DumpTagTransport:
    """
    Tag transport backed by a captured dump.

    Parameters
    ----------
    uid : bytes
        The 8-byte sensor UID returned for the get-UID command.
    blocks : sequence of bytes
        8-byte block payloads, block 0 first.
    """

    def __init__(self, uid: bytes, blocks: Sequence[bytes]):
        self.uid = bytes(uid)
        self.blocks: List[bytes] = [bytes(b) for b in blocks]
        self.frames: List[bytes] = []       # every frame received, in order
        self.released = False

    # ------------------------------------------------------------------
    # Constructors
    # ------------------------------------------------------------------
    @classmethod
    def from_memory(cls, uid: bytes, memory: bytes) -> "DumpTagTransport":
        """Split a linear memory image into 8-byte blocks (zero-padding the tail)."""
        memory = bytes(memory)
        if len(memory) % BLOCK_PAYLOAD_LEN:
            memory = memory.ljust(len(memory) + BLOCK_PAYLOAD_LEN - len(memory) % BLOCK_PAYLOAD_LEN, b"\x00")
        blocks = [memory[i:i + BLOCK_PAYLOAD_LEN] for i in range(0, len(memory), BLOCK_PAYLOAD_LEN)]
        return cls(uid, blocks)

    @classmethod
    def from_file(cls, path: str | Path) -> "DumpTagTransport":
        """
        Load a JSON dump: ``{"uid": "<hex>", "blocks": ["<hex>", ...]}`` or
        ``{"uid": "<hex>", "memory": "<hex>"}``.
        """
        with open(path, "r", encoding="utf-8") as fh:
            dump = json.load(fh)
        uid = HexHelper.from_hex_string(dump["uid"])
        if "memory" in dump:
            return cls.from_memory(uid, HexHelper.from_hex_string(dump["memory"]))
        return cls(uid, [HexHelper.from_hex_string(b) for b in dump["blocks"]])

    # ------------------------------------------------------------------
    # TagTransport
    # ------------------------------------------------------------------
    async def transceive(self, frame: bytes) -> bytes:
        frame = bytes(frame)
        self.frames.append(frame)
        if len(frame) != FRAME_LEN:
            raise TransportFailure("transceive", f"frame must be {FRAME_LEN} bytes, got {len(frame)}")

        opcode = frame[0]
        if opcode == CMD_GET_UID:
            return STATUS_OK + self.uid
        if opcode == CMD_READ_BLOCK:
            start, count = frame[1], min(frame[2] + 1, MAX_BLOCKS_PER_READ)
            if start + count > len(self.blocks):
                raise TransportFailure("transceive", f"block {start + count - 1} not in dump")
            return STATUS_OK + b"".join(self.blocks[start:start + count])
        if opcode in (CMD_ACTIVATE, CMD_SENSOR_INFO, CMD_CURRENT_GLUCOSE):
            return STATUS_OK
        raise TransportFailure("transceive", f"unsupported opcode 0x{opcode:02X}")

    async def release(self) -> None:
        self.released = True
        log.debug("dump transport released after %d frames", len(self.frames))
