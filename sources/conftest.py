# conftest.py
"""Shared builders for tag-memory images and radio payloads."""

import struct
from datetime import datetime, timezone
from typing import Iterable, Tuple

import pytest

TAG_MEMORY_LEN = 43 * 8
SENSOR_UID = bytes([0x01, 0x02, 0x03, 0x04, 0x05, 0x06, 0x07, 0x08])

# 2023-11-14T22:13:20Z; low byte is 0x00, which matters because the
# start-time field overlaps the high byte of the sensor-age field.
START_EPOCH = 1_700_000_000
NOW = datetime(2023, 11, 15, 0, 0, tzinfo=timezone.utc)


def build_tag_memory(state: int = 0x03,
                     serial: bytes = bytes(range(0xA0, 0xA8)),
                     glucose_raw: int = 1234,
                     trend: int = 3,
                     history: Iterable[Tuple[int, int, int]] = (),
                     age_minutes: int = 200,
                     start_epoch: int = START_EPOCH) -> bytes:
    """
    Lay out a 344-byte tag image.  *history* holds ``(slot, epoch_s, raw)``.
    Fields are written in offset order, so overlapping fields keep the
    later value, as on the sensor.
    """
    mem = bytearray(TAG_MEMORY_LEN)
    mem[4] = state
    mem[24:32] = serial
    struct.pack_into("<H", mem, 26, glucose_raw)
    mem[28] = trend
    for slot, epoch_s, raw in history:
        struct.pack_into("<IH", mem, 124 + slot * 6, epoch_s, raw)
    struct.pack_into("<H", mem, 316, age_minutes)
    struct.pack_into("<I", mem, 317, start_epoch)
    return bytes(mem)


def to_block_responses(memory: bytes) -> list:
    """Wrap each 8-byte block the way the NFC transport returns it."""
    return [b"\x00\x00" + memory[i:i + 8] for i in range(0, len(memory), 8)]


def build_radio_payload(readings: Iterable[Tuple[int, int]],
                        data_type: int = 0x01,
                        declared: int = None,
                        pad_to_block: bool = True) -> bytes:
    readings = list(readings)
    count = len(readings) if declared is None else declared
    header = bytes([data_type, 0x00, count]).ljust(10, b"\x00")
    body = b"".join(struct.pack("<IH", ts, raw) for ts, raw in readings)
    payload = header + body
    if pad_to_block and len(payload) % 16:
        payload = payload.ljust(len(payload) + 16 - len(payload) % 16, b"\x00")
    return payload


@pytest.fixture
def tag_memory() -> bytes:
    return build_tag_memory(history=[
        (0, START_EPOCH, 1000),
        (1, 0, 900),                     # never written
        (2, START_EPOCH + 900, 0),       # no glucose
        (3, 0xFFFFFFFF, 5),              # erased
        (31, START_EPOCH + 9000, 1505),
    ])
