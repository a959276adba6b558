# sensor_decoder.py
"""
Decoders for the two Libre 2 data sources.

Tag memory
    43 blocks read over NFC.  Each transport response is 2 status bytes
    followed by the 8-byte block payload.  The payloads are concatenated in
    block order and the fields below are read at fixed offsets
    (little-endian):

    ======================  ======  =====  ===============================
    field                   offset  width  transform
    ======================  ======  =====  ===============================
    sensor state            4       1      ``SensorState``
    serial number           24      8      uppercase hex
    current glucose         26      2      raw / 10 mg/dL
    trend                   28      1      ``TrendArrow`` (clamped 0..5)
    history (32 slots)      124     6 ea.  uint32 epoch s + uint16 raw
    sensor age              316     2      minutes since activation
    sensor start time       317     4      epoch seconds
    ======================  ======  =====  ===============================

Radio payload
    Decrypted characteristic value: byte 0 is the data type (0x01),
    byte 2 the reading count, readings start at offset 10, 6 bytes each.
    The header layout is reverse-engineered; validate against captures.
"""

import struct
from datetime import datetime, timezone
from typing import Iterable, List, Sequence

from app_logger import get_logger
from errors import BufferTooShort, UnexpectedDataType
from models import GlucoseReading, SensorAge, SensorInfo, SensorState, TrendArrow
from timing_decorator import timed

log = get_logger("decoder")

# ----------------------------------------------------------------------
# Tag memory layout
# ----------------------------------------------------------------------
BLOCK_STATUS_LEN = 2
BLOCK_PAYLOAD_LEN = 8

STATE_OFFSET = 4
SERIAL_OFFSET = 24
SERIAL_LEN = 8
CURRENT_GLUCOSE_OFFSET = 26
TREND_OFFSET = 28
HISTORY_OFFSET = 124
HISTORY_SLOTS = 32
SENSOR_AGE_OFFSET = 316
START_TIME_OFFSET = 317

TAG_MEMORY_MIN_LEN = START_TIME_OFFSET + 4

# ----------------------------------------------------------------------
# Radio payload layout
# ----------------------------------------------------------------------
GLUCOSE_DATA_TYPE = 0x01
DATA_TYPE_OFFSET = 0
COUNT_OFFSET = 2
RADIO_HEADER_LEN = 10
RADIO_MIN_LEN = 16

# ----------------------------------------------------------------------
# Shared record format
# ----------------------------------------------------------------------
READING = struct.Struct("<IH")        # epoch seconds, glucose x 10
READING_LEN = READING.size            # 6
TIMESTAMP_ERASED = 0xFFFFFFFF


# ==============================================================
#                     TAG MEMORY
# ==============================================================
def assemble_blocks(blocks: Iterable[bytes]) -> bytes:
    """
    Strip the status bytes from each block response and concatenate the
    8-byte payloads in block order.
    """
    buffer = bytearray()
    for index, block in enumerate(blocks):
        payload = bytes(block[BLOCK_STATUS_LEN:BLOCK_STATUS_LEN + BLOCK_PAYLOAD_LEN])
        if len(payload) != BLOCK_PAYLOAD_LEN:
            raise BufferTooShort(
                length=len(block),
                minimum=BLOCK_STATUS_LEN + BLOCK_PAYLOAD_LEN,
                source=f"block {index}",
            )
        buffer += payload
    return bytes(buffer)


def _extract_serial_number(buffer: bytes) -> str:
    return buffer[SERIAL_OFFSET:SERIAL_OFFSET + SERIAL_LEN].hex().upper()


def _extract_history(buffer: bytes) -> List[GlucoseReading]:
    readings: List[GlucoseReading] = []
    for slot in range(HISTORY_SLOTS):
        offset = HISTORY_OFFSET + slot * READING_LEN
        if offset + READING_LEN > len(buffer):
            break
        timestamp, glucose_raw = READING.unpack_from(buffer, offset)
        # never-written slots
        if timestamp in (0, TIMESTAMP_ERASED) or glucose_raw == 0:
            continue
        readings.append(GlucoseReading.from_raw(timestamp, glucose_raw))
    return readings


@timed("decode_tag_memory")
def decode_tag_memory(buffer: bytes) -> SensorInfo:
    """
    Decode an assembled tag-memory buffer into a ``SensorInfo``.

    Raises
    ------
    BufferTooShort
        If the buffer cannot hold the sensor start time field.
    """
    if len(buffer) < TAG_MEMORY_MIN_LEN:
        raise BufferTooShort(length=len(buffer), minimum=TAG_MEMORY_MIN_LEN, source="tag memory")

    (current_raw,) = struct.unpack_from("<H", buffer, CURRENT_GLUCOSE_OFFSET)
    (age_minutes,) = struct.unpack_from("<H", buffer, SENSOR_AGE_OFFSET)
    (start_epoch,) = struct.unpack_from("<I", buffer, START_TIME_OFFSET)

    state = SensorState.from_byte(buffer[STATE_OFFSET])
    if state is SensorState.Unknown:
        log.warning("unknown sensor state byte 0x%02X", buffer[STATE_OFFSET])

    info = SensorInfo(
        serial_number=_extract_serial_number(buffer),
        sensor_start_time=datetime.fromtimestamp(start_epoch, tz=timezone.utc),
        current_glucose=current_raw / 10,
        trend=TrendArrow.from_byte(buffer[TREND_OFFSET]),
        sensor_state=state,
        sensor_age=SensorAge(minutes=age_minutes),
        historical_readings=tuple(_extract_history(buffer)),
    )
    log.info(
        "sensor %s – state=%s, glucose=%.1f mg/dL, trend=%s, age=%s, history=%d",
        info.serial_number,
        info.sensor_state.label,
        info.current_glucose,
        info.trend.label,
        info.sensor_age.formatted,
        len(info.historical_readings),
    )
    return info


def decode_sensor_blocks(blocks: Sequence[bytes]) -> SensorInfo:
    """Assemble raw block responses and decode them in one step."""
    return decode_tag_memory(assemble_blocks(blocks))


# ==============================================================
#                     RADIO PAYLOAD
# ==============================================================
def _read_radio_header(data: bytes) -> int:
    """Return the declared reading count; a short buffer raises ``BufferTooShort``."""
    if len(data) < RADIO_MIN_LEN:
        raise BufferTooShort(length=len(data), minimum=RADIO_MIN_LEN, source="glucose data")

    data_type = data[DATA_TYPE_OFFSET]
    count = data[COUNT_OFFSET]
    log.debug("data type: 0x%02X, number of readings: %d", data_type, count)
    if data_type != GLUCOSE_DATA_TYPE:
        # reported only; the records are still decoded
        log.warning("%s", UnexpectedDataType(data_type=data_type, expected=GLUCOSE_DATA_TYPE))
    return count


def decode_radio_payload(data: bytes) -> List[GlucoseReading]:
    """
    Decode a decrypted characteristic value into glucose readings.

    Never raises for malformed content: a short buffer yields ``[]`` and a
    declared count that overruns the buffer is truncated.
    """
    data = bytes(data)
    try:
        count = _read_radio_header(data)
    except BufferTooShort as exc:
        log.warning("%s", exc)
        return []

    readings: List[GlucoseReading] = []
    for i in range(count):
        offset = RADIO_HEADER_LEN + i * READING_LEN
        if offset + READING_LEN > len(data):
            log.debug("declared %d readings, buffer holds %d", count, i)
            break
        timestamp, glucose_raw = READING.unpack_from(data, offset)
        readings.append(GlucoseReading.from_raw(timestamp, glucose_raw))
    return readings
