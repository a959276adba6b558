# libre_commands.py
"""
NFC command frames for the Libre 2 tag interface.

Every frame is exactly 8 bytes: opcode first, parameters next, zero padded.
"""

from app_logger import get_logger

log = get_logger("commands")

# ----------------------------------------------------------------------
# Opcodes
# ----------------------------------------------------------------------
CMD_GET_UID = 0x26
CMD_READ_BLOCK = 0x23
CMD_ACTIVATE = 0xA0
CMD_SENSOR_INFO = 0xA1
CMD_CURRENT_GLUCOSE = 0xA2

FRAME_LEN = 8
MAX_BLOCKS_PER_READ = 3               # sensor refuses longer multi-block reads


def _frame(*fields: int) -> bytes:
    return bytes(fields).ljust(FRAME_LEN, b"\x00")


def _clamp_byte(value: int) -> int:
    return min(max(value, 0), 0xFF)


class LibreCommands:
    """Pure builders for the fixed 8-byte command frames."""

    @staticmethod
    def get_uid() -> bytes:
        return _frame(CMD_GET_UID, 0x01)

    @staticmethod
    def read_block(block_number: int) -> bytes:
        """Read one 8-byte memory block (0..255)."""
        return _frame(CMD_READ_BLOCK, _clamp_byte(block_number))

    @staticmethod
    def read_multiple_blocks(start_block: int, num_blocks: int) -> bytes:
        """
        Read up to three consecutive blocks.  Larger requests are clamped
        to three; the count is sent as ``num_blocks - 1``.
        """
        if num_blocks > MAX_BLOCKS_PER_READ:
            log.debug("clamping multi-block read of %d to %d", num_blocks, MAX_BLOCKS_PER_READ)
            num_blocks = MAX_BLOCKS_PER_READ
        num_blocks = max(num_blocks, 1)
        return _frame(CMD_READ_BLOCK, _clamp_byte(start_block), num_blocks - 1)

    @staticmethod
    def activate() -> bytes:
        return _frame(CMD_ACTIVATE)

    @staticmethod
    def sensor_info() -> bytes:
        return _frame(CMD_SENSOR_INFO, 0x07)

    @staticmethod
    def current_glucose() -> bytes:
        return _frame(CMD_CURRENT_GLUCOSE, 0x02)
