"""Tests for the dump-backed tag transport and the hex helpers."""

import base64
import json

import pytest

from conftest import SENSOR_UID, build_tag_memory
from errors import TransportFailure
from hex_helper import HexHelper
from libre_commands import LibreCommands
from transports import DumpTagTransport, RadioTransport, TagTransport


class TestDumpTagTransport:
    @pytest.mark.asyncio
    async def test_get_uid(self):
        tag = DumpTagTransport.from_memory(SENSOR_UID, build_tag_memory())
        assert await tag.transceive(LibreCommands.get_uid()) == b"\x00\x00" + SENSOR_UID

    @pytest.mark.asyncio
    async def test_read_block(self):
        memory = build_tag_memory()
        tag = DumpTagTransport.from_memory(SENSOR_UID, memory)
        assert await tag.transceive(LibreCommands.read_block(3)) == b"\x00\x00" + memory[24:32]

    @pytest.mark.asyncio
    async def test_read_multiple_blocks(self):
        memory = build_tag_memory()
        tag = DumpTagTransport.from_memory(SENSOR_UID, memory)
        response = await tag.transceive(LibreCommands.read_multiple_blocks(1, 5))
        assert response == b"\x00\x00" + memory[8:32]

    @pytest.mark.asyncio
    async def test_block_out_of_range(self):
        tag = DumpTagTransport.from_memory(SENSOR_UID, bytes(16))
        with pytest.raises(TransportFailure):
            await tag.transceive(LibreCommands.read_block(2))

    @pytest.mark.asyncio
    async def test_vendor_commands_acknowledged(self):
        tag = DumpTagTransport(SENSOR_UID, [])
        assert await tag.transceive(LibreCommands.activate()) == b"\x00\x00"

    @pytest.mark.asyncio
    async def test_unknown_opcode(self):
        tag = DumpTagTransport(SENSOR_UID, [])
        with pytest.raises(TransportFailure) as exc_info:
            await tag.transceive(bytes([0x99]) + bytes(7))
        assert "0x99" in str(exc_info.value)

    @pytest.mark.asyncio
    async def test_records_frames_and_release(self):
        tag = DumpTagTransport(SENSOR_UID, [])
        await tag.transceive(LibreCommands.activate())
        await tag.release()
        assert tag.frames == [LibreCommands.activate()]
        assert tag.released

    def test_from_memory_pads_last_block(self):
        tag = DumpTagTransport.from_memory(SENSOR_UID, bytes(range(10)))
        assert tag.blocks == [bytes(range(8)), bytes([8, 9]) + bytes(6)]

    def test_from_file_with_blocks(self, tmp_path):
        path = tmp_path / "dump.json"
        path.write_text(json.dumps({"uid": "01:02:03:04:05:06:07:08",
                                    "blocks": ["0001020304050607", "08090a0b0c0d0e0f"]}))
        tag = DumpTagTransport.from_file(path)
        assert tag.uid == SENSOR_UID
        assert tag.blocks == [bytes(range(8)), bytes(range(8, 16))]

    def test_from_file_with_memory(self, tmp_path):
        memory = build_tag_memory()
        path = tmp_path / "dump.json"
        path.write_text(json.dumps({"uid": SENSOR_UID.hex(), "memory": memory.hex()}))
        tag = DumpTagTransport.from_file(path)
        assert len(tag.blocks) == 43
        assert b"".join(tag.blocks) == memory

    def test_satisfies_protocol(self):
        assert isinstance(DumpTagTransport(SENSOR_UID, []), TagTransport)
        assert not isinstance(DumpTagTransport(SENSOR_UID, []), RadioTransport)


class TestHexHelper:
    def test_to_hex_string(self):
        assert HexHelper.to_hex_string(b"\x01\xab") == "01:ab"
        assert HexHelper.to_hex_string(bytearray(b"\x01\xab"), sep="") == "01ab"

    @pytest.mark.parametrize("text", ["01:ab", "01 AB", "01ab", "01-ab\n"])
    def test_from_hex_string(self, text):
        assert HexHelper.from_hex_string(text) == b"\x01\xab"

    def test_from_hex_string_rejects_odd_digits(self):
        with pytest.raises(ValueError):
            HexHelper.from_hex_string("abc")

    def test_characteristic_bytes_pass_through(self):
        assert HexHelper.to_characteristic_bytes(bytearray(b"\x01\x02")) == b"\x01\x02"

    def test_characteristic_base64_decoded(self):
        raw = bytes(range(32))
        assert HexHelper.to_characteristic_bytes(base64.b64encode(raw).decode()) == raw

    def test_characteristic_bad_base64(self):
        with pytest.raises(ValueError):
            HexHelper.to_characteristic_bytes("not base64!")
