# controller.py
"""
Session controller – sequences the protocol pieces for one sensor.

scan      activate → get UID → derive keys → read blocks → decode
connect   open the radio link through the transport
poll      read characteristic → decrypt → decode → merge into window

All per-device state lives in a ``SessionContext`` that the caller passes
into every step, so one controller can drive several sensors.
"""

import asyncio
import contextlib
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Awaitable, Callable, List, Optional

from app_logger import get_logger
from block_cipher import decrypt
from config import SessionConfig
from errors import KeysUnavailable, Libre2Error, SessionCancelled, TransportFailure
from hex_helper import HexHelper
from key_derivation import generate_keys
from libre_commands import LibreCommands
from models import GlucoseReading, KeyPair, SensorInfo
from reading_window import latest_reading, merge_readings
from sensor_decoder import (
    BLOCK_PAYLOAD_LEN,
    BLOCK_STATUS_LEN,
    decode_radio_payload,
    decode_sensor_blocks,
)
from transports import RadioTransport, TagTransport

UID_SLICE = slice(2, 10)               # UID follows the 2 status bytes


class SessionState(Enum):
    Uninitialized = "uninitialized"
    TagScanned = "tag_scanned"
    Connected = "connected"
    Polling = "polling"
    Disconnected = "disconnected"


class CancelToken:
    """Checked between awaited steps; once cancelled it stays cancelled."""

    def __init__(self) -> None:
        self._cancelled = False

    def cancel(self) -> None:
        self._cancelled = True

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    def raise_if_cancelled(self, operation: str) -> None:
        if self._cancelled:
            raise SessionCancelled(operation)


@dataclass
class SessionContext:
    """Everything one device session owns."""
    config: SessionConfig = field(default_factory=SessionConfig)
    state: SessionState = SessionState.Uninitialized
    uid: Optional[bytes] = None
    keys: Optional[KeyPair] = None
    sensor_info: Optional[SensorInfo] = None
    handle: Any = None
    window: List[GlucoseReading] = field(default_factory=list)
    current_glucose: Optional[float] = None
    last_error: Optional[BaseException] = None
    cancel_token: CancelToken = field(default_factory=CancelToken)
    poll_lock: asyncio.Lock = field(default_factory=asyncio.Lock)
    poll_task: Optional[asyncio.Task] = None
    tick_task: Optional[asyncio.Task] = None


ReadingsHook = Callable[[SessionContext, List[GlucoseReading]], None]
ErrorHook = Callable[[SessionContext, BaseException], None]


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class SessionController:
    """
    Drives the scan and poll sequences against the two transports.

    ``on_readings`` / ``on_error`` let the UI layer hear about each poll
    without the controller knowing anything about screens.
    """

    def __init__(self, tag: TagTransport, radio: RadioTransport,
                 logger: Optional[logging.Logger] = None,
                 on_readings: Optional[ReadingsHook] = None,
                 on_error: Optional[ErrorHook] = None,
                 clock: Callable[[], datetime] = _utcnow):
        self.tag = tag
        self.radio = radio
        self.log = logger or get_logger("session")
        self.on_readings = on_readings
        self.on_error = on_error
        self.clock = clock

    def new_session(self, config: Optional[SessionConfig] = None) -> SessionContext:
        return SessionContext(config=config or SessionConfig())

    async def _transport_call(self, operation: str, call: Awaitable[Any]) -> Any:
        """Await a transport call, wrapping foreign failures in ``TransportFailure``."""
        try:
            return await call
        except Libre2Error:
            raise
        except Exception as exc:
            raise TransportFailure(operation, str(exc) or type(exc).__name__) from exc

    def _fail(self, ctx: SessionContext, what: str, exc: BaseException) -> None:
        ctx.last_error = exc
        self.log.error("%s failed: %s", what, exc)

    async def _release_tag(self, ctx: SessionContext) -> None:
        """Release the tag; a failure here is logged, never raised."""
        try:
            await self._transport_call("release", self.tag.release())
        except TransportFailure as exc:
            self._fail(ctx, "tag release", exc)

    # ------------------------------------------------------------------
    # Scan
    # ------------------------------------------------------------------
    async def scan(self, ctx: SessionContext) -> SensorInfo:
        """
        Run the NFC scan.  The context is only updated once every block has
        been read and decoded; any failure leaves it untouched.
        """
        token = ctx.cancel_token
        token.raise_if_cancelled("scan")
        self.log.info("Scanning NFC...")
        try:
            await self._transport_call("activate", self.tag.transceive(LibreCommands.activate()))
            token.raise_if_cancelled("scan")

            response = await self._transport_call("get_uid", self.tag.transceive(LibreCommands.get_uid()))
            uid = bytes(response[UID_SLICE])
            self.log.info("Sensor UID: %s", HexHelper.to_hex_string(uid, sep=""))
            keys = generate_keys(uid)

            blocks: List[bytes] = []
            for block_number in range(ctx.config.block_count):
                token.raise_if_cancelled("scan")
                operation = f"read_block {block_number}"
                block = await self._transport_call(
                    operation, self.tag.transceive(LibreCommands.read_block(block_number)))
                if len(block) < BLOCK_STATUS_LEN + BLOCK_PAYLOAD_LEN:
                    raise TransportFailure(operation, f"short response ({len(block)} bytes)")
                blocks.append(bytes(block))

            info = decode_sensor_blocks(blocks)
            token.raise_if_cancelled("scan")
        except Libre2Error as exc:
            self._fail(ctx, "NFC scan", exc)
            raise
        finally:
            await self._release_tag(ctx)

        # a teardown may have run while the tag was being released
        token.raise_if_cancelled("scan")
        ctx.uid = uid
        ctx.keys = keys
        ctx.sensor_info = info
        ctx.current_glucose = info.current_glucose
        ctx.window = merge_readings(ctx.window, info.historical_readings,
                                    now=self.clock(), span=ctx.config.window)
        ctx.state = SessionState.TagScanned
        self.log.info("NFC scan complete: %d readings in window", len(ctx.window))
        return info

    # ------------------------------------------------------------------
    # Connect
    # ------------------------------------------------------------------
    async def connect(self, ctx: SessionContext) -> Any:
        if ctx.keys is None:
            raise KeysUnavailable()
        ctx.cancel_token.raise_if_cancelled("connect")
        self.log.info("Connecting via BLE...")
        try:
            handle = await self._transport_call(
                "connect",
                self.radio.connect(ctx.config.service_uuid, ctx.config.characteristic_uuid))
        except Libre2Error as exc:
            self._fail(ctx, "BLE connect", exc)
            raise

        if ctx.cancel_token.cancelled:
            await self._transport_call("disconnect", self.radio.disconnect(handle))
            raise SessionCancelled("connect")

        ctx.handle = handle
        ctx.state = SessionState.Connected
        self.log.info("Connected via BLE")
        return handle

    # ------------------------------------------------------------------
    # Poll
    # ------------------------------------------------------------------
    async def poll_once(self, ctx: SessionContext) -> List[GlucoseReading]:
        """Read, decrypt and decode one characteristic value, then merge it."""
        if ctx.keys is None:
            raise KeysUnavailable()
        if ctx.handle is None:
            raise TransportFailure("read_characteristic", "not connected")

        async with ctx.poll_lock:
            try:
                raw = await self._transport_call(
                    "read_characteristic", self.radio.read_characteristic(ctx.handle))
                ctx.cancel_token.raise_if_cancelled("poll")
                try:
                    encrypted = HexHelper.to_characteristic_bytes(raw)
                except ValueError as exc:
                    raise TransportFailure("read_characteristic", str(exc)) from exc
                readings = decode_radio_payload(decrypt(encrypted, ctx.keys.decryption_key))
            except Libre2Error as exc:
                self._fail(ctx, "glucose read", exc)
                raise

            ctx.window = merge_readings(ctx.window, readings,
                                        now=self.clock(), span=ctx.config.window)
            latest = latest_reading(readings)
            if latest is not None:
                ctx.current_glucose = latest.value
            self.log.info("poll: %d new readings, window=%d, current=%s",
                          len(readings), len(ctx.window), ctx.current_glucose)

        if self.on_readings is not None:
            self.on_readings(ctx, readings)
        return readings

    async def _poll_tick(self, ctx: SessionContext) -> None:
        try:
            await self.poll_once(ctx)
        except SessionCancelled:
            self.log.debug("poll cancelled")
        except Exception as exc:
            # the timer keeps running; the failure is reported once
            if not isinstance(exc, Libre2Error):
                self._fail(ctx, "poll tick", exc)
            if self.on_error is not None:
                self.on_error(ctx, exc)

    async def _poll_loop(self, ctx: SessionContext) -> None:
        while not ctx.cancel_token.cancelled:
            await asyncio.sleep(ctx.config.poll_interval_s)
            if ctx.cancel_token.cancelled:
                break
            if ctx.poll_lock.locked():
                self.log.debug("previous poll still in flight, skipping tick")
                continue
            ctx.tick_task = asyncio.create_task(self._poll_tick(ctx))

    async def start_polling(self, ctx: SessionContext) -> List[GlucoseReading]:
        """
        Read once immediately, then poll every ``poll_interval_s`` seconds
        in the background.  Returns the readings of the first read.
        """
        if ctx.state is SessionState.Polling:
            return []
        readings = await self.poll_once(ctx)
        ctx.poll_task = asyncio.create_task(self._poll_loop(ctx))
        ctx.state = SessionState.Polling
        self.log.info("Monitoring active. Updating every %.0f s.", ctx.config.poll_interval_s)
        return readings

    async def stop_polling(self, ctx: SessionContext) -> None:
        for task in (ctx.poll_task, ctx.tick_task):
            if task is not None and not task.done():
                task.cancel()
                with contextlib.suppress(asyncio.CancelledError):
                    await task
        ctx.poll_task = None
        ctx.tick_task = None
        if ctx.state is SessionState.Polling:
            ctx.state = SessionState.Connected
            self.log.info("Monitoring stopped")

    # ------------------------------------------------------------------
    # Teardown
    # ------------------------------------------------------------------
    async def disconnect(self, ctx: SessionContext) -> None:
        """
        Tear the session down: no further polls fire, any pending tag
        request is released, keys and the radio handle are dropped.
        """
        ctx.cancel_token.cancel()
        await self.stop_polling(ctx)
        handle, ctx.handle = ctx.handle, None
        ctx.keys = None
        if ctx.config.clear_window_on_disconnect:
            ctx.window = []
        ctx.state = SessionState.Disconnected
        await self._release_tag(ctx)
        try:
            if handle is not None:
                await self._transport_call("disconnect", self.radio.disconnect(handle))
        finally:
            self.log.info("Disconnected")
