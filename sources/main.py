#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""main.py
Minimal executable around the Libre 2 session controller.

  scan <dump.json>                  decode a captured NFC dump and print it
  monitor <dump.json> [--address]   scan the dump, connect over BLE with
                                    bleak and print readings as they arrive

The dump stands in for a live NFC reader: it holds the sensor UID and the
tag memory blocks (see ``DumpTagTransport.from_file``).
"""

import argparse
import asyncio
import logging
from typing import List, Optional

from app_logger import LogBufferPolicy, configure_logging, logger
from ble_transport import BleakRadioTransport
from config import SessionConfig
from controller import SessionContext, SessionController
from errors import Libre2Error
from models import GlucoseReading, SensorInfo
from reading_window import recent_readings
from transports import DumpTagTransport

RECENT_COUNT = 5


def print_sensor_info(info: SensorInfo) -> None:
    print(f"Serial:          {info.serial_number}")
    print(f"State:           {info.sensor_state.label}")
    print(f"Age:             {info.sensor_age.formatted}")
    print(f"Started:         {info.sensor_start_time.isoformat()}")
    print(f"Current glucose: {info.current_glucose} mg/dL")
    print(f"Trend:           {info.trend.label}")
    print(f"History:         {len(info.historical_readings)} readings")
    for reading in info.historical_readings:
        print(f"  {reading.timestamp.isoformat()}  {reading.value:6.1f} {reading.unit}")


def print_readings(ctx: SessionContext, readings: List[GlucoseReading]) -> None:
    for reading in readings:
        print(f"[{reading.label}] {reading.value:6.1f} {reading.unit}")
    if ctx.current_glucose is not None:
        print(f"Current glucose: {ctx.current_glucose} mg/dL ({len(ctx.window)} in window)")
    recent = recent_readings(ctx.window, RECENT_COUNT)
    if recent:
        print("Recent:          " + ", ".join(f"{r.label} {r.value:.1f}" for r in recent))


def build_controller(dump_path: str, config: SessionConfig,
                     address: Optional[str] = None) -> SessionController:
    """
    Build the whole stack and return a ready‑to‑use controller.
    """
    # 1️⃣ Tag side: replay the captured dump
    tag = DumpTagTransport.from_file(dump_path)

    # 2️⃣ Radio side: bleak
    radio = BleakRadioTransport(address=address,
                                device_name=config.device_name,
                                scan_timeout=config.scan_timeout_s)

    # 3️⃣ Controller – glues transports + protocol
    return SessionController(tag, radio, on_readings=print_readings)


async def run_scan(args: argparse.Namespace, config: SessionConfig) -> None:
    controller = build_controller(args.dump, config)
    ctx = controller.new_session(config)
    try:
        info = await controller.scan(ctx)
        print_sensor_info(info)
    finally:
        await controller.disconnect(ctx)


async def run_monitor(args: argparse.Namespace, config: SessionConfig) -> None:
    controller = build_controller(args.dump, config, address=args.address)
    ctx = controller.new_session(config)
    try:
        print_sensor_info(await controller.scan(ctx))
        await controller.connect(ctx)
        await controller.start_polling(ctx)
        if args.polls:
            # the first read already happened in start_polling
            await asyncio.sleep(config.poll_interval_s * (args.polls - 1) + 1)
        else:
            while True:
                await asyncio.sleep(1)   # keep the event loop alive
    finally:
        await controller.disconnect(ctx)


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="FreeStyle Libre 2 reader")
    parser.add_argument("-v", "--verbose", action="store_true", help="debug logging")
    parser.add_argument("--log-file", help="also write the full log to this file")
    sub = parser.add_subparsers(dest="command", required=True)

    scan = sub.add_parser("scan", help="decode a captured NFC dump")
    scan.add_argument("dump", help="JSON dump with uid and blocks")

    monitor = sub.add_parser("monitor", help="scan a dump, then poll over BLE")
    monitor.add_argument("dump", help="JSON dump with uid and blocks")
    monitor.add_argument("--address", help="BLE address (skip name scan)")
    monitor.add_argument("--interval", type=float, help="poll interval in seconds")
    monitor.add_argument("--polls", type=int, default=0, help="stop after N polls (0 = forever)")
    return parser.parse_args(argv)


def main(argv: Optional[List[str]] = None) -> int:
    args = parse_args(argv)
    config = SessionConfig.from_env()
    if getattr(args, "interval", None):
        config.poll_interval_s = args.interval

    configure_logging(LogBufferPolicy(capacity=config.log_capacity),
                      level=logging.DEBUG if args.verbose else logging.INFO,
                      log_file=args.log_file)

    runner = run_scan if args.command == "scan" else run_monitor
    try:
        asyncio.run(runner(args, config))
    except KeyboardInterrupt:
        print("\nInterrupted by user – stopping.")
    except Libre2Error as exc:
        logger.error("%s", exc)
        return 1
    return 0


# ----------------------------------------------------------------------
# Main entry point
# ----------------------------------------------------------------------
if __name__ == "__main__":
    raise SystemExit(main())
