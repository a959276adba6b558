#!/usr/bin/env python3
"""ble_transport.py
Radio transport for the Libre 2 using bleak.

Finds the sensor (by address, or by scanning for a device whose name
matches the filter or which advertises the Libre 2 service), connects,
checks that the service / characteristic pair exists and reads the
encrypted characteristic on request.

Only the radio plumbing lives here.  Keys, decryption and decoding belong
to the ``SessionController``.
"""
from dataclasses import dataclass
from typing import Optional

from bleak import BleakClient, BleakScanner
from bleak.backends.device import BLEDevice
from bleak.backends.scanner import AdvertisementData

from app_logger import get_logger
from config import BLE_SCAN_TIMEOUT_S, DEVICE_NAME_FILTER
from errors import TransportFailure

log = get_logger("ble")


@dataclass
class RadioHandle:
    """What ``connect`` hands back to the session."""
    client: BleakClient
    service_uuid: str
    characteristic_uuid: str

    @property
    def address(self) -> str:
        return self.client.address


class BleakRadioTransport:
    """
    ``RadioTransport`` implementation on top of ``BleakScanner`` / ``BleakClient``.

    Parameters
    ----------
    address : str, optional
        Connect to this device directly instead of scanning.
    device_name : str, optional
        Substring the advertised name must contain.  Defaults to ``"Libre"``.
    scan_timeout : float, optional
        Seconds to scan before giving up.
    """

    def __init__(self, address: Optional[str] = None,
                 device_name: str = DEVICE_NAME_FILTER,
                 scan_timeout: float = BLE_SCAN_TIMEOUT_S):
        self.address = address
        self.device_name = device_name
        self.scan_timeout = scan_timeout
        self._service_uuid: Optional[str] = None

    # ------------------------------------------------------------------
    # 1. Discovery
    # ------------------------------------------------------------------
    def _matches(self, device: BLEDevice, advertisement: AdvertisementData) -> bool:
        name = device.name or advertisement.local_name or ""
        if self.device_name and self.device_name in name:
            return True
        uuids = [u.lower() for u in advertisement.service_uuids]
        return self._service_uuid is not None and self._service_uuid.lower() in uuids

    async def _find_device(self) -> BLEDevice:
        if self.address:
            device = await BleakScanner.find_device_by_address(self.address, timeout=self.scan_timeout)
        else:
            log.info("Scanning for Libre 2 devices...")
            device = await BleakScanner.find_device_by_filter(self._matches, timeout=self.scan_timeout)
        if device is None:
            raise TransportFailure("scan", "No Libre 2 device found")
        log.info("Found Libre device: %s (%s)", device.name, device.address)
        return device

    # ------------------------------------------------------------------
    # 2. RadioTransport
    # ------------------------------------------------------------------
    async def connect(self, service_uuid: str, characteristic_uuid: str) -> RadioHandle:
        self._service_uuid = service_uuid
        device = await self._find_device()

        client = BleakClient(device)
        await client.connect()
        try:
            service = client.services.get_service(service_uuid)
            if service is None:
                raise TransportFailure("connect", "Libre 2 service not found")
            if service.get_characteristic(characteristic_uuid) is None:
                raise TransportFailure("connect", "Libre 2 characteristic not found")
        except TransportFailure:
            await client.disconnect()
            raise

        log.info("Connected to %s", client.address)
        return RadioHandle(client, service_uuid, characteristic_uuid)

    async def read_characteristic(self, handle: RadioHandle) -> bytes:
        value = await handle.client.read_gatt_char(handle.characteristic_uuid)
        return bytes(value)

    async def disconnect(self, handle: RadioHandle) -> None:
        if handle.client.is_connected:
            await handle.client.disconnect()
        log.info("Disconnected from %s", handle.address)
