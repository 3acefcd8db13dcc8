"""BLE adapter encapsulating bleak client usage."""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Optional

from bleak import BleakClient, BleakScanner
from bleak.backends.characteristic import BleakGATTCharacteristic
from bleak.backends.device import BLEDevice
from bleak.backends.scanner import AdvertisementData
from bleak.backends.service import BleakGATTService
from bleak.exc import BleakError

from .. import constants
from ..config import BleConfig
from ..core.protocols import DisconnectCallback, NotifyCallback

LOGGER = logging.getLogger(__name__)


class BleTransportError(RuntimeError):
    """Raised when a BLE operation cannot be completed."""


class DeviceNotFoundError(BleTransportError):
    """Raised when no advertising device matches the name prefix."""


def _advertised_name(device: BLEDevice, advertisement: AdvertisementData) -> str:
    return device.name or advertisement.local_name or ""


class BleakUartSession:
    """Async wrapper over a connected :class:`bleak.BleakClient`."""

    def __init__(self, client: BleakClient, *, write_with_response: bool = True) -> None:
        self._client = client
        self._write_with_response = write_with_response

    @property
    def client(self) -> BleakClient:
        return self._client

    async def get_service(self, uuid: str) -> BleakGATTService:
        service = self._client.services.get_service(uuid)
        if service is None:
            raise BleTransportError(f"service {uuid} not found")
        return service

    async def get_characteristic(
        self, service: BleakGATTService, uuid: str
    ) -> BleakGATTCharacteristic:
        characteristic = service.get_characteristic(uuid)
        if characteristic is None:
            raise BleTransportError(f"characteristic {uuid} not found")
        return characteristic

    async def start_notify(
        self, characteristic: BleakGATTCharacteristic, callback: NotifyCallback
    ) -> None:
        def _handler(_sender: Any, data: bytearray) -> None:
            callback(bytes(data))

        await self._client.start_notify(characteristic, _handler)

    async def write(self, characteristic: BleakGATTCharacteristic, data: bytes) -> None:
        try:
            await self._client.write_gatt_char(
                characteristic, data, response=self._write_with_response
            )
        except (BleakError, OSError) as exc:
            raise BleTransportError(str(exc)) from exc

    async def close(self) -> None:
        if not self._client.is_connected:
            return
        await self._client.disconnect()


class BleakUartTransport:
    """Discovers UART peripherals and opens GATT sessions with bleak."""

    def __init__(self, config: Optional[BleConfig] = None) -> None:
        self.config = config or BleConfig()

    async def request_device(self, name_prefix: str) -> BLEDevice:
        def _matches(device: BLEDevice, advertisement: AdvertisementData) -> bool:
            return _advertised_name(device, advertisement).startswith(name_prefix)

        try:
            device = await BleakScanner.find_device_by_filter(
                _matches, timeout=self.config.scan_timeout_seconds
            )
        except (BleakError, OSError) as exc:
            raise BleTransportError(f"scan failed: {exc}") from exc

        if device is None:
            raise DeviceNotFoundError(
                f"no device advertising {name_prefix!r} found within "
                f"{self.config.scan_timeout_seconds:.1f}s"
            )

        LOGGER.info("Found %s (%s)", device.name, device.address)
        return device

    async def open_session(
        self, device: BLEDevice, on_disconnect: DisconnectCallback
    ) -> BleakUartSession:
        loop = asyncio.get_running_loop()

        def _disconnected(_client: BleakClient) -> None:
            # bleak may invoke this from a backend thread.
            loop.call_soon_threadsafe(on_disconnect)

        client = BleakClient(
            device,
            disconnected_callback=_disconnected,
            services=[constants.UART_SERVICE_UUID],
        )
        try:
            await client.connect()
        except (BleakError, OSError, asyncio.TimeoutError) as exc:
            raise BleTransportError(f"connect to {device.address} failed: {exc}") from exc

        return BleakUartSession(
            client, write_with_response=self.config.write_with_response
        )
