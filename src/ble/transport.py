"""
BLE transport capability used by discovery and device sessions.

The core only depends on the abstract ``Transport`` interface. ``BleakTransport``
binds it to bleak for real hardware; tests use an in-memory implementation.
"""

import asyncio
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Callable, List, Optional

from bleak import BleakScanner, BleakClient
from bleak.exc import BleakError
from bleak.backends.device import BLEDevice
from bleak.backends.scanner import AdvertisementData

from ..exceptions import TransportError
from ..utils.logging import ProductionLogger


AdvertisementCallback = Callable[[str, Optional[str]], None]


@dataclass(frozen=True)
class Attribute:
    """A discovered GATT characteristic."""
    uuid: str
    handle: int
    service_uuid: str
    backend: Any = field(default=None, compare=False, repr=False)


class Transport(ABC):
    """Abstract BLE transport: scan, connect and attribute read/write primitives."""

    @abstractmethod
    async def scan(self, duration: float, on_advertisement: AdvertisementCallback) -> None:
        """Scan for ``duration`` seconds, calling ``on_advertisement(address, name)`` per advertisement."""

    @abstractmethod
    async def connect(self, address: str) -> Any:
        """Connect to a peripheral and return an opaque connection handle."""

    @abstractmethod
    async def discover_attributes(self, handle: Any) -> List[Attribute]:
        """List all characteristics of the connected peripheral."""

    @abstractmethod
    async def read_attribute(self, handle: Any, attribute: Attribute) -> bytes:
        """Read a characteristic value."""

    @abstractmethod
    async def write_attribute(self, handle: Any, attribute: Attribute, data: bytes) -> None:
        """Write a characteristic value."""

    @abstractmethod
    async def disconnect(self, handle: Any) -> None:
        """Tear down the connection."""


class BleakTransport(Transport):
    """
    Transport implementation on top of bleak.

    Every bleak failure is re-raised as ``TransportError``; callers attach
    the device attribution.
    """

    def __init__(self, logger: ProductionLogger, adapter: str = "auto", connect_timeout: float = 20.0):
        """
        Initialize bleak transport.

        Args:
            logger: Logger instance
            adapter: Bluetooth adapter name, or "auto" for the system default
            connect_timeout: Connection timeout in seconds
        """
        self.logger = logger
        self.adapter = None if adapter == "auto" else adapter
        self.connect_timeout = connect_timeout

    async def scan(self, duration: float, on_advertisement: AdvertisementCallback) -> None:
        def detection_callback(device: BLEDevice, advertisement_data: AdvertisementData):
            name = advertisement_data.local_name or device.name
            on_advertisement(device.address, name)

        try:
            scanner = BleakScanner(detection_callback=detection_callback, adapter=self.adapter)
            await scanner.start()
        except (BleakError, OSError) as e:
            raise TransportError(f"Failed to start BLE scan: {e}") from e

        try:
            await asyncio.sleep(duration)
        finally:
            try:
                await scanner.stop()
            except (BleakError, OSError) as e:
                self.logger.warning(f"Error stopping BLE scan: {e}")

    async def connect(self, address: str) -> BleakClient:
        client = BleakClient(address, adapter=self.adapter)
        try:
            await client.connect(timeout=self.connect_timeout)
        except (BleakError, OSError, asyncio.TimeoutError) as e:
            raise TransportError(f"Connection failed: {e}") from e
        return client

    async def discover_attributes(self, handle: BleakClient) -> List[Attribute]:
        try:
            services = handle.services
        except BleakError as e:
            raise TransportError(f"Service discovery failed: {e}") from e

        attributes = []
        for service in services:
            for characteristic in service.characteristics:
                attributes.append(Attribute(
                    uuid=str(characteristic.uuid).lower(),
                    handle=characteristic.handle,
                    service_uuid=str(service.uuid).lower(),
                    backend=characteristic,
                ))
        return attributes

    async def read_attribute(self, handle: BleakClient, attribute: Attribute) -> bytes:
        try:
            return bytes(await handle.read_gatt_char(attribute.backend))
        except (BleakError, OSError, asyncio.TimeoutError) as e:
            raise TransportError(f"Read of characteristic {attribute.uuid} failed: {e}") from e

    async def write_attribute(self, handle: BleakClient, attribute: Attribute, data: bytes) -> None:
        try:
            await handle.write_gatt_char(attribute.backend, data, response=True)
        except (BleakError, OSError, asyncio.TimeoutError) as e:
            raise TransportError(f"Write of characteristic {attribute.uuid} failed: {e}") from e

    async def disconnect(self, handle: BleakClient) -> None:
        if not handle.is_connected:
            return
        try:
            await handle.disconnect()
        except (BleakError, OSError) as e:
            raise TransportError(f"Disconnect failed: {e}") from e
