"""
Device session for Flower care sensors.

A ``FloraDevice`` is created by discovery and lives for one discovery epoch.
Each call to ``fetch_readings`` opens a fresh connection, walks the sensor
protocol and always disconnects before returning or raising.
"""

from contextlib import asynccontextmanager
from dataclasses import dataclass
from enum import Enum
from typing import Any, AsyncIterator, List, Optional

from .protocol import (
    CharacteristicRef,
    FIRMWARE_BATTERY_CHAR,
    REALTIME_MODE_CHAR,
    REALTIME_MODE_COMMAND,
    Readings,
    SENSOR_DATA_CHAR,
    build_readings,
    decode_firmware_battery,
    decode_sensor_data,
    requires_realtime_mode,
)
from .transport import Attribute, Transport
from ..exceptions import DeviceError, ProtocolPreconditionError, TransportError
from ..utils.logging import ProductionLogger


class SessionState(Enum):
    """States of a single fetch."""
    IDLE = "idle"
    CONNECTING = "connecting"
    ATTRIBUTE_DISCOVERY = "attribute_discovery"
    FIRMWARE_READ = "firmware_read"
    REALTIME_MODE_ARM = "realtime_mode_arm"
    SENSOR_READ = "sensor_read"
    DISCONNECTING = "disconnecting"
    DONE = "done"
    FAILED = "failed"


@dataclass(frozen=True)
class DeviceIdentity:
    """Address and advertised name of a peripheral."""
    address: str
    name: str

    @classmethod
    def create(cls, address: str, name: Optional[str]) -> "DeviceIdentity":
        return cls(address=address.upper(), name=name or "")


class FloraDevice:
    """
    Session handle for one Flower care sensor.

    Features:
    - Scoped connection with guaranteed disconnect
    - Firmware-gated realtime mode arming
    - Errors carry device address and alias
    """

    def __init__(self, identity: DeviceIdentity, transport: Transport,
                 logger: ProductionLogger, alias: Optional[str] = None):
        self.identity = identity
        self.alias = alias or None
        self.transport = transport
        self.logger = logger
        self.state = SessionState.IDLE

    @property
    def address(self) -> str:
        return self.identity.address

    @property
    def display_name(self) -> str:
        """Alias if configured, address otherwise."""
        return self.alias or self.address

    @property
    def label(self) -> str:
        """Log prefix identifying this device."""
        if self.alias:
            return f"[{self.alias} ({self.address})]"
        return f"[{self.address}]"

    def _transition(self, state: SessionState):
        self.state = state
        self.logger.debug(f"{self.label} Session state -> {state.value}")

    @asynccontextmanager
    async def _connection(self) -> AsyncIterator[Any]:
        """Connect to the peripheral and always disconnect on exit."""
        self._transition(SessionState.CONNECTING)
        handle = await self.transport.connect(self.address)
        self.logger.debug(f"{self.label} Connection established")
        try:
            yield handle
        finally:
            self._transition(SessionState.DISCONNECTING)
            try:
                await self.transport.disconnect(handle)
                self.logger.debug(f"{self.label} Disconnected")
            except TransportError as e:
                self.logger.warning(f"{self.label} Error disconnecting: {e.message}")

    @staticmethod
    def _find(attributes: List[Attribute], ref: CharacteristicRef) -> Optional[Attribute]:
        # UUID match wins over a handle-only match
        for attribute in attributes:
            if attribute.uuid.lower() == ref.uuid:
                return attribute
        for attribute in attributes:
            if ref.matches(attribute.uuid, attribute.handle):
                return attribute
        return None

    def _require(self, attributes: List[Attribute], ref: CharacteristicRef) -> Attribute:
        attribute = self._find(attributes, ref)
        if attribute is None:
            raise ProtocolPreconditionError(f"No {ref.name} characteristic found on device")
        self.logger.debug(f"{self.label} Found {ref.name} characteristic (0x{ref.handle:x})")
        return attribute

    async def fetch_readings(self) -> Readings:
        """
        Fetch the current readings from the sensor.

        Returns:
            Readings: Fully decoded readings

        Raises:
            TransportError: If connecting, discovery, reading or writing fails
            ProtocolPreconditionError: If a required characteristic is missing
            MalformedPayloadError: If a characteristic value cannot be decoded
        """
        self.logger.info(f"{self.label} Fetching readings from device")
        self._transition(SessionState.IDLE)

        try:
            async with self._connection() as handle:
                self._transition(SessionState.ATTRIBUTE_DISCOVERY)
                attributes = await self.transport.discover_attributes(handle)
                firmware_char = self._require(attributes, FIRMWARE_BATTERY_CHAR)

                self._transition(SessionState.FIRMWARE_READ)
                firmware = decode_firmware_battery(await self.transport.read_attribute(handle, firmware_char))
                self.logger.debug(
                    f"{self.label} Firmware version: {firmware.firmware_version} - "
                    f"Battery at {firmware.battery_level}%"
                )

                if requires_realtime_mode(firmware.firmware_version):
                    realtime_char = self._require(attributes, REALTIME_MODE_CHAR)
                    self._transition(SessionState.REALTIME_MODE_ARM)
                    await self.transport.write_attribute(handle, realtime_char, REALTIME_MODE_COMMAND)
                    self.logger.debug(f"{self.label} Realtime data reading enabled")

                sensor_char = self._require(attributes, SENSOR_DATA_CHAR)
                self._transition(SessionState.SENSOR_READ)
                values = decode_sensor_data(await self.transport.read_attribute(handle, sensor_char))
                readings = build_readings(firmware, values)

        except DeviceError as e:
            self._transition(SessionState.FAILED)
            raise e.with_device(self.address, self.alias)

        self._transition(SessionState.DONE)
        return readings

    def __repr__(self) -> str:
        return f"FloraDevice(address={self.address!r}, alias={self.alias!r})"
