"""
Flower care GATT protocol: characteristic constants and payload decoding.
All functions here are pure; no BLE I/O happens in this module.
"""

import struct
from dataclasses import dataclass
from typing import Dict, FrozenSet, Union

from ..exceptions import MalformedPayloadError


# Names the sensors advertise with
FLORA_DEVICE_NAMES: FrozenSet[str] = frozenset({"Flower care", "Flower mate"})

# Service holding the three characteristics used below
FLORA_SERVICE_UUID = "00001204-0000-1000-8000-00805f9b34fb"


@dataclass(frozen=True)
class CharacteristicRef:
    """Reference to a characteristic by UUID and by GATT value handle."""
    name: str
    uuid: str
    handle: int

    def matches(self, uuid: str, handle: int) -> bool:
        return uuid.lower() == self.uuid or handle == self.handle


# Writing REALTIME_MODE_COMMAND here switches the sensor to live readings
REALTIME_MODE_CHAR = CharacteristicRef("realtime mode", "00001a00-0000-1000-8000-00805f9b34fb", 0x33)
# Current temperature, light, moisture and conductivity
SENSOR_DATA_CHAR = CharacteristicRef("sensor data", "00001a01-0000-1000-8000-00805f9b34fb", 0x35)
# Battery level and firmware version
FIRMWARE_BATTERY_CHAR = CharacteristicRef("firmware and battery", "00001a02-0000-1000-8000-00805f9b34fb", 0x38)

# Some reference implementations write A0 AF; documented sensor behaviour is A0 1F
REALTIME_MODE_COMMAND = bytes([0xA0, 0x1F])

# Firmware newer than this returns cached values until realtime mode is armed
REALTIME_MODE_MIN_EXCLUSIVE_VERSION = "2.6.6"

FIRMWARE_PAYLOAD_MIN_LENGTH = 2
SENSOR_PAYLOAD_LENGTH = 10

# TT TT ?? LL LL ?? ?? MM CC CC
SENSOR_PAYLOAD_FORMAT = "<hxHxxBH"

# InfluxDB field names
FIELD_BATTERY = "battery"
FIELD_TEMPERATURE = "temperature"
FIELD_MOISTURE = "moisture"
FIELD_CONDUCTIVITY = "conductivity"
FIELD_LIGHT = "light"


@dataclass(frozen=True)
class FirmwareInfo:
    """Decoded firmware and battery characteristic."""
    battery_level: int
    firmware_version: str


@dataclass(frozen=True)
class SensorValues:
    """Decoded sensor data characteristic."""
    temperature: float   # Celsius
    light: int           # lux
    moisture: int        # %
    conductivity: int    # µS/cm


@dataclass(frozen=True)
class Readings:
    """One complete set of readings from a Flower care sensor."""
    firmware_version: str
    battery_level: int
    temperature: float
    moisture: int
    light: int
    conductivity: int

    def to_influx_fields(self) -> Dict[str, Union[int, float]]:
        """Return the measurement values keyed by InfluxDB field name."""
        return {
            FIELD_BATTERY: self.battery_level,
            FIELD_TEMPERATURE: self.temperature,
            FIELD_MOISTURE: self.moisture,
            FIELD_CONDUCTIVITY: self.conductivity,
            FIELD_LIGHT: self.light,
        }

    def __str__(self) -> str:
        return (
            f"[battery {self.battery_level}% | {self.temperature:.1f}°C | "
            f"moisture {self.moisture}% | {self.light} lux | "
            f"{self.conductivity} µS/cm | v{self.firmware_version}]"
        )


def decode_firmware_battery(data: bytes) -> FirmwareInfo:
    """
    Decode the firmware and battery characteristic.

    Byte 0 is the battery level in percent, byte 1 is unused and the
    remainder is the firmware version as ASCII text.

    Args:
        data: Raw characteristic value

    Returns:
        FirmwareInfo: Battery level and firmware version

    Raises:
        MalformedPayloadError: If fewer than two bytes were received
    """
    if len(data) < FIRMWARE_PAYLOAD_MIN_LENGTH:
        raise MalformedPayloadError(
            f"Firmware payload too short: {len(data)} bytes, need {FIRMWARE_PAYLOAD_MIN_LENGTH}"
        )

    battery_level = data[0]
    firmware_version = bytes(data[2:]).decode("utf-8", errors="replace").rstrip("\x00")

    return FirmwareInfo(battery_level=battery_level, firmware_version=firmware_version)


def decode_sensor_data(data: bytes) -> SensorValues:
    """
    Decode the 10-byte sensor data characteristic.

    Args:
        data: Raw characteristic value

    Returns:
        SensorValues: Temperature, light, moisture and conductivity

    Raises:
        MalformedPayloadError: If fewer than ten bytes were received
    """
    if len(data) < SENSOR_PAYLOAD_LENGTH:
        raise MalformedPayloadError(
            f"Sensor payload too short: {len(data)} bytes, need {SENSOR_PAYLOAD_LENGTH}"
        )

    temp_raw, light, moisture, conductivity = struct.unpack(
        SENSOR_PAYLOAD_FORMAT, bytes(data[:SENSOR_PAYLOAD_LENGTH])
    )

    return SensorValues(
        temperature=temp_raw / 10.0,
        light=light,
        moisture=moisture,
        conductivity=conductivity,
    )


def encode_sensor_data(values: SensorValues) -> bytes:
    """Encode sensor values into the characteristic layout (reserved bytes zeroed)."""
    return struct.pack(
        SENSOR_PAYLOAD_FORMAT,
        int(round(values.temperature * 10)),
        values.light,
        values.moisture,
        values.conductivity,
    )


def encode_firmware_battery(battery_level: int, firmware_version: str) -> bytes:
    """Encode battery level and firmware version into the characteristic layout."""
    return bytes([battery_level, 0]) + firmware_version.encode("utf-8")


def requires_realtime_mode(firmware_version: str) -> bool:
    """
    Check whether realtime mode must be armed before reading sensor data.

    The comparison is a plain string comparison, so "2.10.0" sorts below
    "2.6.6". Kept as-is to match deployed behaviour.
    """
    return firmware_version > REALTIME_MODE_MIN_EXCLUSIVE_VERSION


def build_readings(firmware: FirmwareInfo, values: SensorValues) -> Readings:
    """Combine both decoded characteristics into one Readings value."""
    return Readings(
        firmware_version=firmware.firmware_version,
        battery_level=firmware.battery_level,
        temperature=values.temperature,
        moisture=values.moisture,
        light=values.light,
        conductivity=values.conductivity,
    )
