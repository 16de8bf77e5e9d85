"""
Error taxonomy for the Flora Sensor Service.

Every failure raised by the BLE layer is attributed either to a single device
(address and alias travel with the exception) or, for scan failures, to the
discovery attempt as a whole (``address`` is ``None``).
"""

from typing import Optional


class FloraError(Exception):
    """Base exception for Flora sensor operations."""
    pass


class DeviceError(FloraError):
    """Failure attributed to a device, or to a discovery attempt when no address is set."""

    def __init__(self, message: str, address: Optional[str] = None, alias: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.address = address
        self.alias = alias

    @property
    def device_label(self) -> str:
        """Human-readable device attribution used in log lines."""
        if self.address is None:
            return "discovery"
        if self.alias:
            return f"{self.alias} ({self.address})"
        return self.address

    def with_device(self, address: str, alias: Optional[str] = None) -> "DeviceError":
        """Attach device attribution to an error raised without it."""
        self.address = address
        self.alias = alias
        return self

    def __str__(self) -> str:
        if self.address is None:
            return self.message
        return f"[{self.device_label}] {self.message}"


class TransportError(DeviceError):
    """Scan, connect, attribute discovery, read or write failure."""
    pass


class MalformedPayloadError(DeviceError):
    """Characteristic payload too short to decode."""
    pass


class ProtocolPreconditionError(DeviceError):
    """A characteristic required by the sensor protocol is missing."""
    pass
