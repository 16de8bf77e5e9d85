"""Exceptions shared across the BLE layer."""

from .errors import (
    FloraError,
    DeviceError,
    TransportError,
    MalformedPayloadError,
    ProtocolPreconditionError,
)

__all__ = [
    "FloraError",
    "DeviceError",
    "TransportError",
    "MalformedPayloadError",
    "ProtocolPreconditionError",
]
