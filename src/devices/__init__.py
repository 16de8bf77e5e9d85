"""Per-device collection settings."""

from .schema import DeviceConfig, DeviceConfigFile, normalize_mac_address
from .manager import DeviceConfigManager

__all__ = [
    "DeviceConfig",
    "DeviceConfigFile",
    "DeviceConfigManager",
    "normalize_mac_address",
]
