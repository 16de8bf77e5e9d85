"""
Pydantic schemas for per-device collection settings.
Defines the structure and validation rules of the device configuration file.
"""

import re
from typing import Dict, Optional

from pydantic import BaseModel, Field, field_validator


MAC_PATTERN = re.compile(r'^([0-9A-Fa-f]{2}[:-]){5}([0-9A-Fa-f]{2})$')


class DeviceConfig(BaseModel):
    """Collection settings for a single sensor identified by its address."""
    alias: Optional[str] = Field(None, max_length=100, description="Name written to the alias tag of each entry")
    ignore: bool = Field(False, description="Skip this device during collection")

    @field_validator('alias')
    @classmethod
    def blank_alias_is_none(cls, v):
        """Treat an empty or whitespace alias as no alias."""
        if v is None:
            return None
        v = v.strip()
        return v or None


class DeviceConfigFile(BaseModel):
    """Root structure of the device configuration file."""
    version: str = Field("1.0", description="Schema version")
    devices: Dict[str, DeviceConfig] = Field(default_factory=dict, description="Device settings by MAC address")

    @field_validator('devices')
    @classmethod
    def normalize_device_keys(cls, v):
        """Validate MAC address keys and normalize them to upper-case colon form."""
        normalized = {}
        for mac_address, device_config in v.items():
            if not validate_mac_address(mac_address):
                raise ValueError(f'Invalid MAC address format: {mac_address}')
            key = normalize_mac_address(mac_address)
            if key in normalized:
                raise ValueError(f'Duplicate device entry: {mac_address}')
            normalized[key] = device_config
        return normalized


def validate_mac_address(mac_address: str) -> bool:
    """
    Validate MAC address format.

    Args:
        mac_address: MAC address to validate

    Returns:
        bool: True if valid MAC address format
    """
    return bool(MAC_PATTERN.match(mac_address))


def normalize_mac_address(mac_address: str) -> str:
    """
    Normalize MAC address to uppercase with colon separators.

    Args:
        mac_address: MAC address to normalize

    Returns:
        str: Normalized MAC address
    """
    clean_mac = ''.join(c for c in mac_address.upper() if c.isalnum())

    if len(clean_mac) == 12:
        return ':'.join(clean_mac[i:i+2] for i in range(0, 12, 2))
    return mac_address.upper()
