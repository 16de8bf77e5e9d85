"""
Time-boxed discovery of Flower care sensors.
Builds a fresh roster of device sessions on every pass.
"""

from typing import Dict, List, Mapping, Optional, Tuple

from .protocol import FLORA_DEVICE_NAMES
from .session import DeviceIdentity, FloraDevice
from .transport import Transport
from ..devices.schema import DeviceConfig
from ..utils.logging import ProductionLogger, PerformanceMonitor


Roster = Tuple[FloraDevice, ...]


class DiscoveryManager:
    """Scans for known sensor names and applies per-device configuration."""

    def __init__(self, transport: Transport, logger: ProductionLogger,
                 performance_monitor: PerformanceMonitor):
        """
        Initialize discovery manager.

        Args:
            transport: BLE transport used for scanning and by the created sessions
            logger: Logger instance
            performance_monitor: Performance monitoring instance
        """
        self.transport = transport
        self.logger = logger
        self.performance_monitor = performance_monitor

    async def discover(self, timeout: float, configs: Mapping[str, DeviceConfig]) -> Roster:
        """
        Scan for ``timeout`` seconds and return the roster of non-ignored sensors.

        Args:
            timeout: Scan duration in seconds; the scan always runs this long
            configs: Device configuration keyed by upper-case address

        Returns:
            Roster: Devices in first-seen order, each address once

        Raises:
            TransportError: If the scan could not be started
        """
        found: Dict[str, FloraDevice] = {}
        ignored: Dict[str, str] = {}

        def on_advertisement(address: str, name: Optional[str]):
            if name not in FLORA_DEVICE_NAMES:
                return
            identity = DeviceIdentity.create(address, name)
            if identity.address in found or identity.address in ignored:
                return

            config = configs.get(identity.address, DeviceConfig())
            if config.ignore:
                ignored[identity.address] = name
                self.logger.info(f"[{identity.address}] Device will be ignored")
                return

            device = FloraDevice(identity, self.transport, self.logger, alias=config.alias)
            found[identity.address] = device
            self.logger.info(f"{device.label} Flora device detected")

        self.logger.info("Discovering Bluetooth devices in the vicinity...")
        with self.performance_monitor.measure_time("ble_discovery"):
            await self.transport.scan(timeout, on_advertisement)
        self.logger.info(f"Stopped the scan after {timeout}s")

        roster: Roster = tuple(found.values())
        noun = "device" if len(roster) == 1 else "devices"
        self.logger.info(f"Scan finished. {len(roster)} {noun} found")
        self.performance_monitor.record_metric("ble_devices_discovered", len(roster))
        return roster


def roster_summary(roster: Roster) -> List[Dict[str, str]]:
    """Describe a roster as plain rows for display."""
    return [
        {
            "address": device.address,
            "name": device.identity.name,
            "alias": device.alias or "",
        }
        for device in roster
    ]
