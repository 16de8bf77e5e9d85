"""
Flora Sensor Service - plant sensor collection over BLE.

Discovers Xiaomi Flower Care / Flower Mate sensors, periodically reads
their battery, temperature, moisture, light and conductivity values and
stores them in InfluxDB.

Features:
- Periodic BLE discovery with per-device alias and ignore settings
- Fixed-interval polling of every discovered sensor
- InfluxDB integration for time-series data storage
- Device file hot-reloading
- Performance monitoring and logging
- Configuration management with environment variables
"""

__version__ = "1.0.0"
__author__ = "Flora Sensor Service Team"
__description__ = "BLE plant sensor collection service"

# Package imports for convenience
from .utils.config import Config, CollectionSettings
from .utils.logging import ProductionLogger, PerformanceMonitor
from .devices.manager import DeviceConfigManager
from .devices.schema import DeviceConfig, DeviceConfigFile
from .ble.protocol import Readings
from .ble.session import FloraDevice
from .ble.discovery import DiscoveryManager
from .influxdb.client import FloraInfluxDBClient
from .service.scheduler import CollectionScheduler

__all__ = [
    "Config",
    "CollectionSettings",
    "ProductionLogger",
    "PerformanceMonitor",
    "DeviceConfigManager",
    "DeviceConfig",
    "DeviceConfigFile",
    "Readings",
    "FloraDevice",
    "DiscoveryManager",
    "FloraInfluxDBClient",
    "CollectionScheduler"
]
