"""
InfluxDB client for Flora sensor readings.
Writes one point per successful fetch with retry logic; failures are logged, never raised.
"""

import asyncio
import functools
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, Optional, Union

from influxdb_client import InfluxDBClient, Point, WritePrecision
from influxdb_client.client.exceptions import InfluxDBError
from influxdb_client.client.write_api import SYNCHRONOUS
from influxdb_client.rest import ApiException
from urllib3.exceptions import HTTPError

from ..ble.protocol import Readings
from ..ble.session import FloraDevice
from ..utils.config import Config
from ..utils.logging import ProductionLogger, PerformanceMonitor


# Tag names
TAG_MAC = "mac"
TAG_ALIAS = "alias"
TAG_FIRMWARE_VERSION = "version"


@dataclass
class DataPoint:
    """Data point for InfluxDB storage."""
    measurement: str
    tags: Dict[str, str] = field(default_factory=dict)
    fields: Dict[str, Union[float, int, str, bool]] = field(default_factory=dict)
    timestamp: Optional[datetime] = None


@dataclass
class WriteStats:
    """Statistics for write operations."""
    points_written: int = 0
    points_failed: int = 0
    last_write_time: Optional[datetime] = None
    total_write_time: float = 0.0


class SinkError(Exception):
    """Base exception for InfluxDB operations."""
    pass


class SinkConnectionError(SinkError):
    """Exception for connection errors."""
    pass


class FloraInfluxDBClient:
    """
    InfluxDB sink for Flora sensor readings.

    Features:
    - One point per reading, tagged with device address, alias and firmware
    - Retry logic with exponential backoff
    - Write statistics
    """

    def __init__(self, config: Config, logger: ProductionLogger, performance_monitor: PerformanceMonitor):
        """
        Initialize InfluxDB client.

        Args:
            config: Application configuration
            logger: Logger instance
            performance_monitor: Performance monitoring instance
        """
        self.config = config
        self.logger = logger
        self.performance_monitor = performance_monitor

        self.url = config.influxdb_url
        self.token = config.influxdb_token
        self.org = config.influxdb_org
        self.bucket = config.influxdb_bucket
        self.measurement = config.influxdb_measurement
        self.timeout = config.influxdb_timeout * 1000  # milliseconds
        self.verify_ssl = config.influxdb_verify_ssl

        self.retry_attempts = config.influxdb_retry_attempts
        self.retry_delay = config.influxdb_retry_delay
        self.retry_exponential_base = config.influxdb_retry_exponential_base

        self._client: Optional[InfluxDBClient] = None
        self._write_api = None
        self._is_connected = False
        self._closed = False
        self._stats = WriteStats()

        self.logger.info(f"FloraInfluxDBClient initialized for {self.url}")

    def connect(self):
        """
        Create the InfluxDB client and write API.

        Raises:
            SinkConnectionError: If the client cannot be created
        """
        try:
            self._client = InfluxDBClient(
                url=self.url,
                token=self.token,
                org=self.org,
                timeout=self.timeout,
                verify_ssl=self.verify_ssl
            )
            self._write_api = self._client.write_api(write_options=SYNCHRONOUS)
        except (InfluxDBError, ValueError) as e:
            raise SinkConnectionError(f"Failed to create InfluxDB client: {e}")

        self._is_connected = True
        self.logger.info(f"Connected to InfluxDB at {self.url} (bucket: {self.bucket})")

    def close(self):
        """Close the client. Later calls are no-ops."""
        if self._closed:
            return
        self._closed = True
        self._is_connected = False

        if self._client:
            self._client.close()
            self._client = None
            self._write_api = None

        self.logger.info("InfluxDB connection closed")

    def build_data_point(self, device: FloraDevice, readings: Readings,
                         timestamp: Optional[datetime] = None) -> DataPoint:
        """
        Convert one set of readings into a data point.

        Args:
            device: Device the readings came from
            readings: Decoded readings
            timestamp: Measurement time (defaults to now, UTC)

        Returns:
            DataPoint: Tagged data point
        """
        tags = {
            TAG_MAC: device.address,
            TAG_FIRMWARE_VERSION: readings.firmware_version,
        }
        if device.alias:
            tags[TAG_ALIAS] = device.alias

        return DataPoint(
            measurement=self.measurement,
            tags=tags,
            fields=readings.to_influx_fields(),
            timestamp=timestamp or datetime.now(timezone.utc)
        )

    @staticmethod
    def _convert_to_influx_point(dp: DataPoint) -> Point:
        point = Point(dp.measurement)

        for tag_key, tag_value in dp.tags.items():
            point = point.tag(tag_key, str(tag_value))

        for field_key, field_value in dp.fields.items():
            point = point.field(field_key, field_value)

        if dp.timestamp:
            point = point.time(dp.timestamp, WritePrecision.S)

        return point

    async def write_readings(self, device: FloraDevice, readings: Readings,
                             timestamp: Optional[datetime] = None) -> bool:
        """
        Write one set of readings to InfluxDB.

        Args:
            device: Device the readings came from
            readings: Decoded readings
            timestamp: Measurement time (defaults to now, UTC)

        Returns:
            bool: True if the write succeeded
        """
        if not self._is_connected:
            self.logger.warning(f"{device.label} Not connected to InfluxDB, dropping readings")
            self._stats.points_failed += 1
            return False

        data_point = self.build_data_point(device, readings, timestamp)
        return await self._write_point(device, data_point)

    async def _write_point(self, device: FloraDevice, data_point: DataPoint) -> bool:
        """Write a data point with retry logic."""
        point = self._convert_to_influx_point(data_point)

        for attempt in range(self.retry_attempts):
            try:
                start_time = time.time()

                # write_api.write blocks, so it runs off the event loop thread
                await asyncio.get_running_loop().run_in_executor(
                    None,
                    functools.partial(
                        self._write_api.write,
                        bucket=self.bucket,
                        org=self.org,
                        record=point
                    )
                )

                write_time = time.time() - start_time

                self._stats.points_written += 1
                self._stats.last_write_time = datetime.now(timezone.utc)
                self._stats.total_write_time += write_time

                self.performance_monitor.record_metric("influxdb_points_written", 1)
                self.performance_monitor.record_metric("influxdb_write_time", write_time)

                self.logger.debug(f"{device.label} Wrote readings to InfluxDB in {write_time:.3f}s")
                return True

            except (InfluxDBError, ApiException, HTTPError, OSError) as e:
                self.logger.warning(f"{device.label} Write attempt {attempt + 1} failed: {e}")

                if attempt < self.retry_attempts - 1:
                    delay = self.retry_delay * (self.retry_exponential_base ** attempt)
                    await asyncio.sleep(delay)

        self._stats.points_failed += 1
        self.performance_monitor.record_metric("influxdb_write_errors", 1)
        self.logger.error(f"{device.label} Failed to write readings after {self.retry_attempts} attempts")
        return False

    def get_statistics(self) -> Dict[str, Any]:
        """
        Get client statistics.

        Returns:
            Dict[str, Any]: Client statistics
        """
        return {
            "is_connected": self._is_connected,
            "points_written": self._stats.points_written,
            "points_failed": self._stats.points_failed,
            "last_write_time": self._stats.last_write_time,
            "total_write_time": self._stats.total_write_time,
            "average_write_time": (
                self._stats.total_write_time / self._stats.points_written
                if self._stats.points_written > 0 else 0
            ),
        }
