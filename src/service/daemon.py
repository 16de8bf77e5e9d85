"""
Background daemon for the Flora Sensor Service.
Wires configuration, BLE discovery, the InfluxDB sink and the scheduler, and handles signals.
"""

import asyncio
import signal
import sys
from typing import Any, Dict, Optional

from ..ble.discovery import DiscoveryManager
from ..ble.transport import BleakTransport, Transport
from ..devices.manager import DeviceConfigManager
from ..influxdb.client import FloraInfluxDBClient
from ..utils.config import Config, ConfigurationError
from ..utils.logging import ProductionLogger, PerformanceMonitor, setup_logging
from .scheduler import CollectionScheduler


class FloraDaemonError(Exception):
    """Base exception for daemon operations."""
    pass


class FloraDaemon:
    """
    Background daemon for continuous Flora sensor collection.

    Features:
    - Discovery / polling scheduler with cooldown on discovery failure
    - InfluxDB forwarding of every successful reading
    - Device file hot-reloading (watchdog and SIGHUP)
    - Graceful shutdown on SIGINT/SIGTERM
    """

    def __init__(self, config: Optional[Config] = None, transport: Optional[Transport] = None):
        """Initialize daemon."""
        self.config = config
        self.transport = transport
        self.logger: Optional[ProductionLogger] = None
        self.performance_monitor: Optional[PerformanceMonitor] = None
        self.device_manager: Optional[DeviceConfigManager] = None
        self.influxdb_client: Optional[FloraInfluxDBClient] = None
        self.scheduler: Optional[CollectionScheduler] = None

        self._running = False
        self._scheduler_task: Optional[asyncio.Task] = None
        self._shutdown_event: Optional[asyncio.Event] = None
        self._grace_period = 15.0

    def _initialize_components(self):
        """Initialize all daemon components."""
        if self.config is None:
            self.config = Config()
        self.config.validate_configuration()
        settings = self.config.collection_settings
        self._grace_period = self.config.shutdown_grace_period

        if self.logger is None:
            self.logger = setup_logging(self.config)
        self.performance_monitor = PerformanceMonitor()

        self.device_manager = DeviceConfigManager(self.config.devices_file, self.logger)
        self.device_manager.load()

        if self.transport is None:
            self.transport = BleakTransport(
                self.logger,
                adapter=self.config.ble_adapter,
                connect_timeout=self.config.ble_connect_timeout
            )

        discovery = DiscoveryManager(self.transport, self.logger, self.performance_monitor)

        self.influxdb_client = FloraInfluxDBClient(self.config, self.logger, self.performance_monitor)
        self.influxdb_client.connect()

        self.scheduler = CollectionScheduler(
            settings,
            discovery,
            self.influxdb_client.write_readings,
            self.device_manager.get_configs,
            self.logger,
            self.performance_monitor
        )

        self.logger.info("Daemon components initialized successfully")

    def _setup_signal_handlers(self):
        """Set up signal handlers on the running event loop."""
        loop = asyncio.get_running_loop()

        for sig in (signal.SIGINT, signal.SIGTERM):
            loop.add_signal_handler(sig, self.request_shutdown, sig)

        if hasattr(signal, "SIGHUP"):
            loop.add_signal_handler(signal.SIGHUP, self._reload_devices)

    def _remove_signal_handlers(self):
        loop = asyncio.get_running_loop()
        for sig in (signal.SIGINT, signal.SIGTERM, getattr(signal, "SIGHUP", None)):
            if sig is not None:
                loop.remove_signal_handler(sig)

    def request_shutdown(self, sig: Optional[signal.Signals] = None):
        """Handle shutdown signals."""
        if sig is not None:
            self.logger.info(f"Got signal to stop ({signal.Signals(sig).name}). Shutting down")
        if self._shutdown_event is not None:
            self._shutdown_event.set()
        if self.scheduler is not None:
            self.scheduler.request_shutdown()

    def _reload_devices(self):
        """Handle device file reload signal."""
        self.logger.info("Received SIGHUP, device settings will be reloaded before the next discovery")
        self.device_manager.mark_changed()

    async def start(self):
        """Start the daemon and run until shutdown."""
        if self._running:
            raise FloraDaemonError("Daemon is already running")

        try:
            self._initialize_components()
        except ConfigurationError:
            raise
        except Exception as e:
            if self.logger:
                self.logger.error(f"Component initialization failed: {e}")
            raise FloraDaemonError(f"Initialization failed: {e}")

        self.logger.info("Starting Flora Sensor Daemon...")
        self._running = True
        self._shutdown_event = asyncio.Event()
        self._setup_signal_handlers()
        self.device_manager.start_watching()

        try:
            self._scheduler_task = asyncio.create_task(self.scheduler.run())
            shutdown_task = asyncio.create_task(self._shutdown_event.wait())

            await asyncio.wait(
                {self._scheduler_task, shutdown_task},
                return_when=asyncio.FIRST_COMPLETED
            )
            shutdown_task.cancel()

            if self._scheduler_task.done() and not self._scheduler_task.cancelled():
                error = self._scheduler_task.exception()
                if error is not None:
                    self.logger.critical(f"Scheduler terminated unexpectedly: {error}")
                    raise FloraDaemonError(f"Scheduler failed: {error}")
        finally:
            await self.stop()

    async def stop(self):
        """Stop the daemon gracefully."""
        if not self._running:
            return

        self.logger.info("Stopping Flora Sensor Daemon...")
        self._running = False
        self.request_shutdown()

        task = self._scheduler_task
        if task and not task.done():
            # Best effort: let the current fetch finish, then give up on it
            done, _ = await asyncio.wait({task}, timeout=self._grace_period)
            if not done:
                self.logger.warning(
                    f"Scheduler did not stop within {self._grace_period}s, cancelling in-flight work"
                )
                task.cancel()
                try:
                    await task
                except asyncio.CancelledError:
                    pass
            elif not task.cancelled() and task.exception() is not None:
                error = task.exception()
                self.logger.error(f"Scheduler failed while stopping: {type(error).__name__}: {error}")

        self.device_manager.stop_watching()
        self._remove_signal_handlers()

        if self.influxdb_client:
            self.influxdb_client.close()

        self.logger.info("Flora Sensor Daemon stopped")

    def get_status(self) -> Dict[str, Any]:
        """Get current daemon status."""
        return {
            "running": self._running,
            "scheduler": self.scheduler.get_status() if self.scheduler else None,
            "influxdb": self.influxdb_client.get_statistics() if self.influxdb_client else None,
            "performance": self.performance_monitor.get_performance_summary() if self.performance_monitor else None,
        }


async def run_daemon(config: Optional[Config] = None):
    """Run the daemon from command line."""
    daemon = FloraDaemon(config)

    try:
        await daemon.start()
    except ConfigurationError as e:
        print(f"Configuration error: {e}")
        sys.exit(2)
    except FloraDaemonError as e:
        print(f"Daemon failed: {e}")
        sys.exit(1)
