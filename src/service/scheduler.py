"""
Collection scheduler for the Flora Sensor Service.

Alternates discovery passes with fixed-interval polling of the discovered
roster. Discovery failures back off for a cooldown period. Every wait is a
wait on the shutdown event, so a stop request is observed promptly.
"""

import asyncio
from dataclasses import dataclass, asdict
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, Mapping, Optional

from ..ble.discovery import DiscoveryManager, Roster
from ..ble.protocol import Readings
from ..ble.session import FloraDevice
from ..devices.schema import DeviceConfig
from ..exceptions import DeviceError, TransportError
from ..utils.config import CollectionSettings
from ..utils.logging import ProductionLogger, PerformanceMonitor


ReadingsSink = Callable[[FloraDevice, Readings, datetime], Awaitable[bool]]
ConfigProvider = Callable[[], Mapping[str, DeviceConfig]]


class SchedulerState(Enum):
    """Scheduler lifecycle states."""
    DISCOVERY_PENDING = "discovery_pending"
    DISCOVERING = "discovering"
    POLLING = "polling"
    COOLDOWN = "cooldown"
    STOPPED = "stopped"


@dataclass
class SchedulerStats:
    """Scheduler statistics container."""
    discovery_attempts: int = 0
    discovery_failures: int = 0
    poll_ticks: int = 0
    fetch_successes: int = 0
    fetch_failures: int = 0
    points_written: int = 0
    points_failed: int = 0
    roster_size: int = 0
    last_discovery_time: Optional[datetime] = None
    last_poll_time: Optional[datetime] = None


class CollectionScheduler:
    """
    Long-lived loop driving discovery and polling.

    The roster is owned by this object and replaced wholesale on every
    discovery pass. Devices are polled one after another within a tick.
    """

    def __init__(self, settings: CollectionSettings, discovery: DiscoveryManager,
                 sink: ReadingsSink, config_provider: ConfigProvider,
                 logger: ProductionLogger, performance_monitor: PerformanceMonitor):
        """
        Initialize scheduler.

        Args:
            settings: Collection timings
            discovery: Discovery manager producing rosters
            sink: Coroutine function receiving each successful reading
            config_provider: Returns the current per-device settings
            logger: Logger instance
            performance_monitor: Performance monitoring instance
        """
        self.settings = settings
        self.discovery = discovery
        self.sink = sink
        self.config_provider = config_provider
        self.logger = logger
        self.performance_monitor = performance_monitor

        self.state = SchedulerState.DISCOVERY_PENDING
        self.roster: Roster = ()
        self._shutdown = asyncio.Event()
        self._stats = SchedulerStats()

    def request_shutdown(self):
        """Ask the loop to stop at its next wait point."""
        self._shutdown.set()

    @property
    def shutdown_requested(self) -> bool:
        return self._shutdown.is_set()

    async def _wait_for_shutdown(self, timeout: float) -> bool:
        """
        Wait up to ``timeout`` seconds for a shutdown request.

        Returns:
            bool: True if shutdown was requested
        """
        if timeout <= 0:
            return self._shutdown.is_set()
        try:
            await asyncio.wait_for(self._shutdown.wait(), timeout=timeout)
        except asyncio.TimeoutError:
            return False
        return True

    def _set_state(self, state: SchedulerState):
        if state != self.state:
            self.logger.debug(f"Scheduler state {self.state.value} -> {state.value}")
        self.state = state

    async def run(self):
        """Run discovery and polling cycles until shutdown is requested."""
        self.logger.info("Collection scheduler started")
        try:
            while not self._shutdown.is_set():
                self._set_state(SchedulerState.DISCOVERY_PENDING)
                roster = await self._discover()

                if roster is None:
                    self._set_state(SchedulerState.COOLDOWN)
                    self.logger.info(f"Re-scheduling discovery in {self.settings.discovery_cooldown}s")
                    if await self._wait_for_shutdown(self.settings.discovery_cooldown):
                        break
                    self.logger.info("Restarting discovery")
                    continue

                self.roster = roster
                await self._poll_until_rediscovery()
                self._log_epoch_summary()
        finally:
            self.roster = ()
            self._set_state(SchedulerState.STOPPED)
            self.logger.info("Collection scheduler stopped")

    async def _discover(self) -> Optional[Roster]:
        """
        Run one discovery pass.

        Returns:
            Optional[Roster]: The new roster, or None if discovery failed
        """
        self._set_state(SchedulerState.DISCOVERING)
        self._stats.discovery_attempts += 1
        self._stats.last_discovery_time = datetime.now(timezone.utc)

        try:
            roster = await self.discovery.discover(self.settings.discovery_timeout, self.config_provider())
        except TransportError as e:
            self._stats.discovery_failures += 1
            self.performance_monitor.record_metric("ble_discovery_errors", 1)
            self.logger.error(f"Device discovery failed: {e}")
            return None
        except Exception as e:
            self._stats.discovery_failures += 1
            self.performance_monitor.record_metric("ble_discovery_errors", 1)
            self.logger.error(f"Unexpected error during device discovery: {type(e).__name__}: {e}")
            return None

        self._stats.roster_size = len(roster)
        return roster

    async def _poll_until_rediscovery(self):
        """Poll the roster on every tick until the rediscovery deadline passes."""
        loop = asyncio.get_running_loop()
        started = loop.time()
        rediscovery_at = started + self.settings.discovery_interval
        next_tick = started
        tick = 0

        while not self._shutdown.is_set():
            self._set_state(SchedulerState.POLLING)
            tick += 1
            await self.poll_once(tick)

            next_tick += self.settings.interval
            now = loop.time()
            while next_tick <= now:
                # Ticks missed while polling are dropped
                next_tick += self.settings.interval

            if rediscovery_at <= next_tick:
                if await self._wait_for_shutdown(rediscovery_at - loop.time()):
                    return
                self.logger.info("Rediscovery due, stopping poll ticks")
                return

            if await self._wait_for_shutdown(next_tick - loop.time()):
                return

    async def poll_once(self, tick: int = 0):
        """
        Fetch readings from every roster device, one at a time.

        A failing device is logged and skipped; the remaining devices are
        still polled.
        """
        self._stats.poll_ticks += 1
        self._stats.last_poll_time = datetime.now(timezone.utc)
        self.logger.debug(f"Poll tick {tick}: {len(self.roster)} devices")

        for device in self.roster:
            if self._shutdown.is_set():
                self.logger.info("Shutdown requested, skipping remaining devices of this tick")
                break
            readings = await self._fetch(device)
            if readings is None:
                continue

            self.logger.info(f"{device.label} Received readings: {readings}")
            if await self._forward(device, readings):
                self._stats.points_written += 1
            else:
                self._stats.points_failed += 1

    async def _fetch(self, device: FloraDevice) -> Optional[Readings]:
        try:
            readings = await device.fetch_readings()
        except DeviceError as e:
            self._stats.fetch_failures += 1
            self.performance_monitor.record_metric("ble_fetch_errors", 1)
            self.logger.error(f"Failed to fetch readings from device: {e}")
            return None
        except Exception as e:
            self._stats.fetch_failures += 1
            self.performance_monitor.record_metric("ble_fetch_errors", 1)
            self.logger.error(f"{device.label} Unexpected error fetching readings: {type(e).__name__}: {e}")
            return None

        self._stats.fetch_successes += 1
        return readings

    async def _forward(self, device: FloraDevice, readings: Readings) -> bool:
        try:
            return await self.sink(device, readings, datetime.now(timezone.utc))
        except Exception as e:
            self.logger.error(f"{device.label} Failed to forward readings: {type(e).__name__}: {e}")
            return False

    def _log_epoch_summary(self):
        self.logger.info(
            f"Epoch finished: {self._stats.poll_ticks} ticks, "
            f"{self._stats.fetch_successes} fetches ok, {self._stats.fetch_failures} failed, "
            f"{self._stats.points_written} points written"
        )
        self.performance_monitor.log_system_resources()

    def get_statistics(self) -> SchedulerStats:
        return self._stats

    def get_status(self) -> Dict[str, Any]:
        """Get current scheduler status."""
        return {
            "state": self.state.value,
            "shutdown_requested": self._shutdown.is_set(),
            "roster": [device.address for device in self.roster],
            "stats": asdict(self._stats),
        }
