"""
Command-line interface for the Flora Sensor Service.
Provides one-shot discovery and fetch commands plus the collection daemon, using click and rich.
"""

import asyncio
import logging
import sys
from typing import List, Optional, Tuple

import click
from rich.console import Console
from rich.table import Table

from .. import __version__
from ..ble.discovery import DiscoveryManager, Roster, roster_summary
from ..ble.protocol import Readings
from ..ble.transport import BleakTransport
from ..devices.manager import DeviceConfigManager
from ..exceptions import DeviceError, TransportError
from ..service.daemon import run_daemon
from ..utils.config import Config, ConfigurationError
from ..utils.logging import ProductionLogger, PerformanceMonitor, setup_logging


class CLIError(Exception):
    """Base exception for CLI operations."""
    pass


class FloraCLI:
    """
    One-shot operations against nearby Flora sensors.

    Only the components needed for BLE work are created; InfluxDB settings
    are not required for discovery or fetch.
    """

    def __init__(self, env_file: Optional[str] = None):
        self.console = Console()
        self.env_file = env_file
        self.config: Optional[Config] = None
        self.logger: Optional[ProductionLogger] = None
        self.performance_monitor: Optional[PerformanceMonitor] = None
        self.device_manager: Optional[DeviceConfigManager] = None
        self.discovery: Optional[DiscoveryManager] = None

    def _initialize_components(self):
        """Initialize BLE components with error handling."""
        try:
            self.config = Config(self.env_file)
            self.config.collection_settings  # validates timings
            self.logger = setup_logging(self.config)
            self.performance_monitor = PerformanceMonitor()

            self.device_manager = DeviceConfigManager(self.config.devices_file, self.logger)
            self.device_manager.load()

            transport = BleakTransport(
                self.logger,
                adapter=self.config.ble_adapter,
                connect_timeout=self.config.ble_connect_timeout
            )
            self.discovery = DiscoveryManager(transport, self.logger, self.performance_monitor)
        except ConfigurationError as e:
            self.console.print(f"[red]Configuration Error: {e}[/red]")
            raise CLIError(str(e))

    async def discover(self, timeout: Optional[float] = None) -> Roster:
        """Scan once and print the roster."""
        duration = timeout if timeout is not None else self.config.collection_discovery_timeout
        self.console.print(f"[blue]Scanning for Flora devices for {duration:g} seconds...[/blue]")

        try:
            roster = await self.discovery.discover(duration, self.device_manager.get_configs())
        except TransportError as e:
            self.console.print(f"[red]Scan failed: {e}[/red]")
            raise CLIError(str(e))

        if not roster:
            self.console.print("[yellow]No Flora devices found[/yellow]")
            return roster

        table = Table(title="Discovered Devices", show_header=True, header_style="bold green")
        table.add_column("Address", style="cyan")
        table.add_column("Name")
        table.add_column("Alias", style="green")
        for row in roster_summary(roster):
            table.add_row(row["address"], row["name"], row["alias"] or "-")
        self.console.print(table)
        return roster

    async def fetch(self, timeout: Optional[float] = None,
                    addresses: Tuple[str, ...] = ()) -> List[Tuple[str, Optional[Readings]]]:
        """Scan once, then fetch readings from each device one at a time."""
        roster = await self.discover(timeout)
        if addresses:
            wanted = {address.upper() for address in addresses}
            roster = tuple(device for device in roster if device.address in wanted)

        results = []
        for device in roster:
            try:
                readings = await device.fetch_readings()
            except DeviceError as e:
                self.console.print(f"[red]{e}[/red]")
                results.append((device.label, None))
                continue
            results.append((device.label, readings))

        if results:
            self._print_readings(results)
        return results

    def _print_readings(self, results: List[Tuple[str, Optional[Readings]]]):
        table = Table(title="Readings", show_header=True, header_style="bold blue")
        table.add_column("Device", style="cyan")
        table.add_column("Battery", justify="right")
        table.add_column("Temperature", justify="right")
        table.add_column("Moisture", justify="right")
        table.add_column("Light", justify="right")
        table.add_column("Conductivity", justify="right")
        table.add_column("Firmware")

        for label, readings in results:
            if readings is None:
                table.add_row(label, *(["[red]failed[/red]"] + ["-"] * 5))
                continue
            table.add_row(
                label,
                f"{readings.battery_level}%",
                f"{readings.temperature:.1f}°C",
                f"{readings.moisture}%",
                f"{readings.light} lux",
                f"{readings.conductivity} µS/cm",
                readings.firmware_version
            )
        self.console.print(table)


@click.group()
@click.version_option(version=__version__, prog_name="flora-service")
@click.option("--env-file", type=click.Path(dir_okay=False), default=None,
              help="Environment file to load instead of ./.env")
@click.pass_context
def cli(ctx, env_file):
    """Flora Sensor Service - plant sensor collection into InfluxDB."""
    ctx.ensure_object(dict)
    ctx.obj["env_file"] = env_file


@cli.command()
@click.pass_context
def run(ctx):
    """Run the discovery and polling daemon."""
    try:
        config = Config(ctx.obj["env_file"])
    except ConfigurationError as e:
        click.echo(f"Configuration error: {e}", err=True)
        sys.exit(2)
    asyncio.run(run_daemon(config))


@cli.command()
@click.option("--timeout", "-t", type=float, default=None, help="Scan duration in seconds")
@click.pass_context
def discover(ctx, timeout):
    """Scan for Flora devices and list them."""
    app = FloraCLI(ctx.obj["env_file"])
    try:
        app._initialize_components()
        asyncio.run(app.discover(timeout))
    except CLIError:
        sys.exit(1)


@cli.command()
@click.option("--timeout", "-t", type=float, default=None, help="Scan duration in seconds")
@click.option("--address", "-a", multiple=True, help="Only fetch from this device (repeatable)")
@click.pass_context
def fetch(ctx, timeout, address):
    """Scan, then fetch one set of readings from every device found."""
    app = FloraCLI(ctx.obj["env_file"])
    try:
        app._initialize_components()
        results = asyncio.run(app.fetch(timeout, address))
    except CLIError:
        sys.exit(1)
    if any(readings is None for _, readings in results):
        sys.exit(1)


@cli.command(name="check-config")
@click.pass_context
def check_config(ctx):
    """Validate the environment and device file."""
    console = Console()
    try:
        config = Config(ctx.obj["env_file"])
        config.validate_configuration()
        configs = DeviceConfigManager(config.devices_file, logging.getLogger("flora")).load()
    except ConfigurationError as e:
        console.print(f"[red]{e}[/red]")
        sys.exit(2)

    table = Table(title="Configuration", show_header=True, header_style="bold cyan")
    table.add_column("Section", style="cyan")
    table.add_column("Setting")
    table.add_column("Value", style="green")
    for section, values in config.get_summary().items():
        for key, value in values.items():
            table.add_row(section, key, str(value))
    table.add_row("devices", "configured", str(len(configs)))
    console.print(table)
    console.print("[green]Configuration is valid[/green]")


@cli.command(name="dump-config")
@click.option("--devices", is_flag=True, help="Print an example device file instead")
def dump_config(devices):
    """Print the default configuration and exit."""
    if devices:
        click.echo(DeviceConfigManager.render_example())
    else:
        click.echo(Config.default_environment())


if __name__ == "__main__":
    cli()
