"""
Device configuration manager.
Loads the per-device alias/ignore settings and reloads them when the file changes.
"""

import json
import threading
from pathlib import Path
from typing import Dict, Optional

from pydantic import ValidationError
from watchdog.events import FileSystemEventHandler
from watchdog.observers import Observer

from .schema import DeviceConfig, DeviceConfigFile
from ..utils.config import ConfigurationError
from ..utils.logging import ProductionLogger


class DeviceFileHandler(FileSystemEventHandler):
    """File system event handler marking the device file as changed."""

    def __init__(self, manager: 'DeviceConfigManager'):
        self.manager = manager

    def on_any_event(self, event):
        if event.is_directory:
            return
        paths = {Path(event.src_path).name, Path(getattr(event, "dest_path", "") or "").name}
        if self.manager.devices_file.name in paths:
            self.manager.mark_changed()


class DeviceConfigManager:
    """
    Manages per-device configuration loaded from a JSON file.

    Features:
    - Validation using Pydantic schemas
    - Missing file means no per-device settings
    - Hot reload through watchdog, applied on the next discovery pass
    """

    def __init__(self, devices_file: Path, logger: ProductionLogger):
        """
        Initialize device configuration manager.

        Args:
            devices_file: Path to the JSON device configuration file
            logger: Logger instance
        """
        self.devices_file = Path(devices_file)
        self.logger = logger
        self._configs: Dict[str, DeviceConfig] = {}
        self._changed = threading.Event()
        self._changed.set()
        self._observer: Optional[Observer] = None

    def _load_from_file(self) -> DeviceConfigFile:
        """
        Load device configuration from file with validation.

        Raises:
            ConfigurationError: If the file cannot be read or is invalid
        """
        if not self.devices_file.exists():
            self.logger.info(f"Device file {self.devices_file} not found, using defaults for all devices")
            return DeviceConfigFile()

        try:
            with open(self.devices_file, 'r', encoding='utf-8') as f:
                data = json.load(f)
            return DeviceConfigFile(**data)
        except json.JSONDecodeError as e:
            raise ConfigurationError(f"Invalid JSON in device file {self.devices_file}: {e}")
        except ValidationError as e:
            raise ConfigurationError(f"Invalid device file {self.devices_file}: {e}")
        except OSError as e:
            raise ConfigurationError(f"Cannot read device file {self.devices_file}: {e}")

    def load(self) -> Dict[str, DeviceConfig]:
        """
        Load the device file, replacing the current settings.

        Returns:
            Dict[str, DeviceConfig]: Settings keyed by normalized MAC address
        """
        self._changed.clear()
        config_file = self._load_from_file()
        self._configs = dict(config_file.devices)
        self.logger.info(f"Loaded settings for {len(self._configs)} devices")
        return dict(self._configs)

    def mark_changed(self):
        """Request a reload before the next lookup."""
        self._changed.set()

    def get_configs(self) -> Dict[str, DeviceConfig]:
        """
        Get the current device settings, reloading first if the file changed.

        A reload failure keeps the previous settings.
        """
        if self._changed.is_set():
            try:
                return self.load()
            except ConfigurationError as e:
                self.logger.error(f"Device file reload failed, keeping previous settings: {e}")
        return dict(self._configs)

    def start_watching(self):
        """Watch the device file's directory for changes."""
        if self._observer is not None:
            return
        directory = self.devices_file.parent
        if not directory.exists():
            self.logger.warning(f"Device file directory {directory} does not exist, hot reload disabled")
            return

        self._observer = Observer()
        self._observer.schedule(DeviceFileHandler(self), str(directory), recursive=False)
        self._observer.start()
        self.logger.info(f"Watching {self.devices_file} for changes")

    def stop_watching(self):
        """Stop watching the device file."""
        if self._observer is None:
            return
        self._observer.stop()
        self._observer.join()
        self._observer = None

    @staticmethod
    def render_example() -> str:
        """Render an example device file."""
        example = DeviceConfigFile(devices={
            "C4:7C:8D:00:00:01": DeviceConfig(alias="Living room ficus"),
            "C4:7C:8D:00:00:02": DeviceConfig(ignore=True),
        })
        return json.dumps(example.model_dump(), indent=2)
