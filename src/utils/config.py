"""
Configuration management for the Flora Sensor Service.
Loads configuration from environment variables with validation and defaults.
"""

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Union
from dotenv import load_dotenv
import logging


# Lower bounds for the collection timings, in seconds
MIN_DISCOVERY_INTERVAL = 60.0
MIN_COLLECTION_INTERVAL = 60.0
MIN_DISCOVERY_COOLDOWN = 1.0
MIN_DISCOVERY_TIMEOUT = 5.0


class ConfigurationError(Exception):
    """Raised when configuration is invalid or missing."""
    pass


@dataclass(frozen=True)
class CollectionSettings:
    """Timing of discovery and polling, in seconds."""
    discovery_interval: float = 3600.0
    discovery_timeout: float = 10.0
    discovery_cooldown: float = 30.0
    interval: float = 60.0

    def validate(self):
        """
        Check the timings against their bounds.

        Raises:
            ConfigurationError: Listing every violated bound
        """
        errors = []
        if self.discovery_interval < MIN_DISCOVERY_INTERVAL:
            errors.append(
                f"Discovery interval of {self.discovery_interval}s is too low. "
                f"Please use an interval greater or equal one minute"
            )
        if self.interval < MIN_COLLECTION_INTERVAL:
            errors.append(
                f"Collection interval of {self.interval}s is too low. "
                f"Please use an interval greater or equal one minute"
            )
        if self.interval > self.discovery_interval:
            errors.append(
                f"Collection interval is greater than the rediscovery interval "
                f"({self.interval}s > {self.discovery_interval}s). "
                f"Please use a smaller value for the collection interval"
            )
        if self.discovery_cooldown < MIN_DISCOVERY_COOLDOWN:
            errors.append(
                f"Discovery cooldown of {self.discovery_cooldown}s is too low. "
                f"Please use an interval greater or equal one second"
            )
        if self.discovery_timeout < MIN_DISCOVERY_TIMEOUT:
            errors.append(
                f"Discovery timeout of {self.discovery_timeout}s is too low. "
                f"Please use an interval greater or equal five seconds"
            )
        if errors:
            raise ConfigurationError("Collection settings invalid:\n" + "\n".join(f"- {e}" for e in errors))


class Config:
    """
    Configuration manager that loads settings from environment variables.
    Provides validation and type conversion for configuration values.
    """

    def __init__(self, env_file: Optional[Union[str, Path]] = None):
        """
        Initialize configuration manager.

        Args:
            env_file: Path to .env file (defaults to .env in project root)
        """
        self.logger = logging.getLogger(__name__)

        if env_file is None:
            env_file = Path(__file__).parent.parent.parent / ".env"

        if Path(env_file).exists():
            load_dotenv(env_file)
            self.logger.info(f"Loaded configuration from {env_file}")
        else:
            self.logger.debug(f"Environment file {env_file} not found, using system environment")

    def get_str(self, key: str, default: Optional[str] = None) -> str:
        """Get string configuration value."""
        value = os.getenv(key, default)
        if value is None:
            raise ConfigurationError(f"Required configuration key '{key}' not found")
        return value

    def get_int(self, key: str, default: Optional[int] = None) -> int:
        """Get integer configuration value."""
        value = os.getenv(key)
        if value is None:
            if default is None:
                raise ConfigurationError(f"Required configuration key '{key}' not found")
            return default

        try:
            return int(value)
        except ValueError:
            raise ConfigurationError(f"Configuration key '{key}' must be an integer, got '{value}'")

    def get_float(self, key: str, default: Optional[float] = None) -> float:
        """Get float configuration value."""
        value = os.getenv(key)
        if value is None:
            if default is None:
                raise ConfigurationError(f"Required configuration key '{key}' not found")
            return default

        try:
            return float(value)
        except ValueError:
            raise ConfigurationError(f"Configuration key '{key}' must be a float, got '{value}'")

    def get_bool(self, key: str, default: Optional[bool] = None) -> bool:
        """Get boolean configuration value."""
        value = os.getenv(key)
        if value is None:
            if default is None:
                raise ConfigurationError(f"Required configuration key '{key}' not found")
            return default

        return value.lower() in ('true', '1', 'yes', 'on', 'enabled')

    def get_path(self, key: str, default: Optional[Union[str, Path]] = None) -> Path:
        """Get path configuration value."""
        value = os.getenv(key)
        if value is None:
            if default is None:
                raise ConfigurationError(f"Required configuration key '{key}' not found")
            value = str(default)

        path = Path(value)
        if not path.is_absolute():
            # Relative paths are relative to the project root
            project_root = Path(__file__).parent.parent.parent
            path = project_root / path

        return path

    # InfluxDB Configuration
    @property
    def influxdb_url(self) -> str:
        return self.get_str("INFLUXDB_URL", "http://localhost:8086")

    @property
    def influxdb_token(self) -> str:
        return self.get_str("INFLUXDB_TOKEN")

    @property
    def influxdb_org(self) -> str:
        return self.get_str("INFLUXDB_ORG")

    @property
    def influxdb_bucket(self) -> str:
        return self.get_str("INFLUXDB_BUCKET", "flora")

    @property
    def influxdb_measurement(self) -> str:
        return self.get_str("INFLUXDB_MEASUREMENT", "PlantSensors")

    @property
    def influxdb_timeout(self) -> int:
        return self.get_int("INFLUXDB_TIMEOUT", 30)

    @property
    def influxdb_verify_ssl(self) -> bool:
        return self.get_bool("INFLUXDB_VERIFY_SSL", True)

    @property
    def influxdb_retry_attempts(self) -> int:
        return self.get_int("INFLUXDB_RETRY_ATTEMPTS", 3)

    @property
    def influxdb_retry_delay(self) -> float:
        return self.get_float("INFLUXDB_RETRY_DELAY", 2.0)

    @property
    def influxdb_retry_exponential_base(self) -> float:
        return self.get_float("INFLUXDB_RETRY_EXPONENTIAL_BASE", 2.0)

    # Collection Configuration
    @property
    def collection_discovery_interval(self) -> float:
        return self.get_float("COLLECTION_DISCOVERY_INTERVAL", 3600.0)

    @property
    def collection_discovery_timeout(self) -> float:
        return self.get_float("COLLECTION_DISCOVERY_TIMEOUT", 10.0)

    @property
    def collection_discovery_cooldown(self) -> float:
        return self.get_float("COLLECTION_DISCOVERY_COOLDOWN", 30.0)

    @property
    def collection_interval(self) -> float:
        return self.get_float("COLLECTION_INTERVAL", 60.0)

    @property
    def collection_settings(self) -> CollectionSettings:
        """Validated collection timings."""
        settings = CollectionSettings(
            discovery_interval=self.collection_discovery_interval,
            discovery_timeout=self.collection_discovery_timeout,
            discovery_cooldown=self.collection_discovery_cooldown,
            interval=self.collection_interval,
        )
        settings.validate()
        return settings

    @property
    def shutdown_grace_period(self) -> float:
        return self.get_float("SHUTDOWN_GRACE_PERIOD", 15.0)

    # BLE Configuration
    @property
    def ble_adapter(self) -> str:
        return self.get_str("BLE_ADAPTER", "auto")

    @property
    def ble_connect_timeout(self) -> float:
        return self.get_float("BLE_CONNECT_TIMEOUT", 20.0)

    # Device Configuration
    @property
    def devices_file(self) -> Path:
        return self.get_path("DEVICES_FILE", "./config/devices.json")

    # Logging Configuration
    @property
    def log_level(self) -> str:
        return self.get_str("LOG_LEVEL", "INFO").upper()

    @property
    def log_dir(self) -> Path:
        return self.get_path("LOG_DIR", "./logs")

    @property
    def log_max_file_size(self) -> int:
        return self.get_int("LOG_MAX_FILE_SIZE", 10 * 1024 * 1024)  # 10MB

    @property
    def log_backup_count(self) -> int:
        return self.get_int("LOG_BACKUP_COUNT", 5)

    @property
    def log_enable_console(self) -> bool:
        return self.get_bool("LOG_ENABLE_CONSOLE", True)

    @property
    def log_enable_syslog(self) -> bool:
        return self.get_bool("LOG_ENABLE_SYSLOG", False)

    def validate_configuration(self) -> bool:
        """
        Validate all configuration values.

        Returns:
            bool: True if configuration is valid

        Raises:
            ConfigurationError: If configuration is invalid
        """
        errors = []

        # Validate InfluxDB configuration
        try:
            if not self.influxdb_url.startswith(("http://", "https://")):
                errors.append("INFLUXDB_URL must start with http:// or https://")
            if not self.influxdb_token or self.influxdb_token == "your_influxdb_token_here":
                errors.append("INFLUXDB_TOKEN must be set to a valid token")
            if not self.influxdb_org:
                errors.append("INFLUXDB_ORG cannot be empty")
            if not self.influxdb_bucket:
                errors.append("INFLUXDB_BUCKET cannot be empty")
            if not self.influxdb_measurement:
                errors.append("INFLUXDB_MEASUREMENT cannot be empty")
            if self.influxdb_retry_attempts < 1:
                errors.append("INFLUXDB_RETRY_ATTEMPTS must be at least 1")
        except ConfigurationError as e:
            errors.append(str(e))

        # Validate collection timings
        try:
            self.collection_settings
        except ConfigurationError as e:
            errors.append(str(e))

        # Validate BLE configuration
        try:
            if self.ble_connect_timeout <= 0:
                errors.append("BLE_CONNECT_TIMEOUT must be positive")
            if self.shutdown_grace_period < 0:
                errors.append("SHUTDOWN_GRACE_PERIOD cannot be negative")
        except ConfigurationError as e:
            errors.append(str(e))

        # Validate log level
        try:
            valid_levels = ['DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL']
            if self.log_level not in valid_levels:
                errors.append(f"LOG_LEVEL must be one of {valid_levels}")
        except ConfigurationError as e:
            errors.append(str(e))

        if errors:
            raise ConfigurationError("Configuration validation failed:\n" + "\n".join(f"- {error}" for error in errors))

        return True

    def get_summary(self) -> dict:
        """Get configuration summary for logging/debugging."""
        return {
            'influxdb': {
                'url': self.influxdb_url,
                'org': self.influxdb_org,
                'bucket': self.influxdb_bucket,
                'measurement': self.influxdb_measurement,
                'verify_ssl': self.influxdb_verify_ssl,
            },
            'collection': {
                'discovery_interval': self.collection_discovery_interval,
                'discovery_timeout': self.collection_discovery_timeout,
                'discovery_cooldown': self.collection_discovery_cooldown,
                'interval': self.collection_interval,
            },
            'ble': {
                'adapter': self.ble_adapter,
                'connect_timeout': self.ble_connect_timeout,
            },
            'devices': {
                'file': str(self.devices_file),
            },
            'logging': {
                'level': self.log_level,
                'dir': str(self.log_dir),
                'enable_console': self.log_enable_console,
                'enable_syslog': self.log_enable_syslog,
            },
        }

    @staticmethod
    def default_environment() -> str:
        """Render the default configuration as a .env template."""
        defaults = CollectionSettings()
        lines = [
            "# InfluxDB",
            "INFLUXDB_URL=http://localhost:8086",
            "INFLUXDB_TOKEN=your_influxdb_token_here",
            "INFLUXDB_ORG=",
            "INFLUXDB_BUCKET=flora",
            "INFLUXDB_MEASUREMENT=PlantSensors",
            "",
            "# Collection (seconds)",
            f"COLLECTION_DISCOVERY_INTERVAL={defaults.discovery_interval:g}",
            f"COLLECTION_DISCOVERY_TIMEOUT={defaults.discovery_timeout:g}",
            f"COLLECTION_DISCOVERY_COOLDOWN={defaults.discovery_cooldown:g}",
            f"COLLECTION_INTERVAL={defaults.interval:g}",
            "",
            "# Bluetooth",
            "BLE_ADAPTER=auto",
            "BLE_CONNECT_TIMEOUT=20",
            "",
            "# Devices",
            "DEVICES_FILE=./config/devices.json",
            "",
            "# Logging",
            "LOG_LEVEL=INFO",
            "LOG_DIR=./logs",
        ]
        return "\n".join(lines) + "\n"
